"""OCR engine interface and the Tesseract implementation."""

from __future__ import annotations

import abc
import io
import logging
from typing import Callable, Dict, List, Optional, Tuple

import pytesseract
from PIL import Image, UnidentifiedImageError

from ..exceptions import OCRProcessingError
from ..models import OCRResult

logger = logging.getLogger(__name__)

# Receives recognition progress in the 0..1 range.
EngineProgress = Callable[[float], None]


class OCREngine(abc.ABC):
    """Abstract interface every recognition engine must implement.

    Engines run inside the worker execution context, so implementations must
    be picklable when used with the process worker.
    """

    @abc.abstractmethod
    def recognize(
        self,
        image: bytes,
        language: str = "eng",
        confidence_floor: float = 0.0,
        on_progress: Optional[EngineProgress] = None,
    ) -> OCRResult:
        """Recognize the text in an encoded image (PNG, JPEG, TIFF, ...).

        Returns the text and the engine-native confidence (0-100).

        Raises:
            OCRProcessingError: If the image cannot be recognized
        """


class TesseractEngine(OCREngine):
    """Tesseract OCR through pytesseract.

    A single ``image_to_data`` pass provides both the words and their
    confidences; the text is rebuilt line by line from Tesseract's block,
    paragraph and line numbering.
    """

    def __init__(self, tesseract_cmd: Optional[str] = None) -> None:
        self.tesseract_cmd = tesseract_cmd

    def recognize(
        self,
        image: bytes,
        language: str = "eng",
        confidence_floor: float = 0.0,
        on_progress: Optional[EngineProgress] = None,
    ) -> OCRResult:
        if not image:
            raise OCRProcessingError("No image data provided")
        if self.tesseract_cmd:
            pytesseract.pytesseract.tesseract_cmd = self.tesseract_cmd

        report = on_progress or (lambda _p: None)
        report(0.0)

        try:
            with Image.open(io.BytesIO(image)) as img:
                img.load()
                rgb = img.convert("RGB")
        except (UnidentifiedImageError, OSError) as e:
            raise OCRProcessingError(f"Unreadable image data: {e}") from e
        report(0.1)

        try:
            data = pytesseract.image_to_data(
                rgb, lang=language or "eng", output_type=pytesseract.Output.DICT
            )
        except pytesseract.TesseractNotFoundError as e:
            raise OCRProcessingError(
                "tesseract binary not found. Install Tesseract OCR or set "
                "LEXEXTRACT_TESSERACT_CMD."
            ) from e
        except pytesseract.TesseractError as e:
            raise OCRProcessingError(f"Tesseract failed: {e.message}") from e
        report(0.9)

        text, confidence = words_to_text(data, confidence_floor)
        report(1.0)

        logger.debug(
            "Tesseract recognized %s characters (confidence=%.1f)", len(text), confidence
        )
        return OCRResult(text=text, confidence=confidence)


def words_to_text(data: Dict[str, List], confidence_floor: float = 0.0) -> Tuple[str, float]:
    """Rebuild text and mean confidence from pytesseract ``image_to_data`` output.

    Words are joined with spaces, lines with ``\\n`` and paragraphs with a
    blank line. Rows with a negative confidence are layout rows, not words.
    """
    lines: Dict[Tuple[int, int, int], List[str]] = {}
    confidences: List[float] = []

    for i, word in enumerate(data.get("text", [])):
        word = (word or "").strip()
        if not word:
            continue
        try:
            conf = float(data["conf"][i])
        except (KeyError, IndexError, TypeError, ValueError):
            continue
        if conf < 0:
            continue
        if conf / 100.0 < confidence_floor:
            continue
        key = (
            int(data["block_num"][i]),
            int(data["par_num"][i]),
            int(data["line_num"][i]),
        )
        lines.setdefault(key, []).append(word)
        confidences.append(conf)

    parts: List[str] = []
    previous_paragraph: Optional[Tuple[int, int]] = None
    for key in sorted(lines):
        paragraph = key[:2]
        if previous_paragraph is not None:
            parts.append("\n\n" if paragraph != previous_paragraph else "\n")
        parts.append(" ".join(lines[key]))
        previous_paragraph = paragraph

    mean = sum(confidences) / len(confidences) if confidences else 0.0
    return "".join(parts), max(0.0, min(100.0, mean))
