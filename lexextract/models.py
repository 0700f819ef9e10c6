"""Data types shared by every extraction strategy."""

from __future__ import annotations

import mimetypes
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, Optional, Tuple

# Pages are joined with a single separator so the full text can always be
# rebuilt from the per-page texts.
PAGE_SEPARATOR = "\n"


def file_extension(name: Optional[str]) -> str:
    """Lower-cased suffix of a file name, including the dot."""
    return Path(name or "").suffix.lower()


@dataclass(frozen=True)
class DocumentFile:
    """An uploaded file: raw bytes plus the declared MIME type and name."""

    data: bytes
    mime_type: str = ""
    name: str = ""

    @property
    def size(self) -> int:
        return len(self.data)

    @property
    def extension(self) -> str:
        return file_extension(self.name)

    @classmethod
    def from_path(cls, path: Path, mime_type: Optional[str] = None) -> "DocumentFile":
        """Read a file from disk, guessing its MIME type from the name."""
        path = Path(path)
        if mime_type is None:
            mime_type = mimetypes.guess_type(path.name)[0] or ""
        return cls(data=path.read_bytes(), mime_type=mime_type, name=path.name)


class ExtractionStatus(str, Enum):
    INITIALIZING = "initializing"
    PROCESSING = "processing"
    COMPLETED = "completed"
    ERROR = "error"


@dataclass(frozen=True)
class ExtractionProgress:
    """Progress telemetry for a single extraction call.

    Attributes:
        status: Current phase of the extraction.
        progress: Percentage in the 0-100 range.
        current_page: 1-based page being processed, if paged.
        total_pages: Number of pages in the document, if known.
        message: Human readable description of the step.
    """

    status: ExtractionStatus
    progress: float
    current_page: Optional[int] = None
    total_pages: Optional[int] = None
    message: str = ""


ProgressCallback = Callable[[ExtractionProgress], None]


def _check_confidence(value: float, what: str) -> None:
    if not 0.0 <= value <= 1.0:
        raise ValueError(f"{what} confidence must be within [0, 1], got {value}")


@dataclass(frozen=True)
class PageResult:
    page_number: int
    text: str
    confidence: float

    def __post_init__(self) -> None:
        if self.page_number < 1:
            raise ValueError(f"page_number must be >= 1, got {self.page_number}")
        _check_confidence(self.confidence, "Page")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "page_number": self.page_number,
            "text": self.text,
            "confidence": self.confidence,
        }


@dataclass(frozen=True)
class ExtractionMetadata:
    processing_time_ms: float
    file_size_bytes: int
    page_count: int


@dataclass(frozen=True)
class ExtractionResult:
    """Normalized output of every extraction strategy.

    Build instances with :meth:`from_pages` so that ``text`` and
    ``metadata.page_count`` always agree with ``pages``.
    """

    text: str
    confidence: float
    pages: Tuple[PageResult, ...]
    metadata: ExtractionMetadata

    def __post_init__(self) -> None:
        _check_confidence(self.confidence, "Aggregate")

    @classmethod
    def from_pages(
        cls,
        pages: Iterable[PageResult],
        confidence: float,
        file_size_bytes: int,
        processing_time_ms: float,
    ) -> "ExtractionResult":
        ordered = tuple(pages)
        for index, page in enumerate(ordered, start=1):
            if page.page_number != index:
                raise ValueError(
                    f"Page numbers must be contiguous from 1; "
                    f"position {index} holds page {page.page_number}"
                )
        return cls(
            text=PAGE_SEPARATOR.join(page.text for page in ordered),
            confidence=confidence,
            pages=ordered,
            metadata=ExtractionMetadata(
                processing_time_ms=processing_time_ms,
                file_size_bytes=file_size_bytes,
                page_count=len(ordered),
            ),
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert the result to a JSON-serializable dictionary."""
        return {
            "text": self.text,
            "confidence": self.confidence,
            "pages": [page.to_dict() for page in self.pages],
            "metadata": {
                "processing_time_ms": self.metadata.processing_time_ms,
                "file_size_bytes": self.metadata.file_size_bytes,
                "page_count": self.metadata.page_count,
            },
        }


@dataclass(frozen=True)
class OCRProgress:
    """Recognition progress as reported across the worker boundary (0..1)."""

    progress: float
    status: str = "Processing..."


OCRProgressCallback = Callable[[OCRProgress], None]


@dataclass(frozen=True)
class OCROptions:
    """Per-request OCR options.

    Attributes:
        language: Tesseract language code(s), e.g. ``"eng"`` or ``"eng+deu"``.
        confidence_floor: Words recognized below this confidence (0..1) are
            dropped from the text.
        on_progress: Optional callback receiving recognition progress.
    """

    language: str = "eng"
    confidence_floor: float = 0.0
    on_progress: Optional[OCRProgressCallback] = field(default=None, compare=False)


@dataclass(frozen=True)
class OCRResult:
    """Raw recognition output; ``confidence`` is on the engine's 0-100 scale."""

    text: str
    confidence: float


@dataclass(frozen=True)
class QualityReport:
    is_good_quality: bool
    quality_score: float
    suggestions: Tuple[str, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "is_good_quality": self.is_good_quality,
            "quality_score": self.quality_score,
            "suggestions": list(self.suggestions),
        }
