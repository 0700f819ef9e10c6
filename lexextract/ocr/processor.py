"""Image OCR strategy: image bytes in, single-page extraction result out."""

from __future__ import annotations

import asyncio
import logging
import time
from functools import partial
from typing import Optional

from ..config import Config
from ..exceptions import OCRProcessingError, OCRTimeoutError, WorkerFailure
from ..extractors.base import DocumentExtractor, ProgressReporter
from ..models import (
    DocumentFile,
    ExtractionResult,
    OCRProgress,
    OCRResult,
    PageResult,
    ProgressCallback,
)
from ..utils import clamp_confidence, elapsed_ms
from .coordinator import OCRWorkerCoordinator
from .engine import OCREngine, TesseractEngine

logger = logging.getLogger(__name__)


class ImageOCRProcessor(DocumentExtractor):
    """Feed an image through OCR and package the output as one page.

    With a coordinator, recognition runs in its background worker. Otherwise
    the engine runs directly in the default thread executor.
    """

    def __init__(
        self,
        coordinator: Optional[OCRWorkerCoordinator] = None,
        engine: Optional[OCREngine] = None,
        config: Optional[Config] = None,
    ) -> None:
        if config is None:
            config = coordinator.config if coordinator is not None else Config()
        self.config = config
        self.coordinator = coordinator
        self.engine = engine

    async def extract(
        self, file: DocumentFile, on_progress: Optional[ProgressCallback] = None
    ) -> ExtractionResult:
        start = time.perf_counter()
        reporter = ProgressReporter(on_progress)
        reporter.initializing(0, "Initializing OCR...")

        try:
            raw = await self._recognize(file.data, reporter)
        except (WorkerFailure, OCRTimeoutError) as e:
            reporter.error(str(e))
            raise
        except Exception as e:
            logger.error(f"Error performing OCR on {file.name or '<image>'}: {e}")
            reporter.error("OCR processing failed")
            raise OCRProcessingError(f"Failed to perform OCR on image: {e}") from e

        # Engines report 0-100; results use 0-1.
        confidence = clamp_confidence(raw.confidence / 100.0)
        result = ExtractionResult.from_pages(
            [PageResult(page_number=1, text=raw.text, confidence=confidence)],
            confidence=confidence,
            file_size_bytes=file.size,
            processing_time_ms=elapsed_ms(start),
        )
        reporter.completed("OCR processing completed")
        logger.info(
            f"OCR extracted {len(raw.text)} characters from "
            f"{file.name or '<image>'} (confidence={confidence:.2f})"
        )
        return result

    async def _recognize(self, image: bytes, reporter: ProgressReporter) -> OCRResult:
        def relay(progress: OCRProgress) -> None:
            percent = progress.progress * 100
            reporter.processing(percent, f"OCR processing: {round(percent)}%")

        options = self.config.ocr_options(on_progress=relay)

        if self.coordinator is not None:
            return await self.coordinator.process_image(image, options)

        engine = self.engine or TesseractEngine(tesseract_cmd=self.config.tesseract_cmd)
        loop = asyncio.get_running_loop()

        def engine_progress(value: float) -> None:
            # Runs on the executor thread.
            loop.call_soon_threadsafe(relay, OCRProgress(progress=value))

        return await loop.run_in_executor(
            None,
            partial(
                engine.recognize,
                image,
                language=options.language,
                confidence_floor=options.confidence_floor,
                on_progress=engine_progress,
            ),
        )


async def extract_text_from_image(
    file: DocumentFile,
    on_progress: Optional[ProgressCallback] = None,
    coordinator: Optional[OCRWorkerCoordinator] = None,
    engine: Optional[OCREngine] = None,
    config: Optional[Config] = None,
) -> ExtractionResult:
    """Extract text from an image using OCR."""
    processor = ImageOCRProcessor(coordinator=coordinator, engine=engine, config=config)
    return await processor.extract(file, on_progress)
