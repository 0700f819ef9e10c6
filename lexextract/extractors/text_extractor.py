"""Plain text extractor implementation."""

from __future__ import annotations

import logging
import time
from typing import Optional

from ..models import DocumentFile, ExtractionResult, PageResult, ProgressCallback
from ..utils import elapsed_ms
from .base import DocumentExtractor, ProgressReporter

logger = logging.getLogger(__name__)


class PlainTextExtractor(DocumentExtractor):
    """Read a text file as a single fully trusted page."""

    confidence = 1.0

    async def extract(
        self, file: DocumentFile, on_progress: Optional[ProgressCallback] = None
    ) -> ExtractionResult:
        start = time.perf_counter()
        reporter = ProgressReporter(on_progress)
        reporter.processing(50, "Reading text file...")

        # utf-8-sig drops a leading byte order mark if present
        text = file.data.decode("utf-8-sig", errors="replace")

        result = ExtractionResult.from_pages(
            [PageResult(page_number=1, text=text, confidence=self.confidence)],
            confidence=self.confidence,
            file_size_bytes=file.size,
            processing_time_ms=elapsed_ms(start),
        )
        reporter.completed("Text file processed")
        logger.debug("Read %s characters from %s", len(text), file.name or "<text>")
        return result
