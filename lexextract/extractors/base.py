"""Base interfaces for document text extractors."""

from __future__ import annotations

import logging
from typing import Optional, Protocol

from ..models import (
    DocumentFile,
    ExtractionProgress,
    ExtractionResult,
    ExtractionStatus,
    ProgressCallback,
)

logger = logging.getLogger(__name__)


class DocumentExtractor(Protocol):
    """Protocol for document extractors.

    Implementations should be stateless and reusable across calls.
    """

    async def extract(
        self, file: DocumentFile, on_progress: Optional[ProgressCallback] = None
    ) -> ExtractionResult:
        """Extract the text of the whole document.

        Progress events are delivered in non-decreasing order and end with
        exactly one ``completed`` or ``error`` event.
        """
        ...


class ProgressReporter:
    """Wrap an optional progress callback and keep its event stream well-formed.

    - percentages are clamped to 0-100 and never go backwards
    - nothing is emitted after the terminal ``completed``/``error`` event
    - a failing callback is logged and never breaks the extraction
    """

    def __init__(self, callback: Optional[ProgressCallback] = None) -> None:
        self._callback = callback
        self._last = 0.0
        self._finished = False

    @property
    def finished(self) -> bool:
        return self._finished

    @property
    def last_progress(self) -> float:
        return self._last

    def emit(
        self,
        status: ExtractionStatus,
        progress: float,
        message: str = "",
        current_page: Optional[int] = None,
        total_pages: Optional[int] = None,
    ) -> None:
        if self._finished:
            return
        value = max(self._last, min(100.0, max(0.0, float(progress))))
        self._last = value
        if status in (ExtractionStatus.COMPLETED, ExtractionStatus.ERROR):
            self._finished = True
        if self._callback is None:
            return
        event = ExtractionProgress(
            status=status,
            progress=value,
            current_page=current_page,
            total_pages=total_pages,
            message=message,
        )
        try:
            self._callback(event)
        except Exception as e:
            logger.warning(f"Progress callback raised and was ignored: {e}")

    def initializing(self, progress: float, message: str) -> None:
        self.emit(ExtractionStatus.INITIALIZING, progress, message)

    def processing(self, progress: float, message: str, **pages: Optional[int]) -> None:
        self.emit(ExtractionStatus.PROCESSING, progress, message, **pages)

    def completed(self, message: str) -> None:
        self.emit(ExtractionStatus.COMPLETED, 100.0, message)

    def error(self, message: str) -> None:
        # Keeps the last reached percentage so the stream stays non-decreasing.
        self.emit(ExtractionStatus.ERROR, self._last, message)
