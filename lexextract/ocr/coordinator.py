"""Coordinator owning the single OCR worker and its pending-request table.

Each request gets a fresh correlation id and an entry in the pending table.
Responses from the worker are routed back by id on the event loop thread, so
the table only ever has one writer. The entry is removed on every terminal
outcome: result, error, worker failure, termination, cancellation or timeout.
"""

from __future__ import annotations

import asyncio
import itertools
import logging
from dataclasses import dataclass
from typing import Callable, Dict, Optional, Type

from tenacity import (
    before_sleep_log,
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from ..config import Config
from ..exceptions import (
    OCRProcessingError,
    OCRTimeoutError,
    WorkerFailure,
    WorkerTerminated,
)
from ..models import OCROptions, OCRProgress, OCRProgressCallback, OCRResult
from .protocol import MessageType, WorkerMessage
from .worker import OCRWorker, RawMessage, create_worker

logger = logging.getLogger(__name__)


@dataclass
class _PendingRequest:
    future: "asyncio.Future[OCRResult]"
    on_progress: Optional[OCRProgressCallback] = None


class OCRWorkerCoordinator:
    """Translate OCR requests into worker messages and route the answers back.

    The worker is created lazily on first use (or by :meth:`start`) and lives
    until :meth:`terminate`. A fatal worker failure rejects every pending
    request, not just the one being processed.
    """

    def __init__(
        self,
        worker_factory: Optional[Callable[[], OCRWorker]] = None,
        config: Optional[Config] = None,
    ) -> None:
        self.config = config or Config()
        self._worker_factory = worker_factory or (lambda: create_worker(self.config))
        self._worker: Optional[OCRWorker] = None
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._pending: Dict[str, _PendingRequest] = {}
        self._ids = itertools.count(1)
        # Bumped whenever the worker is replaced so stale callbacks are ignored.
        self._generation = 0

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    @property
    def is_running(self) -> bool:
        return self._worker is not None

    async def __aenter__(self) -> "OCRWorkerCoordinator":
        await self.start()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        self.terminate()

    async def start(self) -> None:
        """Create the worker if it does not exist yet."""
        loop = asyncio.get_running_loop()
        if self._worker is not None and self._loop is not loop:
            # The previous event loop is gone; its worker callbacks cannot
            # be delivered anymore.
            self.terminate()
        if self._worker is not None:
            return

        self._loop = loop
        self._generation += 1
        try:
            self._worker = self._spawn_worker(self._generation)
        except OSError as e:
            logger.error(f"Failed to initialize OCR worker: {e}")
            raise WorkerFailure("OCR worker initialization failed") from e

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=0.1, min=0.1, max=1),
        retry=retry_if_exception_type(OSError),
        before_sleep=before_sleep_log(logger, logging.WARNING),
        reraise=True,
    )
    def _spawn_worker(self, generation: int) -> OCRWorker:
        worker = self._worker_factory()
        worker.start(
            lambda raw: self._schedule(self._handle_message, raw),
            lambda exc: self._schedule(self._handle_worker_failure, generation, exc),
        )
        return worker

    def _schedule(self, callback: Callable[..., None], *args: object) -> None:
        # Called from worker threads; hop onto the event loop.
        loop = self._loop
        if loop is None or loop.is_closed():
            return
        loop.call_soon_threadsafe(callback, *args)

    async def process_image(
        self, image: bytes, options: Optional[OCROptions] = None
    ) -> OCRResult:
        """Recognize an encoded image in the worker.

        Returns the engine's raw result (confidence on its native 0-100 scale).
        """
        return await self._submit(MessageType.PROCESS_IMAGE, image, options)

    async def process_pdf_page(
        self, page_image: bytes, options: Optional[OCROptions] = None
    ) -> OCRResult:
        """Recognize a rasterized or embedded PDF page image in the worker."""
        return await self._submit(MessageType.PROCESS_PDF_PAGE, page_image, options)

    async def _submit(
        self, message_type: MessageType, image: bytes, options: Optional[OCROptions]
    ) -> OCRResult:
        options = options or self.config.ocr_options()
        await self.start()
        worker = self._worker
        if worker is None:
            raise WorkerFailure("OCR worker not available")

        request_id = f"ocr-{next(self._ids)}"
        if request_id in self._pending:
            raise RuntimeError(f"Correlation id {request_id} is already pending")

        loop = asyncio.get_running_loop()
        future: "asyncio.Future[OCRResult]" = loop.create_future()
        self._pending[request_id] = _PendingRequest(future, options.on_progress)

        message = WorkerMessage(
            type=message_type,
            id=request_id,
            data={
                "image": image,
                "options": {
                    "language": options.language,
                    "confidence": options.confidence_floor,
                },
            },
        )
        logger.debug(f"Posting {message_type.value} request {request_id}")

        try:
            try:
                worker.post(message.to_dict())
            except (OSError, ValueError) as e:
                raise WorkerFailure(f"OCR worker not available: {e}") from e
            timeout = self.config.ocr_request_timeout
            if timeout is None:
                return await future
            try:
                return await asyncio.wait_for(future, timeout)
            except asyncio.TimeoutError:
                raise OCRTimeoutError(
                    f"OCR request {request_id} timed out after {timeout} seconds"
                ) from None
        finally:
            self._pending.pop(request_id, None)

    def _handle_message(self, raw: RawMessage) -> None:
        try:
            message = WorkerMessage.from_dict(raw)
        except ValueError as e:
            logger.warning(f"Dropping malformed worker message: {e}")
            return

        request = self._pending.get(message.id)
        if request is None:
            logger.debug(f"Ignoring {message.type.value} for unknown request {message.id}")
            return

        if message.type is MessageType.OCR_PROGRESS:
            progress = message.data.get("progress")
            if request.on_progress is not None and isinstance(progress, (int, float)):
                try:
                    request.on_progress(OCRProgress(progress=float(progress)))
                except Exception as e:
                    logger.warning(f"OCR progress callback raised and was ignored: {e}")
            return

        if not message.type.is_terminal:
            logger.warning(f"Worker sent unexpected {message.type.value} for {message.id}")
            return

        del self._pending[message.id]
        if request.future.done():
            return

        if message.type is MessageType.OCR_ERROR:
            error = message.data.get("error") or "OCR processing failed"
            request.future.set_exception(OCRProcessingError(error))
            return

        text = message.data.get("text")
        confidence = message.data.get("confidence")
        if text is None or not isinstance(confidence, (int, float)):
            request.future.set_exception(
                OCRProcessingError("Worker returned an incomplete OCR result")
            )
            return
        request.future.set_result(OCRResult(text=str(text), confidence=float(confidence)))

    def _handle_worker_failure(self, generation: int, exc: BaseException) -> None:
        if generation != self._generation:
            return
        logger.error(f"OCR worker error: {exc}")
        worker, self._worker = self._worker, None
        self._generation += 1
        self._reject_all(WorkerFailure, f"Worker error occurred: {exc}")
        if worker is not None:
            worker.terminate()

    def terminate(self) -> None:
        """Destroy the worker and reject every pending request."""
        worker, self._worker = self._worker, None
        self._generation += 1
        if worker is not None:
            worker.terminate()
        self._reject_all(WorkerTerminated, "OCR service terminated")

    def _reject_all(self, error_type: Type[WorkerFailure], message: str) -> None:
        pending = list(self._pending.values())
        self._pending.clear()
        for request in pending:
            future = request.future
            if future.done() or future.get_loop().is_closed():
                continue
            future.set_exception(error_type(message))
        if pending:
            logger.warning(f"Rejected {len(pending)} pending OCR request(s): {message}")
