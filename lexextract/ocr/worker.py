"""Background execution contexts for OCR recognition.

The worker side of the protocol is :func:`run_worker_loop`. It is hosted either
in a dedicated thread (:class:`ThreadWorker`) or in a separate process
(:class:`ProcessWorker`), so recognition never runs on the caller's event loop.
Both exchange messages in their plain-dict wire form.
"""

from __future__ import annotations

import abc
import logging
import multiprocessing
import queue
import threading
from functools import partial
from typing import Any, Callable, Dict, Optional

from ..config import Config
from ..exceptions import WorkerFailure
from .engine import OCREngine, TesseractEngine
from .protocol import (
    MessageType,
    WorkerMessage,
    error_message,
    progress_message,
    result_message,
)

logger = logging.getLogger(__name__)

RawMessage = Dict[str, Any]
MessageHandler = Callable[[RawMessage], None]
FailureHandler = Callable[[BaseException], None]


def handle_request(raw: RawMessage, send: MessageHandler, engine: OCREngine) -> None:
    """Answer one request with progress messages and exactly one terminal message."""
    try:
        request = WorkerMessage.from_dict(raw)
    except ValueError as e:
        message_id = raw.get("id") if isinstance(raw, dict) else None
        if isinstance(message_id, str) and message_id:
            send(error_message(message_id, str(e)).to_dict())
        else:
            logger.warning(f"Dropping request without correlation id: {e}")
        return

    if not request.type.is_request:
        send(error_message(request.id, f"Unknown message type: {request.type.value}").to_dict())
        return

    image = request.data.get("image")
    options = request.data.get("options") or {}
    if not image:
        missing = "canvas" if request.type is MessageType.PROCESS_PDF_PAGE else "image"
        send(error_message(request.id, f"No {missing} data provided").to_dict())
        return

    def report(progress: float) -> None:
        send(progress_message(request.id, progress).to_dict())

    try:
        result = engine.recognize(
            image,
            language=options.get("language") or "eng",
            confidence_floor=float(options.get("confidence") or 0.0),
            on_progress=report,
        )
    except Exception as e:
        logger.error(f"OCR request {request.id} failed: {e}")
        send(error_message(request.id, str(e) or "OCR processing failed").to_dict())
        return

    send(result_message(request.id, result.text, result.confidence).to_dict())


def run_worker_loop(
    receive: Callable[[], Optional[RawMessage]],
    send: MessageHandler,
    engine: OCREngine,
) -> None:
    """Serve requests until the ``None`` shutdown sentinel is received.

    Per-request failures are answered with ``OCR_ERROR``; only failures of
    the transport itself escape this function.
    """
    while True:
        raw = receive()
        if raw is None:
            logger.debug("OCR worker loop received shutdown sentinel")
            return
        handle_request(raw, send, engine)


def worker_process_main(
    requests: "multiprocessing.Queue[Optional[RawMessage]]",
    responses: "multiprocessing.Queue[RawMessage]",
    engine_factory: Callable[[], OCREngine],
) -> None:
    """Entry point of the OCR worker process."""
    engine = engine_factory()
    run_worker_loop(requests.get, responses.put, engine)


class OCRWorker(abc.ABC):
    """A single background execution context speaking the worker protocol."""

    @abc.abstractmethod
    def start(self, on_message: MessageHandler, on_failure: FailureHandler) -> None:
        """Create the execution context.

        ``on_message`` and ``on_failure`` may be called from any thread.
        """

    @abc.abstractmethod
    def post(self, message: RawMessage) -> None:
        """Send a request message to the worker."""

    @abc.abstractmethod
    def terminate(self) -> None:
        """Destroy the execution context. Safe to call more than once."""


class ThreadWorker(OCRWorker):
    """Runs the worker loop on a dedicated daemon thread."""

    def __init__(
        self,
        engine: OCREngine,
        name: str = "lexextract-ocr-worker",
        shutdown_timeout: float = 1.0,
    ) -> None:
        self.engine = engine
        self.name = name
        self.shutdown_timeout = shutdown_timeout
        self._inbox: "queue.Queue[Optional[RawMessage]]" = queue.Queue()
        self._thread: Optional[threading.Thread] = None

    def start(self, on_message: MessageHandler, on_failure: FailureHandler) -> None:
        self._thread = threading.Thread(
            target=self._run, args=(on_message, on_failure), name=self.name, daemon=True
        )
        self._thread.start()
        logger.info(f"Started OCR worker thread {self.name}")

    def _run(self, on_message: MessageHandler, on_failure: FailureHandler) -> None:
        try:
            run_worker_loop(self._inbox.get, on_message, self.engine)
        except Exception as e:
            logger.error(f"OCR worker thread crashed: {e}", exc_info=True)
            on_failure(e)

    def post(self, message: RawMessage) -> None:
        if self._thread is None or not self._thread.is_alive():
            raise WorkerFailure("OCR worker not available")
        self._inbox.put(message)

    def terminate(self) -> None:
        # A request already inside the engine finishes, but its answer is
        # ignored because the coordinator has dropped the request.
        thread, self._thread = self._thread, None
        if thread is None or not thread.is_alive():
            return
        self._inbox.put(None)
        if thread is not threading.current_thread():
            thread.join(self.shutdown_timeout)


class ProcessWorker(OCRWorker):
    """Runs the worker loop in a separate process.

    A listener thread relays responses back and reports an unexpected exit of
    the process as a worker failure.
    """

    def __init__(
        self,
        engine_factory: Callable[[], OCREngine],
        start_method: str = "spawn",
        poll_interval: float = 0.2,
        shutdown_timeout: float = 2.0,
    ) -> None:
        self.engine_factory = engine_factory
        self.start_method = start_method
        self.poll_interval = poll_interval
        self.shutdown_timeout = shutdown_timeout
        self._process: Optional[multiprocessing.process.BaseProcess] = None
        self._requests: Any = None
        self._responses: Any = None
        self._listener: Optional[threading.Thread] = None
        self._stopping = threading.Event()

    def start(self, on_message: MessageHandler, on_failure: FailureHandler) -> None:
        ctx = multiprocessing.get_context(self.start_method)
        self._requests = ctx.Queue()
        self._responses = ctx.Queue()
        self._process = ctx.Process(
            target=worker_process_main,
            args=(self._requests, self._responses, self.engine_factory),
            name="lexextract-ocr-worker",
            daemon=True,
        )
        self._process.start()
        self._stopping.clear()
        self._listener = threading.Thread(
            target=self._listen,
            args=(on_message, on_failure),
            name="lexextract-ocr-listener",
            daemon=True,
        )
        self._listener.start()
        logger.info(f"Started OCR worker process pid={self._process.pid}")

    def _listen(self, on_message: MessageHandler, on_failure: FailureHandler) -> None:
        process = self._process
        assert process is not None
        while not self._stopping.is_set():
            try:
                raw = self._responses.get(timeout=self.poll_interval)
            except queue.Empty:
                if not process.is_alive() and not self._stopping.is_set():
                    on_failure(
                        WorkerFailure(
                            "OCR worker process exited unexpectedly "
                            f"(exit code {process.exitcode})"
                        )
                    )
                    return
                continue
            except (EOFError, OSError) as e:
                if not self._stopping.is_set():
                    on_failure(WorkerFailure(f"Lost connection to OCR worker: {e}"))
                return
            on_message(raw)

    def post(self, message: RawMessage) -> None:
        if self._process is None or not self._process.is_alive():
            raise WorkerFailure("OCR worker not available")
        self._requests.put(message)

    def terminate(self) -> None:
        self._stopping.set()
        process, self._process = self._process, None
        if process is None:
            return
        if process.is_alive():
            self._requests.put(None)
            process.join(self.shutdown_timeout)
        if process.is_alive():
            logger.warning("OCR worker process did not stop in time; killing it")
            process.terminate()
            process.join(self.shutdown_timeout)
        listener, self._listener = self._listener, None
        if listener is not None and listener is not threading.current_thread():
            listener.join(self.shutdown_timeout)
        for q in (self._requests, self._responses):
            q.close()
            q.cancel_join_thread()
        logger.info("OCR worker process stopped")


def create_worker(config: Config) -> OCRWorker:
    """Build the worker described by ``config.worker_mode`` around Tesseract."""
    engine_factory = partial(TesseractEngine, tesseract_cmd=config.tesseract_cmd)
    if config.worker_mode == "thread":
        return ThreadWorker(engine_factory())
    return ProcessWorker(engine_factory)
