"""OCR engine, background worker and the coordinator that talks to it."""

from .coordinator import OCRWorkerCoordinator
from .engine import OCREngine, TesseractEngine
from .processor import ImageOCRProcessor, extract_text_from_image
from .protocol import MessageType, WorkerMessage
from .worker import OCRWorker, ProcessWorker, ThreadWorker, create_worker

__all__ = [
    "ImageOCRProcessor",
    "MessageType",
    "OCREngine",
    "OCRWorker",
    "OCRWorkerCoordinator",
    "ProcessWorker",
    "TesseractEngine",
    "ThreadWorker",
    "WorkerMessage",
    "create_worker",
    "extract_text_from_image",
]
