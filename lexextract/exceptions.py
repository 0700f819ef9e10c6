"""Custom exceptions for the extraction pipeline."""

from enum import Enum
from typing import Optional


class ErrorKind(str, Enum):
    """Stable error categories callers can branch on."""

    UNSUPPORTED_FILE_TYPE = "unsupported_file_type"
    CORRUPTED_DOCUMENT = "corrupted_document"
    PAGE_LIMIT_EXCEEDED = "page_limit_exceeded"
    WORKER_FAILURE = "worker_failure"
    WORKER_TERMINATED = "worker_terminated"
    OCR_FAILED = "ocr_failed"
    OCR_TIMEOUT = "ocr_timeout"
    CONFIGURATION = "configuration"
    INTERNAL = "internal"


class CorruptionReason(str, Enum):
    """Why a document could not be turned into pages."""

    EMPTY = "empty"
    INVALID = "invalid"
    PASSWORD_PROTECTED = "password-protected"
    CORRUPTED = "corrupted"
    NO_PAGES = "no pages"
    NO_PAGES_PROCESSED = "no pages processed"


_CORRUPTION_MESSAGES = {
    CorruptionReason.EMPTY: "The PDF file appears to be empty",
    CorruptionReason.INVALID: "The uploaded file is not a valid PDF document",
    CorruptionReason.PASSWORD_PROTECTED: (
        "This PDF is password protected. Please upload an unlocked PDF"
    ),
    CorruptionReason.CORRUPTED: (
        "The PDF file appears to be corrupted. Please try uploading again"
    ),
    CorruptionReason.NO_PAGES: "PDF document contains no pages",
    CorruptionReason.NO_PAGES_PROCESSED: (
        "Failed to process any pages from the PDF document"
    ),
}


class ExtractionError(Exception):
    """Base exception for the extraction pipeline."""

    kind: ErrorKind = ErrorKind.INTERNAL


class UnsupportedFileType(ExtractionError):
    """Raised when no extraction strategy matches the file."""

    kind = ErrorKind.UNSUPPORTED_FILE_TYPE

    def __init__(self, mime_type: str = "", name: str = "") -> None:
        self.mime_type = mime_type
        self.name = name
        label = mime_type or name or "unknown"
        super().__init__(f"Unsupported file type: {label}")


class CorruptedDocument(ExtractionError):
    """Raised when a document is empty, unparsable or yields no usable pages."""

    kind = ErrorKind.CORRUPTED_DOCUMENT

    def __init__(self, reason: CorruptionReason, detail: Optional[str] = None) -> None:
        self.reason = reason
        self.detail = detail
        super().__init__(_CORRUPTION_MESSAGES[reason])


class PageLimitExceeded(ExtractionError):
    """Raised before page processing when a PDF has too many pages."""

    kind = ErrorKind.PAGE_LIMIT_EXCEEDED

    def __init__(self, max_pages: int, page_count: int) -> None:
        self.max_pages = max_pages
        self.page_count = page_count
        super().__init__(
            f"PDF document has too many pages ({page_count}). "
            f"Maximum supported is {max_pages} pages."
        )


class WorkerFailure(ExtractionError):
    """Raised for every pending OCR request when the worker itself fails."""

    kind = ErrorKind.WORKER_FAILURE


class WorkerTerminated(WorkerFailure):
    """Raised for pending OCR requests when the coordinator is terminated."""

    kind = ErrorKind.WORKER_TERMINATED


class OCRProcessingError(ExtractionError):
    """Raised when recognition fails for a single request."""

    kind = ErrorKind.OCR_FAILED


class OCRTimeoutError(OCRProcessingError):
    """Raised when an OCR request receives no terminal response in time."""

    kind = ErrorKind.OCR_TIMEOUT


class ConfigurationError(ExtractionError):
    """Exception raised when configuration is invalid."""

    kind = ErrorKind.CONFIGURATION
