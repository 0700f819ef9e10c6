"""Document text extraction for PDFs, images and plain text files."""

__version__ = "0.1.0"

from .config import Config
from .exceptions import (
    CorruptedDocument,
    CorruptionReason,
    ErrorKind,
    ExtractionError,
    PageLimitExceeded,
    UnsupportedFileType,
    WorkerFailure,
)
from .models import DocumentFile, ExtractionProgress, ExtractionResult, PageResult
from .processor import DocumentProcessor, classify_document, extract_text_from_document
from .quality import validate_ocr_quality
from .utils import clean_extracted_text

__all__ = [
    "__version__",
    "Config",
    "CorruptedDocument",
    "CorruptionReason",
    "DocumentFile",
    "DocumentProcessor",
    "ErrorKind",
    "ExtractionError",
    "ExtractionProgress",
    "ExtractionResult",
    "PageLimitExceeded",
    "PageResult",
    "UnsupportedFileType",
    "WorkerFailure",
    "classify_document",
    "clean_extracted_text",
    "extract_text_from_document",
    "validate_ocr_quality",
]
