"""Document type dispatcher.

Every caller goes through :func:`extract_text_from_document`. The file is
classified into one of the supported formats and routed to that format's
strategy; all strategies return the same :class:`ExtractionResult` shape and
report progress through the same callback contract.
"""

import asyncio
import logging
from enum import Enum
from typing import Dict, Optional

from .config import Config
from .exceptions import ExtractionError, UnsupportedFileType
from .extractors import (
    DocumentExtractor,
    PDFExtractor,
    PlainTextExtractor,
    ProgressReporter,
)
from .models import DocumentFile, ExtractionResult, ProgressCallback, file_extension
from .ocr import ImageOCRProcessor, OCREngine, OCRWorkerCoordinator

logger = logging.getLogger(__name__)


class DocumentFormat(str, Enum):
    PDF = "pdf"
    IMAGE = "image"
    PLAIN_TEXT = "plain_text"
    UNSUPPORTED = "unsupported"


PDF_MIME_TYPE = "application/pdf"
TEXT_MIME_TYPE = "text/plain"
PDF_EXTENSIONS = frozenset({".pdf"})
IMAGE_EXTENSIONS = frozenset(
    {".jpg", ".jpeg", ".png", ".gif", ".bmp", ".tif", ".tiff", ".webp"}
)
TEXT_EXTENSIONS = frozenset({".txt"})


def classify_document(mime_type: Optional[str], name: Optional[str]) -> DocumentFormat:
    """Classify a file by MIME type, falling back to its extension.

    The extension (case-insensitive) is consulted whenever the MIME type is
    missing, generic (``application/octet-stream``) or not one we handle.
    """
    mime = (mime_type or "").split(";", 1)[0].strip().lower()
    if mime == PDF_MIME_TYPE:
        return DocumentFormat.PDF
    if mime.startswith("image/"):
        return DocumentFormat.IMAGE
    if mime == TEXT_MIME_TYPE:
        return DocumentFormat.PLAIN_TEXT

    extension = file_extension(name)
    if extension in PDF_EXTENSIONS:
        return DocumentFormat.PDF
    if extension in IMAGE_EXTENSIONS:
        return DocumentFormat.IMAGE
    if extension in TEXT_EXTENSIONS:
        return DocumentFormat.PLAIN_TEXT
    return DocumentFormat.UNSUPPORTED


class DocumentProcessor:
    """Route documents to the extraction strategy for their format."""

    def __init__(
        self,
        config: Optional[Config] = None,
        coordinator: Optional[OCRWorkerCoordinator] = None,
        ocr_engine: Optional[OCREngine] = None,
        ocr_scanned_pdfs: bool = False,
    ):
        """Initialize the document processor.

        Args:
            config: Configuration shared by every strategy
            coordinator: OCR worker coordinator; without one, images are
                recognized directly in a thread executor
            ocr_engine: Engine used for direct recognition (defaults to Tesseract)
            ocr_scanned_pdfs: Whether PDF pages without a text layer are sent
                through ``coordinator`` (requires a coordinator)
        """
        self.config = config or Config()
        self.coordinator = coordinator
        self.strategies: Dict[DocumentFormat, DocumentExtractor] = {
            DocumentFormat.PDF: PDFExtractor(
                self.config, ocr_fallback=coordinator if ocr_scanned_pdfs else None
            ),
            DocumentFormat.IMAGE: ImageOCRProcessor(
                coordinator=coordinator, engine=ocr_engine, config=self.config
            ),
            DocumentFormat.PLAIN_TEXT: PlainTextExtractor(),
        }

    def select_extractor(self, file: DocumentFile) -> DocumentExtractor:
        """Return the strategy for ``file``.

        Raises:
            UnsupportedFileType: If the file matches no supported format
        """
        document_format = classify_document(file.mime_type, file.name)
        if document_format is DocumentFormat.UNSUPPORTED:
            raise UnsupportedFileType(file.mime_type, file.name)
        logger.debug(
            f"Classified {file.name or '<unnamed>'} ({file.extension or 'no extension'}) "
            f"as {document_format.value}"
        )
        return self.strategies[document_format]

    async def extract(
        self, file: DocumentFile, on_progress: Optional[ProgressCallback] = None
    ) -> ExtractionResult:
        """Extract text from a document of any supported type.

        Raises:
            ExtractionError: Always one of the classified subclasses
        """
        try:
            extractor = self.select_extractor(file)
        except UnsupportedFileType as e:
            logger.error(str(e))
            ProgressReporter(on_progress).error(str(e))
            raise

        try:
            return await extractor.extract(file, on_progress)
        except ExtractionError:
            raise
        except Exception as e:
            logger.error(f"Failed to process document {file.name}: {e}", exc_info=True)
            raise ExtractionError(f"Failed to process document {file.name}: {e}") from e

    def extract_sync(
        self, file: DocumentFile, on_progress: Optional[ProgressCallback] = None
    ) -> ExtractionResult:
        """Synchronous wrapper for :meth:`extract`."""
        loop = asyncio.new_event_loop()
        asyncio.set_event_loop(loop)

        try:
            return loop.run_until_complete(self.extract(file, on_progress))
        finally:
            loop.close()
            asyncio.set_event_loop(None)


async def extract_text_from_document(
    file: DocumentFile,
    on_progress: Optional[ProgressCallback] = None,
    *,
    processor: Optional[DocumentProcessor] = None,
) -> ExtractionResult:
    """Extract text from a PDF, image or plain text file."""
    processor = processor or DocumentProcessor()
    return await processor.extract(file, on_progress)
