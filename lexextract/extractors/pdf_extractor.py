"""PDF text extractor implementation."""

from __future__ import annotations

import asyncio
import io
import logging
import time
from typing import TYPE_CHECKING, List, Optional, Tuple

from pypdf import PageObject, PasswordType, PdfReader
from pypdf.errors import (
    EmptyFileError,
    FileNotDecryptedError,
    PdfStreamError,
)

from ..config import Config
from ..exceptions import (
    CorruptedDocument,
    CorruptionReason,
    ExtractionError,
    PageLimitExceeded,
)
from ..models import DocumentFile, ExtractionResult, PageResult, ProgressCallback
from ..utils import clamp_confidence, elapsed_ms
from .base import DocumentExtractor, ProgressReporter

if TYPE_CHECKING:
    from ..ocr.coordinator import OCRWorkerCoordinator

logger = logging.getLogger(__name__)

PLACEHOLDER_TEXT = "[Page {page_number} could not be processed]"

# Real PDFs may carry up to 1 KiB of junk before the header.
_HEADER_SEARCH_WINDOW = 1024


def classify_pdf_error(error: BaseException) -> CorruptionReason:
    """Map a pypdf failure to a corruption reason.

    pypdf's exception types are checked first; the message text is only a
    fallback for errors raised without a specific type.
    """
    if isinstance(error, EmptyFileError):
        return CorruptionReason.EMPTY
    if isinstance(error, FileNotDecryptedError):
        return CorruptionReason.PASSWORD_PROTECTED
    if isinstance(error, PdfStreamError):
        return CorruptionReason.CORRUPTED

    message = str(error).lower()
    if "password" in message or "encrypt" in message or "decrypt" in message:
        return CorruptionReason.PASSWORD_PROTECTED
    if "invalid pdf" in message or "'%pdf-' expected" in message:
        return CorruptionReason.INVALID
    return CorruptionReason.CORRUPTED


class PDFExtractor(DocumentExtractor):
    """Extract the native text layer of a PDF page by page.

    Pages that fail are replaced by a placeholder and processing continues;
    the call only fails when no page could be read at all. When an OCR
    coordinator is passed as ``ocr_fallback``, pages without a text layer are
    recognized from their largest embedded image instead.
    """

    def __init__(
        self,
        config: Optional[Config] = None,
        ocr_fallback: Optional["OCRWorkerCoordinator"] = None,
    ) -> None:
        self.config = config or Config()
        self.ocr_fallback = ocr_fallback

    async def extract(
        self, file: DocumentFile, on_progress: Optional[ProgressCallback] = None
    ) -> ExtractionResult:
        start = time.perf_counter()
        reporter = ProgressReporter(on_progress)
        try:
            return await self._extract(file, reporter, start)
        except ExtractionError as e:
            logger.error(f"Error extracting text from PDF {file.name or '<pdf>'}: {e}")
            reporter.error(str(e))
            raise
        except Exception as e:
            logger.error(
                f"Error extracting text from PDF {file.name or '<pdf>'}: {e}", exc_info=True
            )
            message = f"PDF processing failed: {e}"
            reporter.error(message)
            raise ExtractionError(message) from e

    async def _extract(
        self, file: DocumentFile, reporter: ProgressReporter, start: float
    ) -> ExtractionResult:
        reporter.initializing(0, "Loading PDF...")
        if not file.data:
            raise CorruptedDocument(CorruptionReason.EMPTY)

        reporter.initializing(5, "Reading PDF file...")
        await asyncio.sleep(0)

        reporter.initializing(10, "Parsing PDF document...")
        reader, total_pages = self._open(file.data)

        if total_pages == 0:
            raise CorruptedDocument(CorruptionReason.NO_PAGES)
        if total_pages > self.config.max_pages:
            raise PageLimitExceeded(self.config.max_pages, total_pages)

        pages: List[PageResult] = []
        processed: List[PageResult] = []
        ocr_used = False

        for page_number in range(1, total_pages + 1):
            reporter.processing(
                15 + (page_number - 1) / total_pages * 80,
                f"Processing page {page_number} of {total_pages}...",
                current_page=page_number,
                total_pages=total_pages,
            )
            # Let other tasks run between pages.
            await asyncio.sleep(0)

            try:
                page = reader.pages[page_number - 1]
                text = self._extract_page_text(page)
            except Exception as e:
                logger.warning(f"Failed to process page {page_number}: {e}")
                pages.append(
                    PageResult(
                        page_number=page_number,
                        text=PLACEHOLDER_TEXT.format(page_number=page_number),
                        confidence=0.0,
                    )
                )
                continue

            page_result = PageResult(
                page_number=page_number, text=text, confidence=self.config.pdf_confidence
            )
            if not text and self.ocr_fallback is not None:
                ocr_page = await self._ocr_page(page, page_number)
                if ocr_page is not None:
                    page_result = ocr_page
                    ocr_used = True

            logger.debug(
                "Extracted page %s: %s characters", page_number, len(page_result.text)
            )
            pages.append(page_result)
            processed.append(page_result)

        if not processed:
            raise CorruptedDocument(CorruptionReason.NO_PAGES_PROCESSED)

        confidence = self.config.pdf_confidence
        if ocr_used:
            # Placeholder pages do not count towards the aggregate.
            mean = sum(p.confidence for p in processed) / len(processed)
            confidence = clamp_confidence(min(confidence, mean))

        result = ExtractionResult.from_pages(
            pages,
            confidence=confidence,
            file_size_bytes=file.size,
            processing_time_ms=elapsed_ms(start),
        )
        reporter.completed("PDF processing completed")
        logger.info(
            f"Extracted {len(processed)}/{total_pages} pages from "
            f"{file.name or '<pdf>'} in {result.metadata.processing_time_ms:.0f} ms"
        )
        return result

    def _open(self, data: bytes) -> Tuple[PdfReader, int]:
        """Parse the document and count its pages.

        Raises:
            CorruptedDocument: If the bytes are not a readable PDF
        """
        if b"%PDF-" not in data[:_HEADER_SEARCH_WINDOW]:
            raise CorruptedDocument(CorruptionReason.INVALID, detail="missing %PDF- header")

        try:
            reader = PdfReader(io.BytesIO(data), strict=False)
            if reader.is_encrypted and reader.decrypt("") == PasswordType.NOT_DECRYPTED:
                raise CorruptedDocument(CorruptionReason.PASSWORD_PROTECTED)
            total_pages = len(reader.pages)
        except CorruptedDocument:
            raise
        except Exception as e:
            reason = classify_pdf_error(e)
            logger.debug(f"pypdf failed to parse document ({reason.value}): {e}")
            raise CorruptedDocument(reason, detail=str(e)) from e

        return reader, total_pages

    def _extract_page_text(self, page: PageObject) -> str:
        """Join the text-layer fragments of a page with single spaces."""
        fragments: List[str] = []

        def visitor(text, cm, tm, font_dict, font_size) -> None:
            fragments.append(text)

        layout_text = page.extract_text(visitor_text=visitor) or ""
        joined = " ".join(f.strip() for f in fragments if f.strip())
        if not joined and layout_text.strip():
            joined = " ".join(layout_text.split())
        return joined.strip()

    async def _ocr_page(self, page: PageObject, page_number: int) -> Optional[PageResult]:
        """Recognize a page without a text layer from its largest embedded image."""
        coordinator = self.ocr_fallback
        assert coordinator is not None
        try:
            images = list(page.images)
            if not images:
                return None
            largest = max(images, key=lambda image: len(image.data))
            logger.debug(f"Page {page_number} has no text layer; running OCR on {largest.name}")
            result = await coordinator.process_pdf_page(
                largest.data, self.config.ocr_options()
            )
        except Exception as e:
            logger.warning(f"OCR fallback failed for page {page_number}: {e}")
            return None

        return PageResult(
            page_number=page_number,
            text=result.text.strip(),
            confidence=clamp_confidence(result.confidence / 100.0),
        )


async def extract_text_from_pdf(
    file: DocumentFile,
    on_progress: Optional[ProgressCallback] = None,
    config: Optional[Config] = None,
    ocr_fallback: Optional["OCRWorkerCoordinator"] = None,
) -> ExtractionResult:
    """Extract text from a PDF file."""
    return await PDFExtractor(config=config, ocr_fallback=ocr_fallback).extract(
        file, on_progress
    )
