"""Extractor interfaces and implementations for different document types."""

from .base import DocumentExtractor, ProgressReporter
from .pdf_extractor import PDFExtractor, extract_text_from_pdf
from .text_extractor import PlainTextExtractor

__all__ = [
    "DocumentExtractor",
    "PDFExtractor",
    "PlainTextExtractor",
    "ProgressReporter",
    "extract_text_from_pdf",
]
