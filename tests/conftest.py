"""Shared fixtures: in-memory documents and fake OCR engines."""

import io
import os
import threading
import time
from typing import List, Sequence

import pytest
from pypdf import PdfWriter

from lexextract.exceptions import OCRProcessingError
from lexextract.models import DocumentFile, OCRResult
from lexextract.ocr.engine import OCREngine


def _escape(text: str) -> str:
    return text.replace("\\", "\\\\").replace("(", "\\(").replace(")", "\\)")


def make_text_pdf(page_texts: Sequence[str]) -> bytes:
    """Build a PDF whose pages carry a real Helvetica text layer."""
    page_count = len(page_texts)
    kids = " ".join(f"{4 + 2 * i} 0 R" for i in range(page_count))
    objects: List[bytes] = [
        b"<< /Type /Catalog /Pages 2 0 R >>",
        f"<< /Type /Pages /Kids [{kids}] /Count {page_count} >>".encode(),
        b"<< /Type /Font /Subtype /Type1 /BaseFont /Helvetica >>",
    ]
    for i, text in enumerate(page_texts):
        content_id = 5 + 2 * i
        stream = f"BT /F1 12 Tf 72 720 Td ({_escape(text)}) Tj ET".encode("latin-1")
        objects.append(
            (
                "<< /Type /Page /Parent 2 0 R /MediaBox [0 0 612 792] "
                "/Resources << /Font << /F1 3 0 R >> >> "
                f"/Contents {content_id} 0 R >>"
            ).encode()
        )
        objects.append(
            b"<< /Length %d >>\nstream\n" % len(stream) + stream + b"\nendstream"
        )

    out = bytearray(b"%PDF-1.4\n")
    offsets = []
    for number, body in enumerate(objects, start=1):
        offsets.append(len(out))
        out += b"%d 0 obj\n" % number + body + b"\nendobj\n"
    xref_offset = len(out)
    out += b"xref\n0 %d\n" % (len(objects) + 1)
    out += b"0000000000 65535 f \n"
    for offset in offsets:
        out += b"%010d 00000 n \n" % offset
    out += b"trailer\n<< /Size %d /Root 1 0 R >>\n" % (len(objects) + 1)
    out += b"startxref\n%d\n%%%%EOF\n" % xref_offset
    return bytes(out)


def make_blank_pdf(page_count: int) -> bytes:
    writer = PdfWriter()
    for _ in range(page_count):
        writer.add_blank_page(width=72, height=72)
    buffer = io.BytesIO()
    writer.write(buffer)
    return buffer.getvalue()


def make_encrypted_pdf(password: str = "secret") -> bytes:
    writer = PdfWriter()
    writer.add_blank_page(width=72, height=72)
    writer.encrypt(password)
    buffer = io.BytesIO()
    writer.write(buffer)
    return buffer.getvalue()


def pdf_file(data: bytes, name: str = "document.pdf") -> DocumentFile:
    return DocumentFile(data=data, mime_type="application/pdf", name=name)


class EchoEngine(OCREngine):
    """Recognizes an image as its own bytes decoded as text.

    Payloads starting with ``fail:`` raise, and ``block`` waits on ``gate``
    until a test releases it.
    """

    def __init__(self, confidence: float = 87.0) -> None:
        self.confidence = confidence
        self.gate = threading.Event()
        self.gate.set()
        self.calls: List[bytes] = []

    def recognize(self, image, language="eng", confidence_floor=0.0, on_progress=None):
        self.calls.append(image)
        report = on_progress or (lambda _p: None)
        report(0.0)
        text = image.decode("utf-8")
        if text == "block":
            self.gate.wait(5)
        if text.startswith("fail:"):
            raise OCRProcessingError(text[len("fail:"):])
        report(0.5)
        report(1.0)
        return OCRResult(text=f"text for {text}", confidence=self.confidence)


@pytest.fixture()
def engine() -> EchoEngine:
    return EchoEngine()



class ProcessEchoEngine(OCREngine):
    """Picklable engine for the process worker.

    ``exit`` kills the worker process and ``hang`` keeps it busy.
    """

    def recognize(self, image, language="eng", confidence_floor=0.0, on_progress=None):
        text = image.decode("utf-8")
        if text == "exit":
            os._exit(3)
        if text == "hang":
            time.sleep(30)
        if on_progress is not None:
            on_progress(1.0)
        return OCRResult(text=f"r:{text}", confidence=75.0)
