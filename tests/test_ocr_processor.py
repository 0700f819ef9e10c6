"""Tests for the image OCR strategy."""

import asyncio
from typing import List

import pytest

from conftest import EchoEngine
from lexextract.config import Config
from lexextract.exceptions import OCRProcessingError, WorkerTerminated
from lexextract.models import DocumentFile, ExtractionProgress, ExtractionStatus
from lexextract.ocr.coordinator import OCRWorkerCoordinator
from lexextract.ocr.processor import ImageOCRProcessor, extract_text_from_image
from lexextract.ocr.worker import ThreadWorker


def _png(payload: bytes = b"scan") -> DocumentFile:
    return DocumentFile(data=payload, mime_type="image/png", name="scan.png")


@pytest.mark.asyncio
async def test_image_through_worker():
    engine = EchoEngine(confidence=87.0)
    events: List[ExtractionProgress] = []

    async with OCRWorkerCoordinator(lambda: ThreadWorker(engine)) as coordinator:
        result = await extract_text_from_image(_png(), events.append, coordinator=coordinator)
        assert coordinator.pending_count == 0

    assert result.text == "text for scan"
    assert result.confidence == pytest.approx(0.87)
    assert len(result.pages) == 1
    assert result.pages[0].page_number == 1
    assert result.pages[0].confidence == pytest.approx(0.87)
    assert result.metadata.file_size_bytes == 4

    assert events[0].status is ExtractionStatus.INITIALIZING
    assert events[0].progress == 0
    ocr_progress = [e.progress for e in events if e.status is ExtractionStatus.PROCESSING]
    assert ocr_progress == [0, 50, 100]
    assert events[-1].status is ExtractionStatus.COMPLETED
    values = [e.progress for e in events]
    assert values == sorted(values)


@pytest.mark.asyncio
async def test_image_direct_engine():
    events: List[ExtractionProgress] = []
    processor = ImageOCRProcessor(engine=EchoEngine(confidence=42.0))

    result = await processor.extract(_png(b"direct"), events.append)

    assert result.text == "text for direct"
    assert result.confidence == pytest.approx(0.42)
    assert events[-1].status is ExtractionStatus.COMPLETED
    assert [e.progress for e in events] == sorted(e.progress for e in events)


@pytest.mark.asyncio
async def test_engine_confidence_is_clamped():
    result = await ImageOCRProcessor(engine=EchoEngine(confidence=140.0)).extract(_png())
    assert result.confidence == 1.0


@pytest.mark.asyncio
async def test_ocr_failure_is_wrapped():
    events: List[ExtractionProgress] = []
    processor = ImageOCRProcessor(engine=EchoEngine())

    with pytest.raises(OCRProcessingError) as ei:
        await processor.extract(_png(b"fail:too blurry"), events.append)

    assert str(ei.value) == "Failed to perform OCR on image: too blurry"
    assert events[-1].status is ExtractionStatus.ERROR
    assert events[-1].message == "OCR processing failed"


@pytest.mark.asyncio
async def test_worker_failures_propagate_unchanged():
    engine = EchoEngine()
    engine.gate.clear()
    coordinator = OCRWorkerCoordinator(
        lambda: ThreadWorker(engine, shutdown_timeout=0.1)
    )
    processor = ImageOCRProcessor(coordinator=coordinator)

    task = asyncio.ensure_future(processor.extract(_png(b"block")))
    for _ in range(100):
        if coordinator.pending_count:
            break
        await asyncio.sleep(0)
    coordinator.terminate()
    engine.gate.set()

    with pytest.raises(WorkerTerminated):
        await task


def test_processor_uses_coordinator_config():
    config = Config(ocr_language="deu", worker_mode="thread")
    coordinator = OCRWorkerCoordinator(config=config)
    assert ImageOCRProcessor(coordinator=coordinator).config is config
