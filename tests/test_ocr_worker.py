"""Tests for the worker message protocol and the worker loop."""

import queue
from typing import Any, Dict, List

import pytest

from conftest import EchoEngine
from lexextract.config import Config
from lexextract.exceptions import WorkerFailure
from lexextract.ocr.engine import words_to_text
from lexextract.ocr.protocol import MessageType, WorkerMessage
from lexextract.ocr.worker import (
    ProcessWorker,
    ThreadWorker,
    create_worker,
    handle_request,
    run_worker_loop,
)


def _request(message_id: str, image: bytes, message_type: str = "PROCESS_IMAGE"):
    return {
        "type": message_type,
        "id": message_id,
        "data": {"image": image, "options": {"language": "eng", "confidence": 0.0}},
    }


class TestWorkerMessage:
    def test_round_trip(self):
        message = WorkerMessage(MessageType.OCR_RESULT, "ocr-1", {"text": "hi"})
        assert WorkerMessage.from_dict(message.to_dict()) == message

    def test_wire_form(self):
        assert WorkerMessage(MessageType.OCR_PROGRESS, "ocr-7", {"progress": 0.5}).to_dict() == {
            "type": "OCR_PROGRESS",
            "data": {"progress": 0.5},
            "id": "ocr-7",
        }

    @pytest.mark.parametrize(
        "raw",
        [
            {"id": "ocr-1"},
            {"type": "SOMETHING_ELSE", "id": "ocr-1"},
            {"type": "OCR_RESULT", "id": ""},
            {"type": "OCR_RESULT"},
        ],
    )
    def test_malformed_envelopes(self, raw):
        with pytest.raises(ValueError):
            WorkerMessage.from_dict(raw)

    def test_type_flags(self):
        assert MessageType.PROCESS_PDF_PAGE.is_request
        assert not MessageType.OCR_PROGRESS.is_request
        assert MessageType.OCR_ERROR.is_terminal
        assert not MessageType.OCR_PROGRESS.is_terminal


class TestHandleRequest:
    def test_progress_then_result(self, engine: EchoEngine):
        sent: List[Dict[str, Any]] = []
        handle_request(_request("ocr-1", b"hello"), sent.append, engine)

        types = [m["type"] for m in sent]
        assert types == ["OCR_PROGRESS"] * 3 + ["OCR_RESULT"]
        assert all(m["id"] == "ocr-1" for m in sent)
        assert [m["data"]["progress"] for m in sent[:3]] == [0.0, 0.5, 1.0]
        assert sent[-1]["data"] == {"text": "text for hello", "confidence": 87.0}

    def test_engine_failure_becomes_error(self, engine: EchoEngine):
        sent: List[Dict[str, Any]] = []
        handle_request(_request("ocr-2", b"fail:unreadable"), sent.append, engine)
        assert sent[-1] == {
            "type": "OCR_ERROR",
            "data": {"error": "unreadable"},
            "id": "ocr-2",
        }

    def test_missing_image(self, engine: EchoEngine):
        sent: List[Dict[str, Any]] = []
        handle_request(_request("ocr-3", b""), sent.append, engine)
        assert sent == [
            {"type": "OCR_ERROR", "data": {"error": "No image data provided"}, "id": "ocr-3"}
        ]

    def test_missing_canvas(self, engine: EchoEngine):
        sent: List[Dict[str, Any]] = []
        handle_request(_request("ocr-4", b"", "PROCESS_PDF_PAGE"), sent.append, engine)
        assert sent[0]["data"]["error"] == "No canvas data provided"

    def test_response_type_sent_as_request(self, engine: EchoEngine):
        sent: List[Dict[str, Any]] = []
        handle_request({"type": "OCR_RESULT", "id": "ocr-5", "data": {}}, sent.append, engine)
        assert sent[0]["type"] == "OCR_ERROR"
        assert "Unknown message type" in sent[0]["data"]["error"]
        assert engine.calls == []

    def test_unknown_type_with_id_is_answered(self, engine: EchoEngine):
        sent: List[Dict[str, Any]] = []
        handle_request({"type": "PING", "id": "ocr-6"}, sent.append, engine)
        assert sent[0]["type"] == "OCR_ERROR"
        assert sent[0]["id"] == "ocr-6"

    def test_request_without_id_is_dropped(self, engine: EchoEngine):
        sent: List[Dict[str, Any]] = []
        handle_request({"type": "PROCESS_IMAGE", "data": {}}, sent.append, engine)
        assert sent == []


def test_run_worker_loop_stops_on_sentinel(engine: EchoEngine):
    inbox: "queue.Queue" = queue.Queue()
    inbox.put(_request("ocr-1", b"a"))
    inbox.put(_request("ocr-2", b"b"))
    inbox.put(None)
    sent: List[Dict[str, Any]] = []

    run_worker_loop(inbox.get, sent.append, engine)

    results = [m for m in sent if m["type"] == "OCR_RESULT"]
    assert [m["id"] for m in results] == ["ocr-1", "ocr-2"]


def test_thread_worker_post_requires_start(engine: EchoEngine):
    with pytest.raises(WorkerFailure):
        ThreadWorker(engine).post(_request("ocr-1", b"a"))


def test_thread_worker_round_trip(engine: EchoEngine):
    received: "queue.Queue" = queue.Queue()
    worker = ThreadWorker(engine)
    worker.start(received.put, lambda exc: received.put(exc))
    try:
        worker.post(_request("ocr-1", b"ping"))
        messages = [received.get(timeout=5) for _ in range(4)]
    finally:
        worker.terminate()

    assert messages[-1]["type"] == "OCR_RESULT"
    assert messages[-1]["data"]["text"] == "text for ping"


def test_create_worker_respects_mode():
    assert isinstance(create_worker(Config(worker_mode="thread")), ThreadWorker)
    assert isinstance(create_worker(Config(worker_mode="process")), ProcessWorker)


def test_words_to_text_rebuilds_lines_and_paragraphs():
    data = {
        "text": ["", "Hello", "world", "Second", "line", "New", "para", "noise"],
        "conf": [-1, 90, 80, 70, 60, 95, 85, 10],
        "block_num": [1, 1, 1, 1, 1, 1, 1, 1],
        "par_num": [1, 1, 1, 1, 1, 2, 2, 2],
        "line_num": [1, 1, 1, 2, 2, 1, 1, 1],
    }
    text, confidence = words_to_text(data, confidence_floor=0.5)
    assert text == "Hello world\nSecond line\n\nNew para"
    assert confidence == pytest.approx((90 + 80 + 70 + 60 + 95 + 85) / 6)


def test_words_to_text_empty():
    assert words_to_text({"text": [], "conf": []}) == ("", 0.0)


def test_thread_worker_terminate_joins_thread(engine: EchoEngine):
    worker = ThreadWorker(engine)
    worker.start(lambda raw: None, lambda exc: None)
    thread = worker._thread

    worker.terminate()

    assert not thread.is_alive()
    worker.terminate()
