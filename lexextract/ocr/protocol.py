"""Message envelope exchanged between the coordinator and the OCR worker.

Every message carries a correlation ``id``. Requests travel as
``PROCESS_IMAGE``/``PROCESS_PDF_PAGE``; the worker answers each one with zero
or more ``OCR_PROGRESS`` messages followed by exactly one ``OCR_RESULT`` or
``OCR_ERROR``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict


class MessageType(str, Enum):
    PROCESS_IMAGE = "PROCESS_IMAGE"
    PROCESS_PDF_PAGE = "PROCESS_PDF_PAGE"
    OCR_RESULT = "OCR_RESULT"
    OCR_ERROR = "OCR_ERROR"
    OCR_PROGRESS = "OCR_PROGRESS"

    @property
    def is_request(self) -> bool:
        return self in (MessageType.PROCESS_IMAGE, MessageType.PROCESS_PDF_PAGE)

    @property
    def is_terminal(self) -> bool:
        return self in (MessageType.OCR_RESULT, MessageType.OCR_ERROR)


@dataclass(frozen=True)
class WorkerMessage:
    type: MessageType
    id: str
    data: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        """Plain-dict wire form, safe to send through a multiprocessing queue."""
        return {"type": self.type.value, "data": dict(self.data), "id": self.id}

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> "WorkerMessage":
        """Parse the wire form.

        Raises:
            ValueError: If the envelope is malformed or the type is unknown
        """
        try:
            message_type = MessageType(raw["type"])
            message_id = raw["id"]
        except (KeyError, TypeError) as e:
            raise ValueError(f"Malformed worker message: {raw!r}") from e
        if not isinstance(message_id, str) or not message_id:
            raise ValueError(f"Worker message has no correlation id: {raw!r}")
        data = raw.get("data") or {}
        return cls(type=message_type, id=message_id, data=dict(data))


def progress_message(message_id: str, progress: float) -> WorkerMessage:
    return WorkerMessage(MessageType.OCR_PROGRESS, message_id, {"progress": progress})


def result_message(message_id: str, text: str, confidence: float) -> WorkerMessage:
    return WorkerMessage(
        MessageType.OCR_RESULT, message_id, {"text": text, "confidence": confidence}
    )


def error_message(message_id: str, error: str) -> WorkerMessage:
    return WorkerMessage(MessageType.OCR_ERROR, message_id, {"error": error})
