"""
Progress events for the staged event protocol.

One pipeline run emits, in order:
    status(1) -> status(2) -> sql-chunk* -> status(3) -> complete -> status(4)
and stops at the first failure. The HTTP layer adds the single `error`
event when a run fails.

Payload shapes:
    status:    {"message": str, "step": 1|2|3|4}
    sql-chunk: {"chunk": str}
    complete:  {"query": str, "data": [rows], "message": str}
    error:     {"message": str}
"""

import base64
import json
from dataclasses import dataclass
from typing import Any, Callable, Dict, List

from fastapi.encoders import jsonable_encoder

from .base_enums import STATUS_MESSAGES, EventKind, StatusStep

COMPLETE_MESSAGE = "Query executed successfully"

ROW_VALUE_ENCODERS: Dict[Any, Callable[[Any], Any]] = {
    bytes: lambda value: base64.b64encode(value).decode("ascii"),
}

# Synchronous callback injected into the orchestrator
EventSink = Callable[[EventKind, Dict[str, Any]], None]


@dataclass(frozen=True)
class ProgressEvent:
    """A single write-once event: its kind plus payload."""

    event: EventKind
    data: Dict[str, Any]

    def to_sse(self) -> str:
        """
        Render as a Server-Sent Events frame.

        Row values such as datetime, Decimal or UUID are converted with
        FastAPI's jsonable_encoder before serialising; bytea values (bytes)
        are sent base64-encoded.
        """
        encoded = jsonable_encoder(self.data, custom_encoder=ROW_VALUE_ENCODERS)
        payload = json.dumps(encoded, ensure_ascii=False)
        return f"event: {self.event.value}\ndata: {payload}\n\n"


def status_payload(step: StatusStep) -> Dict[str, Any]:
    return {"message": STATUS_MESSAGES[step], "step": step.value}


def chunk_payload(chunk: str) -> Dict[str, Any]:
    return {"chunk": chunk}


def complete_payload(query: str, rows: List[Dict[str, Any]]) -> Dict[str, Any]:
    return {"query": query, "data": rows, "message": COMPLETE_MESSAGE}


def error_payload(message: str) -> Dict[str, Any]:
    return {"message": message}
