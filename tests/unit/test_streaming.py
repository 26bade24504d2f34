"""Unit tests for ProgressEvent rendering and the SSE bridge."""

import json
from datetime import date
from decimal import Decimal

import pytest

from querybuilder.api.streaming import GENERIC_ERROR_MESSAGE, stream_pipeline_events
from querybuilder.domain.base_enums import EventKind, StatusStep
from querybuilder.domain.errors import CompletionExhaustedError
from querybuilder.domain.events import ProgressEvent, status_payload


def parse_frames(frames):
    parsed = []
    for frame in frames:
        event_line, data_line = frame.strip().split("\n")
        parsed.append((event_line.removeprefix("event: "), json.loads(data_line.removeprefix("data: "))))
    return parsed


class ScriptedService:
    """Emits the given events, then optionally raises."""

    def __init__(self, events, error=None):
        self.events = events
        self.error = error

    async def run(self, prompt, emit):
        for kind, data in self.events:
            emit(kind, data)
        if self.error is not None:
            raise self.error


class TestProgressEvent:

    def test_to_sse(self):
        event = ProgressEvent(event=EventKind.STATUS, data=status_payload(StatusStep.STARTING))
        assert event.to_sse() == (
            'event: status\ndata: {"message": "Starting query generation...", "step": 1}\n\n'
        )

    def test_bytes_are_base64_encoded(self):
        event = ProgressEvent(event=EventKind.COMPLETE, data={"data": [{"blob": b"\xff"}]})
        (_, data), = parse_frames([event.to_sse()])
        assert data == {"data": [{"blob": "/w=="}]}

    def test_row_values_are_json_encoded(self):
        event = ProgressEvent(
            event=EventKind.COMPLETE,
            data={"query": "SELECT 1", "data": [{"day": date(2023, 1, 2), "total": Decimal("9.50")}]},
        )
        (_, data), = parse_frames([event.to_sse()])
        assert data["data"] == [{"day": "2023-01-02", "total": 9.5}]


class TestStreamPipelineEvents:

    @pytest.mark.asyncio
    async def test_forwards_events_in_order(self):
        service = ScriptedService([
            (EventKind.STATUS, {"message": "a", "step": 1}),
            (EventKind.SQL_CHUNK, {"chunk": "SELECT 1"}),
            (EventKind.COMPLETE, {"query": "SELECT 1", "data": [], "message": "done"}),
        ])

        frames = [frame async for frame in stream_pipeline_events(service, "p")]

        assert [kind for kind, _ in parse_frames(frames)] == ["status", "sql-chunk", "complete"]

    @pytest.mark.asyncio
    async def test_failure_yields_exactly_one_error(self):
        service = ScriptedService(
            [(EventKind.STATUS, {"message": "a", "step": 1})],
            error=CompletionExhaustedError("Streaming failed after 3 attempts: reset"),
        )

        events = parse_frames([frame async for frame in stream_pipeline_events(service, "p")])

        assert events == [
            ("status", {"message": "a", "step": 1}),
            ("error", {"message": "Streaming failed after 3 attempts: reset"}),
        ]

    @pytest.mark.asyncio
    async def test_unexpected_error_message_is_generic(self):
        service = ScriptedService([], error=RuntimeError("secret internals"))

        events = parse_frames([frame async for frame in stream_pipeline_events(service, "p")])

        assert events == [("error", {"message": GENERIC_ERROR_MESSAGE})]

    @pytest.mark.asyncio
    async def test_bytea_values_are_base64_encoded(self):
        service = ScriptedService([
            (EventKind.STATUS, {"message": "a", "step": 1}),
            (EventKind.COMPLETE, {"query": "SELECT data FROM blobs", "data": [{"data": b"\xff\xfe"}], "message": "done"}),
        ])

        events = parse_frames([frame async for frame in stream_pipeline_events(service, "p")])

        assert events[-1] == (
            "complete",
            {"query": "SELECT data FROM blobs", "data": [{"data": "//4="}], "message": "done"},
        )

    @pytest.mark.asyncio
    async def test_unserialisable_row_ends_with_single_error(self):
        service = ScriptedService([
            (EventKind.STATUS, {"message": "a", "step": 1}),
            (EventKind.COMPLETE, {"query": "SELECT 1", "data": [{"value": object()}], "message": "done"}),
            (EventKind.STATUS, {"message": "b", "step": 4}),
        ])

        events = parse_frames([frame async for frame in stream_pipeline_events(service, "p")])

        assert events == [
            ("status", {"message": "a", "step": 1}),
            ("error", {"message": GENERIC_ERROR_MESSAGE}),
        ]
