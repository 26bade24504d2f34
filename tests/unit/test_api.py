"""
Unit tests for the HTTP surface.

The app is used without its lifespan, so no database or LLM is contacted;
the service and config dependencies are overridden.
"""

import json

import pytest
from fastapi.testclient import TestClient

from querybuilder.api.dependencies import get_query_builder_config, get_query_builder_service
from querybuilder.config import QueryBuilderConfig
from querybuilder.domain.base_enums import EventKind
from querybuilder.domain.errors import NoMatchingTablesError
from querybuilder.main import app


class FakeService:

    def __init__(self, error=None):
        self.error = error
        self.prompts = []

    async def run(self, prompt, emit):
        self.prompts.append(prompt)
        emit(EventKind.STATUS, {"message": "Starting query generation...", "step": 1})
        if self.error is not None:
            raise self.error
        emit(EventKind.SQL_CHUNK, {"chunk": "SELECT 1"})
        emit(EventKind.COMPLETE, {"query": "SELECT 1", "data": [{"id": 1}], "message": "Query executed successfully"})


def sse_events(body):
    events = []
    for frame in body.strip().split("\n\n"):
        event_line, data_line = frame.split("\n")
        events.append((event_line[len("event: "):], json.loads(data_line[len("data: "):])))
    return events


@pytest.fixture
def service():
    return FakeService()


@pytest.fixture
def client(service):
    app.dependency_overrides[get_query_builder_service] = lambda: service
    app.dependency_overrides[get_query_builder_config] = lambda: QueryBuilderConfig(max_prompt_length=2000)
    yield TestClient(app)
    app.dependency_overrides.clear()


def test_root(client):
    response = client.get("/")
    assert response.status_code == 200
    assert response.text == "Hello, World!"


def test_health_without_clients(client):
    response = client.get("/health")
    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "degraded"
    assert body["database_status"] == "not_configured"


def test_trace_id_echoed(client):
    response = client.get("/", headers={"X-Trace-ID": "trace-abc"})
    assert response.headers["X-Trace-ID"] == "trace-abc"


class TestTableBuilder:

    @pytest.mark.parametrize("body", [{}, {"prompt": ""}, {"prompt": "   "}, {"prompt": 42}])
    def test_missing_prompt_is_400(self, client, service, body):
        response = client.post("/api/table-builder", json=body)

        assert response.status_code == 400
        assert response.json()["message"] == "Prompt parameter is required"
        assert service.prompts == []

    def test_prompt_too_long_is_413(self, client, service):
        response = client.post("/api/table-builder", json={"prompt": "x" * 2001})

        assert response.status_code == 413
        assert response.json()["message"] == "Prompt is too long"
        assert service.prompts == []

    def test_prompt_at_limit_is_accepted(self, client):
        response = client.post("/api/table-builder", json={"prompt": "x" * 2000})
        assert response.status_code == 200

    def test_streams_events(self, client, service):
        response = client.post("/api/table-builder", json={"prompt": "list orders"})

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/event-stream")
        assert response.headers["cache-control"] == "no-cache"
        assert response.headers["x-accel-buffering"] == "no"
        assert [kind for kind, _ in sse_events(response.text)] == ["status", "sql-chunk", "complete"]
        assert service.prompts == ["list orders"]

    def test_pipeline_failure_ends_with_single_error(self, client, service):
        service.error = NoMatchingTablesError.for_prompt("weather")

        response = client.post("/api/table-builder", json={"prompt": "weather"})

        assert response.status_code == 200
        events = sse_events(response.text)
        assert [kind for kind, _ in events] == ["status", "error"]
        assert events[-1][1] == {"message": 'No matching tables found for prompt: "weather"'}


class DisconnectedClient:

    def is_connected(self):
        return False


class TestServiceUnavailable:

    @pytest.fixture
    def disconnected_client(self):
        app.state.db_client = DisconnectedClient()
        app.state.llm_client = DisconnectedClient()
        app.dependency_overrides[get_query_builder_config] = lambda: QueryBuilderConfig()
        yield TestClient(app)
        app.dependency_overrides.clear()
        del app.state.db_client
        del app.state.llm_client

    def test_clients_that_failed_to_connect_give_503(self, disconnected_client):
        response = disconnected_client.post("/api/table-builder", json={"prompt": "list orders"})

        assert response.status_code == 503
        body = response.json()
        assert body["error"] == "service_unavailable"
        assert body["message"] == "Database client not initialized"
