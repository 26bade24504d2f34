import pytest
from querybuilder.utils.logging import configure_logging, get_logger, get_module_logger
from querybuilder.utils.tracing import (
    current_trace_id,
    generate_trace_id,
    get_trace_id,
    set_trace_id,
    trace_context,
)


def test_logger_configuration():
    configure_logging("INFO")
    logger = get_logger("test")
    assert logger is not None


def test_module_logger():
    assert get_module_logger() is not None


def test_trace_id_generation():
    trace_id = generate_trace_id()
    assert len(trace_id) == 36  # UUID format
    assert '-' in trace_id


def test_trace_id_context():
    test_id = "test-trace-123"
    set_trace_id(test_id)
    assert current_trace_id() == test_id
    assert get_trace_id() == test_id


def test_trace_context_restores_previous_id():
    set_trace_id("outer")
    with trace_context("inner") as trace_id:
        assert trace_id == "inner"
        assert current_trace_id() == "inner"
    assert current_trace_id() == "outer"


def test_trace_context_generates_id():
    with trace_context() as trace_id:
        assert len(trace_id) == 36
