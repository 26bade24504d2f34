"""
Domain package for the Query Builder.

Errors, enums, progress events, pipeline state and API models shared by
every layer.
"""

from .base_enums import EventKind, PipelineStage, QueryStatus, StatusStep
from .events import EventSink, ProgressEvent
from .pipeline import PipelineState
from .requests import TableBuilderRequest
from .responses import ErrorResponse, HealthResponse
from .schema_nodes import ColumnDefinition

__all__ = [
    # Enums
    "EventKind",
    "PipelineStage",
    "QueryStatus",
    "StatusStep",

    # Events
    "EventSink",
    "ProgressEvent",

    # Pipeline
    "PipelineState",

    # Schema
    "ColumnDefinition",

    # API models
    "TableBuilderRequest",
    "ErrorResponse",
    "HealthResponse",
]
