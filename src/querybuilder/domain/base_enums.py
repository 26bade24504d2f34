from enum import Enum


class EventKind(str, Enum):
    """Kinds of progress events emitted by one pipeline run."""
    STATUS = "status"
    SQL_CHUNK = "sql-chunk"
    COMPLETE = "complete"
    ERROR = "error"


class StatusStep(int, Enum):
    """Step numbers carried by `status` events, with their messages below."""
    STARTING = 1
    GENERATING = 2
    EXECUTING = 3
    DONE = 4


STATUS_MESSAGES = {
    StatusStep.STARTING: "Starting query generation...",
    StatusStep.GENERATING: "Generating SQL query...",
    StatusStep.EXECUTING: "Executing query...",
    StatusStep.DONE: "Query execution completed",
}


class PipelineStage(str, Enum):
    """Linear states of one run; ERRORED is reachable from any non-terminal stage."""
    START = "start"
    VALIDATING = "validating"
    LOCATING_SCHEMA = "locating_schema"
    COMPILING = "compiling"
    STREAMING = "streaming"
    SANITIZING = "sanitizing"
    EXECUTING = "executing"
    COMPLETED = "completed"
    ERRORED = "errored"


class QueryStatus(str, Enum):
    COMPLETED = "completed"
    FAILED = "failed"
