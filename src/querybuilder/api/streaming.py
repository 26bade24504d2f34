"""
Server-Sent Events bridge for the table-builder endpoint.

The service reports progress through a synchronous `emit` callback; the
HTTP response is an async iterator of SSE frames. An asyncio.Queue sits in
between: the pipeline runs as its own task and pushes rendered SSE frames,
the response drains the queue in arrival order. Frames are rendered inside
`emit`, so a row that cannot be serialised fails the run like any other step.

When the pipeline fails, exactly one `error` event is written and the
stream ends. A client that disconnects does not cancel the in-flight run.
"""

import asyncio
from typing import AsyncIterator, Optional, Set

from ..domain.base_enums import EventKind
from ..domain.errors import QueryBuilderException
from ..domain.events import ProgressEvent, error_payload
from ..services.query_builder_service import QueryBuilderService
from ..utils.logging import get_module_logger
from ..utils.tracing import get_trace_id, trace_context

logger = get_module_logger()

SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}

GENERIC_ERROR_MESSAGE = "An internal server error occurred. Please try again later."

# Strong references to runs whose client went away before they finished
_background_runs: Set["asyncio.Task[None]"] = set()


async def stream_pipeline_events(service: QueryBuilderService, prompt: str) -> AsyncIterator[str]:
    """Run the pipeline for `prompt` and yield its events as SSE frames."""
    queue: "asyncio.Queue[Optional[str]]" = asyncio.Queue()
    trace_id = get_trace_id()

    def emit(kind: EventKind, data: dict) -> None:
        queue.put_nowait(ProgressEvent(event=kind, data=data).to_sse())

    async def run_pipeline() -> None:
        try:
            with trace_context(trace_id):
                await service.run(prompt, emit)
        except QueryBuilderException as e:
            logger.warning(
                "Streaming pipeline failed",
                error_code=e.error_code,
                error=e.message,
                trace_id=trace_id
            )
            emit(EventKind.ERROR, error_payload(e.message))
        except Exception as e:
            logger.error(
                "Unhandled error in streaming pipeline",
                error=str(e),
                error_type=type(e).__name__,
                trace_id=trace_id,
                exc_info=True
            )
            emit(EventKind.ERROR, error_payload(GENERIC_ERROR_MESSAGE))
        finally:
            queue.put_nowait(None)

    task = asyncio.create_task(run_pipeline())
    _background_runs.add(task)
    task.add_done_callback(_background_runs.discard)

    while True:
        frame = await queue.get()
        if frame is None:
            break
        yield frame

    logger.debug("Event stream closed", trace_id=trace_id)
