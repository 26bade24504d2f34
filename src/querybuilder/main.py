"""
Main FastAPI application for the Query Builder.

This module sets up the FastAPI application with logging, tracing and
error handling middleware, and the streaming table-builder endpoint.
"""

from contextlib import asynccontextmanager
from datetime import datetime, timezone

from fastapi import FastAPI, Body
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import PlainTextResponse, StreamingResponse

from .utils.logging import configure_logging, get_module_logger
from .utils.tracing import get_trace_id
from .domain.errors import MissingPromptError, PromptTooLongError
from .domain.requests import TableBuilderRequest
from .domain.responses import HealthResponse
from .api.middleware import (
    trace_id_middleware,
    logging_middleware,
    register_exception_handlers,
    ERROR_RESPONSES,
)
from .api.dependencies import (
    QueryBuilderConfigDep,
    QueryBuilderServiceDep,
    OptionalDatabaseClientDep,
    OptionalLLMClientDep,
)
from .api.streaming import SSE_HEADERS, stream_pipeline_events
from .config import get_settings
from .infrastructure.database_client import DatabaseClient
from .infrastructure.llm_client import LLMClient

APP_VERSION = "0.1.0"

# Configure logging on module import
configure_logging()
logger = get_module_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events."""
    logger.info("Starting Query Builder API server", version=APP_VERSION)

    settings = get_settings()
    app.state.settings = settings
    logger.info("Settings loaded successfully")

    db_client = DatabaseClient(settings.database)
    try:
        await db_client.connect()
        logger.info("Database client connected successfully")
    except Exception as e:
        # Continue without database - health check will report status
        logger.error(f"Failed to connect database client: {e}")

    llm_client = LLMClient(settings.llm)
    try:
        await llm_client.connect()
        logger.info("LLM client connected successfully")
    except Exception as e:
        logger.error(f"Failed to connect LLM client: {e}")

    app.state.db_client = db_client
    app.state.llm_client = llm_client

    yield

    logger.info("Shutting down Query Builder API server")

    if hasattr(app.state, "db_client"):
        await app.state.db_client.close()
        logger.info("Database client closed")

    if hasattr(app.state, "llm_client"):
        await app.state.llm_client.close()
        logger.info("LLM client closed")


app = FastAPI(
    title="Query Builder API",
    description="Natural language to read-only SQL, executed and streamed as Server-Sent Events",
    version=APP_VERSION,
    lifespan=lifespan
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Last registered = first executed
app.middleware("http")(logging_middleware)
app.middleware("http")(trace_id_middleware)

register_exception_handlers(app)


# API Routes
@app.get("/", tags=["Root"], response_class=PlainTextResponse)
async def root() -> str:
    return "Hello, World!"


@app.get("/health", response_model=HealthResponse, tags=["Health"])
async def health(
    db_client: OptionalDatabaseClientDep,
    llm_client: OptionalLLMClientDep,
) -> HealthResponse:
    """
    Health check endpoint.

    **Response Model**: `HealthResponse`
    - status: Overall health (healthy/degraded)
    - database_status, llm_service_status
    """
    trace_id = get_trace_id()
    logger.info("Health check endpoint accessed", trace_id=trace_id)

    database_status = "not_configured"
    if db_client:
        db_health = await db_client.health_check()
        database_status = db_health.get("status", "unknown")

    llm_status = "not_configured"
    if llm_client:
        llm_status = "healthy" if llm_client.is_connected() else "unhealthy"

    overall_status = "healthy" if (
        database_status == "healthy" and llm_status == "healthy"
    ) else "degraded"

    return HealthResponse(
        status=overall_status,
        timestamp=datetime.now(timezone.utc),
        version=APP_VERSION,
        database_status=database_status,
        llm_service_status=llm_status,
    )


# -------------------------
# Table Builder Endpoint
# -------------------------

@app.post(
    "/api/table-builder",
    tags=["Query Builder"],
    response_class=StreamingResponse,
    responses={
        200: {"description": "Server-Sent Events stream", "content": {"text/event-stream": {}}},
        **{k: v for k, v in ERROR_RESPONSES.items() if k in [400, 413, 422, 503]},
    },
)
async def table_builder(
    query_builder_service: QueryBuilderServiceDep,
    config: QueryBuilderConfigDep,
    request: TableBuilderRequest = Body(default=TableBuilderRequest()),
) -> StreamingResponse:
    """
    Turn a natural-language prompt into a read-only SQL query, run it and
    stream progress as Server-Sent Events.

    **Request Model**: `TableBuilderRequest`
    - prompt: Natural language request (required, at most 2000 characters)

    **Events**, in order:
    - `status` {message, step: 1} - starting
    - `status` {message, step: 2} - generating
    - `sql-chunk` {chunk} - one per generated fragment
    - `status` {message, step: 3} - executing
    - `complete` {query, data, message}
    - `status` {message, step: 4} - done

    A failure after the stream opened ends it with a single `error` {message}.

    **Possible Errors** (before the stream opens):
    - 400: Prompt missing, not a string, or blank
    - 413: Prompt longer than the configured maximum
    - 503: Database or LLM client not initialized
    """
    trace_id = get_trace_id()
    prompt = request.prompt

    if not isinstance(prompt, str) or not prompt.strip():
        raise MissingPromptError()

    if len(prompt) > config.max_prompt_length:
        raise PromptTooLongError(
            details={"length": len(prompt), "max_length": config.max_prompt_length}
        )

    logger.info("Table builder requested", prompt_length=len(prompt), trace_id=trace_id)

    return StreamingResponse(
        stream_pipeline_events(query_builder_service, prompt),
        media_type="text/event-stream",
        headers=SSE_HEADERS,
    )


# Use scripts/serve.py for development or scripts/serve.py --prod for production
