"""
FastAPI dependencies for dependency injection.

This module provides reusable dependencies that can be injected into
API route handlers following the layered architecture:
- QueryBuilderService for the streaming pipeline
- Settings / QueryBuilderConfig for configuration
- Optional client dependencies for health checks only

Routes should depend on services, not infrastructure clients directly.
"""

from typing import Annotated

from fastapi import Depends, Request

from ..config import QueryBuilderConfig, Settings
from ..domain.errors import ServiceUnavailableError
from ..infrastructure.database_client import DatabaseClient
from ..infrastructure.llm_client import LLMClient
from ..repositories.schema_locator import SchemaLocator
from ..repositories.sql_execution import SQLExecutionRepository
from ..repositories.sql_prompt import SQLPromptBuilder
from ..repositories.sql_validation import SQLValidationRepository
from ..services.query_builder_service import QueryBuilderService


def get_settings(request: Request) -> Settings:
    """
    Dependency to get the settings from app state.

    Raises:
        ServiceUnavailableError: If settings are not initialized
    """
    if not hasattr(request.app.state, "settings"):
        raise ServiceUnavailableError("Settings not initialized")

    return request.app.state.settings


def get_query_builder_config(settings: Annotated[Settings, Depends(get_settings)]) -> QueryBuilderConfig:
    return settings.query_builder


# Optional dependency getters for health checks
def get_db_client_optional(request: Request) -> DatabaseClient | None:
    """Get database client if available, None otherwise."""
    return getattr(request.app.state, "db_client", None)


def get_llm_client_optional(request: Request) -> LLMClient | None:
    """Get LLM client if available, None otherwise."""
    return getattr(request.app.state, "llm_client", None)


def get_query_builder_service(request: Request) -> QueryBuilderService:
    """
    Dependency to get a QueryBuilderService instance.

    Builds the full repository tree per request on top of the shared clients:
    QueryBuilderService (orchestrator)
      ├── SchemaLocator (table matching, schema text)
      ├── SQLPromptBuilder (system/user prompts)
      ├── LLMClient (streamed generation)
      ├── SQLValidationRepository (cleaning, read-only policy)
      └── SQLExecutionRepository (read-only execution)

    Usage in routes:
        @app.post("/api/table-builder")
        async def table_builder(service: QueryBuilderServiceDep):
            ...

    Raises:
        ServiceUnavailableError: If required clients are missing or failed to connect
    """
    db_client = getattr(request.app.state, "db_client", None)
    if db_client is None or not db_client.is_connected():
        raise ServiceUnavailableError("Database client not initialized")
    llm_client = getattr(request.app.state, "llm_client", None)
    if llm_client is None or not llm_client.is_connected():
        raise ServiceUnavailableError("LLM client not initialized")
    if not hasattr(request.app.state, "settings"):
        raise ServiceUnavailableError("Settings not initialized")

    settings = request.app.state.settings

    return QueryBuilderService(
        schema_locator=SchemaLocator(db_client, schema=settings.database.default_schema),
        prompt_builder=SQLPromptBuilder(
            dialect=settings.query_builder.dialect,
            row_limit=settings.query_builder.default_row_limit,
        ),
        llm_client=llm_client,
        sql_validation_repository=SQLValidationRepository(),
        sql_execution_repository=SQLExecutionRepository(
            db_client,
            timeout_seconds=settings.query_builder.query_timeout_seconds,
        ),
    )


# Type aliases for cleaner dependency injection
QueryBuilderServiceDep = Annotated[QueryBuilderService, Depends(get_query_builder_service)]
QueryBuilderConfigDep = Annotated[QueryBuilderConfig, Depends(get_query_builder_config)]

# Optional client dependencies (used in health checks)
OptionalDatabaseClientDep = Annotated[DatabaseClient | None, Depends(get_db_client_optional)]
OptionalLLMClientDep = Annotated[LLMClient | None, Depends(get_llm_client_optional)]
