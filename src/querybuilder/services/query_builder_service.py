"""
Query Builder Service - orchestrator for prompt to streamed query results.

This service is a THIN ORCHESTRATOR that coordinates repositories:
1. SchemaLocator - Relevant tables and schema description
2. SQLPromptBuilder - System and user prompts
3. LLMClient - Streamed SQL generation (retries live there only)
4. SQLValidationRepository - Cleaning and read-only policy
5. SQLExecutionRepository - Execution

Event sequence for one successful run:
    status(1) -> status(2) -> sql-chunk* -> status(3) -> complete -> status(4)

Any failure aborts the remaining steps and propagates to the caller; the
service itself never emits `error`.
"""

from typing import Any

from ..domain.base_enums import EventKind, PipelineStage, QueryStatus, StatusStep
from ..domain.errors import EmptyResultError, MissingPromptError
from ..domain.events import (
    EventSink,
    chunk_payload,
    complete_payload,
    status_payload,
)
from ..domain.pipeline import PipelineState
from ..infrastructure.llm_client import LLMClient
from ..repositories.schema_locator import SchemaLocator
from ..repositories.sql_execution import SQLExecutionRepository
from ..repositories.sql_prompt import SQLPromptBuilder
from ..repositories.sql_validation import SQLValidationRepository
from ..utils.logging import get_module_logger
from ..utils.tracing import current_trace_id

logger = get_module_logger()


class QueryBuilderService:
    """
    Main orchestrator for the query builder pipeline.

    Each `run` call builds its own PipelineState, so concurrent runs share
    nothing but the injected clients.
    """

    def __init__(
        self,
        schema_locator: SchemaLocator,
        prompt_builder: SQLPromptBuilder,
        llm_client: LLMClient,
        sql_validation_repository: SQLValidationRepository,
        sql_execution_repository: SQLExecutionRepository,
    ):
        self.schema_locator = schema_locator
        self.prompt_builder = prompt_builder
        self.llm_client = llm_client
        self.validation_repo = sql_validation_repository
        self.execution_repo = sql_execution_repository

        logger.info("QueryBuilderService initialized")

    async def run(self, prompt: Any, emit: EventSink) -> PipelineState:
        """
        Execute the full pipeline for one prompt.

        Args:
            prompt: Natural-language request
            emit: Synchronous callback receiving (event kind, payload)

        Returns:
            The final PipelineState (stage COMPLETED)

        Raises:
            MissingPromptError: If the prompt is empty or blank; nothing is emitted
            QueryBuilderException subclass from whichever step failed
        """
        if not isinstance(prompt, str) or not prompt.strip():
            raise MissingPromptError()

        trace_id = current_trace_id()
        state = PipelineState(prompt=prompt)
        state.advance(PipelineStage.VALIDATING)

        logger.info("Starting query builder pipeline", prompt_length=len(prompt), trace_id=trace_id)

        try:
            emit(EventKind.STATUS, status_payload(StatusStep.STARTING))

            await self._step_locate_schema(state)
            self._step_compile(state)

            emit(EventKind.STATUS, status_payload(StatusStep.GENERATING))
            await self._step_stream(state, emit)

            self._step_sanitize(state)

            emit(EventKind.STATUS, status_payload(StatusStep.EXECUTING))
            await self._step_execute(state)

            emit(EventKind.COMPLETE, complete_payload(state.validated_sql, state.rows))
            emit(EventKind.STATUS, status_payload(StatusStep.DONE))

        except Exception as e:
            state.fail()
            logger.error(
                "Query builder pipeline failed",
                status=QueryStatus.FAILED.value,
                error=str(e),
                error_type=type(e).__name__,
                error_stage=state.error_stage.value if state.error_stage else None,
                trace_id=trace_id,
            )
            raise

        state.advance(PipelineStage.COMPLETED)
        logger.info(
            "Query builder pipeline completed",
            status=QueryStatus.COMPLETED.value,
            table_count=len(state.relevant_tables),
            fragment_count=len(state.fragments),
            row_count=len(state.rows or []),
            trace_id=trace_id,
        )
        return state

    # =========================================================================
    # Pipeline Steps (thin - delegate to repositories)
    # =========================================================================

    async def _step_locate_schema(self, state: PipelineState) -> None:
        state.advance(PipelineStage.LOCATING_SCHEMA)

        state.relevant_tables = await self.schema_locator.find_relevant_tables(state.prompt)
        state.schema_description = await self.schema_locator.describe_schema(
            state.relevant_tables, state.prompt
        )

    def _step_compile(self, state: PipelineState) -> None:
        state.advance(PipelineStage.COMPILING)

        state.system_prompt = self.prompt_builder.build_system_prompt(state.schema_description)
        state.user_prompt = self.prompt_builder.build_user_prompt(state.prompt)

    async def _step_stream(self, state: PipelineState, emit: EventSink) -> None:
        """Forward each fragment as its own sql-chunk event, never the running total."""
        state.advance(PipelineStage.STREAMING)

        async for fragment in self.llm_client.stream_completion(
            state.system_prompt, state.user_prompt
        ):
            state.fragments.append(fragment)
            emit(EventKind.SQL_CHUNK, chunk_payload(fragment))

        logger.debug(
            "SQL generation streamed",
            fragment_count=len(state.fragments),
            sql_length=len(state.generated_sql),
            trace_id=current_trace_id(),
        )

    def _step_sanitize(self, state: PipelineState) -> None:
        state.advance(PipelineStage.SANITIZING)

        cleaned = self.validation_repo.clean(state.generated_sql)
        state.validated_sql = self.validation_repo.validate(cleaned)

    async def _step_execute(self, state: PipelineState) -> None:
        state.advance(PipelineStage.EXECUTING)

        rows = await self.execution_repo.execute(state.validated_sql)
        if rows is None:
            raise EmptyResultError()
        state.rows = rows
