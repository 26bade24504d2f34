"""
SQL Execution Repository.

Final step of the pipeline: runs the validated SQL against the database.

Safety Features:
- Read-only enforcement: every query runs inside a READ ONLY transaction
- Timeout protection: configurable query timeout
- The SQL text is passed to the driver exactly as validated

Usage:
    repo = SQLExecutionRepository(db_client, timeout_seconds=30)
    rows = await repo.execute("SELECT * FROM orders LIMIT 30")

Error Handling:
- Database failures are wrapped as ExecutionError with the SQL in details
"""

import time
from typing import Any, Dict, List, Optional

from ..domain.errors import DatabaseError, ExecutionError
from ..infrastructure.database_client import DatabaseClient
from ..utils.logging import get_module_logger
from ..utils.tracing import current_trace_id

logger = get_module_logger()


class SQLExecutionRepository:
    """
    Repository for SQL execution.

    Executes validated SQL with read-only enforcement.
    """

    def __init__(self, db_client: DatabaseClient, timeout_seconds: Optional[int] = None):
        self.db_client = db_client
        self.timeout_seconds = timeout_seconds

    async def execute(self, sql: str) -> List[Dict[str, Any]]:
        """
        Execute a validated SQL query.

        Args:
            sql: Validated SQL string

        Returns:
            Rows as dictionaries, possibly empty

        Raises:
            ExecutionError: If the database rejects or fails the query
        """
        trace_id = current_trace_id()

        logger.info(
            "Executing SQL query",
            sql_length=len(sql),
            timeout=self.timeout_seconds,
            trace_id=trace_id,
        )

        start = time.perf_counter()

        try:
            rows = await self.db_client.execute_query(
                query=sql,
                timeout=self.timeout_seconds,
                read_only=True,
            )
        except DatabaseError as e:
            logger.error(
                "SQL execution failed",
                error=e.message,
                error_type=type(e).__name__,
                trace_id=trace_id,
            )
            raise ExecutionError(
                f"Query execution failed: {e.message}",
                details={"sql": sql[:500]},
            ) from e

        execution_time_ms = (time.perf_counter() - start) * 1000

        logger.info(
            "SQL execution successful",
            row_count=len(rows) if rows is not None else None,
            execution_time_ms=round(execution_time_ms, 2),
            trace_id=trace_id,
        )

        return rows
