"""
Database client for PostgreSQL using asyncpg.

This module provides the async connection pool used for catalog lookups
and for running generated queries inside read-only transactions.
"""

from typing import Any, AsyncIterator, Dict, List, Optional
from contextlib import asynccontextmanager
import asyncpg

from ..config import DatabaseConfig
from ..utils.logging import get_module_logger
from ..utils.tracing import current_trace_id
from ..domain.errors import DatabaseConnectionError, DatabaseQueryError


logger = get_module_logger()


class DatabaseClient:
    """
    Low-level async PostgreSQL client using asyncpg.

    This is a thin infrastructure layer: it owns the pool and serialises
    access to it. Catalog queries and query execution live in repositories.

    Usage:
        client = DatabaseClient(config)
        await client.connect()

        rows = await client.execute_query(
            "SELECT table_name FROM information_schema.tables WHERE table_schema = $1",
            params=["public"],
        )

        await client.close()
    """

    def __init__(self, config: DatabaseConfig):
        """
        Initialize database client with configuration.

        Args:
            config: Database configuration
        """
        self.config = config
        self._pool: Optional[asyncpg.Pool] = None
        self._is_connected = False

        logger.info(
            "DatabaseClient initialized",
            default_schema=config.default_schema,
            connection_pool_size=config.connection_pool_max_size,
            query_timeout_seconds=config.query_timeout_seconds,
            read_only_default=config.enforce_read_only_default
        )

    async def connect(self) -> None:
        """
        Create the connection pool and verify it with a trivial query.

        Raises:
            DatabaseConnectionError: If connection fails
        """
        if self._is_connected:
            logger.warning("Database client already connected")
            return

        trace_id = current_trace_id()
        logger.info("Establishing database connection", trace_id=trace_id)

        try:
            self._pool = await asyncpg.create_pool(
                dsn=self.config.database_url,
                min_size=self.config.connection_pool_min_size,
                max_size=self.config.connection_pool_max_size,
                command_timeout=self.config.query_timeout_seconds,
                timeout=self.config.connection_timeout_seconds,
                max_queries=self.config.connection_pool_max_queries,
                max_cached_statement_lifetime=self.config.max_cached_statement_lifetime,
                max_cacheable_statement_size=self.config.max_cacheable_statement_size,
                server_settings={
                    'application_name': self.config.application_name,
                    'search_path': self.config.default_schema,
                    'jit': 'on' if self.config.jit_enabled else 'off'
                }
            )

            async with self._pool.acquire() as conn:
                if await conn.fetchval("SELECT 1") != 1:
                    raise DatabaseConnectionError("Connection test query returned an unexpected value")

            self._is_connected = True
            logger.info(
                "Database connection established successfully",
                pool_size=self.config.connection_pool_max_size,
                default_schema=self.config.default_schema,
                trace_id=trace_id
            )

        except asyncpg.InvalidCatalogNameError as e:
            error_msg = f"Database does not exist: {e}"
            logger.error(error_msg, trace_id=trace_id)
            raise DatabaseConnectionError(error_msg) from e

        except asyncpg.InvalidPasswordError as e:
            error_msg = f"Authentication failed: {e}"
            logger.error(error_msg, trace_id=trace_id)
            raise DatabaseConnectionError(error_msg) from e

        except DatabaseConnectionError:
            raise

        except Exception as e:
            error_msg = f"Failed to connect to database: {e}"
            logger.error(error_msg, error_type=type(e).__name__, trace_id=trace_id)
            raise DatabaseConnectionError(error_msg) from e

    async def close(self) -> None:
        """Close database connection pool."""
        trace_id = current_trace_id()

        if self._pool:
            await self._pool.close()
            logger.info("Connection pool closed", trace_id=trace_id)

        self._is_connected = False
        self._pool = None

    def is_connected(self) -> bool:
        """Check if database client is connected."""
        return self._is_connected and self._pool is not None

    async def health_check(self) -> Dict[str, Any]:
        """
        Run `SELECT 1` on a pooled connection.

        Returns:
            {"status": "healthy"|"unhealthy", "connected": bool, ...}
        """
        if not self.is_connected():
            return {
                "status": "unhealthy",
                "connected": False,
                "error": "Database client not connected"
            }

        try:
            result = await self.execute_scalar("SELECT 1")
            if result != 1:
                return {
                    "status": "unhealthy",
                    "connected": True,
                    "error": "Connection test query failed"
                }
            return {
                "status": "healthy",
                "connected": True,
                "pool_size": self.config.connection_pool_max_size,
            }

        except Exception as e:
            logger.error(
                "Database health check failed",
                error=str(e),
                error_type=type(e).__name__,
                trace_id=current_trace_id()
            )
            return {
                "status": "unhealthy",
                "connected": True,
                "error": str(e)
            }

    @asynccontextmanager
    async def acquire_connection(
        self, read_only: Optional[bool] = None
    ) -> AsyncIterator[asyncpg.Connection]:
        """
        Acquire a pooled connection, optionally inside a READ ONLY transaction.

        Args:
            read_only: Force read-only on/off; None uses
                config.enforce_read_only_default

        Example:
            async with client.acquire_connection(read_only=True) as conn:
                rows = await conn.fetch("SELECT * FROM orders")
        """
        if not self.is_connected() or self._pool is None:
            raise DatabaseConnectionError("Database client is not connected")

        if read_only is None:
            read_only = self.config.enforce_read_only_default

        async with self._pool.acquire() as connection:
            if read_only:
                async with connection.transaction(readonly=True):
                    yield connection
            else:
                yield connection

    async def execute_query(
        self,
        query: str,
        params: Optional[List[Any]] = None,
        timeout: Optional[int] = None,
        read_only: Optional[bool] = None
    ) -> List[Dict[str, Any]]:
        """
        Execute a SQL query and return results as list of dictionaries.

        Args:
            query: SQL query string, passed to the server unchanged
            params: Optional positional parameters ($1, $2, ...)
            timeout: Optional query timeout in seconds
            read_only: See acquire_connection

        Raises:
            DatabaseConnectionError: If the pool is not available
            DatabaseQueryError: If the statement fails
        """
        trace_id = current_trace_id()

        logger.debug(
            "Executing database query",
            query=query[:200],
            has_params=params is not None,
            trace_id=trace_id
        )

        try:
            async with self.acquire_connection(read_only=read_only) as conn:
                rows = await conn.fetch(query, *(params or []), timeout=timeout)
                results = [dict(row) for row in rows]

            logger.debug(
                "Query executed successfully",
                row_count=len(results),
                trace_id=trace_id
            )
            return results

        except DatabaseConnectionError:
            raise

        except asyncpg.QueryCanceledError as e:
            error_msg = f"Query timeout exceeded: {e}"
            logger.error(error_msg, query=query[:200], trace_id=trace_id)
            raise DatabaseQueryError(error_msg) from e

        except asyncpg.PostgresSyntaxError as e:
            error_msg = f"SQL syntax error: {e}"
            logger.error(error_msg, query=query[:200], trace_id=trace_id)
            raise DatabaseQueryError(error_msg) from e

        except asyncpg.UndefinedTableError as e:
            error_msg = f"Table does not exist: {e}"
            logger.error(error_msg, query=query[:200], trace_id=trace_id)
            raise DatabaseQueryError(error_msg) from e

        except asyncpg.UndefinedColumnError as e:
            error_msg = f"Column does not exist: {e}"
            logger.error(error_msg, query=query[:200], trace_id=trace_id)
            raise DatabaseQueryError(error_msg) from e

        except asyncpg.ReadOnlySQLTransactionError as e:
            error_msg = f"Write attempted in read-only transaction: {e}"
            logger.error(error_msg, query=query[:200], trace_id=trace_id)
            raise DatabaseQueryError(error_msg) from e

        except Exception as e:
            error_msg = f"Query execution failed: {e}"
            logger.error(
                error_msg,
                error_type=type(e).__name__,
                query=query[:200],
                trace_id=trace_id
            )
            raise DatabaseQueryError(error_msg) from e

    async def execute_scalar(
        self,
        query: str,
        params: Optional[List[Any]] = None
    ) -> Any:
        """Execute a query and return a single scalar value."""
        try:
            async with self.acquire_connection(read_only=True) as conn:
                return await conn.fetchval(query, *(params or []))

        except DatabaseConnectionError:
            raise

        except Exception as e:
            error_msg = f"Scalar query execution failed: {e}"
            logger.error(error_msg, query=query[:200], trace_id=current_trace_id())
            raise DatabaseQueryError(error_msg) from e
