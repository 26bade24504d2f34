"""
Schema Locator.

Narrows a natural-language prompt to the tables it is about and describes
their columns as a compact text block for the system prompt.

Relevance is purely lexical: the prompt is lower-cased, stripped of anything
outside [a-z0-9] and whitespace, and split into keywords. A base table is
relevant when its lower-cased name CONTAINS any keyword, so "order" matches
both "Orders" and "OrderItems".

Schema text is one line per table:

    Orders: id (integer), customer_id (integer), created_at (timestamp without time zone)
    OrderItems: id (integer), order_id (integer), sku (text)

There is no fallback: when nothing matches, describing the schema fails with
NoMatchingTablesError rather than describing every table in the database.

Usage:
    locator = SchemaLocator(db_client, schema="public")
    tables = await locator.find_relevant_tables(prompt)
    schema_text = await locator.describe_schema(tables, prompt)
"""

import re
from collections.abc import Mapping
from typing import Any, Dict, Iterable, List, Sequence

from ..constants import BASE_TABLES_QUERY, TABLE_COLUMNS_QUERY
from ..domain.errors import DatabaseError, NoMatchingTablesError, SchemaFetchError
from ..domain.schema_nodes import ColumnDefinition
from ..infrastructure.database_client import DatabaseClient
from ..utils.logging import get_module_logger
from ..utils.tracing import current_trace_id

logger = get_module_logger()

_NON_KEYWORD_CHARS = re.compile(r"[^a-z0-9\s]")


def extract_keywords(prompt: str) -> List[str]:
    """
    Normalise a prompt into keyword tokens.

    >>> extract_keywords("List all Orders from 2023!")
    ['list', 'all', 'orders', 'from', '2023']
    """
    normalized = _NON_KEYWORD_CHARS.sub("", prompt.lower())
    return [token for token in normalized.split() if token]


def match_tables(table_names: Iterable[str], keywords: Sequence[str]) -> List[str]:
    """Keep the tables whose lower-cased name contains any keyword, in catalog order."""
    if not keywords:
        return []

    return [
        name for name in table_names
        if any(keyword in name.lower() for keyword in keywords)
    ]


def format_schema(columns: Iterable[ColumnDefinition]) -> str:
    """Group ordered column definitions into one `Table: col (type), ...` line per table."""
    grouped: Dict[str, List[str]] = {}
    for column in columns:
        grouped.setdefault(column.table_name, []).append(column.render())

    return "\n".join(
        f"{table}: {', '.join(rendered)}" for table, rendered in grouped.items()
    )


def _require_records(result: Any, source: str) -> List[Mapping]:
    """Fail with SchemaFetchError unless `result` is a sequence of mappings."""
    if not isinstance(result, list) or not all(isinstance(row, Mapping) for row in result):
        raise SchemaFetchError(
            f"Unexpected result shape from {source}",
            details={"source": source, "result_type": type(result).__name__},
        )
    return result


class SchemaLocator:
    """
    Repository that finds prompt-relevant tables and formats their schema.

    Both catalog lookups go through the injected DatabaseClient; everything
    else is pure string processing.
    """

    def __init__(self, db_client: DatabaseClient, schema: str = "public"):
        self.db_client = db_client
        self.schema = schema
        logger.info("SchemaLocator initialized", schema=schema)

    async def list_base_tables(self) -> List[str]:
        """
        Fetch every base-table name in the configured schema.

        Raises:
            SchemaFetchError: If the catalog query fails or returns records
                without a table name
        """
        trace_id = current_trace_id()

        try:
            result = await self.db_client.execute_query(
                query=BASE_TABLES_QUERY,
                params=[self.schema],
            )
        except DatabaseError as e:
            error_msg = f"Failed to fetch table catalog for schema '{self.schema}': {e}"
            logger.error(error_msg, trace_id=trace_id)
            raise SchemaFetchError(error_msg, details={"schema": self.schema}) from e

        records = _require_records(result, "table catalog")
        if any("table_name" not in row for row in records):
            raise SchemaFetchError(
                "Table catalog records are missing the table_name field",
                details={"schema": self.schema},
            )

        table_names = [str(row["table_name"]) for row in records]
        logger.debug(
            "Table catalog fetched",
            table_count=len(table_names),
            schema=self.schema,
            trace_id=trace_id
        )
        return table_names

    async def find_relevant_tables(self, prompt: str) -> List[str]:
        """
        Find tables lexically relevant to the prompt.

        Returns:
            Matching table names in catalog order; may be empty.
        """
        keywords = extract_keywords(prompt)
        table_names = await self.list_base_tables()
        relevant = match_tables(table_names, keywords)

        logger.info(
            "Relevant tables matched",
            keyword_count=len(keywords),
            catalog_size=len(table_names),
            relevant_tables=relevant,
            trace_id=current_trace_id()
        )
        return relevant

    async def fetch_columns(self, tables: Sequence[str]) -> List[ColumnDefinition]:
        """
        Fetch column metadata for `tables`, ordered by table then ordinal position.

        Rows missing a table, column or type are skipped.
        """
        trace_id = current_trace_id()

        try:
            result = await self.db_client.execute_query(
                query=TABLE_COLUMNS_QUERY,
                params=[self.schema, list(tables)],
            )
        except DatabaseError as e:
            error_msg = f"Failed to fetch column metadata: {e}"
            logger.error(error_msg, tables=list(tables), trace_id=trace_id)
            raise SchemaFetchError(error_msg, details={"tables": list(tables)}) from e

        columns: List[ColumnDefinition] = []
        skipped = 0
        for row in _require_records(result, "column metadata"):
            column = ColumnDefinition.from_record(row)
            if column is None:
                skipped += 1
                continue
            columns.append(column)

        if skipped:
            logger.warning(
                "Skipped incomplete column records",
                skipped=skipped,
                trace_id=trace_id
            )

        return columns

    async def describe_schema(self, tables: Sequence[str], prompt: str) -> str:
        """
        Build the schema description for the matched tables.

        Raises:
            NoMatchingTablesError: If `tables` is empty
            SchemaFetchError: If the column metadata cannot be read
        """
        if not tables:
            logger.warning("No tables matched prompt", trace_id=current_trace_id())
            raise NoMatchingTablesError.for_prompt(prompt)

        columns = await self.fetch_columns(tables)
        schema_text = format_schema(columns)

        logger.info(
            "Schema description built",
            table_count=len(tables),
            column_count=len(columns),
            schema_length=len(schema_text),
            trace_id=current_trace_id()
        )
        return schema_text
