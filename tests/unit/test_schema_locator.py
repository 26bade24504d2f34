"""
Unit tests for the Schema Locator.

The DatabaseClient is replaced by an AsyncMock whose execute_query returns
canned catalog rows.
"""

from unittest.mock import AsyncMock

import pytest

from querybuilder.domain.errors import DatabaseQueryError, NoMatchingTablesError, SchemaFetchError
from querybuilder.domain.schema_nodes import ColumnDefinition
from querybuilder.repositories.schema_locator import (
    SchemaLocator,
    extract_keywords,
    format_schema,
    match_tables,
)


CATALOG = [{"table_name": "Orders"}, {"table_name": "OrderItems"}, {"table_name": "Customers"}]


def make_locator(*results):
    db_client = AsyncMock()
    db_client.execute_query.side_effect = list(results)
    return SchemaLocator(db_client, schema="public"), db_client


class TestKeywordMatching:

    def test_extract_keywords_normalises(self):
        assert extract_keywords("List all Orders from 2023!") == ["list", "all", "orders", "from", "2023"]

    def test_extract_keywords_drops_punctuation_only_tokens(self):
        assert extract_keywords("  -- ?? orders  ") == ["orders"]

    def test_match_is_substring_containment(self):
        keywords = extract_keywords("list all Orders from 2023")
        # "orders" is not a substring of "orderitems"; "order" would be
        assert match_tables(["Orders", "OrderItems", "Customers"], keywords) == ["Orders"]

    def test_match_with_shared_prefix_keyword(self):
        keywords = extract_keywords("order totals")
        assert match_tables(["Orders", "OrderItems", "Customers"], keywords) == ["Orders", "OrderItems"]

    def test_match_keeps_catalog_order(self):
        assert match_tables(["b_users", "a_users"], ["users"]) == ["b_users", "a_users"]

    def test_no_keywords_matches_nothing(self):
        assert match_tables(["Orders"], []) == []


class TestFindRelevantTables:

    @pytest.mark.asyncio
    async def test_relevant_tables(self):
        locator, db_client = make_locator(CATALOG)

        tables = await locator.find_relevant_tables("show each order with customers")

        assert tables == ["Orders", "OrderItems", "Customers"]
        assert db_client.execute_query.await_args.kwargs["params"] == ["public"]

    @pytest.mark.asyncio
    async def test_no_match_returns_empty(self):
        locator, _ = make_locator(CATALOG)
        assert await locator.find_relevant_tables("weather forecast") == []

    @pytest.mark.asyncio
    async def test_non_record_result_fails(self):
        locator, _ = make_locator("not rows")
        with pytest.raises(SchemaFetchError):
            await locator.find_relevant_tables("orders")

    @pytest.mark.asyncio
    async def test_records_without_table_name_fail(self):
        locator, _ = make_locator([{"name": "Orders"}])
        with pytest.raises(SchemaFetchError):
            await locator.find_relevant_tables("orders")

    @pytest.mark.asyncio
    async def test_database_error_wrapped(self):
        locator, _ = make_locator(DatabaseQueryError("boom"))
        with pytest.raises(SchemaFetchError) as exc_info:
            await locator.find_relevant_tables("orders")
        assert isinstance(exc_info.value.__cause__, DatabaseQueryError)


class TestDescribeSchema:

    @pytest.mark.asyncio
    async def test_empty_tables_fail_hard(self):
        locator, db_client = make_locator()

        with pytest.raises(NoMatchingTablesError) as exc_info:
            await locator.describe_schema([], "weather forecast")

        assert exc_info.value.details["prompt"] == "weather forecast"
        assert "weather forecast" in exc_info.value.message
        db_client.execute_query.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_schema_text(self):
        rows = [
            {"table_name": "OrderItems", "column_name": "id", "data_type": "integer"},
            {"table_name": "OrderItems", "column_name": "sku", "data_type": "text"},
            {"table_name": "Orders", "column_name": "id", "data_type": "integer"},
            {"table_name": "Orders", "column_name": "created_at", "data_type": "date"},
        ]
        locator, db_client = make_locator(rows)

        schema = await locator.describe_schema(["Orders", "OrderItems"], "orders")

        assert schema == (
            "OrderItems: id (integer), sku (text)\n"
            "Orders: id (integer), created_at (date)"
        )
        assert db_client.execute_query.await_args.kwargs["params"] == ["public", ["Orders", "OrderItems"]]

    @pytest.mark.asyncio
    async def test_incomplete_rows_skipped(self):
        rows = [
            {"table_name": "Orders", "column_name": "id", "data_type": "integer"},
            {"table_name": "Orders", "column_name": None, "data_type": "text"},
            {"table_name": "Orders", "column_name": "total"},
        ]
        locator, _ = make_locator(rows)

        assert await locator.describe_schema(["Orders"], "orders") == "Orders: id (integer)"

    @pytest.mark.asyncio
    async def test_non_record_columns_fail(self):
        locator, _ = make_locator(None)
        with pytest.raises(SchemaFetchError):
            await locator.describe_schema(["Orders"], "orders")


def test_format_schema_groups_by_table():
    columns = [
        ColumnDefinition(table_name="A", column_name="x", data_type="int"),
        ColumnDefinition(table_name="B", column_name="y", data_type="text"),
    ]
    assert format_schema(columns) == "A: x (int)\nB: y (text)"
