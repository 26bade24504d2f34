"""
SQL Prompt Builder.

Renders the fixed instruction template sent as the system message, with the
schema description embedded verbatim. Pure string formatting, no I/O.

The model is told to answer with UNKNOWN_SCHEMA_SENTINEL when the request
names anything outside the schema. Nothing downstream special-cases that
text: it does not start with SELECT, so the SQL guard rejects it.
"""

from typing import Dict

from ..config_constants import SQLDialect
from ..constants import DEFAULT_ROW_LIMIT, UNKNOWN_SCHEMA_SENTINEL, USER_PROMPT_TEMPLATE

# Identifier quoting and row-limit clause per dialect
_DIALECT_RULES: Dict[SQLDialect, Dict[str, str]] = {
    SQLDialect.POSTGRESQL: {
        "quoting": 'Use double quotes "TableName"."ColumnName" only when required (mixed case, spaces or reserved words).',
        "limit": "Use LIMIT {row_limit} by default unless the user specifies a different limit.",
    },
    SQLDialect.SQL_SERVER: {
        "quoting": "Use square brackets [TableName].[ColumnName] only when required (spaces or reserved words).",
        "limit": "Use TOP {row_limit} by default unless the user specifies a different limit.",
    },
}

SYSTEM_PROMPT_TEMPLATE = """You are a {dialect} query builder.

DATABASE SCHEMA:
{schema}

TASK:
Given a user request, generate a valid SQL query using ONLY tables and columns from the schema above.

VALIDATION:
- DO NOT guess, infer, or suggest alternative tables/columns.
- If any table or column in the request does NOT exist in the schema, return EXACTLY:
  {sentinel}
- Otherwise, return ONLY the SQL query.

CRITICAL RULES:
1. Column names are CASE-SENSITIVE.
2. No table aliases - always use full table names.
3. {quoting_rule}
4. {limit_rule}
5. Write clean, readable SQL.

OUTPUT FORMAT:
- Return ONLY the raw SQL query text.
- DO NOT wrap the SQL in markdown code blocks or backticks.
- DO NOT add any explanations, comments, or formatting.
- Just the plain SQL query string."""


class SQLPromptBuilder:
    """
    Builds the system and user messages for SQL generation.

    Usage:
        builder = SQLPromptBuilder(dialect=SQLDialect.POSTGRESQL, row_limit=30)
        system_prompt = builder.build_system_prompt(schema_text)
        user_prompt = builder.build_user_prompt("list all orders from 2023")
    """

    def __init__(
        self,
        dialect: SQLDialect = SQLDialect.POSTGRESQL,
        row_limit: int = DEFAULT_ROW_LIMIT,
    ):
        self.dialect = SQLDialect(dialect)
        self.row_limit = row_limit

    def build_system_prompt(self, schema: str) -> str:
        """Render the instruction template around `schema` (embedded unchanged)."""
        rules = _DIALECT_RULES[self.dialect]
        return SYSTEM_PROMPT_TEMPLATE.format(
            dialect=self.dialect.value,
            schema=schema,
            sentinel=UNKNOWN_SCHEMA_SENTINEL,
            quoting_rule=rules["quoting"],
            limit_rule=rules["limit"].format(row_limit=self.row_limit),
        )

    def build_user_prompt(self, prompt: str) -> str:
        return USER_PROMPT_TEMPLATE.format(prompt=prompt)
