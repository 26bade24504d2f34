"""
SQL Validation Repository.

Strips generation artifacts from model output and enforces the read-only,
single-statement policy before anything reaches the database.

Cleaning (purely textual, no SQL parsing):
1. Remove every ```sql opener (case-insensitive, optional trailing newline)
2. Remove every bare ``` closer (optional trailing newline)
3. Remove every remaining backtick
4. Trim surrounding whitespace

Safety checks (in order, first failure wins):
1. SELECT-only: text must start with "select" (case-insensitive)
2. Single statement: no ";" left after dropping one trailing ";"
3. Forbidden keywords: no whole-word write/privilege keyword

Security Philosophy:
- No trusted input: all LLM-generated SQL is treated as untrusted
- Static checks only; the database additionally runs the query read-only

Usage in Pipeline:
    repo = SQLValidationRepository()
    sql = repo.validate(repo.clean(generated_text))
"""

import re
from typing import List

from ..constants import FORBIDDEN_KEYWORDS
from ..domain.errors import (
    ForbiddenKeywordError,
    MultipleStatementsError,
    NotSelectError,
    SQLValidationError,
)
from ..utils.logging import get_module_logger
from ..utils.tracing import current_trace_id

logger = get_module_logger()

_SQL_FENCE_OPENER = re.compile(r"```sql\n?", re.IGNORECASE)
_FENCE_CLOSER = re.compile(r"```\n?")
_SELECT_PREFIX = re.compile(r"^select", re.IGNORECASE)
_FORBIDDEN_PATTERN = re.compile(
    r"\b(" + "|".join(FORBIDDEN_KEYWORDS) + r")\b",
    re.IGNORECASE
)


def clean_sql(text: str) -> str:
    """
    Remove markdown fencing and backticks from generated text.

    Idempotent: clean_sql(clean_sql(s)) == clean_sql(s).

    >>> clean_sql("```sql\\nSELECT * FROM Orders\\n```")
    'SELECT * FROM Orders'
    """
    cleaned = _SQL_FENCE_OPENER.sub("", text)
    cleaned = _FENCE_CLOSER.sub("", cleaned)
    cleaned = cleaned.replace("`", "")
    return cleaned.strip()


def find_forbidden_keywords(sql: str) -> List[str]:
    """Distinct forbidden keywords present as whole words, lower-cased, in order of appearance."""
    found: List[str] = []
    for match in _FORBIDDEN_PATTERN.finditer(sql):
        keyword = match.group(1).lower()
        if keyword not in found:
            found.append(keyword)
    return found


def assert_safe(sql: str) -> None:
    """
    Enforce the read-only single-statement policy.

    Raises:
        NotSelectError: If the text does not start with SELECT
        MultipleStatementsError: If statements are chained with ";"
        ForbiddenKeywordError: If a write/privilege keyword appears
    """
    text = sql.strip()

    if not _SELECT_PREFIX.match(text):
        raise NotSelectError(
            "Only SELECT queries are allowed",
            details={"sql": text[:200]},
        )

    body = text[:-1] if text.endswith(";") else text
    if ";" in body:
        raise MultipleStatementsError(
            "Multiple SQL statements are not allowed",
            details={"sql": text[:200]},
        )

    forbidden = find_forbidden_keywords(text)
    if forbidden:
        raise ForbiddenKeywordError(
            f"SQL contains forbidden keywords: {', '.join(forbidden)}",
            details={"keywords": forbidden, "sql": text[:200]},
        )


class SQLValidationRepository:
    """
    Repository for SQL cleaning and validation.

    Stateless; kept as a class so the service receives it by injection like
    every other pipeline step.
    """

    def clean(self, text: str) -> str:
        return clean_sql(text)

    def validate(self, sql: str) -> str:
        """
        Validate cleaned SQL and return it unchanged.

        Raises:
            SQLValidationError subclass on policy violation
        """
        trace_id = current_trace_id()

        try:
            assert_safe(sql)
        except SQLValidationError as e:
            logger.warning(
                "Generated SQL rejected",
                error=str(e),
                error_type=type(e).__name__,
                sql=sql[:200],
                trace_id=trace_id
            )
            raise

        logger.info("Generated SQL passed validation", sql_length=len(sql), trace_id=trace_id)
        return sql
