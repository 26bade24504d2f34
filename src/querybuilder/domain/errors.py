"""
Custom exception hierarchy for the Query Builder.

Every exception carries:
- error_code: machine-readable identifier used in API responses
- http_status: status used by the FastAPI exception handlers
- details: optional structured context for debugging

Exception Categories:
- 4xx Client Errors: BadRequestError, MissingPromptError, PromptTooLongError,
  NoMatchingTablesError, SQLValidationError and its subclasses
- 5xx Server Errors: DatabaseError, SchemaError, LLMError, ExecutionError

Inside the streaming endpoint these never become HTTP statuses: the SSE
bridge turns the first one raised into a single `error` event.

Usage:
    raise NoMatchingTablesError.for_prompt(prompt)
    raise ForbiddenKeywordError("...", details={"keywords": ["drop"]})
"""

from typing import Any, Dict, Optional


class QueryBuilderException(Exception):
    """
    Base exception for all Query Builder errors.

    Attributes:
        message: Human-readable error description
        error_code: Machine-readable error code (e.g., "NOT_SELECT")
        http_status: HTTP status code to return (default: 500)
        details: Optional dictionary with additional error context
    """

    error_code: str = "INTERNAL_ERROR"
    http_status: int = 500

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        error_code: Optional[str] = None,
        http_status: Optional[int] = None,
    ):
        super().__init__(message)
        self.message = message
        self.details = details or {}
        if error_code:
            self.error_code = error_code
        if http_status:
            self.http_status = http_status

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for API responses."""
        result: Dict[str, Any] = {
            "error_code": self.error_code,
            "message": self.message,
        }
        if self.details:
            result["details"] = self.details
        return result


# =============================================================================
# Client Errors (4xx)
# =============================================================================


class BadRequestError(QueryBuilderException):
    """
    Raised when the request is malformed or invalid.

    HTTP Status: 400 Bad Request
    """

    error_code = "BAD_REQUEST"
    http_status = 400


class MissingPromptError(BadRequestError):
    """
    Raised when the prompt is absent, not a string, or blank.

    HTTP Status: 400 Bad Request
    """

    error_code = "MISSING_PROMPT"
    http_status = 400

    def __init__(self, message: str = "Prompt parameter is required", **kwargs: Any):
        super().__init__(message, **kwargs)


class PromptTooLongError(BadRequestError):
    """
    Raised when the prompt exceeds the configured maximum length.

    HTTP Status: 413 Payload Too Large
    """

    error_code = "PROMPT_TOO_LONG"
    http_status = 413

    def __init__(self, message: str = "Prompt is too long", **kwargs: Any):
        super().__init__(message, **kwargs)


# =============================================================================
# Configuration Errors (5xx)
# =============================================================================


class ConfigurationError(QueryBuilderException):
    """
    Raised when configuration is invalid or missing.

    HTTP Status: 500 Internal Server Error
    """

    error_code = "CONFIGURATION_ERROR"
    http_status = 500


# =============================================================================
# Database Errors (5xx)
# =============================================================================


class DatabaseError(QueryBuilderException):
    """
    Base class for database-related errors.

    HTTP Status: 503 Service Unavailable
    """

    error_code = "DATABASE_ERROR"
    http_status = 503


class DatabaseConnectionError(DatabaseError):
    """
    Raised when the connection pool cannot be created or is not available.

    HTTP Status: 503 Service Unavailable
    """

    error_code = "DATABASE_CONNECTION_ERROR"
    http_status = 503


class DatabaseQueryError(DatabaseError):
    """
    Raised by DatabaseClient when a statement fails.

    HTTP Status: 500 Internal Server Error
    """

    error_code = "DATABASE_QUERY_ERROR"
    http_status = 500


# =============================================================================
# Schema Errors
# =============================================================================


class SchemaError(QueryBuilderException):
    """
    Base class for table matching and schema description failures.

    HTTP Status: 500 Internal Server Error
    """

    error_code = "SCHEMA_ERROR"
    http_status = 500


class SchemaFetchError(SchemaError):
    """
    Raised when the table catalog or column metadata cannot be read,
    or comes back in a shape that is not a sequence of records.

    HTTP Status: 500 Internal Server Error
    """

    error_code = "SCHEMA_FETCH_ERROR"
    http_status = 500


class NoMatchingTablesError(SchemaError):
    """
    Raised when no table name contains any keyword of the prompt.

    There is no fallback to describing every table.

    HTTP Status: 404 Not Found
    """

    error_code = "NO_MATCHING_TABLES"
    http_status = 404

    @classmethod
    def for_prompt(cls, prompt: str) -> "NoMatchingTablesError":
        return cls(
            f'No matching tables found for prompt: "{prompt}"',
            details={"prompt": prompt},
        )


# =============================================================================
# LLM Errors (5xx)
# =============================================================================


class LLMError(QueryBuilderException):
    """
    Raised when LLM operations fail.

    HTTP Status: 503 Service Unavailable

    Examples:
        - Client not connected
        - Input exceeds max_input_chars
    """

    error_code = "LLM_ERROR"
    http_status = 503


class CompletionExhaustedError(LLMError):
    """
    Raised when every streaming attempt failed before producing output.

    The last underlying error is kept on `last_error` and chained as __cause__.

    HTTP Status: 503 Service Unavailable
    """

    error_code = "COMPLETION_EXHAUSTED"
    http_status = 503

    def __init__(
        self,
        message: str,
        last_error: Optional[BaseException] = None,
        **kwargs: Any,
    ):
        super().__init__(message, **kwargs)
        self.last_error = last_error


class CompletionInterruptedError(LLMError):
    """
    Raised when the stream breaks after fragments were already delivered.

    The request is not retried: the caller already holds partial SQL text.

    HTTP Status: 503 Service Unavailable
    """

    error_code = "COMPLETION_INTERRUPTED"
    http_status = 503


# =============================================================================
# SQL Guard Errors (4xx)
# =============================================================================


class SQLValidationError(QueryBuilderException):
    """
    Base class for generated SQL that fails the read-only policy.

    HTTP Status: 422 Unprocessable Entity
    """

    error_code = "SQL_VALIDATION_ERROR"
    http_status = 422


class NotSelectError(SQLValidationError):
    """Raised when the cleaned SQL does not start with SELECT."""

    error_code = "NOT_SELECT"


class MultipleStatementsError(SQLValidationError):
    """Raised when a semicolon remains after dropping one trailing semicolon."""

    error_code = "MULTIPLE_STATEMENTS"


class ForbiddenKeywordError(SQLValidationError):
    """Raised when a write or privilege keyword appears as a whole word."""

    error_code = "FORBIDDEN_KEYWORD"


# =============================================================================
# Execution Errors (5xx)
# =============================================================================


class ExecutionError(QueryBuilderException):
    """
    Raised when the validated query fails in the database.

    HTTP Status: 500 Internal Server Error
    """

    error_code = "EXECUTION_ERROR"
    http_status = 500


class EmptyResultError(ExecutionError):
    """
    Raised when the executor returns no result set at all (None).

    An empty list of rows is a valid result and does not raise.
    """

    error_code = "EMPTY_RESULT"

    def __init__(self, message: str = "Query execution returned no results", **kwargs: Any):
        super().__init__(message, **kwargs)


# =============================================================================
# Service Unavailable (5xx)
# =============================================================================


class ServiceUnavailableError(QueryBuilderException):
    """
    Raised when a required client was not initialised at startup.

    HTTP Status: 503 Service Unavailable
    """

    error_code = "SERVICE_UNAVAILABLE"
    http_status = 503
