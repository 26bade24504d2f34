"""
API request models for the Query Builder.

Length and presence of the prompt are checked in the route rather than by
Pydantic so that the endpoint answers 400 / 413 instead of 422.
"""

from pydantic import BaseModel, Field
from typing import Any, Optional


class TableBuilderRequest(BaseModel):
    """Request body for POST /api/table-builder."""

    prompt: Optional[Any] = Field(
        default=None,
        description="Natural language request to turn into a read-only SQL query. "
                    "Must be a non-empty string of at most 2000 characters. "
                    "Example: 'list all orders from 2023'",
        json_schema_extra={"example": "list all orders from 2023"}
    )
