"""
Infrastructure layer for external integrations.

Clients for the PostgreSQL database and the LLM provider.
"""

from .database_client import DatabaseClient
from .llm_client import LLMClient

__all__ = ["DatabaseClient", "LLMClient"]
