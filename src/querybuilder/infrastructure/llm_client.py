"""
LLM client for streaming SQL generation using LangChain.

This module provides an async client around LangChain's ChatOpenAI and the
completion streamer used by the pipeline: one system/user prompt pair in,
an async iterator of text fragments out, with a bounded fixed-delay retry.
"""

import asyncio
from typing import Any, AsyncIterator, List, Optional

from langchain_core.language_models import BaseChatModel
from langchain_core.messages import BaseMessage, HumanMessage, SystemMessage
from langchain_openai import ChatOpenAI
from pydantic import SecretStr

from ..config import LLMConfig
from ..utils.logging import get_module_logger
from ..utils.tracing import current_trace_id
from ..domain.errors import (
    CompletionExhaustedError,
    CompletionInterruptedError,
    ConfigurationError,
    LLMError,
)


logger = get_module_logger()


class LLMClient:
    """
    Streaming LLM client using LangChain's ChatOpenAI.

    Features:
    - Streaming completions yielded fragment by fragment
    - Up to `max_retries` attempts with a fixed `retry_delay_seconds` pause
    - Each retry re-issues the whole request; nothing from a failed attempt
      is reused
    - Input size validation before any API call
    - Structured logging with trace IDs

    Usage:
        client = LLMClient(config)
        await client.connect()

        async for fragment in client.stream_completion(system_prompt, user_prompt):
            print(fragment, end="")

        await client.close()
    """

    def __init__(self, config: LLMConfig, chat_model: Optional[BaseChatModel] = None):
        """
        Initialize LLM client with configuration.

        Args:
            config: LLM configuration
            chat_model: Pre-built chat model to use instead of ChatOpenAI
                (any LangChain chat model supporting astream)
        """
        self.config = config
        self._llm: Optional[BaseChatModel] = chat_model
        self._is_connected = False

        logger.info(
            "LLMClient initialized",
            default_model=config.default_model,
            base_url=config.base_url,
            max_retries=config.max_retries,
            retry_delay_seconds=config.retry_delay_seconds
        )

    async def connect(self) -> None:
        """
        Build the ChatOpenAI client.

        No API call is made here; credentials are exercised on first use.

        Raises:
            ConfigurationError: If no API key is configured
            LLMError: If initialization fails
        """
        if self._is_connected:
            logger.warning("LLM client already connected")
            return

        if self._llm is None and not self.config.openai_api_key.strip():
            raise ConfigurationError("LLM__OPENAI_API_KEY is not set")

        trace_id = current_trace_id()

        try:
            if self._llm is None:
                # stream_completion owns retries
                self._llm = ChatOpenAI(
                    model=self.config.default_model,
                    api_key=SecretStr(self.config.openai_api_key),
                    base_url=self.config.base_url,
                    temperature=self.config.temperature,
                    top_p=self.config.top_p,
                    max_completion_tokens=self.config.max_tokens,
                    timeout=self.config.timeout_seconds,
                    max_retries=0,
                    streaming=True,
                )

            self._is_connected = True
            logger.info("LLM client initialized successfully", trace_id=trace_id)

        except Exception as e:
            error_msg = f"Failed to initialize LLM client: {e}"
            logger.error(error_msg, error_type=type(e).__name__, trace_id=trace_id)
            raise LLMError(error_msg) from e

    async def close(self) -> None:
        """Release the chat model."""
        self._is_connected = False
        self._llm = None
        logger.info("LLM client closed", trace_id=current_trace_id())

    def is_connected(self) -> bool:
        """Check if LLM client is connected."""
        return self._is_connected and self._llm is not None

    def _validate_input_size(self, system_prompt: str, user_prompt: str) -> None:
        total_chars = len(system_prompt) + len(user_prompt)
        if total_chars > self.config.max_input_chars:
            raise LLMError(
                f"Input too large: {total_chars} characters exceeds limit of "
                f"{self.config.max_input_chars}",
                details={"total_chars": total_chars, "max_chars": self.config.max_input_chars},
            )

    @staticmethod
    def _fragment_text(chunk: Any) -> str:
        """Text carried by one streamed message chunk ('' for tool/metadata chunks)."""
        content = getattr(chunk, "content", chunk)
        if isinstance(content, str):
            return content
        if isinstance(content, list):
            return "".join(
                part.get("text", "") if isinstance(part, dict) else str(part)
                for part in content
            )
        return ""

    async def stream_completion(self, system_prompt: str, user_prompt: str) -> AsyncIterator[str]:
        """
        Stream a completion as text fragments.

        An attempt that fails before yielding anything is retried from
        scratch after a fixed delay, up to `max_retries` attempts in total.
        An attempt that fails after fragments were yielded is not retried,
        since the caller already consumed partial text.

        Args:
            system_prompt: System-role instructions
            user_prompt: User-role request

        Yields:
            Non-empty text fragments in arrival order

        Raises:
            LLMError: If the client is not connected or the input is too large
            CompletionInterruptedError: If the stream broke after output was yielded
            CompletionExhaustedError: If every attempt failed; wraps the last error
        """
        if not self.is_connected() or self._llm is None:
            raise LLMError("LLM client is not connected")

        self._validate_input_size(system_prompt, user_prompt)

        trace_id = current_trace_id()
        messages: List[BaseMessage] = [
            SystemMessage(content=system_prompt),
            HumanMessage(content=user_prompt),
        ]
        max_attempts = self.config.max_retries
        last_error: Optional[BaseException] = None

        for attempt in range(1, max_attempts + 1):
            fragments_yielded = 0

            logger.info(
                "Starting completion stream",
                attempt=attempt,
                max_attempts=max_attempts,
                system_prompt_length=len(system_prompt),
                user_prompt_length=len(user_prompt),
                trace_id=trace_id
            )

            try:
                async for chunk in self._llm.astream(messages):
                    fragment = self._fragment_text(chunk)
                    if fragment:
                        fragments_yielded += 1
                        yield fragment

                logger.info(
                    "Completion stream finished",
                    attempt=attempt,
                    fragment_count=fragments_yielded,
                    trace_id=trace_id
                )
                return

            except Exception as e:
                if fragments_yielded:
                    logger.error(
                        "Completion stream interrupted after output",
                        attempt=attempt,
                        fragment_count=fragments_yielded,
                        error=str(e),
                        error_type=type(e).__name__,
                        trace_id=trace_id
                    )
                    raise CompletionInterruptedError(
                        f"Streaming interrupted after {fragments_yielded} fragments: {e}",
                        details={"attempt": attempt, "fragment_count": fragments_yielded},
                    ) from e

                last_error = e
                logger.error(
                    "Streaming attempt failed",
                    attempt=attempt,
                    error=str(e),
                    error_type=type(e).__name__,
                    trace_id=trace_id
                )

                if attempt < max_attempts:
                    logger.info(
                        "Retrying completion stream",
                        delay_seconds=self.config.retry_delay_seconds,
                        trace_id=trace_id
                    )
                    await asyncio.sleep(self.config.retry_delay_seconds)

        raise CompletionExhaustedError(
            f"Streaming failed after {max_attempts} attempts: {last_error}",
            last_error=last_error,
            details={"attempts": max_attempts},
        ) from last_error
