"""
Unit tests for the LLMClient completion streamer.

ChatOpenAI is replaced by a FakeChatModel (see conftest) that replays
scripted attempts; asyncio.sleep is patched to record retry delays.
"""

from types import SimpleNamespace
from unittest.mock import AsyncMock

import pytest
from langchain_core.messages import HumanMessage, SystemMessage

from querybuilder.domain.errors import (
    CompletionExhaustedError,
    CompletionInterruptedError,
    ConfigurationError,
    LLMError,
)
from querybuilder.infrastructure.llm_client import LLMClient


async def collect(client, system_prompt="system", user_prompt="Generate SQL for: list orders"):
    return [fragment async for fragment in client.stream_completion(system_prompt, user_prompt)]


@pytest.fixture
def sleep_mock(monkeypatch):
    mock = AsyncMock()
    monkeypatch.setattr(
        "querybuilder.infrastructure.llm_client.asyncio", SimpleNamespace(sleep=mock)
    )
    return mock


async def connected_client(llm_config, chat_model):
    client = LLMClient(llm_config, chat_model=chat_model)
    await client.connect()
    return client


class TestLifecycle:

    @pytest.mark.asyncio
    async def test_connect_builds_chat_openai(self, llm_config):
        client = LLMClient(llm_config)
        await client.connect()
        assert client.is_connected()

        await client.close()
        assert not client.is_connected()

    @pytest.mark.asyncio
    async def test_connect_requires_api_key(self, llm_config):
        client = LLMClient(llm_config.model_copy(update={"openai_api_key": " "}))
        with pytest.raises(ConfigurationError):
            await client.connect()
        assert not client.is_connected()

    @pytest.mark.asyncio
    async def test_stream_requires_connection(self, llm_config, make_chat_model):
        client = LLMClient(llm_config, chat_model=make_chat_model([["SELECT 1"]]))
        with pytest.raises(LLMError):
            await collect(client)

    @pytest.mark.asyncio
    async def test_input_size_limit(self, llm_config, make_chat_model):
        config = llm_config.model_copy(update={"max_input_chars": 10})
        model = make_chat_model([["SELECT 1"]])
        client = await connected_client(config, model)

        with pytest.raises(LLMError) as exc_info:
            await collect(client, system_prompt="x" * 20)

        assert exc_info.value.details["max_chars"] == 10
        assert model.calls == []


class TestStreamCompletion:

    @pytest.mark.asyncio
    async def test_yields_fragments_in_order(self, llm_config, make_chat_model, sleep_mock):
        model = make_chat_model([["SELECT ", "", "* FROM ", "Orders"]])
        client = await connected_client(llm_config, model)

        assert await collect(client) == ["SELECT ", "* FROM ", "Orders"]
        sleep_mock.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_sends_system_and_user_messages(self, llm_config, make_chat_model):
        model = make_chat_model([["SELECT 1"]])
        client = await connected_client(llm_config, model)

        await collect(client, system_prompt="rules", user_prompt="Generate SQL for: x")

        messages = model.calls[0]
        assert isinstance(messages[0], SystemMessage) and messages[0].content == "rules"
        assert isinstance(messages[1], HumanMessage) and messages[1].content == "Generate SQL for: x"

    @pytest.mark.asyncio
    async def test_retries_after_failure_before_output(self, llm_config, make_chat_model, sleep_mock):
        config = llm_config.model_copy(update={"retry_delay_seconds": 1.0})
        model = make_chat_model([
            [ConnectionError("reset")],
            [TimeoutError("slow")],
            ["SELECT 1"],
        ])
        client = await connected_client(config, model)

        assert await collect(client) == ["SELECT 1"]
        assert len(model.calls) == 3
        assert sleep_mock.await_count == 2
        sleep_mock.assert_awaited_with(1.0)

    @pytest.mark.asyncio
    async def test_exhausted_after_three_attempts(self, llm_config, make_chat_model, sleep_mock):
        last = ConnectionError("third")
        model = make_chat_model([
            [ConnectionError("first")],
            [ConnectionError("second")],
            [last],
        ])
        client = await connected_client(llm_config, model)

        with pytest.raises(CompletionExhaustedError) as exc_info:
            await collect(client)

        assert len(model.calls) == 3
        # No delay after the final attempt
        assert sleep_mock.await_count == 2
        assert exc_info.value.last_error is last
        assert exc_info.value.__cause__ is last
        assert exc_info.value.message == "Streaming failed after 3 attempts: third"

    @pytest.mark.asyncio
    async def test_failure_after_output_is_not_retried(self, llm_config, make_chat_model, sleep_mock):
        model = make_chat_model([
            ["SELECT ", ConnectionError("dropped")],
            ["SELECT 1"],
        ])
        client = await connected_client(llm_config, model)

        received = []
        with pytest.raises(CompletionInterruptedError):
            async for fragment in client.stream_completion("system", "user"):
                received.append(fragment)

        assert received == ["SELECT "]
        assert len(model.calls) == 1
        sleep_mock.assert_not_awaited()

    def test_fragment_text_from_content_parts(self):
        class Chunk:
            content = [{"type": "text", "text": "SELECT "}, {"type": "text", "text": "1"}]

        assert LLMClient._fragment_text(Chunk()) == "SELECT 1"
