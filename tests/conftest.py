"""
Shared fixtures and fakes for the Query Builder tests.

Logging is configured with an explicit level so importing the app does not
require DATABASE__* / LLM__* environment variables.
"""

from typing import Any, Dict, List, Sequence, Tuple, Union

import pytest
from langchain_core.messages import AIMessageChunk

from querybuilder.config import LLMConfig
from querybuilder.domain.base_enums import EventKind
from querybuilder.utils.logging import configure_logging

configure_logging("WARNING")


# One scripted attempt: text fragments, optionally ending in an exception
Attempt = Sequence[Union[str, BaseException]]


class FakeChatModel:
    """Chat model whose `astream` replays scripted attempts, one per call."""

    def __init__(self, attempts: Sequence[Attempt]):
        self.attempts = list(attempts)
        self.calls: List[Any] = []

    async def astream(self, messages):
        self.calls.append(messages)
        attempt = self.attempts[len(self.calls) - 1]
        for item in attempt:
            if isinstance(item, BaseException):
                raise item
            yield AIMessageChunk(content=item)


class EventCollector:
    """Capturing event sink."""

    def __init__(self):
        self.events: List[Tuple[EventKind, Dict[str, Any]]] = []

    def __call__(self, kind: EventKind, data: Dict[str, Any]) -> None:
        self.events.append((kind, data))

    def kinds(self) -> List[str]:
        return [kind.value for kind, _ in self.events]

    def of_kind(self, kind: EventKind) -> List[Dict[str, Any]]:
        return [data for event_kind, data in self.events if event_kind == kind]


@pytest.fixture
def llm_config():
    return LLMConfig(openai_api_key="test-key", retry_delay_seconds=0)


@pytest.fixture
def collector():
    return EventCollector()


@pytest.fixture
def make_chat_model():
    """Factory for FakeChatModel: make_chat_model([["SELECT ", "1"]])."""
    return FakeChatModel
