"""Shared fixtures for the test suite."""

import asyncio
from typing import List, Optional

import pytest

from mobile_ai_chat.repositories.memory import InMemoryStorage
from mobile_ai_chat.services.chat import ChatSessionController
from mobile_ai_chat.services.store import ConversationStore


class FakeCompletionClient:
    """Records prompts and answers with a canned reply or error."""

    def __init__(self, reply: Optional[str] = "Hi there!", error: Optional[Exception] = None):
        self.reply = reply
        self.error = error
        self.prompts: List[str] = []
        self.gate: Optional[asyncio.Event] = None

    async def complete(self, prompt: str) -> Optional[str]:
        self.prompts.append(prompt)
        if self.gate is not None:
            await self.gate.wait()
        if self.error is not None:
            raise self.error
        return self.reply


class FailingStorage(InMemoryStorage):
    """Storage whose writes always fail."""

    async def set_item(self, key: str, value: str) -> None:
        raise OSError("disk full")

    async def remove_item(self, key: str) -> None:
        raise OSError("disk full")


@pytest.fixture
def storage() -> InMemoryStorage:
    return InMemoryStorage()


@pytest.fixture
def store(storage) -> ConversationStore:
    return ConversationStore(storage)


@pytest.fixture
def completion() -> FakeCompletionClient:
    return FakeCompletionClient()


@pytest.fixture
def controller(store, completion) -> ChatSessionController:
    return ChatSessionController(store, completion)
