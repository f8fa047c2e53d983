"""Test suite for conversation persistence."""

import json

import pytest

from mobile_ai_chat.domain.models import Conversation, Message
from mobile_ai_chat.repositories.memory import InMemoryStorage
from mobile_ai_chat.services.store import (
    CONVERSATIONS_KEY,
    STYLE_PREFERENCE_KEY,
    ConversationStore,
)

from conftest import FailingStorage


def make_conversation(conversation_id: str, *texts: str) -> Conversation:
    return Conversation(
        id=conversation_id,
        title=f"Conversation {conversation_id}",
        messages=[Message(sender="user", text=t) for t in texts]
    )


@pytest.mark.asyncio
async def test_load_empty_storage(store):
    """Test loading when nothing has been persisted."""
    assert await store.load() == []
    assert await store.list() == []


@pytest.mark.asyncio
async def test_upsert_persists_collection(store, storage):
    """Test that upsert writes the whole collection under one key."""
    await store.upsert(make_conversation("a", "hello"))
    await store.upsert(make_conversation("b", "hi"))

    raw = json.loads(await storage.get_item(CONVERSATIONS_KEY))
    assert [c["id"] for c in raw] == ["a", "b"]
    assert raw[0]["messages"][0]["sender"] == "user"
    assert raw[0]["messages"][0]["text"] == "hello"


@pytest.mark.asyncio
async def test_upsert_same_id_keeps_latest(store):
    """Test that upserting an id twice leaves exactly one entry with the latest content."""
    await store.upsert(make_conversation("a", "first"))
    await store.upsert(make_conversation("b", "other"))
    await store.upsert(make_conversation("a", "first", "second"))

    conversations = await store.list()
    assert [c.id for c in conversations] == ["b", "a"]
    assert [m.text for m in conversations[1].messages] == ["first", "second"]


@pytest.mark.asyncio
async def test_reload_from_storage(storage):
    """Test that a fresh store sees what another store persisted."""
    await ConversationStore(storage).upsert(make_conversation("a", "hello"))

    conversations = await ConversationStore(storage).load()
    assert len(conversations) == 1
    assert conversations[0].messages[0].text == "hello"


@pytest.mark.asyncio
async def test_delete(store):
    """Test deleting known and unknown conversations."""
    await store.upsert(make_conversation("a", "hello"))
    await store.upsert(make_conversation("b", "hi"))

    assert await store.delete("a") is True
    assert await store.delete("missing") is False
    assert [c.id for c in await store.list()] == ["b"]
    assert await store.get("a") is None


@pytest.mark.asyncio
async def test_corrupt_collection_loads_empty():
    """Test that undecodable stored data degrades to an empty collection."""
    storage = InMemoryStorage({CONVERSATIONS_KEY: "{not json"})
    assert await ConversationStore(storage).load() == []

    storage = InMemoryStorage({CONVERSATIONS_KEY: json.dumps([{"id": "a", "messages": "nope"}])})
    assert await ConversationStore(storage).load() == []


@pytest.mark.asyncio
async def test_write_failure_is_swallowed():
    """Test that a failing storage write keeps the in-memory collection updated."""
    store = ConversationStore(FailingStorage())
    await store.upsert(make_conversation("a", "hello"))

    assert [c.id for c in await store.list()] == ["a"]


@pytest.mark.asyncio
async def test_style_preference(store, storage):
    """Test storing, reading and clearing the style preference."""
    assert await store.get_style_preference() is None

    await store.set_style_preference("Finnish")
    assert await store.get_style_preference() == "Finnish"
    assert await storage.get_item(STYLE_PREFERENCE_KEY) == "Finnish"

    await store.clear_style_preference()
    assert await store.get_style_preference() is None
    assert await storage.get_item(STYLE_PREFERENCE_KEY) is None


@pytest.mark.asyncio
async def test_style_preference_write_failure():
    """Test that preference write failures are logged, not raised."""
    store = ConversationStore(FailingStorage())
    await store.set_style_preference("Swedish")
    await store.clear_style_preference()
    assert await store.get_style_preference() is None
