"""Test suite for the key-value storage backends."""

import json

import pytest

from mobile_ai_chat.domain.models import Conversation, Message
from mobile_ai_chat.repositories.file import JsonFileStorage
from mobile_ai_chat.repositories.memory import InMemoryStorage
from mobile_ai_chat.services.store import ConversationStore


@pytest.mark.asyncio
async def test_memory_storage_roundtrip():
    """Test basic get/set/remove on the in-memory backend."""
    storage = InMemoryStorage()
    assert await storage.get_item("k") is None
    await storage.set_item("k", "v")
    assert await storage.get_item("k") == "v"
    await storage.remove_item("k")
    await storage.remove_item("k")
    assert await storage.get_item("k") is None


@pytest.mark.asyncio
async def test_file_storage_writes_json_object(tmp_path):
    """Test that the file backend keeps all keys in one JSON document."""
    path = tmp_path / "nested" / "storage.json"
    storage = JsonFileStorage(path)

    assert await storage.get_item("conversations") is None
    await storage.set_item("conversations", "[]")
    await storage.set_item("preferredLanguage", "Swedish")

    assert json.loads(path.read_text(encoding="utf-8")) == {
        "conversations": "[]",
        "preferredLanguage": "Swedish",
    }

    await storage.remove_item("preferredLanguage")
    assert await JsonFileStorage(path).get_item("preferredLanguage") is None
    assert not (tmp_path / "nested" / "storage.json.tmp").exists()


@pytest.mark.asyncio
async def test_file_storage_survives_restart(tmp_path):
    """Test that conversations persisted to disk are visible to a new store."""
    path = tmp_path / "storage.json"
    conversation = Conversation(
        id="1",
        title="Conversation 1",
        messages=[Message(sender="user", text="Hyvää päivää")]
    )
    await ConversationStore(JsonFileStorage(path)).upsert(conversation)

    loaded = await ConversationStore(JsonFileStorage(path)).load()
    assert loaded == [conversation]


@pytest.mark.asyncio
async def test_corrupt_file_degrades_to_empty(tmp_path):
    """Test that an unreadable storage file yields an empty collection."""
    path = tmp_path / "storage.json"
    path.write_text("garbage", encoding="utf-8")

    store = ConversationStore(JsonFileStorage(path))
    assert await store.load() == []
    assert await store.get_style_preference() is None

    # Later writes replace the unreadable document
    await store.upsert(Conversation(id="a", title="Conversation a"))
    await store.set_style_preference("Finnish")

    reloaded = ConversationStore(JsonFileStorage(path))
    assert [c.id for c in await reloaded.load()] == ["a"]
    assert await reloaded.get_style_preference() == "Finnish"
    assert json.loads(path.read_text(encoding="utf-8"))["preferredLanguage"] == "Finnish"
