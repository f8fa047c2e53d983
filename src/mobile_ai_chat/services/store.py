"""Conversation persistence on top of a key-value storage backend."""

import asyncio
from typing import List, Optional

import structlog
from pydantic import TypeAdapter, ValidationError

from ..domain.models import Conversation
from ..repositories.base import KeyValueStorage

logger = structlog.get_logger()

CONVERSATIONS_KEY = "conversations"
STYLE_PREFERENCE_KEY = "preferredLanguage"

_conversation_list = TypeAdapter(List[Conversation])


class ConversationStore:
    """
    Saved conversations and the style preference.

    The collection is cached after the first load and every mutation writes
    the whole collection back under one storage key. Storage failures are
    logged and never raised: a failed read yields an empty collection, a
    failed write leaves the cached collection updated (last write wins).
    """

    def __init__(self, storage: KeyValueStorage) -> None:
        self.storage = storage
        self._conversations: Optional[List[Conversation]] = None
        self._async_lock = asyncio.Lock()

    async def load(self) -> List[Conversation]:
        """Read the persisted collection, replacing the cache."""
        async with self._async_lock:
            self._conversations = await self._read()
            logger.info("conversations_loaded", count=len(self._conversations))
            return list(self._conversations)

    async def list(self) -> List[Conversation]:
        """Return the collection in storage order."""
        async with self._async_lock:
            return list(await self._cached())

    async def get(self, conversation_id: str) -> Optional[Conversation]:
        """Retrieve a conversation by ID."""
        async with self._async_lock:
            for conversation in await self._cached():
                if conversation.id == conversation_id:
                    return conversation
            return None

    async def upsert(self, conversation: Conversation) -> None:
        """Replace any entry with the same id and append the new one."""
        async with self._async_lock:
            existing = await self._cached()
            self._conversations = [c for c in existing if c.id != conversation.id]
            self._conversations.append(conversation)
            await self._persist()
            logger.info(
                "conversation_upserted",
                conversation_id=conversation.id,
                message_count=len(conversation.messages)
            )

    async def delete(self, conversation_id: str) -> bool:
        """Remove a conversation; returns False when the id is unknown."""
        async with self._async_lock:
            existing = await self._cached()
            remaining = [c for c in existing if c.id != conversation_id]
            if len(remaining) == len(existing):
                logger.warning("conversation_not_found", conversation_id=conversation_id)
                return False
            self._conversations = remaining
            await self._persist()
            logger.info("conversation_deleted", conversation_id=conversation_id)
            return True

    async def get_style_preference(self) -> Optional[str]:
        try:
            value = await self.storage.get_item(STYLE_PREFERENCE_KEY)
        except Exception as e:
            logger.error("style_preference_load_error", error=str(e))
            return None
        return value or None

    async def set_style_preference(self, value: str) -> None:
        try:
            await self.storage.set_item(STYLE_PREFERENCE_KEY, value)
            logger.info("style_preference_saved", style_preference=value)
        except Exception as e:
            logger.error("style_preference_save_error", error=str(e))

    async def clear_style_preference(self) -> None:
        try:
            await self.storage.remove_item(STYLE_PREFERENCE_KEY)
            logger.info("style_preference_cleared")
        except Exception as e:
            logger.error("style_preference_clear_error", error=str(e))

    async def _cached(self) -> List[Conversation]:
        if self._conversations is None:
            self._conversations = await self._read()
        return self._conversations

    async def _read(self) -> List[Conversation]:
        try:
            raw = await self.storage.get_item(CONVERSATIONS_KEY)
        except Exception as e:
            logger.error("conversations_load_error", error=str(e))
            return []
        if not raw:
            return []
        try:
            return _conversation_list.validate_json(raw)
        except ValidationError as e:
            logger.error("conversations_deserialize_error", error=str(e))
            return []

    async def _persist(self) -> None:
        payload = _conversation_list.dump_json(self._conversations).decode("utf-8")
        try:
            await self.storage.set_item(CONVERSATIONS_KEY, payload)
        except Exception as e:
            logger.error("conversations_persist_error", error=str(e))
