"""In-memory storage implementation."""

import asyncio
from typing import Dict, Optional

import structlog

from .base import KeyValueStorage

logger = structlog.get_logger()


class InMemoryStorage(KeyValueStorage):
    """Process-local storage; contents are lost on restart."""

    def __init__(self, initial: Optional[Dict[str, str]] = None) -> None:
        self._items: Dict[str, str] = dict(initial or {})
        self._async_lock = asyncio.Lock()
        logger.info("storage_initialized", backend="memory")

    async def get_item(self, key: str) -> Optional[str]:
        async with self._async_lock:
            return self._items.get(key)

    async def set_item(self, key: str, value: str) -> None:
        async with self._async_lock:
            self._items[key] = value

    async def remove_item(self, key: str) -> None:
        async with self._async_lock:
            self._items.pop(key, None)
