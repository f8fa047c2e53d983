"""JSON file storage implementation."""

import asyncio
import json
import os
from pathlib import Path
from typing import Dict, Optional, Union

import structlog

from .base import KeyValueStorage

logger = structlog.get_logger()


class JsonFileStorage(KeyValueStorage):
    """
    Keeps every key in a single JSON object on disk.

    Blocking file access runs in a worker thread. Writes go to a temporary
    sibling file first and are then renamed over the target, so a crash never
    leaves a half-written document behind.
    """

    def __init__(self, path: Union[str, Path]) -> None:
        self.path = Path(path)
        self._async_lock = asyncio.Lock()
        logger.info("storage_initialized", backend="file", path=str(self.path))

    def _read_all(self) -> Dict[str, str]:
        if not self.path.exists():
            return {}
        with self.path.open("r", encoding="utf-8") as fh:
            data = json.load(fh)
        if not isinstance(data, dict):
            raise ValueError(f"Storage file {self.path} does not hold a JSON object")
        return data

    def _read_for_write(self) -> Dict[str, str]:
        """Current contents, or an empty document when the file is unreadable."""
        try:
            return self._read_all()
        except ValueError as e:
            logger.error("storage_file_corrupt", path=str(self.path), error=str(e))
            return {}

    def _write_all(self, items: Dict[str, str]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_name(self.path.name + ".tmp")
        with tmp_path.open("w", encoding="utf-8") as fh:
            json.dump(items, fh, ensure_ascii=False)
        os.replace(tmp_path, self.path)

    async def get_item(self, key: str) -> Optional[str]:
        async with self._async_lock:
            items = await asyncio.to_thread(self._read_all)
            return items.get(key)

    async def set_item(self, key: str, value: str) -> None:
        async with self._async_lock:
            items = await asyncio.to_thread(self._read_for_write)
            items[key] = value
            await asyncio.to_thread(self._write_all, items)

    async def remove_item(self, key: str) -> None:
        async with self._async_lock:
            items = await asyncio.to_thread(self._read_for_write)
            if key in items:
                del items[key]
                await asyncio.to_thread(self._write_all, items)
