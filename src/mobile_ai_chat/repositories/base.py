"""Base key-value storage interface."""

from abc import ABC, abstractmethod
from typing import Optional


class KeyValueStorage(ABC):
    """Abstract base class for string key-value storage backends."""

    @abstractmethod
    async def get_item(self, key: str) -> Optional[str]:
        """Retrieve the value stored under a key, or None."""
        pass

    @abstractmethod
    async def set_item(self, key: str, value: str) -> None:
        """Store a value under a key, replacing any previous value."""
        pass

    @abstractmethod
    async def remove_item(self, key: str) -> None:
        """Remove a key if present."""
        pass
