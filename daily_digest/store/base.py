"""Daily Digest — Key-Value Store Interface.

Every piece of persistent state (execution lock, manual cooldown, sent
marker, pending message, source caches) goes through this narrow,
TTL-based interface. Writes are whole-value overwrites, last write wins;
there is no compare-and-swap.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Optional


class KeyValueStore(ABC):
    """Ephemeral string store where each entry expires after its TTL."""

    @abstractmethod
    async def get(self, key: str) -> Optional[str]:
        """Return the stored value, or None if absent or expired."""

    @abstractmethod
    async def put(self, key: str, value: str, ttl_seconds: float) -> None:
        """Store `value` under `key`, replacing any previous value."""

    @abstractmethod
    async def delete(self, key: str) -> None:
        """Remove `key`. Deleting an absent key is not an error."""

    async def exists(self, key: str) -> bool:
        """Whether a live value is stored under `key`."""
        return await self.get(key) is not None

    async def initialize(self) -> None:
        """Acquire any underlying resources ahead of first use."""

    async def close(self) -> None:
        """Release any underlying resources."""

    async def __aenter__(self) -> "KeyValueStore":
        await self.initialize()
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.close()
