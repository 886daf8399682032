"""Daily Digest — In-memory TTL store.

Single-process store used for tests and for running without a disk.
Expired entries are dropped lazily on read and by a sweep on every write.
"""

from __future__ import annotations

import time
from typing import Callable, Optional

from daily_digest.store.base import KeyValueStore


class MemoryStore(KeyValueStore):
    """Dictionary-backed KeyValueStore with per-key expiry.

    Attributes:
        clock: Monotonic time source in seconds (injectable for tests).
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self.clock = clock
        self._entries: dict[str, tuple[str, float]] = {}

    def _sweep(self) -> None:
        now = self.clock()
        expired = [k for k, (_, expires_at) in self._entries.items() if expires_at <= now]
        for key in expired:
            del self._entries[key]

    async def get(self, key: str) -> Optional[str]:
        entry = self._entries.get(key)
        if entry is None:
            return None
        value, expires_at = entry
        if expires_at <= self.clock():
            del self._entries[key]
            return None
        return value

    async def put(self, key: str, value: str, ttl_seconds: float) -> None:
        self._sweep()
        self._entries[key] = (value, self.clock() + ttl_seconds)

    async def delete(self, key: str) -> None:
        self._entries.pop(key, None)

    def __len__(self) -> int:
        self._sweep()
        return len(self._entries)

    def keys(self) -> list[str]:
        """Live keys, mostly for tests and diagnostics."""
        self._sweep()
        return sorted(self._entries)
