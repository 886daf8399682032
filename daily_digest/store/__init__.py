"""Daily Digest — Store Package.

TTL key-value stores backing every stateful mechanism:
  - KeyValueStore: the get / put / delete interface
  - MemoryStore: in-process dictionary with expiry
  - SqliteStore: aiosqlite-backed, survives restarts
"""

from daily_digest.config import StoreConfig
from daily_digest.store.base import KeyValueStore
from daily_digest.store.memory import MemoryStore
from daily_digest.store.sqlite import SqliteStore


def open_store(config: StoreConfig) -> KeyValueStore:
    """Create the store selected by `store.backend`."""
    if config.backend == "memory":
        return MemoryStore()
    return SqliteStore(config.path)


__all__ = [
    "KeyValueStore",
    "MemoryStore",
    "SqliteStore",
    "open_store",
]
