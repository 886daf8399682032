"""Daily Digest — SQLite TTL Store.

Provides the KeyValueStore on top of aiosqlite so locks, markers and
pending digests survive a process restart. One table, one row per key,
with an absolute expiry timestamp (wall clock, epoch seconds).
"""

from __future__ import annotations

import asyncio
import time
from pathlib import Path
from typing import Callable, Optional

import aiosqlite

from daily_digest.store.base import KeyValueStore
from daily_digest.utils.logger import get_logger

logger = get_logger(__name__)

# ── Schema Definitions ────────────────────────────────────
SCHEMA_SQL = """
-- ═══ Key/Value Table ═══
-- Ephemeral entries; a row past expires_at is treated as absent.
CREATE TABLE IF NOT EXISTS kv (
    key         TEXT    PRIMARY KEY,
    value       TEXT    NOT NULL,
    expires_at  REAL    NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_kv_expires_at ON kv(expires_at);
"""


class SqliteStore(KeyValueStore):
    """Async SQLite-backed KeyValueStore.

    Manages a single persistent connection with WAL mode enabled.
    Expired rows are ignored on read and purged on every write.

    Attributes:
        db_path: Resolved absolute path to the SQLite database file.
    """

    def __init__(self, db_path: str, clock: Callable[[], float] = time.time) -> None:
        """Initialize the store manager.

        Args:
            db_path: Relative or absolute path to the SQLite database file.
                     Parent directories will be created if they don't exist.
                     ':memory:' keeps everything in RAM.
            clock: Wall-clock source in epoch seconds (injectable for tests).
        """
        self.db_path = db_path if db_path == ":memory:" else str(Path(db_path).resolve())
        self.clock = clock
        self._connection: aiosqlite.Connection | None = None
        self._init_lock = asyncio.Lock()

    async def initialize(self) -> None:
        """Open the connection, set pragmas and create the schema.

        Concurrent callers share one connection; calls after the first
        are no-ops until close().
        """
        async with self._init_lock:
            if self._connection is not None:
                return

            if self.db_path != ":memory:":
                Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)

            logger.info("Connecting to store: %s", self.db_path)
            connection = await aiosqlite.connect(self.db_path)
            try:
                # Enable WAL mode for concurrent readers
                await connection.execute("PRAGMA journal_mode=WAL")
                await connection.executescript(SCHEMA_SQL)
                await connection.commit()
            except Exception:
                await connection.close()
                raise

            self._connection = connection
            logger.info("Store initialized")

    async def _conn(self) -> aiosqlite.Connection:
        if self._connection is None:
            await self.initialize()
        return self._connection  # type: ignore[return-value]

    async def get(self, key: str) -> Optional[str]:
        conn = await self._conn()
        async with conn.execute(
            "SELECT value FROM kv WHERE key = ? AND expires_at > ?",
            (key, self.clock()),
        ) as cursor:
            row = await cursor.fetchone()
        return row[0] if row else None

    async def put(self, key: str, value: str, ttl_seconds: float) -> None:
        conn = await self._conn()
        now = self.clock()
        await conn.execute("DELETE FROM kv WHERE expires_at <= ?", (now,))
        await conn.execute(
            "INSERT OR REPLACE INTO kv (key, value, expires_at) VALUES (?, ?, ?)",
            (key, value, now + ttl_seconds),
        )
        await conn.commit()

    async def delete(self, key: str) -> None:
        conn = await self._conn()
        await conn.execute("DELETE FROM kv WHERE key = ?", (key,))
        await conn.commit()

    async def close(self) -> None:
        """Close the connection. Safe to call more than once."""
        if self._connection is not None:
            await self._connection.close()
            self._connection = None
            logger.info("Store connection closed")

    async def __aenter__(self) -> "SqliteStore":
        await self.initialize()
        return self
