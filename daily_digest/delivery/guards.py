"""Daily Digest — Delivery Guards.

Short-lived markers in the key-value store:
  - Execution lock: suppresses overlapping scheduled runs
  - Manual cooldown: stops /run from being re-triggered within a minute
  - Sent marker: at most one successful digest per calendar day

Acquisition is check-then-write on a single key. The store offers no
compare-and-swap, so two callers racing inside the same instant can both
acquire; the TTLs are short and the triggers infrequent.
"""

from __future__ import annotations

from daily_digest.delivery.keys import EXECUTION_LOCK, MANUAL_COOLDOWN, MARKER, sent_key
from daily_digest.store.base import KeyValueStore
from daily_digest.utils.logger import get_logger

logger = get_logger(__name__)


async def _acquire(store: KeyValueStore, key: str, ttl_seconds: int) -> bool:
    if await store.exists(key):
        logger.debug("Marker %s is held", key)
        return False
    await store.put(key, MARKER, ttl_seconds)
    return True


async def acquire_execution_lock(store: KeyValueStore, ttl_seconds: int) -> bool:
    """Take the scheduled-run lock.

    The lock is never released explicitly; it expires after `ttl_seconds`.

    Returns:
        True if acquired, False if another run holds it.
    """
    return await _acquire(store, EXECUTION_LOCK, ttl_seconds)


async def acquire_manual_cooldown(store: KeyValueStore, ttl_seconds: int) -> bool:
    """Take the manual-trigger cooldown. False means rate limited."""
    return await _acquire(store, MANUAL_COOLDOWN, ttl_seconds)


async def is_sent(store: KeyValueStore, day: str) -> bool:
    """Check whether the digest for `day` (YYYYMMDD) was already delivered."""
    return await store.exists(sent_key(day))


async def mark_sent(store: KeyValueStore, day: str, ttl_seconds: int) -> None:
    """Record a successful delivery for `day`."""
    await store.put(sent_key(day), MARKER, ttl_seconds)
    logger.debug("Marked %s as sent", day)
