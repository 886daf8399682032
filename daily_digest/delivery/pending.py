"""Daily Digest — Pending message persistence.

A digest that failed to send is stored under today's pending key and
becomes the message the next run delivers, verbatim, before anything
new is built.
"""

from __future__ import annotations

from typing import Optional

from daily_digest.delivery.keys import pending_key
from daily_digest.store.base import KeyValueStore
from daily_digest.utils.logger import get_logger

logger = get_logger(__name__)


async def load_pending(store: KeyValueStore, day: str) -> Optional[str]:
    """Return the pending message for `day`, or None.

    An empty stored value is treated as no pending message.
    """
    text = await store.get(pending_key(day))
    return text or None


async def save_pending(store: KeyValueStore, day: str, text: str, ttl_seconds: int) -> None:
    """Persist `text` as the pending message for `day`, replacing any previous one."""
    await store.put(pending_key(day), text, ttl_seconds)
    logger.info("Pending message saved for %s (%d chars)", day, len(text))


async def clear_pending(store: KeyValueStore, day: str) -> None:
    """Remove the pending message for `day` after it was delivered."""
    await store.delete(pending_key(day))
    logger.debug("Pending message cleared for %s", day)
