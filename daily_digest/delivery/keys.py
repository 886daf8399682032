"""Daily Digest — Store keys used by the delivery core."""

from __future__ import annotations

EXECUTION_LOCK = "lock/cron"
MANUAL_COOLDOWN = "lock/run"

# Value stored under marker keys; only presence matters.
MARKER = "1"


def sent_key(day: str) -> str:
    """Daily sent marker for a YYYYMMDD date."""
    return f"sent/{day}"


def pending_key(day: str) -> str:
    """Pending (undelivered) message for a YYYYMMDD date."""
    return f"pending/{day}"
