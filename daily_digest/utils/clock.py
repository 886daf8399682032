"""Daily Digest — Timezone-aware dates.

All "daily" keys and the digest header are derived from the calendar
date in one configured timezone, never from the host's local time.
"""

from __future__ import annotations

from datetime import datetime
from typing import Callable, Optional
from zoneinfo import ZoneInfo

Clock = Callable[[], datetime]

_WEEKDAYS_TR = (
    "Pazartesi",
    "Salı",
    "Çarşamba",
    "Perşembe",
    "Cuma",
    "Cumartesi",
    "Pazar",
)


def system_clock(tz: ZoneInfo) -> Clock:
    """Return a clock that yields the current time in the given timezone."""
    return lambda: datetime.now(tz)


def local_now(tz: ZoneInfo, clock: Optional[Clock] = None) -> datetime:
    """Current time converted to `tz`.

    Args:
        tz: The fixed service timezone.
        clock: Optional injected clock (tests); may return any aware datetime.

    Returns:
        An aware datetime in `tz`.
    """
    now = clock() if clock else datetime.now(tz)
    if now.tzinfo is None:
        raise ValueError("clock returned a naive datetime")
    return now.astimezone(tz)


def date_key(tz: ZoneInfo, clock: Optional[Clock] = None) -> str:
    """Calendar date in `tz` as YYYYMMDD (used in store keys and ESPN queries)."""
    return local_now(tz, clock).strftime("%Y%m%d")


def format_timestamp(now: datetime) -> str:
    """Human header timestamp, e.g. '19.10.2026 Pazartesi 08:00'."""
    weekday = _WEEKDAYS_TR[now.weekday()]
    return f"{now:%d.%m.%Y} {weekday} {now:%H:%M}"


def format_clock(moment: datetime, tz: ZoneInfo) -> str:
    """HH:MM of `moment` in `tz`."""
    return moment.astimezone(tz).strftime("%H:%M")
