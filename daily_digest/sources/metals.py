"""Daily Digest — Precious metals source (stooq CSV).

Gold and silver daily closes from stooq. Both symbols are fetched
concurrently; the rendered line is cached for hours and served as a
fallback when a fresh fetch fails.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass

from daily_digest.errors import SourceError
from daily_digest.sources.base import (
    CACHE_FALLBACK,
    SourceAdapter,
    SourceReading,
    fmt_pct,
    to_float,
)
from daily_digest.utils.logger import get_logger

logger = get_logger(__name__)

CACHE_KEY = "cache/stooq/metals"
_MIN_LINES = 4


@dataclass(frozen=True)
class CloseChange:
    """Last daily close and its change versus the previous close."""

    last_close: float
    pct: float


def parse_last_two_closes(csv_text: str, symbol: str) -> CloseChange:
    """Extract the last close and day-over-day % change from stooq CSV.

    Args:
        csv_text: Raw CSV (header row, then one row per day, oldest first).
        symbol: Symbol name for error messages.

    Returns:
        CloseChange for the most recent row.

    Raises:
        SourceError: If the CSV is too short, lacks a close column,
            or holds non-numeric closes.
    """
    lines = [line for line in csv_text.strip().splitlines() if line.strip()]
    if len(lines) < _MIN_LINES:
        raise SourceError(f"Not enough rows for {symbol}")

    header = [h.strip().lower() for h in lines[0].split(",")]
    if "close" not in header:
        raise SourceError(f"Close column not found for {symbol}")
    close_idx = header.index("close")

    last = [v.strip() for v in lines[-1].split(",")]
    prev = [v.strip() for v in lines[-2].split(",")]
    last_close = to_float(last[close_idx]) if close_idx < len(last) else None
    prev_close = to_float(prev[close_idx]) if close_idx < len(prev) else None

    if last_close is None or prev_close is None or prev_close == 0:
        raise SourceError(f"Bad close values for {symbol}")

    pct = (last_close - prev_close) / prev_close * 100
    return CloseChange(last_close=last_close, pct=pct)


def format_metals(gold: CloseChange, silver: CloseChange) -> str:
    """'🥇 2412.35 +0.41%  🥈 28.91 -1.02%'."""
    return (
        f"🥇 {gold.last_close:.2f} {fmt_pct(gold.pct)}  "
        f"🥈 {silver.last_close:.2f} {fmt_pct(silver.pct)}"
    )


class MetalsSource(SourceAdapter):
    """Gold (XAU) and silver (XAG) in USD."""

    name = "stooq_metals"
    fallback = "🥇 N/A  🥈 N/A"

    async def _closes(self, symbol: str) -> CloseChange:
        csv_text = await self.client.get_text(
            self.config.sources.metals_url,
            params={"s": symbol, "i": "d"},
            accept="text/csv",
        )
        return parse_last_two_closes(csv_text, symbol)

    async def fetch(self) -> SourceReading:
        sources = self.config.sources
        gold_symbol, silver_symbol = sources.metals_symbols
        try:
            gold, silver = await asyncio.gather(
                self._closes(gold_symbol), self._closes(silver_symbol),
            )
        except Exception as e:
            cached = await self.cache.get(CACHE_KEY)
            if cached is not None:
                logger.warning("Metals fetch failed, serving cached line: %s", e)
                return SourceReading(cached, status=CACHE_FALLBACK)
            raise

        text = format_metals(gold, silver)
        await self.cache.put(CACHE_KEY, text, sources.metals_cache_seconds)
        return SourceReading(text)
