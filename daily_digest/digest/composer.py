"""Daily Digest — Digest composition.

compose_digest() is a pure function: header timestamp plus the four
section strings in, message text out. DigestBuilder wires the sources,
the aggregator and the composer together for the delivery core.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Mapping, Optional, Sequence

from daily_digest.config import AppConfig
from daily_digest.digest.aggregator import collect
from daily_digest.sources import default_sources
from daily_digest.sources.base import CACHE_FALLBACK, FRESH, SourceAdapter
from daily_digest.sources.client import SourceClient
from daily_digest.sources.crypto import CryptoSource
from daily_digest.sources.matches import MatchesSource
from daily_digest.sources.metals import MetalsSource
from daily_digest.sources.weather import WeatherSource
from daily_digest.store.base import KeyValueStore
from daily_digest.utils.clock import Clock, format_timestamp, local_now
from daily_digest.utils.logger import get_logger

logger = get_logger(__name__)


def _section(value: Any, fallback: str) -> str:
    if isinstance(value, str) and value.strip():
        return value
    return fallback


def format_debug_block(statuses: Mapping[str, str]) -> list[str]:
    """Lines of the optional source-status block appended to the digest."""
    lines = ["", "---", "DEBUG: sources"]
    for name, status in statuses.items():
        mark = "✅" if status in (FRESH, CACHE_FALLBACK) else "❌"
        lines.append(f"- {mark} {name}: {status}")
    return lines


def compose_digest(
    timestamp: str,
    weather: Any,
    metals: Any,
    crypto: Any,
    matches: Any,
    statuses: Optional[Mapping[str, str]] = None,
    include_debug: bool = False,
) -> str:
    """Assemble the digest message.

    Layout: header, blank, weather, metals, crypto, blank, matches, then
    the debug block when enabled. Any section that is not a non-empty
    string is replaced by that source's fallback text.

    Args:
        timestamp: Pre-formatted local timestamp for the header line.
        weather: Weather section.
        metals: Metals section.
        crypto: Crypto section.
        matches: Matches section (may span several lines).
        statuses: Per-source status map, used only for the debug block.
        include_debug: Append the source status block.

    Returns:
        The full message text.
    """
    lines = [
        f"📌 {timestamp}",
        "",
        _section(weather, WeatherSource.fallback),
        _section(metals, MetalsSource.fallback),
        _section(crypto, CryptoSource.fallback),
        "",
        _section(matches, MatchesSource.fallback),
    ]
    if include_debug and statuses:
        lines.extend(format_debug_block(statuses))
    return "\n".join(lines)


@dataclass(frozen=True)
class Digest:
    """A built digest and the source statuses behind it."""

    text: str
    statuses: dict[str, str] = field(default_factory=dict)


class DigestBuilder:
    """Builds a fresh digest from live sources.

    Attributes:
        config: Full application configuration.
        sources: Adapters in display order.
    """

    def __init__(
        self,
        config: AppConfig,
        client: SourceClient,
        cache: KeyValueStore,
        clock: Optional[Clock] = None,
        sources: Optional[Sequence[SourceAdapter]] = None,
    ) -> None:
        self.config = config
        self.clock = clock
        self.sources = list(sources) if sources is not None else default_sources(
            client, cache, config, clock,
        )

    async def build(self) -> Digest:
        """Collect every source and compose the message. Never raises for
        source failures."""
        collected = await collect(self.sources)
        texts = [collected.texts.get(source.name) for source in self.sources]
        # Sources beyond the four display slots are ignored; missing ones fall back.
        weather, metals, crypto, matches = (texts + [None] * 4)[:4]

        timestamp = format_timestamp(local_now(self.config.location.tz, self.clock))
        text = compose_digest(
            timestamp,
            weather,
            metals,
            crypto,
            matches,
            statuses=collected.statuses,
            include_debug=self.config.delivery.include_debug_sources,
        )
        return Digest(text=text, statuses=dict(collected.statuses))
