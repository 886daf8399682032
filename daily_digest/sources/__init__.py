"""Daily Digest — Sources Package.

One adapter per upstream provider, all sharing a SourceClient and the
key-value store for their response caches:
  - WeatherSource: open-meteo daily forecast
  - MetalsSource: stooq gold / silver closes
  - CryptoSource: CoinGecko BTC / ETH
  - MatchesSource: ESPN scoreboards filtered to favorite teams
"""

from __future__ import annotations

from typing import Optional

from daily_digest.config import AppConfig
from daily_digest.sources.base import (
    CACHE_FALLBACK,
    FRESH,
    SourceAdapter,
    SourceReading,
)
from daily_digest.sources.client import SourceClient
from daily_digest.sources.crypto import CryptoSource
from daily_digest.sources.matches import MatchesSource
from daily_digest.sources.metals import MetalsSource
from daily_digest.sources.weather import WeatherSource
from daily_digest.store.base import KeyValueStore
from daily_digest.utils.clock import Clock


def default_sources(
    client: SourceClient,
    cache: KeyValueStore,
    config: AppConfig,
    clock: Optional[Clock] = None,
) -> list[SourceAdapter]:
    """The four digest sources in display order."""
    return [
        cls(client, cache, config, clock)
        for cls in (WeatherSource, MetalsSource, CryptoSource, MatchesSource)
    ]


__all__ = [
    "CACHE_FALLBACK",
    "FRESH",
    "CryptoSource",
    "MatchesSource",
    "MetalsSource",
    "SourceAdapter",
    "SourceClient",
    "SourceReading",
    "WeatherSource",
    "default_sources",
]
