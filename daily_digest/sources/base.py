"""Daily Digest — Source Adapter Base.

Each adapter fetches one upstream, parses it and renders one digest
section. Adapters raise on failure; the aggregator substitutes the
adapter's fallback text.
"""

from __future__ import annotations

import math
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Optional

from daily_digest.config import AppConfig
from daily_digest.sources.client import SourceClient
from daily_digest.store.base import KeyValueStore
from daily_digest.utils.clock import Clock

FRESH = "fresh"
CACHE_FALLBACK = "cache_fallback"
NOT_AVAILABLE = "N/A"


@dataclass(frozen=True)
class SourceReading:
    """Rendered section text plus where it came from."""

    text: str
    status: str = FRESH


class SourceAdapter(ABC):
    """Fetch-and-format unit for one upstream provider.

    Attributes:
        name: Stable identifier used in the status map and debug block.
        fallback: Section text used when fetch() raises.
    """

    name: str = ""
    fallback: str = ""

    def __init__(
        self,
        client: SourceClient,
        cache: KeyValueStore,
        config: AppConfig,
        clock: Optional[Clock] = None,
    ) -> None:
        """Bind the adapter to the shared client, cache store and config.

        Args:
            client: Shared SourceClient for upstream GETs.
            cache: Store used for this adapter's response cache.
            config: Full application configuration.
            clock: Optional injected clock for date-scoped queries.
        """
        self.client = client
        self.cache = cache
        self.config = config
        self.clock = clock

    @abstractmethod
    async def fetch(self) -> SourceReading:
        """Fetch and render this source's section.

        Raises:
            SourceError: (or any exception) when the section cannot be built.
        """


def to_float(value: Any) -> Optional[float]:
    """Parse a finite float, or None for missing / non-numeric input."""
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return number if math.isfinite(number) else None


def fmt_pct(value: Any) -> str:
    """Signed percentage with two decimals: '+1.23%', '-0.50%', or 'N/A'."""
    number = to_float(value)
    if number is None:
        return NOT_AVAILABLE
    sign = "+" if number >= 0 else ""
    return f"{sign}{number:.2f}%"


def fmt_price(value: Any) -> str:
    """Price as the provider gave it: '67234' or '67234.12', or 'N/A'."""
    number = to_float(value)
    if number is None:
        return NOT_AVAILABLE
    if number.is_integer():
        return str(int(number))
    return repr(number)
