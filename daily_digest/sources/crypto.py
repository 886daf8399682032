"""Daily Digest — Crypto source (CoinGecko simple/price).

BTC and ETH in USD with 24h change. The raw JSON is cached for a few
minutes because CoinGecko's free tier rate-limits aggressively.
"""

from __future__ import annotations

import json
from typing import Any

from daily_digest.errors import SourceError
from daily_digest.sources.base import SourceAdapter, SourceReading, fmt_pct, fmt_price
from daily_digest.utils.logger import get_logger

logger = get_logger(__name__)

CACHE_KEY = "cache/coingecko/btc-eth"
_PARAMS = {
    "ids": "bitcoin,ethereum",
    "vs_currencies": "usd",
    "include_24hr_change": "true",
}


def format_crypto(data: Any) -> str:
    """Render '₿ BTC: $67234 (+1.20%) | Ξ ETH: $3120.5 (-0.40%)'.

    Missing coins or fields render as 'N/A' instead of failing.
    """
    data = data if isinstance(data, dict) else {}
    btc = data.get("bitcoin") if isinstance(data.get("bitcoin"), dict) else {}
    eth = data.get("ethereum") if isinstance(data.get("ethereum"), dict) else {}
    return (
        f"₿ BTC: ${fmt_price(btc.get('usd'))} ({fmt_pct(btc.get('usd_24h_change'))}) | "
        f"Ξ ETH: ${fmt_price(eth.get('usd'))} ({fmt_pct(eth.get('usd_24h_change'))})"
    )


class CryptoSource(SourceAdapter):
    """Bitcoin and Ethereum spot prices."""

    name = "coingecko_crypto"
    fallback = "₿ BTC/ETH: N/A"

    async def fetch(self) -> SourceReading:
        cached = await self.cache.get(CACHE_KEY)
        if cached is not None:
            try:
                return SourceReading(format_crypto(json.loads(cached)))
            except ValueError:
                logger.warning("Discarding unreadable CoinGecko cache entry")
                await self.cache.delete(CACHE_KEY)

        try:
            data = await self.client.get_json(self.config.sources.crypto_url, params=_PARAMS)
        except SourceError as e:
            if e.status_code == 429:
                raise SourceError("CoinGecko 429 (rate limit)", status_code=429) from e
            raise

        if not isinstance(data, dict):
            raise SourceError("CoinGecko returned non-dict JSON")

        await self.cache.put(
            CACHE_KEY, json.dumps(data), self.config.sources.crypto_cache_seconds,
        )
        return SourceReading(format_crypto(data))
