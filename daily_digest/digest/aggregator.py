"""Daily Digest — Fault-isolated source aggregation.

Runs every source adapter concurrently. A failing adapter contributes its
fallback text and an ``ERR: <message>`` status; it never fails the batch.
Nothing is retried here: caching and cache fallback belong to the adapters.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Sequence

from daily_digest.sources.base import SourceAdapter, SourceReading
from daily_digest.utils.logger import get_logger

logger = get_logger(__name__)


@dataclass
class Collected:
    """Section texts and per-source statuses, both in source order.

    Attributes:
        texts: Source name → rendered section (real or fallback).
        statuses: Source name → 'fresh', 'cache_fallback' or 'ERR: <message>'.
    """

    texts: dict[str, str] = field(default_factory=dict)
    statuses: dict[str, str] = field(default_factory=dict)

    @property
    def failed(self) -> list[str]:
        """Names of sources that fell back."""
        return [name for name, status in self.statuses.items() if status.startswith("ERR")]


def _error_text(error: BaseException) -> str:
    return str(error) or type(error).__name__


async def collect(sources: Sequence[SourceAdapter]) -> Collected:
    """Fetch all sources concurrently with per-source failure isolation.

    Args:
        sources: Adapters to run, in display order.

    Returns:
        Collected texts and statuses. Never raises for adapter failures.
    """
    results = await asyncio.gather(
        *(source.fetch() for source in sources),
        return_exceptions=True,
    )

    collected = Collected()
    for source, result in zip(sources, results):
        if isinstance(result, asyncio.CancelledError):
            raise result
        if isinstance(result, SourceReading):
            collected.texts[source.name] = result.text
            collected.statuses[source.name] = result.status
            continue

        if isinstance(result, BaseException):
            message = _error_text(result)
        else:
            message = f"unexpected result {type(result).__name__}"
        logger.warning("Source %s failed: %s", source.name, message)
        collected.texts[source.name] = source.fallback
        collected.statuses[source.name] = f"ERR: {message}"

    if collected.failed:
        logger.info(
            "Collected %d/%d sources (fallback: %s)",
            len(sources) - len(collected.failed), len(sources),
            ", ".join(collected.failed),
        )
    else:
        logger.info("Collected %d/%d sources", len(sources), len(sources))
    return collected
