"""Daily Digest — Tests for the aggregator, composer and digest builder."""

import asyncio
import itertools
import pytest

from conftest import FakeSender, fixed_clock, make_config
from daily_digest.delivery import DeliveryService, Outcome
from daily_digest.delivery.keys import sent_key
from daily_digest.digest import DigestBuilder, collect, compose_digest
from daily_digest.digest.composer import format_debug_block
from daily_digest.errors import SourceError
from daily_digest.sources.base import CACHE_FALLBACK, SourceReading
from daily_digest.sources.crypto import CryptoSource
from daily_digest.sources.matches import MatchesSource
from daily_digest.sources.metals import MetalsSource
from daily_digest.sources.weather import WeatherSource
from daily_digest.store.memory import MemoryStore

REAL = {
    "open_meteo_weather": "🌤 12.3°/19.8° 🌧40%",
    "stooq_metals": "🥇 2010.00 +0.50%  🥈 24.75 -1.00%",
    "coingecko_crypto": "₿ BTC: $67234 (+1.20%) | Ξ ETH: $3120.5 (-0.40%)",
    "espn_matches": "⚽ Maçlar:\n• Galatasaray vs Fenerbahçe | 20:00 | 2-1 | FT",
}


def _stub(adapter_cls, fail=False, status="fresh"):
    """Adapter subclass that returns canned text or raises, without any I/O."""

    class Stub(adapter_cls):
        calls = 0

        async def fetch(self) -> SourceReading:
            type(self).calls += 1
            if fail:
                raise SourceError(f"{self.name} is down")
            return SourceReading(REAL[self.name], status=status)

    return Stub(None, MemoryStore(), make_config())


ADAPTERS = (WeatherSource, MetalsSource, CryptoSource, MatchesSource)


class TestCollect:
    def test_all_fresh(self):
        sources = [_stub(cls) for cls in ADAPTERS]
        collected = asyncio.run(collect(sources))
        assert list(collected.texts) == [s.name for s in sources]
        assert set(collected.statuses.values()) == {"fresh"}
        assert collected.failed == []

    def test_failure_substitutes_fallback_and_records_error(self):
        sources = [_stub(WeatherSource, fail=True), _stub(MetalsSource, status=CACHE_FALLBACK)]
        collected = asyncio.run(collect(sources))
        assert collected.texts["open_meteo_weather"] == "🌤 Hava: N/A"
        assert collected.statuses["open_meteo_weather"] == "ERR: open_meteo_weather is down"
        assert collected.statuses["stooq_metals"] == CACHE_FALLBACK
        assert collected.failed == ["open_meteo_weather"]

    def test_unexpected_exception_is_isolated_too(self):
        class Exploding(CryptoSource):
            async def fetch(self):
                raise KeyError("usd")

        collected = asyncio.run(collect([Exploding(None, MemoryStore(), make_config())]))
        assert collected.texts["coingecko_crypto"] == "₿ BTC/ETH: N/A"
        assert collected.statuses["coingecko_crypto"].startswith("ERR: ")

    def test_no_retry_on_failure(self):
        source = _stub(MetalsSource, fail=True)
        asyncio.run(collect([source]))
        assert type(source).calls == 1


class TestComposeDigest:
    def test_layout(self):
        text = compose_digest("19.10.2026 Pazartesi 08:00", *REAL.values())
        assert text.split("\n") == [
            "📌 19.10.2026 Pazartesi 08:00",
            "",
            REAL["open_meteo_weather"],
            REAL["stooq_metals"],
            REAL["coingecko_crypto"],
            "",
            "⚽ Maçlar:",
            "• Galatasaray vs Fenerbahçe | 20:00 | 2-1 | FT",
        ]

    @pytest.mark.parametrize("failing", [
        subset
        for size in range(5)
        for subset in itertools.combinations(range(4), size)
    ])
    def test_any_subset_of_failures_keeps_structure(self, failing):
        fallbacks = [cls.fallback for cls in ADAPTERS]
        values = [None if i in failing else text for i, text in enumerate(REAL.values())]

        # The matches section may span several lines; it is the 7th logical line.
        lines = compose_digest("ts", *values).split("\n", 6)

        assert len(lines) == 7
        assert lines[0] == "📌 ts"
        assert lines[1] == "" and lines[5] == ""
        for slot, line_no in zip(range(4), (2, 3, 4, 6)):
            if slot in failing:
                assert lines[line_no] == fallbacks[slot]

    def test_non_string_and_blank_sections_fall_back(self):
        lines = compose_digest("ts", 42, "", "   ", None).split("\n")
        assert lines[2:5] == ["🌤 Hava: N/A", "🥇 N/A  🥈 N/A", "₿ BTC/ETH: N/A"]
        assert lines[6] == "⚽ Bugün favori maç yok"

    def test_debug_block(self):
        statuses = {
            "open_meteo_weather": "ERR: HTTP 500",
            "stooq_metals": "cache_fallback",
            "coingecko_crypto": "fresh",
        }
        text = compose_digest("ts", "w", "m", "c", "x", statuses=statuses, include_debug=True)
        assert text.endswith(
            "\n\n---\nDEBUG: sources\n"
            "- ❌ open_meteo_weather: ERR: HTTP 500\n"
            "- ✅ stooq_metals: cache_fallback\n"
            "- ✅ coingecko_crypto: fresh"
        )

    def test_debug_block_hidden_by_default(self):
        text = compose_digest("ts", "w", "m", "c", "x", statuses={"a": "fresh"})
        assert "DEBUG" not in text
        assert format_debug_block({})[:3] == ["", "---", "DEBUG: sources"]


class TestDigestBuilder:
    def test_weather_down_others_real(self):
        config = make_config()
        sources = [_stub(WeatherSource, fail=True)] + [_stub(cls) for cls in ADAPTERS[1:]]
        builder = DigestBuilder(config, None, MemoryStore(), clock=fixed_clock(), sources=sources)

        digest = asyncio.run(builder.build())

        assert digest.text.startswith("📌 19.10.2026 Pazartesi 08:00\n")
        assert "🌤 Hava: N/A" in digest.text
        assert REAL["stooq_metals"] in digest.text
        assert REAL["coingecko_crypto"] in digest.text
        assert REAL["espn_matches"] in digest.text
        assert digest.statuses["open_meteo_weather"].startswith("ERR")

    def test_debug_toggle_from_config(self):
        config = make_config(include_debug_sources=True)
        sources = [_stub(cls) for cls in ADAPTERS]
        builder = DigestBuilder(config, None, MemoryStore(), clock=fixed_clock(), sources=sources)
        text = asyncio.run(builder.build()).text
        assert "- ✅ espn_matches: fresh" in text

    def test_default_sources_are_wired(self):
        builder = DigestBuilder(make_config(), None, MemoryStore())
        assert [type(s) for s in builder.sources] == list(ADAPTERS)


class TestBuilderThroughDelivery:
    def test_weather_down_digest_still_sends(self):
        config = make_config()
        sources = [_stub(WeatherSource, fail=True)] + [_stub(cls) for cls in ADAPTERS[1:]]
        builder = DigestBuilder(config, None, MemoryStore(), clock=fixed_clock(), sources=sources)
        store, sender = MemoryStore(), FakeSender()
        service = DeliveryService(config, store, builder, sender, clock=fixed_clock())

        assert asyncio.run(service.run_scheduled()) is Outcome.SENT

        [text] = sender.sent
        lines = text.split("\n")
        assert lines[0] == "📌 19.10.2026 Pazartesi 08:00"
        assert lines[2] == "🌤 Hava: N/A"
        assert lines[3] == REAL["stooq_metals"]
        assert lines[4] == REAL["coingecko_crypto"]
        assert "\n".join(lines[6:]) == REAL["espn_matches"]
        assert asyncio.run(store.exists(sent_key("20261019")))
