"""Daily Digest — Tests for the delivery state machine (locks, dedupe, pending)."""

import asyncio
from datetime import timezone

import pytest

from conftest import FakeBuilder, FakeSender, fixed_clock, make_config
from daily_digest.delivery import DeliveryService, Outcome
from daily_digest.delivery.keys import EXECUTION_LOCK, MANUAL_COOLDOWN, pending_key, sent_key
from daily_digest.errors import ConfigurationError, DeliveryError, RateLimitExceededError, SendError
from daily_digest.store.memory import MemoryStore

TODAY = "20261019"


def _service(store, sender=None, builder=None, **delivery):
    return DeliveryService(
        make_config(**delivery),
        store,
        builder or FakeBuilder(),
        sender or FakeSender(),
        clock=fixed_clock(),
    )


class PendingWriteFails(MemoryStore):
    async def put(self, key, value, ttl_seconds):
        if key.startswith("pending/"):
            raise OSError("disk full")
        await super().put(key, value, ttl_seconds)


class TestScheduledRun:
    def test_sends_and_marks_day(self, store):
        sender = FakeSender()
        service = _service(store, sender)

        assert asyncio.run(service.run_scheduled()) is Outcome.SENT

        assert sender.sent == ["digest-1"]
        assert asyncio.run(store.exists(sent_key(TODAY)))
        assert asyncio.run(store.exists(EXECUTION_LOCK))

    def test_lock_held_is_a_complete_no_op(self, store):
        asyncio.run(store.put(EXECUTION_LOCK, "1", 120))
        sender, builder = FakeSender(), FakeBuilder()
        service = _service(store, sender, builder)

        assert asyncio.run(service.run_scheduled()) is Outcome.LOCKED
        assert builder.calls == 0
        assert sender.attempts == []

    def test_lock_expires_by_ttl(self, store, store_clock):
        service = _service(store)
        asyncio.run(service.run_scheduled())

        assert asyncio.run(service.run_scheduled()) is Outcome.LOCKED
        store_clock.advance(121)
        assert asyncio.run(service.run_scheduled()) is Outcome.ALREADY_SENT

    def test_already_sent_today_is_a_no_op(self, store):
        asyncio.run(store.put(sent_key(TODAY), "1", 82800))
        sender, builder = FakeSender(), FakeBuilder()
        service = _service(store, sender, builder)

        assert asyncio.run(service.run_scheduled()) is Outcome.ALREADY_SENT
        assert builder.calls == 0
        assert sender.attempts == []

    def test_dedupe_disabled_sends_again(self, store, store_clock):
        sender = FakeSender()
        service = _service(store, sender, enable_daily_dedupe=False)
        asyncio.run(service.run_scheduled())
        store_clock.advance(121)

        assert asyncio.run(service.run_scheduled()) is Outcome.SENT
        assert sender.sent == ["digest-1", "digest-2"]
        assert not asyncio.run(store.exists(sent_key(TODAY)))

    def test_failed_send_is_kept_as_pending_and_retried_verbatim(self, store, store_clock):
        sender = FakeSender(errors=[RateLimitExceededError("Telegram 429", retry_after=30)])
        builder = FakeBuilder()
        service = _service(store, sender, builder)

        with pytest.raises(DeliveryError) as exc_info:
            asyncio.run(service.run_scheduled())
        assert exc_info.value.pending_saved is True
        assert isinstance(exc_info.value.__cause__, RateLimitExceededError)
        assert asyncio.run(store.get(pending_key(TODAY))) == "digest-1"
        assert not asyncio.run(store.exists(sent_key(TODAY)))

        store_clock.advance(121)
        assert asyncio.run(service.run_scheduled()) is Outcome.SENT_PENDING

        assert sender.sent == ["digest-1"]
        assert builder.calls == 1
        assert asyncio.run(store.get(pending_key(TODAY))) is None
        assert asyncio.run(store.exists(sent_key(TODAY)))

    def test_failed_pending_retry_leaves_pending_untouched(self, store):
        asyncio.run(store.put(pending_key(TODAY), "original", 172800))
        sender = FakeSender(errors=[SendError("Telegram error: 502")])
        builder = FakeBuilder()
        service = _service(store, sender, builder)

        with pytest.raises(DeliveryError) as exc_info:
            asyncio.run(service.run_scheduled())

        assert exc_info.value.pending_saved is True
        assert sender.attempts == ["original"]
        assert builder.calls == 0
        assert asyncio.run(store.get(pending_key(TODAY))) == "original"
        assert not asyncio.run(store.exists(sent_key(TODAY)))

    def test_pending_wins_over_sent_marker(self, store):
        asyncio.run(store.put(sent_key(TODAY), "1", 82800))
        asyncio.run(store.put(pending_key(TODAY), "original", 172800))
        sender = FakeSender()
        service = _service(store, sender)

        assert asyncio.run(service.run_scheduled()) is Outcome.SENT_PENDING
        assert sender.sent == ["original"]

    def test_missing_credentials_are_not_persisted(self, store):
        sender = FakeSender(errors=[ConfigurationError("Missing TELEGRAM_BOT_TOKEN / TELEGRAM_CHAT_ID")])
        service = _service(store, sender)

        with pytest.raises(ConfigurationError):
            asyncio.run(service.run_scheduled())
        assert asyncio.run(store.get(pending_key(TODAY))) is None

    def test_pending_persist_failure_is_reported(self):
        store = PendingWriteFails()
        sender = FakeSender(errors=[SendError("Telegram error: 500")])
        service = _service(store, sender)

        with pytest.raises(DeliveryError, match="pending not saved") as exc_info:
            asyncio.run(service.run_scheduled())
        assert exc_info.value.pending_saved is False

    def test_keys_use_the_configured_timezone(self, store):
        service = DeliveryService(
            make_config(), store, FakeBuilder(), FakeSender(),
            # 22:30 UTC on the 18th is 01:30 on the 19th in Istanbul
            clock=fixed_clock(2026, 10, 18, 22, 30, tz=timezone.utc),
        )
        asyncio.run(service.run_scheduled())
        assert asyncio.run(store.exists(sent_key("20261019")))
        assert not asyncio.run(store.exists(sent_key("20261018")))


class TestManualRun:
    def test_dry_run_touches_no_state(self, store):
        sender = FakeSender()
        service = _service(store, sender)

        result = asyncio.run(service.run_manual(dry=True))

        assert result.outcome is Outcome.PREVIEW
        assert result.text == "digest-1"
        assert sender.attempts == []
        assert store.keys() == []

    def test_second_call_within_cooldown_is_rate_limited(self, store):
        sender = FakeSender()
        service = _service(store, sender)

        async def twice():
            return await service.run_manual(), await service.run_manual()

        first, second = asyncio.run(twice())

        assert first.outcome is Outcome.SENT
        assert second.outcome is Outcome.RATE_LIMITED
        assert sender.attempts == ["digest-1"]

    def test_cooldown_expires(self, store, store_clock):
        service = _service(store, enable_daily_dedupe=False)
        asyncio.run(service.run_manual())
        store_clock.advance(61)
        assert asyncio.run(service.run_manual()).outcome is Outcome.SENT

    def test_rate_limited_run_builds_nothing(self, store):
        asyncio.run(store.put(MANUAL_COOLDOWN, "1", 60))
        builder = FakeBuilder()
        service = _service(store, builder=builder)

        assert asyncio.run(service.run_manual()).outcome is Outcome.RATE_LIMITED
        assert builder.calls == 0

    def test_sends_pending_first(self, store):
        asyncio.run(store.put(pending_key(TODAY), "original", 172800))
        sender = FakeSender()
        service = _service(store, sender)

        result = asyncio.run(service.run_manual())

        assert result.outcome is Outcome.SENT_PENDING
        assert sender.sent == ["original"]
        assert asyncio.run(store.get(pending_key(TODAY))) is None
        assert asyncio.run(store.exists(sent_key(TODAY)))

    def test_manual_send_ignores_sent_marker(self, store):
        asyncio.run(store.put(sent_key(TODAY), "1", 82800))
        sender = FakeSender()
        service = _service(store, sender)

        assert asyncio.run(service.run_manual()).outcome is Outcome.SENT
        assert sender.sent == ["digest-1"]

    def test_failure_is_reported_and_kept_as_pending(self, store):
        sender = FakeSender(errors=[SendError("Telegram error: 400 | body: bad")])
        service = _service(store, sender)

        result = asyncio.run(service.run_manual())

        assert result.outcome is Outcome.FAILED
        assert result.pending_saved is True
        assert "Telegram error: 400" in result.error
        assert asyncio.run(store.get(pending_key(TODAY))) == "digest-1"

    def test_missing_credentials_reported(self, store):
        sender = FakeSender(errors=[ConfigurationError("Missing TELEGRAM_BOT_TOKEN / TELEGRAM_CHAT_ID")])
        service = _service(store, sender)

        result = asyncio.run(service.run_manual())

        assert result.outcome is Outcome.FAILED
        assert result.pending_saved is False
        assert "TELEGRAM_BOT_TOKEN" in result.error
        assert asyncio.run(store.get(pending_key(TODAY))) is None
