"""Daily Digest — Tests for the orchestrator's timer job and startup failure path."""

import asyncio
import logging
from dataclasses import replace

import pytest

from conftest import make_config
from daily_digest.config import TelegramConfig
from daily_digest.delivery import Outcome
from daily_digest.errors import ConfigurationError, DeliveryError
from daily_digest.main import DailyDigest, main


class ScriptedService:
    """Stands in for DeliveryService: returns an outcome or raises."""

    def __init__(self, result):
        self.result = result
        self.calls = 0

    async def run_scheduled(self):
        self.calls += 1
        if isinstance(self.result, Exception):
            raise self.result
        return self.result


class TestScheduledJob:
    def test_failure_is_logged_not_raised(self, caplog):
        app = DailyDigest(make_config())
        app.service = ScriptedService(DeliveryError("Send failed: Telegram error: 502", pending_saved=True))

        with caplog.at_level(logging.ERROR, logger="daily_digest.main"):
            asyncio.run(app._run_scheduled())

        assert app.service.calls == 1
        assert "cron error: Send failed: Telegram error: 502" in caplog.text

    def test_outcome_is_logged(self, caplog):
        app = DailyDigest(make_config())
        app.service = ScriptedService(Outcome.ALREADY_SENT)

        with caplog.at_level(logging.INFO, logger="daily_digest.main"):
            asyncio.run(app._run_scheduled())

        assert "cron: finished (already_sent)" in caplog.text

    def test_fire_without_service_is_a_no_op(self):
        app = DailyDigest(make_config())
        asyncio.run(app._fire_scheduled())
        assert app.service is None


class TestStartup:
    def test_missing_credentials_propagate(self):
        config = replace(make_config(), telegram=TelegramConfig(bot_token="", chat_id=""))
        app = DailyDigest(config)

        with pytest.raises(ConfigurationError):
            asyncio.run(app.start())

        assert app.store is None
        assert app._running is False

    def test_main_exits_nonzero_on_fatal_error(self, monkeypatch, tmp_path):
        async def failing_start(self):
            raise ConfigurationError("Missing TELEGRAM_BOT_TOKEN / TELEGRAM_CHAT_ID")

        monkeypatch.setattr(DailyDigest, "start", failing_start)
        monkeypatch.setattr("daily_digest.main.signal.signal", lambda *args: None)
        monkeypatch.chdir(tmp_path)

        with pytest.raises(SystemExit) as exc_info:
            main()
        assert exc_info.value.code == 1
