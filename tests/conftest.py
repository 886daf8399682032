"""Daily Digest — shared test fixtures.

Nothing here touches the network or sleeps in real time: HTTP goes
through httpx.MockTransport, clocks and sleeps are injected.
"""

import os
import tempfile

# Keep test runs from writing into the project's logs/ directory.
os.environ.setdefault("DAILY_DIGEST_LOG_DIR", tempfile.mkdtemp(prefix="daily_digest_logs_"))

from dataclasses import replace  # noqa: E402
from datetime import datetime  # noqa: E402
from zoneinfo import ZoneInfo  # noqa: E402

import pytest  # noqa: E402

from daily_digest.config import AppConfig, DeliveryConfig, TelegramConfig  # noqa: E402
from daily_digest.digest.composer import Digest  # noqa: E402
from daily_digest.store.memory import MemoryStore  # noqa: E402

ISTANBUL = ZoneInfo("Europe/Istanbul")
TOKEN = "123456:ABC-def_ghi"
CHAT_ID = "-100200300"


class ManualClock:
    """Monotonic-style clock for store TTLs, advanced by hand."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeSender:
    """Records every send; raises queued errors first, in order."""

    def __init__(self, errors=None) -> None:
        self.sent: list[str] = []
        self.attempts: list[str] = []
        self.errors = list(errors or [])

    async def send(self, text: str) -> None:
        self.attempts.append(text)
        if self.errors:
            raise self.errors.pop(0)
        self.sent.append(text)


class FakeBuilder:
    """Returns digest-1, digest-2, ... so rebuilt messages are distinguishable."""

    def __init__(self) -> None:
        self.calls = 0

    async def build(self) -> Digest:
        self.calls += 1
        return Digest(text=f"digest-{self.calls}", statuses={"weather": "fresh"})


def make_config(**delivery_overrides) -> AppConfig:
    """Default AppConfig with test credentials and optional delivery overrides."""
    return AppConfig(
        telegram=TelegramConfig(bot_token=TOKEN, chat_id=CHAT_ID),
        delivery=replace(DeliveryConfig(), **delivery_overrides),
    )


def fixed_clock(year=2026, month=10, day=19, hour=8, minute=0, tz=ISTANBUL):
    moment = datetime(year, month, day, hour, minute, tzinfo=tz)
    return lambda: moment


@pytest.fixture
def store_clock() -> ManualClock:
    return ManualClock()


@pytest.fixture
def store(store_clock) -> MemoryStore:
    return MemoryStore(clock=store_clock)


@pytest.fixture
def config() -> AppConfig:
    return make_config()
