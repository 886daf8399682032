"""Daily Digest — Tests for the manual-trigger HTTP endpoints."""

import asyncio

from aiohttp import test_utils

from conftest import FakeBuilder, FakeSender, fixed_clock, make_config
from daily_digest.delivery import DeliveryService
from daily_digest.delivery.keys import pending_key
from daily_digest.errors import SendError
from daily_digest.store.memory import MemoryStore
from daily_digest.web.server import USAGE_TEXT, create_app


class BrokenBuilder:
    async def build(self):
        raise RuntimeError("boom")


def _service(store=None, sender=None, builder=None):
    return DeliveryService(
        make_config(),
        store or MemoryStore(),
        builder or FakeBuilder(),
        sender or FakeSender(),
        clock=fixed_clock(),
    )


def _call(service, *requests):
    """Issue (method, path) requests in order; return (status, body, content type) tuples."""

    async def scenario():
        async with test_utils.TestClient(test_utils.TestServer(create_app(service))) as client:
            results = []
            for method, path in requests:
                resp = await client.request(method, path)
                results.append((resp.status, await resp.text(), resp.content_type))
            return results

    return asyncio.run(scenario())


class TestStaticRoutes:
    def test_index(self):
        [(status, body, _)] = _call(_service(), ("GET", "/"))
        assert status == 200
        assert body == USAGE_TEXT

    def test_favicon(self):
        [(status, body, _)] = _call(_service(), ("GET", "/favicon.ico"))
        assert status == 204
        assert body == ""

    def test_unknown_paths(self):
        results = _call(_service(), ("GET", "/nope"), ("POST", "/x/y"))
        assert [r[0] for r in results] == [404, 404]
        assert results[0][1] == "Not found"


class TestRunRoute:
    def test_dry_run_returns_plain_text_preview(self):
        sender = FakeSender()
        [(status, body, content_type)] = _call(_service(sender=sender), ("GET", "/run?dry=1"))
        assert status == 200
        assert body == "digest-1"
        assert content_type == "text/plain"
        assert sender.attempts == []

    def test_send_then_rate_limited(self):
        sender = FakeSender()
        results = _call(_service(sender=sender), ("GET", "/run"), ("GET", "/run"))
        assert results[0][:2] == (200, "Manual run OK")
        assert results[1][:2] == (429, "Rate limited: try again in ~60s")
        assert sender.attempts == ["digest-1"]

    def test_sent_pending(self):
        store = MemoryStore()
        asyncio.run(store.put(pending_key("20261019"), "original", 3600))
        [(status, body, _)] = _call(_service(store=store), ("GET", "/run"))
        assert (status, body) == (200, "Manual run OK (sent pending)")

    def test_send_failure(self):
        sender = FakeSender(errors=[SendError("Telegram error: 403 | body: blocked")])
        [(status, body, _)] = _call(_service(sender=sender), ("GET", "/run"))
        assert status == 500
        assert body.startswith("Manual run failed: Send failed: Telegram error: 403")
        assert "kept as pending" in body

    def test_unexpected_error_becomes_500(self):
        [(status, body, _)] = _call(_service(builder=BrokenBuilder()), ("GET", "/run?dry=1"))
        assert status == 500
        assert body == "Manual run failed: RuntimeError: boom"
