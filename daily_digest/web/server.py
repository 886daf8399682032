"""Daily Digest — Manual trigger HTTP server.

aiohttp application exposing:
  GET /              → usage text
  GET /favicon.ico   → 204
  GET /run[?dry=1]   → send now (or preview)
  anything else      → 404
"""

from __future__ import annotations

from aiohttp import web

from daily_digest.delivery.service import DeliveryService, Outcome, RunResult
from daily_digest.utils.logger import get_logger, mask_token

logger = get_logger(__name__)

SERVICE_KEY = web.AppKey("delivery_service", DeliveryService)

USAGE_TEXT = "OK. Use /run to send manually. /run?dry=1 to preview."


def _run_response(result: RunResult, cooldown_seconds: int) -> web.Response:
    if result.outcome is Outcome.PREVIEW:
        return web.Response(text=result.text or "", content_type="text/plain")
    if result.outcome is Outcome.SENT:
        return web.Response(text="Manual run OK")
    if result.outcome is Outcome.SENT_PENDING:
        return web.Response(text="Manual run OK (sent pending)")
    if result.outcome is Outcome.RATE_LIMITED:
        return web.Response(
            status=429, text=f"Rate limited: try again in ~{cooldown_seconds}s",
        )

    note = (
        "digest kept as pending for the next run"
        if result.pending_saved
        else "digest not kept as pending"
    )
    return web.Response(
        status=500, text=f"Manual run failed: {result.error}\n({note})",
    )


async def handle_index(request: web.Request) -> web.Response:
    return web.Response(text=USAGE_TEXT)


async def handle_favicon(request: web.Request) -> web.Response:
    return web.Response(status=204)


async def handle_run(request: web.Request) -> web.Response:
    """Run the delivery flow once; `dry=1` only previews the digest."""
    service = request.app[SERVICE_KEY]
    dry = request.query.get("dry") == "1"
    logger.info("Manual /run requested (dry=%s) from %s", dry, request.remote)
    result = await service.run_manual(dry=dry)
    return _run_response(result, service.config.delivery.manual_cooldown_seconds)


async def handle_not_found(request: web.Request) -> web.Response:
    return web.Response(status=404, text="Not found")


@web.middleware
async def error_middleware(request: web.Request, handler) -> web.StreamResponse:
    """Turn any unhandled exception into a plain 500 response."""
    try:
        return await handler(request)
    except web.HTTPException:
        raise
    except Exception as e:
        logger.exception("Unhandled error on %s %s", request.method, request.path)
        return web.Response(
            status=500, text=mask_token(f"Manual run failed: {type(e).__name__}: {e}"),
        )


def create_app(service: DeliveryService) -> web.Application:
    """Build the aiohttp application bound to a delivery service."""
    app = web.Application(middlewares=[error_middleware])
    app[SERVICE_KEY] = service
    app.router.add_get("/", handle_index)
    app.router.add_get("/favicon.ico", handle_favicon)
    app.router.add_get("/run", handle_run)
    app.router.add_route("*", "/{tail:.*}", handle_not_found)
    return app


async def start_server(app: web.Application, host: str, port: int) -> web.AppRunner:
    """Start serving `app` and return the runner (call runner.cleanup() to stop)."""
    runner = web.AppRunner(app, access_log=None)
    await runner.setup()
    site = web.TCPSite(runner, host, port)
    await site.start()
    logger.info("Manual trigger listening on http://%s:%d", host, port)
    return runner
