"""Daily Digest — Main Orchestrator.

Ties all components together: config, store, sources, Telegram notifier,
delivery core, the APScheduler timer and the manual-trigger web server.

Each configured crontab fires the scheduled delivery run in a supervised
background task; the job itself returns immediately.

Usage:
    python -m daily_digest.main
    python scripts/run.py
"""

from __future__ import annotations

import asyncio
import signal
import sys
import traceback
from pathlib import Path
from typing import Optional

from aiohttp import web
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger

from daily_digest.config import AppConfig, load_config
from daily_digest.delivery.service import DeliveryService
from daily_digest.digest.composer import DigestBuilder
from daily_digest.notifier.telegram_bot import TelegramNotifier
from daily_digest.sources.client import SourceClient
from daily_digest.store import KeyValueStore, open_store
from daily_digest.utils.logger import get_logger, set_console_level
from daily_digest.utils.tasks import drain_tasks, spawn_supervised
from daily_digest.web.server import create_app, start_server

logger = get_logger(__name__)


class DailyDigest:
    """Main application orchestrator.

    Attributes:
        config: Full application configuration.
        store: Key-value store for locks, markers, pending messages and caches.
        service: Delivery core shared by the timer and the web endpoint.
    """

    def __init__(self, config: Optional[AppConfig] = None) -> None:
        """Initialize with default state. Call start() to run."""
        self.config = config
        self.store: Optional[KeyValueStore] = None
        self.service: Optional[DeliveryService] = None
        self._client: Optional[SourceClient] = None
        self._telegram: Optional[TelegramNotifier] = None
        self._scheduler: Optional[AsyncIOScheduler] = None
        self._runner: Optional[web.AppRunner] = None
        self._running = False

    async def start(self) -> None:
        """Full application startup sequence.

        1. Load config and check Telegram credentials (fatal if missing)
        2. Open the store
        3. Initialize components and verify the bot token
        4. Schedule one cron job per crontab
        5. Start the manual-trigger web server
        6. Enter keep-alive loop
        """
        self._running = True

        try:
            # ── 1. Config ────────────────────────────────
            logger.info("═══ Loading configuration ═══")
            if self.config is None:
                self.config = load_config()
            set_console_level(self.config.log_level)
            self.config.telegram.require_credentials()

            # ── 2. Store ─────────────────────────────────
            logger.info("═══ Opening store ═══")
            self.store = open_store(self.config.store)
            await self.store.initialize()
            logger.info("Store ready: %s", self.config.store.backend)

            # ── 3. Components ────────────────────────────
            logger.info("═══ Initializing components ═══")
            self._client = SourceClient(self.config.sources)
            self._telegram = TelegramNotifier(self.config.telegram, self.config.delivery)
            connected = await self._telegram.initialize()
            if not connected:
                logger.error("Telegram bot connection failed! Continuing anyway...")

            builder = DigestBuilder(self.config, self._client, self.store)
            self.service = DeliveryService(
                self.config, self.store, builder, self._telegram,
            )

            # ── 4. Scheduler ─────────────────────────────
            logger.info("═══ Setting up scheduler ═══")
            tz = self.config.location.tz
            self._scheduler = AsyncIOScheduler(timezone=tz)
            for i, crontab in enumerate(self.config.schedule.crontabs):
                self._scheduler.add_job(
                    self._fire_scheduled,
                    CronTrigger.from_crontab(crontab, timezone=tz),
                    id=f"digest_{i}",
                    max_instances=1,
                    coalesce=True,
                    misfire_grace_time=300,
                    name=f"Daily digest ({crontab})",
                )
            self._scheduler.start()
            logger.info(
                "Scheduler started with %d job(s) in %s",
                len(self.config.schedule.crontabs), self.config.location.timezone,
            )

            # ── 5. Web server ────────────────────────────
            server = self.config.server
            self._runner = await start_server(create_app(self.service), server.host, server.port)

            # ── 6. Keep alive ────────────────────────────
            logger.info("═══ Entering main loop ═══")
            while self._running:
                await asyncio.sleep(1)

        except KeyboardInterrupt:
            logger.info("KeyboardInterrupt received")
        except Exception as e:
            logger.error("Fatal error: %s", e)
            logger.error(traceback.format_exc())
            raise
        finally:
            await self.shutdown()

    async def _fire_scheduled(self) -> None:
        """Cron job: hand the delivery run to a supervised task and return."""
        if self.service is None:
            return
        spawn_supervised(self._run_scheduled(), name="cron")

    async def _run_scheduled(self) -> None:
        """Run the scheduled delivery, logging every failure."""
        try:
            outcome = await self.service.run_scheduled()
            logger.info("cron: finished (%s)", outcome.value)
        except Exception as e:
            logger.error("cron error: %s", e)

    def stop(self) -> None:
        """Ask the keep-alive loop to exit."""
        self._running = False

    async def shutdown(self) -> None:
        """Graceful shutdown: stop scheduler and server, close connections."""
        logger.info("═══ Shutting down ═══")
        self._running = False

        if self._scheduler and self._scheduler.running:
            self._scheduler.shutdown(wait=False)
            logger.info("Scheduler stopped")

        if self._runner is not None:
            await self._runner.cleanup()
            self._runner = None
            logger.info("Web server stopped")

        await drain_tasks()

        for closeable in (self._client, self._telegram, self.store):
            if closeable is None:
                continue
            try:
                await closeable.close()
            except Exception as e:
                logger.warning("Error while closing %s: %s", type(closeable).__name__, e)

        logger.info("Shutdown complete")


def main() -> None:
    """Application entry point."""
    Path("data").mkdir(exist_ok=True)

    app = DailyDigest()

    def _signal_handler(sig, frame):
        logger.info("Signal %s received, shutting down...", sig)
        app.stop()

    signal.signal(signal.SIGINT, _signal_handler)
    signal.signal(signal.SIGTERM, _signal_handler)

    try:
        asyncio.run(app.start())
    except KeyboardInterrupt:
        pass
    except Exception:
        sys.exit(1)


if __name__ == "__main__":
    main()
