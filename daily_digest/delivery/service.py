"""Daily Digest — Delivery Service.

Drives one trigger invocation through the delivery state machine:

    lock check → pending check → dedupe check → build → send → mark sent

Scheduled runs take the execution lock and honor the daily dedupe.
Manual runs are gated by their own cooldown instead and always deliver
(a pending message first, else a fresh digest). A dry manual run only
builds and returns the text.

A fresh message that fails to send is persisted as today's pending
message. A pending message that fails to send again is left as is.
Neither case triggers a second send within the same run.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Protocol

from daily_digest.config import AppConfig
from daily_digest.delivery import guards
from daily_digest.delivery.pending import clear_pending, load_pending, save_pending
from daily_digest.digest.composer import Digest
from daily_digest.errors import ConfigurationError, DeliveryError
from daily_digest.store.base import KeyValueStore
from daily_digest.utils.clock import Clock, date_key
from daily_digest.utils.logger import get_logger, mask_token

logger = get_logger(__name__)


class Sender(Protocol):
    async def send(self, text: str) -> None: ...


class Builder(Protocol):
    async def build(self) -> Digest: ...


class Outcome(str, Enum):
    """How a trigger invocation ended."""

    SENT = "sent"
    SENT_PENDING = "sent_pending"
    LOCKED = "locked"
    ALREADY_SENT = "already_sent"
    RATE_LIMITED = "rate_limited"
    PREVIEW = "preview"
    FAILED = "failed"


@dataclass(frozen=True)
class RunResult:
    """Result of one invocation.

    Attributes:
        outcome: What happened.
        text: The digest text for previews.
        error: Failure reason for FAILED runs.
        pending_saved: For FAILED runs, whether the message is kept as pending.
    """

    outcome: Outcome
    text: Optional[str] = None
    error: Optional[str] = None
    pending_saved: bool = False


class DeliveryService:
    """Delivery reliability core shared by the timer and the /run endpoint.

    Attributes:
        config: Full application configuration.
        store: Key-value store holding locks, markers and pending messages.
    """

    def __init__(
        self,
        config: AppConfig,
        store: KeyValueStore,
        builder: Builder,
        sender: Sender,
        clock: Optional[Clock] = None,
    ) -> None:
        """Initialize the service.

        Args:
            config: AppConfig (delivery TTLs and toggles, timezone).
            store: Shared key-value store.
            builder: Produces a fresh Digest.
            sender: Delivers message text (raises on failure).
            clock: Optional injected clock for the calendar date.
        """
        self.config = config
        self.store = store
        self.builder = builder
        self.sender = sender
        self.clock = clock

    # ── Helpers ──────────────────────────────────────────

    def _today(self) -> str:
        return date_key(self.config.location.tz, self.clock)

    async def _mark_sent(self, day: str) -> None:
        if self.config.delivery.enable_daily_dedupe:
            await guards.mark_sent(self.store, day, self.config.delivery.sent_marker_ttl_seconds)

    async def _send_pending(self, day: str, pending: str) -> None:
        """Deliver a stored pending message, then clear it and mark the day sent.

        Raises:
            ConfigurationError: If credentials are missing.
            DeliveryError: If the send failed; the pending message stays stored.
        """
        try:
            await self.sender.send(pending)
        except ConfigurationError:
            raise
        except Exception as e:
            raise DeliveryError(
                mask_token(f"Pending send failed: {e}"), pending_saved=True,
            ) from e

        await clear_pending(self.store, day)
        await self._mark_sent(day)
        logger.info("Pending message for %s delivered", day)

    async def _send_fresh(self, day: str, text: str) -> None:
        """Deliver a freshly built message and mark the day sent.

        Raises:
            ConfigurationError: If credentials are missing (nothing persisted).
            DeliveryError: If the send failed; `pending_saved` tells whether
                the message could be persisted for the next run.
        """
        try:
            await self.sender.send(text)
        except ConfigurationError:
            raise
        except Exception as e:
            reason = mask_token(str(e) or type(e).__name__)
            try:
                await save_pending(
                    self.store, day, text, self.config.delivery.pending_ttl_seconds,
                )
            except Exception as store_error:
                logger.error("Could not persist pending message: %s", store_error)
                raise DeliveryError(
                    f"Send failed: {reason} (pending not saved)", pending_saved=False,
                ) from e
            raise DeliveryError(
                f"Send failed: {reason}", pending_saved=True,
            ) from e

        await self._mark_sent(day)
        logger.info("Digest for %s delivered", day)

    # ── Scheduled trigger ────────────────────────────────

    async def run_scheduled(self) -> Outcome:
        """One timer invocation.

        Returns:
            LOCKED, SENT_PENDING, ALREADY_SENT or SENT.

        Raises:
            ConfigurationError: If credentials are missing.
            DeliveryError: If delivery failed (see `pending_saved`).
        """
        delivery = self.config.delivery
        if not await guards.acquire_execution_lock(self.store, delivery.execution_lock_ttl_seconds):
            logger.info("cron: locked (another run in progress) -> skip")
            return Outcome.LOCKED

        day = self._today()

        pending = await load_pending(self.store, day)
        if pending is not None:
            logger.info("cron: pending message found -> retry sending")
            await self._send_pending(day, pending)
            return Outcome.SENT_PENDING

        if delivery.enable_daily_dedupe and await guards.is_sent(self.store, day):
            logger.info("cron: already sent today -> skip")
            return Outcome.ALREADY_SENT

        digest = await self.builder.build()
        await self._send_fresh(day, digest.text)
        logger.info("cron: digest sent")
        return Outcome.SENT

    # ── Manual trigger ───────────────────────────────────

    async def preview(self) -> RunResult:
        """Build the digest without sending or touching any stored state."""
        digest = await self.builder.build()
        return RunResult(Outcome.PREVIEW, text=digest.text)

    async def run_manual(self, dry: bool = False) -> RunResult:
        """One /run invocation. Never raises for delivery failures.

        Args:
            dry: Only build and return the digest text.

        Returns:
            PREVIEW, RATE_LIMITED, SENT_PENDING, SENT or FAILED.
        """
        if dry:
            return await self.preview()

        delivery = self.config.delivery
        if not await guards.acquire_manual_cooldown(self.store, delivery.manual_cooldown_seconds):
            logger.info("manual: rate limited")
            return RunResult(Outcome.RATE_LIMITED)

        day = self._today()
        try:
            pending = await load_pending(self.store, day)
            if pending is not None:
                logger.info("manual: pending message found -> sending it")
                await self._send_pending(day, pending)
                return RunResult(Outcome.SENT_PENDING)

            digest = await self.builder.build()
            await self._send_fresh(day, digest.text)
            logger.info("manual: digest sent")
            return RunResult(Outcome.SENT)

        except DeliveryError as e:
            logger.error("manual: %s", e)
            return RunResult(Outcome.FAILED, error=str(e), pending_saved=e.pending_saved)
        except ConfigurationError as e:
            logger.error("manual: %s", e)
            return RunResult(Outcome.FAILED, error=str(e))
