"""Daily Digest — Telegram Notifier.

Delivers the digest to one chat through the Bot API sendMessage method.
The send goes over httpx so every 429 can be inspected at the wire level
(JSON body, Retry-After header, raw text) and retried within hard bounds.
python-telegram-bot is used for the startup getMe token check.
"""

from __future__ import annotations

import asyncio
import json
import math
import re
from typing import Any, Awaitable, Callable, Mapping, Optional

import httpx
from telegram import Bot

from daily_digest.config import DeliveryConfig, TelegramConfig
from daily_digest.errors import RateLimitExceededError, SendError
from daily_digest.utils.logger import get_logger, mask_token

logger = get_logger(__name__)

Sleep = Callable[[float], Awaitable[Any]]

_RETRY_AFTER_IN_BODY = re.compile(r'retry_after"\s*:\s*(\d+)', re.IGNORECASE)
_WAIT_BUFFER_SECONDS = 1.0
_BODY_PREVIEW = 300


def _positive(value: Any) -> Optional[float]:
    """Return value as a positive finite float, else None."""
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(number) or number <= 0:
        return None
    return number


def extract_retry_after(
    headers: Mapping[str, str],
    body_text: str,
    data: Any,
    default: float = 5.0,
) -> float:
    """Work out how long Telegram wants us to wait after a 429.

    Precedence:
      1. ``parameters.retry_after`` (or a top-level ``retry_after``) in the JSON body
      2. the ``Retry-After`` response header
      3. a ``retry_after": N`` match in the raw body text
      4. ``default``

    Args:
        headers: Response headers (case-insensitive mapping).
        body_text: Raw response body.
        data: Parsed JSON body, or anything else if parsing failed.
        default: Fallback wait in seconds.

    Returns:
        Wait hint in seconds, always positive.
    """
    if isinstance(data, dict):
        parameters = data.get("parameters")
        if isinstance(parameters, dict):
            hint = _positive(parameters.get("retry_after"))
            if hint is not None:
                return hint
        hint = _positive(data.get("retry_after"))
        if hint is not None:
            return hint

    hint = _positive(headers.get("Retry-After"))
    if hint is not None:
        return hint

    match = _RETRY_AFTER_IN_BODY.search(body_text or "")
    if match:
        hint = _positive(match.group(1))
        if hint is not None:
            return hint

    return default


def _parse_body(body_text: str) -> Any:
    if not body_text:
        return {}
    try:
        return json.loads(body_text)
    except ValueError:
        return {}


class TelegramNotifier:
    """Async Telegram sender with bounded 429 retry.

    Attributes:
        config: TelegramConfig with bot_token and chat_id.
        delivery: DeliveryConfig holding the retry bounds.
        total_sent: Messages delivered this session.
    """

    def __init__(
        self,
        config: TelegramConfig,
        delivery: DeliveryConfig,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        """Initialize the notifier.

        Args:
            config: TelegramConfig from the app configuration.
            delivery: DeliveryConfig from the app configuration.
            transport: Optional httpx transport (tests use MockTransport).
            sleep: Awaitable sleep used between 429 retries.
        """
        self.config = config
        self.delivery = delivery
        self.total_sent: int = 0
        self._transport = transport
        self._sleep = sleep
        self._client: Optional[httpx.AsyncClient] = None
        self._bot: Optional[Bot] = None

    @property
    def send_url(self) -> str:
        base = self.config.api_base_url.rstrip("/")
        return f"{base}/bot{self.config.bot_token}/sendMessage"

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(self.config.timeout_seconds),
                transport=self._transport,
            )
        return self._client

    async def initialize(self) -> bool:
        """Test the bot connection.

        Calls getMe to verify the token is valid. A failure is logged,
        not raised: the first real send reports the problem again.

        Returns:
            True if connected successfully, False otherwise.
        """
        if not self.config.bot_token:
            logger.error("Telegram bot token is not configured")
            return False
        try:
            if self._bot is None:
                self._bot = Bot(token=self.config.bot_token)
            me = await self._bot.get_me()
            logger.info("Telegram bot connected: @%s", me.username)
            return True
        except Exception as e:
            logger.error("Telegram bot connection failed: %s", mask_token(str(e)))
            return False

    async def send(self, text: str) -> None:
        """Send one message to the configured chat.

        Retries only on HTTP 429, waiting the server's hint plus one
        second, for at most ``send_max_attempts`` attempts and at most
        ``send_max_total_wait_seconds`` of cumulative waiting.

        Args:
            text: HTML message text.

        Raises:
            ConfigurationError: If the bot token or chat id is missing.
            RateLimitExceededError: If the retry bounds are exhausted.
            SendError: On any other failure (not retried).
        """
        self.config.require_credentials()

        payload = {
            "chat_id": self.config.chat_id,
            "text": text,
            "parse_mode": self.config.parse_mode,
            "disable_web_page_preview": self.config.disable_web_page_preview,
        }
        client = self._get_client()
        max_attempts = max(1, self.delivery.send_max_attempts)
        total_wait = 0.0
        retry_after: Optional[float] = None

        for attempt in range(1, max_attempts + 1):
            try:
                resp = await client.post(self.send_url, json=payload)
            except httpx.HTTPError as e:
                raise SendError(
                    mask_token(f"Telegram request failed: {type(e).__name__}: {e}")
                ) from e

            body_text = resp.text
            data = _parse_body(body_text)
            app_ok = not (isinstance(data, dict) and data.get("ok") is False)

            if resp.is_success and app_ok:
                self.total_sent += 1
                logger.info("Telegram message sent (attempt %d)", attempt)
                return

            if resp.status_code != 429:
                raise SendError(
                    mask_token(
                        f"Telegram error: {resp.status_code} | body: {body_text[:_BODY_PREVIEW]}"
                    ),
                    status_code=resp.status_code,
                    body=body_text[:_BODY_PREVIEW],
                )

            retry_after = extract_retry_after(
                resp.headers, body_text, data,
                default=self.delivery.default_retry_after_seconds,
            )
            wait = retry_after + _WAIT_BUFFER_SECONDS
            if total_wait + wait > self.delivery.send_max_total_wait_seconds:
                raise RateLimitExceededError(
                    f"Telegram 429: retry_after={retry_after:g}s (giving up)",
                    retry_after=retry_after,
                )
            if attempt == max_attempts:
                break

            total_wait += wait
            logger.warning(
                "Telegram rate limited (attempt %d/%d). Waiting %.0fs...",
                attempt, max_attempts, wait,
            )
            await self._sleep(wait)

        raise RateLimitExceededError(
            f"Telegram 429: still rate limited after {max_attempts} attempts",
            retry_after=retry_after,
        )

    async def close(self) -> None:
        """Close the HTTP client and the python-telegram-bot session."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None
        if self._bot is not None:
            await self._bot.shutdown()
            self._bot = None
