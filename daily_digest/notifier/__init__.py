"""Daily Digest — Notifier Package.

  - telegram_bot: Bot API sender with bounded 429 retry
"""

from daily_digest.notifier.telegram_bot import TelegramNotifier, extract_retry_after

__all__ = [
    "TelegramNotifier",
    "extract_retry_after",
]
