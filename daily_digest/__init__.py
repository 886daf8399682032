"""Daily Digest — scheduled Telegram digest notifier."""

__version__ = "1.0.0"
