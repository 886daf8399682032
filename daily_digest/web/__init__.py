"""Daily Digest — Web Package (manual trigger endpoint)."""

from daily_digest.web.server import create_app, start_server

__all__ = ["create_app", "start_server"]
