"""Daily Digest — Utilities (logging, clock, background tasks)."""
