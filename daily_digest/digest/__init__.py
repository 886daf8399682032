"""Daily Digest — Digest Package.

  - collect: fault-isolated concurrent source fetch
  - compose_digest: pure message layout
  - DigestBuilder: sources → aggregator → composer
"""

from daily_digest.digest.aggregator import Collected, collect
from daily_digest.digest.composer import Digest, DigestBuilder, compose_digest

__all__ = [
    "Collected",
    "Digest",
    "DigestBuilder",
    "collect",
    "compose_digest",
]
