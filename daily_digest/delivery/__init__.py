"""Daily Digest — Delivery Package.

  - keys: store key layout
  - guards: execution lock, manual cooldown, sent marker
  - pending: undelivered message persistence
  - service: the state machine driven by both triggers
"""

from daily_digest.delivery.service import DeliveryService, Outcome, RunResult

__all__ = [
    "DeliveryService",
    "Outcome",
    "RunResult",
]
