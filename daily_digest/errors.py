"""Daily Digest — Error Types.

Exceptions shared across sources, the Telegram sender and the delivery
core. Lock-held and already-sent-today outcomes are not errors and have
no exception type.
"""

from __future__ import annotations

from typing import Optional


class DigestError(Exception):
    """Base exception for the daily digest service."""


class ConfigurationError(DigestError):
    """Raised when required configuration (e.g. bot credentials) is missing."""


class SourceError(DigestError):
    """Raised by a source adapter when its upstream fetch or parse fails.

    Attributes:
        status_code: Upstream HTTP status, when the failure was a response.
    """

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class SendError(DigestError):
    """Raised when the digest could not be delivered to Telegram.

    Attributes:
        status_code: HTTP status of the last response, if one was received.
        body: First characters of the last response body, for diagnostics.
    """

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        body: str = "",
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class RateLimitExceededError(SendError):
    """Raised when Telegram keeps answering 429 past the retry bounds.

    Attributes:
        retry_after: The last wait hint (seconds) the API gave us.
    """

    def __init__(self, message: str, retry_after: Optional[float] = None) -> None:
        super().__init__(message, status_code=429)
        self.retry_after = retry_after


class DeliveryError(DigestError):
    """Raised by the delivery core when a run could not deliver its message.

    Attributes:
        pending_saved: Whether the undelivered text is persisted as today's
            pending message (so the next run retries it verbatim).
    """

    def __init__(self, message: str, pending_saved: bool) -> None:
        super().__init__(message)
        self.pending_saved = pending_saved
