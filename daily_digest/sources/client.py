"""Daily Digest — Async HTTP Client for source adapters.

Thin wrapper over httpx.AsyncClient shared by all source adapters:
  - One User-Agent and timeout for every upstream
  - Non-success status → SourceError with a truncated body
  - No retry here: a failing source falls back in the aggregator
"""

from __future__ import annotations

from typing import Any, Optional

import httpx

from daily_digest.config import SourcesConfig
from daily_digest.errors import SourceError
from daily_digest.utils.logger import get_logger

logger = get_logger(__name__)


class SourceClient:
    """Async GET client for the upstream data providers.

    Attributes:
        config: Sources configuration (user agent, timeout).
        total_requests: Running count of requests issued this session.
    """

    def __init__(
        self,
        config: SourcesConfig,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        """Initialize the client.

        Args:
            config: SourcesConfig loaded from settings.yaml.
            transport: Optional httpx transport (tests use MockTransport).
        """
        self.config = config
        self.total_requests: int = 0
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    def _get_client(self) -> httpx.AsyncClient:
        """Lazily create the httpx.AsyncClient.

        Returns:
            The active async HTTP client.
        """
        if self._client is None:
            self._client = httpx.AsyncClient(
                headers={"User-Agent": self.config.user_agent},
                follow_redirects=True,
                timeout=httpx.Timeout(self.config.timeout_seconds),
                transport=self._transport,
            )
        return self._client

    async def get(
        self,
        url: str,
        params: Optional[dict[str, Any]] = None,
        accept: str = "application/json",
    ) -> httpx.Response:
        """Issue a GET and return the response if its status is 2xx.

        Args:
            url: Request URL.
            params: Optional query parameters.
            accept: Value for the Accept header.

        Returns:
            The successful httpx Response.

        Raises:
            SourceError: On transport errors or non-success status.
        """
        client = self._get_client()
        self.total_requests += 1
        try:
            resp = await client.get(url, params=params, headers={"Accept": accept})
        except httpx.HTTPError as e:
            raise SourceError(f"Request failed for {url}: {type(e).__name__}: {e}") from e

        if not resp.is_success:
            raise SourceError(
                f"HTTP {resp.status_code} for {url} | body: {resp.text[:300]}",
                status_code=resp.status_code,
            )
        return resp

    async def get_json(self, url: str, params: Optional[dict[str, Any]] = None) -> Any:
        """GET and decode a JSON body.

        Raises:
            SourceError: On request failure or invalid JSON.
        """
        resp = await self.get(url, params=params)
        try:
            return resp.json()
        except ValueError as e:
            raise SourceError(f"Invalid JSON from {url}: {e}") from e

    async def get_text(
        self,
        url: str,
        params: Optional[dict[str, Any]] = None,
        accept: str = "text/plain",
    ) -> str:
        """GET and return the body as text."""
        resp = await self.get(url, params=params, accept=accept)
        return resp.text

    async def close(self) -> None:
        """Close the underlying httpx client."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None
            logger.debug("HTTP client closed (total requests: %d)", self.total_requests)

    async def __aenter__(self) -> "SourceClient":
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.close()
