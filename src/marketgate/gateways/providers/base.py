"""
Base HTTP Provider.

Shared plumbing for upstream REST providers:
- One httpx.AsyncClient per provider with a bounded timeout
- Mapping of transport failures and HTTP statuses onto the gateway's
  error taxonomy (ConnectionError, RateLimitError, UpstreamError)
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Any

import httpx

from marketgate.gateways.protocol import ConnectionError, RateLimitError, UpstreamError


logger = logging.getLogger(__name__)


MAX_ERROR_BODY = 2000


class BaseProvider(ABC):
    """
    Abstract base class for upstream REST providers.

    Example:
        class MyProvider(BaseProvider):
            name = "my-provider"

            async def ping(self) -> Any:
                return await self._get("https://api.example.com/ping")

        async with MyProvider(timeout=5.0) as provider:
            await provider.ping()
    """

    def __init__(
        self,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """
        Initialize provider.

        Args:
            timeout: Per-request timeout in seconds
            transport: Optional httpx transport (tests pass MockTransport)
        """
        self._timeout = timeout
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    # =========================================================================
    # Properties
    # =========================================================================

    @property
    @abstractmethod
    def name(self) -> str:
        """Provider name (e.g., 'alpaca', 'yahoo')."""
        ...

    @property
    def is_connected(self) -> bool:
        return self._client is not None and not self._client.is_closed

    # =========================================================================
    # Lifecycle
    # =========================================================================

    def _ensure_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                timeout=self._timeout,
                headers=self._get_default_headers(),
                transport=self._transport,
            )
            logger.debug("%s HTTP client created", self.name)
        return self._client

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None
            logger.debug("%s HTTP client closed", self.name)

    async def __aenter__(self) -> BaseProvider:
        self._ensure_client()
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()

    # =========================================================================
    # Helper Methods
    # =========================================================================

    def _get_default_headers(self) -> dict[str, str]:
        """Get default HTTP headers."""
        return {
            "Accept": "application/json",
            "User-Agent": "marketgate/0.1",
        }

    async def _request(
        self,
        method: str,
        url: str,
        params: dict[str, Any] | None = None,
        json: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
    ) -> Any:
        """
        Make an HTTP request and decode the JSON response.

        Args:
            method: HTTP method
            url: Absolute URL
            params: Query parameters (None values are dropped)
            json: JSON body
            headers: Additional headers

        Returns:
            Decoded JSON, or None for an empty body

        Raises:
            ConnectionError: On timeouts and transport failures
            RateLimitError: On HTTP 429
            UpstreamError: On any other non-2xx status
        """
        client = self._ensure_client()
        clean_params = {k: v for k, v in (params or {}).items() if v is not None}

        try:
            response = await client.request(
                method=method,
                url=url,
                params=clean_params or None,
                json=json,
                headers=headers,
            )
        except httpx.TimeoutException as e:
            logger.warning("%s %s %s timed out", self.name, method, url)
            raise ConnectionError(f"{self.name} request timed out") from e
        except httpx.TransportError as e:
            logger.warning("%s %s %s failed: %s", self.name, method, url, e)
            raise ConnectionError(f"Failed to reach {self.name}: {e}") from e

        if response.status_code == 429:
            logger.warning("%s rate limited on %s", self.name, url)
            raise RateLimitError(response.text[:MAX_ERROR_BODY], f"{self.name} rate limit exceeded")

        if response.is_error:
            body = response.text[:MAX_ERROR_BODY]
            logger.error("%s %s %s -> %d: %s", self.name, method, url, response.status_code, body)
            raise UpstreamError(
                response.status_code,
                body,
                f"{self.name} request failed with status {response.status_code}",
            )

        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as e:
            raise UpstreamError(
                response.status_code,
                response.text[:MAX_ERROR_BODY],
                f"{self.name} returned invalid JSON",
            ) from e

    async def _get(self, url: str, params: dict[str, Any] | None = None) -> Any:
        return await self._request("GET", url, params=params)

    async def _post(self, url: str, json: dict[str, Any] | None = None) -> Any:
        return await self._request("POST", url, json=json)

    async def _delete(self, url: str) -> Any:
        return await self._request("DELETE", url)
