"""
Yahoo Provider: uncredentialed, delayed quote fallback.

Only latest quotes are available; each symbol is fetched from the chart
endpoint concurrently and symbols that fail are dropped from the batch.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any

import httpx

from marketgate.core.instruments import to_yahoo_symbol
from marketgate.gateways.normalizers import normalize_yahoo_quote
from marketgate.gateways.protocol import ConnectionError, GatewayError, Quote
from marketgate.gateways.providers.base import BaseProvider


logger = logging.getLogger(__name__)


class YahooProvider(BaseProvider):
    """
    Delayed quotes from the Yahoo Finance chart API.

    Example:
        async with YahooProvider() as yahoo:
            quotes = await yahoo.get_quotes(["AAPL", "BTC/USD"])
    """

    def __init__(
        self,
        base_url: str = "https://query1.finance.yahoo.com",
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        super().__init__(timeout=timeout, transport=transport)
        self._base_url = base_url.rstrip("/")

    @property
    def name(self) -> str:
        return "yahoo"

    def _get_default_headers(self) -> dict[str, str]:
        headers = super()._get_default_headers()
        # The chart endpoint rejects requests without a browser-like agent
        headers["User-Agent"] = "Mozilla/5.0 (compatible; marketgate/0.1)"
        return headers

    async def get_chart(self, symbol: str) -> Any:
        return await self._get(
            f"{self._base_url}/v8/finance/chart/{to_yahoo_symbol(symbol)}",
            {"interval": "1d", "range": "5d"},
        )

    async def get_quote(self, symbol: str) -> Quote | None:
        return normalize_yahoo_quote(symbol, await self.get_chart(symbol))

    async def get_quotes(self, symbols: list[str]) -> dict[str, Quote]:
        """
        Delayed quotes keyed by the requested symbol.

        Raises:
            ConnectionError: If every symbol failed
        """
        results = await asyncio.gather(
            *(self.get_quote(symbol) for symbol in symbols),
            return_exceptions=True,
        )

        quotes: dict[str, Quote] = {}
        failures: list[BaseException] = []
        for symbol, result in zip(symbols, results):
            if isinstance(result, GatewayError):
                logger.warning("Fallback quote for %s failed: %s", symbol, result)
                failures.append(result)
            elif isinstance(result, BaseException):
                raise result
            elif result is not None:
                quotes[symbol] = result

        if symbols and not quotes and failures:
            raise ConnectionError(f"Fallback provider returned no quotes for {', '.join(symbols)}") from failures[0]
        return quotes
