"""Tests for the delayed fallback provider."""

from collections.abc import Callable

import httpx
import pytest

from marketgate.gateways.protocol import ConnectionError
from marketgate.gateways.providers.yahoo import YahooProvider


def chart(price: float, previous: float) -> dict:
    return {
        "chart": {
            "result": [
                {
                    "meta": {"regularMarketPrice": price, "chartPreviousClose": previous - 5.0},
                    "indicators": {"quote": [{"close": [previous - 2.0, previous, price]}]},
                }
            ],
            "error": None,
        }
    }


class TestYahooProvider:
    """Tests for YahooProvider."""

    @pytest.mark.asyncio
    async def test_quotes_are_delayed(self, make_transport: Callable) -> None:
        transport = make_transport(lambda r: httpx.Response(200, json=chart(510.0, 500.0)))
        yahoo = YahooProvider(transport=transport)

        quotes = await yahoo.get_quotes(["SPY"])

        assert quotes["SPY"].delayed is True
        assert quotes["SPY"].change_percent == pytest.approx(2.0)
        assert transport.requests[0].url.path == "/v8/finance/chart/SPY"

    @pytest.mark.asyncio
    async def test_crypto_symbol_translated(self, make_transport: Callable) -> None:
        transport = make_transport(lambda r: httpx.Response(200, json=chart(100000.0, 99000.0)))
        yahoo = YahooProvider(transport=transport)

        quotes = await yahoo.get_quotes(["BTC/USD"])

        assert "BTC/USD" in quotes
        assert transport.requests[0].url.path == "/v8/finance/chart/BTC-USD"

    @pytest.mark.asyncio
    async def test_failed_symbol_dropped(self, make_transport: Callable) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.path.endswith("/NOPE"):
                return httpx.Response(404, json={"chart": {"result": None}})
            return httpx.Response(200, json=chart(10.0, 10.0))

        yahoo = YahooProvider(transport=make_transport(handler))

        quotes = await yahoo.get_quotes(["AAPL", "NOPE"])

        assert list(quotes) == ["AAPL"]

    @pytest.mark.asyncio
    async def test_all_failed_raises(self, make_transport: Callable) -> None:
        yahoo = YahooProvider(transport=make_transport(lambda r: httpx.Response(503)))

        with pytest.raises(ConnectionError):
            await yahoo.get_quotes(["AAPL", "SPY"])

    @pytest.mark.asyncio
    async def test_empty_chart_is_skipped(self, make_transport: Callable) -> None:
        yahoo = YahooProvider(transport=make_transport(lambda r: httpx.Response(200, json={"chart": {"result": []}})))

        assert await yahoo.get_quotes(["AAPL"]) == {}
