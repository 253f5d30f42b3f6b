"""Tests for query construction and cache keys."""

from datetime import date

import pytest

from marketgate.core.options.models import OptionType
from marketgate.gateways.fetcher import (
    ActivityQuery,
    BarQuery,
    CancelOrderQuery,
    OptionsChainQuery,
    OptionsOrderRequest,
    OrderQuery,
    OrderRequest,
    QuoteQuery,
)
from marketgate.gateways.protocol import InvalidRequestError, OrderSide, OrderType, TimeInForce


class TestQuoteQuery:
    """Tests for QuoteQuery."""

    def test_normalized_sorted_unique(self) -> None:
        query = QuoteQuery.from_params({"symbols": ["spy", "btc", "AAPL", "BTC/USD"]})

        assert query.symbols == ("AAPL", "BTC/USD", "SPY")
        assert query.stocks == ["AAPL", "SPY"]
        assert query.crypto == ["BTC/USD"]

    def test_stocks_and_crypto_agree_with_classifier(self) -> None:
        query = QuoteQuery.from_params({"symbols": ["ABCUSD", "dogeusd", "SOL-USD", "/USD", "msft"]})

        assert query.stocks == ["ABCUSD", "MSFT"]
        assert query.crypto == ["/USD", "DOGE/USD", "SOL/USD"]
        assert sorted(query.stocks + query.crypto) == list(query.symbols)

    def test_cache_key_independent_of_order(self) -> None:
        a = QuoteQuery.from_params({"symbols": ["AAPL", "ETH"]})
        b = QuoteQuery.from_params({"symbols": "eth/usd,aapl"})

        assert a.cache_key() == b.cache_key() == "quotes:AAPL,ETH/USD"

    def test_requires_symbols(self) -> None:
        with pytest.raises(InvalidRequestError):
            QuoteQuery.from_params({})
        with pytest.raises(InvalidRequestError):
            QuoteQuery.from_params({"symbols": [" "]})


class TestBarQuery:
    """Tests for BarQuery."""

    def test_defaults(self) -> None:
        query = BarQuery.from_params({"symbol": "aapl"})

        assert query.symbol == "AAPL"
        assert query.timeframe == "1Day"
        assert not query.is_crypto

    def test_crypto_detected(self) -> None:
        query = BarQuery.from_params({"symbol": "btc", "timeframe": "1Hour", "start": "2025-01-01"})

        assert query.symbol == "BTC/USD"
        assert query.is_crypto
        assert query.cache_key() == "bars:BTC/USD:1Hour:2025-01-01::"

    def test_explicit_crypto_flag(self) -> None:
        query = BarQuery.from_params({"symbol": "NEWCOIN", "isCrypto": True})
        assert query.symbol == "NEWCOIN/USD"

    def test_invalid_limit(self) -> None:
        with pytest.raises(InvalidRequestError):
            BarQuery.from_params({"symbol": "AAPL", "limit": "many"})
        with pytest.raises(InvalidRequestError):
            BarQuery.from_params({"symbol": "AAPL", "limit": 0})


class TestAccountQueries:
    """Tests for account-level queries."""

    def test_activity_types(self) -> None:
        query = ActivityQuery.from_params({"activity_types": "fill,div"})
        assert query.activity_types == ("DIV", "FILL")
        assert query.cache_key() == "activities:DIV,FILL:50"

    def test_order_query(self) -> None:
        assert OrderQuery.from_params({}).cache_key() == "orders:all:50"
        with pytest.raises(InvalidRequestError):
            OrderQuery.from_params({"status": "weird"})

    @pytest.mark.parametrize("page_size", ["abc", 0, -5, "ten"])
    def test_activity_page_size_validated(self, page_size: object) -> None:
        with pytest.raises(InvalidRequestError, match="page_size"):
            ActivityQuery.from_params({"page_size": page_size})

    @pytest.mark.parametrize("limit", ["abc", 0, -1])
    def test_order_limit_validated(self, limit: object) -> None:
        with pytest.raises(InvalidRequestError, match="limit"):
            OrderQuery.from_params({"limit": limit})

    def test_numeric_strings_accepted(self) -> None:
        assert ActivityQuery.from_params({"page_size": "25"}).page_size == 25
        assert OrderQuery.from_params({"limit": "10"}).limit == 10

    def test_cancel_requires_id(self) -> None:
        assert CancelOrderQuery.from_params({"orderId": "abc"}).order_id == "abc"
        with pytest.raises(InvalidRequestError):
            CancelOrderQuery.from_params({})


class TestOrderRequest:
    """Tests for OrderRequest."""

    def test_crypto_order_is_gtc(self) -> None:
        request = OrderRequest.from_params({"symbol": "BTC/USD", "qty": 0.01, "side": "buy", "type": "market"})

        assert request.is_crypto
        assert request.time_in_force is TimeInForce.GTC

    def test_equity_order_is_day(self) -> None:
        request = OrderRequest.from_params(
            {"symbol": "aapl", "qty": "5", "side": "SELL", "type": "limit", "limitPrice": 200}
        )

        assert request.symbol == "AAPL"
        assert request.side is OrderSide.SELL
        assert request.order_type is OrderType.LIMIT
        assert request.limit_price == 200.0
        assert request.time_in_force is TimeInForce.DAY

    def test_enum_values_accepted(self) -> None:
        request = OrderRequest.from_params({"symbol": "AAPL", "qty": 1, "side": OrderSide.BUY})
        assert request.side is OrderSide.BUY

    @pytest.mark.parametrize(
        "params",
        [
            {"qty": 1, "side": "buy"},
            {"symbol": "AAPL", "qty": 0, "side": "buy"},
            {"symbol": "AAPL", "qty": 1, "side": "hold"},
            {"symbol": "AAPL", "qty": 1, "side": "buy", "type": "limit"},
            {"symbol": "AAPL", "qty": 1, "side": "buy", "type": "stop"},
            {"symbol": "AAPL", "qty": 1, "side": "buy", "stopLoss": -5},
        ],
    )
    def test_invalid(self, params: dict) -> None:
        with pytest.raises(InvalidRequestError):
            OrderRequest.from_params(params)


class TestOptionsQueries:
    """Tests for options chain and order queries."""

    def test_chain_query(self) -> None:
        query = OptionsChainQuery.from_params(
            {"underlying_symbol": "aapl", "expirationDate": "2025-01-31", "type": "call"}
        )

        assert query.underlying == "AAPL"
        assert query.expiration_date == date(2025, 1, 31)
        assert query.option_type is OptionType.CALL
        assert query.cache_key() == "options_chain:AAPL:2025-01-31:call"

    def test_chain_rejects_crypto(self) -> None:
        with pytest.raises(InvalidRequestError):
            OptionsChainQuery.from_params({"underlying": "BTC"})

    def test_chain_bad_date(self) -> None:
        with pytest.raises(InvalidRequestError):
            OptionsChainQuery.from_params({"underlying": "AAPL", "expiration_date": "31/01/2025"})

    def test_options_order_defaults(self) -> None:
        request = OptionsOrderRequest.from_params({"orderSymbol": "AAPL250131C00190000", "limitPrice": 4.4})

        assert request.qty == 1
        assert request.side is OrderSide.BUY
        assert request.order_type is OrderType.LIMIT

    @pytest.mark.parametrize(
        "params",
        [
            {"occ_symbol": "AAPL", "limit_price": 1.0},
            {"occ_symbol": "AAPL250131C00190000"},
            {"occ_symbol": "AAPL250131C00190000", "limit_price": 1.0, "qty": 1.5},
            {"occ_symbol": "AAPL250131C00190000", "limit_price": 1.0, "type": "market"},
        ],
    )
    def test_options_order_invalid(self, params: dict) -> None:
        with pytest.raises(InvalidRequestError):
            OptionsOrderRequest.from_params(params)
