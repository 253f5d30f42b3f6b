"""
Per-operation fetchers.

One GatewayFetcher per operation kind. Primary fetchers expect an
``AlpacaProvider`` as ``client``; the fallback quote fetcher expects a
``YahooProvider``. ``response_type`` tells the cache how to decode stored
payloads back into records.
"""

from __future__ import annotations

import asyncio
from collections.abc import Mapping
from typing import Any, ClassVar

from marketgate.core.options.models import ContractSnapshot
from marketgate.gateways.fetcher import (
    AccountQuery,
    ActivityQuery,
    BarQuery,
    CancelOrderQuery,
    GatewayFetcher,
    OptionsChainQuery,
    OptionsOrderRequest,
    OrderQuery,
    OrderRequest,
    PositionQuery,
    QuoteQuery,
)
from marketgate.gateways.normalizers import (
    normalize_account,
    normalize_activities,
    normalize_bars,
    normalize_crypto_quotes,
    normalize_option_snapshots,
    normalize_order,
    normalize_orders,
    normalize_positions,
    normalize_stock_quotes,
)
from marketgate.gateways.protocol import (
    Account,
    ActivityRecord,
    Bar,
    CancelResult,
    Order,
    Position,
    Quote,
)
from marketgate.gateways.providers.alpaca import AlpacaProvider
from marketgate.gateways.providers.yahoo import YahooProvider


class AlpacaQuoteFetcher(GatewayFetcher[QuoteQuery, dict[str, Quote]]):
    """
    Latest quotes from Alpaca.

    Stocks and crypto each need three legs (latest trades, latest quotes,
    daily bars); all legs run concurrently.
    """

    response_type: ClassVar[Any] = dict[str, Quote]

    def transform_query(self, params: Mapping[str, Any]) -> QuoteQuery:
        return QuoteQuery.from_params(params)

    async def extract_data(self, query: QuoteQuery, **kwargs: Any) -> dict[str, Any]:
        client: AlpacaProvider = kwargs["client"]
        stocks, crypto = query.stocks, query.crypto

        async def none() -> None:
            return None

        results = await asyncio.gather(
            client.get_stock_latest_trades(stocks) if stocks else none(),
            client.get_stock_latest_quotes(stocks) if stocks else none(),
            client.get_stock_daily_bars(stocks) if stocks else none(),
            client.get_crypto_latest_trades(crypto) if crypto else none(),
            client.get_crypto_latest_quotes(crypto) if crypto else none(),
            client.get_crypto_daily_bars(crypto) if crypto else none(),
        )
        return {
            "stocks": results[0:3],
            "crypto": results[3:6],
        }

    def transform_data(self, query: QuoteQuery, raw: dict[str, Any]) -> dict[str, Quote]:
        quotes: dict[str, Quote] = {}
        if query.stocks:
            quotes.update(normalize_stock_quotes(query.stocks, *raw["stocks"]))
        if query.crypto:
            quotes.update(normalize_crypto_quotes(query.crypto, *raw["crypto"]))
        return quotes


class YahooQuoteFetcher(GatewayFetcher[QuoteQuery, dict[str, Quote]]):
    """Delayed quotes from the fallback provider."""

    response_type: ClassVar[Any] = dict[str, Quote]

    def transform_query(self, params: Mapping[str, Any]) -> QuoteQuery:
        return QuoteQuery.from_params(params)

    async def extract_data(self, query: QuoteQuery, **kwargs: Any) -> dict[str, Quote]:
        client: YahooProvider = kwargs["client"]
        return await client.get_quotes(list(query.symbols))

    def transform_data(self, query: QuoteQuery, raw: dict[str, Quote]) -> dict[str, Quote]:
        return raw


class AlpacaBarFetcher(GatewayFetcher[BarQuery, list[Bar]]):
    response_type: ClassVar[Any] = list[Bar]

    def transform_query(self, params: Mapping[str, Any]) -> BarQuery:
        return BarQuery.from_params(params)

    async def extract_data(self, query: BarQuery, **kwargs: Any) -> Any:
        client: AlpacaProvider = kwargs["client"]
        fetch = client.get_crypto_bars if query.is_crypto else client.get_stock_bars
        return await fetch(query.symbol, query.timeframe, query.start, query.end, query.limit)

    def transform_data(self, query: BarQuery, raw: Any) -> list[Bar]:
        if isinstance(raw, Mapping) and isinstance(raw.get("bars"), Mapping):
            return normalize_bars(raw["bars"].get(query.symbol) or [])
        return normalize_bars(raw)


class AlpacaAccountFetcher(GatewayFetcher[AccountQuery, Account]):
    response_type: ClassVar[Any] = Account

    def transform_query(self, params: Mapping[str, Any]) -> AccountQuery:
        return AccountQuery.from_params(params)

    async def extract_data(self, query: AccountQuery, **kwargs: Any) -> Any:
        return await kwargs["client"].get_account()

    def transform_data(self, query: AccountQuery, raw: Any) -> Account:
        return normalize_account(raw or {})


class AlpacaPositionFetcher(GatewayFetcher[PositionQuery, list[Position]]):
    response_type: ClassVar[Any] = list[Position]

    def transform_query(self, params: Mapping[str, Any]) -> PositionQuery:
        return PositionQuery.from_params(params)

    async def extract_data(self, query: PositionQuery, **kwargs: Any) -> Any:
        return await kwargs["client"].get_positions()

    def transform_data(self, query: PositionQuery, raw: Any) -> list[Position]:
        return normalize_positions(raw)


class AlpacaActivityFetcher(GatewayFetcher[ActivityQuery, list[ActivityRecord]]):
    response_type: ClassVar[Any] = list[ActivityRecord]

    def transform_query(self, params: Mapping[str, Any]) -> ActivityQuery:
        return ActivityQuery.from_params(params)

    async def extract_data(self, query: ActivityQuery, **kwargs: Any) -> Any:
        return await kwargs["client"].get_activities(query.activity_types, query.page_size)

    def transform_data(self, query: ActivityQuery, raw: Any) -> list[ActivityRecord]:
        return normalize_activities(raw)


class AlpacaOrderHistoryFetcher(GatewayFetcher[OrderQuery, list[Order]]):
    response_type: ClassVar[Any] = list[Order]

    def transform_query(self, params: Mapping[str, Any]) -> OrderQuery:
        return OrderQuery.from_params(params)

    async def extract_data(self, query: OrderQuery, **kwargs: Any) -> Any:
        return await kwargs["client"].get_orders(query.status, query.limit)

    def transform_data(self, query: OrderQuery, raw: Any) -> list[Order]:
        return normalize_orders(raw)


class AlpacaSubmitOrderFetcher(GatewayFetcher[OrderRequest, Order]):
    response_type: ClassVar[Any] = Order

    def transform_query(self, params: Mapping[str, Any]) -> OrderRequest:
        return OrderRequest.from_params(params)

    async def extract_data(self, query: OrderRequest, **kwargs: Any) -> Any:
        return await kwargs["client"].submit_order(query)

    def transform_data(self, query: OrderRequest, raw: Any) -> Order:
        return normalize_order(raw or {})


class AlpacaCancelOrderFetcher(GatewayFetcher[CancelOrderQuery, CancelResult]):
    response_type: ClassVar[Any] = CancelResult

    def transform_query(self, params: Mapping[str, Any]) -> CancelOrderQuery:
        return CancelOrderQuery.from_params(params)

    async def extract_data(self, query: CancelOrderQuery, **kwargs: Any) -> Any:
        return await kwargs["client"].cancel_order(query.order_id)

    def transform_data(self, query: CancelOrderQuery, raw: Any) -> CancelResult:
        return CancelResult(id=query.order_id)


class AlpacaOptionsChainFetcher(GatewayFetcher[OptionsChainQuery, dict[str, ContractSnapshot]]):
    response_type: ClassVar[Any] = dict[str, ContractSnapshot]

    def transform_query(self, params: Mapping[str, Any]) -> OptionsChainQuery:
        return OptionsChainQuery.from_params(params)

    async def extract_data(self, query: OptionsChainQuery, **kwargs: Any) -> Any:
        return await kwargs["client"].get_option_snapshots(query)

    def transform_data(self, query: OptionsChainQuery, raw: Any) -> dict[str, ContractSnapshot]:
        return normalize_option_snapshots(raw)


class AlpacaSubmitOptionsOrderFetcher(GatewayFetcher[OptionsOrderRequest, Order]):
    response_type: ClassVar[Any] = Order

    def transform_query(self, params: Mapping[str, Any]) -> OptionsOrderRequest:
        return OptionsOrderRequest.from_params(params)

    async def extract_data(self, query: OptionsOrderRequest, **kwargs: Any) -> Any:
        return await kwargs["client"].submit_options_order(query)

    def transform_data(self, query: OptionsOrderRequest, raw: Any) -> Order:
        return normalize_order(raw or {})
