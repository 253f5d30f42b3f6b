"""
Alpaca Provider: credentialed primary source for market data and trading.

Endpoints used:
- Stocks data:   {data_url}/v2/stocks/...
- Crypto data:   {data_url}/v1beta3/crypto/us/...
- Options data:  {data_url}/v1beta1/options/snapshots/{underlying}
- Trading:       {base_url}/v2/account, /v2/positions, /v2/orders, ...

Methods return decoded JSON; normalization happens in the fetchers.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Any

import httpx

from marketgate.gateways.credentials import AlpacaConfig
from marketgate.gateways.fetcher import OptionsChainQuery, OptionsOrderRequest, OrderRequest
from marketgate.gateways.protocol import OrderClass, OrderType, TimeInForce
from marketgate.gateways.providers.base import BaseProvider


logger = logging.getLogger(__name__)


# Days of daily bars requested to find the previous close across weekends/holidays
DAILY_BAR_LOOKBACK_DAYS = 7
SNAPSHOT_PAGE_LIMIT = 1000


def build_order_payload(request: OrderRequest) -> dict[str, Any]:
    """
    Order body for POST /v2/orders.

    Crypto: time_in_force "gtc", never any exit legs. Equities: "day";
    both exits -> bracket, one exit -> OTO.
    """
    payload: dict[str, Any] = {
        "symbol": request.symbol,
        "qty": str(request.qty),
        "side": request.side.value,
        "type": request.order_type.value,
        "time_in_force": request.time_in_force.value,
    }
    if request.limit_price is not None and request.order_type in (OrderType.LIMIT, OrderType.STOP_LIMIT):
        payload["limit_price"] = str(request.limit_price)
    if request.stop_price is not None and request.order_type in (OrderType.STOP, OrderType.STOP_LIMIT):
        payload["stop_price"] = str(request.stop_price)
    if request.client_order_id:
        payload["client_order_id"] = request.client_order_id

    if request.is_crypto:
        if request.stop_loss is not None or request.take_profit is not None:
            logger.info("Dropping exit legs from crypto order for %s", request.symbol)
        return payload

    if request.take_profit is not None:
        payload["take_profit"] = {"limit_price": str(request.take_profit)}
    if request.stop_loss is not None:
        payload["stop_loss"] = {"stop_price": str(request.stop_loss)}
    if request.take_profit is not None and request.stop_loss is not None:
        payload["order_class"] = OrderClass.BRACKET.value
    elif request.take_profit is not None or request.stop_loss is not None:
        payload["order_class"] = OrderClass.OTO.value
    return payload


def build_options_order_payload(request: OptionsOrderRequest) -> dict[str, Any]:
    """Order body for a single-leg option limit order."""
    return {
        "symbol": request.occ_symbol,
        "qty": str(request.qty),
        "side": request.side.value,
        "type": request.order_type.value,
        "limit_price": str(request.limit_price),
        "time_in_force": TimeInForce.DAY.value,
    }


class AlpacaProvider(BaseProvider):
    """
    Alpaca REST client.

    Example:
        config = AlpacaConfig(credentials=AlpacaCredentials("PK...", "..."))
        async with AlpacaProvider(config) as alpaca:
            account = await alpaca.get_account()
    """

    def __init__(
        self,
        config: AlpacaConfig,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        super().__init__(timeout=config.timeout, transport=transport)
        self._config = config

    @property
    def name(self) -> str:
        return "alpaca"

    @property
    def config(self) -> AlpacaConfig:
        return self._config

    def _get_default_headers(self) -> dict[str, str]:
        headers = super()._get_default_headers()
        headers.update(self._config.credentials.headers)
        headers.update(self._config.extra_headers)
        return headers

    def _data(self, path: str) -> str:
        return f"{self._config.data_url}{path}"

    def _trading(self, path: str) -> str:
        return f"{self._config.base_url}{path}"

    @staticmethod
    def _lookback_start() -> str:
        start = datetime.now(timezone.utc) - timedelta(days=DAILY_BAR_LOOKBACK_DAYS)
        return start.strftime("%Y-%m-%d")

    # =========================================================================
    # Stock Data
    # =========================================================================

    async def get_stock_latest_trades(self, symbols: list[str]) -> Any:
        return await self._get(
            self._data("/v2/stocks/trades/latest"),
            {"symbols": ",".join(symbols), "feed": self._config.data_feed},
        )

    async def get_stock_latest_quotes(self, symbols: list[str]) -> Any:
        return await self._get(
            self._data("/v2/stocks/quotes/latest"),
            {"symbols": ",".join(symbols), "feed": self._config.data_feed},
        )

    async def get_stock_daily_bars(self, symbols: list[str]) -> Any:
        """Last week of daily bars per symbol (previous-close source)."""
        return await self._get(
            self._data("/v2/stocks/bars"),
            {
                "symbols": ",".join(symbols),
                "timeframe": "1Day",
                "start": self._lookback_start(),
                "feed": self._config.data_feed,
                "adjustment": "raw",
            },
        )

    async def get_stock_bars(
        self,
        symbol: str,
        timeframe: str,
        start: str | None = None,
        end: str | None = None,
        limit: int | None = None,
    ) -> Any:
        return await self._get(
            self._data(f"/v2/stocks/{symbol}/bars"),
            {
                "timeframe": timeframe,
                "start": start,
                "end": end,
                "limit": limit,
                "feed": self._config.data_feed,
                "adjustment": "raw",
            },
        )

    # =========================================================================
    # Crypto Data
    # =========================================================================

    async def get_crypto_latest_trades(self, symbols: list[str]) -> Any:
        return await self._get(
            self._data("/v1beta3/crypto/us/latest/trades"),
            {"symbols": ",".join(symbols)},
        )

    async def get_crypto_latest_quotes(self, symbols: list[str]) -> Any:
        return await self._get(
            self._data("/v1beta3/crypto/us/latest/quotes"),
            {"symbols": ",".join(symbols)},
        )

    async def get_crypto_daily_bars(self, symbols: list[str]) -> Any:
        return await self._get(
            self._data("/v1beta3/crypto/us/bars"),
            {"symbols": ",".join(symbols), "timeframe": "1Day", "start": self._lookback_start()},
        )

    async def get_crypto_bars(
        self,
        symbol: str,
        timeframe: str,
        start: str | None = None,
        end: str | None = None,
        limit: int | None = None,
    ) -> Any:
        return await self._get(
            self._data("/v1beta3/crypto/us/bars"),
            {"symbols": symbol, "timeframe": timeframe, "start": start, "end": end, "limit": limit},
        )

    # =========================================================================
    # Options Data
    # =========================================================================

    async def get_option_snapshots(self, query: OptionsChainQuery) -> dict[str, Any]:
        """
        Chain snapshots for an underlying, all pages joined.

        Returns:
            ``{"snapshots": {occ_symbol: snapshot}}``
        """
        snapshots: dict[str, Any] = {}
        params: dict[str, Any] = {
            "feed": self._config.options_feed,
            "limit": SNAPSHOT_PAGE_LIMIT,
            "expiration_date": query.expiration_date.isoformat() if query.expiration_date else None,
            "type": query.option_type.value if query.option_type else None,
        }
        url = self._data(f"/v1beta1/options/snapshots/{query.underlying}")

        for page in range(self._config.options_max_pages):
            data = await self._get(url, params) or {}
            snapshots.update(data.get("snapshots") or {})
            token = data.get("next_page_token")
            if not token:
                break
            params["page_token"] = token
        else:
            logger.warning(
                "Option chain for %s truncated after %d pages",
                query.underlying,
                self._config.options_max_pages,
            )

        return {"snapshots": snapshots}

    # =========================================================================
    # Account
    # =========================================================================

    async def get_account(self) -> Any:
        return await self._get(self._trading("/v2/account"))

    async def get_positions(self) -> Any:
        return await self._get(self._trading("/v2/positions"))

    async def get_activities(self, activity_types: tuple[str, ...] = (), page_size: int = 50) -> Any:
        return await self._get(
            self._trading("/v2/account/activities"),
            {
                "activity_types": ",".join(activity_types) or None,
                "page_size": page_size,
                "direction": "desc",
            },
        )

    async def get_orders(self, status: str = "all", limit: int = 50) -> Any:
        return await self._get(
            self._trading("/v2/orders"),
            {"status": status, "limit": limit, "direction": "desc", "nested": "true"},
        )

    # =========================================================================
    # Trading
    # =========================================================================

    async def submit_order(self, request: OrderRequest) -> Any:
        payload = build_order_payload(request)
        logger.info(
            "Submitting %s %s %s x%s (%s)",
            payload["type"],
            payload["side"],
            payload["symbol"],
            payload["qty"],
            payload.get("order_class", "simple"),
        )
        return await self._post(self._trading("/v2/orders"), payload)

    async def submit_options_order(self, request: OptionsOrderRequest) -> Any:
        payload = build_options_order_payload(request)
        logger.info("Submitting option order %s %s x%s @ %s", payload["side"], payload["symbol"], payload["qty"], payload["limit_price"])
        return await self._post(self._trading("/v2/orders"), payload)

    async def cancel_order(self, order_id: str) -> None:
        await self._delete(self._trading(f"/v2/orders/{order_id}"))
        logger.info("Cancelled order %s", order_id)
