"""
GatewayFetcher: Transform-Extract-Transform pipeline for gateway operations.

Each operation is served by a fetcher running three stages:
1. transform_query() - Validate params and build a typed, hashable query
2. extract_data() - Fetch raw payloads from a provider client
3. transform_data() - Normalize raw payloads into canonical records

Usage:
    class QuoteFetcher(GatewayFetcher[QuoteQuery, dict[str, Quote]]):
        def transform_query(self, params: dict) -> QuoteQuery:
            return QuoteQuery.from_params(params)

        async def extract_data(self, query: QuoteQuery, **kwargs) -> Any:
            return await kwargs["client"].latest_quotes(query.symbols)

        def transform_data(self, query: QuoteQuery, raw: Any) -> dict[str, Quote]:
            return raw

    quotes = await QuoteFetcher().fetch(symbols=["AAPL"], client=client)

Query types double as cache-key sources: ``cache_key()`` is deterministic for
equal queries regardless of parameter order.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import date
from typing import Any, ClassVar, Generic, TypeVar

from marketgate.core.instruments import is_crypto, normalize, split_by_asset_type
from marketgate.core.options.models import OptionType
from marketgate.core.options.symbols import UnparsableIdentifierError, decode_occ_symbol
from marketgate.gateways.protocol import (
    InvalidRequestError,
    OrderSide,
    OrderType,
    TimeInForce,
)


# =============================================================================
# Type Variables
# =============================================================================

Q = TypeVar("Q", bound="BaseQuery")  # Query type
R = TypeVar("R")  # Response type


# =============================================================================
# Parameter Helpers
# =============================================================================


def _param(params: Mapping[str, Any], *names: str, default: Any = None) -> Any:
    """First present, non-null value among ``names`` (snake or camel case)."""
    for name in names:
        value = params.get(name)
        if value is not None and value != "":
            return value
    return default


def _required(params: Mapping[str, Any], *names: str) -> Any:
    value = _param(params, *names)
    if value is None:
        raise InvalidRequestError(f"Missing required parameter: {names[0]}")
    return value


def _positive_float(value: Any, name: str) -> float:
    try:
        result = float(value)
    except (TypeError, ValueError) as e:
        raise InvalidRequestError(f"{name} must be a number, got {value!r}") from e
    if result <= 0:
        raise InvalidRequestError(f"{name} must be positive")
    return result


def _optional_price(value: Any, name: str) -> float | None:
    return None if value is None else _positive_float(value, name)


def _positive_int(value: Any, name: str) -> int:
    try:
        result = int(value)
    except (TypeError, ValueError) as e:
        raise InvalidRequestError(f"{name} must be an integer, got {value!r}") from e
    if result <= 0:
        raise InvalidRequestError(f"{name} must be positive")
    return result


def _enum(enum_type: Any, value: Any, name: str) -> Any:
    if isinstance(value, enum_type):
        return value
    try:
        return enum_type(str(value).strip().lower())
    except ValueError as e:
        choices = ", ".join(m.value for m in enum_type)
        raise InvalidRequestError(f"Invalid {name} {value!r}; expected one of {choices}") from e


# =============================================================================
# Query Types (Input)
# =============================================================================


@dataclass(frozen=True)
class BaseQuery:
    """Base class for all query types."""

    def cache_key(self) -> str:
        """Deterministic key for this query's response."""
        raise NotImplementedError(f"{type(self).__name__} is not cacheable")


@dataclass(frozen=True)
class QuoteQuery(BaseQuery):
    """
    Latest quotes for a set of tickers.

    Symbols are normalized, de-duplicated and sorted, so ``["btc", "AAPL"]``
    and ``["AAPL", "BTC/USD"]`` share one cache entry.
    """

    symbols: tuple[str, ...]

    @classmethod
    def from_params(cls, params: Mapping[str, Any]) -> QuoteQuery:
        raw = _required(params, "symbols", "symbol")
        if isinstance(raw, str):
            raw = raw.split(",")
        symbols = sorted({normalize(str(s)) for s in raw if str(s).strip()})
        if not symbols:
            raise InvalidRequestError("At least one symbol is required")
        return cls(symbols=tuple(symbols))

    @property
    def stocks(self) -> list[str]:
        return split_by_asset_type(self.symbols)[0]

    @property
    def crypto(self) -> list[str]:
        return split_by_asset_type(self.symbols)[1]

    def cache_key(self) -> str:
        return "quotes:" + ",".join(self.symbols)


@dataclass(frozen=True)
class BarQuery(BaseQuery):
    """
    Historical bars for one ticker.

    Examples:
        BarQuery(symbol="AAPL", timeframe="1Hour", start="2025-01-02")
        BarQuery(symbol="BTC/USD", timeframe="1Day", limit=30)
    """

    symbol: str
    timeframe: str = "1Day"  # 1Min, 5Min, 15Min, 1Hour, 1Day, 1Week, 1Month
    start: str | None = None
    end: str | None = None
    limit: int | None = None
    is_crypto: bool = False

    @classmethod
    def from_params(cls, params: Mapping[str, Any]) -> BarQuery:
        symbol = normalize(str(_required(params, "symbol")))
        crypto_flag = _param(params, "is_crypto", "isCrypto")
        limit = _param(params, "limit")
        if limit is not None:
            limit = _positive_int(limit, "limit")
        crypto = bool(crypto_flag) if crypto_flag is not None else is_crypto(symbol)
        return cls(
            symbol=normalize(f"{symbol}/USD") if crypto and "/" not in symbol else symbol,
            timeframe=str(_param(params, "timeframe", default="1Day")),
            start=_param(params, "start"),
            end=_param(params, "end"),
            limit=limit,
            is_crypto=crypto,
        )

    def cache_key(self) -> str:
        return f"bars:{self.symbol}:{self.timeframe}:{self.start or ''}:{self.end or ''}:{self.limit or ''}"


@dataclass(frozen=True)
class AccountQuery(BaseQuery):
    """Account summary."""

    @classmethod
    def from_params(cls, params: Mapping[str, Any]) -> AccountQuery:
        return cls()

    def cache_key(self) -> str:
        return "account"


@dataclass(frozen=True)
class PositionQuery(BaseQuery):
    """All open positions."""

    @classmethod
    def from_params(cls, params: Mapping[str, Any]) -> PositionQuery:
        return cls()

    def cache_key(self) -> str:
        return "positions"


@dataclass(frozen=True)
class ActivityQuery(BaseQuery):
    """Recent account activities, optionally filtered by type (FILL, DIV, ...)."""

    activity_types: tuple[str, ...] = ()
    page_size: int = 50

    @classmethod
    def from_params(cls, params: Mapping[str, Any]) -> ActivityQuery:
        types = _param(params, "activity_types", "activityTypes", default=())
        if isinstance(types, str):
            types = types.split(",")
        return cls(
            activity_types=tuple(sorted(str(t).strip().upper() for t in types if str(t).strip())),
            page_size=_positive_int(_param(params, "page_size", "pageSize", default=50), "page_size"),
        )

    def cache_key(self) -> str:
        return f"activities:{','.join(self.activity_types)}:{self.page_size}"


@dataclass(frozen=True)
class OrderQuery(BaseQuery):
    """Order history."""

    status: str = "all"  # open, closed, all
    limit: int = 50

    @classmethod
    def from_params(cls, params: Mapping[str, Any]) -> OrderQuery:
        status = str(_param(params, "status", default="all")).lower()
        if status not in ("open", "closed", "all"):
            raise InvalidRequestError(f"Invalid order status filter: {status}")
        return cls(status=status, limit=_positive_int(_param(params, "limit", default=50), "limit"))

    def cache_key(self) -> str:
        return f"orders:{self.status}:{self.limit}"


@dataclass(frozen=True)
class OrderRequest(BaseQuery):
    """
    New equity or crypto order.

    Crypto orders always go out good-till-cancelled with no exit legs; the
    ``stop_loss``/``take_profit`` fields are ignored for them.
    """

    symbol: str
    qty: float
    side: OrderSide
    order_type: OrderType = OrderType.MARKET
    limit_price: float | None = None
    stop_price: float | None = None
    stop_loss: float | None = None
    take_profit: float | None = None
    client_order_id: str | None = None

    @classmethod
    def from_params(cls, params: Mapping[str, Any]) -> OrderRequest:
        order_type = _enum(OrderType, _param(params, "type", "order_type", default="market"), "order type")
        request = cls(
            symbol=normalize(str(_required(params, "symbol"))),
            qty=_positive_float(_required(params, "qty", "quantity"), "qty"),
            side=_enum(OrderSide, _required(params, "side"), "side"),
            order_type=order_type,
            limit_price=_optional_price(_param(params, "limit_price", "limitPrice"), "limit_price"),
            stop_price=_optional_price(_param(params, "stop_price", "stopPrice"), "stop_price"),
            stop_loss=_optional_price(_param(params, "stop_loss", "stopLoss"), "stop_loss"),
            take_profit=_optional_price(_param(params, "take_profit", "takeProfit"), "take_profit"),
            client_order_id=_param(params, "client_order_id", "clientOrderId"),
        )
        if order_type in (OrderType.LIMIT, OrderType.STOP_LIMIT) and request.limit_price is None:
            raise InvalidRequestError(f"{order_type.value} orders require limit_price")
        if order_type in (OrderType.STOP, OrderType.STOP_LIMIT) and request.stop_price is None:
            raise InvalidRequestError(f"{order_type.value} orders require stop_price")
        return request

    @property
    def is_crypto(self) -> bool:
        return is_crypto(self.symbol)

    @property
    def time_in_force(self) -> TimeInForce:
        return TimeInForce.GTC if self.is_crypto else TimeInForce.DAY


@dataclass(frozen=True)
class CancelOrderQuery(BaseQuery):
    """Cancel one open order."""

    order_id: str

    @classmethod
    def from_params(cls, params: Mapping[str, Any]) -> CancelOrderQuery:
        return cls(order_id=str(_required(params, "order_id", "orderId", "id")))


@dataclass(frozen=True)
class OptionsChainQuery(BaseQuery):
    """Option chain snapshot for one underlying."""

    underlying: str
    expiration_date: date | None = None
    option_type: OptionType | None = None

    @classmethod
    def from_params(cls, params: Mapping[str, Any]) -> OptionsChainQuery:
        underlying = str(_required(params, "underlying", "underlying_symbol", "symbol")).strip().upper()
        if is_crypto(underlying):
            raise InvalidRequestError(f"Options are not available for crypto ({underlying})")
        expiration = _param(params, "expiration_date", "expirationDate")
        if expiration is not None and not isinstance(expiration, date):
            try:
                expiration = date.fromisoformat(str(expiration))
            except ValueError as e:
                raise InvalidRequestError(f"Invalid expiration_date {expiration!r}") from e
        option_type = _param(params, "type", "option_type", "optionType")
        return cls(
            underlying=underlying,
            expiration_date=expiration,
            option_type=None if option_type is None else _enum(OptionType, option_type, "option type"),
        )

    def cache_key(self) -> str:
        expiry = self.expiration_date.isoformat() if self.expiration_date else ""
        kind = self.option_type.value if self.option_type else ""
        return f"options_chain:{self.underlying}:{expiry}:{kind}"


@dataclass(frozen=True)
class OptionsOrderRequest(BaseQuery):
    """Single-leg option order (limit, day)."""

    occ_symbol: str
    limit_price: float
    qty: int = 1
    side: OrderSide = OrderSide.BUY
    order_type: OrderType = OrderType.LIMIT

    @classmethod
    def from_params(cls, params: Mapping[str, Any]) -> OptionsOrderRequest:
        occ_symbol = str(_required(params, "occ_symbol", "occSymbol", "orderSymbol", "symbol")).strip().upper()
        try:
            decode_occ_symbol(occ_symbol)
        except UnparsableIdentifierError as e:
            raise InvalidRequestError(str(e)) from e
        qty = _positive_float(_param(params, "qty", "quantity", default=1), "qty")
        if qty != int(qty):
            raise InvalidRequestError("Option orders require a whole number of contracts")
        order_type = _enum(OrderType, _param(params, "type", "order_type", default="limit"), "order type")
        if order_type is not OrderType.LIMIT:
            raise InvalidRequestError("Option orders must be limit orders")
        return cls(
            occ_symbol=occ_symbol,
            limit_price=_positive_float(_required(params, "limit_price", "limitPrice"), "limit_price"),
            qty=int(qty),
            side=_enum(OrderSide, _param(params, "side", default="buy"), "side"),
            order_type=order_type,
        )


# =============================================================================
# Gateway Fetcher
# =============================================================================


class GatewayFetcher(ABC, Generic[Q, R]):
    """
    Abstract base class for gateway fetchers.

    Implements the 3-stage TET pipeline:
    1. transform_query() - Convert params dict to typed query
    2. extract_data() - Fetch raw data from provider
    3. transform_data() - Normalize to standard response

    Subclasses must implement all three abstract methods.
    """

    # Type the cache decodes stored payloads into
    response_type: ClassVar[Any] = Any

    @abstractmethod
    def transform_query(self, params: Mapping[str, Any]) -> Q:
        """
        Transform input parameters to typed query.

        Args:
            params: Raw parameter mapping

        Returns:
            Typed query object

        Raises:
            InvalidRequestError: If required parameters are missing or invalid
        """
        ...

    @abstractmethod
    async def extract_data(self, query: Q, **kwargs: Any) -> Any:
        """
        Fetch raw data from the provider.

        Args:
            query: Typed query from transform_query()
            **kwargs: Provider client and other call-scoped collaborators

        Returns:
            Raw data from provider

        Raises:
            ConnectionError: If provider is unreachable
            RateLimitError: If rate limit exceeded
            UpstreamError: On any other non-success status
        """
        ...

    @abstractmethod
    def transform_data(self, query: Q, raw: Any) -> R:
        """
        Transform raw data to the canonical response.

        Args:
            query: Original query (for context)
            raw: Raw data from extract_data()

        Returns:
            Normalized response
        """
        ...

    async def fetch(self, **params: Any) -> R:
        """
        Execute the full TET pipeline.

        Keyword arguments that are not query parameters (such as ``client``)
        are forwarded to extract_data().
        """
        client = params.pop("client", None)
        query = self.transform_query(params)
        return await self.fetch_with_query(query, client=client)

    async def fetch_with_query(self, query: Q, **kwargs: Any) -> R:
        """Execute pipeline with a pre-built query."""
        raw = await self.extract_data(query, **kwargs)
        return self.transform_data(query, raw)
