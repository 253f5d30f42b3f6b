"""
Gateway Protocol: canonical records, provenance and error taxonomy.

Defines:
- Quote, Bar, Account, Position, ActivityRecord, Order records
- Order enums shared by providers and the HTTP surface
- GatewayResponse with its provenance tag
- Exception hierarchy rendered as {error, hint} payloads

Performance:
- Uses msgspec.Struct for fast, allocation-light serialization
- Floats throughout; provider strings are parsed once in the normalizers
"""

from __future__ import annotations

from enum import Enum
from typing import Any

import msgspec

from marketgate.core.instruments import AssetType
from marketgate.core.options.symbols import UnparsableIdentifierError


# =============================================================================
# Enums
# =============================================================================


class OrderSide(str, Enum):
    """Order side (buy or sell)."""

    BUY = "buy"
    SELL = "sell"


class OrderType(str, Enum):
    """Order type."""

    MARKET = "market"
    LIMIT = "limit"
    STOP = "stop"
    STOP_LIMIT = "stop_limit"
    TRAILING_STOP = "trailing_stop"


class TimeInForce(str, Enum):
    """Time-in-force as the trading API spells it."""

    DAY = "day"  # Expires at the close
    GTC = "gtc"  # Good till cancelled
    IOC = "ioc"  # Immediate or cancel
    FOK = "fok"  # Fill or kill


class OrderClass(str, Enum):
    """Order class: a single order or one with attached exit legs."""

    SIMPLE = "simple"
    BRACKET = "bracket"  # Entry + take-profit + stop-loss
    OTO = "oto"  # Entry + one exit leg


class Provenance(str, Enum):
    """Where a response's data came from."""

    LIVE = "live"  # Primary provider, this request
    CACHED = "cached"  # Fresh cache entry
    STALE = "stale"  # Expired-but-usable cache entry or degraded default
    DELAYED = "delayed"  # Fallback provider


# =============================================================================
# Market Data Records
# =============================================================================


class Quote(msgspec.Struct, frozen=True, gc=False, kw_only=True):
    """
    Latest quote for one instrument.

    ``change_percent`` is ``change / previous_close * 100`` when
    ``previous_close > 0``, else 0.
    """

    symbol: str
    last_price: float
    bid_price: float = 0.0
    ask_price: float = 0.0
    bid_size: float = 0.0
    ask_size: float = 0.0
    last_size: float = 0.0
    previous_close: float = 0.0
    change: float = 0.0
    change_percent: float = 0.0
    timestamp: str | None = None
    asset_type: AssetType = AssetType.STOCK
    delayed: bool = False

    @property
    def mid(self) -> float:
        if self.bid_price > 0 and self.ask_price > 0:
            return (self.bid_price + self.ask_price) / 2
        return self.last_price


class Bar(msgspec.Struct, frozen=True, gc=False, kw_only=True):
    """OHLCV bar."""

    time: str
    open: float
    high: float
    low: float
    close: float
    volume: float = 0.0
    trade_count: int | None = None
    vwap: float | None = None


# =============================================================================
# Account Records
# =============================================================================


class Account(msgspec.Struct, frozen=True, gc=False, kw_only=True):
    """Brokerage account summary."""

    id: str
    account_number: str = ""
    status: str = ""
    currency: str = "USD"
    equity: float = 0.0
    last_equity: float = 0.0
    cash: float = 0.0
    buying_power: float = 0.0
    portfolio_value: float = 0.0
    day_pl: float = 0.0
    day_pl_percent: float = 0.0
    pattern_day_trader: bool = False
    trading_blocked: bool = False


class Position(msgspec.Struct, frozen=True, gc=False, kw_only=True):
    """Open position."""

    symbol: str
    qty: float
    side: str = "long"
    avg_entry_price: float = 0.0
    current_price: float = 0.0
    market_value: float = 0.0
    cost_basis: float = 0.0
    unrealized_pl: float = 0.0
    unrealized_pl_percent: float = 0.0
    asset_class: str = "us_equity"
    asset_type: AssetType = AssetType.STOCK


class ActivityRecord(msgspec.Struct, frozen=True, gc=False, kw_only=True):
    """Account activity (fill, dividend, transfer, ...)."""

    id: str
    activity_type: str
    transaction_time: str | None = None
    symbol: str | None = None
    side: str | None = None
    qty: float | None = None
    price: float | None = None
    net_amount: float | None = None
    description: str | None = None
    status: str | None = None


class OrderLeg(msgspec.Struct, frozen=True, gc=False, kw_only=True):
    """Exit leg attached to a bracket/OTO order."""

    id: str
    order_type: str
    side: str
    status: str
    limit_price: float | None = None
    stop_price: float | None = None


class Order(msgspec.Struct, frozen=True, gc=False, kw_only=True):
    """Order as acknowledged or reported by the trading API."""

    id: str
    symbol: str
    qty: float
    side: str
    order_type: str
    time_in_force: str
    status: str
    client_order_id: str = ""
    filled_qty: float = 0.0
    order_class: str = ""
    limit_price: float | None = None
    stop_price: float | None = None
    filled_avg_price: float | None = None
    submitted_at: str | None = None
    created_at: str | None = None
    asset_class: str = "us_equity"
    legs: list[OrderLeg] = msgspec.field(default_factory=list)

    @property
    def is_open(self) -> bool:
        return self.status in ("new", "accepted", "pending_new", "partially_filled", "held")


class CancelResult(msgspec.Struct, frozen=True, gc=False):
    """Acknowledgement of a cancel request."""

    id: str
    cancelled: bool = True


# =============================================================================
# Response Envelope
# =============================================================================


class GatewayResponse(msgspec.Struct, kw_only=True):
    """
    Result of one routed operation.

    Callers must surface ``provenance`` to the end user; ``note`` explains
    any degradation.
    """

    operation: str
    data: Any
    provenance: Provenance = Provenance.LIVE
    note: str | None = None

    @property
    def cached(self) -> bool:
        return self.provenance is Provenance.CACHED

    @property
    def stale(self) -> bool:
        return self.provenance is Provenance.STALE

    @property
    def delayed(self) -> bool:
        return self.provenance is Provenance.DELAYED

    def to_dict(self) -> dict[str, Any]:
        """Wire form: data plus flattened provenance flags."""
        return {
            "operation": self.operation,
            "data": msgspec.to_builtins(self.data),
            "provenance": self.provenance.value,
            "cached": self.cached,
            "stale": self.stale,
            "delayed": self.delayed,
            "note": self.note,
        }


# =============================================================================
# Exceptions
# =============================================================================


class GatewayError(Exception):
    """
    Base exception for gateway errors.

    Attributes:
        message: Human-readable error
        hint: Suggested remedy for the end user, if any
    """

    default_hint: str | None = None

    def __init__(self, message: str, hint: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.hint = hint if hint is not None else self.default_hint

    def to_payload(self) -> dict[str, Any]:
        """Structured error payload."""
        payload: dict[str, Any] = {"error": self.message}
        if self.hint:
            payload["hint"] = self.hint
        return payload


class CredentialsRequiredError(GatewayError):
    """Operation needs brokerage credentials and none are configured."""

    default_hint = (
        "Connect your Alpaca account by saving an API key and secret key. "
        "Free paper-trading keys are available at https://app.alpaca.markets"
    )


class MalformedCredentialsError(GatewayError):
    """Credentials contain characters that suggest a copy-paste mistake."""

    default_hint = (
        "Please enter only the key value, not the full variable assignment "
        "(for example PKXXXX, not ALPACA_API_KEY=PKXXXX)."
    )


class UpstreamError(GatewayError):
    """Provider answered with a non-success HTTP status."""

    def __init__(
        self,
        status: int,
        body: str = "",
        message: str | None = None,
        hint: str | None = None,
    ) -> None:
        self.status = status
        self.body = body
        if hint is None and status in (401, 403):
            hint = "The provider rejected your credentials. Check or re-save your Alpaca keys."
        super().__init__(message or f"Upstream request failed with status {status}", hint)

    @property
    def is_server_error(self) -> bool:
        return self.status >= 500

    def to_payload(self) -> dict[str, Any]:
        payload = super().to_payload()
        payload["status"] = self.status
        if self.body:
            payload["body"] = self.body
        return payload


class RateLimitError(UpstreamError):
    """Provider rate limit exceeded (HTTP 429)."""

    def __init__(self, body: str = "", message: str | None = None) -> None:
        super().__init__(
            429,
            body,
            message or "Rate limit exceeded",
            hint="Too many requests. Wait a few seconds and try again.",
        )


class ConnectionError(GatewayError):
    """Provider unreachable or timed out."""

    default_hint = "The market data provider is temporarily unreachable. Try again shortly."


class InvalidRequestError(GatewayError, ValueError):
    """Operation parameters are missing or invalid."""


__all__ = [
    "Account",
    "ActivityRecord",
    "Bar",
    "CancelResult",
    "ConnectionError",
    "CredentialsRequiredError",
    "GatewayError",
    "GatewayResponse",
    "InvalidRequestError",
    "MalformedCredentialsError",
    "Order",
    "OrderClass",
    "OrderLeg",
    "OrderSide",
    "OrderType",
    "Position",
    "Provenance",
    "Quote",
    "RateLimitError",
    "TimeInForce",
    "UnparsableIdentifierError",
    "UpstreamError",
]
