"""
Response Normalizer: provider payloads -> canonical records.

Every numeric field from a provider passes through ``to_float`` exactly once,
here. A value that fails to parse becomes 0 (or None for optional fields);
missing data for one symbol never fails a batch.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from typing import Any

from marketgate.core.instruments import AssetType, classify
from marketgate.core.options.models import ContractSnapshot, Greeks
from marketgate.gateways.protocol import (
    Account,
    ActivityRecord,
    Bar,
    Order,
    OrderLeg,
    Position,
    Quote,
)


logger = logging.getLogger(__name__)


# =============================================================================
# Scalars
# =============================================================================


def to_float(value: Any, default: float = 0.0) -> float:
    """Parse a provider number (often a string). Failure yields ``default``."""
    if value is None or isinstance(value, bool):
        return default
    try:
        result = float(value)
    except (TypeError, ValueError):
        return default
    if result != result:  # NaN
        return default
    return result


def optional_float(value: Any) -> float | None:
    """Like ``to_float`` but keeps absence distinguishable from zero."""
    if value is None or value == "":
        return None
    parsed = to_float(value, default=float("nan"))
    return None if parsed != parsed else parsed


def _str(value: Any, default: str = "") -> str:
    return default if value is None else str(value)


def _mapping(value: Any) -> Mapping[str, Any]:
    return value if isinstance(value, Mapping) else {}


# =============================================================================
# Quotes
# =============================================================================


def previous_close(bars: Iterable[Mapping[str, Any]] | None, last_price: float) -> float:
    """
    Reference close for daily change.

    Second-to-last daily bar when two exist, else the only bar, else the
    last price itself (change of zero).
    """
    closes = [to_float(b.get("c")) for b in bars or () if isinstance(b, Mapping)]
    if len(closes) >= 2:
        return closes[-2]
    if closes:
        return closes[0] or last_price
    return last_price


def build_quote(
    symbol: str,
    last_price: float,
    prev_close: float,
    *,
    bid_price: float = 0.0,
    ask_price: float = 0.0,
    bid_size: float = 0.0,
    ask_size: float = 0.0,
    last_size: float = 0.0,
    timestamp: str | None = None,
    asset_type: AssetType | None = None,
    delayed: bool = False,
) -> Quote:
    """Assemble a Quote, deriving change and change percent."""
    change = last_price - prev_close
    change_percent = change / prev_close * 100 if prev_close > 0 else 0.0
    return Quote(
        symbol=symbol,
        last_price=last_price,
        bid_price=bid_price,
        ask_price=ask_price,
        bid_size=bid_size,
        ask_size=ask_size,
        last_size=last_size,
        previous_close=prev_close,
        change=round(change, 6),
        change_percent=round(change_percent, 6),
        timestamp=timestamp,
        asset_type=asset_type or classify(symbol),
        delayed=delayed,
    )


def _latest_quote(
    symbol: str,
    trade: Mapping[str, Any],
    quote: Mapping[str, Any],
    bars: list[Mapping[str, Any]] | None,
    asset_type: AssetType,
) -> Quote:
    last_price = to_float(trade.get("p")) or to_float(quote.get("ap"))
    return build_quote(
        symbol,
        last_price,
        previous_close(bars, last_price),
        bid_price=to_float(quote.get("bp")),
        ask_price=to_float(quote.get("ap")),
        bid_size=to_float(quote.get("bs")),
        ask_size=to_float(quote.get("as")),
        last_size=to_float(trade.get("s")),
        timestamp=trade.get("t") or quote.get("t"),
        asset_type=asset_type,
    )


def _normalize_latest(
    symbols: Iterable[str],
    trades: Any,
    quotes: Any,
    bars: Any,
    asset_type: AssetType,
) -> dict[str, Quote]:
    trade_map = _mapping(_mapping(trades).get("trades"))
    quote_map = _mapping(_mapping(quotes).get("quotes"))
    bar_map = _mapping(_mapping(bars).get("bars"))

    result: dict[str, Quote] = {}
    for symbol in symbols:
        trade = _mapping(trade_map.get(symbol))
        quote = _mapping(quote_map.get(symbol))
        symbol_bars = bar_map.get(symbol)
        if not trade and not quote and not symbol_bars:
            logger.debug("No market data returned for %s", symbol)
            continue
        result[symbol] = _latest_quote(
            symbol,
            trade,
            quote,
            symbol_bars if isinstance(symbol_bars, list) else None,
            asset_type,
        )
    return result


def normalize_stock_quotes(
    symbols: Iterable[str], trades: Any, quotes: Any, bars: Any
) -> dict[str, Quote]:
    """
    Merge latest-trade, latest-quote and daily-bar responses for equities.

    Args:
        symbols: Requested equity tickers
        trades: ``{"trades": {sym: {"p", "s", "t"}}}``
        quotes: ``{"quotes": {sym: {"bp", "ap", "bs", "as", "t"}}}``
        bars: ``{"bars": {sym: [{"c", ...}, ...]}}``

    Returns:
        Quotes keyed by ticker; tickers with no data at all are omitted
    """
    return _normalize_latest(symbols, trades, quotes, bars, AssetType.STOCK)


def normalize_crypto_quotes(
    symbols: Iterable[str], trades: Any, quotes: Any, bars: Any
) -> dict[str, Quote]:
    """Crypto counterpart of ``normalize_stock_quotes`` (pairs like BTC/USD)."""
    return _normalize_latest(symbols, trades, quotes, bars, AssetType.CRYPTO)


def normalize_yahoo_quote(symbol: str, raw: Any) -> Quote | None:
    """
    Quote from a Yahoo chart response.

    Returns:
        Delayed Quote, or None when the response carries no price
    """
    results = _mapping(_mapping(raw).get("chart")).get("result") or []
    if not results or not isinstance(results[0], Mapping):
        return None
    meta = _mapping(results[0].get("meta"))
    last_price = to_float(meta.get("regularMarketPrice"))
    if last_price <= 0:
        return None

    # Daily closes, oldest first; the last one is the current session
    indicators = _mapping(results[0].get("indicators"))
    series = indicators.get("quote")
    series = _mapping(series[0]) if isinstance(series, list) and series else {}
    closes = [c for c in series.get("close") or () if c is not None]
    if len(closes) >= 2:
        prev = to_float(closes[-2])
    else:
        prev = to_float(meta.get("previousClose"))
    market_time = meta.get("regularMarketTime")
    return build_quote(
        symbol,
        last_price,
        prev or last_price,
        bid_price=to_float(meta.get("bid")),
        ask_price=to_float(meta.get("ask")),
        timestamp=None if market_time is None else str(market_time),
        delayed=True,
    )


# =============================================================================
# Bars
# =============================================================================


def normalize_bars(raw: Any) -> list[Bar]:
    """
    Bars in ascending time order.

    Accepts a bar list, ``{"bars": [...]}`` or ``{"bars": {sym: [...]}}``
    (first symbol wins).
    """
    rows: Any = raw
    if isinstance(raw, Mapping):
        rows = raw.get("bars") or []
        if isinstance(rows, Mapping):
            rows = next(iter(rows.values()), [])

    bars = [
        Bar(
            time=_str(row.get("t")),
            open=to_float(row.get("o")),
            high=to_float(row.get("h")),
            low=to_float(row.get("l")),
            close=to_float(row.get("c")),
            volume=to_float(row.get("v")),
            trade_count=int(to_float(row.get("n"))) if row.get("n") is not None else None,
            vwap=optional_float(row.get("vw")),
        )
        for row in rows or ()
        if isinstance(row, Mapping)
    ]
    bars.sort(key=lambda b: b.time)
    return bars


# =============================================================================
# Account
# =============================================================================


def normalize_account(raw: Mapping[str, Any]) -> Account:
    """Account summary with day P&L against ``last_equity``."""
    equity = to_float(raw.get("equity"))
    last_equity = to_float(raw.get("last_equity"))
    day_pl = equity - last_equity
    return Account(
        id=_str(raw.get("id")),
        account_number=_str(raw.get("account_number")),
        status=_str(raw.get("status")),
        currency=_str(raw.get("currency"), "USD"),
        equity=equity,
        last_equity=last_equity,
        cash=to_float(raw.get("cash")),
        buying_power=to_float(raw.get("buying_power")),
        portfolio_value=to_float(raw.get("portfolio_value")) or equity,
        day_pl=round(day_pl, 6),
        day_pl_percent=round(day_pl / last_equity * 100, 6) if last_equity > 0 else 0.0,
        pattern_day_trader=bool(raw.get("pattern_day_trader", False)),
        trading_blocked=bool(raw.get("trading_blocked", False)),
    )


def normalize_position(raw: Mapping[str, Any]) -> Position:
    asset_class = _str(raw.get("asset_class"), "us_equity")
    return Position(
        symbol=_str(raw.get("symbol")),
        qty=to_float(raw.get("qty")),
        side=_str(raw.get("side"), "long"),
        avg_entry_price=to_float(raw.get("avg_entry_price")),
        current_price=to_float(raw.get("current_price")),
        market_value=to_float(raw.get("market_value")),
        cost_basis=to_float(raw.get("cost_basis")),
        unrealized_pl=to_float(raw.get("unrealized_pl")),
        unrealized_pl_percent=to_float(raw.get("unrealized_plpc")) * 100,
        asset_class=asset_class,
        asset_type=AssetType.CRYPTO if asset_class == "crypto" else AssetType.STOCK,
    )


def normalize_positions(raw: Any) -> list[Position]:
    return [normalize_position(p) for p in raw or () if isinstance(p, Mapping)]


def normalize_activity(raw: Mapping[str, Any]) -> ActivityRecord:
    """Trade and non-trade activities share one record shape."""
    return ActivityRecord(
        id=_str(raw.get("id")),
        activity_type=_str(raw.get("activity_type")),
        transaction_time=raw.get("transaction_time") or raw.get("date"),
        symbol=raw.get("symbol"),
        side=raw.get("side"),
        qty=optional_float(raw.get("qty")),
        price=optional_float(raw.get("price")),
        net_amount=optional_float(raw.get("net_amount")),
        description=raw.get("description"),
        status=raw.get("status"),
    )


def normalize_activities(raw: Any) -> list[ActivityRecord]:
    return [normalize_activity(a) for a in raw or () if isinstance(a, Mapping)]


def normalize_order(raw: Mapping[str, Any]) -> Order:
    legs = [
        OrderLeg(
            id=_str(leg.get("id")),
            order_type=_str(leg.get("order_type") or leg.get("type")),
            side=_str(leg.get("side")),
            status=_str(leg.get("status")),
            limit_price=optional_float(leg.get("limit_price")),
            stop_price=optional_float(leg.get("stop_price")),
        )
        for leg in raw.get("legs") or ()
        if isinstance(leg, Mapping)
    ]
    return Order(
        id=_str(raw.get("id")),
        client_order_id=_str(raw.get("client_order_id")),
        symbol=_str(raw.get("symbol")),
        qty=to_float(raw.get("qty")),
        filled_qty=to_float(raw.get("filled_qty")),
        side=_str(raw.get("side")),
        order_type=_str(raw.get("order_type") or raw.get("type")),
        time_in_force=_str(raw.get("time_in_force")),
        status=_str(raw.get("status")),
        order_class=_str(raw.get("order_class")),
        limit_price=optional_float(raw.get("limit_price")),
        stop_price=optional_float(raw.get("stop_price")),
        filled_avg_price=optional_float(raw.get("filled_avg_price")),
        submitted_at=raw.get("submitted_at"),
        created_at=raw.get("created_at"),
        asset_class=_str(raw.get("asset_class"), "us_equity"),
        legs=legs,
    )


def normalize_orders(raw: Any) -> list[Order]:
    return [normalize_order(o) for o in raw or () if isinstance(o, Mapping)]


# =============================================================================
# Options
# =============================================================================


def _greeks(raw: Any) -> Greeks | None:
    data = _mapping(raw)
    if not data:
        return None
    return Greeks(
        delta=to_float(data.get("delta")),
        gamma=to_float(data.get("gamma")),
        theta=to_float(data.get("theta")),
        vega=to_float(data.get("vega")),
        rho=to_float(data.get("rho")),
    )


def normalize_option_snapshot(occ_symbol: str, raw: Mapping[str, Any]) -> ContractSnapshot:
    quote = _mapping(raw.get("latestQuote"))
    trade = _mapping(raw.get("latestTrade"))
    daily = _mapping(raw.get("dailyBar"))
    return ContractSnapshot(
        occ_symbol=occ_symbol,
        bid=to_float(quote.get("bp")),
        ask=to_float(quote.get("ap")),
        bid_size=to_float(quote.get("bs")),
        ask_size=to_float(quote.get("as")),
        last_price=to_float(trade.get("p")),
        volume=to_float(daily.get("v")),
        open_interest=to_float(raw.get("openInterest")),
        implied_volatility=optional_float(raw.get("impliedVolatility")),
        greeks=_greeks(raw.get("greeks")),
    )


def normalize_option_snapshots(raw: Any) -> dict[str, ContractSnapshot]:
    """
    Chain snapshot keyed by OCC identifier.

    Accepts a single page (``{"snapshots": {...}}``) or the bare mapping.
    Identifiers are kept verbatim; validation happens in the resolver.
    """
    data = _mapping(raw)
    snapshots = data.get("snapshots", data)
    return {
        str(occ): normalize_option_snapshot(str(occ), snap)
        for occ, snap in _mapping(snapshots).items()
        if isinstance(snap, Mapping)
    }
