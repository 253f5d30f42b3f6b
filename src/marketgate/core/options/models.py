"""
Option data models.

Provides:
- OptionType enum
- Greeks and per-contract market snapshot from the provider chain
- ApproxContract: a contract proposed from a model (not necessarily listed)
- ResolvedContract: the listed contract chosen for an approximate one

All structs are immutable; resolved contracts are built per call and never
persisted.
"""

from __future__ import annotations

from datetime import date, timedelta
from enum import Enum

import msgspec


# =============================================================================
# Enums
# =============================================================================


class OptionType(str, Enum):
    """
    Option type (call or put).

    - CALL: Right to buy the underlying at strike price
    - PUT: Right to sell the underlying at strike price
    """

    CALL = "call"
    PUT = "put"


# =============================================================================
# Market Data
# =============================================================================


class Greeks(msgspec.Struct, frozen=True, gc=False):
    """Option sensitivities as reported by the provider."""

    delta: float = 0.0
    gamma: float = 0.0
    theta: float = 0.0
    vega: float = 0.0
    rho: float = 0.0


class ContractSnapshot(msgspec.Struct, frozen=True, gc=False, kw_only=True):
    """
    Latest market data for one listed contract.

    Attributes:
        occ_symbol: OCC identifier as returned by the provider (may be
            malformed; the resolver skips those)
        bid: Latest bid price
        ask: Latest ask price
        last_price: Latest trade price
        volume: Daily volume
        open_interest: Open interest
        implied_volatility: Implied volatility, if reported
        greeks: Greeks, if reported
    """

    occ_symbol: str
    bid: float = 0.0
    ask: float = 0.0
    bid_size: float = 0.0
    ask_size: float = 0.0
    last_price: float = 0.0
    volume: float = 0.0
    open_interest: float = 0.0
    implied_volatility: float | None = None
    greeks: Greeks | None = None


# =============================================================================
# Approximate / Resolved Contracts
# =============================================================================


class ApproxContract(msgspec.Struct, frozen=True, gc=False, kw_only=True):
    """
    A contract described by its terms rather than a listing.

    Produced by pricing models or user input; strikes and expiries need not
    exist on the exchange.
    """

    underlying: str
    option_type: OptionType
    strike: float
    days_to_expiry: int
    premium: float = 0.0
    expiry_date: date | None = None

    def expiry_from(self, today: date) -> date:
        """Expiry date, derived from days_to_expiry when not given."""
        if self.expiry_date is not None:
            return self.expiry_date
        return today + timedelta(days=self.days_to_expiry)


class ResolvedContract(msgspec.Struct, frozen=True, gc=False, kw_only=True):
    """
    The listed contract nearest to an approximate one.

    ``is_live`` is False when no listed contract of the requested type
    existed; every term then equals the approximate contract's.
    """

    underlying: str
    option_type: OptionType
    strike: float
    expiry_date: date
    days_to_expiry: int
    mid_price: float
    is_live: bool
    occ_symbol: str | None = None
    bid: float = 0.0
    ask: float = 0.0
    volume: float = 0.0
    open_interest: float = 0.0
    implied_volatility: float | None = None
    greeks: Greeks | None = None
    distance: float | None = None

    @classmethod
    def from_approx(cls, approx: ApproxContract, today: date) -> ResolvedContract:
        """Echo an approximate contract back, flagged as not live."""
        return cls(
            underlying=approx.underlying,
            option_type=approx.option_type,
            strike=approx.strike,
            expiry_date=approx.expiry_from(today),
            days_to_expiry=approx.days_to_expiry,
            mid_price=approx.premium,
            is_live=False,
        )

    @property
    def spread(self) -> float:
        if self.bid > 0 and self.ask > 0:
            return self.ask - self.bid
        return 0.0
