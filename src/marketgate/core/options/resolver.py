"""
Contract Resolver: map an approximate option to the nearest listed contract.

Distance between an approximate contract and a listed candidate:

    strike_distance = |real_strike - approx_strike| / underlying_price
    time_distance   = |real_days - approx_days| / 45
    distance        = 2 * strike_distance + time_distance

Only candidates of the same option type are considered. Ties on distance go
to the smaller strike distance, then to the lexicographically smallest
identifier, so results never depend on chain iteration order.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from datetime import date

from marketgate.core.options.models import (
    ApproxContract,
    ContractSnapshot,
    ResolvedContract,
)
from marketgate.core.options.symbols import (
    OccComponents,
    UnparsableIdentifierError,
    decode_occ_symbol,
)


logger = logging.getLogger(__name__)


STRIKE_WEIGHT = 2.0
TIME_SCALE_DAYS = 45.0


def days_until(expiry: date, today: date) -> int:
    """Calendar days to expiry, never below one."""
    return max(1, (expiry - today).days)


def contract_distance(
    approx: ApproxContract,
    strike: float,
    days_to_expiry: int,
    underlying_price: float,
) -> tuple[float, float]:
    """
    Weighted distance from ``approx`` to a candidate.

    Returns:
        (distance, strike_distance); the second element feeds the tie-break
    """
    scale = underlying_price if underlying_price > 0 else max(approx.strike, 1.0)
    strike_distance = abs(strike - approx.strike) / scale
    time_distance = abs(days_to_expiry - approx.days_to_expiry) / TIME_SCALE_DAYS
    return STRIKE_WEIGHT * strike_distance + time_distance, strike_distance


def mid_price(snapshot: ContractSnapshot, fallback: float) -> float:
    """Bid/ask midpoint, else last trade, else ``fallback``."""
    if snapshot.bid > 0 and snapshot.ask > 0:
        return (snapshot.bid + snapshot.ask) / 2
    if snapshot.last_price > 0:
        return snapshot.last_price
    return fallback


class ContractResolver:
    """
    Picks the listed contract nearest to an approximate one.

    Example:
        resolver = ContractResolver()
        resolved = resolver.resolve(approx, chain, underlying_price=190.0)
        if resolved.is_live:
            submit(resolved.occ_symbol, limit_price=resolved.ask)
    """

    def __init__(self, today: date | None = None) -> None:
        self._today = today

    def resolve(
        self,
        approx: ApproxContract,
        chain: Mapping[str, ContractSnapshot] | Iterable[ContractSnapshot],
        underlying_price: float,
        today: date | None = None,
    ) -> ResolvedContract:
        """
        Resolve ``approx`` against a chain snapshot.

        Args:
            approx: Approximate contract terms
            chain: Snapshots keyed by OCC identifier, or an iterable of
                snapshots carrying their own identifier
            underlying_price: Current price of the underlying
            today: Reference date for days-to-expiry (defaults to the
                resolver's date, then the UTC date)

        Returns:
            The nearest same-type listed contract, or the approximate
            contract flagged ``is_live=False`` when none exists
        """
        ref = today or self._today or date.today()
        best: tuple[tuple[float, float, str], OccComponents, ContractSnapshot, int] | None = None

        for identifier, snapshot in self._candidates(chain):
            try:
                components = decode_occ_symbol(identifier)
            except UnparsableIdentifierError as e:
                logger.debug("Skipping chain entry: %s", e)
                continue

            if components.option_type is not approx.option_type:
                continue

            days = days_until(components.expiry, ref)
            distance, strike_distance = contract_distance(
                approx, components.strike, days, underlying_price
            )
            key = (distance, strike_distance, identifier)
            if best is None or key < best[0]:
                best = (key, components, snapshot, days)

        if best is None:
            logger.info(
                "No listed %s contracts for %s; returning approximate contract",
                approx.option_type.value,
                approx.underlying,
            )
            return ResolvedContract.from_approx(approx, ref)

        (distance, _, identifier), components, snapshot, days = best
        return ResolvedContract(
            underlying=components.underlying,
            option_type=components.option_type,
            strike=components.strike,
            expiry_date=components.expiry,
            days_to_expiry=days,
            mid_price=mid_price(snapshot, approx.premium),
            is_live=True,
            occ_symbol=identifier,
            bid=snapshot.bid,
            ask=snapshot.ask,
            volume=snapshot.volume,
            open_interest=snapshot.open_interest,
            implied_volatility=snapshot.implied_volatility,
            greeks=snapshot.greeks,
            distance=distance,
        )

    @staticmethod
    def _candidates(
        chain: Mapping[str, ContractSnapshot] | Iterable[ContractSnapshot],
    ) -> Iterable[tuple[str, ContractSnapshot]]:
        if isinstance(chain, Mapping):
            return chain.items()
        return ((snapshot.occ_symbol, snapshot) for snapshot in chain)
