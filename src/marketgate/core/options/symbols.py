"""
OCC option identifier codec.

Identifier layout: ROOT (1-6 letters) + YYMMDD + C|P + strike * 1000 as
eight digits, e.g. ``AAPL250117C00150000`` is the AAPL 150.0 call expiring
2025-01-17.
"""

from __future__ import annotations

import re
from datetime import date, datetime

import msgspec

from marketgate.core.options.models import OptionType


OCC_PATTERN = re.compile(r"^([A-Z]{1,6})(\d{6})([CP])(\d{8})$")


class UnparsableIdentifierError(ValueError):
    """An option identifier does not follow the OCC layout."""

    def __init__(self, identifier: str, reason: str = "not an OCC identifier") -> None:
        self.identifier = identifier
        self.reason = reason
        super().__init__(f"Unparsable option identifier {identifier!r}: {reason}")


class OccComponents(msgspec.Struct, frozen=True, gc=False):
    """Decoded parts of an OCC identifier."""

    underlying: str
    expiry: date
    option_type: OptionType
    strike: float

    def encode(self) -> str:
        return encode_occ_symbol(self.underlying, self.expiry, self.option_type, self.strike)


def _option_type(value: OptionType | str) -> OptionType:
    if isinstance(value, OptionType):
        return value
    upper = value.strip().upper()
    if upper in ("CALL", "C"):
        return OptionType.CALL
    if upper in ("PUT", "P"):
        return OptionType.PUT
    raise ValueError(f"Invalid option type: {value}")


def encode_occ_symbol(
    underlying: str,
    expiry: date,
    option_type: OptionType | str,
    strike: float,
) -> str:
    """
    Build an OCC identifier.

    Args:
        underlying: Underlying ticker (1-6 letters)
        expiry: Expiration date
        option_type: OptionType, or "call"/"put"/"C"/"P"
        strike: Strike price, positive

    Returns:
        OCC identifier string

    Raises:
        ValueError: If any component cannot be represented
    """
    root = underlying.strip().upper()
    if not root.isalpha() or len(root) > 6:
        raise ValueError(f"Invalid underlying symbol: {underlying}")
    if strike <= 0:
        raise ValueError(f"Strike must be positive: {strike}")
    strike_thousandths = int(round(strike * 1000))
    if strike_thousandths > 99_999_999:
        raise ValueError(f"Strike too large for OCC layout: {strike}")

    type_char = "C" if _option_type(option_type) is OptionType.CALL else "P"
    return f"{root}{expiry:%y%m%d}{type_char}{strike_thousandths:08d}"


def decode_occ_symbol(identifier: str) -> OccComponents:
    """
    Parse an OCC identifier.

    Raises:
        UnparsableIdentifierError: If the identifier does not match the
            layout or carries an impossible date
    """
    match = OCC_PATTERN.match(identifier.strip().upper())
    if match is None:
        raise UnparsableIdentifierError(identifier)

    root, yymmdd, type_char, strike_digits = match.groups()
    try:
        expiry = datetime.strptime(yymmdd, "%y%m%d").date()
    except ValueError as e:
        raise UnparsableIdentifierError(identifier, f"bad expiry {yymmdd}") from e

    return OccComponents(
        underlying=root,
        expiry=expiry,
        option_type=OptionType.CALL if type_char == "C" else OptionType.PUT,
        strike=int(strike_digits) / 1000.0,
    )


def is_occ_symbol(identifier: str) -> bool:
    """True if ``identifier`` decodes cleanly."""
    try:
        decode_occ_symbol(identifier)
    except UnparsableIdentifierError:
        return False
    return True
