"""Tests for the OCC identifier codec."""

from datetime import date

import pytest

from marketgate.core.options.models import OptionType
from marketgate.core.options.symbols import (
    UnparsableIdentifierError,
    decode_occ_symbol,
    encode_occ_symbol,
    is_occ_symbol,
)


class TestEncode:
    """Tests for encode_occ_symbol()."""

    def test_call(self) -> None:
        assert encode_occ_symbol("AAPL", date(2025, 1, 17), OptionType.CALL, 150.0) == "AAPL250117C00150000"

    def test_put_with_fractional_strike(self) -> None:
        assert encode_occ_symbol("spy", date(2025, 3, 21), "P", 512.5) == "SPY250321P00512500"

    @pytest.mark.parametrize(
        ("underlying", "strike", "option_type"),
        [("", 100.0, "call"), ("TOOLONGX", 100.0, "call"), ("AAPL", 0.0, "call"), ("AAPL", 100.0, "x")],
    )
    def test_invalid(self, underlying: str, strike: float, option_type: str) -> None:
        with pytest.raises(ValueError):
            encode_occ_symbol(underlying, date(2025, 1, 17), option_type, strike)


class TestDecode:
    """Tests for decode_occ_symbol()."""

    def test_decode(self) -> None:
        parts = decode_occ_symbol("AAPL250117C00150000")

        assert parts.underlying == "AAPL"
        assert parts.expiry == date(2025, 1, 17)
        assert parts.option_type is OptionType.CALL
        assert parts.strike == 150.0

    def test_fractional_strike(self) -> None:
        assert decode_occ_symbol("SPY250321P00512500").strike == 512.5

    def test_encode_back(self) -> None:
        assert decode_occ_symbol("TSLA250620P00200000").encode() == "TSLA250620P00200000"

    @pytest.mark.parametrize(
        "identifier",
        ["", "AAPL", "AAPL250117X00150000", "AAPL25011C00150000", "AAPL251332C00150000", "1234250117C00150000"],
    )
    def test_unparsable(self, identifier: str) -> None:
        with pytest.raises(UnparsableIdentifierError):
            decode_occ_symbol(identifier)
        assert not is_occ_symbol(identifier)

    def test_unparsable_is_value_error(self) -> None:
        with pytest.raises(ValueError):
            decode_occ_symbol("garbage")
