"""
Unit tests for gateway records, the response envelope and errors.
"""

from __future__ import annotations

import msgspec
import pytest

from marketgate.core.instruments import AssetType
from marketgate.gateways.protocol import (
    ConnectionError,
    CredentialsRequiredError,
    GatewayError,
    GatewayResponse,
    InvalidRequestError,
    MalformedCredentialsError,
    Order,
    OrderLeg,
    Provenance,
    Quote,
    RateLimitError,
    UnparsableIdentifierError,
    UpstreamError,
)


class TestQuote:
    """Tests for Quote."""

    def test_mid_from_book(self) -> None:
        """Test mid uses bid/ask when both are present."""
        quote = Quote(symbol="AAPL", last_price=190.0, bid_price=189.0, ask_price=191.0)
        assert quote.mid == 190.0

    def test_mid_falls_back_to_last(self) -> None:
        """Test mid without a two-sided book."""
        quote = Quote(symbol="AAPL", last_price=190.0, bid_price=189.0)
        assert quote.mid == 190.0

    def test_quote_immutable(self) -> None:
        """Test records are frozen."""
        quote = Quote(symbol="AAPL", last_price=190.0)
        with pytest.raises(AttributeError):
            quote.last_price = 1.0  # type: ignore[misc]

    def test_quote_serialization(self) -> None:
        """Test msgspec round trip keeps the asset type."""
        quote = Quote(symbol="BTC/USD", last_price=101000.0, asset_type=AssetType.CRYPTO)
        decoded = msgspec.json.decode(msgspec.json.encode(quote), type=Quote)
        assert decoded == quote


class TestOrder:
    """Tests for Order."""

    def test_open_statuses(self) -> None:
        """Test is_open for working and terminal orders."""
        working = Order(id="1", symbol="AAPL", qty=1, side="buy", order_type="market", time_in_force="day", status="accepted")
        filled = Order(id="2", symbol="AAPL", qty=1, side="buy", order_type="market", time_in_force="day", status="filled")
        assert working.is_open
        assert not filled.is_open

    def test_legs(self) -> None:
        """Test bracket legs are carried."""
        leg = OrderLeg(id="l1", order_type="limit", side="sell", status="held", limit_price=210.0)
        order = Order(
            id="1",
            symbol="AAPL",
            qty=1,
            side="buy",
            order_type="market",
            time_in_force="day",
            status="accepted",
            order_class="bracket",
            legs=[leg],
        )
        assert order.legs[0].limit_price == 210.0


class TestGatewayResponse:
    """Tests for the response envelope."""

    def test_flags_follow_provenance(self) -> None:
        """Test exactly one flag is set for non-live provenance."""
        for provenance, flag in (
            (Provenance.CACHED, "cached"),
            (Provenance.STALE, "stale"),
            (Provenance.DELAYED, "delayed"),
        ):
            response = GatewayResponse(operation="quotes", data={}, provenance=provenance)
            flags = {name: getattr(response, name) for name in ("cached", "stale", "delayed")}
            assert flags == {"cached": False, "stale": False, "delayed": False} | {flag: True}

    def test_to_dict(self) -> None:
        """Test wire form converts records to builtins."""
        response = GatewayResponse(
            operation="quotes",
            data={"AAPL": Quote(symbol="AAPL", last_price=190.0)},
            provenance=Provenance.STALE,
            note="old",
        )

        wire = response.to_dict()

        assert wire["provenance"] == "stale"
        assert wire["stale"] is True
        assert wire["cached"] is False
        assert wire["note"] == "old"
        assert wire["data"]["AAPL"]["last_price"] == 190.0
        assert wire["data"]["AAPL"]["asset_type"] == "stock"


class TestErrors:
    """Tests for the error hierarchy."""

    def test_hierarchy(self) -> None:
        """Test every error is a GatewayError."""
        for error in (
            CredentialsRequiredError("x"),
            MalformedCredentialsError("x"),
            UpstreamError(500),
            RateLimitError(),
            ConnectionError("x"),
            InvalidRequestError("x"),
        ):
            assert isinstance(error, GatewayError)

    def test_value_error_compatibility(self) -> None:
        """Test validation errors are also ValueErrors."""
        assert isinstance(InvalidRequestError("x"), ValueError)
        assert issubclass(UnparsableIdentifierError, ValueError)

    def test_default_hints(self) -> None:
        """Test credential errors carry user-facing hints."""
        assert "Alpaca" in CredentialsRequiredError("missing").to_payload()["hint"]
        assert "not the full variable assignment" in MalformedCredentialsError("bad").hint

    def test_explicit_hint_wins(self) -> None:
        """Test a given hint replaces the default."""
        error = CredentialsRequiredError("missing", hint="Use the settings page")
        assert error.to_payload() == {"error": "missing", "hint": "Use the settings page"}

    def test_upstream_payload(self) -> None:
        """Test upstream errors keep status and body."""
        error = UpstreamError(422, '{"message": "qty must be > 0"}')
        payload = error.to_payload()
        assert payload["status"] == 422
        assert "qty must be" in payload["body"]
        assert "hint" not in payload
        assert not error.is_server_error

    def test_auth_failures_get_hint(self) -> None:
        """Test 401/403 suggest checking the keys."""
        assert UpstreamError(401).hint
        assert UpstreamError(403).hint

    def test_rate_limit(self) -> None:
        """Test rate limit errors are 429 upstream errors."""
        error = RateLimitError("slow down")
        assert isinstance(error, UpstreamError)
        assert error.status == 429
        assert error.hint
