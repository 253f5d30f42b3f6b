"""
Pydantic schemas for API request/response models.

All API models use Pydantic v2 for:
- Request validation
- Response serialization
- OpenAPI schema generation
"""

from __future__ import annotations

from datetime import date
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from marketgate.core.options.models import ApproxContract, OptionType
from marketgate.gateways.protocol import Provenance


# =============================================================================
# Envelopes
# =============================================================================


class GatewayResponseModel(BaseModel):
    """Routed operation result with provenance flags."""

    model_config = ConfigDict(from_attributes=True)

    operation: str = Field(..., description="Operation kind")
    data: Any = Field(None, description="Normalized payload")
    provenance: Provenance = Field(Provenance.LIVE, description="live, cached, stale or delayed")
    cached: bool = False
    stale: bool = False
    delayed: bool = False
    note: str | None = Field(None, description="Why the data is degraded, if it is")


class ErrorResponse(BaseModel):
    """Structured error payload."""

    error: str = Field(..., description="What went wrong")
    hint: str | None = Field(None, description="How the user can fix it")
    status: int | None = Field(None, description="Upstream HTTP status")
    body: str | None = Field(None, description="Upstream response body")


# =============================================================================
# Options
# =============================================================================


class ResolveContractRequest(BaseModel):
    """Approximate contract picked from a chart, plus the underlying's price."""

    underlying: str = Field(..., min_length=1, max_length=6)
    option_type: OptionType
    strike: float = Field(..., gt=0)
    days_to_expiry: int = Field(..., ge=0)
    premium: float = Field(0.0, ge=0)
    expiry_date: date | None = None
    underlying_price: float = Field(..., description="Current underlying price")

    def to_approx(self) -> ApproxContract:
        return ApproxContract(
            underlying=self.underlying.strip().upper(),
            option_type=self.option_type,
            strike=self.strike,
            days_to_expiry=self.days_to_expiry,
            premium=self.premium,
            expiry_date=self.expiry_date,
        )


class ResolveContractResponse(BaseModel):
    contract: dict[str, Any]
    provenance: Provenance
    note: str | None = None


# =============================================================================
# System
# =============================================================================


class HealthResponse(BaseModel):
    status: str = "healthy"
    timestamp: str
    cache: dict[str, Any] = Field(default_factory=dict)
    throttle: dict[str, Any] = Field(default_factory=dict)
