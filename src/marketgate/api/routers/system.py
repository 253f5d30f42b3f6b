"""
System Router.

Endpoints:
- GET /health - Health check with cache and throttle statistics
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Annotated

from fastapi import APIRouter, Depends

from marketgate.api.deps import get_router
from marketgate.api.schemas import HealthResponse
from marketgate.gateways.router import RequestRouter


router = APIRouter()


@router.get("/health", response_model=HealthResponse)
async def health_check(
    gateway: Annotated[RequestRouter, Depends(get_router)],
) -> HealthResponse:
    """Health check endpoint. Public."""
    return HealthResponse(
        status="healthy",
        timestamp=datetime.now(timezone.utc).isoformat(),
        cache=gateway.cache.stats.to_dict(),
        throttle={
            "min_interval": gateway.throttle.min_interval,
            "pending": gateway.throttle.pending,
        },
    )
