"""
FastAPI Dependencies.

Provides dependency injection for:
- The process-wide RequestRouter (held on app.state)
- Caller identity (X-Caller-Id header)
"""

from __future__ import annotations

from typing import Annotated

from fastapi import Header, HTTPException, Request, status

from marketgate.gateways.router import RequestRouter


def get_router(request: Request) -> RequestRouter:
    """The RequestRouter created at application startup."""
    router = getattr(request.app.state, "gateway_router", None)
    if router is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Gateway not initialized",
        )
    return router


async def get_caller_id(
    x_caller_id: Annotated[str | None, Header()] = None,
) -> str | None:
    """Caller identity used for credential lookup and account cache scoping."""
    if x_caller_id is None:
        return None
    caller = x_caller_id.strip()
    return caller or None
