"""
Gateway Router.

Endpoints:
- POST /options/resolve - Nearest listed contract for an approximate one
- POST /{operation} - Run one operation (quotes, bars, account, ...)
"""

from __future__ import annotations

from typing import Annotated, Any

import msgspec
from fastapi import APIRouter, Body, Depends

from marketgate.api.deps import get_caller_id, get_router
from marketgate.api.schemas import (
    ErrorResponse,
    GatewayResponseModel,
    ResolveContractRequest,
    ResolveContractResponse,
)
from marketgate.gateways.router import OperationKind, RequestRouter


router = APIRouter()

_ERRORS: dict[int | str, dict[str, Any]] = {
    400: {"model": ErrorResponse},
    401: {"model": ErrorResponse},
    429: {"model": ErrorResponse},
    502: {"model": ErrorResponse},
    503: {"model": ErrorResponse},
}


@router.post(
    "/options/resolve",
    response_model=ResolveContractResponse,
    responses=_ERRORS,
)
async def resolve_contract(
    request: ResolveContractRequest,
    gateway: Annotated[RequestRouter, Depends(get_router)],
    caller: Annotated[str | None, Depends(get_caller_id)] = None,
) -> ResolveContractResponse:
    """
    Map an approximate strike/expiry to the nearest listed contract.

    When no contract of the requested type is listed, the approximate
    contract is echoed back with ``is_live`` false.
    """
    resolved, chain = await gateway.resolve_contract(
        request.to_approx(), request.underlying_price, caller
    )
    return ResolveContractResponse(
        contract=msgspec.to_builtins(resolved),
        provenance=chain.provenance,
        note=chain.note,
    )


@router.post(
    "/{operation}",
    response_model=GatewayResponseModel,
    responses=_ERRORS,
)
async def run_operation(
    operation: OperationKind,
    gateway: Annotated[RequestRouter, Depends(get_router)],
    params: Annotated[dict[str, Any] | None, Body()] = None,
    caller: Annotated[str | None, Depends(get_caller_id)] = None,
) -> dict[str, Any]:
    """
    Run one gateway operation.

    The JSON body holds the operation's parameters, e.g.
    ``{"symbols": ["AAPL", "BTC"]}`` for quotes or
    ``{"symbol": "AAPL", "qty": 1, "side": "buy", "type": "market"}``
    for submit_order.
    """
    response = await gateway.handle(operation, params or {}, caller)
    return response.to_dict()
