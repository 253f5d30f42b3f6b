"""
FastAPI application for the marketgate gateway.

Main entry point for the REST API server.

Usage:
    uvicorn marketgate.api.main:app --reload
    # or
    python -m marketgate.api.main
"""

from __future__ import annotations

import logging
import os
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from marketgate.api.routers import gateway_router, system_router
from marketgate.config import GatewayConfig
from marketgate.gateways.protocol import (
    ConnectionError,
    CredentialsRequiredError,
    GatewayError,
    InvalidRequestError,
    MalformedCredentialsError,
    RateLimitError,
    UpstreamError,
)
from marketgate.gateways.router import RequestRouter


logger = logging.getLogger(__name__)


def error_status(error: GatewayError) -> int:
    """HTTP status for a gateway error."""
    if isinstance(error, CredentialsRequiredError):
        return 401
    if isinstance(error, (MalformedCredentialsError, InvalidRequestError)):
        return 400
    if isinstance(error, RateLimitError):
        return 429
    if isinstance(error, UpstreamError):
        return error.status if 400 <= error.status < 500 else 502
    if isinstance(error, ConnectionError):
        return 503
    return 500


async def gateway_error_handler(request: Request, exc: GatewayError) -> JSONResponse:
    """Render any GatewayError as an {error, hint} payload."""
    status_code = error_status(exc)
    if status_code >= 500:
        logger.warning("%s %s failed: %s", request.method, request.url.path, exc)
    return JSONResponse(exc.to_payload(), status_code=status_code)


# =============================================================================
# Create FastAPI Application
# =============================================================================


def create_app(
    gateway: RequestRouter | None = None,
    config: GatewayConfig | None = None,
) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        gateway: Pre-built router (tests inject one with fake providers)
        config: Configuration used to build a router when none is given
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        router = gateway or RequestRouter.from_config(config or GatewayConfig.from_env())
        app.state.gateway_router = router
        logger.info("marketgate API starting up")
        try:
            yield
        finally:
            await router.close()
            logger.info("marketgate API shut down")

    app = FastAPI(
        title="marketgate API",
        description="Market data and order execution with caching, throttling and provider fallback.",
        version="0.1.0",
        docs_url="/docs",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )
    if gateway is not None:
        app.state.gateway_router = gateway

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(GatewayError, gateway_error_handler)

    app.include_router(
        gateway_router,
        prefix="/api/v1/gateway",
        tags=["Gateway"],
    )
    app.include_router(
        system_router,
        prefix="/api/v1/system",
        tags=["System"],
    )

    @app.get("/", include_in_schema=False)
    async def root() -> JSONResponse:
        return JSONResponse(
            {
                "name": "marketgate API",
                "version": "0.1.0",
                "docs": "/docs",
                "health": "/api/v1/system/health",
            }
        )

    return app


def main() -> None:
    """Run the API server with uvicorn."""
    import uvicorn

    config = GatewayConfig.from_env()
    logging.basicConfig(
        level=config.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    uvicorn.run(
        create_app(config=config),
        host=os.environ.get("MARKETGATE_HOST", "127.0.0.1"),
        port=int(os.environ.get("MARKETGATE_PORT", "8000")),
    )


app = create_app()


if __name__ == "__main__":
    main()
