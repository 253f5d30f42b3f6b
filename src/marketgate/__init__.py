"""
marketgate: Market-data and order-execution gateway.

Sits between a trading UI and two upstream providers:
- Alpaca (credentialed, trading-capable, live data)
- Yahoo Finance chart API (uncredentialed, delayed quotes only)

Quick Start:
    from marketgate import GatewayConfig, OperationKind, RequestRouter

    router = RequestRouter.from_config(GatewayConfig.from_env())
    response = await router.handle(OperationKind.QUOTES, {"symbols": ["AAPL", "BTC"]})
    print(response.provenance, response.data)
"""

__version__ = "0.1.0"

from marketgate.config import GatewayConfig
from marketgate.gateways.protocol import (
    ConnectionError,
    CredentialsRequiredError,
    GatewayError,
    GatewayResponse,
    MalformedCredentialsError,
    Provenance,
    RateLimitError,
    UpstreamError,
)
from marketgate.gateways.router import OperationKind, RequestRouter


__all__ = [
    "ConnectionError",
    "CredentialsRequiredError",
    "GatewayConfig",
    "GatewayError",
    "GatewayResponse",
    "MalformedCredentialsError",
    "OperationKind",
    "Provenance",
    "RateLimitError",
    "RequestRouter",
    "UpstreamError",
    "__version__",
]
