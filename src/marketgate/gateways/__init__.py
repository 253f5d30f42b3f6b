"""
Gateway layer: providers, normalization, throttling and request routing.

Example:
    from marketgate.gateways import OperationKind, RequestRouter

    router = RequestRouter.from_config(GatewayConfig.from_env())
    await router.handle(OperationKind.ACCOUNT, caller="user-1")
"""

from marketgate.gateways.credentials import (
    AlpacaConfig,
    AlpacaCredentials,
    CredentialResolver,
    EnvCredentialResolver,
    StaticCredentialResolver,
)
from marketgate.gateways.protocol import (
    Account,
    ActivityRecord,
    Bar,
    ConnectionError,
    CredentialsRequiredError,
    GatewayError,
    GatewayResponse,
    InvalidRequestError,
    MalformedCredentialsError,
    Order,
    Position,
    Provenance,
    Quote,
    RateLimitError,
    UpstreamError,
)
from marketgate.gateways.router import OperationKind, OperationPolicy, RequestRouter
from marketgate.gateways.throttle import RateThrottle


__all__ = [
    "Account",
    "ActivityRecord",
    "AlpacaConfig",
    "AlpacaCredentials",
    "Bar",
    "ConnectionError",
    "CredentialResolver",
    "CredentialsRequiredError",
    "EnvCredentialResolver",
    "GatewayError",
    "GatewayResponse",
    "InvalidRequestError",
    "MalformedCredentialsError",
    "OperationKind",
    "OperationPolicy",
    "Order",
    "Position",
    "Provenance",
    "Quote",
    "RateLimitError",
    "RateThrottle",
    "StaticCredentialResolver",
    "UpstreamError",
]
