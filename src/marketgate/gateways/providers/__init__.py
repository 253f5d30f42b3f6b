"""Upstream provider clients: Alpaca (primary) and Yahoo (delayed fallback)."""

from marketgate.gateways.providers.alpaca import (
    AlpacaProvider,
    build_options_order_payload,
    build_order_payload,
)
from marketgate.gateways.providers.base import BaseProvider
from marketgate.gateways.providers.yahoo import YahooProvider


__all__ = [
    "AlpacaProvider",
    "BaseProvider",
    "YahooProvider",
    "build_options_order_payload",
    "build_order_payload",
]
