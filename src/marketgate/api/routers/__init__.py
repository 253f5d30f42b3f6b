"""
API Routers.

- gateway: every routed operation plus contract resolution
- system: health and cache statistics
"""

from marketgate.api.routers.gateway import router as gateway_router
from marketgate.api.routers.system import router as system_router

__all__ = [
    "gateway_router",
    "system_router",
]
