"""HTTP surface for the gateway (FastAPI)."""

from marketgate.api.main import create_app


__all__ = ["create_app"]
