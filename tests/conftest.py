"""
Pytest configuration and shared fixtures for marketgate tests.
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import date
import httpx
import pytest

from marketgate.core.clock import ManualClock
from marketgate.data.cache import ResponseCache
from marketgate.gateways.credentials import AlpacaCredentials
from marketgate.gateways.throttle import RateThrottle


# =============================================================================
# Async fixtures
# =============================================================================


@pytest.fixture
def anyio_backend() -> str:
    """Use asyncio as the async backend."""
    return "asyncio"


# =============================================================================
# Time, cache and throttle
# =============================================================================


@pytest.fixture
def clock() -> ManualClock:
    """Manually advanced clock starting at t=1000 on 2025-01-02."""
    return ManualClock(start=1000.0, today=date(2025, 1, 2))


@pytest.fixture
def cache(clock: ManualClock) -> ResponseCache:
    return ResponseCache(fresh_ttl=30.0, stale_ttl=300.0, max_entries=200, clock=clock)


@pytest.fixture
def throttle(clock: ManualClock) -> RateThrottle:
    return RateThrottle(min_interval=3.0, clock=clock)


@pytest.fixture
def credentials() -> AlpacaCredentials:
    return AlpacaCredentials(api_key="PKTEST123", secret_key="secret456")


# =============================================================================
# HTTP fakes
# =============================================================================


Handler = Callable[[httpx.Request], httpx.Response]


class RecordingTransport(httpx.MockTransport):
    """MockTransport that keeps every request it served."""

    def __init__(self, handler: Handler) -> None:
        self.requests: list[httpx.Request] = []

        def record(request: httpx.Request) -> httpx.Response:
            self.requests.append(request)
            return handler(request)

        super().__init__(record)

    def paths(self) -> list[str]:
        return [r.url.path for r in self.requests]


@pytest.fixture
def make_transport() -> Callable[[Handler], RecordingTransport]:
    """Factory for request-recording mock transports."""
    return RecordingTransport


# =============================================================================
# Markers
# =============================================================================


def pytest_configure(config: pytest.Config) -> None:
    """Register custom markers."""
    config.addinivalue_line("markers", "slow: marks tests as slow")
    config.addinivalue_line("markers", "integration: marks integration tests")
