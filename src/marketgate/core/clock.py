"""
Clock: Injectable time source for caches and throttles.

Provides:
- Monotonic "now" in seconds
- Cooperative sleep
- A manually advanced clock for deterministic tests

Two implementations mirror the live/backtest split:
- LiveClock: wall time, real asyncio.sleep
- ManualClock: time only moves when advanced (sleep advances it)
"""

from __future__ import annotations

import asyncio
import logging
import time
from datetime import date, datetime, timezone
from enum import Enum
from typing import Protocol, runtime_checkable


logger = logging.getLogger(__name__)


class ClockType(Enum):
    """Type of clock."""

    LIVE = "live"  # Real-time clock
    MANUAL = "manual"  # Simulated clock, advanced explicitly


@runtime_checkable
class Clock(Protocol):
    """Time source consumed by the cache store and the rate throttle."""

    @property
    def clock_type(self) -> ClockType: ...

    def now(self) -> float:
        """Current time in seconds."""
        ...

    async def sleep(self, seconds: float) -> None:
        """Suspend the calling task for ``seconds``."""
        ...

    def today(self) -> date:
        """Current UTC calendar date."""
        ...


class LiveClock:
    """Real-time clock backed by ``time.monotonic`` and ``asyncio.sleep``."""

    clock_type = ClockType.LIVE

    def now(self) -> float:
        return time.monotonic()

    async def sleep(self, seconds: float) -> None:
        if seconds > 0:
            await asyncio.sleep(seconds)

    def today(self) -> date:
        return datetime.now(timezone.utc).date()


class ManualClock:
    """
    Clock whose time only changes when told to.

    ``sleep`` advances the clock to the wake-up time and yields once to the
    event loop, so concurrent sleepers resume in wake-up order.

    Example:
        clock = ManualClock(start=1000.0)
        cache = ResponseCache(clock=clock)
        cache.put("quotes:AAPL", {...})
        clock.advance(31)
        assert cache.get("quotes:AAPL") is None
    """

    clock_type = ClockType.MANUAL

    def __init__(self, start: float = 0.0, today: date | None = None) -> None:
        self._now = start
        self._today = today or date(2025, 1, 2)
        self.sleeps: list[float] = []

    def now(self) -> float:
        return self._now

    def advance(self, seconds: float) -> None:
        """Move time forward."""
        if seconds < 0:
            raise ValueError("Cannot move a clock backwards")
        self._now += seconds

    def set_time(self, value: float) -> None:
        """Jump to an absolute time (never backwards)."""
        if value < self._now:
            raise ValueError("Cannot move a clock backwards")
        self._now = value

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        if seconds > 0:
            wake_at = self._now + seconds
            await asyncio.sleep(0)
            self._now = max(self._now, wake_at)
        else:
            await asyncio.sleep(0)

    def today(self) -> date:
        return self._today

    def set_today(self, value: date) -> None:
        self._today = value
