"""
Rate Throttle: minimum spacing between calls to the primary provider.

Each caller reserves the next free dispatch slot under a lock, then sleeps
until that slot outside the lock. Because the reservation happens before
the wait, concurrent callers always receive distinct slots at least
``min_interval`` seconds apart.
"""

from __future__ import annotations

import logging
import threading

from marketgate.core.clock import Clock, LiveClock


logger = logging.getLogger(__name__)


DEFAULT_MIN_INTERVAL = 3.0


class RateThrottle:
    """
    Serializes primary-provider dispatches to one per ``min_interval``.

    Example:
        throttle = RateThrottle(min_interval=3.0)
        await throttle.acquire()      # returns at the reserved slot
        response = await client.get(...)
    """

    def __init__(self, min_interval: float = DEFAULT_MIN_INTERVAL, clock: Clock | None = None) -> None:
        if min_interval < 0:
            raise ValueError("min_interval must not be negative")
        self._min_interval = min_interval
        self._clock = clock or LiveClock()
        self._lock = threading.Lock()
        self._next_slot: float | None = None
        self._last_dispatch: float | None = None
        self._pending = 0

    @property
    def min_interval(self) -> float:
        return self._min_interval

    @property
    def last_dispatch(self) -> float | None:
        """Most recently reserved dispatch time."""
        with self._lock:
            return self._last_dispatch

    @property
    def pending(self) -> int:
        """Callers currently waiting for their slot."""
        with self._lock:
            return self._pending

    def reserve(self) -> float:
        """
        Claim the next dispatch slot without waiting.

        Returns:
            The time at which the caller may dispatch
        """
        now = self._clock.now()
        with self._lock:
            slot = now if self._next_slot is None else max(now, self._next_slot)
            self._next_slot = slot + self._min_interval
            self._last_dispatch = slot
            self._pending += 1
        return slot

    async def acquire(self) -> float:
        """
        Wait for a dispatch slot.

        Returns:
            The reserved slot time
        """
        slot = self.reserve()
        try:
            delay = slot - self._clock.now()
            if delay > 0:
                logger.debug("Throttling primary call for %.2fs", delay)
                await self._clock.sleep(delay)
        finally:
            with self._lock:
                self._pending -= 1
        return slot
