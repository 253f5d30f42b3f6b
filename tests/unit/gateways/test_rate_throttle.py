"""Tests for the primary-provider rate throttle."""

import asyncio

import pytest

from marketgate.core.clock import ManualClock
from marketgate.gateways.throttle import RateThrottle


class TestReserve:
    """Tests for slot reservation."""

    def test_first_slot_is_now(self, throttle: RateThrottle, clock: ManualClock) -> None:
        assert throttle.reserve() == clock.now()

    def test_consecutive_slots_spaced(self, throttle: RateThrottle, clock: ManualClock) -> None:
        first = throttle.reserve()
        second = throttle.reserve()
        third = throttle.reserve()

        assert second - first == 3.0
        assert third - second == 3.0
        assert throttle.last_dispatch == third

    def test_idle_gap_resets_to_now(self, throttle: RateThrottle, clock: ManualClock) -> None:
        throttle.reserve()
        clock.advance(10)
        assert throttle.reserve() == clock.now()

    def test_negative_interval_rejected(self) -> None:
        with pytest.raises(ValueError):
            RateThrottle(min_interval=-1)


class TestAcquire:
    """Tests for cooperative waiting."""

    @pytest.mark.asyncio
    async def test_first_call_does_not_wait(self, throttle: RateThrottle, clock: ManualClock) -> None:
        await throttle.acquire()
        assert clock.sleeps == []

    @pytest.mark.asyncio
    async def test_two_concurrent_callers(self, throttle: RateThrottle, clock: ManualClock) -> None:
        dispatched: list[float] = []

        async def caller() -> None:
            await throttle.acquire()
            dispatched.append(clock.now())

        await asyncio.gather(caller(), caller())

        assert len(dispatched) == 2
        assert dispatched[1] - dispatched[0] >= 3.0

    @pytest.mark.asyncio
    async def test_many_concurrent_callers_get_distinct_slots(
        self, throttle: RateThrottle, clock: ManualClock
    ) -> None:
        slots = await asyncio.gather(*(throttle.acquire() for _ in range(5)))

        ordered = sorted(slots)
        assert len(set(slots)) == 5
        for earlier, later in zip(ordered, ordered[1:]):
            assert later - earlier >= 3.0
        assert throttle.pending == 0

    @pytest.mark.asyncio
    async def test_sequential_call_waits_remaining_gap(
        self, throttle: RateThrottle, clock: ManualClock
    ) -> None:
        await throttle.acquire()
        clock.advance(1.0)
        await throttle.acquire()

        assert clock.sleeps == [pytest.approx(2.0)]

    @pytest.mark.asyncio
    async def test_zero_interval_never_waits(self, clock: ManualClock) -> None:
        throttle = RateThrottle(min_interval=0.0, clock=clock)
        await asyncio.gather(*(throttle.acquire() for _ in range(3)))
        assert clock.sleeps == []
