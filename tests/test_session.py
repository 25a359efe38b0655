"""
Tests for the per-trip simulation session (tick timer) and the map
interaction debouncer.
"""

from __future__ import annotations

import asyncio

import pytest
import pytest_asyncio

from src.domain import geo
from src.domain.enums import TrackingPhase
from src.domain.interaction import InteractionDebouncer
from src.domain.simulation import PositionSimulator
from src.workers.simulation import SimulationSession

DROPOFF_PHASE = TrackingPhase.EN_ROUTE_TO_DROPOFF


class FakeClock:
    def __init__(self, now: float = 0.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


async def wait_until_idle(session: SimulationSession, timeout: float = 2.0) -> None:
    async def _poll():
        while session.is_running:
            await asyncio.sleep(0.01)

    await asyncio.wait_for(_poll(), timeout=timeout)


@pytest_asyncio.fixture
async def fast_session():
    session = SimulationSession(PositionSimulator(tick_seconds=0.01))
    yield session
    await session.close()


@pytest_asyncio.fixture
async def manual_session():
    """Long tick interval so only explicit ``step()`` calls advance it."""
    clock = FakeClock()
    session = SimulationSession(PositionSimulator(), tick_seconds=60.0, clock=clock)
    session.clock = clock
    yield session
    await session.close()


class TestSimulationSession:
    @pytest.mark.asyncio
    async def test_runs_to_end_of_route(self, fast_session, l_shaped_route):
        assert await fast_session.start(l_shaped_route, DROPOFF_PHASE)
        assert fast_session.is_running
        await wait_until_idle(fast_session)
        assert fast_session.last.finished
        assert fast_session.last.route_index == len(l_shaped_route) - 1

    @pytest.mark.asyncio
    async def test_same_route_is_a_no_op(self, manual_session, l_shaped_route):
        assert await manual_session.start(l_shaped_route, DROPOFF_PHASE)
        task = manual_session._task
        assert await manual_session.start(list(l_shaped_route), DROPOFF_PHASE) is False
        assert manual_session._task is task

    @pytest.mark.asyncio
    async def test_finished_route_is_not_restarted(self, fast_session, l_shaped_route):
        await fast_session.start(l_shaped_route, DROPOFF_PHASE)
        await wait_until_idle(fast_session)
        assert await fast_session.start(l_shaped_route, DROPOFF_PHASE) is False
        assert fast_session.last.finished

    @pytest.mark.asyncio
    async def test_new_route_replaces_running_one(self, manual_session, l_shaped_route):
        await manual_session.start(l_shaped_route, DROPOFF_PHASE)
        first = manual_session._task
        shorter = l_shaped_route[:8]
        assert await manual_session.start(shorter, DROPOFF_PHASE)
        assert first.done()
        assert manual_session.simulator.points == shorter

    @pytest.mark.asyncio
    async def test_stop(self, manual_session, l_shaped_route):
        await manual_session.start(l_shaped_route, DROPOFF_PHASE)
        await manual_session.stop()
        assert not manual_session.is_running
        # the last position is kept after stopping
        assert manual_session.last is not None

    @pytest.mark.asyncio
    async def test_close_forgets_route(self, manual_session, l_shaped_route):
        await manual_session.start(l_shaped_route, DROPOFF_PHASE)
        await manual_session.close()
        assert manual_session.last is None
        assert manual_session.simulator.key is None
        assert manual_session.frame() is None

    @pytest.mark.asyncio
    async def test_empty_route_does_not_start(self, manual_session):
        assert await manual_session.start([], DROPOFF_PHASE) is False
        assert not manual_session.is_running

    @pytest.mark.asyncio
    async def test_callbacks_sync_and_async(self, manual_session, l_shaped_route):
        seen_sync, seen_async = [], []

        async def async_cb(snapshot):
            seen_async.append(snapshot.route_index)

        def broken_cb(snapshot):
            raise RuntimeError("ui gone")

        manual_session.on_tick(seen_sync.append)
        manual_session.on_tick(broken_cb)
        manual_session.on_tick(async_cb)

        await manual_session.start(l_shaped_route, DROPOFF_PHASE)
        manual_session.clock.now = 3.0
        snapshot = await manual_session.step()
        assert seen_sync == [snapshot]
        assert seen_async == [3]

    @pytest.mark.asyncio
    async def test_frame_eases_between_ticks(self, manual_session, l_shaped_route):
        await manual_session.start(l_shaped_route, DROPOFF_PHASE)
        manual_session.clock.now = 60.0
        await manual_session.step()

        start, end = l_shaped_route[0], l_shaped_route[3]
        coordinate, _ = manual_session.frame(now=60.0)
        assert coordinate == start
        coordinate, _ = manual_session.frame(now=90.0)
        midpoint = geo.interpolate(start, end, 0.5)
        assert coordinate.lat == pytest.approx(midpoint.lat)
        assert coordinate.lng == pytest.approx(midpoint.lng)
        coordinate, _ = manual_session.frame(now=500.0)
        assert coordinate.lat == pytest.approx(end.lat)
        assert coordinate.lng == pytest.approx(end.lng)


class TestInteractionDebouncer:
    def test_window_must_be_at_least_half_a_second(self):
        with pytest.raises(ValueError):
            InteractionDebouncer(0.2)

    def test_burst_emits_once(self):
        clock = FakeClock()
        debouncer = InteractionDebouncer(0.5, clock=clock)
        results = []
        for t in (0.0, 0.1, 0.2, 0.45):
            clock.now = t
            results.append(debouncer.signal())
        assert results == [True, False, False, False]
        assert debouncer.emitted == 1
        assert debouncer.following is False

    def test_emits_again_after_window(self):
        clock = FakeClock()
        debouncer = InteractionDebouncer(0.5, clock=clock)
        debouncer.signal()
        clock.now = 0.6
        assert debouncer.signal()
        assert debouncer.emitted == 2

    def test_recenter_restores_follow(self):
        debouncer = InteractionDebouncer(0.5, clock=FakeClock())
        debouncer.signal()
        debouncer.recenter()
        assert debouncer.following is True

    def test_pan_right_after_recenter_emits(self):
        clock = FakeClock()
        debouncer = InteractionDebouncer(0.5, clock=clock)
        debouncer.signal()
        clock.now = 0.2
        debouncer.recenter()
        clock.now = 0.3
        assert debouncer.signal() is True
        assert debouncer.following is False
