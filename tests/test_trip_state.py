"""Unit tests for the trip state machine."""

from __future__ import annotations

import asyncio
import itertools
from unittest.mock import AsyncMock

import pytest

from src.domain.entities import Coordinate, DriverAssignment
from src.domain.enums import (
    MOVING_PHASES,
    TRIP_TRANSITIONS,
    RideStatus,
    TrackingPhase,
    TripEvent,
)
from src.domain.trip import TripStateMachine

ROUTE = [Coordinate(40.70, -74.00), Coordinate(40.71, -74.00)]
PICKUP_LEG = [Coordinate(40.69, -74.01), Coordinate(40.70, -74.00)]
DRIVER = DriverAssignment(
    name="Marcus Johnson",
    rating=4.92,
    vehicle_model="Toyota Camry",
    vehicle_color="Silver",
    plate_number="T847293C",
    avatar_initials="MJ",
    pickup_eta_minutes=4,
)


async def fire(machine: TripStateMachine, event: TripEvent) -> bool:
    if event == TripEvent.CONFIRM:
        return await machine.confirm(ROUTE)
    if event == TripEvent.DISPATCHED:
        return await machine.dispatched()
    if event == TripEvent.MATCHED:
        return await machine.matched(DRIVER, PICKUP_LEG)
    if event == TripEvent.START_TRIP:
        return await machine.start_trip()
    if event == TripEvent.COMPLETE_TRIP:
        return await machine.complete_trip()
    if event == TripEvent.CANCEL:
        return await machine.cancel()
    return await machine.reset()


def machine_in(status: RideStatus, **kwargs) -> TripStateMachine:
    machine = TripStateMachine("trip-1", **kwargs)
    machine.status = status
    return machine


class TestHappyPath:
    @pytest.mark.asyncio
    async def test_full_lifecycle(self):
        machine = TripStateMachine("trip-1")
        assert machine.status == RideStatus.SELECTING
        assert machine.phase is None

        assert await machine.confirm(ROUTE)
        assert machine.status == RideStatus.CONFIRMING
        assert await machine.dispatched()
        assert machine.status == RideStatus.SEARCHING_DRIVER
        assert await machine.matched(DRIVER, PICKUP_LEG)
        assert machine.status == RideStatus.DRIVER_ASSIGNED
        assert machine.phase == TrackingPhase.EN_ROUTE_TO_PICKUP
        assert machine.phase_route == PICKUP_LEG
        assert machine.driver == DRIVER

        assert await machine.start_trip()
        assert machine.status == RideStatus.TRIP_IN_PROGRESS
        assert machine.phase == TrackingPhase.EN_ROUTE_TO_DROPOFF
        assert machine.phase_route == ROUTE

        assert await machine.complete_trip()
        assert machine.status == RideStatus.TRIP_COMPLETED
        assert machine.phase == TrackingPhase.COMPLETED
        assert machine.phase_route == []

        assert await machine.reset()
        assert machine.status == RideStatus.SELECTING
        assert machine.driver is None
        assert machine.trip_route == []
        assert len(machine.history) == 6

    @pytest.mark.asyncio
    async def test_cancel_while_searching_returns_to_selecting(self):
        machine = machine_in(RideStatus.SEARCHING_DRIVER)
        machine.trip_route = list(ROUTE)
        assert await machine.cancel()
        assert machine.status == RideStatus.SELECTING
        assert machine.phase is None
        assert machine.trip_route == []

    @pytest.mark.asyncio
    async def test_cancel_after_assignment_is_terminal(self):
        machine = machine_in(RideStatus.DRIVER_ASSIGNED)
        assert await machine.cancel()
        assert machine.status == RideStatus.TRIP_CANCELLED
        assert machine.phase == TrackingPhase.CANCELLED

    @pytest.mark.asyncio
    async def test_cancel_after_assignment_drops_pickup_leg(self):
        machine = machine_in(RideStatus.SEARCHING_DRIVER)
        assert await machine.matched(DRIVER, PICKUP_LEG)
        assert machine.phase_route == PICKUP_LEG

        assert await machine.cancel()
        assert machine.phase == TrackingPhase.CANCELLED
        assert machine.phase_route == []


class TestTransitionLegality:
    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "status, event",
        [
            (s, e)
            for s, e in itertools.product(RideStatus, TripEvent)
            if (s, e) not in TRIP_TRANSITIONS
        ],
    )
    async def test_illegal_pair_is_a_no_op(self, status, event):
        machine = machine_in(status)
        assert await fire(machine, event) is False
        assert machine.status == status
        assert machine.history == []

    @pytest.mark.asyncio
    async def test_stale_start_cannot_rewind_a_completed_trip(self):
        machine = machine_in(RideStatus.TRIP_COMPLETED)
        assert not await machine.start_trip()
        assert not await machine.matched(DRIVER, PICKUP_LEG)
        assert machine.status == RideStatus.TRIP_COMPLETED

    @pytest.mark.asyncio
    async def test_phase_matches_status(self):
        machine = TripStateMachine("trip-1")
        for event in (
            TripEvent.CONFIRM,
            TripEvent.DISPATCHED,
            TripEvent.MATCHED,
            TripEvent.START_TRIP,
            TripEvent.COMPLETE_TRIP,
        ):
            await fire(machine, event)
            moving = machine.phase in MOVING_PHASES
            assert moving == (
                machine.status
                in (RideStatus.DRIVER_ASSIGNED, RideStatus.TRIP_IN_PROGRESS)
            )


class TestCancellation:
    @pytest.mark.asyncio
    async def test_double_cancel_fires_one_side_effect(self):
        machine = machine_in(RideStatus.DRIVER_ASSIGNED)
        calls = 0

        async def side_effect():
            nonlocal calls
            calls += 1
            await asyncio.sleep(0.05)

        results = await asyncio.gather(
            machine.cancel(side_effect), machine.cancel(side_effect)
        )
        assert sorted(results) == [False, True]
        assert calls == 1
        assert machine.status == RideStatus.TRIP_CANCELLED
        assert machine.is_cancelling is False

    @pytest.mark.asyncio
    async def test_failed_side_effect_leaves_state(self):
        machine = machine_in(RideStatus.DRIVER_ASSIGNED)

        async def boom():
            raise RuntimeError("stop failed")

        assert await machine.cancel(boom) is False
        assert machine.status == RideStatus.DRIVER_ASSIGNED
        assert machine.is_cancelling is False
        # a later retry still works
        assert await machine.cancel()

    @pytest.mark.asyncio
    async def test_cancel_after_trip_started_is_rejected(self):
        machine = machine_in(RideStatus.TRIP_IN_PROGRESS)
        side_effect = AsyncMock()
        assert await machine.cancel(side_effect) is False
        side_effect.assert_not_awaited()


class TestSideEffects:
    @pytest.mark.asyncio
    async def test_notifies_on_announced_states_only(self):
        notifier = AsyncMock()
        machine = TripStateMachine("trip-1", notifier=notifier)
        await machine.confirm(ROUTE)
        await machine.dispatched()
        notifier.notify.assert_not_awaited()

        await machine.matched(DRIVER, PICKUP_LEG)
        notifier.notify.assert_awaited_once_with(
            "trip-1", RideStatus.DRIVER_ASSIGNED, DRIVER
        )
        await machine.start_trip()
        await machine.complete_trip()
        statuses = [c.args[1] for c in notifier.notify.await_args_list]
        assert statuses == [
            RideStatus.DRIVER_ASSIGNED,
            RideStatus.TRIP_IN_PROGRESS,
            RideStatus.TRIP_COMPLETED,
        ]

    @pytest.mark.asyncio
    async def test_notifier_failure_does_not_revert(self):
        notifier = AsyncMock()
        notifier.notify.side_effect = ConnectionError("push service down")
        machine = machine_in(RideStatus.SEARCHING_DRIVER, notifier=notifier)
        assert await machine.matched(DRIVER, PICKUP_LEG)
        assert machine.status == RideStatus.DRIVER_ASSIGNED

    @pytest.mark.asyncio
    async def test_slow_notifier_times_out(self):
        class SlowNotifier:
            async def notify(self, trip_id, status, driver):
                await asyncio.sleep(5)

        machine = machine_in(
            RideStatus.SEARCHING_DRIVER,
            notifier=SlowNotifier(),
            notification_timeout=0.01,
        )
        assert await machine.matched(DRIVER, PICKUP_LEG)
        assert machine.status == RideStatus.DRIVER_ASSIGNED

    @pytest.mark.asyncio
    async def test_listeners_see_new_state(self):
        seen = []

        async def listener(m):
            seen.append((m.status, m.phase))

        machine = machine_in(RideStatus.SEARCHING_DRIVER)
        machine.subscribe(listener)
        await machine.matched(DRIVER, PICKUP_LEG)
        assert seen == [(RideStatus.DRIVER_ASSIGNED, TrackingPhase.EN_ROUTE_TO_PICKUP)]

    @pytest.mark.asyncio
    async def test_listener_failure_is_contained(self):
        async def listener(m):
            raise ValueError("listener bug")

        machine = machine_in(RideStatus.SEARCHING_DRIVER)
        machine.subscribe(listener)
        assert await machine.matched(DRIVER, PICKUP_LEG)
        assert machine.status == RideStatus.DRIVER_ASSIGNED
