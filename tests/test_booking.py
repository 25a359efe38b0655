"""Tests for the booking service: one trip session end to end."""

from __future__ import annotations

import math
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock

import httpx
import pytest
import pytest_asyncio

from src.domain import geo
from src.domain.entities import Coordinate, LiveFix, Promotion
from src.domain.enums import DiscountType, RideStatus, TrackingPhase
from src.domain.errors import (
    MissingLocationError,
    NoActiveRouteError,
    RoutingUnavailable,
    TripNotFoundError,
    UnknownCategoryError,
)
from src.infrastructure.matching import ROSTER, DriverMatch
from src.infrastructure.routing import GoogleDirectionsClient, StraightLineRouter
from src.services.booking import TripRegistry, TripSession
from tests.conftest import DROPOFF, PICKUP

DRIVER_START = Coordinate(40.7484, -73.9857)


class FailingRouter:
    async def route(self, origin, destination):
        raise RoutingUnavailable("provider down")


def malformed_google_router() -> GoogleDirectionsClient:
    body = {"status": "OK", "routes": ["bogus"]}
    transport = httpx.MockTransport(lambda request: httpx.Response(200, json=body))
    return GoogleDirectionsClient("secret-key", http=httpx.AsyncClient(transport=transport))


class FixedMatcher:
    def __init__(self, start: Coordinate = DRIVER_START):
        self.start = start
        self.calls = 0

    async def find_driver(self, pickup):
        self.calls += 1
        return DriverMatch(profile=ROSTER[0], start=self.start)


class FakeFeed:
    def __init__(self, fix=None):
        self.fix = fix

    async def latest(self, trip_id):
        return self.fix


def live_fix(age_seconds: float) -> LiveFix:
    return LiveFix(
        coordinate=Coordinate(40.75, -73.99),
        heading=180.0,
        speed_mph=22.0,
        remaining_miles=1.2,
        eta_minutes=4,
        recorded_at=datetime.now(timezone.utc) - timedelta(seconds=age_seconds),
    )


WELCOME = Promotion(
    id="p1",
    code="WELCOME20",
    discount_type=DiscountType.PERCENT,
    discount_percent=20,
    max_discount_amount=3.0,
    is_default=True,
)
FIVE_OFF = Promotion(id="p2", code="FIVEOFF", discount_type=DiscountType.FLAT, discount_flat=5)


@pytest_asyncio.fixture
async def trip():
    session = TripSession(PICKUP, DROPOFF)
    await session.plan(StraightLineRouter())
    yield session
    await session.close()


async def assigned(session: TripSession, router=None) -> TripSession:
    await session.confirm()
    await session.dispatch()
    await session.match(FixedMatcher(), router or StraightLineRouter())
    return session


class TestPlanning:
    def test_requires_both_locations(self):
        with pytest.raises(MissingLocationError):
            TripSession(PICKUP, None)
        with pytest.raises(MissingLocationError):
            TripSession(None, DROPOFF)

    def test_unknown_category(self):
        with pytest.raises(UnknownCategoryError):
            TripSession(PICKUP, DROPOFF, category_id="SAFEGO_BOAT")

    @pytest.mark.asyncio
    async def test_plan_activates_first_route(self, trip):
        assert trip.routes.active_id == "route-0"
        assert trip.fare().final_fare > 0
        assert set(trip.fares()) >= {"SAFEGO_X", "SAFEGO_BLACK"}

    @pytest.mark.asyncio
    async def test_routing_failure_leaves_no_route(self):
        session = TripSession(PICKUP, DROPOFF)
        assert await session.plan(FailingRouter()) == 0
        with pytest.raises(NoActiveRouteError):
            session.fare()
        with pytest.raises(NoActiveRouteError):
            await session.confirm()
        assert session.status == RideStatus.SELECTING

    @pytest.mark.asyncio
    async def test_malformed_provider_reply_leaves_no_route(self):
        session = TripSession(PICKUP, DROPOFF)
        assert await session.plan(malformed_google_router()) == 0
        assert session.routes.active is None
        assert session.status == RideStatus.SELECTING

    @pytest.mark.asyncio
    async def test_default_promotion_is_auto_applied(self, trip):
        assert trip.offer_promotions([FIVE_OFF, WELCOME]) is WELCOME
        assert trip.promotion is WELCOME
        assert trip.fare().promo_code == "WELCOME20"

    @pytest.mark.asyncio
    async def test_switching_category_reprices(self, trip):
        before = trip.fare().final_fare
        trip.select_category("SAFEGO_BLACK")
        assert trip.fare().final_fare > before

    @pytest.mark.asyncio
    async def test_unknown_route_is_rejected(self, trip):
        assert trip.select_route("route-9") is False
        assert trip.routes.active_id == "route-0"


class TestLifecycle:
    @pytest.mark.asyncio
    async def test_confirm_uses_decoded_route(self, trip):
        assert await trip.confirm()
        assert trip.status == RideStatus.CONFIRMING
        assert trip.machine.trip_route[0].lat == pytest.approx(PICKUP.lat, abs=1e-5)
        assert trip.machine.trip_route[-1].lng == pytest.approx(DROPOFF.lng, abs=1e-5)

    @pytest.mark.asyncio
    async def test_match_with_routing_failure_uses_straight_line(self, trip):
        await assigned(trip, router=FailingRouter())
        assert trip.status == RideStatus.DRIVER_ASSIGNED
        assert trip.machine.phase_route == [DRIVER_START, PICKUP]
        expected = math.ceil(geo.distance_miles(DRIVER_START, PICKUP) * 2)
        assert trip.machine.driver.pickup_eta_minutes == expected
        assert trip.simulation.is_running

    @pytest.mark.asyncio
    async def test_match_with_malformed_provider_reply_uses_straight_line(self, trip):
        await assigned(trip, router=malformed_google_router())
        assert trip.status == RideStatus.DRIVER_ASSIGNED
        assert trip.machine.phase_route == [DRIVER_START, PICKUP]
        expected = math.ceil(geo.distance_miles(DRIVER_START, PICKUP) * 2)
        assert trip.machine.driver.pickup_eta_minutes == expected

    @pytest.mark.asyncio
    async def test_match_with_routing_uses_traffic_eta(self, trip):
        router = StraightLineRouter()
        leg = (await router.route(DRIVER_START, PICKUP))[0]
        await assigned(trip, router=router)
        expected = max(1, math.ceil(leg.duration_in_traffic_seconds / 60))
        assert trip.machine.driver.pickup_eta_minutes == expected
        assert trip.machine.driver.avatar_initials == "MJ"
        assert len(trip.machine.phase_route) > 2

    @pytest.mark.asyncio
    async def test_match_before_dispatch_is_rejected(self, trip):
        matcher = FixedMatcher()
        assert await trip.match(matcher, StraightLineRouter()) is False
        assert matcher.calls == 0
        assert trip.status == RideStatus.SELECTING

    @pytest.mark.asyncio
    async def test_start_switches_simulation_to_trip_route(self, trip):
        await assigned(trip)
        assert await trip.start_trip()
        assert trip.phase == TrackingPhase.EN_ROUTE_TO_DROPOFF
        assert trip.simulation.simulator.points == trip.machine.trip_route
        assert trip.simulation.is_running

    @pytest.mark.asyncio
    async def test_cancel_stops_simulation(self, trip):
        await assigned(trip)
        assert await trip.cancel()
        assert trip.status == RideStatus.TRIP_CANCELLED
        assert not trip.simulation.is_running
        assert await trip.position() is None

    @pytest.mark.asyncio
    async def test_cancel_while_searching_keeps_session(self, trip):
        await trip.confirm()
        await trip.dispatch()
        assert await trip.cancel()
        assert trip.status == RideStatus.SELECTING
        assert trip.routes.active_id == "route-0"

    @pytest.mark.asyncio
    async def test_reset_clears_routes(self, trip):
        await assigned(trip)
        await trip.start_trip()
        await trip.complete_trip()
        trip.register_interaction()
        assert await trip.reset()
        assert trip.status == RideStatus.SELECTING
        assert trip.routes.active is None
        assert trip.interaction.following
        assert trip.simulation.last is None

    @pytest.mark.asyncio
    async def test_notifier_receives_assignment(self):
        notifier = AsyncMock()
        session = TripSession(PICKUP, DROPOFF, notifier=notifier)
        await session.plan(StraightLineRouter())
        await assigned(session)
        notifier.notify.assert_awaited_once()
        assert notifier.notify.await_args.args[1] == RideStatus.DRIVER_ASSIGNED
        await session.close()


class TestPosition:
    @pytest.mark.asyncio
    async def test_no_position_before_assignment(self, trip):
        assert await trip.position() is None

    @pytest.mark.asyncio
    async def test_simulated_position(self, trip):
        await assigned(trip)
        tracked = await trip.position()
        assert tracked.source == "simulated"
        assert tracked.route_index == 0
        assert tracked.eta_minutes >= 1

    @pytest.mark.asyncio
    async def test_fresh_live_fix_overrides(self, trip):
        await assigned(trip)
        tracked = await trip.position(FakeFeed(live_fix(age_seconds=1)))
        assert tracked.source == "live"
        assert tracked.speed_mph == 22.0
        assert tracked.coordinate == Coordinate(40.75, -73.99)

    @pytest.mark.asyncio
    async def test_stale_live_fix_falls_back(self, trip):
        await assigned(trip)
        tracked = await trip.position(FakeFeed(live_fix(age_seconds=600)))
        assert tracked.source == "simulated"

    @pytest.mark.asyncio
    async def test_missing_live_fix_falls_back(self, trip):
        await assigned(trip)
        tracked = await trip.position(FakeFeed(None))
        assert tracked.source == "simulated"


class TestRegistry:
    @pytest.mark.asyncio
    async def test_get_unknown(self):
        with pytest.raises(TripNotFoundError):
            TripRegistry().get("nope")

    @pytest.mark.asyncio
    async def test_active_count_skips_finished_trips(self, trip):
        registry = TripRegistry()
        registry.add(trip)
        await assigned(trip)
        assert registry.active_count() == 1
        await trip.cancel()
        assert registry.active_count() == 0
        assert len(registry) == 1

        await registry.remove(trip.id)
        assert len(registry) == 0
        with pytest.raises(TripNotFoundError):
            registry.get(trip.id)

    @pytest.mark.asyncio
    async def test_close_all(self, trip):
        registry = TripRegistry()
        registry.add(trip)
        assert registry.get(trip.id) is trip
        await assigned(trip)
        await registry.close_all()
        assert len(registry) == 0
        assert not trip.simulation.is_running
