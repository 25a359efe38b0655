"""
Booking service
===============

``TripSession`` wires the trip core for one rider booking:

    pickup/dropoff -> RouteSelection (routing collaborator)
                   -> FareEngine (active route x category x promotion)
                   -> TripStateMachine -> SimulationSession (phase route)

``TripRegistry`` owns every live session of the process.

Failure handling
----------------
* Input errors (missing pickup/dropoff, no active route, unknown
  category) raise ``TripInputError`` subclasses before any state change.
* Routing failures are absorbed: trip planning yields no candidates, and
  the driver→pickup leg falls back to a straight two-point line with an
  ETA of ``ceil(miles x 2)`` minutes (~30 mph).
* Rejected transitions return ``False`` from the state machine.
"""

from __future__ import annotations

import logging
import math
import uuid
from datetime import datetime, timezone
from typing import Optional

from src.config import settings
from src.domain import geo
from src.domain.entities import (
    Coordinate,
    DriverAssignment,
    FareBreakdown,
    LiveTrackedPosition,
    Promotion,
    SimulatedTrackedPosition,
    TrackedPosition,
)
from src.domain.enums import (
    MOVING_PHASES,
    TERMINAL_STATUSES,
    RideStatus,
    TrackingPhase,
    TripEvent,
)
from src.domain.errors import (
    MissingLocationError,
    NoActiveRouteError,
    RoutingUnavailable,
    TripNotFoundError,
)
from src.domain.interaction import InteractionDebouncer
from src.domain.pricing import FareEngine, select_default_promotion
from src.domain.routes import RouteSelection
from src.domain.simulation import PositionSimulator
from src.domain.trip import Notifier, TripStateMachine
from src.domain.vehicles import get_category
from src.infrastructure.live_feed import LivePositionFeed
from src.infrastructure.matching import DriverMatcher
from src.infrastructure.routing import RoutingClient
from src.workers.simulation import SimulationSession

logger = logging.getLogger(__name__)

FALLBACK_MINUTES_PER_MILE = 2  # ~30 mph


class TripSession:
    def __init__(
        self,
        pickup: Optional[Coordinate],
        dropoff: Optional[Coordinate],
        category_id: Optional[str] = None,
        notifier: Optional[Notifier] = None,
        fare_engine: Optional[FareEngine] = None,
        simulation: Optional[SimulationSession] = None,
        trip_id: Optional[str] = None,
    ):
        if pickup is None or dropoff is None:
            raise MissingLocationError("Both pickup and dropoff are required")

        self.id = trip_id or str(uuid.uuid4())
        self.pickup = pickup
        self.dropoff = dropoff
        self.category = get_category(category_id or settings.default_vehicle_category)
        self.promotion: Optional[Promotion] = None
        self.available_promotions: list[Promotion] = []

        self.routes = RouteSelection()
        self.fare_engine = fare_engine or FareEngine.from_settings(settings)
        self.machine = TripStateMachine(
            self.id,
            notifier=notifier,
            notification_timeout=settings.notification_timeout_seconds,
        )
        self.simulation = simulation or SimulationSession(
            PositionSimulator.from_settings(settings)
        )
        self.interaction = InteractionDebouncer(settings.interaction_debounce_seconds)
        self.machine.subscribe(self._on_transition)

    # ── Selection ─────────────────────────────────────────────────────

    async def plan(self, router: RoutingClient) -> int:
        """Fetch candidate routes.  Returns how many were found."""
        try:
            candidates = await router.route(self.pickup, self.dropoff)
        except RoutingUnavailable:
            logger.warning("Trip %s: routing unavailable, no candidates", self.id)
            candidates = []
        self.routes.replace(candidates)
        return len(self.routes.candidates)

    def select_route(self, route_id: str) -> bool:
        return self.routes.select(route_id)

    def select_category(self, category_id: str) -> None:
        self.category = get_category(category_id)

    def offer_promotions(self, promotions: list[Promotion]) -> Optional[Promotion]:
        """Store the catalog and auto-apply its default entry, if any."""
        self.available_promotions = list(promotions)
        default = select_default_promotion(self.available_promotions)
        if default is not None:
            self.promotion = default
            logger.info("Trip %s: auto-applied default promo %s", self.id, default.code)
        return default

    def apply_promotion(self, promotion: Optional[Promotion]) -> None:
        self.promotion = promotion

    def fare(self) -> FareBreakdown:
        route = self.routes.active
        if route is None:
            raise NoActiveRouteError("No route selected for this trip")
        return self.fare_engine.breakdown(route, self.category, self.promotion)

    def fares(self) -> dict[str, FareBreakdown]:
        route = self.routes.active
        if route is None:
            raise NoActiveRouteError("No route selected for this trip")
        return self.fare_engine.quote_all(route, self.promotion)

    # ── Lifecycle ─────────────────────────────────────────────────────

    @property
    def status(self) -> RideStatus:
        return self.machine.status

    @property
    def phase(self) -> Optional[TrackingPhase]:
        return self.machine.phase

    async def confirm(self) -> bool:
        route = self.routes.active
        if route is None:
            raise NoActiveRouteError("No route selected for this trip")
        points = geo.decode_polyline(route.polyline)
        if len(points) < 2:
            # partial routing data: drive the straight line instead
            points = [self.pickup, self.dropoff]
        return await self.machine.confirm(points)

    async def dispatch(self) -> bool:
        return await self.machine.dispatched()

    async def match(self, matcher: DriverMatcher, router: RoutingClient) -> bool:
        if not self.machine.can(TripEvent.MATCHED):
            logger.warning("Trip %s: match rejected in status %s", self.id, self.status.value)
            return False

        found = await matcher.find_driver(self.pickup)
        pickup_route, eta_minutes = await self._pickup_leg(found.start, router)
        driver = DriverAssignment(
            name=found.profile.name,
            rating=found.profile.rating,
            vehicle_model=found.profile.vehicle_model,
            vehicle_color=found.profile.vehicle_color,
            plate_number=found.profile.plate_number,
            avatar_initials=found.profile.avatar_initials,
            pickup_eta_minutes=eta_minutes,
        )
        return await self.machine.matched(driver, pickup_route)

    async def start_trip(self) -> bool:
        return await self.machine.start_trip()

    async def complete_trip(self) -> bool:
        return await self.machine.complete_trip()

    async def cancel(self) -> bool:
        return await self.machine.cancel(self.simulation.stop)

    async def reset(self) -> bool:
        if not await self.machine.reset():
            return False
        self.routes.clear()
        self.interaction.recenter()
        return True

    async def close(self) -> None:
        await self.simulation.close()

    # ── Tracking ──────────────────────────────────────────────────────

    async def position(
        self, feed: Optional[LivePositionFeed] = None
    ) -> Optional[TrackedPosition]:
        """
        Current vehicle position.  A fresh live fix overrides the simulator
        for this read only; a stale or missing fix falls back to it.
        """
        if self.phase not in MOVING_PHASES:
            return None

        if feed is not None:
            fix = await feed.latest(self.id)
            fresh = (
                fix is not None
                and _age_seconds(fix.recorded_at) <= settings.live_feed_stale_seconds
            )
            if fresh:
                return LiveTrackedPosition(
                    coordinate=fix.coordinate,
                    heading=fix.heading,
                    speed_mph=fix.speed_mph,
                    remaining_miles=fix.remaining_miles,
                    eta_minutes=fix.eta_minutes,
                    recorded_at=fix.recorded_at,
                )

        snapshot = self.simulation.last
        if snapshot is None:
            return None
        frame = self.simulation.frame()
        coordinate, heading = frame if frame else (snapshot.coordinate, snapshot.heading)
        return SimulatedTrackedPosition(
            coordinate=coordinate,
            heading=heading,
            speed_mph=snapshot.speed_mph,
            remaining_miles=snapshot.remaining_miles,
            eta_minutes=snapshot.eta_minutes,
            next_turn=snapshot.next_turn,
            route_index=snapshot.route_index,
        )

    def register_interaction(self) -> bool:
        return self.interaction.signal()

    def recenter(self) -> None:
        self.interaction.recenter()

    # ── Internals ─────────────────────────────────────────────────────

    async def _pickup_leg(
        self, start: Coordinate, router: RoutingClient
    ) -> tuple[list[Coordinate], int]:
        try:
            candidates = await router.route(start, self.pickup)
        except RoutingUnavailable:
            candidates = []

        if candidates:
            best = candidates[0]
            points = geo.decode_polyline(best.polyline)
            if len(points) >= 2:
                eta = max(1, math.ceil(best.duration_in_traffic_seconds / 60))
                return points, eta

        logger.warning("Trip %s: driver leg routing failed, using straight line", self.id)
        miles = geo.distance_miles(start, self.pickup)
        return [start, self.pickup], math.ceil(miles * FALLBACK_MINUTES_PER_MILE)

    async def _on_transition(self, machine: TripStateMachine) -> None:
        if machine.phase in MOVING_PHASES:
            await self.simulation.start(machine.phase_route, machine.phase)
        elif machine.phase is None:
            await self.simulation.close()
        else:
            await self.simulation.stop()


def _age_seconds(recorded_at: datetime) -> float:
    return (datetime.now(timezone.utc) - recorded_at).total_seconds()


class TripRegistry:
    """All live trip sessions of this process, keyed by trip id."""

    def __init__(self) -> None:
        self._sessions: dict[str, TripSession] = {}

    def add(self, session: TripSession) -> TripSession:
        self._sessions[session.id] = session
        return session

    def get(self, trip_id: str) -> TripSession:
        try:
            return self._sessions[trip_id]
        except KeyError:
            raise TripNotFoundError("Trip not found") from None

    async def remove(self, trip_id: str) -> None:
        session = self._sessions.pop(trip_id, None)
        if session is not None:
            await session.close()

    def __len__(self) -> int:
        return len(self._sessions)

    def active_count(self) -> int:
        """Sessions not yet completed or cancelled."""
        return sum(
            1 for s in self._sessions.values() if s.status not in TERMINAL_STATUSES
        )

    def __iter__(self):
        return iter(list(self._sessions.values()))

    async def close_all(self) -> None:
        for trip_id in list(self._sessions):
            await self.remove(trip_id)
