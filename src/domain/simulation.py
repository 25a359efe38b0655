"""
Position Simulator
==================

Walks a simulated vehicle along the current phase route one *tick* at a
time and derives what a rider sees: heading, speed, next turn, remaining
distance and ETA.  No GPS feed is involved.

Tick model
----------
1. On a new phase route the vehicle is seeded at index 0, facing the
   first distinct subsequent point.
2. Each tick advances ``points_per_tick`` indices (2 approaching the
   pickup, 3 en route to the dropoff), clamped to the last index.
3. ``speed = distance(prev, next) / elapsed_hours``, clamped to
   ``max_speed_mph`` so dense polylines cannot produce absurd speeds.
4. At the last index the vehicle holds; further ticks are no-ops.  The
   simulator never changes trip state itself.

Routes are identified by a content key (point count + endpoints), so a
logically identical route handed over again does not restart the walk.

Complexity: O(1) per tick plus O(n) for remaining distance and O(L) for
the turn look-ahead (L = look-ahead window).
"""

from __future__ import annotations

import math
from typing import Optional, Sequence

from . import geo
from .entities import Coordinate, SimulatedPosition, TrackingSnapshot, TurnInstruction
from .enums import Maneuver, TrackingPhase

MIN_SEGMENT_MILES = 1e-6  # below this two points are the same place

MANEUVER_TEXT = {
    Maneuver.SLIGHT_LEFT: "Keep slight left",
    Maneuver.SLIGHT_RIGHT: "Keep slight right",
    Maneuver.LEFT: "Turn left",
    Maneuver.RIGHT: "Turn right",
    Maneuver.SHARP_LEFT: "Make a sharp left",
    Maneuver.SHARP_RIGHT: "Make a sharp right",
}


def route_key(points: Sequence[Coordinate]) -> str:
    """Content-derived identity of a route (not object identity)."""
    if not points:
        return "empty"
    first, last = points[0], points[-1]
    return (
        f"{len(points)}:{first.lat:.5f},{first.lng:.5f}"
        f":{last.lat:.5f},{last.lng:.5f}"
    )


class PositionSimulator:
    def __init__(
        self,
        tick_seconds: float = 3.0,
        pickup_points_per_tick: int = 2,
        dropoff_points_per_tick: int = 3,
        max_speed_mph: float = 65.0,
        fallback_speed_mph: float = 25.0,
        turn_lookahead_points: int = 20,
    ):
        self.tick_seconds = tick_seconds
        self.pickup_points_per_tick = pickup_points_per_tick
        self.dropoff_points_per_tick = dropoff_points_per_tick
        self.max_speed_mph = max_speed_mph
        self.fallback_speed_mph = fallback_speed_mph
        self.turn_lookahead_points = turn_lookahead_points

        self.points: list[Coordinate] = []
        self.phase: Optional[TrackingPhase] = None
        self.position: Optional[SimulatedPosition] = None
        self.key: Optional[str] = None

    @classmethod
    def from_settings(cls, settings) -> "PositionSimulator":
        return cls(
            tick_seconds=settings.simulation_tick_seconds,
            pickup_points_per_tick=settings.pickup_points_per_tick,
            dropoff_points_per_tick=settings.dropoff_points_per_tick,
            max_speed_mph=settings.max_speed_mph,
            fallback_speed_mph=settings.fallback_speed_mph,
            turn_lookahead_points=settings.turn_lookahead_points,
        )

    # ── Lifecycle ─────────────────────────────────────────────────────

    def load(self, points: Sequence[Coordinate], phase: TrackingPhase) -> bool:
        """Seed a new phase route.  Returns ``False`` if it is already loaded."""
        key = route_key(points)
        if key == self.key and phase == self.phase:
            return False

        self.key = key
        self.phase = phase
        self.points = list(points)
        if not self.points:
            self.position = None
            return True

        self.position = SimulatedPosition(
            coordinate=self.points[0],
            route_index=0,
            heading=self._initial_heading(),
            speed_mph=0.0,
        )
        return True

    def clear(self) -> None:
        self.points = []
        self.phase = None
        self.position = None
        self.key = None

    @property
    def active(self) -> bool:
        return self.position is not None

    @property
    def last_index(self) -> int:
        return len(self.points) - 1

    @property
    def finished(self) -> bool:
        return self.position is not None and self.position.route_index >= self.last_index

    @property
    def points_per_tick(self) -> int:
        if self.phase == TrackingPhase.EN_ROUTE_TO_PICKUP:
            return self.pickup_points_per_tick
        return self.dropoff_points_per_tick

    # ── Tick ──────────────────────────────────────────────────────────

    def tick(self, elapsed_seconds: Optional[float] = None) -> Optional[TrackingSnapshot]:
        """Advance one tick and return the new snapshot (``None`` if idle)."""
        if self.position is None:
            return None
        if self.finished:
            self.position.speed_mph = 0.0
            return self.snapshot()

        elapsed = self.tick_seconds if elapsed_seconds is None else elapsed_seconds
        prev_index = self.position.route_index
        next_index = min(prev_index + self.points_per_tick, self.last_index)
        prev, nxt = self.points[prev_index], self.points[next_index]

        step_miles = geo.distance_miles(prev, nxt)
        if elapsed > 0:
            speed = step_miles / (elapsed / 3600.0)
        else:
            speed = 0.0
        if step_miles > MIN_SEGMENT_MILES:
            self.position.heading = geo.bearing(prev, nxt)

        self.position.coordinate = nxt
        self.position.route_index = next_index
        self.position.speed_mph = min(speed, self.max_speed_mph)
        return self.snapshot()

    def snapshot(self) -> Optional[TrackingSnapshot]:
        if self.position is None:
            return None
        return TrackingSnapshot(
            coordinate=self.position.coordinate,
            route_index=self.position.route_index,
            heading=self.position.heading,
            speed_mph=self.position.speed_mph,
            remaining_miles=self.remaining_miles(),
            eta_minutes=self.eta_minutes(),
            next_turn=self.next_turn(),
            finished=self.finished,
        )

    # ── Derived values ────────────────────────────────────────────────

    def remaining_miles(self) -> float:
        if self.position is None:
            return 0.0
        return geo.path_length_miles(self.points, self.position.route_index)

    def eta_minutes(self) -> int:
        speed = self.position.speed_mph if self.position else 0.0
        effective = speed if speed > 0 else self.fallback_speed_mph
        minutes = self.remaining_miles() / effective * 60 if effective > 0 else 0
        return max(1, math.ceil(minutes))

    def next_turn(self) -> Optional[TurnInstruction]:
        """First maneuver other than ``continue`` within the look-ahead window."""
        if self.position is None:
            return None
        start = self.position.route_index
        end = min(start + self.turn_lookahead_points, self.last_index)

        travelled = 0.0
        heading_in: Optional[float] = None
        for i in range(start, end):
            a, b = self.points[i], self.points[i + 1]
            segment = geo.distance_miles(a, b)
            if segment <= MIN_SEGMENT_MILES:
                continue
            heading_out = geo.bearing(a, b)
            if heading_in is not None:
                maneuver = geo.turn_direction(heading_in, heading_out)
                if maneuver != Maneuver.CONTINUE:
                    return TurnInstruction(
                        text=MANEUVER_TEXT[maneuver],
                        distance_feet=round(travelled * geo.FEET_PER_MILE, 1),
                        maneuver=maneuver,
                    )
            heading_in = heading_out
            travelled += segment
        return None

    def _initial_heading(self) -> float:
        origin = self.points[0]
        for point in self.points[1:]:
            if geo.distance_miles(origin, point) > MIN_SEGMENT_MILES:
                return geo.bearing(origin, point)
        return 0.0
