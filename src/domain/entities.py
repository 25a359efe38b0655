"""
Domain entities and value objects.

Patterns used
-------------
- Immutable **Value Objects** (``Coordinate``, ``RouteCandidate``,
  ``FareBreakdown``) -- always recomputed, never mutated in place.
- ``VehicleCategoryConfig`` validates its own invariants on construction.
- ``TrackedPosition`` is a tagged union: consumers switch on ``source``
  instead of probing for optional fields.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Literal, Optional, Union

from .enums import DiscountType, Maneuver
from .errors import InvalidCategoryConfig


# ── Value Objects ─────────────────────────────────────────────────────


@dataclass(frozen=True)
class Coordinate:
    lat: float
    lng: float


@dataclass(frozen=True)
class RouteCandidate:
    id: str
    summary: str
    distance_miles: float
    distance_meters: float
    duration_seconds: int
    duration_in_traffic_seconds: int
    polyline: str = ""


@dataclass(frozen=True)
class VehicleCategoryConfig:
    id: str
    display_name: str
    base_multiplier: float
    per_mile_multiplier: float
    per_minute_multiplier: float
    minimum_fare: float
    seat_count: int
    is_popular: bool = False
    is_premium: bool = False
    # minutes added to the base pickup ETA shown per category
    eta_minutes_offset: int = 0

    def __post_init__(self):
        for name in ("base_multiplier", "per_mile_multiplier", "per_minute_multiplier"):
            if getattr(self, name) < 0:
                raise InvalidCategoryConfig(f"{self.id}: {name} must be >= 0")
        if self.minimum_fare < 0:
            raise InvalidCategoryConfig(f"{self.id}: minimum_fare must be >= 0")
        if self.seat_count <= 0:
            raise InvalidCategoryConfig(f"{self.id}: seat_count must be > 0")
        if self.eta_minutes_offset < 0:
            raise InvalidCategoryConfig(f"{self.id}: eta_minutes_offset must be >= 0")


@dataclass(frozen=True)
class Promotion:
    id: str
    code: str
    discount_type: DiscountType
    discount_percent: float = 0.0
    discount_flat: float = 0.0
    max_discount_amount: Optional[float] = None
    label: str = ""
    is_default: bool = False


@dataclass(frozen=True)
class FareBreakdown:
    base_fare: Decimal
    distance_fare: Decimal
    time_fare: Decimal
    booking_fee: Decimal
    taxes_and_surcharges: Decimal
    minimum_fare_adjustment: Decimal
    subtotal: Decimal
    original_fare: Decimal
    discount_amount: Decimal
    final_fare: Decimal
    promo_code: Optional[str]
    promo_label: Optional[str]
    per_mile_rate: Decimal
    per_minute_rate: Decimal
    distance_miles: float
    eta_with_traffic_minutes: int
    traffic_level: Literal["light", "heavy"]
    pickup_eta_minutes: int = 0


@dataclass(frozen=True)
class DriverAssignment:
    name: str
    rating: float
    vehicle_model: str
    vehicle_color: str
    plate_number: str
    avatar_initials: str
    pickup_eta_minutes: int


@dataclass(frozen=True)
class TurnInstruction:
    text: str
    distance_feet: float
    maneuver: Maneuver


# ── Simulation state ──────────────────────────────────────────────────


@dataclass
class SimulatedPosition:
    """Mutable; owned exclusively by ``PositionSimulator``."""

    coordinate: Coordinate
    route_index: int = 0
    heading: float = 0.0
    speed_mph: float = 0.0


@dataclass(frozen=True)
class TrackingSnapshot:
    """Everything derived from one simulator tick."""

    coordinate: Coordinate
    route_index: int
    heading: float
    speed_mph: float
    remaining_miles: float
    eta_minutes: int
    next_turn: Optional[TurnInstruction]
    finished: bool


@dataclass(frozen=True)
class LiveFix:
    """One record of a driver's live position feed."""

    coordinate: Coordinate
    heading: float
    speed_mph: float
    remaining_miles: float
    eta_minutes: int
    recorded_at: datetime


# ── Tracked position (tagged union) ───────────────────────────────────


@dataclass(frozen=True)
class SimulatedTrackedPosition:
    coordinate: Coordinate
    heading: float
    speed_mph: float
    remaining_miles: float
    eta_minutes: int
    next_turn: Optional[TurnInstruction] = None
    route_index: int = 0
    source: Literal["simulated"] = field(default="simulated", init=False)


@dataclass(frozen=True)
class LiveTrackedPosition:
    coordinate: Coordinate
    heading: float
    speed_mph: float
    remaining_miles: float
    eta_minutes: int
    next_turn: Optional[TurnInstruction] = None
    recorded_at: Optional[datetime] = None
    source: Literal["live"] = field(default="live", init=False)


TrackedPosition = Union[SimulatedTrackedPosition, LiveTrackedPosition]
