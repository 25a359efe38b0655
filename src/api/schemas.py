"""Pydantic request / response schemas for the REST API."""

from __future__ import annotations

from datetime import datetime
from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, Field

from src.domain import entities
from src.domain.enums import DiscountType


# ── Requests ──────────────────────────────────────────────────────────


class CoordinateIn(BaseModel):
    lat: float = Field(..., ge=-90, le=90)
    lng: float = Field(..., ge=-180, le=180)

    def to_domain(self) -> entities.Coordinate:
        return entities.Coordinate(self.lat, self.lng)


class TripCreateRequest(BaseModel):
    pickup: Optional[CoordinateIn] = None
    dropoff: Optional[CoordinateIn] = None
    vehicle_category: Optional[str] = Field(None, max_length=32)


class RouteSelectRequest(BaseModel):
    route_id: str = Field(..., max_length=64)


class CategorySelectRequest(BaseModel):
    vehicle_category: str = Field(..., max_length=32)


class PromotionSelectRequest(BaseModel):
    promotion_id: Optional[str] = Field(
        None,
        max_length=36,
        description="Catalog id of the promotion to apply; null clears it.",
    )


class LiveFixRequest(BaseModel):
    lat: float = Field(..., ge=-90, le=90)
    lng: float = Field(..., ge=-180, le=180)
    heading: float = Field(0.0, ge=0, lt=360)
    speed_mph: float = Field(0.0, ge=0)
    remaining_miles: float = Field(0.0, ge=0)
    eta_minutes: int = Field(1, ge=1)


# ── Responses ─────────────────────────────────────────────────────────


class CoordinateOut(BaseModel):
    lat: float
    lng: float


class RouteResponse(BaseModel):
    id: str
    summary: str
    distance_miles: float
    distance_meters: float
    duration_seconds: int
    duration_in_traffic_seconds: int
    polyline: str

    model_config = {"from_attributes": True}


class FareResponse(BaseModel):
    vehicle_category: str
    base_fare: float
    distance_fare: float
    time_fare: float
    booking_fee: float
    taxes_and_surcharges: float
    minimum_fare_adjustment: float
    subtotal: float
    original_fare: float
    discount_amount: float
    final_fare: float
    promo_code: Optional[str] = None
    promo_label: Optional[str] = None
    per_mile_rate: float
    per_minute_rate: float
    distance_miles: float
    eta_with_traffic_minutes: int
    traffic_level: str
    pickup_eta_minutes: int = 0

    @classmethod
    def from_breakdown(
        cls, category_id: str, fare: entities.FareBreakdown
    ) -> "FareResponse":
        return cls(
            vehicle_category=category_id,
            base_fare=float(fare.base_fare),
            distance_fare=float(fare.distance_fare),
            time_fare=float(fare.time_fare),
            booking_fee=float(fare.booking_fee),
            taxes_and_surcharges=float(fare.taxes_and_surcharges),
            minimum_fare_adjustment=float(fare.minimum_fare_adjustment),
            subtotal=float(fare.subtotal),
            original_fare=float(fare.original_fare),
            discount_amount=float(fare.discount_amount),
            final_fare=float(fare.final_fare),
            promo_code=fare.promo_code,
            promo_label=fare.promo_label,
            per_mile_rate=float(fare.per_mile_rate),
            per_minute_rate=float(fare.per_minute_rate),
            distance_miles=fare.distance_miles,
            eta_with_traffic_minutes=fare.eta_with_traffic_minutes,
            traffic_level=fare.traffic_level,
            pickup_eta_minutes=fare.pickup_eta_minutes,
        )


class DriverResponse(BaseModel):
    name: str
    rating: float
    vehicle_model: str
    vehicle_color: str
    plate_number: str
    avatar_initials: str
    pickup_eta_minutes: int

    model_config = {"from_attributes": True}


class PromotionResponse(BaseModel):
    id: str
    code: str
    discount_type: DiscountType
    discount_percent: float
    discount_flat: float
    max_discount_amount: Optional[float] = None
    label: str
    is_default: bool

    model_config = {"from_attributes": True}


class TransitionResponse(BaseModel):
    event: str
    from_status: str
    to_status: str
    at: datetime

    model_config = {"from_attributes": True}


class TripResponse(BaseModel):
    id: str
    status: str
    tracking_phase: Optional[str] = None
    is_cancelling: bool = False
    pickup: CoordinateOut
    dropoff: CoordinateOut
    vehicle_category: str
    routes: list[RouteResponse] = []
    active_route_id: Optional[str] = None
    fare: Optional[FareResponse] = None
    promotion: Optional[PromotionResponse] = None
    driver: Optional[DriverResponse] = None
    following_driver: bool = True
    history: list[TransitionResponse] = []


class TransitionResult(BaseModel):
    accepted: bool
    trip: TripResponse


class TurnResponse(BaseModel):
    text: str
    distance_feet: float
    maneuver: str


class _TrackedBase(BaseModel):
    coordinate: CoordinateOut
    heading: float
    speed_mph: float
    remaining_miles: float
    eta_minutes: int
    next_turn: Optional[TurnResponse] = None


class SimulatedPositionResponse(_TrackedBase):
    source: Literal["simulated"] = "simulated"
    route_index: int = 0


class LivePositionResponse(_TrackedBase):
    source: Literal["live"] = "live"
    recorded_at: Optional[datetime] = None


TrackedPositionResponse = Annotated[
    Union[SimulatedPositionResponse, LivePositionResponse],
    Field(discriminator="source"),
]


class InteractionResponse(BaseModel):
    emitted: bool
    following_driver: bool


class TripRecordResponse(BaseModel):
    trip_id: str
    vehicle_category: str
    final_status: str
    route_summary: Optional[str] = None
    distance_miles: Optional[float] = None
    final_fare: Optional[float] = None
    promo_code: Optional[str] = None
    driver_name: Optional[str] = None
    created_at: Optional[datetime] = None


class HealthResponse(BaseModel):
    status: str = "ok"
    active_trips: int = 0


class ErrorResponse(BaseModel):
    detail: str
    correlation_id: Optional[str] = None
