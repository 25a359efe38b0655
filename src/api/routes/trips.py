"""
Trip endpoints
==============

POST /api/v1/trips                      -- plan a trip (routes, fare, default promo)
GET  /api/v1/trips/{trip_id}            -- trip state
PUT  /api/v1/trips/{trip_id}/route      -- switch the active route
PUT  /api/v1/trips/{trip_id}/category   -- switch the vehicle category
PUT  /api/v1/trips/{trip_id}/promotion  -- apply / clear a promotion
GET  /api/v1/trips/{trip_id}/fares      -- per-category quotes
POST /api/v1/trips/{trip_id}/{event}    -- confirm | dispatch | match | start | complete | cancel | reset
                                           (reset also releases the session)
GET  /api/v1/trips/{trip_id}/position   -- live or simulated vehicle position
POST /api/v1/trips/{trip_id}/interaction, /recenter -- map auto-follow
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.ext.asyncio import AsyncSession

from src.api.dependencies import (
    get_db,
    get_driver_matcher,
    get_live_feed,
    get_notifier,
    get_registry,
    get_routing_client,
)
from src.api.middleware import limiter
from src.api.schemas import (
    CategorySelectRequest,
    CoordinateOut,
    DriverResponse,
    ErrorResponse,
    FareResponse,
    InteractionResponse,
    PromotionResponse,
    PromotionSelectRequest,
    RouteResponse,
    RouteSelectRequest,
    TrackedPositionResponse,
    TransitionResponse,
    TransitionResult,
    TripCreateRequest,
    TripResponse,
)
from src.domain.entities import LiveTrackedPosition
from src.domain.enums import TERMINAL_STATUSES
from src.domain.errors import CatalogUnavailable, UnknownPromotionError
from src.infrastructure.repositories import PromotionRepository, TripRecordRepository
from src.services.booking import TripRegistry, TripSession

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/trips",
    tags=["trips"],
    responses={
        404: {"model": ErrorResponse, "description": "Unknown trip"},
        409: {"model": ErrorResponse, "description": "Event not allowed in this status"},
        500: {"model": ErrorResponse, "description": "Unexpected failure"},
    },
)


def trip_response(trip: TripSession) -> TripResponse:
    fare = None
    if trip.routes.active is not None:
        fare = FareResponse.from_breakdown(trip.category.id, trip.fare())
    machine = trip.machine
    return TripResponse(
        id=trip.id,
        status=trip.status.value,
        tracking_phase=trip.phase.value if trip.phase else None,
        is_cancelling=machine.is_cancelling,
        pickup=CoordinateOut(lat=trip.pickup.lat, lng=trip.pickup.lng),
        dropoff=CoordinateOut(lat=trip.dropoff.lat, lng=trip.dropoff.lng),
        vehicle_category=trip.category.id,
        routes=[RouteResponse.model_validate(r) for r in trip.routes.candidates],
        active_route_id=trip.routes.active_id,
        fare=fare,
        promotion=(
            PromotionResponse.model_validate(trip.promotion) if trip.promotion else None
        ),
        driver=DriverResponse.model_validate(machine.driver) if machine.driver else None,
        following_driver=trip.interaction.following,
        history=[
            TransitionResponse(
                event=h.event.value,
                from_status=h.from_status.value,
                to_status=h.to_status.value,
                at=h.at,
            )
            for h in machine.history
        ],
    )


def _transition_result(trip: TripSession, accepted: bool, event: str) -> TransitionResult:
    if not accepted:
        raise HTTPException(
            status_code=409,
            detail=f"Cannot {event} trip in status {trip.status.value}",
        )
    return TransitionResult(accepted=True, trip=trip_response(trip))


async def _record_if_finished(trip: TripSession, db: AsyncSession) -> None:
    if trip.status not in TERMINAL_STATUSES:
        return
    route = trip.routes.active
    await TripRecordRepository(db).record(
        trip_id=trip.id,
        pickup_lat=trip.pickup.lat,
        pickup_lng=trip.pickup.lng,
        dropoff_lat=trip.dropoff.lat,
        dropoff_lng=trip.dropoff.lng,
        vehicle_category=trip.category.id,
        final_status=trip.status,
        route_summary=route.summary if route else None,
        fare=trip.fare() if route else None,
        driver_name=trip.machine.driver.name if trip.machine.driver else None,
    )


# ── Planning ──────────────────────────────────────────────────────────


@router.post(
    "",
    status_code=201,
    response_model=TripResponse,
    summary="Plan a trip",
    responses={201: {"description": "Trip session created in SELECTING."}},
)
@limiter.limit("100/minute")
async def create_trip(
    request: Request,
    body: TripCreateRequest,
    db: AsyncSession = Depends(get_db),
    registry: TripRegistry = Depends(get_registry),
    routing=Depends(get_routing_client),
    notifier=Depends(get_notifier),
):
    trip = TripSession(
        pickup=body.pickup.to_domain() if body.pickup else None,
        dropoff=body.dropoff.to_domain() if body.dropoff else None,
        category_id=body.vehicle_category,
        notifier=notifier,
    )
    await trip.plan(routing)

    try:
        promotions = await PromotionRepository(db).list_active()
    except CatalogUnavailable:
        logger.warning("Trip %s: promotion catalog unavailable", trip.id)
        promotions = []
    trip.offer_promotions(promotions)

    registry.add(trip)
    return trip_response(trip)


@router.get("/{trip_id}", response_model=TripResponse, summary="Get trip state")
@limiter.limit("100/minute")
async def get_trip(
    request: Request,
    trip_id: str,
    registry: TripRegistry = Depends(get_registry),
):
    return trip_response(registry.get(trip_id))


@router.put("/{trip_id}/route", response_model=TripResponse, summary="Select a route")
@limiter.limit("100/minute")
async def select_route(
    request: Request,
    trip_id: str,
    body: RouteSelectRequest,
    registry: TripRegistry = Depends(get_registry),
):
    trip = registry.get(trip_id)
    if not trip.select_route(body.route_id):
        raise HTTPException(status_code=404, detail="Route not found")
    return trip_response(trip)


@router.put(
    "/{trip_id}/category", response_model=TripResponse, summary="Select a vehicle category"
)
@limiter.limit("100/minute")
async def select_category(
    request: Request,
    trip_id: str,
    body: CategorySelectRequest,
    registry: TripRegistry = Depends(get_registry),
):
    trip = registry.get(trip_id)
    trip.select_category(body.vehicle_category)
    return trip_response(trip)


@router.put(
    "/{trip_id}/promotion", response_model=TripResponse, summary="Apply or clear a promotion"
)
@limiter.limit("100/minute")
async def select_promotion(
    request: Request,
    trip_id: str,
    body: PromotionSelectRequest,
    db: AsyncSession = Depends(get_db),
    registry: TripRegistry = Depends(get_registry),
):
    trip = registry.get(trip_id)
    if body.promotion_id is None:
        trip.apply_promotion(None)
        return trip_response(trip)

    promotion = await PromotionRepository(db).get_by_id(body.promotion_id)
    if promotion is None:
        raise UnknownPromotionError("Promotion not found or inactive")
    trip.apply_promotion(promotion)
    return trip_response(trip)


@router.get(
    "/{trip_id}/fares",
    response_model=list[FareResponse],
    summary="Quote every vehicle category for the active route",
)
@limiter.limit("100/minute")
async def get_fares(
    request: Request,
    trip_id: str,
    registry: TripRegistry = Depends(get_registry),
):
    trip = registry.get(trip_id)
    return [FareResponse.from_breakdown(cid, fare) for cid, fare in trip.fares().items()]


# ── Lifecycle ─────────────────────────────────────────────────────────


@router.post("/{trip_id}/confirm", response_model=TransitionResult, summary="Confirm")
@limiter.limit("100/minute")
async def confirm_trip(
    request: Request, trip_id: str, registry: TripRegistry = Depends(get_registry)
):
    trip = registry.get(trip_id)
    return _transition_result(trip, await trip.confirm(), "confirm")


@router.post(
    "/{trip_id}/dispatch",
    response_model=TransitionResult,
    summary="Hand the confirmed request to dispatch",
)
@limiter.limit("100/minute")
async def dispatch_trip(
    request: Request, trip_id: str, registry: TripRegistry = Depends(get_registry)
):
    trip = registry.get(trip_id)
    return _transition_result(trip, await trip.dispatch(), "dispatch")


@router.post(
    "/{trip_id}/match",
    response_model=TransitionResult,
    summary="Assign a driver and start the pickup simulation",
)
@limiter.limit("100/minute")
async def match_trip(
    request: Request,
    trip_id: str,
    registry: TripRegistry = Depends(get_registry),
    matcher=Depends(get_driver_matcher),
    routing=Depends(get_routing_client),
):
    trip = registry.get(trip_id)
    return _transition_result(trip, await trip.match(matcher, routing), "match")


@router.post("/{trip_id}/start", response_model=TransitionResult, summary="Start the trip")
@limiter.limit("100/minute")
async def start_trip(
    request: Request, trip_id: str, registry: TripRegistry = Depends(get_registry)
):
    trip = registry.get(trip_id)
    return _transition_result(trip, await trip.start_trip(), "start")


@router.post(
    "/{trip_id}/complete", response_model=TransitionResult, summary="Complete the trip"
)
@limiter.limit("100/minute")
async def complete_trip(
    request: Request,
    trip_id: str,
    db: AsyncSession = Depends(get_db),
    registry: TripRegistry = Depends(get_registry),
):
    trip = registry.get(trip_id)
    accepted = await trip.complete_trip()
    if accepted:
        await _record_if_finished(trip, db)
    return _transition_result(trip, accepted, "complete")


@router.post(
    "/{trip_id}/cancel",
    response_model=TransitionResult,
    summary="Cancel the trip",
    description=(
        "While searching for a driver the trip returns to SELECTING; once a "
        "driver is assigned it ends as TRIP_CANCELLED. Duplicate requests "
        "during an in-flight cancellation are rejected."
    ),
)
@limiter.limit("100/minute")
async def cancel_trip(
    request: Request,
    trip_id: str,
    db: AsyncSession = Depends(get_db),
    registry: TripRegistry = Depends(get_registry),
):
    trip = registry.get(trip_id)
    accepted = await trip.cancel()
    if accepted:
        await _record_if_finished(trip, db)
    return _transition_result(trip, accepted, "cancel")


@router.post(
    "/{trip_id}/reset",
    response_model=TransitionResult,
    summary="Start over after a trip",
    description=(
        "Returns the trip to SELECTING and releases the session. A new "
        "booking starts with POST /trips."
    ),
)
@limiter.limit("100/minute")
async def reset_trip(
    request: Request, trip_id: str, registry: TripRegistry = Depends(get_registry)
):
    trip = registry.get(trip_id)
    result = _transition_result(trip, await trip.reset(), "reset")
    await registry.remove(trip_id)
    return result


# ── Tracking ──────────────────────────────────────────────────────────


@router.get(
    "/{trip_id}/position",
    response_model=TrackedPositionResponse,
    summary="Current vehicle position (live feed or simulation)",
)
@limiter.limit("100/minute")
async def get_position(
    request: Request,
    trip_id: str,
    registry: TripRegistry = Depends(get_registry),
    feed=Depends(get_live_feed),
):
    trip = registry.get(trip_id)
    tracked = await trip.position(feed)
    if tracked is None:
        raise HTTPException(status_code=404, detail="No vehicle to track")

    body = {
        "source": tracked.source,
        "coordinate": {"lat": tracked.coordinate.lat, "lng": tracked.coordinate.lng},
        "heading": tracked.heading,
        "speed_mph": tracked.speed_mph,
        "remaining_miles": tracked.remaining_miles,
        "eta_minutes": tracked.eta_minutes,
        "next_turn": (
            {
                "text": tracked.next_turn.text,
                "distance_feet": tracked.next_turn.distance_feet,
                "maneuver": tracked.next_turn.maneuver.value,
            }
            if tracked.next_turn
            else None
        ),
    }
    if isinstance(tracked, LiveTrackedPosition):
        body["recorded_at"] = tracked.recorded_at
    else:
        body["route_index"] = tracked.route_index
    return body


@router.post(
    "/{trip_id}/interaction",
    response_model=InteractionResponse,
    summary="Rider moved the map (debounced)",
)
@limiter.limit("600/minute")
async def register_interaction(
    request: Request, trip_id: str, registry: TripRegistry = Depends(get_registry)
):
    trip = registry.get(trip_id)
    emitted = trip.register_interaction()
    return InteractionResponse(emitted=emitted, following_driver=trip.interaction.following)


@router.post(
    "/{trip_id}/recenter",
    response_model=InteractionResponse,
    summary="Resume following the driver",
)
@limiter.limit("100/minute")
async def recenter(
    request: Request, trip_id: str, registry: TripRegistry = Depends(get_registry)
):
    trip = registry.get(trip_id)
    trip.recenter()
    return InteractionResponse(emitted=False, following_driver=True)
