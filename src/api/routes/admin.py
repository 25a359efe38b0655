"""
Admin / observability endpoints
===============================

GET  /api/v1/admin/health                 -- health check + live trip count
GET  /api/v1/admin/promotions             -- active promotion catalog
GET  /api/v1/admin/trips                  -- recently finished trips
POST /api/v1/admin/trips/{trip_id}/live   -- push a live driver fix (telemetry bridge)
"""

from datetime import datetime, timezone

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from src.api.dependencies import get_db, get_live_feed, get_registry
from src.api.middleware import limiter
from src.api.schemas import (
    HealthResponse,
    LiveFixRequest,
    PromotionResponse,
    TripRecordResponse,
)
from src.domain.entities import Coordinate, LiveFix
from src.infrastructure.repositories import PromotionRepository, TripRecordRepository
from src.services.booking import TripRegistry

router = APIRouter(prefix="/admin", tags=["admin"])


@router.get("/health", response_model=HealthResponse, summary="Health check")
async def health(registry: TripRegistry = Depends(get_registry)):
    return HealthResponse(active_trips=registry.active_count())


@router.get(
    "/promotions",
    response_model=list[PromotionResponse],
    summary="List the active promotion catalog",
)
@limiter.limit("100/minute")
async def list_promotions(
    request: Request,
    db: AsyncSession = Depends(get_db),
):
    promotions = await PromotionRepository(db).list_active()
    return [PromotionResponse.model_validate(p) for p in promotions]


@router.get(
    "/trips",
    response_model=list[TripRecordResponse],
    summary="List recently finished trips",
)
@limiter.limit("100/minute")
async def list_trip_records(
    request: Request,
    limit: int = 50,
    db: AsyncSession = Depends(get_db),
):
    records = await TripRecordRepository(db).list_recent(limit=min(max(limit, 1), 200))
    return [
        TripRecordResponse(
            trip_id=r.trip_id,
            vehicle_category=r.vehicle_category,
            final_status=(
                r.final_status.value if hasattr(r.final_status, "value") else r.final_status
            ),
            route_summary=r.route_summary,
            distance_miles=r.distance_miles,
            final_fare=float(r.final_fare) if r.final_fare is not None else None,
            promo_code=r.promo_code,
            driver_name=r.driver_name,
            created_at=r.created_at,
        )
        for r in records
    ]


@router.post(
    "/trips/{trip_id}/live",
    status_code=202,
    summary="Publish a live driver fix that overrides the simulation",
)
@limiter.limit("600/minute")
async def publish_live_fix(
    request: Request,
    trip_id: str,
    body: LiveFixRequest,
    registry: TripRegistry = Depends(get_registry),
    feed=Depends(get_live_feed),
):
    registry.get(trip_id)  # 404 for unknown trips
    await feed.publish(
        trip_id,
        LiveFix(
            coordinate=Coordinate(body.lat, body.lng),
            heading=body.heading,
            speed_mph=body.speed_mph,
            remaining_miles=body.remaining_miles,
            eta_minutes=body.eta_minutes,
            recorded_at=datetime.now(timezone.utc),
        ),
    )
    return {"status": "accepted"}
