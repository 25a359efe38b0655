"""
Repository Pattern -- abstracts DB access so domain logic stays DB-agnostic.

Each repository receives an ``AsyncSession`` (unit-of-work) and exposes
domain-relevant queries only.  The promotion repository is the promotion
catalog collaborator: it returns domain ``Promotion`` values, never ORM rows.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Optional

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from .models import PromotionModel, TripRecordModel
from src.domain.entities import FareBreakdown, Promotion
from src.domain.enums import DiscountType, RideStatus
from src.domain.errors import CatalogUnavailable


def _to_float(value) -> Optional[float]:
    return None if value is None else float(value)


def promotion_from_row(row: PromotionModel) -> Promotion:
    discount_type = DiscountType(row.discount_type)
    value = float(row.value or Decimal("0"))
    return Promotion(
        id=row.id,
        code=row.code,
        discount_type=discount_type,
        discount_percent=value if discount_type == DiscountType.PERCENT else 0.0,
        discount_flat=value if discount_type == DiscountType.FLAT else 0.0,
        max_discount_amount=_to_float(row.max_discount_amount),
        label=row.name,
        is_default=bool(row.is_default),
    )


class PromotionRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def list_active(self) -> list[Promotion]:
        try:
            result = await self.session.execute(
                select(PromotionModel)
                .where(PromotionModel.is_active.is_(True))
                .order_by(PromotionModel.created_at)
            )
        except SQLAlchemyError as exc:
            raise CatalogUnavailable("Promotion catalog is unavailable") from exc
        return [promotion_from_row(r) for r in result.scalars().all()]

    async def get_by_id(self, promotion_id: str) -> Optional[Promotion]:
        try:
            row = await self.session.get(PromotionModel, promotion_id)
        except SQLAlchemyError as exc:
            raise CatalogUnavailable("Promotion catalog is unavailable") from exc
        if row is None or not row.is_active:
            return None
        return promotion_from_row(row)


class TripRecordRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def record(
        self,
        *,
        trip_id: str,
        pickup_lat: float,
        pickup_lng: float,
        dropoff_lat: float,
        dropoff_lng: float,
        vehicle_category: str,
        final_status: RideStatus,
        route_summary: str | None = None,
        fare: FareBreakdown | None = None,
        driver_name: str | None = None,
    ) -> TripRecordModel:
        """Persist a finished trip with proper PostGIS geometry columns."""
        from geoalchemy2.functions import ST_MakePoint

        record = TripRecordModel(
            trip_id=trip_id,
            pickup_lat=pickup_lat,
            pickup_lng=pickup_lng,
            dropoff_lat=dropoff_lat,
            dropoff_lng=dropoff_lng,
            pickup_point=ST_MakePoint(pickup_lng, pickup_lat),
            dropoff_point=ST_MakePoint(dropoff_lng, dropoff_lat),
            vehicle_category=vehicle_category,
            final_status=final_status,
            route_summary=route_summary,
            distance_miles=fare.distance_miles if fare else None,
            original_fare=fare.original_fare if fare else None,
            discount_amount=fare.discount_amount if fare else None,
            final_fare=fare.final_fare if fare else None,
            promo_code=fare.promo_code if fare else None,
            driver_name=driver_name,
        )
        self.session.add(record)
        await self.session.flush()
        return record

    async def list_recent(self, limit: int = 50) -> list[TripRecordModel]:
        result = await self.session.execute(
            select(TripRecordModel)
            .order_by(TripRecordModel.created_at.desc(), TripRecordModel.id.desc())
            .limit(limit)
        )
        return list(result.scalars().all())
