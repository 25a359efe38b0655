"""
SQLAlchemy ORM models  (maps to PostgreSQL + PostGIS).

Tables
------
* ``promotions``    -- promotion catalog read at trip start
* ``trip_records``  -- one row per finished (completed / cancelled) trip

Indexes
-------
* **GIST** on the pickup / dropoff geometry columns of ``trip_records``.
* **B-Tree** on ``promotions.is_active`` and ``trip_records.final_status``.
"""

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Enum,
    Float,
    Index,
    Integer,
    Numeric,
    String,
    func,
)
from geoalchemy2 import Geometry

from .database import Base
from src.domain.enums import DiscountType, RideStatus


class PromotionModel(Base):
    __tablename__ = "promotions"

    id = Column(String(36), primary_key=True)
    name = Column(String(120), nullable=False)
    code = Column(String(32), unique=True, nullable=False)
    description = Column(String(255), nullable=True)
    discount_type = Column(Enum(DiscountType), nullable=False)
    value = Column(Numeric(10, 2), nullable=False)
    max_discount_amount = Column(Numeric(10, 2), nullable=True)
    is_default = Column(Boolean, default=False, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (Index("idx_promotions_active", "is_active"),)


class TripRecordModel(Base):
    __tablename__ = "trip_records"

    id = Column(Integer, primary_key=True, autoincrement=True)
    trip_id = Column(String(36), unique=True, nullable=False)

    pickup_point = Column(Geometry("POINT", srid=4326), nullable=False)
    dropoff_point = Column(Geometry("POINT", srid=4326), nullable=False)

    # Plain floats for fast reads (avoids ST_X / ST_Y)
    pickup_lat = Column(Float, nullable=False)
    pickup_lng = Column(Float, nullable=False)
    dropoff_lat = Column(Float, nullable=False)
    dropoff_lng = Column(Float, nullable=False)

    vehicle_category = Column(String(32), nullable=False)
    final_status = Column(Enum(RideStatus), nullable=False)
    route_summary = Column(String(255), nullable=True)
    distance_miles = Column(Float, nullable=True)
    original_fare = Column(Numeric(10, 2), nullable=True)
    discount_amount = Column(Numeric(10, 2), nullable=True)
    final_fare = Column(Numeric(10, 2), nullable=True)
    promo_code = Column(String(32), nullable=True)
    driver_name = Column(String(120), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        Index("idx_trip_records_pickup", "pickup_point", postgresql_using="gist"),
        Index("idx_trip_records_dropoff", "dropoff_point", postgresql_using="gist"),
        Index("idx_trip_records_status", "final_status"),
    )
