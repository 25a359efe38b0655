"""
Shared test fixtures.

Uses an in-memory SQLite database (via aiosqlite) so tests run without
Docker / PostgreSQL / Redis.  PostGIS-specific features (Geometry columns)
are mocked by using plain String columns in the test models.
"""

from typing import AsyncGenerator

import pytest
import pytest_asyncio
from sqlalchemy import Boolean, Column, DateTime, Float, Integer, Numeric, String, func
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from src.domain.entities import Coordinate
from src.domain.geo import encode_polyline


# ── Test DB (SQLite in-memory) ────────────────────────────────────────

TEST_DB_URL = "sqlite+aiosqlite:///:memory:"

test_engine = create_async_engine(TEST_DB_URL, echo=False)
TestSessionFactory = async_sessionmaker(
    test_engine, class_=AsyncSession, expire_on_commit=False
)


class TestBase(DeclarativeBase):
    pass


# Mirror the production models but without PostGIS Geometry columns
# (SQLite doesn't support them).

class TestPromotionModel(TestBase):
    __tablename__ = "promotions"
    id = Column(String(36), primary_key=True)
    name = Column(String(120), nullable=False)
    code = Column(String(32), unique=True, nullable=False)
    description = Column(String(255), nullable=True)
    discount_type = Column(String(10), nullable=False)
    value = Column(Numeric(10, 2), nullable=False)
    max_discount_amount = Column(Numeric(10, 2), nullable=True)
    is_default = Column(Boolean, default=False, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, server_default=func.now())


class TestTripRecordModel(TestBase):
    __tablename__ = "trip_records"
    id = Column(Integer, primary_key=True, autoincrement=True)
    trip_id = Column(String(36), unique=True, nullable=False)
    pickup_point = Column(String, nullable=True)  # stub for Geometry
    dropoff_point = Column(String, nullable=True)  # stub for Geometry
    pickup_lat = Column(Float, nullable=False)
    pickup_lng = Column(Float, nullable=False)
    dropoff_lat = Column(Float, nullable=False)
    dropoff_lng = Column(Float, nullable=False)
    vehicle_category = Column(String(32), nullable=False)
    final_status = Column(String(20), nullable=False)
    route_summary = Column(String(255), nullable=True)
    distance_miles = Column(Float, nullable=True)
    original_fare = Column(Numeric(10, 2), nullable=True)
    discount_amount = Column(Numeric(10, 2), nullable=True)
    final_fare = Column(Numeric(10, 2), nullable=True)
    promo_code = Column(String(32), nullable=True)
    driver_name = Column(String(120), nullable=True)
    created_at = Column(DateTime, server_default=func.now())


# ── Fixtures ──────────────────────────────────────────────────────────


@pytest_asyncio.fixture
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """Create tables, yield a session, then drop everything."""
    async with test_engine.begin() as conn:
        await conn.run_sync(TestBase.metadata.create_all)

    async with TestSessionFactory() as session:
        yield session

    async with test_engine.begin() as conn:
        await conn.run_sync(TestBase.metadata.drop_all)


# Times Square -> Lower Manhattan, roughly 3.6 miles apart
PICKUP = Coordinate(40.7580, -73.9855)
DROPOFF = Coordinate(40.7061, -73.9969)


@pytest.fixture
def l_shaped_route() -> list[Coordinate]:
    """Ten points due north, then ten points east-southeast (a right turn)."""
    north = [Coordinate(40.70 + i * 0.001, -74.00) for i in range(10)]
    corner = north[-1]
    east = [
        Coordinate(corner.lat - i * 0.0002, corner.lng + i * 0.001) for i in range(1, 11)
    ]
    return north + east


@pytest.fixture
def encoded_l_route(l_shaped_route) -> str:
    return encode_polyline(l_shaped_route)
