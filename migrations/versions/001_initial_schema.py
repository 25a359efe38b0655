"""Initial schema with PostGIS extension: promotion catalog and trip history.

Revision ID: 001
Create Date: 2026-10-16
"""

from alembic import op
import sqlalchemy as sa
from geoalchemy2 import Geometry


revision = "001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    # Enable PostGIS extension
    op.execute("CREATE EXTENSION IF NOT EXISTS postgis")

    # ── promotions ────────────────────────────────────────────────────
    op.create_table(
        "promotions",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("name", sa.String(120), nullable=False),
        sa.Column("code", sa.String(32), unique=True, nullable=False),
        sa.Column("description", sa.String(255), nullable=True),
        sa.Column(
            "discount_type",
            sa.Enum("PERCENT", "FLAT", name="discounttype"),
            nullable=False,
        ),
        sa.Column("value", sa.Numeric(10, 2), nullable=False),
        sa.Column("max_discount_amount", sa.Numeric(10, 2), nullable=True),
        sa.Column("is_default", sa.Boolean, default=False, nullable=False),
        sa.Column("is_active", sa.Boolean, default=True, nullable=False),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
        ),
    )
    op.create_index("idx_promotions_active", "promotions", ["is_active"])

    # ── trip_records ──────────────────────────────────────────────────
    op.create_table(
        "trip_records",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("trip_id", sa.String(36), unique=True, nullable=False),
        sa.Column(
            "pickup_point", Geometry("POINT", srid=4326), nullable=False
        ),
        sa.Column(
            "dropoff_point", Geometry("POINT", srid=4326), nullable=False
        ),
        sa.Column("pickup_lat", sa.Float, nullable=False),
        sa.Column("pickup_lng", sa.Float, nullable=False),
        sa.Column("dropoff_lat", sa.Float, nullable=False),
        sa.Column("dropoff_lng", sa.Float, nullable=False),
        sa.Column("vehicle_category", sa.String(32), nullable=False),
        sa.Column(
            "final_status",
            sa.Enum(
                "SELECTING",
                "CONFIRMING",
                "SEARCHING_DRIVER",
                "DRIVER_ASSIGNED",
                "TRIP_IN_PROGRESS",
                "TRIP_COMPLETED",
                "TRIP_CANCELLED",
                name="ridestatus",
            ),
            nullable=False,
        ),
        sa.Column("route_summary", sa.String(255), nullable=True),
        sa.Column("distance_miles", sa.Float, nullable=True),
        sa.Column("original_fare", sa.Numeric(10, 2), nullable=True),
        sa.Column("discount_amount", sa.Numeric(10, 2), nullable=True),
        sa.Column("final_fare", sa.Numeric(10, 2), nullable=True),
        sa.Column("promo_code", sa.String(32), nullable=True),
        sa.Column("driver_name", sa.String(120), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
        ),
    )
    op.create_index(
        "idx_trip_records_pickup",
        "trip_records",
        ["pickup_point"],
        postgresql_using="gist",
    )
    op.create_index(
        "idx_trip_records_dropoff",
        "trip_records",
        ["dropoff_point"],
        postgresql_using="gist",
    )
    op.create_index("idx_trip_records_status", "trip_records", ["final_status"])


def downgrade() -> None:
    op.drop_table("trip_records")
    op.drop_table("promotions")
    op.execute("DROP TYPE IF EXISTS ridestatus")
    op.execute("DROP TYPE IF EXISTS discounttype")
