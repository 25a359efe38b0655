"""Static vehicle category reference data (read-only, ordered for display)."""

from __future__ import annotations

from .entities import VehicleCategoryConfig
from .errors import UnknownCategoryError

# pickup ETA shown for a category before a driver is matched
BASE_PICKUP_ETA_MINUTES = 5

VEHICLE_CATEGORIES: dict[str, VehicleCategoryConfig] = {
    c.id: c
    for c in (
        VehicleCategoryConfig(
            id="SAFEGO_X",
            display_name="SafeGo X",
            base_multiplier=1.0,
            per_mile_multiplier=1.0,
            per_minute_multiplier=1.0,
            minimum_fare=7.0,
            seat_count=4,
            is_popular=True,
        ),
        VehicleCategoryConfig(
            id="SAFEGO_GREEN",
            display_name="SafeGo Green",
            base_multiplier=1.1,
            per_mile_multiplier=1.1,
            per_minute_multiplier=1.1,
            minimum_fare=8.0,
            seat_count=4,
            eta_minutes_offset=3,
        ),
        VehicleCategoryConfig(
            id="SAFEGO_COMFORT",
            display_name="SafeGo Comfort",
            base_multiplier=1.2,
            per_mile_multiplier=1.2,
            per_minute_multiplier=1.2,
            minimum_fare=10.0,
            seat_count=4,
            eta_minutes_offset=2,
        ),
        VehicleCategoryConfig(
            id="SAFEGO_XL",
            display_name="SafeGo XL",
            base_multiplier=1.5,
            per_mile_multiplier=1.5,
            per_minute_multiplier=1.5,
            minimum_fare=12.0,
            seat_count=6,
            eta_minutes_offset=5,
        ),
        VehicleCategoryConfig(
            id="SAFEGO_BLACK",
            display_name="SafeGo Black",
            base_multiplier=2.5,
            per_mile_multiplier=2.5,
            per_minute_multiplier=2.5,
            minimum_fare=20.0,
            seat_count=4,
            is_premium=True,
            eta_minutes_offset=7,
        ),
        VehicleCategoryConfig(
            id="SAFEGO_BLACK_SUV",
            display_name="SafeGo Black SUV",
            base_multiplier=3.2,
            per_mile_multiplier=3.2,
            per_minute_multiplier=3.2,
            minimum_fare=25.0,
            seat_count=6,
            is_premium=True,
            eta_minutes_offset=10,
        ),
    )
}


def get_category(category_id: str) -> VehicleCategoryConfig:
    try:
        return VEHICLE_CATEGORIES[category_id]
    except KeyError:
        raise UnknownCategoryError(f"Unknown vehicle category: {category_id}") from None


def pickup_eta_minutes(category: VehicleCategoryConfig) -> int:
    return BASE_PICKUP_ETA_MINUTES + category.eta_minutes_offset
