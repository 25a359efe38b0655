"""
Fare Engine  (Strategy Pattern)
===============================

Formula
-------
ride_cost  = base + distance_miles x per_mile + ceil(traffic_minutes) x per_minute
subtotal   = max(ride_cost + booking_fee + round(ride_cost x tax_rate), minimum_fare)
final_fare = subtotal - discount

* **base / per_mile / per_minute** = platform rate x category multiplier
* **discount** comes from the applied promotion's strategy (percent with
  an optional cap, or flat) and is clamped to ``[0, subtotal]``

Money is fixed-point: every intermediate amount is rounded half-up to
cents, so identical inputs always give byte-identical breakdowns.

Complexity: O(1) per breakdown, O(k) to quote k categories.
"""

from __future__ import annotations

import math
from abc import ABC, abstractmethod
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable, Optional

from .entities import FareBreakdown, Promotion, RouteCandidate, VehicleCategoryConfig
from .enums import DiscountType
from .vehicles import VEHICLE_CATEGORIES, pickup_eta_minutes

CENT = Decimal("0.01")
HEAVY_TRAFFIC_SECONDS = 1800


def to_money(value) -> Decimal:
    """Round any number to cents (half-up)."""
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


# ── Discount strategies ───────────────────────────────────────────────


class DiscountStrategy(ABC):
    @abstractmethod
    def discount(self, original_fare: Decimal) -> Decimal: ...


class NoDiscount(DiscountStrategy):
    def discount(self, original_fare: Decimal) -> Decimal:
        return Decimal("0.00")


class PercentDiscount(DiscountStrategy):
    def __init__(self, percent: float, max_amount: Optional[float] = None):
        self.percent = Decimal(str(percent))
        self.max_amount = None if max_amount is None else to_money(max_amount)

    def discount(self, original_fare: Decimal) -> Decimal:
        raw = to_money(original_fare * self.percent / 100)
        if self.max_amount is not None:
            raw = min(raw, self.max_amount)
        return _clamp(raw, original_fare)


class FlatDiscount(DiscountStrategy):
    def __init__(self, amount: float):
        self.amount = to_money(amount)

    def discount(self, original_fare: Decimal) -> Decimal:
        return _clamp(min(self.amount, original_fare), original_fare)


def _clamp(amount: Decimal, original_fare: Decimal) -> Decimal:
    return max(Decimal("0.00"), min(amount, original_fare))


def discount_strategy(promotion: Optional[Promotion]) -> DiscountStrategy:
    if promotion is None:
        return NoDiscount()
    if promotion.discount_type == DiscountType.PERCENT and promotion.discount_percent > 0:
        return PercentDiscount(promotion.discount_percent, promotion.max_discount_amount)
    if promotion.discount_type == DiscountType.FLAT and promotion.discount_flat > 0:
        return FlatDiscount(promotion.discount_flat)
    return NoDiscount()


def select_default_promotion(promotions: Iterable[Promotion]) -> Optional[Promotion]:
    """The catalog entry flagged ``is_default`` (first one wins), if any."""
    return next((p for p in promotions if p.is_default), None)


# ── Engine facade ─────────────────────────────────────────────────────


class FareEngine:
    """High-level API used by the booking service and the API layer."""

    def __init__(
        self,
        base_fare: float = 2.50,
        per_mile_rate: float = 2.00,
        per_minute_rate: float = 0.30,
        booking_fee: float = 2.00,
        tax_rate: float = 0.08875,
    ):
        self.base_fare = to_money(base_fare)
        self.per_mile_rate = to_money(per_mile_rate)
        self.per_minute_rate = to_money(per_minute_rate)
        self.booking_fee = to_money(booking_fee)
        self.tax_rate = Decimal(str(tax_rate))

    @classmethod
    def from_settings(cls, settings) -> "FareEngine":
        return cls(
            base_fare=settings.base_fare,
            per_mile_rate=settings.per_mile_rate,
            per_minute_rate=settings.per_minute_rate,
            booking_fee=settings.booking_fee,
            tax_rate=settings.tax_rate,
        )

    def breakdown(
        self,
        route: RouteCandidate,
        category: VehicleCategoryConfig,
        promotion: Optional[Promotion] = None,
    ) -> FareBreakdown:
        distance = max(0.0, float(route.distance_miles or 0.0))
        traffic_seconds = max(0, int(route.duration_in_traffic_seconds or 0))
        traffic_minutes = math.ceil(traffic_seconds / 60)

        base_fare = to_money(self.base_fare * Decimal(str(category.base_multiplier)))
        per_mile_rate = to_money(self.per_mile_rate * Decimal(str(category.per_mile_multiplier)))
        per_minute_rate = to_money(
            self.per_minute_rate * Decimal(str(category.per_minute_multiplier))
        )

        distance_fare = to_money(Decimal(str(distance)) * per_mile_rate)
        time_fare = to_money(traffic_minutes * per_minute_rate)

        ride_cost = base_fare + distance_fare + time_fare
        taxes = to_money(ride_cost * self.tax_rate)
        calculated_subtotal = ride_cost + self.booking_fee + taxes

        minimum_fare = to_money(category.minimum_fare)
        minimum_adjustment = max(Decimal("0.00"), minimum_fare - calculated_subtotal)
        subtotal = max(calculated_subtotal, minimum_fare)
        original_fare = subtotal

        discount = discount_strategy(promotion).discount(original_fare)
        final_fare = to_money(original_fare - discount)

        return FareBreakdown(
            base_fare=base_fare,
            distance_fare=distance_fare,
            time_fare=time_fare,
            booking_fee=self.booking_fee,
            taxes_and_surcharges=taxes,
            minimum_fare_adjustment=minimum_adjustment,
            subtotal=subtotal,
            original_fare=original_fare,
            discount_amount=discount,
            final_fare=final_fare,
            promo_code=promotion.code if promotion else None,
            promo_label=promotion.label if promotion else None,
            per_mile_rate=per_mile_rate,
            per_minute_rate=per_minute_rate,
            distance_miles=distance,
            eta_with_traffic_minutes=traffic_minutes,
            traffic_level="heavy" if traffic_seconds > HEAVY_TRAFFIC_SECONDS else "light",
            pickup_eta_minutes=pickup_eta_minutes(category),
        )

    def quote_all(
        self,
        route: RouteCandidate,
        promotion: Optional[Promotion] = None,
        categories: Optional[Iterable[VehicleCategoryConfig]] = None,
    ) -> dict[str, FareBreakdown]:
        """Per-category breakdowns in display order."""
        categories = VEHICLE_CATEGORIES.values() if categories is None else categories
        return {c.id: self.breakdown(route, c, promotion) for c in categories}
