"""Domain enumerations and state-transition rules."""

from __future__ import annotations

import enum
from typing import Optional


class RideStatus(str, enum.Enum):
    SELECTING = "SELECTING"
    CONFIRMING = "CONFIRMING"
    SEARCHING_DRIVER = "SEARCHING_DRIVER"
    DRIVER_ASSIGNED = "DRIVER_ASSIGNED"
    TRIP_IN_PROGRESS = "TRIP_IN_PROGRESS"
    TRIP_COMPLETED = "TRIP_COMPLETED"
    TRIP_CANCELLED = "TRIP_CANCELLED"


class TrackingPhase(str, enum.Enum):
    EN_ROUTE_TO_PICKUP = "EN_ROUTE_TO_PICKUP"
    EN_ROUTE_TO_DROPOFF = "EN_ROUTE_TO_DROPOFF"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


class TripEvent(str, enum.Enum):
    CONFIRM = "confirm"
    DISPATCHED = "dispatched"
    MATCHED = "matched"
    START_TRIP = "start_trip"
    COMPLETE_TRIP = "complete_trip"
    CANCEL = "cancel"
    RESET = "reset"


class DiscountType(str, enum.Enum):
    PERCENT = "PERCENT"
    FLAT = "FLAT"


class Maneuver(str, enum.Enum):
    CONTINUE = "continue"
    SLIGHT_LEFT = "slight_left"
    SLIGHT_RIGHT = "slight_right"
    LEFT = "left"
    RIGHT = "right"
    SHARP_LEFT = "sharp_left"
    SHARP_RIGHT = "sharp_right"


# Phases during which a vehicle is moving and the simulator runs
MOVING_PHASES = frozenset(
    {TrackingPhase.EN_ROUTE_TO_PICKUP, TrackingPhase.EN_ROUTE_TO_DROPOFF}
)

TERMINAL_STATUSES = frozenset(
    {RideStatus.TRIP_COMPLETED, RideStatus.TRIP_CANCELLED}
)


# State machine: (current status, event) -> (next status, tracking phase).
# Any pair not listed is rejected.
TRIP_TRANSITIONS: dict[
    tuple[RideStatus, TripEvent], tuple[RideStatus, Optional[TrackingPhase]]
] = {
    (RideStatus.SELECTING, TripEvent.CONFIRM): (RideStatus.CONFIRMING, None),
    (RideStatus.CONFIRMING, TripEvent.DISPATCHED): (
        RideStatus.SEARCHING_DRIVER,
        None,
    ),
    (RideStatus.SEARCHING_DRIVER, TripEvent.MATCHED): (
        RideStatus.DRIVER_ASSIGNED,
        TrackingPhase.EN_ROUTE_TO_PICKUP,
    ),
    (RideStatus.SEARCHING_DRIVER, TripEvent.CANCEL): (RideStatus.SELECTING, None),
    (RideStatus.DRIVER_ASSIGNED, TripEvent.START_TRIP): (
        RideStatus.TRIP_IN_PROGRESS,
        TrackingPhase.EN_ROUTE_TO_DROPOFF,
    ),
    (RideStatus.DRIVER_ASSIGNED, TripEvent.CANCEL): (
        RideStatus.TRIP_CANCELLED,
        TrackingPhase.CANCELLED,
    ),
    (RideStatus.TRIP_IN_PROGRESS, TripEvent.COMPLETE_TRIP): (
        RideStatus.TRIP_COMPLETED,
        TrackingPhase.COMPLETED,
    ),
    (RideStatus.TRIP_CANCELLED, TripEvent.RESET): (RideStatus.SELECTING, None),
    (RideStatus.TRIP_COMPLETED, TripEvent.RESET): (RideStatus.SELECTING, None),
}

# Statuses whose entry is announced through the notification collaborator
NOTIFY_ON_ENTRY = frozenset(
    {
        RideStatus.DRIVER_ASSIGNED,
        RideStatus.TRIP_IN_PROGRESS,
        RideStatus.TRIP_COMPLETED,
    }
)
