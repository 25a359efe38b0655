"""
Trip State Machine
==================

Owns ``RideStatus`` (primary) and ``TrackingPhase`` (secondary) for one
booking and enforces the transition table in ``enums.TRIP_TRANSITIONS``::

    SELECTING --confirm--> CONFIRMING --dispatched--> SEARCHING_DRIVER
    SEARCHING_DRIVER --matched--> DRIVER_ASSIGNED --start_trip--> TRIP_IN_PROGRESS
    TRIP_IN_PROGRESS --complete_trip--> TRIP_COMPLETED
    SEARCHING_DRIVER --cancel--> SELECTING
    DRIVER_ASSIGNED --cancel--> TRIP_CANCELLED
    TRIP_COMPLETED | TRIP_CANCELLED --reset--> SELECTING

Rejected events are no-ops: they log a warning, leave state untouched and
return ``False``.  A stale button click can therefore never move a trip
back to an earlier phase.

Side effects
------------
* Listeners registered with :meth:`subscribe` are awaited after each
  accepted transition (the booking service restarts the simulator here).
* The notifier is awaited on entry to DRIVER_ASSIGNED, TRIP_IN_PROGRESS
  and TRIP_COMPLETED, bounded by a timeout.  Neither listener nor notifier
  failures revert a transition.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Awaitable, Callable, Optional, Protocol, Sequence

from .entities import Coordinate, DriverAssignment
from .enums import (
    MOVING_PHASES,
    NOTIFY_ON_ENTRY,
    TRIP_TRANSITIONS,
    RideStatus,
    TrackingPhase,
    TripEvent,
)

logger = logging.getLogger(__name__)


class Notifier(Protocol):
    async def notify(
        self, trip_id: str, status: RideStatus, driver: Optional[DriverAssignment]
    ) -> None: ...


Listener = Callable[["TripStateMachine"], Awaitable[None]]


@dataclass(frozen=True)
class TransitionRecord:
    event: TripEvent
    from_status: RideStatus
    to_status: RideStatus
    at: datetime


class TripStateMachine:
    def __init__(
        self,
        trip_id: str,
        notifier: Optional[Notifier] = None,
        notification_timeout: float = 2.0,
    ):
        self.trip_id = trip_id
        self.status = RideStatus.SELECTING
        self.phase: Optional[TrackingPhase] = None
        self.driver: Optional[DriverAssignment] = None
        self.trip_route: list[Coordinate] = []
        self.phase_route: list[Coordinate] = []
        self.is_cancelling = False
        self.history: list[TransitionRecord] = []

        self._notifier = notifier
        self._notification_timeout = notification_timeout
        self._listeners: list[Listener] = []

    def subscribe(self, listener: Listener) -> None:
        self._listeners.append(listener)

    def can(self, event: TripEvent) -> bool:
        return (self.status, event) in TRIP_TRANSITIONS

    # ── Events ────────────────────────────────────────────────────────

    async def confirm(self, trip_route: Sequence[Coordinate]) -> bool:
        if not self._check(TripEvent.CONFIRM):
            return False
        self.trip_route = list(trip_route)
        return await self._enter(TripEvent.CONFIRM)

    async def dispatched(self) -> bool:
        if not self._check(TripEvent.DISPATCHED):
            return False
        return await self._enter(TripEvent.DISPATCHED)

    async def matched(
        self, driver: DriverAssignment, pickup_route: Sequence[Coordinate]
    ) -> bool:
        if not self._check(TripEvent.MATCHED):
            return False
        self.driver = driver
        self.phase_route = list(pickup_route)
        return await self._enter(TripEvent.MATCHED)

    async def start_trip(self) -> bool:
        if not self._check(TripEvent.START_TRIP):
            return False
        self.phase_route = list(self.trip_route)
        return await self._enter(TripEvent.START_TRIP)

    async def complete_trip(self) -> bool:
        if not self._check(TripEvent.COMPLETE_TRIP):
            return False
        return await self._enter(TripEvent.COMPLETE_TRIP)

    async def cancel(
        self, side_effect: Optional[Callable[[], Awaitable[None]]] = None
    ) -> bool:
        """
        Cancel the trip.  While a cancellation is in flight every further
        call is a no-op, so duplicate clicks fire exactly one side effect.
        """
        if self.is_cancelling:
            logger.info("Trip %s: cancel already in progress - ignored", self.trip_id)
            return False
        if not self._check(TripEvent.CANCEL):
            return False

        self.is_cancelling = True
        try:
            if side_effect is not None:
                try:
                    await side_effect()
                except Exception:
                    logger.exception(
                        "Trip %s: cancellation side effect failed", self.trip_id
                    )
                    return False
            # Re-check: the trip may have moved on while we awaited
            if not self._check(TripEvent.CANCEL):
                return False
            if self.status == RideStatus.SEARCHING_DRIVER:
                self.trip_route = []
            return await self._enter(TripEvent.CANCEL)
        finally:
            self.is_cancelling = False

    async def reset(self) -> bool:
        if not self._check(TripEvent.RESET):
            return False
        self.driver = None
        self.trip_route = []
        self.phase_route = []
        return await self._enter(TripEvent.RESET)

    # ── Internals ─────────────────────────────────────────────────────

    def _check(self, event: TripEvent) -> bool:
        if self.can(event):
            return True
        logger.warning(
            "Trip %s: rejected %s in status %s",
            self.trip_id,
            event.value,
            self.status.value,
        )
        return False

    async def _enter(self, event: TripEvent) -> bool:
        previous = self.status
        self.status, self.phase = TRIP_TRANSITIONS[(previous, event)]
        if self.phase not in MOVING_PHASES:
            self.phase_route = []
        self.history.append(
            TransitionRecord(event, previous, self.status, datetime.now(timezone.utc))
        )
        logger.info(
            "Trip %s: %s -> %s (%s)",
            self.trip_id,
            previous.value,
            self.status.value,
            event.value,
        )

        for listener in list(self._listeners):
            try:
                await listener(self)
            except Exception:
                logger.exception("Trip %s: state listener failed", self.trip_id)

        if self.status in NOTIFY_ON_ENTRY:
            await self._notify()
        return True

    async def _notify(self) -> None:
        if self._notifier is None:
            return
        try:
            await asyncio.wait_for(
                self._notifier.notify(self.trip_id, self.status, self.driver),
                timeout=self._notification_timeout,
            )
        except asyncio.TimeoutError:
            logger.warning(
                "Trip %s: notification for %s timed out",
                self.trip_id,
                self.status.value,
            )
        except Exception:
            logger.exception(
                "Trip %s: notification for %s failed", self.trip_id, self.status.value
            )
