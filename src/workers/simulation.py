"""
Simulation Session
==================

Owns the recurring tick timer for one trip's ``PositionSimulator``.

* One session per trip; never shared.  The booking service stops it on
  phase change and trip reset.
* ``start()`` with a logically identical route while running is a no-op;
  any other route first cancels the pending tick task so two simulations
  can never race on the same vehicle.
* Ticks run on the event loop via a single ``asyncio`` task, so tick
  callbacks never overlap.  The loop ends after the tick that reaches the
  last route point; the simulator keeps holding that position.
* ``frame(now)`` layers ease-in-out smoothing on top of the discrete tick
  model for presentation.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Awaitable, Callable, Optional, Sequence, Union

from src.domain import geo
from src.domain.entities import Coordinate, TrackingSnapshot
from src.domain.enums import TrackingPhase
from src.domain.simulation import PositionSimulator, route_key

logger = logging.getLogger(__name__)

TickCallback = Callable[[TrackingSnapshot], Union[None, Awaitable[None]]]


class SimulationSession:
    def __init__(
        self,
        simulator: PositionSimulator,
        tick_seconds: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.simulator = simulator
        self.tick_seconds = simulator.tick_seconds if tick_seconds is None else tick_seconds
        self._clock = clock
        self._callbacks: list[TickCallback] = []
        self._task: Optional[asyncio.Task] = None
        self._stop_event: Optional[asyncio.Event] = None

        self.last: Optional[TrackingSnapshot] = None
        self._previous: Optional[TrackingSnapshot] = None
        self._last_tick_at: Optional[float] = None

    # ── Public API ────────────────────────────────────────────────────

    def on_tick(self, callback: TickCallback) -> None:
        self._callbacks.append(callback)

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def start(self, points: Sequence[Coordinate], phase: TrackingPhase) -> bool:
        """Start simulating *points*.  Returns ``False`` if nothing changed."""
        if (
            self.simulator.key == route_key(points)
            and self.simulator.phase == phase
            and (self.is_running or self.simulator.finished)
        ):
            return False

        await self.stop()
        self.simulator.load(points, phase)
        if not self.simulator.active:
            logger.warning("Simulation not started: empty %s route", phase.value)
            return False

        self.last = self.simulator.snapshot()
        self._previous = self.last
        self._last_tick_at = self._clock()
        self._stop_event = asyncio.Event()
        self._task = asyncio.create_task(self._loop())
        logger.info(
            "Simulation started (%s, %d points, tick=%.1fs)",
            phase.value,
            len(self.simulator.points),
            self.tick_seconds,
        )
        return True

    async def stop(self) -> None:
        if self._stop_event:
            self._stop_event.set()
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
            logger.info("Simulation stopped")

    async def close(self) -> None:
        """Stop and forget the route entirely (trip reset)."""
        await self.stop()
        self.simulator.clear()
        self.last = self._previous = None
        self._last_tick_at = None

    async def step(self) -> Optional[TrackingSnapshot]:
        """Run one tick now and notify callbacks."""
        now = self._clock()
        elapsed = (
            now - self._last_tick_at if self._last_tick_at is not None else self.tick_seconds
        )
        snapshot = self.simulator.tick(elapsed if elapsed > 0 else self.tick_seconds)
        if snapshot is None:
            return None

        self._previous, self.last = self.last or snapshot, snapshot
        self._last_tick_at = now
        for callback in list(self._callbacks):
            try:
                result = callback(snapshot)
                if asyncio.iscoroutine(result):
                    await result
            except Exception:
                logger.exception("Tick callback failed")
        return snapshot

    def frame(self, now: Optional[float] = None) -> Optional[tuple[Coordinate, float]]:
        """Eased presentation position and heading between the last two ticks."""
        if self.last is None:
            return None
        if self._previous is None or self._last_tick_at is None:
            return self.last.coordinate, self.last.heading

        now = self._clock() if now is None else now
        fraction = (now - self._last_tick_at) / self.tick_seconds if self.tick_seconds else 1.0
        eased = geo.ease_in_out(fraction)
        coordinate = geo.interpolate(
            self._previous.coordinate, self.last.coordinate, eased
        )
        heading = geo.ease_heading(self._previous.heading, self.last.heading, fraction)
        return coordinate, heading

    # ── Internals ─────────────────────────────────────────────────────

    async def _loop(self) -> None:
        """Periodic loop: wait one interval, tick, repeat until the end."""
        assert self._stop_event is not None
        while not self._stop_event.is_set():
            try:
                await asyncio.wait_for(self._stop_event.wait(), timeout=self.tick_seconds)
                break
            except asyncio.TimeoutError:
                pass  # tick due

            try:
                snapshot = await self.step()
            except Exception:
                logger.exception("Unhandled error in simulation tick")
                continue
            if snapshot is None or snapshot.finished:
                logger.info("Simulation reached end of route")
                break
