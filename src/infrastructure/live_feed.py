"""
Live driver position feed backed by Redis.

The driver app (or a telemetry bridge) writes the latest fix for a trip
into the hash ``trip:{trip_id}:live`` with fields ``lat``, ``lng``,
``heading``, ``speed_mph``, ``remaining_miles``, ``eta_minutes`` and
``recorded_at`` (ISO-8601).  Missing, malformed or unreachable data reads
as "no fix" so the simulator keeps serving positions.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Optional, Protocol

import redis.asyncio as aioredis
from redis.exceptions import RedisError

from src.domain.entities import Coordinate, LiveFix

logger = logging.getLogger(__name__)


class LivePositionFeed(Protocol):
    async def latest(self, trip_id: str) -> Optional[LiveFix]: ...


def live_key(trip_id: str) -> str:
    return f"trip:{trip_id}:live"


def parse_fix(raw: dict) -> Optional[LiveFix]:
    if not raw:
        return None
    try:
        recorded_at = datetime.fromisoformat(raw["recorded_at"])
        if recorded_at.tzinfo is None:
            recorded_at = recorded_at.replace(tzinfo=timezone.utc)
        return LiveFix(
            coordinate=Coordinate(float(raw["lat"]), float(raw["lng"])),
            heading=float(raw.get("heading", 0.0)) % 360.0,
            speed_mph=max(0.0, float(raw.get("speed_mph", 0.0))),
            remaining_miles=max(0.0, float(raw.get("remaining_miles", 0.0))),
            eta_minutes=max(1, int(float(raw.get("eta_minutes", 1)))),
            recorded_at=recorded_at,
        )
    except (KeyError, TypeError, ValueError):
        logger.warning("Discarding malformed live fix")
        return None


class RedisLivePositionFeed:
    def __init__(self, client: aioredis.Redis):
        self.redis = client

    async def latest(self, trip_id: str) -> Optional[LiveFix]:
        try:
            raw = await self.redis.hgetall(live_key(trip_id))
        except RedisError:
            logger.warning("Live feed unavailable for trip %s", trip_id)
            return None
        return parse_fix(raw)

    async def publish(self, trip_id: str, fix: LiveFix, ttl_seconds: int = 60) -> None:
        key = live_key(trip_id)
        await self.redis.hset(
            key,
            mapping={
                "lat": fix.coordinate.lat,
                "lng": fix.coordinate.lng,
                "heading": fix.heading,
                "speed_mph": fix.speed_mph,
                "remaining_miles": fix.remaining_miles,
                "eta_minutes": fix.eta_minutes,
                "recorded_at": fix.recorded_at.isoformat(),
            },
        )
        await self.redis.expire(key, ttl_seconds)
