"""
Notification collaborator.

``RedisNotifier`` publishes one JSON message per announced status change
on a Redis channel; the push / sound layer subscribes to it.
``LoggingNotifier`` only logs and is used when Redis is not wanted.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from typing import Optional

import redis.asyncio as aioredis

from src.domain.entities import DriverAssignment
from src.domain.enums import RideStatus

logger = logging.getLogger(__name__)


def notification_payload(
    trip_id: str, status: RideStatus, driver: Optional[DriverAssignment]
) -> dict:
    return {
        "trip_id": trip_id,
        "status": status.value,
        "driver_name": driver.name if driver else None,
        "pickup_eta_minutes": driver.pickup_eta_minutes if driver else None,
        "sent_at": datetime.now(timezone.utc).isoformat(),
    }


class RedisNotifier:
    def __init__(self, client: aioredis.Redis, channel: str = "trip-events"):
        self.redis = client
        self.channel = channel

    async def notify(
        self, trip_id: str, status: RideStatus, driver: Optional[DriverAssignment]
    ) -> None:
        payload = notification_payload(trip_id, status, driver)
        await self.redis.publish(self.channel, json.dumps(payload))


class LoggingNotifier:
    async def notify(
        self, trip_id: str, status: RideStatus, driver: Optional[DriverAssignment]
    ) -> None:
        logger.info("Notify trip %s: %s", trip_id, status.value)
