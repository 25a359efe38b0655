"""
Shared Redis client for the live position feed and trip notifications.

The client is created lazily on first use so importing the API does not
require a reachable Redis; ``close_redis`` runs from the app lifespan.
"""

from __future__ import annotations

from typing import Optional

import redis.asyncio as aioredis

from src.config import settings

_client: Optional[aioredis.Redis] = None


def get_redis() -> aioredis.Redis:
    global _client
    if _client is None:
        _client = aioredis.Redis.from_url(settings.redis_url, decode_responses=True)
    return _client


async def close_redis() -> None:
    global _client
    if _client is not None:
        await _client.aclose()
        _client = None
