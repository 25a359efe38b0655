"""FastAPI dependency injection helpers."""

from sqlalchemy.ext.asyncio import AsyncSession

from src.config import settings
from src.infrastructure.database import async_session_factory
from src.infrastructure.live_feed import RedisLivePositionFeed
from src.infrastructure.matching import SimulatedDriverMatcher
from src.infrastructure.notifications import RedisNotifier
from src.infrastructure.redis_client import get_redis
from src.infrastructure.routing import get_router
from src.services.booking import TripRegistry

registry = TripRegistry()
_matcher = SimulatedDriverMatcher(settings.h3_resolution, settings.driver_search_rings)


async def get_db() -> AsyncSession:  # type: ignore[misc]
    """Yield an async DB session; commit on success, rollback on error."""
    async with async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


def get_registry() -> TripRegistry:
    return registry


def get_routing_client():
    return get_router()


def get_driver_matcher():
    return _matcher


def get_notifier():
    return RedisNotifier(get_redis(), settings.notification_channel)


def get_live_feed():
    return RedisLivePositionFeed(get_redis())
