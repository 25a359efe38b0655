"""
FastAPI application factory.

* Registers routes for trips and admin.
* Stops every live trip simulation and closes Redis on shutdown.
* Applies rate limiting and error sanitising middleware.
* Swagger / OpenAPI UI available at ``/docs``.
"""

from contextlib import asynccontextmanager
import logging

from fastapi import FastAPI

from src.api import middleware
from src.api.dependencies import registry
from src.api.routes import admin, trips
from src.infrastructure.redis_client import close_redis

logging.basicConfig(level=logging.INFO)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Nothing to start eagerly; tear down simulations on shutdown."""
    yield
    await registry.close_all()
    await close_redis()


def create_app() -> FastAPI:
    app = FastAPI(
        title="Ride Booking Trip API",
        description=(
            "Plans rides, prices them per vehicle category with promotions, "
            "drives each trip through its status lifecycle and simulates the "
            "assigned vehicle's position, heading, speed and ETA."
        ),
        version="1.0.0",
        lifespan=lifespan,
    )

    middleware.install(app)

    # Routers
    app.include_router(trips.router, prefix="/api/v1")
    app.include_router(admin.router, prefix="/api/v1")

    return app
