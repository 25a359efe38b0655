"""
Cross-cutting HTTP concerns: rate limiting and error sanitising.

* ``limiter`` -- slowapi limiter keyed by client address.
* Typed trip failures map to 4xx responses with their (safe) message.
* Anything else is logged with a random correlation id and answered with
  a redacted 500 body, so internal details never reach the client.
"""

from __future__ import annotations

import logging
import uuid

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address

from src.domain.errors import TripError, TripInputError, TripNotFoundError

logger = logging.getLogger(__name__)

limiter = Limiter(key_func=get_remote_address)


def _status_for(exc: TripError) -> int:
    if isinstance(exc, TripNotFoundError):
        return 404
    if isinstance(exc, TripInputError):
        return 422
    return 503


async def trip_error_handler(request: Request, exc: TripError) -> JSONResponse:
    return JSONResponse(status_code=_status_for(exc), content={"detail": str(exc)})


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    correlation_id = uuid.uuid4().hex[:12]
    logger.error(
        "Unhandled error [%s] on %s %s",
        correlation_id,
        request.method,
        request.url.path,
        exc_info=exc,
    )
    return JSONResponse(
        status_code=500,
        content={
            "detail": "Something went wrong. Please try again.",
            "correlation_id": correlation_id,
        },
    )


def install(app: FastAPI) -> None:
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
    app.add_exception_handler(TripError, trip_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)
