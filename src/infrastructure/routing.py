"""
Routing collaborator
====================

``route(origin, destination) -> list[RouteCandidate]``, preferred route
first.  Any failure surfaces as ``RoutingUnavailable`` so callers can apply
their documented fallback.

Providers
---------
* ``StraightLineRouter`` -- internal, no API key: a densified straight
  line between the endpoints at an assumed average speed.
* ``GoogleDirectionsClient`` -- Directions API over ``httpx`` with route
  alternatives and traffic-aware durations.
"""

from __future__ import annotations

import logging
import math
from typing import Optional, Protocol

import httpx

from src.config import settings
from src.domain import geo
from src.domain.entities import Coordinate, RouteCandidate
from src.domain.errors import RoutingUnavailable

logger = logging.getLogger(__name__)

METERS_PER_MILE = 1609.34
GOOGLE_DIRECTIONS_URL = "https://maps.googleapis.com/maps/api/directions/json"


class RoutingClient(Protocol):
    async def route(
        self, origin: Coordinate, destination: Coordinate
    ) -> list[RouteCandidate]: ...


class StraightLineRouter:
    """Internal fallback provider: one straight-line candidate."""

    def __init__(
        self,
        average_speed_mph: float = 25.0,
        traffic_factor: float = 1.2,
        points_per_mile: int = 20,
        max_points: int = 400,
    ):
        self.average_speed_mph = average_speed_mph
        self.traffic_factor = traffic_factor
        self.points_per_mile = points_per_mile
        self.max_points = max_points

    async def route(
        self, origin: Coordinate, destination: Coordinate
    ) -> list[RouteCandidate]:
        miles = geo.distance_miles(origin, destination)
        count = max(2, min(self.max_points, math.ceil(miles * self.points_per_mile) + 1))
        points = [geo.interpolate(origin, destination, i / (count - 1)) for i in range(count)]
        duration = round(miles / self.average_speed_mph * 3600)
        return [
            RouteCandidate(
                id="route-0",
                summary="Direct",
                distance_miles=miles,
                distance_meters=miles * METERS_PER_MILE,
                duration_seconds=duration,
                duration_in_traffic_seconds=round(duration * self.traffic_factor),
                polyline=geo.encode_polyline(points),
            )
        ]


class GoogleDirectionsClient:
    def __init__(
        self,
        api_key: str,
        http: Optional[httpx.AsyncClient] = None,
        timeout: float = 8.0,
    ):
        self.api_key = api_key
        self._http = http
        self.timeout = timeout

    async def route(
        self, origin: Coordinate, destination: Coordinate
    ) -> list[RouteCandidate]:
        if not self.api_key:
            raise RoutingUnavailable("Routing provider is not configured")

        params = {
            "origin": f"{origin.lat},{origin.lng}",
            "destination": f"{destination.lat},{destination.lng}",
            "mode": "driving",
            "alternatives": "true",
            "departure_time": "now",
            "traffic_model": "best_guess",
            "key": self.api_key,
        }
        try:
            if self._http is not None:
                response = await self._http.get(GOOGLE_DIRECTIONS_URL, params=params)
            else:
                async with httpx.AsyncClient(timeout=self.timeout) as http:
                    response = await http.get(GOOGLE_DIRECTIONS_URL, params=params)
            response.raise_for_status()
            data = response.json()
        except (httpx.HTTPError, ValueError) as exc:
            # never echo the request URL: it carries the API key
            logger.warning("Directions request failed: %s", type(exc).__name__)
            raise RoutingUnavailable("Routing provider request failed") from None

        status = data.get("status") if isinstance(data, dict) else None
        if status != "OK":
            logger.warning("Directions status %s", status)
            raise RoutingUnavailable("Routing provider returned no routes")
        return parse_directions(data)


def parse_directions(data: dict) -> list[RouteCandidate]:
    """
    Map a Directions API body onto route candidates.  Any entry with the
    wrong shape raises ``RoutingUnavailable``.
    """
    try:
        routes = data.get("routes") or []
        if not isinstance(routes, list):
            raise TypeError("routes is not a list")
        return [_parse_route(index, route) for index, route in enumerate(routes)]
    except (AttributeError, TypeError, ValueError, LookupError):
        logger.warning("Directions payload malformed")
        raise RoutingUnavailable("Routing provider returned malformed data") from None


def _parse_route(index: int, route: dict) -> RouteCandidate:
    if not isinstance(route, dict):
        raise TypeError("route entry is not an object")
    legs = route.get("legs") or [{}]
    leg = legs[0]
    if not isinstance(leg, dict):
        raise TypeError("leg entry is not an object")

    distance_meters = _number(leg.get("distance"))
    duration = _number(leg.get("duration"))
    in_traffic = _number(leg.get("duration_in_traffic")) or duration
    overview = route.get("overview_polyline") or {}
    polyline = overview.get("points") if isinstance(overview, dict) else None
    summary = route.get("summary")
    return RouteCandidate(
        id=f"route-{index}",
        summary=summary if isinstance(summary, str) and summary else f"Route {index + 1}",
        distance_miles=distance_meters / METERS_PER_MILE,
        distance_meters=distance_meters,
        duration_seconds=int(duration),
        duration_in_traffic_seconds=int(in_traffic),
        polyline=polyline if isinstance(polyline, str) else "",
    )


def _number(field) -> float:
    """``{"value": <number>}`` -> the number; absent -> 0."""
    if field is None:
        return 0
    if not isinstance(field, dict):
        raise TypeError("expected a {value: ...} object")
    value = field.get("value")
    if value is None:
        return 0
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise TypeError("value is not numeric")
    if not math.isfinite(value) or value < 0:
        raise ValueError("value out of range")
    return value


def get_router() -> RoutingClient:
    if settings.routing_provider == "google_maps":
        return GoogleDirectionsClient(
            settings.google_maps_api_key, timeout=settings.routing_timeout_seconds
        )
    return StraightLineRouter(average_speed_mph=settings.fallback_speed_mph)
