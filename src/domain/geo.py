"""
Geo math helpers: haversine distance, bearings, interpolation, polyline
codec and maneuver classification.

Assumption
----------
Interpolation is linear in lat/lng.  That is not geodesic-correct, but at
tracking resolution (sub-mile steps between polyline points) the error is
far below what a map marker can show.

All functions are pure.  Complexity: O(1) per call except the polyline
and path helpers, which are O(n) in the number of points.
"""

from __future__ import annotations

import math
from typing import Iterable, Sequence

from .entities import Coordinate
from .enums import Maneuver

EARTH_RADIUS_MI = 3_959.0
FEET_PER_MILE = 5_280.0
POLYLINE_PRECISION = 1e5


def distance_miles(a: Coordinate, b: Coordinate) -> float:
    """Return the great-circle distance in **miles** between two points."""
    lat1_r, lat2_r = math.radians(a.lat), math.radians(b.lat)
    dlat = math.radians(b.lat - a.lat)
    dlng = math.radians(b.lng - a.lng)

    h = (
        math.sin(dlat / 2) ** 2
        + math.cos(lat1_r) * math.cos(lat2_r) * math.sin(dlng / 2) ** 2
    )
    return 2 * EARTH_RADIUS_MI * math.asin(math.sqrt(min(1.0, h)))


def bearing(a: Coordinate, b: Coordinate) -> float:
    """Initial bearing from *a* to *b* in degrees, range [0, 360)."""
    lat1, lat2 = math.radians(a.lat), math.radians(b.lat)
    dlng = math.radians(b.lng - a.lng)
    y = math.sin(dlng) * math.cos(lat2)
    x = math.cos(lat1) * math.sin(lat2) - math.sin(lat1) * math.cos(lat2) * math.cos(dlng)
    return (math.degrees(math.atan2(y, x)) + 360.0) % 360.0


def interpolate(a: Coordinate, b: Coordinate, t: float) -> Coordinate:
    t = min(1.0, max(0.0, t))
    return Coordinate(a.lat + (b.lat - a.lat) * t, a.lng + (b.lng - a.lng) * t)


def heading_delta(before: float, after: float) -> float:
    """Signed shortest rotation from *before* to *after*, in (-180, 180]."""
    delta = (after - before) % 360.0
    if delta > 180.0:
        delta -= 360.0
    return delta


def turn_direction(before: float, after: float) -> Maneuver:
    """Bucket the heading change between two route segments."""
    delta = heading_delta(before, after)
    magnitude = abs(delta)
    if magnitude < 30:
        return Maneuver.CONTINUE
    right = delta > 0
    if magnitude < 90:
        return Maneuver.SLIGHT_RIGHT if right else Maneuver.SLIGHT_LEFT
    if magnitude < 135:
        return Maneuver.RIGHT if right else Maneuver.LEFT
    return Maneuver.SHARP_RIGHT if right else Maneuver.SHARP_LEFT


def path_length_miles(points: Sequence[Coordinate], start: int = 0) -> float:
    """Sum of consecutive segment distances from *start* to the end."""
    total = 0.0
    for i in range(max(0, start), len(points) - 1):
        total += distance_miles(points[i], points[i + 1])
    return total


# ── Easing (presentation smoothing) ───────────────────────────────────


def ease_in_out(t: float) -> float:
    """Cubic ease-in-out on [0, 1]."""
    t = min(1.0, max(0.0, t))
    if t < 0.5:
        return 4 * t * t * t
    return 1 - (-2 * t + 2) ** 3 / 2


def ease_heading(start: float, end: float, t: float) -> float:
    """Ease a heading across the shortest angular path."""
    return (start + heading_delta(start, end) * ease_in_out(t)) % 360.0


# ── Encoded polyline codec ────────────────────────────────────────────


def _decode_value(encoded: str, index: int) -> tuple[int, int]:
    result = 0
    shift = 0
    while True:
        if index >= len(encoded):
            raise ValueError("truncated polyline")
        b = ord(encoded[index]) - 63
        index += 1
        if b < 0 or b > 63:
            raise ValueError("invalid polyline character")
        result |= (b & 0x1F) << shift
        shift += 5
        if b < 0x20:
            break
    value = ~(result >> 1) if result & 1 else result >> 1
    return value, index


def decode_polyline(encoded: str) -> list[Coordinate]:
    """
    Decode a Google encoded polyline (precision 1e5).

    Malformed input never raises: it yields an empty list.
    """
    if not isinstance(encoded, str):
        return []

    points: list[Coordinate] = []
    index = lat = lng = 0
    try:
        while index < len(encoded):
            dlat, index = _decode_value(encoded, index)
            dlng, index = _decode_value(encoded, index)
            lat += dlat
            lng += dlng
            points.append(Coordinate(lat / POLYLINE_PRECISION, lng / POLYLINE_PRECISION))
    except ValueError:
        return []
    return points


def _encode_value(value: int) -> str:
    value = ~(value << 1) if value < 0 else value << 1
    chunks = []
    while value >= 0x20:
        chunks.append(chr((0x20 | (value & 0x1F)) + 63))
        value >>= 5
    chunks.append(chr(value + 63))
    return "".join(chunks)


def encode_polyline(points: Iterable[Coordinate]) -> str:
    encoded = []
    prev_lat = prev_lng = 0
    for point in points:
        lat = round(point.lat * POLYLINE_PRECISION)
        lng = round(point.lng * POLYLINE_PRECISION)
        encoded.append(_encode_value(lat - prev_lat))
        encoded.append(_encode_value(lng - prev_lng))
        prev_lat, prev_lng = lat, lng
    return "".join(encoded)
