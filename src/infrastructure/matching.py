"""
Driver matching collaborator (simulated).

Picks a driver from a small roster and places the driver's start position
at the centre of an H3 cell a few rings away from the pickup cell, so the
driver→pickup leg always has a realistic non-zero length.

Complexity: O(k²) for the ring lookup (k = ``rings``), O(1) otherwise.
"""

from __future__ import annotations

import random
from dataclasses import dataclass
from typing import Optional, Protocol

import h3

from src.domain.entities import Coordinate


@dataclass(frozen=True)
class DriverProfile:
    name: str
    rating: float
    vehicle_model: str
    vehicle_color: str
    plate_number: str

    @property
    def avatar_initials(self) -> str:
        return "".join(part[0] for part in self.name.split()[:2]).upper()


@dataclass(frozen=True)
class DriverMatch:
    profile: DriverProfile
    start: Coordinate


class DriverMatcher(Protocol):
    async def find_driver(self, pickup: Coordinate) -> DriverMatch: ...


ROSTER = (
    DriverProfile("Marcus Johnson", 4.92, "Toyota Camry", "Silver", "T847293C"),
    DriverProfile("Elena Rodriguez", 4.88, "Honda Accord", "Black", "H562018A"),
    DriverProfile("David Kim", 4.95, "Tesla Model 3", "White", "E391047T"),
    DriverProfile("Aisha Patel", 4.81, "Hyundai Sonata", "Blue", "Y205839K"),
    DriverProfile("James O'Connor", 4.90, "Toyota RAV4", "Gray", "R730164M"),
)


def cell_center(cell: str) -> Coordinate:
    lat, lng = h3.cell_to_latlng(cell)
    return Coordinate(lat, lng)


class SimulatedDriverMatcher:
    def __init__(
        self,
        resolution: int = 8,
        rings: int = 2,
        roster: tuple[DriverProfile, ...] = ROSTER,
        rng: Optional[random.Random] = None,
    ):
        self.resolution = resolution
        self.rings = max(1, rings)
        self.roster = roster
        self.rng = rng or random.Random()

    def start_position(self, pickup: Coordinate) -> Coordinate:
        origin = h3.latlng_to_cell(pickup.lat, pickup.lng, self.resolution)
        try:
            candidates = sorted(h3.grid_ring(origin, self.rings))
        except Exception:
            # grid_ring is undefined next to pentagons; the disk always works
            candidates = sorted(set(h3.grid_disk(origin, self.rings)) - {origin})
        if not candidates:
            return pickup
        return cell_center(self.rng.choice(candidates))

    async def find_driver(self, pickup: Coordinate) -> DriverMatch:
        return DriverMatch(
            profile=self.rng.choice(self.roster),
            start=self.start_position(pickup),
        )
