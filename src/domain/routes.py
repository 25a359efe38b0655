"""Route selection: candidate routes for one pickup/dropoff pair."""

from __future__ import annotations

from typing import Iterable, Optional

from .entities import RouteCandidate


class RouteSelection:
    """
    Holds the candidates returned by the routing collaborator and a pointer
    to the active one.  The collaborator returns its preferred route first,
    so a fresh candidate set always activates index 0.
    """

    def __init__(self) -> None:
        self.candidates: list[RouteCandidate] = []
        self.active_id: Optional[str] = None

    def replace(self, candidates: Iterable[RouteCandidate]) -> None:
        self.candidates = list(candidates)
        self.active_id = self.candidates[0].id if self.candidates else None

    def select(self, route_id: str) -> bool:
        if not any(c.id == route_id for c in self.candidates):
            return False
        self.active_id = route_id
        return True

    def clear(self) -> None:
        self.candidates = []
        self.active_id = None

    @property
    def active(self) -> Optional[RouteCandidate]:
        return next((c for c in self.candidates if c.id == self.active_id), None)
