"""
Typed failures raised by the trip core.

Messages are safe to show to a rider: they never include collaborator
payloads, credentials or stack details.  Invalid state transitions are
*not* exceptions -- the state machine rejects them as no-ops.
"""


class TripError(Exception):
    """Base class for every expected failure of the trip core."""


# ── Input errors (reported to the caller, no state change) ────────────


class TripInputError(TripError):
    pass


class MissingLocationError(TripInputError):
    pass


class NoActiveRouteError(TripInputError):
    pass


class UnknownCategoryError(TripInputError):
    pass


class UnknownPromotionError(TripInputError):
    pass


class TripNotFoundError(TripError):
    pass


# ── Collaborator failures (absorbed with a documented fallback) ───────


class CollaboratorError(TripError):
    pass


class RoutingUnavailable(CollaboratorError):
    pass


class CatalogUnavailable(CollaboratorError):
    pass


# ── Programmer errors (allowed to propagate) ──────────────────────────


class InvalidCategoryConfig(ValueError):
    """Raised when static vehicle category data is malformed."""
