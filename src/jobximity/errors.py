"""
Error types raised by the proximity core and the match workflow.

All proximity errors are ValueErrors: they describe bad input or bad tuning,
never a transient condition, so there is nothing to retry.
"""


class ProximityError(ValueError):
    """Base class for invalid input to the proximity core."""


class InvalidCoordinate(ProximityError):
    """Latitude or longitude outside the valid range (or not a finite number)."""


class InvalidResolution(ProximityError):
    """Cell resolution outside the supported range."""


class InvalidRingSize(ProximityError):
    """Ring size negative, too large, or too small to cover the radius."""


class InvalidRadius(ProximityError):
    """Proximity radius that is not a positive, finite number of meters."""


class CellMismatch(ProximityError):
    """A stored cell that is not the indexer's output for its coordinate."""


class MatchError(Exception):
    """Base class for match request workflow errors."""


class MatchNotFound(MatchError):
    pass


class DuplicateMatchRequest(MatchError):
    pass


class SelfMatchRequest(MatchError):
    pass


class InvalidMatchTransition(MatchError):
    """Responding to a request that is not pending, or by the wrong user."""


class LocationNotFound(LookupError):
    """No stored location for a user."""
