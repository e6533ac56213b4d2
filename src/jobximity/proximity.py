"""
Proximity matching: decide whether two users are within matching radius.

Two phases:
1. Coarse filter - is the target's cell inside the ring of cells around the
   requester's cell? This is a set-membership test and is what lets a store
   narrow millions of locations down to a handful by cell index alone.
2. Exact verification - Haversine distance between the raw coordinates,
   compared (inclusively) against the radius. This result is authoritative.

The ring is validated at config time to cover the whole radius, so the coarse
filter never rejects a pair that exact verification would accept.
"""
import logging
import math
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Iterable, List, Optional, Tuple, Union

from src.jobximity import grid
from src.jobximity.config import ProximityConfig
from src.jobximity.errors import CellMismatch
from src.jobximity.geo import GeoCoordinate, distance

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class UserLocation:
    """
    A user's last submitted location and the privacy cell derived from it.

    The cell must always be the indexer's output for the coordinate; build
    instances with create() / moved_to() rather than by hand.
    """
    owner_id: str
    coordinate: GeoCoordinate
    cell: str
    updated_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def __post_init__(self):
        if not grid.is_valid_cell(self.cell):
            raise CellMismatch(f"{self.cell!r} is not a valid cell")
        expected = grid.cell_of(self.coordinate, grid.resolution_of(self.cell))
        if expected != self.cell:
            raise CellMismatch(
                f"cell {self.cell} does not contain the location of user {self.owner_id}"
            )

    @property
    def resolution(self) -> int:
        return grid.resolution_of(self.cell)

    @classmethod
    def create(
        cls,
        owner_id: str,
        coordinate: GeoCoordinate,
        resolution: int = grid.RESOLUTION,
        updated_at: Optional[datetime] = None,
    ) -> "UserLocation":
        return cls(
            owner_id=owner_id,
            coordinate=coordinate,
            cell=grid.cell_of(coordinate, resolution),
            updated_at=updated_at or datetime.now(timezone.utc),
        )

    def moved_to(self, coordinate: GeoCoordinate, updated_at: Optional[datetime] = None) -> "UserLocation":
        """New location for the same user; cell and timestamp change with the coordinate."""
        return UserLocation.create(self.owner_id, coordinate, self.resolution, updated_at)


@dataclass(frozen=True)
class ProximityResult:
    """
    Outcome of a proximity check. Not persisted.

    distance_meters is None only when the config skips exact verification
    after a coarse rejection.
    """
    within_radius: bool
    distance_meters: Optional[float]
    coarse_match: bool

    def to_dict(self) -> dict:
        return {
            "within_radius": self.within_radius,
            "distance_meters": self.distance_meters,
            "coarse_match": self.coarse_match,
        }


Location = Union[GeoCoordinate, UserLocation]

# Distances shown to other users are rounded up to this band
DISTANCE_BAND_METERS = 100


def distance_band(meters: float, band: int = DISTANCE_BAND_METERS) -> int:
    """
    Round a distance up to the next band (minimum one band).

    Exact distances between users are never exposed.
    """
    return max(band, int(math.ceil(meters / band)) * band)


def _coordinate(location: Location) -> GeoCoordinate:
    if isinstance(location, UserLocation):
        return location.coordinate
    return location


class ProximityResolver:
    """
    Stateless proximity checks for one ProximityConfig.

    Safe to share between threads and requests; holds nothing but the
    (immutable) config.
    """

    def __init__(self, config: Optional[ProximityConfig] = None):
        self.config = config or ProximityConfig()

    def cell_for(self, location: Location) -> str:
        """
        Cell of a location at the configured resolution.

        A UserLocation's stored cell is used when it was indexed at the same
        resolution; otherwise the cell is recomputed from the coordinate.
        """
        if isinstance(location, UserLocation) and location.resolution == self.config.resolution:
            return location.cell
        return grid.cell_of(_coordinate(location), self.config.resolution)

    def search_area(self, location: Location) -> frozenset:
        """All cells within ring_size hops of the location's cell (center included)."""
        return grid.neighbors_of(self.cell_for(location), self.config.ring_size)

    def coarse_match(self, location_a: Location, location_b: Location) -> bool:
        """Phase 1: is b's cell inside a's search area?"""
        return self.cell_for(location_b) in self.search_area(location_a)

    def verify(self, location_a: Location, location_b: Location) -> Tuple[bool, float]:
        """Phase 2: exact distance in meters and whether it is within radius (inclusive)."""
        meters = distance(_coordinate(location_a), _coordinate(location_b))
        return meters <= self.config.radius_m, meters

    def resolve(self, location_a: Location, location_b: Location) -> ProximityResult:
        """
        Decide whether two locations are within the matching radius.

        Args:
            location_a: Requester's location (GeoCoordinate or UserLocation)
            location_b: Target's location (GeoCoordinate or UserLocation)

        Returns:
            ProximityResult. within_radius always agrees with exact-distance
            evaluation.
        """
        coarse = self.coarse_match(location_a, location_b)

        if not coarse and self.config.skip_exact_on_coarse_reject:
            return ProximityResult(within_radius=False, distance_meters=None, coarse_match=False)

        within, meters = self.verify(location_a, location_b)
        if within and not coarse:
            # Only reachable if the ring does not cover the radius
            logger.warning(
                "coarse filter rejected an in-radius pair: ring_size=%s resolution=%s distance_m=%.1f",
                self.config.ring_size,
                self.config.resolution,
                meters,
            )
        return ProximityResult(within_radius=within, distance_meters=meters, coarse_match=coarse)

    # Name used by the match workflow
    is_within_proximity = resolve

    def filter_candidates(
        self,
        origin: UserLocation,
        candidates: Iterable[UserLocation],
    ) -> List[Tuple[UserLocation, ProximityResult]]:
        """
        Candidates within radius of origin, nearest first.

        The search area is computed once; candidates outside it are dropped
        without computing a distance. The origin's own owner is skipped.
        """
        area = self.search_area(origin)
        matches = []
        considered = 0
        for candidate in candidates:
            if candidate.owner_id == origin.owner_id:
                continue
            considered += 1
            if self.cell_for(candidate) not in area:
                continue
            within, meters = self.verify(origin, candidate)
            if within:
                matches.append((candidate, ProximityResult(True, meters, True)))

        matches.sort(key=lambda pair: pair[1].distance_meters)
        logger.debug(
            "candidate search user=%s area_cells=%d considered=%d matched=%d",
            origin.owner_id,
            len(area),
            considered,
            len(matches),
        )
        return matches
