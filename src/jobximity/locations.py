"""
Redis storage for user locations and the per-cell membership index.

Keys:
    user:<user_id>:location  hash {lat, lon, cell, updated_at}
    cell:<cell_id>:users     set of user IDs whose location is in the cell

The cell sets are the spatial index: a nearby search is a SUNION over the
requester's search area followed by exact verification of the survivors.
"""
import logging
from datetime import datetime
from typing import Iterable, List, Optional, Set, Tuple

from redis import Redis

from src.jobximity import metrics
from src.jobximity.errors import LocationNotFound
from src.jobximity.geo import GeoCoordinate
from src.jobximity.proximity import ProximityResolver, ProximityResult, UserLocation

logger = logging.getLogger(__name__)


def get_location_key(user_id: str) -> str:
    """Get Redis key for a user's location hash."""
    return f"user:{user_id}:location"


def get_cell_key(cell_id: str) -> str:
    """Get Redis key for the set of users located in a cell."""
    return f"cell:{cell_id}:users"


def save_user_location(
    r: Redis,
    user_id: str,
    coordinate: GeoCoordinate,
    resolution: int,
) -> UserLocation:
    """
    Create or replace a user's location.

    The hash and both cell sets are written in one MULTI/EXEC so the stored
    cell always matches the stored coordinate.

    Args:
        r: Redis client
        user_id: Owner of the location
        coordinate: Validated coordinate
        resolution: H3 resolution to index at

    Returns:
        The stored UserLocation
    """
    location = UserLocation.create(user_id, coordinate, resolution)
    key = get_location_key(user_id)

    # A concurrent update can leave this user in a stale cell set; searches
    # re-check each candidate's stored cell, so that only costs a lookup.
    previous_cell = r.hget(key, "cell")

    pipe = r.pipeline(transaction=True)
    if previous_cell and previous_cell != location.cell:
        pipe.srem(get_cell_key(previous_cell), user_id)
    pipe.hset(key, mapping={
        "lat": repr(coordinate.latitude),
        "lon": repr(coordinate.longitude),
        "cell": location.cell,
        "updated_at": location.updated_at.isoformat(),
    })
    pipe.sadd(get_cell_key(location.cell), user_id)
    pipe.execute()
    metrics.redis_operations_total.labels(operation="save_location", status="success").inc()

    logger.info(
        "location saved user=%s cell=%s moved=%s",
        user_id,
        location.cell,
        previous_cell is not None and previous_cell != location.cell,
    )
    return location


def _location_from_hash(user_id: str, data: dict) -> UserLocation:
    return UserLocation(
        owner_id=user_id,
        coordinate=GeoCoordinate(float(data["lat"]), float(data["lon"])),
        cell=data["cell"],
        updated_at=datetime.fromisoformat(data["updated_at"]),
    )


def get_user_location(r: Redis, user_id: str) -> Optional[UserLocation]:
    """Stored location for a user, or None if they never submitted one."""
    data = r.hgetall(get_location_key(user_id))
    metrics.redis_operations_total.labels(operation="hgetall", status="success").inc()
    if not data:
        return None
    return _location_from_hash(user_id, data)


def delete_user_location(r: Redis, user_id: str) -> bool:
    """
    Remove a user's location and cell membership.

    Returns:
        True if a location was removed, False if there was none
    """
    key = get_location_key(user_id)
    cell = r.hget(key, "cell")
    if cell is None:
        return False

    pipe = r.pipeline(transaction=True)
    pipe.srem(get_cell_key(cell), user_id)
    pipe.delete(key)
    pipe.execute()
    metrics.redis_operations_total.labels(operation="delete_location", status="success").inc()
    logger.info("location deleted user=%s", user_id)
    return True


def users_in_cells(r: Redis, cells: Iterable[str]) -> Set[str]:
    """Union of user IDs registered in any of the given cells."""
    keys = [get_cell_key(cell) for cell in cells]
    if not keys:
        return set()
    members = r.sunion(keys)
    metrics.redis_operations_total.labels(operation="sunion", status="success").inc()
    return set(members or ())


def load_user_locations(r: Redis, user_ids: Iterable[str]) -> List[UserLocation]:
    """
    Fetch many locations in one round-trip. Users without a location are skipped.
    """
    ids = list(user_ids)
    if not ids:
        return []

    pipe = r.pipeline()
    for user_id in ids:
        pipe.hgetall(get_location_key(user_id))
    results = pipe.execute()
    metrics.redis_operations_total.labels(operation="pipeline_hgetall", status="success").inc()

    return [
        _location_from_hash(user_id, data)
        for user_id, data in zip(ids, results)
        if data
    ]


def find_nearby(
    r: Redis,
    resolver: ProximityResolver,
    user_id: str,
) -> List[Tuple[UserLocation, ProximityResult]]:
    """
    Users within the matching radius of user_id, nearest first.

    Process:
    1. Load the requester's location
    2. Expand their cell into the search area (ring of cells)
    3. SUNION the cell sets to get candidates (index lookup, no geometry)
    4. Load candidate locations and verify exact distances

    Raises:
        LocationNotFound: if user_id has no stored location
    """
    origin = get_user_location(r, user_id)
    if origin is None:
        raise LocationNotFound(f"no location stored for user {user_id}")

    area = resolver.search_area(origin)
    candidate_ids = users_in_cells(r, area)
    candidate_ids.discard(user_id)

    metrics.search_area_cells.set(len(area))
    metrics.nearby_candidates.observe(len(candidate_ids))

    candidates = load_user_locations(r, sorted(candidate_ids))
    return resolver.filter_candidates(origin, candidates)
