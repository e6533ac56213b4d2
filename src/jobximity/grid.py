"""
Spatial indexing using the H3 hexagonal grid system.

A user's exact coordinate is reduced to the H3 cell that contains it. The
cell is the privacy zone: it is what gets indexed and shared, never the
coordinate itself. Callers treat cell IDs as opaque strings and only compare
them or expand them into rings.
"""
import math

import h3

from src.jobximity.errors import InvalidResolution, InvalidRingSize
from src.jobximity.geo import GeoCoordinate

# H3 resolution level
# 8 = ~461m edge (~0.74km² area)
# 9 = ~174m edge (~0.10km² area) ← privacy zone for neighborhood matching
# 10 = ~66m edge (~0.015km² area)
RESOLUTION = 9

# Matching radius in meters (2km)
PROXIMITY_RADIUS_METERS = 2000.0

# Rings around the requester's cell searched for candidates.
# Must satisfy ring_coverage_radius_m(RESOLUTION, DEFAULT_RING_SIZE) >= PROXIMITY_RADIUS_METERS
DEFAULT_RING_SIZE = 12

# Resolution 0 cells are ~1,100km across, useless as a matching zone
MIN_RESOLUTION = 1
MAX_RESOLUTION = 15

# grid_disk(k) returns 3k(k+1)+1 cells; 200 rings is ~120k cells
MAX_RING_SIZE = 200

# Lower bound on a local hexagon edge relative to the resolution average.
# H3 hexagons vary in area by roughly 2x across the globe and pentagons are
# smaller still.
MIN_EDGE_RATIO = 0.7

# Average hexagon edge length per resolution, in meters, from H3's published
# cell statistics table. h3.average_hexagon_edge_length() returns different
# figures across h3 releases (174.38m at res 9 before 4.2, 200.79m after), and
# ring sizing must not shift with the installed version.
AVERAGE_EDGE_LENGTH_M = (
    1107712.591,  # 0
    418676.0055,
    158244.6558,
    59810.85794,
    22606.3794,
    8544.408276,  # 5
    3229.482772,
    1220.629759,
    461.3546837,
    174.3756681,
    65.90780749,  # 10
    24.9105614,
    9.415526211,
    3.559893033,
    1.348574562,
    0.509713273,  # 15
)


def validate_resolution(resolution: int) -> None:
    """Raise InvalidResolution unless resolution is an int in [MIN_RESOLUTION, MAX_RESOLUTION]."""
    if isinstance(resolution, bool) or not isinstance(resolution, int):
        raise InvalidResolution(f"resolution must be an integer, got {resolution!r}")
    if not MIN_RESOLUTION <= resolution <= MAX_RESOLUTION:
        raise InvalidResolution(
            f"resolution {resolution} outside [{MIN_RESOLUTION}, {MAX_RESOLUTION}]"
        )


def validate_ring_size(ring_size: int) -> None:
    """Raise InvalidRingSize unless ring_size is an int in [0, MAX_RING_SIZE]."""
    if isinstance(ring_size, bool) or not isinstance(ring_size, int):
        raise InvalidRingSize(f"ring size must be an integer, got {ring_size!r}")
    if not 0 <= ring_size <= MAX_RING_SIZE:
        raise InvalidRingSize(f"ring size {ring_size} outside [0, {MAX_RING_SIZE}]")


def cell_of(coordinate: GeoCoordinate, resolution: int = RESOLUTION) -> str:
    """
    Convert a coordinate to the H3 cell containing it.

    Args:
        coordinate: Validated coordinate
        resolution: H3 resolution (default RESOLUTION)

    Returns:
        H3 cell ID (e.g., "892a100d2c3ffff")

    Raises:
        InvalidResolution: if resolution is outside the supported range
    """
    validate_resolution(resolution)
    return h3.latlng_to_cell(coordinate.latitude, coordinate.longitude, resolution)


def neighbors_of(cell_id: str, ring_size: int = DEFAULT_RING_SIZE) -> frozenset:
    """
    Get all hexagons within ring_size hops of the given cell.

    Args:
        cell_id: H3 cell ID
        ring_size: Number of hops (0 = just the center, 1 = immediate neighbors, ...)

    Returns:
        Set of H3 cell IDs including the center cell

    Examples:
        ring_size=0: 1 cell (just the center)
        ring_size=1: 7 cells (center + 6 neighbors)
        ring_size=2: 19 cells (center + 2-ring)
        ring_size=3: 37 cells (center + 3-ring)

    Near one of H3's 12 pentagons the counts are slightly lower.
    """
    validate_ring_size(ring_size)
    return frozenset(h3.grid_disk(cell_id, ring_size))


def cell_to_coordinate(cell_id: str) -> GeoCoordinate:
    """Center of an H3 cell. This is the only location a cell reveals."""
    lat, lon = h3.cell_to_latlng(cell_id)
    return GeoCoordinate(lat, lon)


def resolution_of(cell_id: str) -> int:
    return h3.get_resolution(cell_id)


def is_valid_cell(cell_id: str) -> bool:
    try:
        return h3.is_valid_cell(cell_id)
    except (TypeError, ValueError):
        return False


def average_edge_length_m(resolution: int = RESOLUTION) -> float:
    """Average hexagon edge length at a resolution, in meters."""
    validate_resolution(resolution)
    return AVERAGE_EDGE_LENGTH_M[resolution]


def ring_coverage_radius_m(resolution: int, ring_size: int) -> float:
    """
    Radius (meters) around any point that a ring of cells is guaranteed to cover.

    Cells more than k hops apart have centers at least 1.5 * (k + 1) * edge
    apart, and a point is at most one edge from its own cell center, so any
    point within (1.5 * k - 0.5) * edge of the origin lies in the origin's
    k-ring. The edge used is the conservative MIN_EDGE_RATIO fraction of the
    average.
    """
    validate_ring_size(ring_size)
    edge = average_edge_length_m(resolution) * MIN_EDGE_RATIO
    return max(0.0, (1.5 * ring_size - 0.5) * edge)


def required_ring_size(resolution: int, radius_m: float) -> int:
    """
    Smallest ring size whose coverage radius is at least radius_m.

    Raises:
        InvalidRingSize: if covering radius_m needs more than MAX_RING_SIZE rings
    """
    edge = average_edge_length_m(resolution) * MIN_EDGE_RATIO
    ring_size = max(1, math.ceil((radius_m / edge + 0.5) / 1.5))
    if ring_size > MAX_RING_SIZE:
        raise InvalidRingSize(
            f"covering {radius_m}m at resolution {resolution} needs {ring_size} rings "
            f"(max {MAX_RING_SIZE})"
        )
    return ring_size
