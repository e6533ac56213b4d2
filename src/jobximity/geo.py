"""
Great-circle geometry on a spherical Earth.

Distances use the Haversine formula with the mean Earth radius. Its error
against the ellipsoid (under 0.5%) is far smaller than one ~175m cell.
"""
import math
from dataclasses import dataclass

from src.jobximity.errors import InvalidCoordinate

# Mean Earth radius in meters (spherical approximation, not WGS84 ellipsoid)
EARTH_RADIUS_METERS = 6371e3

# distance(a, a) and distance(a, b) - distance(b, a) stay below this
DISTANCE_EPSILON_METERS = 1e-6


@dataclass(frozen=True)
class GeoCoordinate:
    """
    A validated latitude/longitude pair in degrees.

    Raises InvalidCoordinate on construction if either value is out of
    range or not finite. Values are never clamped or wrapped.
    """
    latitude: float
    longitude: float

    def __post_init__(self):
        validate_coordinate(self.latitude, self.longitude)


def validate_coordinate(latitude: float, longitude: float) -> None:
    """
    Check that latitude is in [-90, 90] and longitude in [-180, 180].

    Raises:
        InvalidCoordinate: if either value is out of range, NaN or infinite
    """
    for name, value, limit in (("latitude", latitude, 90.0), ("longitude", longitude, 180.0)):
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise InvalidCoordinate(f"{name} must be a number, got {value!r}")
        if not math.isfinite(value) or not -limit <= value <= limit:
            raise InvalidCoordinate(f"{name} {value!r} outside [-{limit:g}, {limit:g}]")


def distance(a: GeoCoordinate, b: GeoCoordinate) -> float:
    """
    Great-circle distance between two coordinates in meters.

    Uses the atan2 form of the central angle, which stays stable for
    antipodal points where the asin form loses precision.

    Examples:
        New York (40.7128, -74.0060) to London (51.5074, -0.1278) ~ 5,570 km
        (0, 0) to (0, 180) ~ 20,015,086 m (half the circumference)
    """
    lat1 = math.radians(a.latitude)
    lat2 = math.radians(b.latitude)
    dlat = math.radians(b.latitude - a.latitude)
    dlon = math.radians(b.longitude - a.longitude)

    h = math.sin(dlat / 2) ** 2 + math.cos(lat1) * math.cos(lat2) * math.sin(dlon / 2) ** 2
    # Rounding can push h a hair past 1 near antipodes
    h = min(h, 1.0)

    central_angle = 2 * math.atan2(math.sqrt(h), math.sqrt(1 - h))
    return EARTH_RADIUS_METERS * central_angle


def destination(origin: GeoCoordinate, bearing_degrees: float, distance_meters: float) -> GeoCoordinate:
    """
    Point reached by travelling distance_meters from origin on an initial bearing.

    Bearing is clockwise from true north. The resulting longitude is
    normalized into [-180, 180].
    """
    angular = distance_meters / EARTH_RADIUS_METERS
    bearing = math.radians(bearing_degrees)
    lat1 = math.radians(origin.latitude)
    lon1 = math.radians(origin.longitude)

    sin_lat2 = math.sin(lat1) * math.cos(angular) + math.cos(lat1) * math.sin(angular) * math.cos(bearing)
    lat2 = math.asin(max(-1.0, min(1.0, sin_lat2)))
    lon2 = lon1 + math.atan2(
        math.sin(bearing) * math.sin(angular) * math.cos(lat1),
        math.cos(angular) - math.sin(lat1) * sin_lat2,
    )

    lon_degrees = (math.degrees(lon2) + 540.0) % 360.0 - 180.0
    return GeoCoordinate(math.degrees(lat2), lon_degrees)
