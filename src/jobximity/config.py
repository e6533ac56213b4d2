"""
Proximity tuning: cell resolution, ring size and matching radius.

The three values trade privacy granularity against matching precision and
are validated together, once, when the config is built. Bad tuning fails at
startup instead of on every request.
"""
import logging
import math
import os
from dataclasses import dataclass, asdict
from typing import Optional

from dotenv import load_dotenv

from src.jobximity import grid
from src.jobximity.errors import InvalidRadius, InvalidRingSize

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProximityConfig:
    """
    Settings for a ProximityResolver.

    Attributes:
        resolution: H3 resolution for privacy cells
        ring_size: Rings searched around the requester's cell. None derives
            the smallest ring size that covers radius_m.
        radius_m: Matching radius in meters (inclusive)
        skip_exact_on_coarse_reject: If True, a pair rejected by the cell
            ring is reported out of range without computing the distance.
    """
    resolution: int = grid.RESOLUTION
    ring_size: Optional[int] = grid.DEFAULT_RING_SIZE
    radius_m: float = grid.PROXIMITY_RADIUS_METERS
    skip_exact_on_coarse_reject: bool = False

    def __post_init__(self):
        grid.validate_resolution(self.resolution)

        if isinstance(self.radius_m, bool) or not isinstance(self.radius_m, (int, float)):
            raise InvalidRadius(f"radius must be a number, got {self.radius_m!r}")
        if not math.isfinite(self.radius_m) or self.radius_m <= 0:
            raise InvalidRadius(f"radius must be positive and finite, got {self.radius_m!r}")

        if self.ring_size is None:
            # Frozen dataclass: assign through object.__setattr__
            object.__setattr__(self, "ring_size", grid.required_ring_size(self.resolution, self.radius_m))

        grid.validate_ring_size(self.ring_size)
        if self.ring_size < 1:
            raise InvalidRingSize("ring size must be at least 1")

        coverage = grid.ring_coverage_radius_m(self.resolution, self.ring_size)
        if coverage < self.radius_m:
            raise InvalidRingSize(
                f"ring size {self.ring_size} at resolution {self.resolution} covers "
                f"{coverage:.0f}m, less than the {self.radius_m:g}m radius "
                f"(need {grid.required_ring_size(self.resolution, self.radius_m)})"
            )

    @property
    def coverage_radius_m(self) -> float:
        return grid.ring_coverage_radius_m(self.resolution, self.ring_size)

    def to_dict(self) -> dict:
        data = asdict(self)
        data["coverage_radius_m"] = round(self.coverage_radius_m, 1)
        return data

    @classmethod
    def from_env(cls) -> "ProximityConfig":
        """
        Build a config from environment variables (and .env if present).

        Variables:
            H3_RESOLUTION: cell resolution (default 9)
            PROXIMITY_RING_SIZE: ring size, or "auto" to derive it (default 12)
            PROXIMITY_RADIUS_METERS: radius in meters (default 2000)
            PROXIMITY_SKIP_EXACT_ON_COARSE_REJECT: "true"/"false" (default false)
        """
        load_dotenv()

        resolution = _env_int("H3_RESOLUTION", grid.RESOLUTION)
        radius_m = _env_float("PROXIMITY_RADIUS_METERS", grid.PROXIMITY_RADIUS_METERS)

        raw_ring = os.getenv("PROXIMITY_RING_SIZE", "").strip().lower()
        if raw_ring == "auto":
            ring_size = None
        elif raw_ring:
            ring_size = _parse_int("PROXIMITY_RING_SIZE", raw_ring)
        else:
            ring_size = grid.DEFAULT_RING_SIZE

        skip = os.getenv("PROXIMITY_SKIP_EXACT_ON_COARSE_REJECT", "false").strip().lower()

        config = cls(
            resolution=resolution,
            ring_size=ring_size,
            radius_m=radius_m,
            skip_exact_on_coarse_reject=skip in ("1", "true", "yes", "on"),
        )
        logger.info(
            "proximity config resolution=%s ring_size=%s radius_m=%s coverage_m=%.0f skip_exact=%s",
            config.resolution,
            config.ring_size,
            config.radius_m,
            config.coverage_radius_m,
            config.skip_exact_on_coarse_reject,
        )
        return config


def _parse_int(name: str, raw: str) -> int:
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from None


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name, "").strip()
    return _parse_int(name, raw) if raw else default


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        raise ValueError(f"{name} must be a number, got {raw!r}") from None
