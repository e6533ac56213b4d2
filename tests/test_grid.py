"""
Unit tests for grid module (H3 hexagonal grid system).
"""
import random
from unittest.mock import patch

import pytest
import h3

from src.jobximity.errors import InvalidCoordinate, InvalidResolution, InvalidRingSize
from src.jobximity.geo import GeoCoordinate, distance, destination
from src.jobximity.grid import (
    cell_of,
    neighbors_of,
    cell_to_coordinate,
    resolution_of,
    is_valid_cell,
    average_edge_length_m,
    ring_coverage_radius_m,
    required_ring_size,
    RESOLUTION,
    DEFAULT_RING_SIZE,
    PROXIMITY_RADIUS_METERS,
    MAX_RING_SIZE,
    MAX_RESOLUTION,
    AVERAGE_EDGE_LENGTH_M,
)

NEW_YORK = GeoCoordinate(40.7128, -74.0060)
LONDON = GeoCoordinate(51.5074, -0.1278)
TOKYO = GeoCoordinate(35.6762, 139.6503)

COVERAGE_ORIGINS = [
    NEW_YORK,
    LONDON,
    TOKYO,
    GeoCoordinate(-33.8688, 151.2093),  # Sydney
    GeoCoordinate(-0.1807, -78.4678),   # Quito
    GeoCoordinate(64.1466, -21.9426),   # Reykjavik
    GeoCoordinate(19.0760, 72.8777),    # Mumbai
    GeoCoordinate(-23.5505, -46.6333),  # São Paulo
]


@pytest.mark.unit
class TestCellOf:
    """Test suite for cell_of function."""

    def test_cell_of_valid_coordinates(self):
        """Test conversion of a valid coordinate to an H3 cell ID."""
        cell_id = cell_of(NEW_YORK)

        assert isinstance(cell_id, str)
        assert len(cell_id) == 15  # H3 cell ID length
        assert h3.is_valid_cell(cell_id)

    def test_cell_of_resolution(self):
        """Test that cell ID uses the configured resolution."""
        cell_id = cell_of(LONDON)

        assert h3.get_resolution(cell_id) == RESOLUTION
        assert resolution_of(cell_id) == 9

    def test_cell_of_explicit_resolution(self):
        for resolution in range(1, 16):
            assert resolution_of(cell_of(TOKYO, resolution)) == resolution

    def test_cell_of_same_location_same_cell(self):
        """Test that same coordinates return same cell ID."""
        assert cell_of(TOKYO) == cell_of(TOKYO)
        assert cell_of(TOKYO, 7) == cell_of(GeoCoordinate(35.6762, 139.6503), 7)

    def test_cell_of_is_lossy(self):
        """Test that points a few meters apart share a privacy cell."""
        cell_id = cell_of(NEW_YORK)
        center = cell_to_coordinate(cell_id)
        for bearing in range(0, 360, 60):
            assert cell_of(destination(center, bearing, 10)) == cell_id

    def test_cell_of_far_locations_different_cells(self):
        assert cell_of(NEW_YORK) != cell_of(LONDON)

    def test_cell_of_equator(self):
        assert h3.is_valid_cell(cell_of(GeoCoordinate(0.0, 0.0)))

    def test_cell_of_extreme_latitudes(self):
        """Test conversion at extreme latitudes."""
        assert h3.is_valid_cell(cell_of(GeoCoordinate(85.0, 0.0)))
        assert h3.is_valid_cell(cell_of(GeoCoordinate(-85.0, 0.0)))
        assert h3.is_valid_cell(cell_of(GeoCoordinate(90.0, 0.0)))

    @pytest.mark.parametrize("resolution", [0, 16, -1, 9.0, True, "9", None])
    def test_cell_of_invalid_resolution(self, resolution):
        with pytest.raises(InvalidResolution):
            cell_of(NEW_YORK, resolution)


@pytest.mark.unit
class TestNeighborsOf:
    """Test suite for neighbors_of function."""

    @pytest.mark.parametrize("ring_size,expected", [(0, 1), (1, 7), (2, 19), (3, 37)])
    def test_neighbors_of_counts(self, ring_size, expected):
        """Test ring sizes return center + 3k(k+1) cells."""
        cell_id = cell_of(NEW_YORK)
        neighbors = neighbors_of(cell_id, ring_size)

        assert len(neighbors) == expected
        assert cell_id in neighbors

    def test_neighbors_of_default_ring_size(self):
        cell_id = cell_of(NEW_YORK)
        neighbors = neighbors_of(cell_id)

        k = DEFAULT_RING_SIZE
        assert len(neighbors) == 3 * k * (k + 1) + 1

    def test_neighbors_of_all_valid(self):
        """Test that all returned cells are valid cells at the same resolution."""
        cell_id = cell_of(NEW_YORK)
        for neighbor in neighbors_of(cell_id, 2):
            assert is_valid_cell(neighbor)
            assert resolution_of(neighbor) == RESOLUTION

    def test_neighbors_of_returns_set(self):
        neighbors = neighbors_of(cell_of(NEW_YORK), 1)
        assert isinstance(neighbors, frozenset)

    def test_neighbors_of_deterministic(self):
        cell_id = cell_of(LONDON)
        assert neighbors_of(cell_id, 4) == neighbors_of(cell_id, 4)

    def test_neighbors_of_rings_are_nested(self):
        cell_id = cell_of(TOKYO)
        assert neighbors_of(cell_id, 2) < neighbors_of(cell_id, 3)

    def test_neighbors_of_adjacency_is_symmetric(self):
        """Test that if b is in a's ring, a is in b's ring."""
        a = cell_of(NEW_YORK)
        for b in neighbors_of(a, 2):
            assert a in neighbors_of(b, 2)

    @pytest.mark.parametrize("ring_size", [-1, MAX_RING_SIZE + 1, 1.5, None])
    def test_neighbors_of_invalid_ring_size(self, ring_size):
        with pytest.raises(InvalidRingSize):
            neighbors_of(cell_of(NEW_YORK), ring_size)


@pytest.mark.unit
class TestCellToCoordinate:
    """Test suite for cell_to_coordinate function."""

    def test_cell_center_is_near_original(self):
        """Test that a cell center is within about one edge of the original point."""
        for origin in [NEW_YORK, LONDON, TOKYO]:
            center = cell_to_coordinate(cell_of(origin))
            assert distance(origin, center) < 2 * average_edge_length_m(RESOLUTION)

    def test_cell_center_maps_back_to_cell(self):
        cell_id = cell_of(NEW_YORK)
        assert cell_of(cell_to_coordinate(cell_id)) == cell_id


@pytest.mark.unit
class TestIsValidCell:
    def test_valid_cell(self):
        assert is_valid_cell(cell_of(NEW_YORK))

    def test_invalid_cell(self):
        assert not is_valid_cell("not-a-cell")
        assert not is_valid_cell("")


@pytest.mark.unit
class TestRingCoverage:
    """Test suite for ring coverage constants and helpers."""

    def test_resolution_targets_neighborhood_cells(self):
        """Test that the default resolution gives cells in the 100-200m edge range."""
        assert 100 <= average_edge_length_m(RESOLUTION) <= 200

    def test_edge_table_covers_every_resolution(self):
        assert len(AVERAGE_EDGE_LENGTH_M) == MAX_RESOLUTION + 1
        assert list(AVERAGE_EDGE_LENGTH_M) == sorted(AVERAGE_EDGE_LENGTH_M, reverse=True)

    @pytest.mark.parametrize("resolution", range(1, MAX_RESOLUTION + 1))
    def test_edge_table_agrees_with_h3(self, resolution):
        """Test that the fixed table stays within h3's own estimate across releases."""
        estimate = h3.average_hexagon_edge_length(resolution, unit="m")
        assert 0.75 <= average_edge_length_m(resolution) / estimate <= 1.05

    def test_ring_sizing_independent_of_h3_version(self):
        """Test that coverage math does not follow h3's reported edge length."""
        expected = required_ring_size(RESOLUTION, PROXIMITY_RADIUS_METERS)
        with patch("h3.average_hexagon_edge_length", return_value=200.786148):
            assert average_edge_length_m(RESOLUTION) == AVERAGE_EDGE_LENGTH_M[RESOLUTION]
            assert required_ring_size(RESOLUTION, PROXIMITY_RADIUS_METERS) == expected

    def test_default_ring_covers_radius(self):
        assert ring_coverage_radius_m(RESOLUTION, DEFAULT_RING_SIZE) >= PROXIMITY_RADIUS_METERS

    def test_required_ring_is_smallest_that_covers(self):
        needed = required_ring_size(RESOLUTION, PROXIMITY_RADIUS_METERS)
        assert needed <= DEFAULT_RING_SIZE
        assert ring_coverage_radius_m(RESOLUTION, needed) >= PROXIMITY_RADIUS_METERS
        assert ring_coverage_radius_m(RESOLUTION, needed - 1) < PROXIMITY_RADIUS_METERS

    def test_coverage_grows_with_ring_size(self):
        coverages = [ring_coverage_radius_m(RESOLUTION, k) for k in range(0, 20)]
        assert coverages == sorted(coverages)
        assert coverages[0] == 0.0

    def test_required_ring_size_coarser_resolution(self):
        coarse = required_ring_size(8, PROXIMITY_RADIUS_METERS)
        assert coarse < required_ring_size(RESOLUTION, PROXIMITY_RADIUS_METERS)
        assert ring_coverage_radius_m(8, coarse) >= PROXIMITY_RADIUS_METERS

    def test_required_ring_size_too_large(self):
        with pytest.raises(InvalidRingSize):
            required_ring_size(15, PROXIMITY_RADIUS_METERS)

    @pytest.mark.parametrize("origin", COVERAGE_ORIGINS)
    def test_points_within_radius_are_in_ring(self, origin):
        """
        Test that every point within the radius lands in the origin's ring.

        Checks points at exactly the radius, just inside it, and at random
        distances, on bearings all the way round.
        """
        area = neighbors_of(cell_of(origin), DEFAULT_RING_SIZE)
        rng = random.Random(hash((origin.latitude, origin.longitude)) & 0xFFFF)

        distances = [PROXIMITY_RADIUS_METERS, PROXIMITY_RADIUS_METERS - 0.01, PROXIMITY_RADIUS_METERS - 1.0]
        for bearing in range(0, 360, 10):
            for meters in distances + [rng.uniform(0, PROXIMITY_RADIUS_METERS)]:
                point = destination(origin, bearing, meters)
                assert distance(origin, point) <= PROXIMITY_RADIUS_METERS + 1e-6
                assert cell_of(point) in area, (origin, bearing, meters)

    def test_points_within_radius_of_jittered_origins(self):
        """Test ring coverage from origins spread across a cell, not just city centers."""
        rng = random.Random(42)
        for _ in range(20):
            origin = destination(NEW_YORK, rng.uniform(0, 360), rng.uniform(0, 5000))
            area = neighbors_of(cell_of(origin), DEFAULT_RING_SIZE)
            for bearing in range(0, 360, 30):
                point = destination(origin, bearing + rng.uniform(0, 30), PROXIMITY_RADIUS_METERS)
                assert cell_of(point) in area
