"""Tests for MarineSpatialPlanning/geometry.py measurements."""
import math

import pytest

from MarineSpatialPlanning import Coordinate, GeometryContractError, PointShape
from MarineSpatialPlanning.geometry import (
    distance, path_length, ring_perimeter, bearing, bearing_of,
    area, circle_area, geodesic_area, shape_area, shape_length, shape_perimeter
)


UNIT_SQUARE = [Coordinate(0, 0), Coordinate(1, 0), Coordinate(1, 1), Coordinate(0, 1)]


# ============================================================
# Distance
# ============================================================

class TestDistance:
    def test_colombo_kandy(self, colombo, kandy):
        assert distance(colombo, kandy) == pytest.approx(95, abs=3)

    def test_symmetric(self, colombo, kandy):
        assert distance(colombo, kandy) == pytest.approx(distance(kandy, colombo))

    def test_zero_for_same_point(self, colombo):
        assert distance(colombo, colombo) == 0

    def test_one_degree_of_longitude_at_equator(self):
        # R * pi / 180
        assert distance((0, 0), (0, 1)) == pytest.approx(111.195, abs=0.01)

    def test_antipodal_points(self):
        half_circumference = math.pi * 6371.0
        assert distance((0, 0), (0, 180)) == pytest.approx(half_circumference)
        for lat in (-82.5714285714, -45.123456789, 12.3456789, 89.99):
            assert distance((-lat, 0.0), (lat, 180.0)) == pytest.approx(half_circumference)
            assert distance((lat, -179.5), (-lat, 0.5)) == pytest.approx(half_circumference)

    def test_path_length_sums_segments(self, colombo, kandy):
        mid = Coordinate(7.1, 80.2)
        assert path_length([colombo, mid, kandy]) == \
            pytest.approx(distance(colombo, mid) + distance(mid, kandy))

    def test_path_length_of_single_point(self, colombo):
        assert path_length([colombo]) == 0
        assert path_length([]) == 0

    def test_ring_perimeter_closes_the_ring(self):
        side = distance((0, 0), (1, 0))
        assert ring_perimeter(UNIT_SQUARE) > 3 * side
        assert ring_perimeter(UNIT_SQUARE) == \
            pytest.approx(path_length(UNIT_SQUARE) + distance(UNIT_SQUARE[-1], UNIT_SQUARE[0]))


# ============================================================
# Bearing
# ============================================================

class TestBearing:
    def test_cardinal_directions(self):
        assert bearing((0, 0), (1, 0)) == pytest.approx(0)
        assert bearing((0, 0), (0, 1)) == pytest.approx(90)
        assert bearing((1, 0), (0, 0)) == pytest.approx(180)
        assert bearing((0, 1), (0, 0)) == pytest.approx(270)

    def test_range(self, colombo, kandy):
        for a, b in [(colombo, kandy), (kandy, colombo), ((10, 10), (9, 9))]:
            assert 0 <= bearing(a, b) < 360

    def test_reciprocal(self, colombo, kandy):
        diff = (bearing(colombo, kandy) - bearing(kandy, colombo)) % 360
        assert diff == pytest.approx(180, abs=0.5)

    def test_bearing_of_two_points(self, colombo, kandy):
        assert bearing_of([colombo, kandy]) == bearing(colombo, kandy)

    @pytest.mark.parametrize("count", [0, 1, 3])
    def test_bearing_of_needs_exactly_two_points(self, colombo, count):
        with pytest.raises(GeometryContractError):
            bearing_of([colombo] * count)


# ============================================================
# Area
# ============================================================

class TestArea:
    def test_one_degree_square_at_equator(self):
        assert area(UNIT_SQUARE) == pytest.approx(12364, rel=0.001)

    def test_orientation_does_not_matter(self):
        assert area(list(reversed(UNIT_SQUARE))) == pytest.approx(area(UNIT_SQUARE))

    def test_close_to_geodesic_for_small_zones(self):
        ring = [(7.0, 79.8), (7.1, 79.8), (7.1, 79.9), (7.0, 79.9)]
        assert area(ring) == pytest.approx(geodesic_area(ring), rel=0.01)

    def test_needs_three_points(self):
        with pytest.raises(GeometryContractError):
            area(UNIT_SQUARE[:2])
        with pytest.raises(GeometryContractError):
            geodesic_area(UNIT_SQUARE[:2])

    def test_circle_area_is_planar_disk(self):
        assert circle_area(1000) == pytest.approx(math.pi)


class TestShapeMeasures:
    def test_polygon(self, square):
        assert shape_area(square) == pytest.approx(area(UNIT_SQUARE))
        assert shape_perimeter(square) == pytest.approx(ring_perimeter(UNIT_SQUARE))
        assert shape_length(square) is None

    def test_line(self, transect):
        assert shape_area(transect) is None
        assert shape_perimeter(transect) is None
        assert shape_length(transect) == pytest.approx(path_length(transect.positions))

    def test_circle(self, station):
        assert shape_area(station) == pytest.approx(math.pi)
        assert shape_perimeter(station) == pytest.approx(2 * math.pi)

    def test_point(self):
        p = PointShape(position=(1, 1))
        assert shape_area(p) is None
        assert shape_length(p) is None
        assert shape_perimeter(p) is None
