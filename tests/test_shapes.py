"""Tests for MarineSpatialPlanning/shapes.py and coordinates.py."""
import datetime
import json

import pytest

from MarineSpatialPlanning import (
    Coordinate, ShapeKind, ShapeValidationError, ZoneType,
    PointShape, LineShape, PolygonShape, CircleShape, shape_from_dict, shape_to_dict
)
from MarineSpatialPlanning.coordinates import (
    to_coordinate, destination_point, circle_ring, _get_extent_from_points
)
from MarineSpatialPlanning.geometry import distance


class TestCoordinates:
    def test_accepts_pairs_and_dicts(self):
        assert to_coordinate([6.9, 79.8]) == Coordinate(6.9, 79.8)
        assert to_coordinate({"lat": "6.9", "lon": 79.8}) == Coordinate(6.9, 79.8)

    @pytest.mark.parametrize("value", [(91, 0), (0, 181), (float("nan"), 0), ("a", "b"), (1,), None])
    def test_rejects_invalid(self, value):
        with pytest.raises(ShapeValidationError):
            to_coordinate(value)

    def test_destination_point_distance(self, colombo):
        dest = destination_point(colombo, 45, 10_000)
        assert distance(colombo, dest) == pytest.approx(10, rel=1e-6)

    def test_circle_ring(self, colombo):
        ring = circle_ring(colombo, 500, 16)
        assert len(ring) == 16
        for p in ring:
            assert distance(colombo, p) == pytest.approx(0.5, rel=1e-6)

    def test_extent(self):
        ext = _get_extent_from_points([Coordinate(1, 5), Coordinate(3, 2)])
        assert ext == (1, 2, 3, 5)
        assert ext.center == Coordinate(2, 3.5)


class TestValidation:
    def test_polygon_needs_three_positions(self):
        with pytest.raises(ShapeValidationError):
            PolygonShape(positions=[(0, 0), (1, 1)])

    def test_line_needs_two_positions(self):
        with pytest.raises(ShapeValidationError):
            LineShape(positions=[(0, 0)])

    @pytest.mark.parametrize("radius", [0, -5, "wide", None])
    def test_circle_needs_positive_radius(self, radius):
        with pytest.raises(ShapeValidationError):
            CircleShape(center=(0, 0), radius=radius)

    def test_unknown_zone_type(self):
        with pytest.raises(ShapeValidationError):
            PointShape(position=(0, 0), zone_type="volcano")

    def test_missing_zone_type_is_custom(self):
        assert PointShape(position=(0, 0), zone_type=None).zone_type == ZoneType.CUSTOM


class TestShapeValues:
    def test_default_color_of_zone_type(self):
        p = PointShape(position=(0, 0), zone_type="protected_area")
        assert p.zone_type == ZoneType.PROTECTED_AREA
        assert p.color == ZoneType.PROTECTED_AREA.color

    def test_explicit_color_kept(self):
        assert PointShape(position=(0, 0), color="#123456").color == "#123456"

    def test_data_is_copied(self):
        data = {"species": ["Parrotfish"]}
        p = PointShape(position=(0, 0), data=data)
        data["species"].append("Grouper")
        assert p.data == {"species": ["Parrotfish"]}

    def test_data_is_read_only(self):
        p = PointShape(position=(0, 0), data={"species": ["Parrotfish"], "counts": {"a": 1}})
        with pytest.raises(TypeError):
            p.data["species"].append("Grouper")
        with pytest.raises(TypeError):
            p.data["counts"]["a"] = 2
        with pytest.raises(TypeError):
            p.data.update(x=1)
        assert p.data == {"species": ["Parrotfish"], "counts": {"a": 1}}

    def test_data_serializes_as_plain_values(self):
        p = PointShape(position=(0, 0), data={"species": ["Parrotfish"]})
        data = p.to_dict()["data"]
        assert type(data) is dict and type(data["species"]) is list
        assert json.loads(json.dumps(p.data)) == {"species": ["Parrotfish"]}
        data["species"].append("Grouper")
        assert p.data == {"species": ["Parrotfish"]}

    def test_name_falls_back_to_zone_type(self, buoy, station):
        assert buoy.name == "monitoring_station"
        assert station.name == "Station 1"

    def test_with_label_keeps_identity(self, station):
        s = station.with_identity("shape_1", datetime.datetime(2025, 1, 1))
        relabelled = s.with_label("Station 2")
        assert relabelled.id == "shape_1"
        assert relabelled.label == "Station 2"
        assert s.label == "Station 1"

    def test_rectangle_kind(self):
        r = PolygonShape.from_bounds((0, 0), (1, 2))
        assert r.kind == ShapeKind.RECTANGLE
        assert r.positions == (Coordinate(0, 0), Coordinate(1, 0), Coordinate(1, 2), Coordinate(0, 2))


class TestWireFormat:
    def test_round_trip_of_each_kind(self, square, transect, station, buoy):
        stamp = datetime.datetime(2025, 3, 1, 12, 0, tzinfo=datetime.timezone.utc)
        for shape in (square, transect, station, buoy, PolygonShape.from_bounds((0, 0), (1, 1))):
            shape = shape.with_identity("shape_x", stamp)
            assert shape_from_dict(shape_to_dict(shape)) == shape

    def test_wire_keys(self, station):
        d = station.to_dict()
        assert d["type"] == "circle"
        assert d["zoneType"] == "sampling_station"
        assert d["center"] == [6.95, 79.85]
        assert d["radius"] == 1000
        assert d["createdAt"] is None

    def test_rectangle_type(self):
        d = PolygonShape.from_bounds((0, 0), (1, 1)).to_dict()
        assert d["type"] == "rectangle"
        assert shape_from_dict(d).kind == ShapeKind.RECTANGLE

    def test_unknown_type(self):
        with pytest.raises(ShapeValidationError):
            shape_from_dict({"type": "hexagon"})

    def test_missing_field(self):
        with pytest.raises(ShapeValidationError):
            shape_from_dict({"type": "circle", "center": [0, 0]})
