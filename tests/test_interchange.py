"""Tests for MarineSpatialPlanning/interchange.py exports and imports."""
import asyncio
import io
import json
import logging

import geojson
import gpxpy
import pandas as pd
import pytest

from MarineSpatialPlanning import (
    Coordinate, ImportParseError, ImportExportGateway, LineShape, PointShape, PolygonShape
)
from MarineSpatialPlanning.geometry import area, path_length


# ============================================================
# Structured JSON
# ============================================================

class TestJsonExport:
    def test_document_layout(self, gateway):
        doc = json.loads(gateway.export_json())
        assert set(doc) == {"project", "shapes", "researchData", "comments", "exportDate"}
        assert doc["project"]["name"] == "Untitled Project"
        assert len(doc["shapes"]) == 4

    def test_round_trip(self, gateway):
        gateway.manager.add_comment("reef edge", "Dr. Silva", (6.9, 79.9))
        gateway.manager.add_research_record("fishSurveys", {"species": "Grouper", "count": 3})
        original = gateway.manager.project
        restored = ImportExportGateway.read_project_json(gateway.export_json())
        assert restored.shapes == original.shapes
        assert restored.comments == original.comments
        assert restored.research_data == original.research_data
        assert restored.name == original.name

    def test_not_an_export(self):
        with pytest.raises(ImportParseError):
            ImportExportGateway.read_project_json('{"shapes": []}')


# ============================================================
# GeoJSON
# ============================================================

class TestGeoJsonExport:
    def test_geometry_types(self, gateway):
        fc = geojson.loads(gateway.export_geojson())
        assert fc["type"] == "FeatureCollection"
        assert [f["geometry"]["type"] for f in fc["features"]] == \
            ["Polygon", "LineString", "Point", "Point"]

    def test_polygon_ring_is_closed(self, gateway, square):
        fc = geojson.loads(gateway.export_geojson())
        ring = fc["features"][0]["geometry"]["coordinates"][0]
        assert ring[0] == ring[-1]
        assert ring[:-1] == [[p.lon, p.lat] for p in square.positions]

    def test_properties(self, gateway):
        fc = geojson.loads(gateway.export_geojson())
        for feature, shape in zip(fc["features"], gateway.shapes):
            assert set(feature["properties"]) == {"name", "type", "color", "data", "createdAt"}
            assert feature["properties"]["name"] == shape.name
            assert feature["properties"]["type"] == shape.zone_type.value
            assert feature["properties"]["data"] == shape.data
            assert feature["id"] == shape.id

    def test_circle_becomes_point_with_warning(self, gateway, station, caplog):
        with caplog.at_level(logging.WARNING, logger="interchange"):
            fc = geojson.loads(gateway.export_geojson())
        circle = fc["features"][2]["geometry"]
        assert circle["coordinates"] == [station.center.lon, station.center.lat]
        assert "radius" in caplog.text

    def test_circle_as_polygon(self, gateway):
        fc = geojson.loads(gateway.export_geojson(circle_as_polygon=True))
        circle = fc["features"][2]["geometry"]
        assert circle["type"] == "Polygon"
        assert len(circle["coordinates"][0]) == 65
        assert circle["coordinates"][0][0] == circle["coordinates"][0][-1]

    def test_reimport(self, gateway, square):
        result = gateway.importer.parse("zones.geojson", gateway.export_geojson())
        polygon = result.shapes[0]
        assert polygon.positions == square.positions
        assert polygon.label == square.label
        assert polygon.data == square.data
        # an unlabelled shape is named after its zone type, which is not a label
        assert result.shapes[3].label is None

    def test_full_precision_coordinates(self, local_manager):
        ring = [(6.92714321, 79.86123456), (7.29061234, 80.63374321), (7.0, 80.12345678)]
        polygon = local_manager.store.add(PolygonShape(positions=ring))
        line = local_manager.store.add(LineShape(positions=ring[:2]))
        point = local_manager.store.add(PointShape(position=(6.123456789, 79.987654321)))
        gw = ImportExportGateway(local_manager)
        fc = json.loads(gw.export_geojson())
        exported = fc["features"][0]["geometry"]["coordinates"][0]
        assert [Coordinate(lat, lon) for lon, lat in exported[:-1]] == list(polygon.positions)
        result = gw.importer.parse("zones.geojson", gw.export_geojson())
        assert result.shapes[0].positions == polygon.positions
        assert result.shapes[1].positions == line.positions
        assert result.shapes[2].position == point.position


# ============================================================
# CSV, GPX
# ============================================================

class TestCsvExport:
    def test_header(self, gateway):
        assert gateway.export_csv().splitlines()[0] == \
            "Zone Name,Type,Area (km²),Perimeter (km),Color,Created Date,Data"

    def test_rows(self, gateway, square, transect):
        df = pd.read_csv(io.StringIO(gateway.export_csv()), keep_default_na=False, dtype=str)
        assert list(df["Zone Name"]) == ["Reserve", "Unnamed", "Station 1", "Unnamed"]
        assert df["Area (km²)"][0] == f"{area(square.positions):.2f}"
        assert df["Area (km²)"][1] == ""
        assert df["Area (km²)"][3] == ""
        assert df["Perimeter (km)"][3] == "N/A"
        assert json.loads(df["Data"][2]) == {"pH": 8.1}

    def test_quotes_doubled(self, gateway):
        assert '"{""protectionLevel"": ""strict""}"' in gateway.export_csv()


class TestGpxExport:
    def test_routes_and_waypoints(self, gateway, transect):
        gpx = gpxpy.parse(gateway.export_gpx())
        assert len(gpx.routes) == 1
        assert [(p.latitude, p.longitude) for p in gpx.routes[0].points] == \
            [(p.lat, p.lon) for p in transect.positions]
        assert [w.name for w in gpx.waypoints] == ["Station 1", "monitoring_station"]


# ============================================================
# Statistics and report
# ============================================================

class TestStatistics:
    def test_totals(self, gateway, square, transect, station):
        stats = gateway.statistics()
        assert stats["totalShapes"] == 4
        assert stats["totalArea"] == pytest.approx(area(square.positions) + 3.14159, rel=1e-4)
        assert stats["totalDistance"] == pytest.approx(path_length(transect.positions))
        assert stats["zonesByType"] == {"protected_area": 1, "fish_survey": 1,
                                        "sampling_station": 1, "monitoring_station": 1}

    def test_empty_project(self, local_manager):
        stats = ImportExportGateway(local_manager).statistics()
        assert stats == {"totalShapes": 0, "totalArea": 0.0, "totalDistance": 0.0,
                         "zonesByType": {}}

    def test_report_data(self, gateway):
        data = gateway.report_data()
        assert data["statistics"] == gateway.statistics()
        assert [z["kind"] for z in data["zones"]] == ["polygon", "line", "circle", "point"]
        assert data["zones"][1]["length"] is not None

    def test_generate_report(self, gateway):
        buf = asyncio.run(gateway.generate_report())
        assert buf.getvalue()[:2] == b"PK"

    def test_report_without_map(self, gateway):
        buf = asyncio.run(gateway.generate_report(include_map=False, include_zone_details=False))
        assert buf.getvalue()[:2] == b"PK"


# ============================================================
# Import
# ============================================================

GEOJSON_IMPORT = json.dumps({
    "type": "FeatureCollection",
    "features": [
        {"type": "Feature",
         "geometry": {"type": "Point", "coordinates": [79.9, 6.9]},
         "properties": {"name": "Buoy A", "type": "monitoring_station"}},
        {"type": "Feature",
         "geometry": {"type": "LineString", "coordinates": [[79.9, 6.9], [80.0, 7.0]]},
         "properties": {"name": "Track", "type": "not_a_zone"}},
    ]
})


class TestImport:
    def test_merge_is_one_undo_step(self, gateway):
        before = gateway.shapes
        result = asyncio.run(gateway.import_file("zones.geojson", GEOJSON_IMPORT.encode()))
        assert len(result.shapes) == 2
        assert result.message == "Imported 2 shapes from zones.geojson"
        assert gateway.shapes == before + tuple(result.shapes)
        assert result.shapes[1].zone_type.value == "custom"
        gateway.manager.store.undo()
        assert gateway.shapes == before

    def test_failure_leaves_store_untouched(self, gateway):
        before = gateway.shapes
        depth = gateway.manager.store.undo_depth
        with pytest.raises(ImportParseError):
            asyncio.run(gateway.import_file("zones.geojson", b"{broken"))
        assert gateway.shapes == before
        assert gateway.manager.store.undo_depth == depth

    def test_json_export_reimport(self, gateway):
        exported = gateway.export_json()
        gateway.manager.store.clear()
        result = asyncio.run(gateway.import_file("project.json", exported))
        assert len(result.shapes) == 4
        assert isinstance(result.shapes[0], PolygonShape)
