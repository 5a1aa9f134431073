# coding: utf-8
"""
Conversion of the active project to and from the interchange formats.

Exports read the current state through the ProjectManager; imports are
parsed by the FileImporter and merged into the ShapeStore as one undoable
step.
"""
# general packages
import asyncio
import datetime
import functools
import io
import json
import logging
from collections import Counter
from typing import Optional, Union

# tabular data
import pandas as pd

# geojson write
import geojson

# gpx create
import gpxpy
import gpxpy.gpx

# package imports
from .coordinates import Coordinate, circle_ring
from .errors import ImportParseError
from .geometry import shape_area, shape_length, shape_perimeter
from .importers import FileImporter, ImportResult, GEOJSON_PRECISION
from .project import Project
from .projectmanager import ProjectManager
from .reporting import ReportRenderer
from .shapes import Shape, ShapeKind, thaw


_logger = logging.getLogger('interchange')

CSV_COLUMNS = ["Zone Name", "Type", "Area (km²)", "Perimeter (km)", "Color", "Created Date", "Data"]

CIRCLE_POLYGON_VERTICES = 64


def _lonlat(p: Coordinate) -> tuple[float, float]:
    return (p.lon, p.lat)


def _iso(value: Optional[datetime.datetime]) -> Optional[str]:
    return value.isoformat() if value else None


class ImportExportGateway:
    """
    Exports the project of a ProjectManager to JSON, GeoJSON, CSV, GPX and a
    report document, and imports shape files into its ShapeStore.
    """

    def __init__(self,
                 manager: ProjectManager,
                 importer: Optional[FileImporter] = None,
                 renderer: Optional[ReportRenderer] = None):
        self.manager = manager
        self.importer = importer if importer is not None else FileImporter()
        self.renderer = renderer if renderer is not None else ReportRenderer()

    @property
    def shapes(self) -> tuple[Shape, ...]:
        """The shapes of the active project"""
        return self.manager.store.shapes

    # ------------------------------------------------------------------
    # structured JSON
    def to_export_dict(self) -> dict:
        """The structured export document"""
        project = self.manager.snapshot()
        return {
            'project': project.metadata_dict(),
            'shapes': [s.to_dict() for s in project.shapes],
            'researchData': project.research_data,
            'comments': [c.to_dict() for c in project.comments],
            'exportDate': datetime.datetime.now(datetime.timezone.utc).isoformat(),
        }

    def export_json(self) -> str:
        """Serialize the project, its shapes and the ancillary data to JSON"""
        return json.dumps(self.to_export_dict(), indent=2)

    @staticmethod
    def read_project_json(text: Union[str, bytes]) -> Project:
        """Rebuild the full Project of a structured JSON export"""
        try:
            export = json.loads(text)
            document = dict(export['project'])
            document.update(shapes=export.get('shapes') or [],
                            researchData=export.get('researchData'),
                            comments=export.get('comments') or [])
            return Project.from_dict(document)
        except (ValueError, KeyError, TypeError) as e:
            raise ImportParseError(f"Not a project export: {e}") from e

    # ------------------------------------------------------------------
    # GeoJSON
    def _geometry(self, shape: Shape, circle_as_polygon: bool):
        if shape.kind in (ShapeKind.POLYGON, ShapeKind.RECTANGLE):
            ring = [_lonlat(p) for p in shape.positions]
            return geojson.Polygon([ring + [ring[0]]], precision=GEOJSON_PRECISION)
        if shape.kind == ShapeKind.LINE:
            return geojson.LineString([_lonlat(p) for p in shape.positions],
                                      precision=GEOJSON_PRECISION)
        if shape.kind == ShapeKind.CIRCLE:
            if circle_as_polygon:
                ring = [_lonlat(p) for p in
                        circle_ring(shape.center, shape.radius, CIRCLE_POLYGON_VERTICES)]
                return geojson.Polygon([ring + [ring[0]]], precision=GEOJSON_PRECISION)
            _logger.warning("circle %s exported to GeoJSON as its center point, "
                            "the radius of %.0f m is dropped", shape.id, shape.radius)
            return geojson.Point(_lonlat(shape.center), precision=GEOJSON_PRECISION)
        return geojson.Point(_lonlat(shape.position), precision=GEOJSON_PRECISION)

    def to_feature_collection(self, circle_as_polygon: bool = False) -> geojson.FeatureCollection:
        """
        The shapes as a GeoJSON FeatureCollection.

        Polygons and rectangles become Polygons with the ring closed, lines
        LineStrings, points Points. Circles are lossy: by default only the
        center is kept as a Point, with `circle_as_polygon` they are
        approximated by a 64-vertex Polygon.
        """
        features = [
            geojson.Feature(id=s.id,
                            geometry=self._geometry(s, circle_as_polygon),
                            properties={
                                'name': s.name,
                                'type': s.zone_type.value,
                                'color': s.color,
                                'data': thaw(s.data),
                                'createdAt': _iso(s.created_at),
                            })
            for s in self.shapes
        ]
        return geojson.FeatureCollection(features)

    def export_geojson(self, circle_as_polygon: bool = False) -> str:
        """Serialize the shapes to a GeoJSON string (see `to_feature_collection`)"""
        return geojson.dumps(self.to_feature_collection(circle_as_polygon), indent=2)

    # ------------------------------------------------------------------
    # tabular summary
    def to_dataframe(self) -> pd.DataFrame:
        """One row per shape with the computed area and perimeter"""
        rows = []
        for s in self.shapes:
            shape_a, perim = shape_area(s), shape_perimeter(s)
            rows.append([
                s.label or "Unnamed",
                s.zone_type.value,
                f"{shape_a:.2f}" if shape_a is not None else "",
                f"{perim:.2f}" if perim is not None else "N/A",
                s.color,
                s.created_at.date().isoformat() if s.created_at else "",
                json.dumps(s.data),
            ])
        return pd.DataFrame(rows, columns=CSV_COLUMNS)

    def export_csv(self) -> str:
        """The tabular summary as CSV. Quotes inside the Data column are doubled."""
        return self.to_dataframe().to_csv(index=False, lineterminator="\n")

    # ------------------------------------------------------------------
    # GPX
    def export_gpx(self) -> str:
        """Lines become GPX routes, points and circle centers waypoints.
        Areas have no GPX counterpart and are left out."""
        gpx = gpxpy.gpx.GPX()
        gpx.name = self.manager.snapshot().name
        gpx.time = datetime.datetime.now(datetime.timezone.utc)
        for s in self.shapes:
            if s.kind == ShapeKind.LINE:
                rte = gpxpy.gpx.GPXRoute(name=s.name, description=s.zone_type.value)
                rte.points.extend(gpxpy.gpx.GPXRoutePoint(p.lat, p.lon) for p in s.positions)
                gpx.routes.append(rte)
            elif s.kind in (ShapeKind.POINT, ShapeKind.CIRCLE):
                p = s.position if s.kind == ShapeKind.POINT else s.center
                wpt = gpxpy.gpx.GPXWaypoint(p.lat, p.lon, name=s.name)
                wpt.type = s.zone_type.value
                gpx.waypoints.append(wpt)
            else:
                _logger.debug("%s %s has no GPX representation", s.kind.value, s.id)
        return gpx.to_xml()

    # ------------------------------------------------------------------
    # statistics and report
    def statistics(self) -> dict:
        """Aggregate statistics of the drawn zones"""
        total_area = 0.0
        total_distance = 0.0
        for s in self.shapes:
            total_area += shape_area(s) or 0.0
            total_distance += shape_length(s) or 0.0
        return {
            'totalShapes': len(self.shapes),
            'totalArea': total_area,
            'totalDistance': total_distance,
            'zonesByType': dict(Counter(s.zone_type.value for s in self.shapes)),
        }

    def report_data(self) -> dict:
        """The structured input of the report renderer"""
        project = self.manager.snapshot()
        return {
            'project': project.metadata_dict(),
            'statistics': self.statistics(),
            'zones': [{
                'id': s.id,
                'name': s.name,
                'type': s.zone_type.value,
                'kind': s.kind.value,
                'color': s.color,
                'area': shape_area(s),
                'length': shape_length(s),
                'perimeter': shape_perimeter(s),
                'createdAt': _iso(s.created_at),
                'data': thaw(s.data),
            } for s in project.shapes],
            'comments': [c.to_dict() for c in project.comments],
            'generatedAt': datetime.datetime.now(datetime.timezone.utc).isoformat(),
        }

    async def generate_report(self,
                              include_map: bool = True,
                              include_statistics: bool = True,
                              include_zone_details: bool = True) -> io.BytesIO:
        """Render the report document in a worker thread"""
        report, shapes = self.report_data(), self.shapes
        loop = asyncio.get_running_loop()
        doc = await loop.run_in_executor(None, functools.partial(
            self.renderer.render, report, shapes,
            include_map=include_map,
            include_statistics=include_statistics,
            include_zone_details=include_zone_details))
        _logger.info("report of %s generated", report['project']['name'])
        return doc

    # ------------------------------------------------------------------
    # import
    async def import_file(self, filename: str, content: Union[bytes, str]) -> ImportResult:
        """
        Parse a file and merge its shapes into the ShapeStore as a single
        undoable step.

        Raises:
            ImportParseError with the parser's message; the store is untouched.
        """
        loop = asyncio.get_running_loop()
        try:
            parsed = await loop.run_in_executor(None, self.importer.parse, filename, content)
        except ImportParseError:
            _logger.warning("import of %s failed", filename, exc_info=True)
            raise
        added = self.manager.store.add_many(parsed.shapes)
        _logger.info("%d shapes imported from %s", len(added), filename)
        return ImportResult(list(added), parsed.message)
