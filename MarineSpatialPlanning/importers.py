# coding: utf-8
"""
Parsing of imported files (JSON, GeoJSON, KML, CSV, GPX) into shapes.

The parser only produces a normalized list of draft shapes, merging them into
a project is the job of the ImportExportGateway.
"""
# general packages
import io
import json
import os
import datetime
from typing import NamedTuple, Optional, Union

# tabular data
import pandas as pd

# geojson read
import geojson

# kml read
from lxml import etree  # pylint: disable=no-name-in-module

# gpx read
import gpxpy
import gpxpy.gpx

# package imports
from .errors import ImportParseError, ShapeValidationError
from .shapes import (
    Shape, ZoneType, shape_from_dict,
    PointShape, LineShape, PolygonShape, CircleShape
)


class ImportResult(NamedTuple):
    """The shapes parsed from a file and a message for the user"""
    shapes: list[Shape]
    message: Optional[str] = None


SUPPORTED_FORMATS = {
    '.json': 'json',
    '.geojson': 'geojson',
    '.kml': 'kml',
    '.csv': 'csv',
    '.gpx': 'gpx',
}

LAT_COLUMNS = ('lat', 'latitude')
LON_COLUMNS = ('lon', 'lng', 'long', 'longitude')
NAME_COLUMNS = ('name', 'label', 'zone name')
TYPE_COLUMNS = ('type', 'zonetype', 'zone type', 'zone_type')

# the geojson library rounds to 6 decimals unless told otherwise
GEOJSON_PRECISION = 15

GEOJSON_GEOMETRIES = ('Point', 'MultiPoint', 'LineString', 'MultiLineString',
                      'Polygon', 'MultiPolygon')


def _geojson_instance(ob):
    """`geojson.loads` object hook keeping the coordinates at full precision"""
    if ob.get('type') in GEOJSON_GEOMETRIES and 'precision' not in ob:
        ob = dict(ob, precision=GEOJSON_PRECISION)
    return geojson.GeoJSON.to_instance(ob)


def _zone_type(value) -> ZoneType:
    """Unknown zone types of foreign files become custom zones"""
    try:
        return ZoneType.parse(value)
    except ShapeValidationError:
        return ZoneType.CUSTOM


def _parse_time(value) -> Optional[datetime.datetime]:
    try:
        return datetime.datetime.fromisoformat(value) if value else None
    except (TypeError, ValueError):
        return None


class FileImporter:
    """Parses files into draft shapes. Every failure is raised as ImportParseError."""

    def parse(self, filename: str, content: Union[bytes, str]) -> ImportResult:
        """Parse the content of a file, the format is taken from its extension"""
        ext = os.path.splitext(filename)[1].lower()
        fmt = SUPPORTED_FORMATS.get(ext)
        if fmt is None:
            raise ImportParseError(
                f"Unsupported file type '{ext}', use one of {', '.join(SUPPORTED_FORMATS)}")
        try:
            if fmt == 'kml':
                shapes = self.parse_kml(content if isinstance(content, bytes)
                                        else content.encode('utf8'))
            else:
                text = content.decode('utf-8-sig') if isinstance(content, bytes) else content
                shapes = getattr(self, f"parse_{fmt}")(text)
        except ImportParseError:
            raise
        except (ShapeValidationError, ValueError, KeyError, TypeError, IndexError, AttributeError,
                UnicodeDecodeError, etree.XMLSyntaxError, gpxpy.gpx.GPXException) as e:
            raise ImportParseError(f"Could not parse {filename}: {e}") from e
        if not shapes:
            raise ImportParseError(f"No shapes found in {filename}")
        return ImportResult(shapes, f"Imported {len(shapes)} shapes from {filename}")

    def parse_json(self, text: str) -> list[Shape]:
        """Parse a project export, a list of shapes or GeoJSON in a .json file"""
        data = json.loads(text)
        if isinstance(data, dict) and data.get('type') in ('FeatureCollection', 'Feature'):
            return self.parse_geojson(text)
        if isinstance(data, dict):
            data = data.get('shapes')
            if data is None:
                raise ImportParseError("The JSON document has no 'shapes'")
        if not isinstance(data, list):
            raise ImportParseError("The JSON document is not a list of shapes")
        return [shape_from_dict(s) for s in data]

    def parse_geojson(self, text: str) -> list[Shape]:
        """Parse a GeoJSON FeatureCollection, Feature or bare geometry"""
        obj = geojson.loads(text, object_hook=_geojson_instance)
        if obj.get('type') == 'FeatureCollection':
            features = obj.get('features') or []
        elif obj.get('type') == 'Feature':
            features = [obj]
        else:
            features = [{'type': 'Feature', 'geometry': obj, 'properties': {}}]
        shapes = []
        for feature in features:
            shapes.extend(self._shapes_from_feature(feature))
        return shapes

    def _shapes_from_feature(self, feature) -> list[Shape]:
        props = feature.get('properties') or {}
        zone_type = _zone_type(props.get('type') or props.get('zoneType'))
        name = props.get('name')
        common = {
            'zone_type': zone_type,
            # unlabelled shapes are exported with the zone type as their name
            'label': name if name and name != zone_type.value else None,
            'color': props.get('color'),
            'data': props.get('data') or {},
            'id': feature.get('id'),
            'created_at': _parse_time(props.get('createdAt')),
        }
        return self._shapes_from_geometry(feature.get('geometry'), props, common)

    def _shapes_from_geometry(self, geometry, props: dict, common: dict) -> list[Shape]:
        if not geometry:
            return []
        gtype, coords = geometry.get('type'), geometry.get('coordinates')
        if gtype == 'Point':
            position = (coords[1], coords[0])
            if props.get('radius'):
                return [CircleShape(center=position, radius=props['radius'], **common)]
            return [PointShape(position=position, **common)]
        if gtype == 'LineString':
            return [LineShape(positions=[(c[1], c[0]) for c in coords], **common)]
        if gtype == 'Polygon':
            ring = [(c[1], c[0]) for c in coords[0]]
            if len(ring) > 1 and ring[0] == ring[-1]:
                ring = ring[:-1]
            return [PolygonShape(positions=ring, **common)]
        if gtype in ('MultiPoint', 'MultiLineString', 'MultiPolygon'):
            single = gtype[len('Multi'):]
            common = dict(common, id=None)
            return [s for part in coords
                    for s in self._shapes_from_geometry({'type': single, 'coordinates': part},
                                                        props, common)]
        if gtype == 'GeometryCollection':
            common = dict(common, id=None)
            return [s for g in geometry.get('geometries') or []
                    for s in self._shapes_from_geometry(g, props, common)]
        raise ImportParseError(f"Unsupported GeoJSON geometry: {gtype}")

    def parse_kml(self, content: bytes) -> list[Shape]:
        """Parse the Placemarks of a KML document"""
        root = etree.fromstring(content)
        shapes = []
        for pm in root.xpath("//*[local-name()='Placemark']"):
            name = pm.xpath("string(*[local-name()='name'])").strip() or None
            zone = pm.xpath("string(.//*[local-name()='Data'][@name='zoneType']"
                            "/*[local-name()='value'])").strip()
            description = pm.xpath("string(*[local-name()='description'])").strip()
            common = {
                'zone_type': _zone_type(zone),
                'label': name,
                'data': {'description': description} if description else {},
            }
            for geom in pm.xpath(".//*[local-name()='Point' or local-name()='LineString'"
                                 " or local-name()='Polygon']"):
                tag = etree.QName(geom).localname
                if tag == 'Polygon':
                    coords = geom.xpath("string(.//*[local-name()='outerBoundaryIs']"
                                        "//*[local-name()='coordinates'])")
                else:
                    coords = geom.xpath("string(*[local-name()='coordinates'])")
                positions = self._kml_coordinates(coords)
                if tag == 'Point':
                    shapes.append(PointShape(position=positions[0], **common))
                elif tag == 'LineString':
                    shapes.append(LineShape(positions=positions, **common))
                else:
                    if len(positions) > 1 and positions[0] == positions[-1]:
                        positions = positions[:-1]
                    shapes.append(PolygonShape(positions=positions, **common))
        return shapes

    @staticmethod
    def _kml_coordinates(text: str) -> list[tuple[float, float]]:
        """KML coordinates are whitespace separated lon,lat[,alt] tuples"""
        positions = []
        for tup in text.split():
            parts = tup.split(',')
            positions.append((float(parts[1]), float(parts[0])))
        if not positions:
            raise ImportParseError("Empty KML coordinates")
        return positions

    def parse_csv(self, text: str) -> list[Shape]:
        """Parse a table of points with latitude and longitude columns"""
        df = pd.read_csv(io.StringIO(text))
        columns = {c.strip().lower(): c for c in df.columns}

        def find(candidates):
            return next((columns[c] for c in candidates if c in columns), None)

        lat_col, lon_col = find(LAT_COLUMNS), find(LON_COLUMNS)
        if lat_col is None or lon_col is None:
            raise ImportParseError("The CSV file needs latitude and longitude columns")
        name_col, type_col = find(NAME_COLUMNS), find(TYPE_COLUMNS)
        data_cols = [c for c in df.columns if c not in (lat_col, lon_col, name_col, type_col)]

        shapes = []
        for _, row in df.iterrows():
            if pd.isna(row[lat_col]) or pd.isna(row[lon_col]):
                continue
            shapes.append(PointShape(
                position=(row[lat_col], row[lon_col]),
                zone_type=_zone_type(row[type_col] if type_col and not pd.isna(row[type_col])
                                     else None),
                label=str(row[name_col]) if name_col and not pd.isna(row[name_col]) else None,
                data={c: (row[c].item() if hasattr(row[c], 'item') else row[c])
                      for c in data_cols if not pd.isna(row[c])},
            ))
        return shapes

    def parse_gpx(self, text: str) -> list[Shape]:
        """Tracks and routes become vessel tracks, waypoints become points"""
        gpx = gpxpy.parse(text)
        shapes: list[Shape] = []
        for trk in gpx.tracks:
            for seg in trk.segments:
                if len(seg.points) >= 2:
                    shapes.append(LineShape(
                        positions=[(p.latitude, p.longitude) for p in seg.points],
                        zone_type=ZoneType.VESSEL_TRACK, label=trk.name))
        for rte in gpx.routes:
            if len(rte.points) >= 2:
                shapes.append(LineShape(
                    positions=[(p.latitude, p.longitude) for p in rte.points],
                    zone_type=ZoneType.VESSEL_TRACK, label=rte.name))
        for wpt in gpx.waypoints:
            shapes.append(PointShape(position=(wpt.latitude, wpt.longitude),
                                     zone_type=_zone_type(wpt.type), label=wpt.name))
        return shapes
