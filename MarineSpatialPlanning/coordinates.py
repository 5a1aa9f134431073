"""Helpers for geographic coordinates
"""
from typing import NamedTuple, Iterable
import math

from .errors import ShapeValidationError

EARTH_RADIUS_KM = 6371.0
EARTH_RADIUS_M = EARTH_RADIUS_KM * 1000


class Coordinate(NamedTuple):
    """A point defined by latitude-longitude coordinates in decimal degrees"""
    lat: float
    lon: float

    def to_list(self) -> list[float]:
        """The `[lat, lon]` pair used in the JSON documents"""
        return [self.lat, self.lon]


class ExtentLatLon(NamedTuple):
    """A rectangular extent defined by latitude-longitude coordinates"""
    minlat: float
    minlon: float
    maxlat: float
    maxlon: float

    @property
    def center(self) -> Coordinate:
        """The middle of the extent"""
        return Coordinate((self.minlat + self.maxlat) / 2, (self.minlon + self.maxlon) / 2)


def to_coordinate(value) -> Coordinate:
    """
    Convert a `[lat, lon]` pair (or a Coordinate, or a dict with
    lat/lon keys) into a validated Coordinate.

    Raises:
        ShapeValidationError if the value is not a pair of numbers or it
        is out of the latitude [-90, 90] / longitude [-180, 180] range.
    """
    try:
        if isinstance(value, dict):
            lat, lon = float(value['lat']), float(value['lon'])
        else:
            lat, lon = (float(v) for v in value)
    except (TypeError, ValueError, KeyError) as e:
        raise ShapeValidationError(f"Not a valid coordinate: {value!r}") from e
    if math.isnan(lat) or math.isnan(lon):
        raise ShapeValidationError(f"Not a valid coordinate: {value!r}")
    if not -90 <= lat <= 90:
        raise ShapeValidationError(f"Latitude {lat} is out of the [-90, 90] range")
    if not -180 <= lon <= 180:
        raise ShapeValidationError(f"Longitude {lon} is out of the [-180, 180] range")
    return Coordinate(lat, lon)


def to_coordinates(values: Iterable) -> tuple[Coordinate, ...]:
    """Convert a sequence of `[lat, lon]` pairs into a tuple of Coordinates"""
    return tuple(to_coordinate(v) for v in values)


def destination_point(origin: Coordinate, bearing_deg: float, distance_m: float) -> Coordinate:
    """
    Calculate the point reached from `origin` travelling `distance_m` meters
    along the great circle with the initial bearing `bearing_deg`.

    Parameters:
    - origin: the starting point
    - bearing_deg: initial bearing in degrees (clockwise from north)
    - distance_m: the distance to travel in meters

    Returns:
    - the destination with its longitude normalized to [-180, 180]
    """
    delta = distance_m / EARTH_RADIUS_M
    theta = math.radians(bearing_deg)
    lat1, lon1 = math.radians(origin.lat), math.radians(origin.lon)

    lat2 = math.asin(math.sin(lat1) * math.cos(delta) +
                     math.cos(lat1) * math.sin(delta) * math.cos(theta))
    lon2 = lon1 + math.atan2(math.sin(theta) * math.sin(delta) * math.cos(lat1),
                             math.cos(delta) - math.sin(lat1) * math.sin(lat2))

    lon2 = (math.degrees(lon2) + 540) % 360 - 180
    return Coordinate(math.degrees(lat2), lon2)


def circle_ring(center: Coordinate, radius_m: float, vertices: int = 64) -> list[Coordinate]:
    """Approximate a circle on the sphere with a ring of `vertices` points"""
    return [destination_point(center, 360 * i / vertices, radius_m) for i in range(vertices)]


def _get_extent_from_points(points: Iterable[Coordinate]) -> ExtentLatLon:
    points = list(points)
    if len(points) == 0:
        raise ValueError("Can't get extent from zero points")
    return ExtentLatLon(min(p.lat for p in points),
                        min(p.lon for p in points),
                        max(p.lat for p in points),
                        max(p.lon for p in points))

