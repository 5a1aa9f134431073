# coding: utf-8
"""
Geodesic measurements over geographic coordinate sequences.

All functions are pure: the same input always gives the same output.
Distances are in kilometers, areas in square kilometers, bearings in degrees.
"""
# general packages
import math
from typing import Optional, Sequence

# projection related packages
import numpy as np
from pyproj import Geod

# package imports
from .coordinates import Coordinate, EARTH_RADIUS_KM, EARTH_RADIUS_M
from .errors import GeometryContractError
from .shapes import Shape, ShapeKind


_WGS84 = Geod(ellps="WGS84")


def distance(a: Coordinate, b: Coordinate) -> float:
    """Great-circle distance in km between two points (haversine formula)."""
    dlat = math.radians(b[0] - a[0])
    dlon = math.radians(b[1] - a[1])
    h = math.sin(dlat / 2) * math.sin(dlat / 2) + \
        math.cos(math.radians(a[0])) * math.cos(math.radians(b[0])) * \
        math.sin(dlon / 2) * math.sin(dlon / 2)
    # rounding can push h past 1 for antipodal points
    h = min(1.0, h)
    c = 2 * math.atan2(math.sqrt(h), math.sqrt(1 - h))
    return EARTH_RADIUS_KM * c


def path_length(positions: Sequence[Coordinate]) -> float:
    """Cumulative distance in km along a path: the sum of the
    distances between consecutive points (0 for less than 2 points)."""
    return sum(distance(p0, p1) for p0, p1 in zip(positions[:-1], positions[1:]))


def ring_perimeter(positions: Sequence[Coordinate]) -> float:
    """Length in km of a closed ring (the last point connects to the first)."""
    if len(positions) < 2:
        return 0.0
    return path_length(positions) + distance(positions[-1], positions[0])


def bearing(a: Coordinate, b: Coordinate) -> float:
    """Forward azimuth from `a` to `b` in degrees, normalized to [0, 360)."""
    dlon = math.radians(b[1] - a[1])
    lat1 = math.radians(a[0])
    lat2 = math.radians(b[0])
    y = math.sin(dlon) * math.cos(lat2)
    x = math.cos(lat1) * math.sin(lat2) - \
        math.sin(lat1) * math.cos(lat2) * math.cos(dlon)
    return (math.degrees(math.atan2(y, x)) + 360) % 360


def bearing_of(positions: Sequence[Coordinate]) -> float:
    """Bearing of a two-point sequence.

    Raises:
        GeometryContractError if the sequence does not have exactly two points.
    """
    if len(positions) != 2:
        raise GeometryContractError(
            f"Bearing is defined for exactly 2 points, got {len(positions)}")
    return bearing(positions[0], positions[1])


def area(positions: Sequence[Coordinate]) -> float:
    """
    Surface area in km² of the closed ring given by `positions`.

    Accumulates `(lon2 - lon1) * (2 + sin(lat1) + sin(lat2))` per edge (in
    radians) and scales by R² / 2. It is a spherical approximation: accurate
    for small and medium zones, less so as the extent grows. See
    `geodesic_area` for an ellipsoidal computation.

    Raises:
        GeometryContractError for less than 3 points.
    """
    if len(positions) < 3:
        raise GeometryContractError(
            f"Area needs at least 3 points, got {len(positions)}")
    pts = np.radians(np.array([(p[0], p[1]) for p in positions], dtype=float))
    lat1, lon1 = pts[:, 0], pts[:, 1]
    lat2, lon2 = np.roll(lat1, -1), np.roll(lon1, -1)
    total = np.sum((lon2 - lon1) * (2 + np.sin(lat1) + np.sin(lat2)))
    return float(abs(total * EARTH_RADIUS_M * EARTH_RADIUS_M / 2) / 1_000_000)


def circle_area(radius_m: float) -> float:
    """Planar disk area in km² of a circle with the radius in meters."""
    return math.pi * radius_m * radius_m / 1_000_000


def geodesic_area(positions: Sequence[Coordinate]) -> float:
    """Area in km² of the closed ring on the WGS84 ellipsoid.
    Not used by the exports, which keep `area` for compatibility."""
    if len(positions) < 3:
        raise GeometryContractError(
            f"Area needs at least 3 points, got {len(positions)}")
    poly_area, _ = _WGS84.polygon_area_perimeter([p[1] for p in positions],
                                                 [p[0] for p in positions])
    return abs(poly_area) / 1_000_000


def shape_area(shape: Shape) -> Optional[float]:
    """Area in km² of a polygon, rectangle or circle; None for lines and points."""
    if shape.kind in (ShapeKind.POLYGON, ShapeKind.RECTANGLE):
        return area(shape.positions)
    if shape.kind == ShapeKind.CIRCLE:
        return circle_area(shape.radius)
    return None


def shape_length(shape: Shape) -> Optional[float]:
    """Length in km of a line; None for the other shapes."""
    if shape.kind == ShapeKind.LINE:
        return path_length(shape.positions)
    return None


def shape_perimeter(shape: Shape) -> Optional[float]:
    """Perimeter in km of a polygon, rectangle or circle."""
    if shape.kind in (ShapeKind.POLYGON, ShapeKind.RECTANGLE):
        return ring_perimeter(shape.positions)
    if shape.kind == ShapeKind.CIRCLE:
        return 2 * math.pi * shape.radius / 1000
    return None
