# coding: utf-8
"""
The drawn zones of a marine spatial planning project.

A shape is one of `PointShape`, `LineShape`, `PolygonShape` (rectangles
included) or `CircleShape`. Shapes are immutable: edits create a new value
with the same `id` (see `with_label` and `with_data`).
"""
# general packages
import copy
import dataclasses
import datetime
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional
from typing_extensions import Self

# package imports
from .coordinates import Coordinate, to_coordinate, to_coordinates
from .errors import ShapeValidationError


class ZoneType(Enum):
    """The domain classification of a drawn zone"""
    RESEARCH_ZONE = "research_zone"
    FISH_SURVEY = "fish_survey"
    SAMPLING_STATION = "sampling_station"
    PROTECTED_AREA = "protected_area"
    FISHING_ZONE = "fishing_zone"
    MONITORING_STATION = "monitoring_station"
    HABITAT_SURVEY = "habitat_survey"
    VESSEL_TRACK = "vessel_track"
    POLLUTION_ZONE = "pollution_zone"
    AQUACULTURE = "aquaculture"
    CUSTOM = "custom"

    @property
    def color(self) -> str:
        """The default presentation color of the zone type"""
        return ZONE_COLORS[self]

    @classmethod
    def parse(cls, value) -> "ZoneType":
        """Get a ZoneType from its name in the JSON documents. A missing
        value means a custom zone."""
        if isinstance(value, ZoneType):
            return value
        if not value:
            return cls.CUSTOM
        try:
            return cls(value)
        except ValueError as e:
            raise ShapeValidationError(f"Unknown zone type: {value!r}") from e


ZONE_COLORS = {
    ZoneType.RESEARCH_ZONE: "#f59e0b",
    ZoneType.FISH_SURVEY: "#3b82f6",
    ZoneType.SAMPLING_STATION: "#06b6d4",
    ZoneType.PROTECTED_AREA: "#10b981",
    ZoneType.FISHING_ZONE: "#8b5cf6",
    ZoneType.MONITORING_STATION: "#ef4444",
    ZoneType.HABITAT_SURVEY: "#22c55e",
    ZoneType.VESSEL_TRACK: "#a855f7",
    ZoneType.POLLUTION_ZONE: "#dc2626",
    ZoneType.AQUACULTURE: "#14b8a6",
    ZoneType.CUSTOM: "#6b7280",
}


def _read_only(self, *args, **kwargs):
    raise TypeError(f"{type(self).__name__} of a shape payload can not be modified, "
                    "use `with_data` to create an edited copy of the shape")


class FrozenDict(dict):
    """A dict of a shape payload that refuses in-place modification"""
    __setitem__ = __delitem__ = __ior__ = _read_only
    clear = pop = popitem = setdefault = update = _read_only

    def __deepcopy__(self, memo):
        return thaw(self)

    def __reduce__(self):
        return (dict, (thaw(self),))


class FrozenList(list):
    """A list of a shape payload that refuses in-place modification"""
    __setitem__ = __delitem__ = __iadd__ = __imul__ = _read_only
    append = extend = insert = remove = pop = clear = sort = reverse = _read_only

    def __deepcopy__(self, memo):
        return thaw(self)

    def __reduce__(self):
        return (list, (thaw(self),))


def freeze(value):
    """A read-only deep copy of a JSON-like value"""
    if isinstance(value, dict):
        return FrozenDict((k, freeze(v)) for k, v in value.items())
    if isinstance(value, (list, tuple)):
        return FrozenList(freeze(v) for v in value)
    return copy.deepcopy(value)


def thaw(value):
    """A plain, modifiable deep copy of a (frozen) JSON-like value"""
    if isinstance(value, dict):
        return {k: thaw(v) for k, v in value.items()}
    if isinstance(value, list):
        return [thaw(v) for v in value]
    return copy.deepcopy(value)


class ShapeKind(Enum):
    """The geometry variants a zone can be drawn with"""
    POINT = "point"
    LINE = "line"
    POLYGON = "polygon"
    RECTANGLE = "rectangle"
    CIRCLE = "circle"


@dataclass(frozen=True, kw_only=True)
class Shape:
    """
    The common part of all drawn shapes.

    `id` and `created_at` stay None until the shape is added to a
    ShapeStore, which assigns them.
    """
    zone_type: ZoneType = ZoneType.CUSTOM
    label: Optional[str] = None
    color: Optional[str] = None
    data: dict[str, Any] = field(default_factory=dict)
    id: Optional[str] = None
    created_at: Optional[datetime.datetime] = None

    def __post_init__(self):
        object.__setattr__(self, 'zone_type', ZoneType.parse(self.zone_type))
        if self.color is None:
            object.__setattr__(self, 'color', self.zone_type.color)
        object.__setattr__(self, 'data', freeze(self.data or {}))
        self._validate()

    def _validate(self):
        raise NotImplementedError

    @property
    def kind(self) -> ShapeKind:
        """The geometry variant of the shape"""
        raise NotImplementedError

    @property
    def name(self) -> str:
        """The label or, without one, the zone type name"""
        return self.label or self.zone_type.value

    @property
    def vertices(self) -> tuple[Coordinate, ...]:
        """The coordinates defining the shape (the center of a circle)"""
        raise NotImplementedError

    def with_label(self, label: Optional[str]) -> Self:
        """A copy of this shape with another label (same id)"""
        return dataclasses.replace(self, label=label)

    def with_data(self, data: dict) -> Self:
        """A copy of this shape with another data payload (same id)"""
        return dataclasses.replace(self, data=data)

    def with_identity(self, shape_id: str, created_at: datetime.datetime) -> Self:
        """A copy of this shape with the id and creation time set"""
        return dataclasses.replace(self, id=shape_id, created_at=created_at)

    def to_dict(self) -> dict:
        """Converts the shape to a JSON serializable dictionary."""
        return {
            'id': self.id,
            'type': self.kind.value,
            'zoneType': self.zone_type.value,
            'color': self.color,
            'label': self.label,
            'data': thaw(self.data),
            'createdAt': self.created_at.isoformat() if self.created_at else None,
        }

    @staticmethod
    def _common_from_dict(value: dict) -> dict:
        created_at = value.get('createdAt')
        return {
            'id': value.get('id'),
            'zone_type': ZoneType.parse(value.get('zoneType')),
            'color': value.get('color'),
            'label': value.get('label'),
            'data': value.get('data') or {},
            'created_at': datetime.datetime.fromisoformat(created_at) if created_at else None,
        }


@dataclass(frozen=True, kw_only=True)
class PointShape(Shape):
    """A single marked location"""
    position: Coordinate

    def _validate(self):
        object.__setattr__(self, 'position', to_coordinate(self.position))

    @property
    def kind(self) -> ShapeKind:
        return ShapeKind.POINT

    @property
    def vertices(self) -> tuple[Coordinate, ...]:
        return (self.position,)

    def to_dict(self) -> dict:
        d = super().to_dict()
        d['position'] = self.position.to_list()
        return d

    @classmethod
    def from_dict(cls, value: dict) -> "PointShape":
        """Initialize the shape from a serializable dictionary"""
        return cls(position=value['position'], **cls._common_from_dict(value))


@dataclass(frozen=True, kw_only=True)
class LineShape(Shape):
    """An open path of at least two points"""
    positions: tuple[Coordinate, ...]

    def _validate(self):
        positions = to_coordinates(self.positions)
        if len(positions) < 2:
            raise ShapeValidationError(
                f"A line needs at least 2 positions, got {len(positions)}")
        object.__setattr__(self, 'positions', positions)

    @property
    def kind(self) -> ShapeKind:
        return ShapeKind.LINE

    @property
    def vertices(self) -> tuple[Coordinate, ...]:
        return self.positions

    def to_dict(self) -> dict:
        d = super().to_dict()
        d['positions'] = [p.to_list() for p in self.positions]
        return d

    @classmethod
    def from_dict(cls, value: dict) -> "LineShape":
        """Initialize the shape from a serializable dictionary"""
        return cls(positions=value['positions'], **cls._common_from_dict(value))


@dataclass(frozen=True, kw_only=True)
class PolygonShape(Shape):
    """An implicitly closed ring of at least three points. A rectangle is
    a polygon drawn as a box (`rectangle=True`)."""
    positions: tuple[Coordinate, ...]
    rectangle: bool = False

    def _validate(self):
        positions = to_coordinates(self.positions)
        if len(positions) < 3:
            raise ShapeValidationError(
                f"A polygon needs at least 3 positions, got {len(positions)}")
        object.__setattr__(self, 'positions', positions)

    @property
    def kind(self) -> ShapeKind:
        return ShapeKind.RECTANGLE if self.rectangle else ShapeKind.POLYGON

    @property
    def vertices(self) -> tuple[Coordinate, ...]:
        return self.positions

    @classmethod
    def from_bounds(cls, south_west: Coordinate, north_east: Coordinate, **kwargs) -> "PolygonShape":
        """Create a rectangle from its south-west and north-east corners"""
        (s, w), (n, e) = to_coordinate(south_west), to_coordinate(north_east)
        return cls(positions=[(s, w), (n, w), (n, e), (s, e)], rectangle=True, **kwargs)

    def to_dict(self) -> dict:
        d = super().to_dict()
        d['positions'] = [p.to_list() for p in self.positions]
        return d

    @classmethod
    def from_dict(cls, value: dict) -> "PolygonShape":
        """Initialize the shape from a serializable dictionary"""
        return cls(positions=value['positions'],
                   rectangle=value.get('type') == ShapeKind.RECTANGLE.value,
                   **cls._common_from_dict(value))


@dataclass(frozen=True, kw_only=True)
class CircleShape(Shape):
    """A circle given by its center and radius in meters"""
    center: Coordinate
    radius: float

    def _validate(self):
        object.__setattr__(self, 'center', to_coordinate(self.center))
        try:
            radius = float(self.radius)
        except (TypeError, ValueError) as e:
            raise ShapeValidationError(f"Not a valid radius: {self.radius!r}") from e
        if not radius > 0:
            raise ShapeValidationError(f"A circle needs a positive radius, got {radius}")
        object.__setattr__(self, 'radius', radius)

    @property
    def kind(self) -> ShapeKind:
        return ShapeKind.CIRCLE

    @property
    def vertices(self) -> tuple[Coordinate, ...]:
        return (self.center,)

    def to_dict(self) -> dict:
        d = super().to_dict()
        d['center'] = self.center.to_list()
        d['radius'] = self.radius
        return d

    @classmethod
    def from_dict(cls, value: dict) -> "CircleShape":
        """Initialize the shape from a serializable dictionary"""
        return cls(center=value['center'], radius=value['radius'],
                   **cls._common_from_dict(value))


_SHAPE_CLASSES = {
    ShapeKind.POINT: PointShape,
    ShapeKind.LINE: LineShape,
    ShapeKind.POLYGON: PolygonShape,
    ShapeKind.RECTANGLE: PolygonShape,
    ShapeKind.CIRCLE: CircleShape,
}


def shape_from_dict(value: dict) -> Shape:
    """
    Converts a dictionary from `Shape.to_dict` (or the same layout coming
    from the frontend) into the matching Shape class.

    Raises:
        ShapeValidationError for unknown shape types or missing fields.
    """
    try:
        kind = ShapeKind(value.get('type'))
    except ValueError as e:
        raise ShapeValidationError(f"Unknown shape type: {value.get('type')!r}") from e
    try:
        return _SHAPE_CLASSES[kind].from_dict(value)
    except KeyError as e:
        raise ShapeValidationError(f"Missing field {e} for a {kind.value} shape") from e


def shape_to_dict(shape: Shape) -> dict:
    """Converts a Shape to a JSON serializable dictionary."""
    return shape.to_dict()
