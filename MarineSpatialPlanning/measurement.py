# coding: utf-8
"""
A transient distance/area probe on the map, independent of the drawn shapes.
"""
import logging
from enum import Enum, auto
from typing import Optional

from .coordinates import Coordinate, to_coordinate
from .errors import MeasurementStateError
from .geometry import path_length, bearing_of, area
from .project import MeasurementSummary


_logger = logging.getLogger('measurement')


class MeasurementState(Enum):
    """The states a measurement session can be in"""
    IDLE = auto()
    COLLECTING = auto()


class MeasurementMode(Enum):
    """What the user declared to measure. Both distance and area are
    computed whenever there are enough points."""
    DISTANCE = "distance"
    AREA = "area"


class MeasurementSession:
    """
    Collects points clicked on the map and keeps the derived values up to date:
      - distance (km): the cumulative path length, from 2 points on
      - bearing (degrees): only while there are exactly 2 points
      - area (km²): the area of the closed ring, from 3 points on

    A value is None while it is not defined. There is no undo: stopping or
    changing the mode starts over.
    """

    def __init__(self):
        self._state = MeasurementState.IDLE
        self._mode: Optional[MeasurementMode] = None
        self._points: list[Coordinate] = []
        self._distance: Optional[float] = None
        self._bearing: Optional[float] = None
        self._area: Optional[float] = None

    @property
    def state(self) -> MeasurementState:
        """A read-only property to access the current state"""
        return self._state

    @property
    def mode(self) -> Optional[MeasurementMode]:
        """The mode being collected, None while idle"""
        return self._mode

    @property
    def is_collecting(self) -> bool:
        return self._state == MeasurementState.COLLECTING

    @property
    def points(self) -> tuple[Coordinate, ...]:
        return tuple(self._points)

    @property
    def distance(self) -> Optional[float]:
        return self._distance

    @property
    def bearing(self) -> Optional[float]:
        return self._bearing

    @property
    def area(self) -> Optional[float]:
        return self._area

    def _reset(self):
        self._points = []
        self._distance = None
        self._bearing = None
        self._area = None

    def ensure_state(self, required_state: MeasurementState):
        """Raise an exception if the session is not in the required state"""
        if self._state != required_state:
            raise MeasurementStateError(
                f"Measurement session not in required state: " + \
                f"Current {self._state}, required: {required_state}.")

    def start(self, mode):
        """Start collecting points for `mode` (a MeasurementMode or its
        name). Any previous points are dropped, also when only the mode
        changes."""
        self._mode = MeasurementMode(mode)
        self._state = MeasurementState.COLLECTING
        self._reset()
        _logger.debug("measurement started: %s", self._mode.value)

    def stop(self):
        """Go back to idle, dropping the points and the derived values"""
        self._state = MeasurementState.IDLE
        self._mode = None
        self._reset()

    def add_point(self, point) -> Coordinate:
        """Append a point and recompute the derived values"""
        self.ensure_state(MeasurementState.COLLECTING)
        coord = to_coordinate(point)
        self._points.append(coord)
        self._recalculate()
        return coord

    def _recalculate(self):
        n = len(self._points)
        self._distance = path_length(self._points) if n >= 2 else None
        self._bearing = bearing_of(self._points) if n == 2 else None
        self._area = area(self._points) if n >= 3 else None
        _logger.debug("measurement with %d points: distance=%s bearing=%s area=%s",
                      n, self._distance, self._bearing, self._area)

    def summary(self) -> MeasurementSummary:
        """The current values in the form saved with a project (0 where
        a value is not defined)"""
        return MeasurementSummary(distance=self._distance or 0.0,
                                  area=self._area or 0.0,
                                  bearing=self._bearing or 0.0)

    def to_dict(self) -> dict:
        """The state of the session for the frontend"""
        return {
            'mode': self._mode.value if self._mode else None,
            'points': [p.to_list() for p in self._points],
            'distance': self._distance,
            'bearing': self._bearing,
            'area': self._area,
        }
