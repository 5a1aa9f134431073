# coding: utf-8
"""
The in-memory collection of the drawn shapes of the active project with
snapshot based undo/redo.
"""
import dataclasses
import datetime
import logging
import os
import uuid
from typing import Iterable, Iterator, Optional

from .errors import ShapeNotFoundError, ShapeValidationError
from .shapes import Shape


_logger = logging.getLogger('shapestore')


def _now() -> datetime.datetime:
    return datetime.datetime.now(datetime.timezone.utc)


class ShapeStore:
    """
    Holds the shapes of the active project.

    Every mutation (`add`, `add_many`, `remove`, `replace`, `clear`) pushes
    the collection as it was before onto the undo stack and empties the redo
    stack. A snapshot is the immutable tuple of shapes, so restoring one gives
    back exactly the same collection.
    """

    MAX_HISTORY = int(os.getenv("MAX_HISTORY", "0")) or None

    def __init__(self, shapes: Iterable[Shape] = (), max_history: Optional[int] = None):
        self._shapes: tuple[Shape, ...] = tuple(shapes)
        self._undo: list[tuple[Shape, ...]] = []
        self._redo: list[tuple[Shape, ...]] = []
        self.max_history = max_history if max_history is not None else self.MAX_HISTORY

    @property
    def shapes(self) -> tuple[Shape, ...]:
        """A read-only property to access the current shapes"""
        return self._shapes

    @property
    def undo_depth(self) -> int:
        """The number of steps which can be undone"""
        return len(self._undo)

    @property
    def redo_depth(self) -> int:
        """The number of steps which can be redone"""
        return len(self._redo)

    @property
    def can_undo(self) -> bool:
        return len(self._undo) > 0

    @property
    def can_redo(self) -> bool:
        return len(self._redo) > 0

    def __len__(self):
        return len(self._shapes)

    def __iter__(self) -> Iterator[Shape]:
        return iter(self._shapes)

    def __contains__(self, shape_id) -> bool:
        return any(s.id == shape_id for s in self._shapes)

    def __repr__(self):
        return f"{type(self).__name__}({len(self._shapes)} shapes, " + \
               f"undo={len(self._undo)}, redo={len(self._redo)})"

    def get(self, shape_id: str) -> Shape:
        """Get a shape by its id"""
        for s in self._shapes:
            if s.id == shape_id:
                return s
        raise ShapeNotFoundError(f"No shape with id {shape_id}")

    def _index(self, shape_id: str) -> int:
        for i, s in enumerate(self._shapes):
            if s.id == shape_id:
                return i
        raise ShapeNotFoundError(f"No shape with id {shape_id}")

    @staticmethod
    def _new_id() -> str:
        return f"shape_{uuid.uuid4().hex}"

    def _commit(self, shapes: Iterable[Shape]):
        """Snapshot the current state, then make `shapes` the live collection"""
        self._undo.append(self._shapes)
        if self.max_history and len(self._undo) > self.max_history:
            del self._undo[0]
        self._redo.clear()
        self._shapes = tuple(shapes)

    @staticmethod
    def _check(shape):
        if not isinstance(shape, Shape):
            raise ShapeValidationError(f"Not a shape: {shape!r}")

    def add(self, shape: Shape) -> Shape:
        """Add a new shape. It gets a fresh id and creation time, the
        stored value is returned."""
        self._check(shape)
        new = shape.with_identity(self._new_id(), _now())
        self._commit(self._shapes + (new,))
        _logger.debug("added %s %s", new.kind.value, new.id)
        return new

    def add_many(self, shapes: Iterable[Shape]) -> tuple[Shape, ...]:
        """Add a batch of shapes as a single undoable step. Shapes keep their
        id and creation time unless missing or the id is already taken."""
        shapes = list(shapes)
        for s in shapes:
            self._check(s)
        if not shapes:
            return ()
        taken = {s.id for s in self._shapes}
        added = []
        for s in shapes:
            if s.id is None or s.id in taken:
                s = s.with_identity(self._new_id(), s.created_at or _now())
            elif s.created_at is None:
                s = s.with_identity(s.id, _now())
            taken.add(s.id)
            added.append(s)
        self._commit(self._shapes + tuple(added))
        _logger.debug("added a batch of %d shapes", len(added))
        return tuple(added)

    def remove(self, shape_id: str) -> Shape:
        """Remove a shape by id, returns the removed shape"""
        i = self._index(shape_id)
        removed = self._shapes[i]
        self._commit(self._shapes[:i] + self._shapes[i+1:])
        _logger.debug("removed %s", shape_id)
        return removed

    def replace(self, shape: Shape) -> Shape:
        """Replace the shape having the same id with `shape` (label, data,
        etc. edits). The original creation time is kept if `shape` has none."""
        self._check(shape)
        i = self._index(shape.id)
        if shape.created_at is None:
            shape = shape.with_identity(shape.id, self._shapes[i].created_at)
        self._commit(self._shapes[:i] + (shape,) + self._shapes[i+1:])
        _logger.debug("replaced %s", shape.id)
        return shape

    def update(self, shape_id: str, **changes) -> Shape:
        """Replace a shape with a copy having the given fields changed
        (e.g. `label=...`, `data=...`). A new zone type without an explicit
        color brings the default color of that zone type."""
        if 'id' in changes:
            raise ShapeValidationError("The id of a shape can not be changed")
        if 'zone_type' in changes:
            changes.setdefault('color', None)
        return self.replace(dataclasses.replace(self.get(shape_id), **changes))

    def clear(self):
        """Remove all shapes as one undoable step"""
        if not self._shapes:
            return
        self._commit(())
        _logger.debug("cleared all shapes")

    def undo(self) -> bool:
        """Restore the state before the last mutation. Returns False if
        there was nothing to undo."""
        if not self._undo:
            return False
        self._redo.append(self._shapes)
        self._shapes = self._undo.pop()
        return True

    def redo(self) -> bool:
        """Re-apply the last undone mutation. Returns False if there was
        nothing to redo."""
        if not self._redo:
            return False
        self._undo.append(self._shapes)
        self._shapes = self._redo.pop()
        return True

    def reset(self, shapes: Iterable[Shape] = ()):
        """Replace the whole collection and discard the undo/redo history"""
        self._shapes = tuple(shapes)
        self._undo.clear()
        self._redo.clear()
