# coding: utf-8
"""
The project document: metadata, the drawn shapes and the ancillary data
saved together.
"""
import copy
import dataclasses
import datetime
import json
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from .coordinates import Coordinate, to_coordinate
from .shapes import Shape, shape_from_dict


DEFAULT_PROJECT_NAME = "Untitled Project"

RESEARCH_DATA_CATEGORIES = ("waterQuality", "fishSurveys", "coralHealth",
                            "depthReadings", "observations")

DEFAULT_LAYERS = {
    "bathymetry": False,
    "waterQuality": False,
    "fishHabitats": False,
    "protectedAreas": True,
    "shippingLanes": False,
    "researchSites": True,
}


def default_research_data() -> dict[str, list]:
    """Empty ancillary datasets"""
    return {c: [] for c in RESEARCH_DATA_CATEGORIES}


def _now() -> datetime.datetime:
    return datetime.datetime.now(datetime.timezone.utc)


def _parse_time(value) -> Optional[datetime.datetime]:
    return datetime.datetime.fromisoformat(value) if value else None


class ProjectStatus(Enum):
    """The lifecycle status of a project"""
    DRAFT = "draft"
    ACTIVE = "active"
    COMPLETED = "completed"
    ARCHIVED = "archived"


@dataclass(frozen=True)
class MeasurementSummary:
    """The last values of the measurement tool"""
    distance: float = 0.0
    area: float = 0.0
    bearing: float = 0.0

    def to_dict(self) -> dict:
        return dataclasses.asdict(self)

    @classmethod
    def from_dict(cls, value: Optional[dict]) -> "MeasurementSummary":
        value = value or {}
        return cls(distance=float(value.get('distance') or 0.0),
                   area=float(value.get('area') or 0.0),
                   bearing=float(value.get('bearing') or 0.0))


@dataclass(frozen=True)
class Comment:
    """A comment of the project thread, optionally pinned to a map location"""
    text: str
    author: str = ""
    position: Optional[Coordinate] = None
    id: str = field(default_factory=lambda: f"comment_{uuid.uuid4().hex}")
    created_at: datetime.datetime = field(default_factory=_now)

    def to_dict(self) -> dict:
        return {
            'id': self.id,
            'text': self.text,
            'author': self.author,
            'position': self.position.to_list() if self.position else None,
            'createdAt': self.created_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, value: dict) -> "Comment":
        position = value.get('position')
        return cls(text=value.get('text', ''),
                   author=value.get('author', ''),
                   position=to_coordinate(position) if position else None,
                   id=value.get('id') or f"comment_{uuid.uuid4().hex}",
                   created_at=_parse_time(value.get('createdAt')) or _now())


@dataclass
class Project:  # pylint: disable=too-many-instance-attributes
    """
    A marine spatial planning project.

    A project without `id` is unsaved: it lives only in memory. The id is
    assigned by the backend (remote or local) accepting the first save.
    `is_cloud_synced` tells whether that was the remote document store.
    """
    name: str = DEFAULT_PROJECT_NAME
    id: Optional[str] = None
    description: str = ""
    researcher: str = ""
    project_type: str = "general"
    status: ProjectStatus = ProjectStatus.DRAFT
    tags: list[str] = field(default_factory=list)
    metadata: dict = field(default_factory=dict)
    created: datetime.datetime = field(default_factory=_now)
    last_modified: Optional[datetime.datetime] = None
    is_cloud_synced: bool = False
    shapes: tuple[Shape, ...] = ()
    research_data: dict = field(default_factory=default_research_data)
    comments: list[Comment] = field(default_factory=list)
    measurements: MeasurementSummary = field(default_factory=MeasurementSummary)
    layers: dict[str, bool] = field(default_factory=lambda: dict(DEFAULT_LAYERS))

    @property
    def is_persisted(self) -> bool:
        """True when a backend has assigned an id to the project."""
        return self.id is not None

    def metadata_dict(self) -> dict:
        """The metadata part of the project (no shapes or ancillary data)"""
        return {
            'id': self.id,
            'name': self.name,
            'description': self.description,
            'researcher': self.researcher,
            'type': self.project_type,
            'status': self.status.value,
            'tags': list(self.tags),
            'metadata': copy.deepcopy(self.metadata),
            'date': self.created.isoformat(),
            'lastModified': self.last_modified.isoformat() if self.last_modified else None,
            'isCloudSynced': self.is_cloud_synced,
        }

    def to_dict(self) -> dict:
        """Converts the project to a JSON serializable dictionary."""
        d = self.metadata_dict()
        d.update({
            'shapes': [s.to_dict() for s in self.shapes],
            'researchData': copy.deepcopy(self.research_data),
            'comments': [c.to_dict() for c in self.comments],
            'measurements': self.measurements.to_dict(),
            'layers': dict(self.layers),
        })
        return d

    def to_json(self) -> str:
        """Serializes the project to JSON string."""
        return json.dumps(self.to_dict(), indent=2)

    @classmethod
    def from_dict(cls, value: dict) -> "Project":
        """Initialize the project from a serializable dictionary. Missing
        parts get their defaults."""
        layers = dict(DEFAULT_LAYERS)
        layers.update(value.get('layers') or {})
        return cls(
            name=value.get('name') or DEFAULT_PROJECT_NAME,
            id=value.get('id'),
            description=value.get('description', ''),
            researcher=value.get('researcher', ''),
            project_type=value.get('type', 'general'),
            status=ProjectStatus(value.get('status') or 'draft'),
            tags=list(value.get('tags') or []),
            metadata=copy.deepcopy(value.get('metadata') or {}),
            created=_parse_time(value.get('date')) or _now(),
            last_modified=_parse_time(value.get('lastModified')),
            is_cloud_synced=bool(value.get('isCloudSynced', False)),
            shapes=tuple(shape_from_dict(s) for s in value.get('shapes') or []),
            research_data=copy.deepcopy(value.get('researchData') or default_research_data()),
            comments=[Comment.from_dict(c) for c in value.get('comments') or []],
            measurements=MeasurementSummary.from_dict(value.get('measurements')),
            layers=layers,
        )

    @classmethod
    def from_json(cls, jsonstring: str) -> "Project":
        """Deserializes the project from a JSON string."""
        return cls.from_dict(json.loads(jsonstring))
