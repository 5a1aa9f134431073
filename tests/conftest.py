"""Shared test fixtures for the marine spatial planning engine tests."""
import uuid

import pytest

from MarineSpatialPlanning import (
    Coordinate, ShapeStore, ProjectManager, ImportExportGateway, LocalProjectStore,
    IPersistenceBackend, PersistenceError,
    PointShape, LineShape, PolygonShape, CircleShape, ZoneType
)


COLOMBO = Coordinate(6.9271, 79.8612)
KANDY = Coordinate(7.2906, 80.6337)


class FakeRemoteBackend(IPersistenceBackend):
    """An in-memory stand-in of the cloud document store.

    `fail` makes every call raise PersistenceError, `failing_attachments`
    lists the shape ids whose attachment lookup fails. The order of the
    attachment lookups is recorded in `attachment_calls`.
    """

    def __init__(self):
        self.documents: dict[str, dict] = {}
        self.fail = False
        self.failing_attachments: set[str] = set()
        self.attachment_calls: list[str] = []
        self.load_calls: list[str] = []

    @property
    def is_remote(self) -> bool:
        return True

    def _check(self):
        if self.fail:
            raise PersistenceError("remote store unreachable")

    async def save_project(self, document: dict) -> str:
        self._check()
        document = dict(document)
        document['id'] = document.get('id') or str(uuid.uuid4())
        document['isCloudSynced'] = True
        self.documents[document['id']] = document
        return document['id']

    async def load_project(self, project_id: str) -> dict:
        self._check()
        self.load_calls.append(project_id)
        if project_id not in self.documents:
            raise PersistenceError(f"no project {project_id}")
        return self.documents[project_id]

    async def list_projects(self) -> list[dict]:
        self._check()
        return list(self.documents.values())

    async def get_attachments(self, project_id: str, shape_id: str) -> list[dict]:
        self.attachment_calls.append(shape_id)
        if shape_id in self.failing_attachments:
            raise PersistenceError("attachment service down")
        return [{"name": f"{shape_id}.jpg", "url": f"https://photos/{project_id}/{shape_id}.jpg"}]


@pytest.fixture
def square():
    """A 1°×1° polygon south-west anchored at the equator / prime meridian."""
    return PolygonShape(positions=[(0, 0), (1, 0), (1, 1), (0, 1)],
                        zone_type=ZoneType.PROTECTED_AREA, label="Reserve",
                        data={"protectionLevel": "strict"})


@pytest.fixture
def transect():
    """A two segment line."""
    return LineShape(positions=[COLOMBO, (7.1, 80.2), KANDY],
                     zone_type=ZoneType.FISH_SURVEY)


@pytest.fixture
def station():
    """A 1 km radius circle."""
    return CircleShape(center=(6.95, 79.85), radius=1000,
                       zone_type=ZoneType.SAMPLING_STATION, label="Station 1",
                       data={"pH": 8.1})


@pytest.fixture
def buoy():
    """A point without label."""
    return PointShape(position=(6.9, 79.8), zone_type=ZoneType.MONITORING_STATION)


@pytest.fixture
def store():
    """An empty store."""
    return ShapeStore()


@pytest.fixture
def populated_store(square, transect, station, buoy):
    """A store with one shape of each kind, added one by one (4 undo steps)."""
    s = ShapeStore()
    for shape in (square, transect, station, buoy):
        s.add(shape)
    return s


@pytest.fixture
def local_backend(tmp_path):
    """A local keyed-list backend in a temporary file."""
    return LocalProjectStore(tmp_path / "projects.json")


@pytest.fixture
def remote_backend():
    """The fake cloud backend."""
    return FakeRemoteBackend()


@pytest.fixture
def local_manager(local_backend):
    """A ProjectManager saving locally."""
    return ProjectManager(local_backend)


@pytest.fixture
def remote_manager(remote_backend):
    """A ProjectManager saving to the fake cloud."""
    return ProjectManager(remote_backend)


@pytest.fixture
def gateway(local_manager, square, transect, station, buoy):
    """A gateway over a project with one shape of each kind."""
    for shape in (square, transect, station, buoy):
        local_manager.store.add(shape)
    return ImportExportGateway(local_manager)


@pytest.fixture
def colombo():
    return COLOMBO


@pytest.fixture
def kandy():
    return KANDY
