# coding: utf-8
"""
Manages the lifecycle of the active project: new, save, load and listing
against the persistence backend it was constructed with.
"""
import copy
import dataclasses
import datetime
import logging
from typing import Optional, Union

from .coordinates import to_coordinate
from .errors import ConfirmationRequiredError, PersistenceError
from .measurement import MeasurementSession
from .persistence import IPersistenceBackend
from .project import (
    Project, ProjectStatus, Comment, MeasurementSummary,
    DEFAULT_LAYERS, default_research_data
)
from .shapestore import ShapeStore


_logger = logging.getLogger('projectmanager')


class ProjectManager:  # pylint: disable=too-many-instance-attributes
    """
    Owns the metadata and the ancillary data of the active project. The
    shapes are owned by the ShapeStore for the duration of the editing
    session, `snapshot()` puts the two together.

    Save and load are the only asynchronous operations. Nothing is applied to
    the in-memory state until the backend call succeeded; failures are raised
    as PersistenceError. Concurrent save/load calls are not arbitrated: the
    last one to complete wins.
    """

    def __init__(self,
                 backend: IPersistenceBackend,
                 store: Optional[ShapeStore] = None,
                 measurement: Optional[MeasurementSession] = None):
        self.backend = backend
        self.store = store if store is not None else ShapeStore()
        self.measurement = measurement if measurement is not None else MeasurementSession()
        self._project = Project()
        self.research_data: dict = default_research_data()
        self.comments: list[Comment] = []
        self.measurements = MeasurementSummary()
        self.layers: dict[str, bool] = dict(DEFAULT_LAYERS)
        self.saved_projects: list[Project] = []
        self.attachments: dict[str, list[dict]] = {}

    @property
    def is_remote(self) -> bool:
        """True if projects are saved to the remote document store"""
        return self.backend.is_remote

    @property
    def project(self) -> Project:
        """A read-only property to access the current project"""
        return self.snapshot()

    def __repr__(self):
        return f"{type(self).__name__}({self._project.name}, id={self._project.id}, " + \
               f"{'remote' if self.is_remote else 'local'})"

    def snapshot(self) -> Project:
        """The full project of the current state (metadata, shapes and
        ancillary data)"""
        return dataclasses.replace(self._project,
                                   shapes=self.store.shapes,
                                   research_data=copy.deepcopy(self.research_data),
                                   comments=list(self.comments),
                                   measurements=self.measurements,
                                   layers=dict(self.layers))

    def new_project(self, confirm: bool = False):
        """
        Start a fresh unsaved project. Drawn shapes are only discarded when
        `confirm` is True, otherwise ConfirmationRequiredError is raised.
        The layer visibility is kept.
        """
        if len(self.store) > 0 and not confirm:
            raise ConfirmationRequiredError(
                f"The current project has {len(self.store)} shapes, confirm to discard them")
        self._project = Project()
        self.store.reset()
        self.research_data = default_research_data()
        self.comments = []
        self.measurements = MeasurementSummary()
        self.measurement.stop()
        self.attachments = {}
        _logger.info("new project started")

    def adopt(self, project: Project):
        """Make `project` the active one. The shapes and the ancillary data are
        replaced wholesale and the undo/redo history is discarded."""
        self.store.reset(project.shapes)
        self._project = dataclasses.replace(project, shapes=())
        self.research_data = copy.deepcopy(project.research_data)
        self.comments = list(project.comments)
        self.measurements = project.measurements
        self.layers = dict(DEFAULT_LAYERS)
        self.layers.update(project.layers)
        self.measurement.stop()
        self.attachments = {}

    async def save(self, measurement: Optional[MeasurementSummary] = None) -> Project:
        """
        Save the current project to the backend.

        Args
            measurement: MeasurementSummary
                The measurement values to save, by default the values of the
                running measurement (or the last saved ones if there is none)

        Returns:
            The saved project. It is persisted with the id the backend
            assigned and flagged as cloud synced if the backend is remote.
        """
        if measurement is None:
            measurement = self.measurement.summary() if self.measurement.is_collecting \
                else self.measurements
        candidate = dataclasses.replace(
            self.snapshot(),
            last_modified=datetime.datetime.now(datetime.timezone.utc),
            measurements=measurement)
        try:
            project_id = await self.backend.save_project(candidate.to_dict())
        except PersistenceError:
            _logger.error("saving project %s failed", candidate.name, exc_info=True)
            raise
        except Exception as e:  # pylint: disable=broad-exception-caught
            _logger.error("saving project %s failed", candidate.name, exc_info=True)
            raise PersistenceError(f"Saving project {candidate.name} failed: {e}") from e

        saved = dataclasses.replace(candidate, id=project_id, is_cloud_synced=self.is_remote)
        self._project = dataclasses.replace(saved, shapes=())
        self.measurements = measurement
        _logger.info("project %s saved %s as %s", saved.name,
                     "to the cloud" if self.is_remote else "locally", project_id)

        try:
            await self.list_projects()
        except PersistenceError:
            _logger.warning("could not refresh the project list after saving", exc_info=True)
        return saved

    async def load(self, project: Union[Project, dict]) -> Project:
        """
        Make a saved project the active one. A cloud synced project is fetched
        again from the backend first, so a stale listing is never adopted.
        Loading always discards the undo/redo history.
        """
        if isinstance(project, dict):
            project = Project.from_dict(project)
        if project.is_cloud_synced and project.id and self.is_remote:
            project = Project.from_dict(await self._fetch(project.id))
        self.adopt(project)
        if self.is_remote and project.id:
            await self._load_attachments(project)
        _logger.info("project %s (%s) loaded with %d shapes",
                     project.name, project.id, len(project.shapes))
        return self.snapshot()

    async def load_by_id(self, project_id: str) -> Project:
        """Fetch a project from the backend by id and make it the active one"""
        return await self.load(Project.from_dict(await self._fetch(project_id)))

    async def _fetch(self, project_id: str) -> dict:
        try:
            return await self.backend.load_project(project_id)
        except PersistenceError:
            _logger.error("loading project %s failed", project_id, exc_info=True)
            raise
        except Exception as e:  # pylint: disable=broad-exception-caught
            _logger.error("loading project %s failed", project_id, exc_info=True)
            raise PersistenceError(f"Loading project {project_id} failed: {e}") from e

    async def _load_attachments(self, project: Project):
        """Fetch the photo attachments one shape at a time"""
        for shape in project.shapes:
            try:
                self.attachments[shape.id] = \
                    await self.backend.get_attachments(project.id, shape.id)
            except PersistenceError:
                _logger.warning("could not get attachments of %s", shape.id, exc_info=True)

    async def list_projects(self) -> list[Project]:
        """List the saved projects of the backend and cache the listing"""
        projects = []
        for document in await self.backend.list_projects():
            try:
                projects.append(Project.from_dict(document))
            except (ValueError, KeyError, TypeError):
                _logger.warning("skipping unreadable project %s", document.get('id'), exc_info=True)
        self.saved_projects = projects
        return projects

    def update_metadata(self, **changes) -> Project:
        """Change the project metadata: name, description, researcher,
        project_type, status, tags or metadata."""
        allowed = {'name', 'description', 'researcher', 'project_type',
                   'status', 'tags', 'metadata'}
        unknown = set(changes) - allowed
        if unknown:
            raise ValueError(f"Not editable project fields: {', '.join(sorted(unknown))}")
        if 'status' in changes:
            changes['status'] = ProjectStatus(changes['status'])
        self._project = dataclasses.replace(self._project, **changes)
        return self.snapshot()

    def add_comment(self, text: str, author: str = "", position=None) -> Comment:
        """Add a comment to the project thread"""
        comment = Comment(text=text, author=author,
                          position=None if position is None else to_coordinate(position))
        self.comments.append(comment)
        return comment

    def add_research_record(self, category: str, record: dict):
        """Append a record to one of the ancillary datasets"""
        self.research_data.setdefault(category, []).append(copy.deepcopy(record))

    def set_layer_visibility(self, layer: str, visible: bool):
        """Turn a data layer on or off"""
        if layer not in DEFAULT_LAYERS:
            raise KeyError(f"Unknown layer: {layer}")
        self.layers[layer] = bool(visible)
