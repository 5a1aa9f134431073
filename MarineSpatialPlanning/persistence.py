# coding: utf-8
"""
Persistence backends of the projects.

A ProjectManager gets exactly one backend at construction: the remote
document store when the user is identified, the local keyed list otherwise.
Backends exchange project documents (`Project.to_dict()` dictionaries).
"""
import abc
import asyncio
import json
import logging
import os
import threading
import time
from pathlib import Path
from typing import Union

from .errors import PersistenceError


_logger = logging.getLogger('persistence')

LOCAL_PROJECTS_FILE = os.getenv("LOCAL_PROJECTS_FILE", os.path.join("data", "msp_projects.json"))


class IPersistenceBackend(abc.ABC):
    """The interface of a project store. All failures are raised as
    PersistenceError."""

    @property
    @abc.abstractmethod
    def is_remote(self) -> bool:
        """True for the remote document store"""

    @abc.abstractmethod
    async def save_project(self, document: dict) -> str:
        """Save (insert or replace) a project document. Returns the id the
        store assigned (the document's own id if it had one)."""

    @abc.abstractmethod
    async def load_project(self, project_id: str) -> dict:
        """Fetch a project document by id"""

    @abc.abstractmethod
    async def list_projects(self) -> list[dict]:
        """List the project documents available to the user"""

    @abc.abstractmethod
    async def get_attachments(self, project_id: str, shape_id: str) -> list[dict]:
        """List the photo attachments of a shape"""


class LocalProjectStore(IPersistenceBackend):
    """
    The local fallback: a keyed list of project documents kept in a JSON
    file. Saving replaces the document with the same id or appends it.

    The file is rewritten through a temporary file, so a failed save leaves
    the previously saved projects intact. File access runs in the default
    executor.
    """

    def __init__(self, path: Union[str, Path, None] = None):
        self.path = Path(path if path is not None else LOCAL_PROJECTS_FILE)
        self._lock = threading.Lock()

    @property
    def is_remote(self) -> bool:
        return False

    def _read(self) -> list[dict]:
        if not self.path.is_file():
            return []
        try:
            with open(self.path, 'rt', encoding='utf8') as f:
                projects = json.load(f)
        except (OSError, ValueError) as e:
            raise PersistenceError(f"Can not read local projects from {self.path}: {e}") from e
        if not isinstance(projects, list):
            raise PersistenceError(f"Local project file {self.path} is not a list")
        return projects

    def _write(self, projects: list[dict]):
        try:
            text = json.dumps(projects, indent=2)
        except (TypeError, ValueError) as e:
            raise PersistenceError(f"Project is not serializable to JSON: {e}") from e
        tmp_path = self.path.with_name(self.path.name + ".tmp")
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with open(tmp_path, 'wt', encoding='utf8') as f:
                f.write(text)
            os.replace(tmp_path, self.path)
        except OSError as e:
            tmp_path.unlink(missing_ok=True)
            raise PersistenceError(f"Can not write local projects to {self.path}: {e}") from e

    def _save(self, document: dict) -> str:
        with self._lock:
            projects = self._read()
            document = dict(document)
            if not document.get('id'):
                # ensure no id clash
                stamp, taken = int(time.time() * 1000), {p.get('id') for p in projects}
                while f"project_{stamp}" in taken:
                    stamp += 1
                document['id'] = f"project_{stamp}"
            for i, p in enumerate(projects):
                if p.get('id') == document['id']:
                    projects[i] = document
                    break
            else:
                projects.append(document)
            self._write(projects)
        _logger.debug("saved project %s to %s", document['id'], self.path)
        return document['id']

    def _find(self, project_id: str) -> dict:
        for p in self._read():
            if p.get('id') == project_id:
                return p
        raise PersistenceError(f"No local project with id {project_id}")

    async def save_project(self, document: dict) -> str:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, self._save, document)

    async def load_project(self, project_id: str) -> dict:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, self._find, project_id)

    async def list_projects(self) -> list[dict]:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, self._read)

    async def get_attachments(self, project_id: str, shape_id: str) -> list[dict]:
        return []
