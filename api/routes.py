"""
The main route handlers of both HTTP and Socket.IO endpoints for
communication with the frontend app
"""
import asyncio
import base64
from http.cookies import SimpleCookie
import time
import json
import os
import traceback
from typing import Optional
import uuid
import logging

from fastapi import APIRouter, Depends
from fastapi_socketio import SocketManager
import asyncpg

from dotenv import load_dotenv
load_dotenv()

# pylint: disable=wrong-import-position
from MarineSpatialPlanning import (
    ProjectManager, ImportExportGateway, IPersistenceBackend, LocalProjectStore,
    Project, ZoneType, RESEARCH_TEMPLATES, create_shape_from_template,
    shape_from_dict, ConfirmationRequiredError, PersistenceError, ImportParseError
)
from . import sockets
from .project_store import PostgresProjectStore, S3AttachmentStore, BUCKET
# pylint: enable=wrong-import-position


assert sockets.sio is not None, "You should setup SocketManager before importing this module."
sio: SocketManager = sockets.sio


# Max number of concurrent sessions allowed
MAX_SESSIONS = int(os.getenv('MAX_SESSIONS', '10'))
# get the root path of the application
rootpath = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))

# set up logging
_logger = logging.getLogger('routes')
_logger.setLevel(logging.DEBUG)

# HTTP endpoints router
routes = APIRouter()

# photo attachments of cloud projects
attachment_store = S3AttachmentStore() if BUCKET else None


def make_backend(session_id: str, owner: Optional[str]) -> IPersistenceBackend:
    """The cloud store for identified users, a per-session local file otherwise"""
    if owner and sockets.pool is not None:
        return PostgresProjectStore(sockets.pool, owner, attachment_store)
    return LocalProjectStore(os.path.join(rootpath, 'data', 'local_projects', f"{session_id}.json"))


class PlanningSession:
    """The editing state of one browser session: the project manager with its
    shape store and measurement tool, and the export/import gateway."""

    def __init__(self, session_id: str, owner: Optional[str] = None):
        self.session_id = session_id
        self.owner = owner
        self.manager = ProjectManager(make_backend(session_id, owner))
        self.gateway = ImportExportGateway(self.manager)

    def bind_owner(self, owner: Optional[str]):
        """Select the persistence backend for the (possibly changed) user.
        The open project is kept."""
        wants_remote = bool(owner) and sockets.pool is not None
        if owner != self.owner or wants_remote != self.manager.is_remote:
            self.owner = owner
            self.manager.backend = make_backend(self.session_id, owner)

    def to_dict(self) -> dict:
        """Converts the session to a JSON serializable dictionary."""
        return {"owner": self.owner, "project": self.manager.snapshot().to_dict()}

    @classmethod
    def from_dict(cls, session_id: str, value: dict) -> "PlanningSession":
        """Restore a session. The undo/redo history is not kept."""
        ps = cls(session_id, value.get("owner"))
        ps.manager.adopt(Project.from_dict(value["project"]))
        return ps


class SessionStore:
    """A storage object and helper methods for in-memory session keeping.
    Handles the time-to-live and expiry features.
    Also supports flushing it to disk for resumes.
    """
    def __init__(self, ttl_seconds: int = 600):
        # session_id -> (expiry_time, data)
        self._store: dict[str, tuple[float, PlanningSession]] = {}
        self.ttl = ttl_seconds

    def set(self, session_id: str, data: PlanningSession):
        """Store or update session data with TTL."""
        expiry = time.time() + self.ttl
        self._store[session_id] = (expiry, data)

    def get(self, session_id: str) -> Optional[PlanningSession]:
        """Retrieve data if not expired, else remove it."""
        item = self._store.get(session_id)
        if not item:
            return None
        expiry, data = item
        if time.time() > expiry:
            del self._store[session_id]  # expire
            return None
        return data

    def delete(self, session_id: str) -> None:
        """Delete a session, freeing up a slot"""
        self._store.pop(session_id, None)

    def count(self) -> int:
        """Gets the number of open sessions"""
        return len(self._store)

    def touch(self, session_id: str) -> None:
        """Sets the expiry of the given session to now+ttl (no expiry while used)"""
        item = self._store.get(session_id)
        if not item:
            return
        _, data = item
        self._store[session_id] = (time.time() + self.ttl, data)

    def cleanup(self):
        """Remove expired sessions. Call periodically."""
        now = time.time()
        expired = [sid for sid, (expiry, _)
                   in self._store.items() if now > expiry]
        for sid in expired:
            del self._store[sid]

    def save(self):
        """Saves the session store to disk. Call periodically."""
        json_store = {}
        for k, (exp, ps) in self._store.items():
            json_store[k] = {"expiry": exp, "session": ps.to_dict()}
        os.makedirs(os.path.join(rootpath, 'data'), exist_ok=True)
        with open(os.path.join(rootpath, 'data', 'session_cache.json'), 'wt', encoding='utf8') as f:
            json.dump(json_store, f, indent=2)

    def load(self):
        """Loads the session store from disk (if it exists, otherwise clears
           memory store). Call on startup.
        """
        fname = os.path.join(rootpath, 'data', 'session_cache.json')
        self._store.clear()
        if not os.path.isfile(fname):
            return
        with open(fname, 'rt', encoding='utf8') as f:
            json_store = json.load(f)
        # only the non-expired ones
        now = time.time()
        for k, v in json_store.items():
            if now <= v['expiry']:
                try:
                    self._store[k] = (v['expiry'], PlanningSession.from_dict(k, v['session']))
                except (ValueError, KeyError, TypeError):
                    _logger.warning("could not restore session %s", k, exc_info=True)

    def __len__(self):
        return len(self._store)


_sessions = SessionStore(ttl_seconds=int(os.getenv('SESSION_TTL', '300')))
_sessions.load()


async def cleanup_loop():
    """A loop to be run as a background task which clears the expired sessions."""
    while True:
        _sessions.cleanup()
        _sessions.save()
        await asyncio.sleep(60)  # run every minute


######################
### HTTP endpoints ###
######################

@routes.get("/zone-types")
async def get_zone_types():
    """The zone types with their default colors"""
    return [{"id": zt.value, "color": zt.color} for zt in ZoneType]


@routes.get("/templates")
async def get_templates():
    """The research templates"""
    return [{
        "id": t.id,
        "name": t.name,
        "zoneType": t.zone_type.value,
        "shape": t.shape.value,
        "size": t.size,
        "defaultData": t.default_data,
        "description": t.description,
    } for t in RESEARCH_TEMPLATES.values()]


@routes.get("/sessions")
async def get_session_status():
    """An HTTP endpoint to check the server load."""
    return {"sessions": _sessions.count(), "max_sessions": MAX_SESSIONS}


@routes.get("/projects/{owner}/count")
async def get_project_count(owner: str, pool: asyncpg.Pool = Depends(sockets.get_db_pool)):
    """The number of the cloud projects of a user"""
    async with pool.acquire() as conn:
        count = await conn.fetchval(f"SELECT COUNT(*) FROM {sockets.TABLE_NAME} WHERE owner=$1",
                                    owner)
    return {"owner": owner, "count": count}


##########################################
### Socket.IO lifecycle event handlers ###
##########################################

@sio.on("connect")
async def connect(sid, environ, auth):
    """Socket.IO Connect: Session management + user identification.
    A client sends its `owner` (user id) in `auth` to use the cloud store."""
    session_id = None
    owner = None

    if isinstance(auth, dict):
        session_id = auth.get(sockets.SESSION_COOKIE_NAME, None)
        owner = auth.get("owner", None)

    if session_id is None:
        cookies = SimpleCookie(environ.get("HTTP_COOKIE", ""))
        if sockets.SESSION_COOKIE_NAME in cookies:
            session_id = cookies[sockets.SESSION_COOKIE_NAME].value

    if not session_id:
        # fallback: generate one if handshake didn’t have it
        session_id = str(uuid.uuid4())

    ps: Optional[PlanningSession] = _sessions.get(session_id)

    # limit connections
    if ps is None and _sessions.count() >= MAX_SESSIONS:
        async def disconnect(thesid: str):
            await sio.disconnect(thesid)
        await sio.emit("unauthorized",
                       {"reason": "session-limit-reached"},
                       room=sid,
                       callback=lambda *args: asyncio.create_task(disconnect(sid))
                      )
        return

    if ps is None:
        ps = PlanningSession(session_id, owner)
    else:
        ps.bind_owner(owner)
    _sessions.set(session_id, ps)

    # save the session_id locally
    await sio.emit("set_session", {"session_id": session_id}, to=sid)

    _logger.info("New connection to session %s from %s (%s)", session_id, sid,
                 "cloud" if ps.manager.is_remote else "local")

    environ["session_id"] = session_id
    await sio.enter_room(sid, session_id)
    return True


def _get_session_id_from_room(sid: str) -> str | None:
    try:
        return next(r for r in sio._sio.rooms(sid) if r != sid) # pylint: disable=protected-access
    except (StopIteration, StopAsyncIteration):
        return None


def get_session(sid: str) -> tuple[Optional[str], Optional[PlanningSession]]:
    """Prepare the session variables for any given Socket.IO event"""
    session_id = _get_session_id_from_room(sid)
    if session_id is None:
        return None, None
    # increase the session expiry
    _sessions.touch(session_id)
    return session_id, _sessions.get(session_id)


def require_session(handler):
    """A decorator to easily retrieve the `session_id` and the
    PlanningSession in the Socket.IO event handlers. Errors out if the
    session is unknown (expired or over the server limit).
    """
    async def wrapper(sid, *args):
        session_id, ps = get_session(sid)
        if session_id is None or ps is None:
            await sio.emit("result",
                           {"type": "result",
                            "result": "no-session",
                            "event": None,
                            "exception_type": None,
                            "message": "No active session on the server. " + \
                                       "Maybe you are over the server limit?",
                            "traceback": None
                            }, room=sid)
            return None
        return await handler(sid, session_id, ps, *args)
    return wrapper


def error_handler(handler):
    """A general error handler decorator for the Socket.IO event handlers.
    It sends a general error message to the frontend.
    """
    async def wrapper(sid, *args):
        try:
            return await handler(sid, *args)
        except Exception as error: # pylint: disable=broad-exception-caught
            trace = traceback.format_exc()
            _logger.error("[%s] error in %s: %s\n%s", sid, handler.__name__, str(error), trace)
            await sio.emit("result",
                           {"type": "result",
                            "result": "exception",
                            "event": handler.__name__,
                            "exception_type": error.__class__.__name__,
                            "message": str(error),
                            "traceback": trace
                           }, room=sid)
    return wrapper


def shapes_message(ps: PlanningSession) -> dict:
    """The shapes with the undo/redo availability and the statistics"""
    store = ps.manager.store
    return {
        "type": "shapes",
        "shapes": [s.to_dict() for s in store.shapes],
        "canUndo": store.can_undo,
        "canRedo": store.can_redo,
        "statistics": ps.gateway.statistics(),
    }


def project_message(ps: PlanningSession) -> dict:
    """The whole state of the open project"""
    project = ps.manager.snapshot()
    msg = shapes_message(ps)
    msg.update({
        "type": "project",
        "project": project.metadata_dict(),
        "researchData": project.research_data,
        "comments": [c.to_dict() for c in project.comments],
        "measurements": project.measurements.to_dict(),
        "layers": project.layers,
        "attachments": ps.manager.attachments,
        "isRemote": ps.manager.is_remote,
    })
    return msg


######################################
### Socket.IO logic event handlers ###
######################################

####################
# Project lifecycle #
####################

@sio.on("get-projects")
@require_session
@error_handler
async def get_projects(sid: str, session_id: str, ps: PlanningSession):  # pylint: disable=unused-argument
    """The saved projects of the user (cloud) or of the session (local)"""
    try:
        projects = await ps.manager.list_projects()
    except PersistenceError as e:
        return {"type": "projects", "result": "fail", "message": str(e)}
    return {"type": "projects",
            "result": "success",
            "isRemote": ps.manager.is_remote,
            "projects": [p.metadata_dict() for p in projects]}


@sio.on("get-project")
@require_session
@error_handler
async def get_project(sid: str, session_id: str, ps: PlanningSession):  # pylint: disable=unused-argument
    """The whole state of the open project"""
    return project_message(ps)


@sio.on("new-project")
@require_session
@error_handler
async def new_project(sid: str, session_id: str, ps: PlanningSession, msg=None):  # pylint: disable=unused-argument
    """Start a new project. Drawn shapes are only discarded with `confirm`."""
    try:
        ps.manager.new_project(confirm=bool((msg or {}).get("confirm", False)))
    except ConfirmationRequiredError as e:
        return {"type": "new-project-result", "result": "confirmation-required",
                "message": str(e)}
    return project_message(ps)


@sio.on("save-project")
@require_session
@error_handler
async def save_project(sid: str, session_id: str, ps: PlanningSession):  # pylint: disable=unused-argument
    """Save the project to the cloud or locally"""
    try:
        saved = await ps.manager.save()
    except PersistenceError as e:
        return {"type": "save-result", "result": "fail", "message": str(e)}
    return {"type": "save-result",
            "result": "success",
            "project": saved.metadata_dict()}


@sio.on("load-project")
@require_session
@error_handler
async def load_project(sid: str, session_id: str, ps: PlanningSession, msg):  # pylint: disable=unused-argument
    """Load a saved project by `id`, or a project document sent in `project`"""
    try:
        if msg.get("project") is not None:
            await ps.manager.load(msg["project"])
        else:
            await ps.manager.load_by_id(msg["id"])
    except PersistenceError as e:
        return {"type": "load-result", "result": "fail", "message": str(e)}
    return project_message(ps)


@sio.on("set-project-data")
@require_session
@error_handler
async def set_project_data(sid: str, session_id: str, ps: PlanningSession, msg):  # pylint: disable=unused-argument
    """Sets the project's metadata and returns the new values."""
    keys = {"name": "name", "description": "description", "researcher": "researcher",
            "type": "project_type", "status": "status", "tags": "tags", "metadata": "metadata"}
    project = ps.manager.update_metadata(**{keys[k]: v for k, v in msg.items() if k in keys})
    return {"type": "project-data", "project": project.metadata_dict()}


@sio.on("close-project")
@require_session
@error_handler
async def close_project(sid: str, session_id: str, ps: PlanningSession):  # pylint: disable=unused-argument
    """This event closes the session, thus freeing up a slot for other users"""
    _sessions.delete(session_id)
    return True


##########
# Shapes #
##########

@sio.on("get-shapes")
@require_session
@error_handler
async def get_shapes(sid: str, session_id: str, ps: PlanningSession):  # pylint: disable=unused-argument
    """The shapes of the open project"""
    return shapes_message(ps)


@sio.on("add-shape")
@require_session
@error_handler
async def add_shape(sid: str, session_id: str, ps: PlanningSession, msg):  # pylint: disable=unused-argument
    """Add a drawn shape (in the wire format, without id)"""
    ps.manager.store.add(shape_from_dict(msg))
    return shapes_message(ps)


@sio.on("add-template-shape")
@require_session
@error_handler
async def add_template_shape(sid: str, session_id: str, ps: PlanningSession, msg):  # pylint: disable=unused-argument
    """Add a zone from a research template at `position`"""
    ps.manager.store.add(create_shape_from_template(msg["template"], msg["position"],
                                                    msg.get("label")))
    return shapes_message(ps)


@sio.on("update-shape")
@require_session
@error_handler
async def update_shape(sid: str, session_id: str, ps: PlanningSession, msg):  # pylint: disable=unused-argument
    """Edit the label, zone type, color or data of a shape"""
    keys = {"label": "label", "zoneType": "zone_type", "color": "color", "data": "data"}
    ps.manager.store.update(msg["id"], **{keys[k]: v for k, v in msg.items() if k in keys})
    return shapes_message(ps)


@sio.on("delete-shape")
@require_session
@error_handler
async def delete_shape(sid: str, session_id: str, ps: PlanningSession, msg):  # pylint: disable=unused-argument
    """Remove a shape by `id`"""
    ps.manager.store.remove(msg["id"])
    return shapes_message(ps)


@sio.on("clear-shapes")
@require_session
@error_handler
async def clear_shapes(sid: str, session_id: str, ps: PlanningSession):  # pylint: disable=unused-argument
    """Remove all shapes (one undoable step)"""
    ps.manager.store.clear()
    return shapes_message(ps)


@sio.on("undo")
@require_session
@error_handler
async def undo(sid: str, session_id: str, ps: PlanningSession):  # pylint: disable=unused-argument
    """Undo the last shape edit"""
    ps.manager.store.undo()
    return shapes_message(ps)


@sio.on("redo")
@require_session
@error_handler
async def redo(sid: str, session_id: str, ps: PlanningSession):  # pylint: disable=unused-argument
    """Redo the last undone shape edit"""
    ps.manager.store.redo()
    return shapes_message(ps)


###############
# Measurement #
###############

@sio.on("measure-start")
@require_session
@error_handler
async def measure_start(sid: str, session_id: str, ps: PlanningSession, msg):  # pylint: disable=unused-argument
    """Start a distance or area measurement"""
    ps.manager.measurement.start(msg["mode"])
    return {"type": "measurement", **ps.manager.measurement.to_dict()}


@sio.on("measure-point")
@require_session
@error_handler
async def measure_point(sid: str, session_id: str, ps: PlanningSession, msg):  # pylint: disable=unused-argument
    """Add a point to the running measurement"""
    ps.manager.measurement.add_point(msg["position"])
    return {"type": "measurement", **ps.manager.measurement.to_dict()}


@sio.on("measure-stop")
@require_session
@error_handler
async def measure_stop(sid: str, session_id: str, ps: PlanningSession):  # pylint: disable=unused-argument
    """Finish the measurement, its last values are kept with the project"""
    measurement = ps.manager.measurement
    if measurement.is_collecting:
        ps.manager.measurements = measurement.summary()
    measurement.stop()
    return {"type": "measurement", **measurement.to_dict(),
            "last": ps.manager.measurements.to_dict()}


#############################
# Comments, data and layers #
#############################

@sio.on("add-comment")
@require_session
@error_handler
async def add_comment(sid: str, session_id: str, ps: PlanningSession, msg):  # pylint: disable=unused-argument
    """Add a comment to the project thread"""
    ps.manager.add_comment(msg["text"], msg.get("author", ""), msg.get("position"))
    return {"type": "comments", "comments": [c.to_dict() for c in ps.manager.comments]}


@sio.on("add-research-record")
@require_session
@error_handler
async def add_research_record(sid: str, session_id: str, ps: PlanningSession, msg):  # pylint: disable=unused-argument
    """Append a record to one of the research datasets"""
    ps.manager.add_research_record(msg["category"], msg["record"])
    return {"type": "research-data", "researchData": ps.manager.research_data}


@sio.on("set-layer")
@require_session
@error_handler
async def set_layer(sid: str, session_id: str, ps: PlanningSession, msg):  # pylint: disable=unused-argument
    """Turn a data layer on or off"""
    ps.manager.set_layer_visibility(msg["layer"], msg["visible"])
    return {"type": "layers", "layers": ps.manager.layers}


@sio.on("upload-attachment")
@require_session
@error_handler
async def upload_attachment(sid: str, session_id: str, ps: PlanningSession, msg):  # pylint: disable=unused-argument
    """Attach a photo (base64 in `data`) to a shape of a saved cloud project"""
    backend = ps.manager.backend
    project = ps.manager.snapshot()
    if not isinstance(backend, PostgresProjectStore) or not project.is_cloud_synced:
        return {"type": "attachment-result", "result": "fail",
                "message": "Photos can be attached to the shapes of cloud projects only"}
    try:
        attachment = await backend.upload_attachment(project.id, msg["shapeId"],
                                                     msg["filename"],
                                                     base64.b64decode(msg["data"]))
    except PersistenceError as e:
        return {"type": "attachment-result", "result": "fail", "message": str(e)}
    ps.manager.attachments.setdefault(msg["shapeId"], []).append(attachment)
    return {"type": "attachment-result", "result": "success", "attachment": attachment}


#####################
# Export and import #
#####################

@sio.on("export")
@require_session
@error_handler
async def export(sid: str, session_id: str, ps: PlanningSession, msg):  # pylint: disable=unused-argument
    """Export the project in `format`: json, geojson, csv, gpx or docx (report)"""
    fmt = msg.get("format", "json")
    name = ps.manager.snapshot().name
    gateway = ps.gateway
    if fmt == "docx":
        options = msg.get("options") or {}
        buf = await gateway.generate_report(
            include_map=options.get("includeMap", True),
            include_statistics=options.get("includeStatistics", True),
            include_zone_details=options.get("includeZoneDetails", True))
        return {
            "type": "docx",
            "mime": 'application/vnd.openxmlformats-officedocument.wordprocessingml.document',
            "filename": f"{name}.docx",
        }, buf.getvalue()
    exporters = {
        "json": (gateway.export_json, 'application/json', 'json'),
        "geojson": (lambda: gateway.export_geojson(bool(msg.get("circleAsPolygon", False))),
                    'application/geo+json', 'geojson'),
        "csv": (gateway.export_csv, 'text/csv', 'csv'),
        "gpx": (gateway.export_gpx, 'application/gpx+xml', 'gpx'),
    }
    if fmt not in exporters:
        return {"type": "export-result", "result": "unknown-format", "format": fmt}
    func, mime, ext = exporters[fmt]
    loop = asyncio.get_running_loop()
    data = await loop.run_in_executor(None, func)
    return {
        "type": fmt,
        "data": data,
        "mime": mime,
        "filename": f"{name}.{ext}",
    }


@sio.on("import")
@require_session
@error_handler
async def import_file(sid: str, session_id: str, ps: PlanningSession, msg):  # pylint: disable=unused-argument
    """Import the shapes of a file (base64 in `data`) as one undoable step"""
    try:
        result = await ps.gateway.import_file(msg["filename"], base64.b64decode(msg["data"]))
    except ImportParseError as e:
        return {"type": "import-result", "result": "fail", "message": str(e)}
    msg_out = shapes_message(ps)
    msg_out.update({"type": "import-result", "result": "success", "message": result.message})
    return msg_out
