"""Main exports of the logic module of the app"""  # pylint: disable=invalid-name
from .coordinates import Coordinate, ExtentLatLon
from .errors import (
    MSPError, ShapeValidationError, ShapeNotFoundError, GeometryContractError,
    MeasurementStateError, ConfirmationRequiredError, PersistenceError, ImportParseError
)
from .shapes import (
    ZoneType, ShapeKind, Shape, PointShape, LineShape, PolygonShape, CircleShape,
    shape_from_dict, shape_to_dict
)
from .shapestore import ShapeStore
from .measurement import MeasurementSession, MeasurementMode, MeasurementState
from .project import Project, ProjectStatus, Comment, MeasurementSummary
from .persistence import IPersistenceBackend, LocalProjectStore
from .attachments import IAttachmentStore
from .projectmanager import ProjectManager
from .templates import RESEARCH_TEMPLATES, create_shape_from_template
from .importers import FileImporter, ImportResult
from .interchange import ImportExportGateway
from .reporting import ReportRenderer
