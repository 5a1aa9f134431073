"""Exceptions raised by the marine spatial planning engine"""


class MSPError(Exception):
    """Base exception of the marine spatial planning engine."""


class ShapeValidationError(MSPError, ValueError):
    """Raised when a shape is built from invalid input (coordinates out of
    range, too few positions, non-positive radius...)."""


class ShapeNotFoundError(MSPError, KeyError):
    """Raised when a shape id is not present in the store."""


class GeometryContractError(MSPError, ValueError):
    """Raised when a geometry function gets input it is not defined for."""


class MeasurementStateError(MSPError, RuntimeError):
    """Raised when the measurement session is not in the required state."""


class ConfirmationRequiredError(MSPError, RuntimeError):
    """Raised when discarding drawn shapes was not confirmed by the caller."""


class PersistenceError(MSPError, RuntimeError):
    """Raised when a persistence backend fails or rejects a request."""


class ImportParseError(MSPError, ValueError):
    """Raised when an imported file can not be parsed."""
