"""
Error taxonomy for the circulation lifecycle engine.

Every failure an engine operation can report derives from CirculationError,
so the tool layer can translate them into error responses with a single
except clause. Each subclass carries a short ``code`` used in those responses.
"""


class CirculationError(Exception):
    """Base exception for circulation operations."""

    code = "circulation_error"


class InvalidInputError(CirculationError):
    """Raised when the caller supplies out-of-range or inconsistent values."""

    code = "invalid_input"


class InvalidStateError(CirculationError):
    """Raised when a transition is not allowed from the record's current status."""

    code = "invalid_state"


class InvalidReferenceError(CirculationError):
    """Raised when a referenced member or book does not exist."""

    code = "invalid_reference"


class ConflictError(CirculationError):
    """Raised on a sequence or optimistic-lock collision. Callers may retry."""

    code = "conflict"


class RecordNotFoundError(CirculationError):
    """Raised when no borrowing or reservation exists for an ID."""

    code = "not_found"


class SequenceExhaustedError(CirculationError):
    """Raised when a yearly sequence no longer fits in four digits."""

    code = "sequence_exhausted"


class StorageError(CirculationError):
    """Raised when the backing store fails for reasons other than a conflict."""

    code = "storage_error"
