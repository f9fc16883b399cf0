"""
Library circulation lifecycle engine.

Key Components:
- models: Borrowing and Reservation records with closed status enums
- engine: the lifecycle rules (numbering, due dates, late fees, transitions)
- storage: collaborator interfaces plus in-memory implementations
- database: SQLAlchemy-backed store with transactional sequence counters
- config: settings loaded with pydantic-settings
- tools / server: MCP tool surface over the engine
"""

__version__ = "0.1.0"

from .engine import LifecycleEngine
from .exceptions import (
    CirculationError,
    ConflictError,
    InvalidInputError,
    InvalidReferenceError,
    InvalidStateError,
    RecordNotFoundError,
)
from .models import Borrowing, BorrowingStatus, Reservation, ReservationStatus

__all__ = [
    "Borrowing",
    "BorrowingStatus",
    "CirculationError",
    "ConflictError",
    "InvalidInputError",
    "InvalidReferenceError",
    "InvalidStateError",
    "LifecycleEngine",
    "RecordNotFoundError",
    "Reservation",
    "ReservationStatus",
    "__version__",
]
