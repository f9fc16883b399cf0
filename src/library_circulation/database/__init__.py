"""
Relational persistence for circulation records.

- schema: SQLAlchemy tables for borrowings, reservations and sequence counters
- session: engine and session management
- repository: the LifecycleStore implementation over those tables
"""

from .repository import SqlAlchemyLifecycleStore
from .schema import Base, BorrowingRow, ReservationRow, SequenceCounter
from .session import DatabaseManager, get_db_manager, reset_db_manager

__all__ = [
    "Base",
    "BorrowingRow",
    "DatabaseManager",
    "ReservationRow",
    "SequenceCounter",
    "SqlAlchemyLifecycleStore",
    "get_db_manager",
    "reset_db_manager",
]
