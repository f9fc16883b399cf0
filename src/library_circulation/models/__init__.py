"""
Circulation models.

Pydantic models for the two persisted records of the circulation desk:

- Borrowing: a checkout of a book by a member, ACTIVE until RETURNED
- Reservation: a hold on an unavailable book, PENDING until RECEIVED or CANCELLED
"""

from .base import CirculationRecord
from .borrowing import Borrowing, BorrowingStatus
from .reservation import Reservation, ReservationStatus

__all__ = [
    "Borrowing",
    "BorrowingStatus",
    "CirculationRecord",
    "Reservation",
    "ReservationStatus",
]
