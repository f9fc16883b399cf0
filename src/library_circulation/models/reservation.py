"""
Reservation model.

A reservation records a member's request for a book that is currently out.
It starts PENDING and ends either RECEIVED (the member claimed the copy) or
CANCELLED (withdrawn); both are terminal.
"""

import enum
from datetime import date

from pydantic import ConfigDict, Field, model_validator

from ..numbering import parse_number
from .base import CirculationRecord


class ReservationStatus(str, enum.Enum):
    """Status of a reservation."""

    PENDING = "PENDING"
    RECEIVED = "RECEIVED"
    CANCELLED = "CANCELLED"

    @property
    def is_terminal(self) -> bool:
        return self is not ReservationStatus.PENDING


class Reservation(CirculationRecord):
    """A member's hold on a currently unavailable book."""

    reservation_number: str = Field(
        ...,
        description="Human-readable number: RS + year + 4-digit sequence",
        pattern=r"^RS\d{8}$",
        examples=["RS20240001", "RS20240042"],
    )

    reservation_date: date = Field(..., description="Date the reservation was made")

    status: ReservationStatus = Field(
        default=ReservationStatus.PENDING,
        description="Current status of the reservation",
    )

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "id": "5e2d7c1a0f9b4e3d8c6a2b1f0e9d8c7b",
                "reservation_number": "RS20240001",
                "member_id": "member-002",
                "book_id": "book-002",
                "reservation_date": "2024-03-01",
                "status": "PENDING",
                "version": 1,
            }
        },
    )

    @model_validator(mode="after")
    def validate_number_year(self) -> "Reservation":
        if parse_number(self.reservation_number).year != self.reservation_date.year:
            raise ValueError("Reservation number year must match reservation date")
        return self

    @property
    def number(self) -> str:
        return self.reservation_number

    @property
    def is_pending(self) -> bool:
        return self.status == ReservationStatus.PENDING
