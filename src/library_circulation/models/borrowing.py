"""
Borrowing model.

A borrowing is created when a member checks out a book and is closed exactly
once when the book comes back, at which point the late fee is fixed.
"""

import enum
from datetime import date

from pydantic import ConfigDict, Field, model_validator

from ..numbering import parse_number
from .base import CirculationRecord


class BorrowingStatus(str, enum.Enum):
    """Status of a borrowing."""

    ACTIVE = "ACTIVE"
    RETURNED = "RETURNED"


class Borrowing(CirculationRecord):
    """A book checked out by a member for a bounded period."""

    borrowing_number: str = Field(
        ...,
        description="Human-readable number: BR + year + 4-digit sequence",
        pattern=r"^BR\d{8}$",
        examples=["BR20240001", "BR20241234"],
    )

    borrow_date: date = Field(..., description="Date the book was checked out")

    due_date: date = Field(..., description="Date the book should be returned by")

    return_date: date | None = Field(
        None,
        description="Date the book came back; absent while the borrowing is active",
    )

    status: BorrowingStatus = Field(
        default=BorrowingStatus.ACTIVE,
        description="Current status of the borrowing",
    )

    late_fee: int = Field(
        default=0,
        description="Fee charged at return for days past the due date",
        ge=0,
    )

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "id": "0b6f1c8e9a6d4a4fb1c3d2e5f7a8b9c0",
                "borrowing_number": "BR20240001",
                "member_id": "member-001",
                "book_id": "book-001",
                "borrow_date": "2024-01-10",
                "due_date": "2024-01-24",
                "return_date": None,
                "status": "ACTIVE",
                "late_fee": 0,
                "version": 1,
            }
        },
    )

    @model_validator(mode="after")
    def validate_lifecycle(self) -> "Borrowing":
        """Tie dates, fee and status together."""
        if self.due_date < self.borrow_date:
            raise ValueError("Due date cannot be before borrow date")

        if parse_number(self.borrowing_number).year != self.borrow_date.year:
            raise ValueError("Borrowing number year must match borrow date")

        if self.status == BorrowingStatus.ACTIVE:
            if self.return_date is not None:
                raise ValueError("Active borrowing cannot have a return date")
            if self.late_fee != 0:
                raise ValueError("Active borrowing cannot carry a late fee")
        else:
            if self.return_date is None:
                raise ValueError("Returned borrowing must have a return date")
            if self.return_date < self.borrow_date:
                raise ValueError("Return date cannot be before borrow date")

        return self

    @property
    def number(self) -> str:
        return self.borrowing_number

    @property
    def is_active(self) -> bool:
        return self.status == BorrowingStatus.ACTIVE

    @property
    def loan_period_days(self) -> int:
        """Length of the loan in days."""
        return (self.due_date - self.borrow_date).days

    def is_overdue(self, as_of: date) -> bool:
        """Check whether an active borrowing is past due on ``as_of``."""
        return self.is_active and as_of > self.due_date
