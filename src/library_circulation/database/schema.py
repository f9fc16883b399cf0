"""
SQLAlchemy schema for circulation records.

Three tables back the lifecycle store:

1. ``borrowings`` and ``reservations`` mirror the Pydantic models, with a
   ``version`` column used for optimistic concurrency
2. ``sequence_counters`` holds one row per (entity type, year), the shared
   resource behind BR/RS numbering

Status columns reuse the model enums so the database cannot hold a status
the engine does not know.
"""

from sqlalchemy import (
    CheckConstraint,
    Column,
    Date,
    DateTime,
    Enum,
    Index,
    Integer,
    PrimaryKeyConstraint,
    String,
)
from sqlalchemy.orm import declarative_base
from sqlalchemy.sql import func

from ..models import BorrowingStatus, ReservationStatus

Base = declarative_base()


class BorrowingRow(Base):
    """Borrowings table - one row per checkout."""

    __tablename__ = "borrowings"

    id = Column(String(64), primary_key=True)
    borrowing_number = Column(String(10), nullable=False, unique=True)
    member_id = Column(String(64), nullable=False)
    book_id = Column(String(64), nullable=False)
    borrow_date = Column(Date, nullable=False)
    due_date = Column(Date, nullable=False)
    return_date = Column(Date, nullable=True)
    status = Column(
        Enum(BorrowingStatus, name="borrowing_status"),
        nullable=False,
        default=BorrowingStatus.ACTIVE,
    )
    late_fee = Column(Integer, nullable=False, default=0)
    version = Column(Integer, nullable=False)

    created_at = Column(DateTime, nullable=False, default=func.now())
    updated_at = Column(DateTime, nullable=False, default=func.now(), onupdate=func.now())

    __table_args__ = (
        Index("idx_borrowing_member", "member_id"),
        Index("idx_borrowing_book", "book_id"),
        Index("idx_borrowing_status", "status"),
        CheckConstraint("borrowing_number LIKE 'BR%'", name="check_borrowing_number_format"),
        CheckConstraint("due_date >= borrow_date", name="check_due_not_before_borrow"),
        CheckConstraint("late_fee >= 0", name="check_late_fee_non_negative"),
        CheckConstraint(
            "(status = 'RETURNED' AND return_date IS NOT NULL) "
            "OR (status = 'ACTIVE' AND return_date IS NULL AND late_fee = 0)",
            name="check_return_matches_status",
        ),
        CheckConstraint("version > 0", name="check_borrowing_version_positive"),
    )


class ReservationRow(Base):
    """Reservations table - one row per hold."""

    __tablename__ = "reservations"

    id = Column(String(64), primary_key=True)
    reservation_number = Column(String(10), nullable=False, unique=True)
    member_id = Column(String(64), nullable=False)
    book_id = Column(String(64), nullable=False)
    reservation_date = Column(Date, nullable=False)
    status = Column(
        Enum(ReservationStatus, name="reservation_status"),
        nullable=False,
        default=ReservationStatus.PENDING,
    )
    version = Column(Integer, nullable=False)

    created_at = Column(DateTime, nullable=False, default=func.now())
    updated_at = Column(DateTime, nullable=False, default=func.now(), onupdate=func.now())

    __table_args__ = (
        Index("idx_reservation_member", "member_id"),
        Index("idx_reservation_queue", "book_id", "status", "reservation_date"),
        CheckConstraint(
            "reservation_number LIKE 'RS%'", name="check_reservation_number_format"
        ),
        CheckConstraint("version > 0", name="check_reservation_version_positive"),
    )


class SequenceCounter(Base):
    """Last sequence handed out per (entity type, year)."""

    __tablename__ = "sequence_counters"

    entity_type = Column(String(2), nullable=False)
    year = Column(Integer, nullable=False)
    value = Column(Integer, nullable=False)

    __table_args__ = (
        PrimaryKeyConstraint("entity_type", "year", name="pk_sequence_counters"),
        CheckConstraint("value > 0", name="check_sequence_positive"),
    )
