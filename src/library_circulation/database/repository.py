"""
SQLAlchemy implementation of the lifecycle store.

Concurrency is handled in the database rather than in Python:

1. **Sequences**: the counter row for (entity type, year) is advanced with a
   compare-and-set UPDATE; losing the race, or two first allocations
   inserting the same row, surfaces as ConflictError
2. **Saves**: inserts require ``version == 0``; updates match on the stored
   version and bump it, so a stale writer changes no rows and gets
   ConflictError
3. **Uniqueness**: record numbers carry unique constraints, and violations
   are reported as ConflictError too

The engine retries ConflictError. Check constraint violations mean the
record itself is invalid and become InvalidInputError; any other database
failure becomes StorageError.
"""

import logging
from collections.abc import Callable
from typing import TypeVar

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from ..exceptions import ConflictError, InvalidInputError, StorageError
from ..models import Borrowing, Reservation, ReservationStatus
from ..numbering import EntityType
from ..storage import LifecycleStore, Record
from .schema import BorrowingRow, ReservationRow, SequenceCounter
from .session import DatabaseManager

logger = logging.getLogger(__name__)

T = TypeVar("T")

_ROW_CLASSES: dict[type, type[BorrowingRow] | type[ReservationRow]] = {
    Borrowing: BorrowingRow,
    Reservation: ReservationRow,
}

# SQLite, PostgreSQL and MySQL wordings for unique and primary key violations
_DUPLICATE_MARKERS = ("unique", "duplicate", "primary key")


class SqlAlchemyLifecycleStore(LifecycleStore):
    """LifecycleStore backed by a relational database through SQLAlchemy."""

    def __init__(self, db: DatabaseManager):
        self.db = db

    def next_sequence(self, entity_type: EntityType, year: int) -> int:
        def allocate(session: Session) -> int:
            key = (
                SequenceCounter.entity_type == entity_type.value,
                SequenceCounter.year == year,
            )
            current = session.execute(
                select(SequenceCounter.value).where(*key)
            ).scalar_one_or_none()

            if current is None:
                session.add(SequenceCounter(entity_type=entity_type.value, year=year, value=1))
                session.flush()
                return 1

            result = session.execute(
                update(SequenceCounter)
                .where(*key, SequenceCounter.value == current)
                .values(value=current + 1)
            )
            if result.rowcount != 1:
                raise ConflictError(
                    f"{entity_type.name.lower()} sequence for {year} advanced concurrently"
                )
            return current + 1

        return self._run(allocate, f"allocate {entity_type.name.lower()} sequence")

    def save(self, record: Record) -> Record:
        row_class = _ROW_CLASSES[type(record)]
        values = record.model_dump(exclude={"version"})

        def write(session: Session) -> None:
            if record.version == 0:
                session.add(row_class(**values, version=1))
                session.flush()
                return

            changes = {k: v for k, v in values.items() if k != "id"}
            result = session.execute(
                update(row_class)
                .where(row_class.id == record.id, row_class.version == record.version)
                .values(**changes, version=record.version + 1)
            )
            if result.rowcount != 1:
                raise ConflictError(
                    f"{type(record).__name__} {record.number} was modified concurrently "
                    f"or no longer exists (expected version {record.version})"
                )

        self._run(write, f"save {record.number}")
        logger.debug("Stored %s version %d", record.number, record.version + 1)
        return record.evolve(version=record.version + 1)

    def find_by_id(self, record_id: str) -> Record | None:
        def lookup(session: Session) -> Record | None:
            for model, row_class in _ROW_CLASSES.items():
                row = session.get(row_class, record_id)
                if row is not None:
                    return model.model_validate(row, from_attributes=True)
            return None

        return self._run(lookup, f"find record {record_id}")

    def find_borrowings(self, member_id: str | None = None) -> list[Borrowing]:
        query = select(BorrowingRow)
        if member_id is not None:
            query = query.where(BorrowingRow.member_id == member_id)
        query = query.order_by(BorrowingRow.borrow_date, BorrowingRow.borrowing_number)

        def lookup(session: Session) -> list[Borrowing]:
            rows = session.execute(query).scalars().all()
            return [Borrowing.model_validate(row, from_attributes=True) for row in rows]

        return self._run(lookup, f"list borrowings for member {member_id or 'any'}")

    def find_reservations(
        self,
        book_id: str | None = None,
        status: ReservationStatus | None = None,
        member_id: str | None = None,
    ) -> list[Reservation]:
        query = select(ReservationRow)
        if book_id is not None:
            query = query.where(ReservationRow.book_id == book_id)
        if status is not None:
            query = query.where(ReservationRow.status == status)
        if member_id is not None:
            query = query.where(ReservationRow.member_id == member_id)
        query = query.order_by(ReservationRow.reservation_date, ReservationRow.reservation_number)

        def lookup(session: Session) -> list[Reservation]:
            rows = session.execute(query).scalars().all()
            return [Reservation.model_validate(row, from_attributes=True) for row in rows]

        return self._run(lookup, "list reservations")

    def _run(self, work: Callable[[Session], T], operation: str) -> T:
        """Run ``work`` in its own transaction, translating database errors."""
        try:
            with self.db.session_scope() as session:
                return work(session)
        except IntegrityError as e:
            if _is_duplicate_key(e):
                raise ConflictError(f"Failed to {operation}: key already exists") from e
            logger.warning("Constraint violated during %s: %s", operation, e.orig)
            raise InvalidInputError(f"Failed to {operation}: record violates {e.orig}") from e
        except SQLAlchemyError as e:
            logger.exception("Database error during %s", operation)
            raise StorageError(f"Failed to {operation}: database error") from e


def _is_duplicate_key(error: IntegrityError) -> bool:
    """True for unique and primary key violations, which a retry can resolve."""
    message = str(error.orig).lower()
    return any(marker in message for marker in _DUPLICATE_MARKERS)
