"""
In-memory store for circulation records.

Suitable for tests, single-process deployments and as the reference
behaviour for other backends. All state sits behind one lock, which makes
sequence allocation and versioned saves atomic across threads.
"""

import logging
import threading

from ..exceptions import ConflictError, InvalidInputError
from ..models import Borrowing, Reservation, ReservationStatus
from ..numbering import EntityType
from .base import LifecycleStore, Record

logger = logging.getLogger(__name__)


class InMemoryLifecycleStore(LifecycleStore):
    """Thread-safe dictionary-backed implementation of LifecycleStore."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._counters: dict[tuple[EntityType, int], int] = {}
        self._records: dict[str, Record] = {}
        self._numbers: dict[str, str] = {}

    def next_sequence(self, entity_type: EntityType, year: int) -> int:
        with self._lock:
            key = (entity_type, year)
            value = self._counters.get(key, 0) + 1
            self._counters[key] = value
            return value

    def save(self, record: Record) -> Record:
        with self._lock:
            current = self._records.get(record.id)

            if current is None:
                if record.version != 0:
                    raise ConflictError(
                        f"{type(record).__name__} {record.id} was deleted or never stored"
                    )
                if record.number in self._numbers:
                    raise ConflictError(f"Record number {record.number} is already taken")
            else:
                if type(current) is not type(record):
                    raise InvalidInputError(
                        f"ID {record.id} belongs to a {type(current).__name__}"
                    )
                if current.version != record.version:
                    raise ConflictError(
                        f"{type(record).__name__} {record.number} was modified concurrently "
                        f"(stored version {current.version}, got {record.version})"
                    )
                if current.number != record.number:
                    raise InvalidInputError("Record numbers cannot be changed")

            stored = record.evolve(version=record.version + 1)
            self._records[stored.id] = stored
            self._numbers[stored.number] = stored.id
            logger.debug("Stored %s version %d", stored.number, stored.version)
            return stored

    def find_by_id(self, record_id: str) -> Record | None:
        with self._lock:
            return self._records.get(record_id)

    def find_borrowings(self, member_id: str | None = None) -> list[Borrowing]:
        with self._lock:
            matches = [
                r
                for r in self._records.values()
                if isinstance(r, Borrowing) and (member_id is None or r.member_id == member_id)
            ]
        return sorted(matches, key=lambda r: (r.borrow_date, r.borrowing_number))

    def find_reservations(
        self,
        book_id: str | None = None,
        status: ReservationStatus | None = None,
        member_id: str | None = None,
    ) -> list[Reservation]:
        with self._lock:
            matches = [
                r
                for r in self._records.values()
                if isinstance(r, Reservation)
                and (book_id is None or r.book_id == book_id)
                and (status is None or r.status == status)
                and (member_id is None or r.member_id == member_id)
            ]
        return sorted(matches, key=lambda r: (r.reservation_date, r.reservation_number))

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)
