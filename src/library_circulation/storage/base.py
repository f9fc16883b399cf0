"""
Collaborator interfaces consumed by the lifecycle engine.

The engine never talks to a database directly. It needs:

1. A store that hands out per-year sequence numbers atomically, persists
   records with an optimistic version check, and looks them up again
2. An identity directory that says whether a member or book exists

Both in-memory and SQLAlchemy implementations ship with the package; any
other backend only has to implement these methods.
"""

from abc import ABC, abstractmethod

from ..models import Borrowing, Reservation, ReservationStatus
from ..numbering import EntityType

Record = Borrowing | Reservation


class LifecycleStore(ABC):
    """Persistence contract for borrowings and reservations."""

    @abstractmethod
    def next_sequence(self, entity_type: EntityType, year: int) -> int:
        """
        Atomically increment and return the sequence for (entity_type, year).

        The first call for a pair returns 1. Implementations raise
        ConflictError when a concurrent allocation wins the race.
        """

    @abstractmethod
    def save(self, record: Record) -> Record:
        """
        Persist a record and return the stored copy with its new version.

        A record with ``version == 0`` is inserted. Any other record must
        carry the version currently stored; otherwise ConflictError is raised.
        Duplicate record numbers also raise ConflictError.
        """

    @abstractmethod
    def find_by_id(self, record_id: str) -> Record | None:
        """Return the stored record with this ID, or None."""

    @abstractmethod
    def find_borrowings(self, member_id: str | None = None) -> list[Borrowing]:
        """Borrowings, optionally for one member, oldest first (date, then number)."""

    @abstractmethod
    def find_reservations(
        self,
        book_id: str | None = None,
        status: ReservationStatus | None = None,
        member_id: str | None = None,
    ) -> list[Reservation]:
        """
        Reservations matching every filter given, oldest first (date, then number).

        With no filters this lists every reservation.
        """


class IdentityDirectory(ABC):
    """Existence checks for the externally owned members and books."""

    @abstractmethod
    def member_exists(self, member_id: str) -> bool:
        """True if the member exists and is not deleted."""

    @abstractmethod
    def book_exists(self, book_id: str) -> bool:
        """True if the book exists and is not deleted."""
