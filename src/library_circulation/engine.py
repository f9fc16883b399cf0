"""
Lifecycle engine for borrowings and reservations.

This is the only place circulation business rules live:

1. **Borrowings**: creation with a numbered record and due date, and a
   single return that fixes the late fee
2. **Reservations**: creation, then exactly one of fulfilment or cancellation
3. **Reconciliation**: picking the reservation a returned copy should go to
4. **Listings**: a member's borrowings and reservations, oldest first

Every operation validates first and builds new frozen records afterwards, so
a failure leaves nothing half-applied. Storage conflicts are retried a
bounded number of times; transitions reload the current record before each
retry so a lost race is reported as the state error it really is.
"""

import logging
import uuid
from collections.abc import Callable
from datetime import date, timedelta
from typing import TypeVar

from pydantic import ValidationError

from .config import CirculationSettings, get_settings
from .exceptions import (
    ConflictError,
    InvalidInputError,
    InvalidReferenceError,
    InvalidStateError,
    RecordNotFoundError,
)
from .models import Borrowing, BorrowingStatus, Reservation, ReservationStatus
from .numbering import EntityType, format_number
from .storage import IdentityDirectory, LifecycleStore

logger = logging.getLogger(__name__)

R = TypeVar("R", Borrowing, Reservation)
T = TypeVar("T")


def compute_due_date(borrow_date: date, loan_period_days: int) -> date:
    """Due date for a loan starting on ``borrow_date``."""
    if loan_period_days <= 0:
        raise InvalidInputError(f"Loan period must be positive, got {loan_period_days} days")
    return borrow_date + timedelta(days=loan_period_days)


def days_overdue(due_date: date, as_of: date) -> int:
    """Whole days past ``due_date`` on ``as_of``; never negative."""
    return max(0, (as_of - due_date).days)


def compute_late_fee(due_date: date, return_date: date, fee_per_late_day: int) -> int:
    """Late fee for a book returned on ``return_date``."""
    if fee_per_late_day < 0:
        raise InvalidInputError(f"Fee per late day cannot be negative, got {fee_per_late_day}")
    return days_overdue(due_date, return_date) * fee_per_late_day


def _new_id() -> str:
    return uuid.uuid4().hex


class LifecycleEngine:
    """
    Applies circulation transitions against a store.

    Args:
        store: Persistence for records and sequence counters
        identity: Existence checks for members and books
        settings: Business parameters and retry bound; the process-wide
            settings are used when omitted
    """

    def __init__(
        self,
        store: LifecycleStore,
        identity: IdentityDirectory,
        settings: CirculationSettings | None = None,
    ):
        self.store = store
        self.identity = identity
        self.settings = settings or get_settings()

    # === Borrowings ===

    def create_borrowing(
        self,
        member_id: str,
        book_id: str,
        borrow_date: date,
        loan_period_days: int | None = None,
    ) -> Borrowing:
        """
        Check a book out to a member.

        Args:
            member_id: Borrowing member
            book_id: Book being checked out
            borrow_date: Checkout date; its year scopes the borrowing number
            loan_period_days: Days until due; defaults to the configured period

        Returns:
            The stored ACTIVE borrowing

        Raises:
            InvalidInputError: If no positive loan period is available
            InvalidReferenceError: If the member or book is unknown
            ConflictError: If storage kept conflicting after all retries
        """
        if loan_period_days is None:
            loan_period_days = self.settings.loan_period_days
        if loan_period_days is None:
            raise InvalidInputError("No loan period given and none configured")
        due_date = compute_due_date(borrow_date, loan_period_days)
        self._check_references(member_id, book_id)

        def attempt() -> Borrowing:
            sequence = self.store.next_sequence(EntityType.BORROWING, borrow_date.year)
            borrowing = self._build(
                Borrowing,
                id=_new_id(),
                borrowing_number=format_number(
                    EntityType.BORROWING, borrow_date.year, sequence
                ),
                member_id=member_id,
                book_id=book_id,
                borrow_date=borrow_date,
                due_date=due_date,
                status=BorrowingStatus.ACTIVE,
                late_fee=0,
            )
            return self.store.save(borrowing)

        borrowing = self._with_retries("create borrowing", attempt)
        logger.info(
            "Created borrowing %s for member %s, book %s, due %s",
            borrowing.borrowing_number,
            member_id,
            book_id,
            borrowing.due_date.isoformat(),
        )
        return borrowing

    def return_borrowing(
        self,
        borrowing: Borrowing,
        return_date: date,
        fee_per_late_day: int | None = None,
    ) -> Borrowing:
        """
        Close a borrowing and fix its late fee.

        The fee is ``max(0, return_date - due_date) * fee_per_late_day``.

        Raises:
            InvalidStateError: If the borrowing is not ACTIVE
            InvalidInputError: If the return predates the borrow date, or no
                non-negative fee is available
            ConflictError: If storage kept conflicting after all retries
        """
        if fee_per_late_day is None:
            fee_per_late_day = self.settings.fee_per_late_day
        if fee_per_late_day is None:
            raise InvalidInputError("No fee per late day given and none configured")
        if fee_per_late_day < 0:
            raise InvalidInputError(
                f"Fee per late day cannot be negative, got {fee_per_late_day}"
            )

        def apply(current: Borrowing) -> Borrowing:
            if current.status != BorrowingStatus.ACTIVE:
                raise InvalidStateError(
                    f"Borrowing {current.borrowing_number} is already {current.status.value}"
                )
            if return_date < current.borrow_date:
                raise InvalidInputError(
                    f"Return date {return_date.isoformat()} is before borrow date "
                    f"{current.borrow_date.isoformat()}"
                )
            return current.evolve(
                return_date=return_date,
                late_fee=compute_late_fee(current.due_date, return_date, fee_per_late_day),
                status=BorrowingStatus.RETURNED,
            )

        returned = self._transition("return borrowing", borrowing, apply)
        logger.info(
            "Returned borrowing %s on %s, late fee %d",
            returned.borrowing_number,
            return_date.isoformat(),
            returned.late_fee,
        )
        return returned

    def get_borrowing(self, borrowing_id: str) -> Borrowing:
        """Load a borrowing by ID, raising RecordNotFoundError if absent."""
        return self._load(Borrowing, borrowing_id)

    def borrowings_for(self, member_id: str | None = None) -> list[Borrowing]:
        """Borrowings of one member, or of everyone, oldest first."""
        return self.store.find_borrowings(member_id)

    def late_fee_for(
        self, borrowing: Borrowing, as_of: date, fee_per_late_day: int | None = None
    ) -> int:
        """Fee an active borrowing would incur if returned on ``as_of``."""
        if not borrowing.is_active:
            return borrowing.late_fee
        if fee_per_late_day is None:
            fee_per_late_day = self.settings.fee_per_late_day
        if fee_per_late_day is None:
            raise InvalidInputError("No fee per late day given and none configured")
        return compute_late_fee(borrowing.due_date, as_of, fee_per_late_day)

    # === Reservations ===

    def create_reservation(
        self, member_id: str, book_id: str, reservation_date: date
    ) -> Reservation:
        """
        Place a hold on a book for a member.

        Raises:
            InvalidReferenceError: If the member or book is unknown
            ConflictError: If storage kept conflicting after all retries
        """
        self._check_references(member_id, book_id)

        def attempt() -> Reservation:
            sequence = self.store.next_sequence(EntityType.RESERVATION, reservation_date.year)
            reservation = self._build(
                Reservation,
                id=_new_id(),
                reservation_number=format_number(
                    EntityType.RESERVATION, reservation_date.year, sequence
                ),
                member_id=member_id,
                book_id=book_id,
                reservation_date=reservation_date,
                status=ReservationStatus.PENDING,
            )
            return self.store.save(reservation)

        reservation = self._with_retries("create reservation", attempt)
        logger.info(
            "Created reservation %s for member %s, book %s",
            reservation.reservation_number,
            member_id,
            book_id,
        )
        return reservation

    def fulfill_reservation(self, reservation: Reservation) -> Reservation:
        """Mark a PENDING reservation as RECEIVED."""
        return self._close_reservation(
            "fulfill reservation", reservation, ReservationStatus.RECEIVED
        )

    def cancel_reservation(self, reservation: Reservation) -> Reservation:
        """Mark a PENDING reservation as CANCELLED."""
        return self._close_reservation(
            "cancel reservation", reservation, ReservationStatus.CANCELLED
        )

    def get_reservation(self, reservation_id: str) -> Reservation:
        """Load a reservation by ID, raising RecordNotFoundError if absent."""
        return self._load(Reservation, reservation_id)

    def reservations_for(self, member_id: str | None = None) -> list[Reservation]:
        """Reservations of one member, or of everyone, oldest first."""
        return self.store.find_reservations(member_id=member_id)

    def next_reservation_for(self, book_id: str) -> Reservation | None:
        """
        The reservation a newly returned copy of ``book_id`` should go to.

        This is the oldest PENDING reservation for the book, or None when
        nobody is waiting. The reservation is not modified; it becomes
        RECEIVED only once the member claims the copy.
        """
        queue = self.store.find_reservations(book_id, ReservationStatus.PENDING)
        return queue[0] if queue else None

    # === Internals ===

    def _close_reservation(
        self, operation: str, reservation: Reservation, target: ReservationStatus
    ) -> Reservation:
        def apply(current: Reservation) -> Reservation:
            if current.status != ReservationStatus.PENDING:
                raise InvalidStateError(
                    f"Reservation {current.reservation_number} is already "
                    f"{current.status.value}"
                )
            return current.evolve(status=target)

        closed = self._transition(operation, reservation, apply)
        logger.info("Reservation %s is now %s", closed.reservation_number, target.value)
        return closed

    def _check_references(self, member_id: str, book_id: str) -> None:
        if not self.identity.member_exists(member_id):
            raise InvalidReferenceError(f"Member {member_id} not found")
        if not self.identity.book_exists(book_id):
            raise InvalidReferenceError(f"Book {book_id} not found")

    @staticmethod
    def _build(model: type[R], **fields) -> R:
        try:
            return model(**fields)
        except ValidationError as e:
            raise InvalidInputError(f"Invalid {model.__name__.lower()}: {e}") from e

    def _load(self, model: type[R], record_id: str) -> R:
        record = self.store.find_by_id(record_id)
        if not isinstance(record, model):
            raise RecordNotFoundError(f"{model.__name__} {record_id} not found")
        return record

    def _transition(
        self, operation: str, record: R, apply: Callable[[R], R]
    ) -> R:
        """Apply a status change, reloading the record after a conflict."""
        current = record

        def attempt() -> R:
            try:
                updated = apply(current)
            except ValidationError as e:
                raise InvalidInputError(f"Cannot {operation}: {e}") from e
            return self.store.save(updated)

        def reload() -> None:
            nonlocal current
            current = self._load(type(record), record.id)

        return self._with_retries(operation, attempt, on_conflict=reload)

    def _with_retries(
        self,
        operation: str,
        attempt: Callable[[], T],
        on_conflict: Callable[[], None] | None = None,
    ) -> T:
        attempts = self.settings.max_conflict_retries
        for number in range(1, attempts + 1):
            try:
                return attempt()
            except ConflictError as e:
                if number == attempts:
                    logger.warning("%s gave up after %d attempts: %s", operation, attempts, e)
                    raise
                logger.warning(
                    "%s conflicted (attempt %d of %d): %s", operation, number, attempts, e
                )
                if on_conflict is not None:
                    on_conflict()
        raise AssertionError("unreachable")
