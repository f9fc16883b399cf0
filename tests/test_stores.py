"""
Tests for the LifecycleStore implementations.

The same contract is checked against the in-memory store and the
SQLAlchemy store: per-(type, year) sequences, versioned saves, unique
numbers, lookups, member listings and reservation queues.
"""

from concurrent.futures import ThreadPoolExecutor
from datetime import date, timedelta

import pytest

from library_circulation.database import DatabaseManager, SqlAlchemyLifecycleStore
from library_circulation.engine import LifecycleEngine
from library_circulation.exceptions import ConflictError, InvalidInputError, InvalidStateError
from library_circulation.models import (
    Borrowing,
    BorrowingStatus,
    Reservation,
    ReservationStatus,
)
from library_circulation.numbering import EntityType


def borrowing(
    record_id: str = "b1",
    number: str = "BR20240001",
    member_id: str = "member-001",
    on: date = date(2024, 1, 10),
) -> Borrowing:
    return Borrowing(
        id=record_id,
        borrowing_number=number,
        member_id=member_id,
        book_id="book-001",
        borrow_date=on,
        due_date=on + timedelta(days=14),
    )


def reservation(
    record_id: str,
    number: str,
    book_id: str = "book-001",
    on: date = date(2024, 3, 1),
    member_id: str = "member-002",
) -> Reservation:
    return Reservation(
        id=record_id,
        reservation_number=number,
        member_id=member_id,
        book_id=book_id,
        reservation_date=on,
    )


@pytest.fixture(params=["memory", "sql"])
def any_store(request):
    """Run each test against both store implementations."""
    name = "store" if request.param == "memory" else "sql_store"
    return request.getfixturevalue(name)


class TestSequences:
    def test_starts_at_one_and_increments(self, any_store):
        assert any_store.next_sequence(EntityType.BORROWING, 2024) == 1
        assert any_store.next_sequence(EntityType.BORROWING, 2024) == 2
        assert any_store.next_sequence(EntityType.BORROWING, 2024) == 3

    def test_scoped_by_type_and_year(self, any_store):
        assert any_store.next_sequence(EntityType.BORROWING, 2024) == 1
        assert any_store.next_sequence(EntityType.RESERVATION, 2024) == 1
        assert any_store.next_sequence(EntityType.BORROWING, 2025) == 1
        assert any_store.next_sequence(EntityType.BORROWING, 2024) == 2


class TestSave:
    def test_insert_assigns_version_one(self, any_store):
        stored = any_store.save(borrowing())
        assert stored.version == 1
        assert any_store.find_by_id("b1") == stored

    def test_update_bumps_version(self, any_store):
        stored = any_store.save(borrowing())
        returned = stored.evolve(
            status=BorrowingStatus.RETURNED, return_date=date(2024, 2, 1), late_fee=40
        )

        updated = any_store.save(returned)

        assert updated.version == 2
        assert any_store.find_by_id("b1") == updated

    def test_stale_update_conflicts(self, any_store):
        stored = any_store.save(borrowing())
        any_store.save(
            stored.evolve(status=BorrowingStatus.RETURNED, return_date=date(2024, 2, 1))
        )

        with pytest.raises(ConflictError):
            any_store.save(
                stored.evolve(status=BorrowingStatus.RETURNED, return_date=date(2024, 2, 9))
            )

        assert any_store.find_by_id("b1").return_date == date(2024, 2, 1)

    def test_reinsert_conflicts(self, any_store):
        any_store.save(borrowing())
        with pytest.raises(ConflictError):
            any_store.save(borrowing())

    def test_duplicate_number_conflicts(self, any_store):
        any_store.save(borrowing("b1", "BR20240001"))
        with pytest.raises(ConflictError):
            any_store.save(borrowing("b2", "BR20240001"))
        assert any_store.find_by_id("b2") is None

    def test_update_of_unknown_record_conflicts(self, any_store):
        with pytest.raises(ConflictError):
            any_store.save(borrowing().evolve(version=3))


class TestLookups:
    def test_find_by_id_distinguishes_kinds(self, any_store):
        any_store.save(borrowing("b1"))
        any_store.save(reservation("r1", "RS20240001"))

        assert isinstance(any_store.find_by_id("b1"), Borrowing)
        assert isinstance(any_store.find_by_id("r1"), Reservation)
        assert any_store.find_by_id("missing") is None

    def test_find_reservations_ordered_and_filtered(self, any_store):
        any_store.save(reservation("r1", "RS20240001", on=date(2024, 3, 5)))
        any_store.save(reservation("r2", "RS20240002", on=date(2024, 3, 1)))
        any_store.save(reservation("r3", "RS20240003", on=date(2024, 3, 1)))
        any_store.save(reservation("r4", "RS20240004", book_id="book-002"))
        cancelled = any_store.save(reservation("r5", "RS20240005", on=date(2024, 2, 1)))
        any_store.save(cancelled.evolve(status=ReservationStatus.CANCELLED))

        everything = any_store.find_reservations("book-001")
        pending = any_store.find_reservations("book-001", ReservationStatus.PENDING)

        assert [r.id for r in everything] == ["r5", "r2", "r3", "r1"]
        assert [r.id for r in pending] == ["r2", "r3", "r1"]
        assert any_store.find_reservations("book-404") == []

    def test_find_borrowings_by_member(self, any_store):
        any_store.save(borrowing("b1", "BR20240001", on=date(2024, 2, 1)))
        any_store.save(borrowing("b2", "BR20240002", member_id="member-002"))
        any_store.save(borrowing("b3", "BR20240003", on=date(2024, 1, 5)))
        any_store.save(reservation("r1", "RS20240001", member_id="member-001"))

        assert [b.id for b in any_store.find_borrowings("member-001")] == ["b3", "b1"]
        assert [b.id for b in any_store.find_borrowings()] == ["b3", "b2", "b1"]
        assert any_store.find_borrowings("member-404") == []

    def test_find_reservations_by_member(self, any_store):
        any_store.save(reservation("r1", "RS20240001", on=date(2024, 3, 5)))
        any_store.save(reservation("r2", "RS20240002", book_id="book-002"))
        any_store.save(reservation("r3", "RS20240003", member_id="member-003"))

        mine = any_store.find_reservations(member_id="member-002")
        on_book = any_store.find_reservations("book-001", member_id="member-002")

        assert [r.id for r in mine] == ["r2", "r1"]
        assert [r.id for r in on_book] == ["r1"]
        assert len(any_store.find_reservations()) == 3


class TestEngineOverDatabase:
    """End-to-end lifecycle through the SQLAlchemy store."""

    def test_borrow_and_return(self, sql_engine):
        created = sql_engine.create_borrowing("member-001", "book-001", date(2024, 1, 10), 14)
        returned = sql_engine.return_borrowing(created, date(2024, 2, 1), fee_per_late_day=5)

        stored = sql_engine.get_borrowing(created.id)
        assert stored == returned
        assert stored.late_fee == 40
        assert stored.status == BorrowingStatus.RETURNED

    def test_stale_second_return_rejected(self, sql_engine):
        created = sql_engine.create_borrowing("member-001", "book-001", date(2024, 1, 10))
        sql_engine.return_borrowing(created, date(2024, 1, 20))

        with pytest.raises(InvalidStateError):
            sql_engine.return_borrowing(created, date(2024, 1, 21))

    def test_numbering_survives_new_store(self, sql_engine, db_manager, identity, settings):
        sql_engine.create_borrowing("member-001", "book-001", date(2024, 1, 10))

        reopened = LifecycleEngine(SqlAlchemyLifecycleStore(db_manager), identity, settings)
        second = reopened.create_borrowing("member-002", "book-002", date(2024, 1, 11))

        assert second.borrowing_number == "BR20240002"

    def test_reservation_queue(self, sql_engine):
        first = sql_engine.create_reservation("member-001", "book-003", date(2024, 4, 1))
        second = sql_engine.create_reservation("member-002", "book-003", date(2024, 4, 2))

        assert sql_engine.next_reservation_for("book-003") == first
        sql_engine.fulfill_reservation(first)
        assert sql_engine.next_reservation_for("book-003") == second

    def test_listings_by_member(self, sql_engine):
        sql_engine.create_borrowing("member-001", "book-001", date(2024, 1, 10))
        sql_engine.create_borrowing("member-002", "book-002", date(2024, 1, 11))
        sql_engine.create_reservation("member-001", "book-002", date(2024, 1, 12))

        assert [b.book_id for b in sql_engine.borrowings_for("member-001")] == ["book-001"]
        assert [r.book_id for r in sql_engine.reservations_for("member-001")] == ["book-002"]
        assert len(sql_engine.borrowings_for()) == 2


class TestDatabaseErrors:
    def test_check_violation_is_invalid_input(self, sql_store):
        # model_construct skips validation, leaving the table constraint to reject it
        bad = Borrowing.model_construct(**{**borrowing().model_dump(), "late_fee": -1})

        with pytest.raises(InvalidInputError):
            sql_store.save(bad)

        assert sql_store.find_by_id("b1") is None


class TestDatabaseConcurrency:
    def test_concurrent_creations_get_distinct_numbers(self, sql_store, identity, settings):
        engine = LifecycleEngine(
            sql_store, identity, settings.model_copy(update={"max_conflict_retries": 10})
        )

        def create(i: int) -> Borrowing | ConflictError:
            try:
                return engine.create_borrowing("member-001", "book-001", date(2024, 5, 1))
            except ConflictError as e:
                return e

        # Any other error, StorageError included, propagates and fails the test
        with ThreadPoolExecutor(max_workers=8) as pool:
            outcomes = list(pool.map(create, range(24)))

        created = [o for o in outcomes if isinstance(o, Borrowing)]
        numbers = [b.borrowing_number for b in created]
        assert created
        assert len(set(numbers)) == len(numbers)
        assert {b.id for b in sql_store.find_borrowings()} == {b.id for b in created}


class TestDatabaseManager:
    def test_defaults_to_configured_database(self, tmp_path, monkeypatch):
        db_path = tmp_path / "nested" / "circulation.db"
        monkeypatch.setenv("LIBRARY_CIRCULATION_DATABASE_PATH", str(db_path))

        manager = DatabaseManager()

        assert manager.database_url == f"sqlite:///{db_path}"
        assert db_path.parent.is_dir()
