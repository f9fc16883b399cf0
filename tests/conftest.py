"""Test configuration and fixtures for the circulation engine.

Every test gets:
- an environment stripped of LIBRARY_CIRCULATION_* variables
- a fresh settings singleton
- its own stores, so numbering always starts at 1
"""

import os
from collections.abc import Generator
from datetime import date
from pathlib import Path

import pytest

from library_circulation.config import CirculationSettings, reset_settings
from library_circulation.database import DatabaseManager, SqlAlchemyLifecycleStore
from library_circulation.engine import LifecycleEngine
from library_circulation.storage import InMemoryLifecycleStore, StaticIdentityDirectory

MEMBERS = ("member-001", "member-002", "member-003")
BOOKS = ("book-001", "book-002", "book-003")


@pytest.fixture(autouse=True)
def clean_env(monkeypatch: pytest.MonkeyPatch) -> Generator[None, None, None]:
    """Remove circulation environment variables and reset cached settings."""
    for key in list(os.environ):
        if key.startswith("LIBRARY_CIRCULATION_"):
            monkeypatch.delenv(key)
    reset_settings()
    yield
    reset_settings()


# === Settings Fixtures ===


@pytest.fixture
def settings(tmp_path: Path) -> CirculationSettings:
    """Settings with a 14-day loan period and a fee of 5 per late day."""
    return CirculationSettings(
        loan_period_days=14,
        fee_per_late_day=5,
        database_path=tmp_path / "circulation.db",
    )


@pytest.fixture
def bare_settings(tmp_path: Path) -> CirculationSettings:
    """Settings without any business parameters."""
    return CirculationSettings(database_path=tmp_path / "circulation.db")


# === Collaborator Fixtures ===


@pytest.fixture
def identity() -> StaticIdentityDirectory:
    return StaticIdentityDirectory(members=MEMBERS, books=BOOKS)


@pytest.fixture
def store() -> InMemoryLifecycleStore:
    return InMemoryLifecycleStore()


@pytest.fixture
def engine(
    store: InMemoryLifecycleStore,
    identity: StaticIdentityDirectory,
    settings: CirculationSettings,
) -> LifecycleEngine:
    return LifecycleEngine(store, identity, settings)


# === Database Fixtures ===


@pytest.fixture
def db_manager(tmp_path: Path) -> Generator[DatabaseManager, None, None]:
    """A file-backed SQLite database with the circulation tables created."""
    manager = DatabaseManager(f"sqlite:///{tmp_path / 'test_circulation.db'}")
    manager.init_database()
    yield manager
    manager.close()


@pytest.fixture
def sql_store(db_manager: DatabaseManager) -> SqlAlchemyLifecycleStore:
    return SqlAlchemyLifecycleStore(db_manager)


@pytest.fixture
def sql_engine(
    sql_store: SqlAlchemyLifecycleStore,
    identity: StaticIdentityDirectory,
    settings: CirculationSettings,
) -> LifecycleEngine:
    return LifecycleEngine(sql_store, identity, settings)


# === Sample Data ===


@pytest.fixture
def jan_10() -> date:
    return date(2024, 1, 10)
