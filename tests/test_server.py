"""Tests for server assembly and logging setup."""

import logging

import pytest

from library_circulation.config import CirculationSettings
from library_circulation.server import configure_logging, create_server


@pytest.fixture
def restore_root_logger():
    root = logging.getLogger()
    level, handlers = root.level, root.handlers[:]
    yield
    root.handlers[:] = handlers
    root.setLevel(level)


class TestServer:
    def test_create_server_uses_settings(self, tmp_path):
        settings = CirculationSettings(
            server_name="test-circulation", database_path=tmp_path / "c.db"
        )
        server = create_server(settings)
        assert server.name == "test-circulation"

    def test_configure_logging(self, tmp_path, restore_root_logger):
        db_path = tmp_path / "c.db"

        configure_logging(CirculationSettings(log_level="WARNING", database_path=db_path))
        assert logging.getLogger().level == logging.WARNING
        assert logging.getLogger("sqlalchemy").level == logging.WARNING

        configure_logging(CirculationSettings(debug=True, database_path=db_path))
        assert logging.getLogger().level == logging.DEBUG
