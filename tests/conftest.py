"""Shared fixtures for board tests."""

import pytest

from pkg.taskboard.coordinator import BoardCoordinator
from pkg.taskboard.store import MemoryStore, SqliteStore


@pytest.fixture(params=["memory", "sqlite"])
def store(request, tmp_path):
    """Every coordinator test runs against both storage backends."""
    if request.param == "sqlite":
        return SqliteStore(str(tmp_path / "board.db"))
    return MemoryStore()


@pytest.fixture
def coordinator(store):
    return BoardCoordinator(store)


@pytest.fixture
def project(coordinator):
    """Project owned by user 1 with the default todo/progress/done columns."""
    return coordinator.create_project("1", "Sales system", "New sales platform")
