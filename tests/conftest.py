"""Shared test fixtures."""

from pathlib import Path

import pytest

from cadence.notifications.router import Notifier
from cadence.scheduler.store import TaskStore


@pytest.fixture
async def store(tmp_path: Path) -> TaskStore:
    """Create a TaskStore backed by a temp database."""
    return TaskStore(db_path=tmp_path / "test.db")


@pytest.fixture(autouse=True)
def _reset_singletons():
    """Reset shared instances so tests never see each other's channels or stores."""
    Notifier._reset()
    TaskStore._reset()
    yield
    Notifier._reset()
    TaskStore._reset()
