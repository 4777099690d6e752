"""Shared fixtures: temporary databases, a pinned clock and mock collaborators."""

import os
import tempfile
from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock

import pytest

from ride_progression.config import Settings
from ride_progression.db.database import ProgressionDatabase
from ride_progression.engine import build_engine
from ride_progression.models.session import SessionSummary


# Monday, so daily and weekly quest windows are easy to reason about
START = datetime(2026, 3, 2, 12, 0, tzinfo=timezone.utc)


class FixedClock:
    """Clock that only moves when told to."""

    def __init__(self, now: datetime = START):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now += timedelta(**kwargs)
        return self.now


@pytest.fixture
def temp_db_path():
    """Create a temporary database file path."""
    with tempfile.NamedTemporaryFile(suffix=".db", delete=False) as f:
        db_path = f.name
    yield db_path
    for suffix in ("", "-wal", "-shm"):
        try:
            os.unlink(db_path + suffix)
        except OSError:
            pass


@pytest.fixture
def database(temp_db_path):
    return ProgressionDatabase(temp_db_path)


@pytest.fixture
def clock():
    return FixedClock()


@pytest.fixture
def presence():
    """Presence provider reporting every user offline."""
    mock = MagicMock()
    mock.is_user_connected.return_value = False
    return mock


@pytest.fixture
def transport():
    return MagicMock()


@pytest.fixture
def settings(temp_db_path):
    return Settings(
        progression_db_path=temp_db_path,
        maintenance_enabled=False,
        notification_ttl_days=30,
        cleanup_read_after_days=30,
    )


@pytest.fixture
def engine(settings, presence, transport, clock):
    """Fully wired engine over a temporary database."""
    return build_engine(settings, presence=presence, transport=transport, clock=clock)


@pytest.fixture
def user_id(engine):
    """A registered rider with no activity yet."""
    engine.register_user("rider-1")
    return "rider-1"


def make_summary(session_id: str = "session-1", **overrides) -> SessionSummary:
    """Build a session summary; unspecified metrics are 0."""
    return SessionSummary(session_id=session_id, **overrides)


@pytest.fixture
def scenario_a_summary():
    """10 km in an hour at 22 km/h and 120 W, 300 kcal."""
    return make_summary(
        total_distance=10,
        total_calories=300,
        duration_seconds=3600,
        avg_speed=22,
        avg_power=120,
    )
