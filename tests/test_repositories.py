"""
Tests for the SQLite repositories.

This module tests:
1. Schema creation
2. Atomic counters and the streak compare-and-set
3. Uniqueness of awards, session links and notification channels
4. Storage error mapping
"""

from datetime import date, timedelta

import pytest

from ride_progression.db import ProgressionDatabase
from ride_progression.db.repositories import (
    BadgeRepository,
    MilestoneRepository,
    NotificationRepository,
    SessionLogRepository,
    UserProgressionRepository,
)
from ride_progression.exceptions import TransientStorageError, UserNotFoundError
from ride_progression.models import (
    Badge,
    BadgeType,
    DeliveryChannel,
    Milestone,
    MilestoneType,
    Notification,
    NotificationType,
)

from conftest import START, make_summary


@pytest.fixture
def users(database):
    repo = UserProgressionRepository(database)
    repo.create("rider-1", START)
    return repo


class TestDatabase:
    """Tests for ProgressionDatabase."""

    @pytest.mark.parametrize(
        "table",
        [
            "user_progression",
            "completed_sessions",
            "session_steps",
            "goals",
            "goal_sessions",
            "milestones",
            "badges",
            "quests",
            "notifications",
        ],
    )
    def test_tables_exist(self, database, table):
        with database.connection() as conn:
            row = conn.execute(
                "SELECT name FROM sqlite_master WHERE type='table' AND name = ?",
                (table,),
            ).fetchone()
        assert row is not None

    def test_reopening_keeps_data(self, temp_db_path):
        UserProgressionRepository(ProgressionDatabase(temp_db_path)).create("rider-1", START)

        reopened = UserProgressionRepository(ProgressionDatabase(temp_db_path))
        assert reopened.exists("rider-1")

    def test_unopenable_path_is_transient(self, tmp_path):
        with pytest.raises(TransientStorageError) as exc_info:
            ProgressionDatabase(tmp_path / "missing" / "dir" / "progression.db")
        assert exc_info.value.details["operation"] == "connect"

    def test_operational_error_is_transient(self, database):
        with pytest.raises(TransientStorageError):
            with database.connection() as conn:
                conn.execute("SELECT * FROM no_such_table")


class TestUserProgressionRepository:
    """Tests for UserProgressionRepository."""

    def test_create_is_idempotent(self, users):
        users.increment_xp("rider-1", 40, START)
        progression = users.create("rider-1", START)

        assert progression.xp == 40

    def test_increment_xp_returns_before_and_after(self, users):
        assert users.increment_xp("rider-1", 150, START) == (0, 150)
        assert users.increment_xp("rider-1", 300, START) == (150, 450)

    def test_increment_xp_unknown_user(self, users):
        with pytest.raises(UserNotFoundError):
            users.increment_xp("ghost", 10, START)

    def test_compare_and_set_streak(self, users):
        progression = users.get("rider-1")

        assert users.compare_and_set_streak(
            "rider-1", progression.version, 1, 1, date(2026, 3, 2), START
        )
        # Second writer still holds the old version
        assert not users.compare_and_set_streak(
            "rider-1", progression.version, 5, 5, date(2026, 3, 2), START
        )

        stored = users.get("rider-1")
        assert stored.streak == 1
        assert stored.version == progression.version + 1

    def test_list_user_ids(self, users):
        users.create("rider-2", START + timedelta(seconds=1))

        assert users.list_user_ids() == ["rider-1", "rider-2"]
        assert users.list_user_ids(limit=1, offset=1) == ["rider-2"]


class TestAwardRepositories:
    """Tests for milestone and badge uniqueness."""

    def test_milestone_unique_per_value(self, database):
        repo = MilestoneRepository(database)
        milestone = Milestone(
            user_id="rider-1",
            type=MilestoneType.DISTANCE,
            value=10,
            unit="km",
            achieved_at=START,
            xp_reward=50,
        )

        assert repo.insert_if_absent(milestone) is not None
        assert repo.insert_if_absent(milestone) is None
        assert len(repo.list_for_user("rider-1")) == 1

    def test_milestone_reward_claimed_once(self, database):
        repo = MilestoneRepository(database)
        created = repo.insert_if_absent(
            Milestone(
                user_id="rider-1",
                type=MilestoneType.WORKOUTS,
                value=5,
                unit="workouts",
                achieved_at=START,
                xp_reward=25,
            )
        )
        assert [m.id for m in repo.list_unrewarded("rider-1")] == [created.id]

        assert repo.claim_reward(created.id)
        assert not repo.claim_reward(created.id)
        assert repo.list_unrewarded("rider-1") == []

        repo.release_reward(created.id)
        assert repo.claim_reward(created.id)

    def test_badge_unique_per_name(self, database):
        repo = BadgeRepository(database)
        badge = Badge(
            user_id="rider-1",
            name="Speed Demon",
            type=BadgeType.SPEED,
            description="Maintain 30+ km/h average speed",
            awarded_at=START,
        )

        created = repo.insert_if_absent(badge)
        assert created.id is not None
        assert repo.insert_if_absent(badge) is None
        assert repo.owned_names("rider-1") == {"Speed Demon"}


class TestSessionLogRepository:
    """Tests for SessionLogRepository."""

    def test_record_once(self, database):
        repo = SessionLogRepository(database)

        assert repo.record("rider-1", make_summary(total_distance=10), None, START)
        assert not repo.record("rider-1", make_summary(total_distance=10), None, START)
        assert repo.get("session-1").distance == 10

    def test_steps_logged_once_per_session(self, database):
        repo = SessionLogRepository(database)
        repo.record("rider-1", make_summary(), None, START)

        assert repo.mark_step("rider-1", "session-1", "xp", START)
        assert not repo.mark_step("rider-1", "session-1", "xp", START)
        repo.mark_step("rider-1", "session-1", "streak", START)

        assert repo.completed_steps("rider-1", "session-1") == {"xp", "streak"}
        assert repo.completed_steps("rider-2", "session-1") == set()


class TestNotificationRepository:
    """Tests for the delivery channel claim."""

    def test_channel_claimed_once(self, database):
        repo = NotificationRepository(database)
        repo.create(
            Notification(
                id="n1",
                user_id="rider-1",
                type=NotificationType.LEVEL_UP,
                title="Level 2 Reached!",
                message="Congratulations!",
                created_at=START,
            )
        )

        assert repo.claim_channel("n1", DeliveryChannel.LIVE, START)
        assert not repo.claim_channel("n1", DeliveryChannel.PUSH, START)
        assert repo.switch_channel("n1", DeliveryChannel.LIVE, DeliveryChannel.PUSH, START)
        assert not repo.switch_channel("n1", DeliveryChannel.LIVE, DeliveryChannel.PUSH, START)
        assert repo.get("n1").channel == DeliveryChannel.PUSH
