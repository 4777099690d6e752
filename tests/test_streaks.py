"""Tests for consecutive-day streak tracking."""

from datetime import date, datetime, timezone
from unittest.mock import MagicMock

import pytest

from ride_progression.db.repositories import UserProgressionRepository
from ride_progression.exceptions import ConcurrencyError, UserNotFoundError
from ride_progression.models import NotificationType, UserProgression
from ride_progression.services.streaks import StreakTracker, next_streak


MONDAY = date(2026, 3, 2)


@pytest.fixture
def users(database, clock):
    repo = UserProgressionRepository(database)
    repo.create("rider-1", clock())
    return repo


@pytest.fixture
def tracker(users, clock):
    return StreakTracker(users, clock=clock)


class TestNextStreak:
    """Tests for the pure streak transition."""

    def test_first_activity(self):
        assert next_streak(0, None, MONDAY) == (1, True, False)

    def test_same_day(self):
        assert next_streak(3, MONDAY, MONDAY) == (3, False, False)

    def test_next_day(self):
        assert next_streak(3, MONDAY, date(2026, 3, 3)) == (4, True, False)

    def test_gap_breaks_streak(self):
        assert next_streak(5, MONDAY, date(2026, 3, 5)) == (1, False, True)

    def test_late_upload_leaves_streak(self):
        assert next_streak(5, MONDAY, date(2026, 2, 27)) == (5, False, False)


class TestStreakTracker:
    """Tests for StreakTracker.update_streak."""

    def test_first_activity_starts_streak(self, tracker, users):
        update = tracker.update_streak("rider-1", MONDAY)

        assert update.streak == 1
        assert update.increased
        stored = users.get("rider-1")
        assert stored.streak == 1
        assert stored.last_activity_date == MONDAY

    def test_consecutive_day_increments_without_notification(self, tracker):
        tracker.update_streak("rider-1", MONDAY)
        update = tracker.update_streak("rider-1", date(2026, 3, 3))

        assert update.streak == 2
        assert update.increased
        assert update.notifications == []

    def test_second_session_same_day(self, tracker):
        tracker.update_streak("rider-1", MONDAY)
        update = tracker.update_streak("rider-1", MONDAY)

        assert update.streak == 1
        assert not update.increased

    def test_accepts_datetimes(self, tracker):
        update = tracker.update_streak("rider-1", datetime(2026, 3, 2, 23, 30, tzinfo=timezone.utc))
        assert update.last_activity_date == MONDAY

    def test_gap_resets_and_keeps_longest(self, tracker, users):
        for day in range(2, 6):
            tracker.update_streak("rider-1", date(2026, 3, day))
        update = tracker.update_streak("rider-1", date(2026, 3, 9))

        assert update.streak == 1
        assert update.broken
        assert update.longest_streak == 4
        assert users.get("rider-1").longest_streak == 4

    def test_late_upload_keeps_last_activity(self, tracker, users):
        tracker.update_streak("rider-1", date(2026, 3, 3))
        update = tracker.update_streak("rider-1", MONDAY)

        assert update.streak == 1
        assert update.last_activity_date == date(2026, 3, 3)
        assert users.get("rider-1").last_activity_date == date(2026, 3, 3)

    def test_seventh_day_notifies(self, tracker):
        updates = [tracker.update_streak("rider-1", date(2026, 3, day)) for day in range(2, 9)]

        assert all(not u.notifications for u in updates[:-1])
        last = updates[-1]
        assert last.streak == 7
        assert len(last.notifications) == 1
        assert last.notifications[0].type == NotificationType.STREAK_MILESTONE
        assert last.notifications[0].title == "🔥 7 Day Streak!"

    def test_unknown_user(self, tracker):
        with pytest.raises(UserNotFoundError):
            tracker.update_streak("ghost", MONDAY)

    def test_retries_then_raises_on_persistent_conflict(self):
        repo = MagicMock()
        repo.require.return_value = UserProgression(user_id="rider-1")
        repo.compare_and_set_streak.return_value = False
        tracker = StreakTracker(repo, max_retries=3)

        with pytest.raises(ConcurrencyError):
            tracker.update_streak("rider-1", MONDAY)

        assert repo.compare_and_set_streak.call_count == 3
        assert repo.require.call_count == 3

    def test_recomputes_from_fresh_read_after_conflict(self):
        repo = MagicMock()
        repo.require.side_effect = [
            UserProgression(user_id="rider-1", version=0),
            UserProgression(user_id="rider-1", streak=1, last_activity_date=MONDAY, version=1),
        ]
        repo.compare_and_set_streak.side_effect = [False, True]
        tracker = StreakTracker(repo, max_retries=3)

        update = tracker.update_streak("rider-1", date(2026, 3, 3))

        assert update.streak == 2
        _, kwargs = repo.compare_and_set_streak.call_args
        assert kwargs["expected_version"] == 1
