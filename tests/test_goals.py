"""Tests for goal tracking from completed sessions."""

from datetime import timedelta

import pytest

from ride_progression.db.repositories import GoalRepository
from ride_progression.exceptions import GoalNotFoundError, ValidationError
from ride_progression.models import (
    ActionType,
    Goal,
    GoalStatus,
    GoalType,
    NotificationPriority,
    NotificationType,
    ProgressData,
    WeightEntry,
    WeightSource,
)
from ride_progression.services.goals import GoalProgressUpdater, calculate_completion

from conftest import START, make_summary


@pytest.fixture
def goal_repo(database):
    return GoalRepository(database)


@pytest.fixture
def updater(goal_repo, clock):
    return GoalProgressUpdater(goal_repo, clock=clock)


def make_goal(goal_type=GoalType.ENDURANCE, elapsed_days=10, total_days=20, **overrides) -> Goal:
    start = START - timedelta(days=elapsed_days)
    values = dict(
        id="goal-1",
        user_id="rider-1",
        goal_type=goal_type,
        start_date=start,
        target_date=start + timedelta(days=total_days),
        current_weight=80.0,
        target_weight=76.0,
    )
    values.update(overrides)
    return Goal(**values)


class TestCompletion:
    """Tests for calculate_completion."""

    def test_endurance_is_time_progress(self):
        assert calculate_completion(make_goal(), START) == 50.0

    def test_maintenance_mixes_consistency_and_time(self):
        goal = make_goal(GoalType.MAINTENANCE, progress_data=ProgressData(total_workouts=5))
        # 5 of 5 expected workouts -> 60, half the window -> 20
        assert calculate_completion(goal, START) == 80.0

    def test_maintenance_with_no_expected_workouts(self):
        goal = make_goal(GoalType.MAINTENANCE, elapsed_days=1, progress_data=ProgressData(total_workouts=1))
        assert calculate_completion(goal, START) == pytest.approx(2.0)

    def test_weight_loss_mixes_weight_and_time(self):
        goal = make_goal(
            GoalType.WEIGHT_LOSS,
            current_weight=78.0,
            weight_history=[WeightEntry(date=START, weight=80.0, source=WeightSource.INITIAL)],
        )
        assert calculate_completion(goal, START) == pytest.approx(50.0)

    def test_weight_moving_away_clamps_to_zero(self):
        goal = make_goal(
            GoalType.WEIGHT_LOSS,
            current_weight=84.0,
            weight_history=[WeightEntry(date=START, weight=80.0, source=WeightSource.INITIAL)],
        )
        assert calculate_completion(goal, START) == 0.0

    def test_future_start_is_zero(self):
        goal = make_goal(elapsed_days=-3)
        assert calculate_completion(goal, START) == 0.0

    def test_empty_window_is_complete(self):
        goal = make_goal(total_days=0)
        assert calculate_completion(goal, START) == 100.0


class TestCreateGoal:
    """Tests for GoalProgressUpdater.create_goal."""

    def test_create_records_initial_weight(self, updater):
        goal = updater.create_goal(
            "rider-1",
            GoalType.WEIGHT_LOSS,
            start_date=START,
            target_date=START + timedelta(days=60),
            current_weight=82.5,
            target_weight=78.0,
        )

        stored = updater.get_goal(goal.id)
        assert stored.status == GoalStatus.ACTIVE
        assert len(stored.weight_history) == 1
        assert stored.weight_history[0].weight == 82.5
        assert stored.weight_history[0].source == WeightSource.INITIAL

    def test_invalid_weight_raises(self, updater):
        with pytest.raises(ValidationError) as exc_info:
            updater.create_goal(
                "rider-1",
                GoalType.ENDURANCE,
                start_date=START,
                target_date=START + timedelta(days=30),
                current_weight=0,
                target_weight=70,
            )
        assert exc_info.value.details["field"] == "current_weight"

    def test_unknown_goal(self, updater):
        with pytest.raises(GoalNotFoundError):
            updater.get_goal("missing")

    def test_list_goals(self, updater):
        updater.create_goal("rider-1", GoalType.ENDURANCE, START, START + timedelta(days=30), 70, 70)
        updater.create_goal("rider-2", GoalType.ENDURANCE, START, START + timedelta(days=30), 70, 70)

        assert len(updater.list_goals("rider-1")) == 1
        assert updater.list_goals("rider-1", status=GoalStatus.COMPLETED) == []


class TestUpdateGoalFromSession:
    """Tests for GoalProgressUpdater.update_goal_from_session."""

    def test_links_session_and_adds_totals(self, updater, goal_repo):
        goal_repo.create(make_goal(), START)

        update = updater.update_goal_from_session(
            "goal-1", make_summary(total_distance=12, total_calories=350, avg_speed=24)
        )

        assert update.linked
        stored = updater.get_goal("goal-1")
        assert stored.linked_sessions == ["session-1"]
        assert stored.progress_data.total_distance == 12
        assert stored.progress_data.total_calories == 350
        assert stored.progress_data.total_workouts == 1
        assert stored.progress_data.completion_percentage == 50.0

    def test_same_session_counts_once(self, updater, goal_repo):
        goal_repo.create(make_goal(), START)
        summary = make_summary(total_distance=12)

        updater.update_goal_from_session("goal-1", summary)
        again = updater.update_goal_from_session("goal-1", summary)

        assert not again.linked
        assert again.notifications == []
        stored = updater.get_goal("goal-1")
        assert stored.progress_data.total_distance == 12
        assert stored.progress_data.total_workouts == 1

    def test_unknown_goal_writes_nothing(self, updater, goal_repo):
        with pytest.raises(GoalNotFoundError):
            updater.update_goal_from_session("missing", make_summary())
        assert goal_repo.count_sessions("missing") == 0

    def test_goal_of_another_user_writes_nothing(self, updater, goal_repo):
        goal_repo.create(make_goal(), START)

        with pytest.raises(GoalNotFoundError):
            updater.update_goal_from_session("goal-1", make_summary(total_distance=10), user_id="rider-2")

        stored = updater.get_goal("goal-1")
        assert stored.linked_sessions == []
        assert stored.progress_data.total_distance == 0
        assert goal_repo.count_sessions("goal-1") == 0

    def test_owner_may_update(self, updater, goal_repo):
        goal_repo.create(make_goal(), START)

        update = updater.update_goal_from_session("goal-1", make_summary(total_distance=10), user_id="rider-1")

        assert update.linked

    def test_paused_goal_is_not_updated(self, updater, goal_repo):
        goal_repo.create(make_goal(status=GoalStatus.PAUSED), START)

        update = updater.update_goal_from_session("goal-1", make_summary(total_distance=5))

        assert not update.linked
        assert updater.get_goal("goal-1").progress_data.total_workouts == 0

    def test_weekly_buckets(self, updater, goal_repo):
        goal_repo.create(make_goal(), START)

        updater.update_goal_from_session(
            "goal-1", make_summary("s1", total_distance=10, avg_speed=20, end_time=START)
        )
        updater.update_goal_from_session(
            "goal-1",
            make_summary("s2", total_distance=5, avg_speed=30, end_time=START + timedelta(hours=2)),
        )

        weekly = updater.get_goal("goal-1").weekly_progress
        assert len(weekly) == 1
        bucket = weekly[0]
        # Goal started ten days before START
        assert bucket.week_number == 1
        assert bucket.workout_count == 2
        assert bucket.total_distance == 15
        assert bucket.avg_speed == 25

    def test_weight_loss_estimate(self, updater, goal_repo):
        goal_repo.create(
            make_goal(
                GoalType.WEIGHT_LOSS,
                weight_history=[WeightEntry(date=START, weight=80.0, source=WeightSource.INITIAL)],
            ),
            START,
        )

        updater.update_goal_from_session("goal-1", make_summary(total_calories=770))

        stored = updater.get_goal("goal-1")
        assert stored.current_weight == pytest.approx(79.9)
        assert len(stored.weight_history) == 2
        assert stored.weight_history[-1].source == WeightSource.ESTIMATED

    def test_muscle_gain_has_no_estimate(self, updater, goal_repo):
        goal_repo.create(make_goal(GoalType.MUSCLE_GAIN, target_weight=84.0), START)

        updater.update_goal_from_session("goal-1", make_summary(total_calories=770))

        stored = updater.get_goal("goal-1")
        assert stored.current_weight == 80.0
        assert stored.weight_history == []

    def test_halfway_notification_uses_stored_percentage(self, updater, goal_repo):
        goal = make_goal(
            elapsed_days=13,
            total_days=25,
            progress_data=ProgressData(completion_percentage=48.0),
        )
        goal_repo.create(goal, START)

        update = updater.update_goal_from_session("goal-1", make_summary(total_distance=8))

        assert update.previous_percentage == 48.0
        assert update.completion_percentage == pytest.approx(52.0)
        assert len(update.notifications) == 1
        request = update.notifications[0]
        assert request.type == NotificationType.GOAL_PROGRESS
        assert request.title == "💪 Halfway There!"
        assert request.priority == NotificationPriority.MEDIUM
        action = request.actions[0]
        assert action.type == ActionType.NAVIGATION
        assert action.data == {"route": "/goal-details", "goalId": "goal-1"}

    def test_no_notification_without_crossing(self, updater, goal_repo):
        goal_repo.create(
            make_goal(elapsed_days=13, total_days=25, progress_data=ProgressData(completion_percentage=51.0)),
            START,
        )

        update = updater.update_goal_from_session("goal-1", make_summary())
        assert update.notifications == []

    def test_reaching_full_completion(self, updater, goal_repo):
        goal_repo.create(make_goal(elapsed_days=30, total_days=29), START)

        update = updater.update_goal_from_session("goal-1", make_summary())

        assert update.goal.status == GoalStatus.COMPLETED
        titles = [n.title for n in update.notifications]
        assert titles == ["✨ 25% Complete!", "💪 Halfway There!", "🚀 Almost There!", "🎉 Goal Completed!"]
        assert update.notifications[-1].priority == NotificationPriority.HIGH

        later = updater.update_goal_from_session("goal-1", make_summary("session-2"))
        assert not later.linked


class TestGoalReporting:
    """Tests for goal summaries and session pages."""

    def test_progress_summary_statistics(self, updater, goal_repo):
        goal_repo.create(make_goal(), START)
        updater.update_goal_from_session(
            "goal-1", make_summary("s1", total_distance=10, total_calories=300, end_time=START)
        )
        updater.update_goal_from_session(
            "goal-1",
            make_summary("s2", total_distance=5, total_calories=151, end_time=START + timedelta(hours=1)),
        )

        summary = updater.get_goal_progress_summary("goal-1")

        stats = summary.statistics
        assert stats.total_sessions == 2
        assert stats.average_distance == 7.5
        assert stats.average_calories == 226
        assert stats.days_elapsed == 10
        assert stats.days_remaining == 10
        assert [s.session_id for s in summary.recent_sessions] == ["s2", "s1"]

    def test_session_pagination(self, updater, goal_repo):
        goal_repo.create(make_goal(), START)
        for i in range(3):
            updater.update_goal_from_session(
                "goal-1", make_summary(f"s{i}", end_time=START + timedelta(hours=i))
            )

        first = updater.get_goal_sessions("goal-1", limit=2)
        assert first.total == 3
        assert first.has_more
        assert [s.session_id for s in first.sessions] == ["s2", "s1"]

        rest = updater.get_goal_sessions("goal-1", limit=2, offset=2)
        assert not rest.has_more
        assert [s.session_id for s in rest.sessions] == ["s0"]
