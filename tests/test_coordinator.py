"""End-to-end tests for session completion through the wired engine."""

import threading
from datetime import timedelta

import pytest

from ride_progression.exceptions import (
    SessionValidationError,
    TransientStorageError,
    UserNotFoundError,
    ValidationError,
)
from ride_progression.models import DeliveryChannel, GoalType, NotificationType

from conftest import START, make_summary


class TestSessionCompletion:
    """Tests for on_session_completed."""

    def test_ten_km_ride(self, engine, user_id, scenario_a_summary):
        outcome = engine.on_session_completed(user_id, scenario_a_summary)

        assert not outcome.duplicate
        assert not outcome.partial
        assert outcome.xp_earned == 275
        # 10 km milestone adds 50 bonus XP
        assert outcome.total_xp == 325
        assert outcome.new_level == 2
        assert outcome.leveled_up
        assert outcome.streak == 1
        assert [m.value for m in outcome.new_milestones] == [10]
        assert outcome.new_badges == []

        types = sorted(n.type.value for n in outcome.notifications)
        assert types == ["level_up", "milestone_achieved"]
        assert all(n.channel == DeliveryChannel.PUSH for n in outcome.notifications)

    def test_milestone_marked_notified_after_routing(self, engine, user_id, scenario_a_summary):
        engine.on_session_completed(user_id, scenario_a_summary)

        assert engine.milestones.get_unnotified(user_id) == []

    def test_duplicate_session_changes_nothing(self, engine, user_id, scenario_a_summary, transport):
        engine.on_session_completed(user_id, scenario_a_summary)
        sends = transport.send_push.call_count

        again = engine.on_session_completed(user_id, scenario_a_summary)

        assert again.duplicate
        assert again.xp_earned == 0
        assert again.notifications == []
        assert engine.progression.get_progression(user_id).xp == 325
        assert transport.send_push.call_count == sends

    def test_accepts_raw_mapping(self, engine, user_id):
        outcome = engine.on_session_completed(
            user_id,
            {"sessionId": "raw-1", "totalDistance": 5, "durationSeconds": 1200, "avgSpeed": None},
        )
        # 50 + 50 + 20
        assert outcome.xp_earned == 120

    def test_invalid_summary_writes_nothing(self, engine, user_id):
        with pytest.raises(SessionValidationError) as exc_info:
            engine.on_session_completed(user_id, {"sessionId": "bad-1", "totalDistance": -5})

        assert exc_info.value.details["field"] == "totalDistance"
        assert engine.progression.get_progression(user_id).xp == 0

        outcome = engine.on_session_completed(user_id, {"sessionId": "bad-1", "totalDistance": 5})
        assert not outcome.duplicate

    def test_missing_user_id(self, engine):
        with pytest.raises(ValidationError):
            engine.on_session_completed("", make_summary())

    def test_unknown_user(self, engine):
        with pytest.raises(UserNotFoundError):
            engine.on_session_completed("ghost", make_summary())

    def test_unknown_goal_does_not_block_xp(self, engine, user_id, scenario_a_summary):
        outcome = engine.on_session_completed(user_id, scenario_a_summary, goal_id="missing")

        assert outcome.partial
        assert "goal" in outcome.failures
        assert outcome.xp_earned == 275
        assert outcome.goal is None

    def test_goal_progress(self, engine, user_id, scenario_a_summary):
        goal = engine.goals.create_goal(
            user_id,
            GoalType.ENDURANCE,
            start_date=START - timedelta(days=10),
            target_date=START + timedelta(days=10),
            current_weight=72,
            target_weight=72,
        )

        outcome = engine.on_session_completed(user_id, scenario_a_summary, goal_id=goal.id)

        assert outcome.goal.progress_data.total_distance == 10
        assert outcome.goal.progress_data.completion_percentage == 50.0
        goal_titles = [n.title for n in outcome.notifications if n.type == NotificationType.GOAL_PROGRESS]
        assert goal_titles == ["✨ 25% Complete!", "💪 Halfway There!"]

        summary = engine.get_goal_progress_summary(goal.id)
        assert [s.session_id for s in summary.recent_sessions] == [scenario_a_summary.session_id]

    def test_goal_of_another_user_is_not_credited(self, engine, user_id, scenario_a_summary):
        engine.register_user("rider-2")
        other = engine.goals.create_goal(
            "rider-2",
            GoalType.ENDURANCE,
            start_date=START - timedelta(days=10),
            target_date=START + timedelta(days=10),
            current_weight=72,
            target_weight=72,
        )

        outcome = engine.on_session_completed(user_id, scenario_a_summary, goal_id=other.id)

        assert "goal" in outcome.failures
        assert outcome.goal is None
        assert outcome.xp_earned == 275
        stored = engine.goals.get_goal(other.id)
        assert stored.progress_data.total_distance == 0
        assert stored.linked_sessions == []
        assert engine.notifications.get_unread_count("rider-2") == 0

    def test_component_failure_is_isolated(self, engine, user_id, scenario_a_summary, monkeypatch):
        def broken(*args, **kwargs):
            raise RuntimeError("badge store unavailable")

        monkeypatch.setattr(engine.badges, "check_badge_progress", broken)

        outcome = engine.on_session_completed(user_id, scenario_a_summary)

        assert outcome.failures == {"badges": "badge store unavailable"}
        assert outcome.total_xp == 325
        assert outcome.streak == 1

    def test_delivery_failure_is_not_a_component_failure(self, engine, user_id, scenario_a_summary, transport):
        transport.send_push.side_effect = RuntimeError("push gateway down")

        outcome = engine.on_session_completed(user_id, scenario_a_summary)

        assert not outcome.partial
        assert len(outcome.notifications) == 2
        assert all(n.delivery_error == "push gateway down" for n in outcome.notifications)
        assert engine.notifications.get_unread_count(user_id) == 2

    def test_session_completes_quests(self, engine, user_id, scenario_a_summary):
        engine.quests.create_daily_quests(user_id)

        outcome = engine.on_session_completed(user_id, scenario_a_summary)

        assert {q.title for q in outcome.completed_quests} == {"Morning Ride", "Calorie Burner"}
        # 275 session + 50 milestone + 50 + 75 quest rewards
        assert outcome.total_xp == 450
        assert outcome.new_level == 3
        quest_notes = [n for n in outcome.notifications if n.type == NotificationType.QUEST_COMPLETED]
        assert len(quest_notes) == 2

    def test_consecutive_days_extend_streak(self, engine, user_id, clock):
        engine.on_session_completed(user_id, make_summary("day-1"))
        clock.advance(days=1)
        outcome = engine.on_session_completed(user_id, make_summary("day-2"))

        assert outcome.streak == 2
        assert outcome.streak_increased
        assert not any(n.type == NotificationType.STREAK_MILESTONE for n in outcome.notifications)

    def test_concurrent_replays_count_once(self, engine, user_id, scenario_a_summary):
        outcomes = []
        errors = []

        def worker():
            try:
                outcomes.append(engine.on_session_completed(user_id, scenario_a_summary))
            except Exception as e:  # pragma: no cover - reported below
                errors.append(e)

        threads = [threading.Thread(target=worker) for _ in range(5)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert errors == []
        assert sum(1 for o in outcomes if not o.duplicate) == 1
        assert engine.progression.get_progression(user_id).xp == 325
        assert engine.coordinator._locks == {}


class TestSessionReplay:
    """Tests for replaying a session after a transient storage failure."""

    @pytest.fixture
    def locked_once(self, engine, monkeypatch):
        real_award = engine.progression.award_xp
        calls = []

        def award_xp(*args, **kwargs):
            calls.append(args)
            if len(calls) == 1:
                raise TransientStorageError("database is locked")
            return real_award(*args, **kwargs)

        monkeypatch.setattr(engine.progression, "award_xp", award_xp)
        return calls

    def test_replay_reruns_failed_step(self, engine, user_id, scenario_a_summary, locked_once):
        first = engine.on_session_completed(user_id, scenario_a_summary)

        assert first.failures == {"xp": "database is locked"}
        # Only the 10 km milestone bonus landed
        assert engine.progression.get_progression(user_id).xp == 50

        retry = engine.on_session_completed(user_id, scenario_a_summary)

        assert not retry.duplicate
        assert retry.resumed
        assert not retry.partial
        assert retry.xp_earned == 275
        assert retry.total_xp == 325
        assert retry.leveled_up
        assert len(locked_once) == 2
        # Steps that finished the first time are not repeated
        assert retry.streak is None
        assert retry.new_milestones == []
        assert [n.type for n in retry.notifications] == [NotificationType.LEVEL_UP]

        progression = engine.progression.get_progression(user_id)
        assert progression.xp == 325
        assert progression.stats.total_workouts == 1
        assert progression.stats.total_distance == 10

    def test_replay_after_recovery_is_duplicate(self, engine, user_id, scenario_a_summary, locked_once):
        engine.on_session_completed(user_id, scenario_a_summary)
        engine.on_session_completed(user_id, scenario_a_summary)

        again = engine.on_session_completed(user_id, scenario_a_summary)

        assert again.duplicate
        assert len(locked_once) == 2
        assert engine.progression.get_progression(user_id).xp == 325

    def test_permanent_failure_is_not_retried(self, engine, user_id, scenario_a_summary):
        engine.on_session_completed(user_id, scenario_a_summary, goal_id="missing")

        again = engine.on_session_completed(user_id, scenario_a_summary, goal_id="missing")

        assert again.duplicate


class TestUserLocks:
    """Per-user locks live only while a completion holds them."""

    def test_released_after_completion(self, engine, user_id):
        engine.on_session_completed(user_id, make_summary())
        engine.on_session_completed(user_id, make_summary("session-2"))

        assert engine.coordinator._locks == {}

    def test_released_when_completion_raises(self, engine):
        with pytest.raises(UserNotFoundError):
            engine.on_session_completed("ghost", make_summary())

        assert engine.coordinator._locks == {}


class TestAchievementSummary:
    """Tests for the read-side summary."""

    def test_summary_after_ride(self, engine, user_id, scenario_a_summary):
        engine.on_session_completed(user_id, scenario_a_summary)

        summary = engine.get_achievement_summary(user_id)

        assert summary.xp == 325
        assert summary.level == 2
        assert summary.xp_to_next_level == 75
        assert summary.level_progress == 75.0
        assert summary.streak == 1
        assert summary.last_activity_date == START.date()
        assert len(summary.milestones) == 1
        stats = summary.statistics
        assert stats.total_milestones == 1
        assert stats.lifetime_distance == 10
        assert stats.lifetime_workouts == 1
        assert stats.leaderboard_position == 1
        assert stats.total_users == 1

    def test_summary_for_new_user(self, engine, user_id):
        summary = engine.get_achievement_summary(user_id)

        assert summary.xp == 0
        assert summary.level == 1
        assert summary.badges == []

    def test_summary_unknown_user(self, engine):
        with pytest.raises(UserNotFoundError):
            engine.get_achievement_summary("ghost")
