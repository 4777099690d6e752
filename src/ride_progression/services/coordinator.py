"""
Session completion coordinator.

Entry point when a ride ends. Runs every progression component in a fixed
order, isolates their failures, and hands the resulting notifications to the
router:

    goal -> XP -> lifetime totals -> streak -> milestones -> badges -> quests

Each step that finishes is logged against the session. Replaying a session
re-runs only the steps that failed with a transient storage error; once every
step is logged, a replay is reported as a duplicate.
"""

import threading
from contextlib import contextmanager
from typing import Any, Callable, Dict, Iterator, List, Mapping, Optional, Set, TypeVar, Union

from pydantic import ValidationError as PydanticValidationError

from ..db.repositories.session_repository import SessionLogRepository
from ..exceptions import SessionValidationError, TransientStorageError, ValidationError
from ..models.goals import GoalProgressSummary
from ..models.notifications import NotificationRequest, NotificationType
from ..models.outcomes import AchievementStatistics, AchievementSummary, SessionOutcome
from ..models.progression import LifetimeStats, calculate_level_info
from ..models.quests import QuestStatus
from ..models.session import SessionSummary
from .badges import BadgeEvaluator
from .base import BaseService
from .goals import GoalProgressUpdater
from .milestones import MilestoneEvaluator
from .notifications import NotificationRouter
from .progression import ProgressionCalculator
from .quests import QuestService
from .streaks import StreakTracker


R = TypeVar("R")

PIPELINE_STEPS = ("goal", "xp", "lifetime_totals", "streak", "milestones", "badges", "quests")


class _UserLock:
    """A per-user lock and the number of callers holding or waiting on it."""

    __slots__ = ("lock", "holders")

    def __init__(self) -> None:
        self.lock = threading.Lock()
        self.holders = 0


class SessionCompletionCoordinator(BaseService):
    """Sequences the progression pipeline for one completed session."""

    def __init__(
        self,
        sessions: SessionLogRepository,
        progression: ProgressionCalculator,
        streaks: StreakTracker,
        milestones: MilestoneEvaluator,
        badges: BadgeEvaluator,
        goals: GoalProgressUpdater,
        quests: QuestService,
        router: NotificationRouter,
        clock=None,
        logger=None,
    ) -> None:
        super().__init__(clock=clock, logger=logger)
        self._sessions = sessions
        self._progression = progression
        self._streaks = streaks
        self._milestones = milestones
        self._badges = badges
        self._goals = goals
        self._quests = quests
        self._router = router

        self._locks: Dict[str, _UserLock] = {}
        self._locks_guard = threading.Lock()

    @contextmanager
    def _user_lock(self, user_id: str) -> Iterator[None]:
        with self._locks_guard:
            entry = self._locks.get(user_id)
            if entry is None:
                entry = self._locks[user_id] = _UserLock()
            entry.holders += 1
        try:
            with entry.lock:
                yield
        finally:
            with self._locks_guard:
                entry.holders -= 1
                if entry.holders == 0:
                    del self._locks[user_id]

    @staticmethod
    def validate_summary(summary: Union[SessionSummary, Mapping[str, Any]]) -> SessionSummary:
        """
        Validate raw session data once, at pipeline entry.

        Raises:
            SessionValidationError: If a field is missing, negative or not finite
        """
        if isinstance(summary, SessionSummary):
            return summary
        try:
            return SessionSummary.model_validate(summary)
        except PydanticValidationError as e:
            first = e.errors()[0]
            field = ".".join(str(p) for p in first["loc"])
            raise SessionValidationError(
                f"Invalid session summary: {field}: {first['msg']}",
                field=field,
                details={"errors": len(e.errors())},
            ) from e

    def on_session_completed(
        self,
        user_id: str,
        summary: Union[SessionSummary, Mapping[str, Any]],
        goal_id: Optional[str] = None,
    ) -> SessionOutcome:
        """
        Process a completed session.

        Args:
            user_id: The user who rode
            summary: Session summary (model or raw mapping)
            goal_id: Goal the session counts toward, if any

        Returns:
            SessionOutcome; components that failed are listed in ``failures``

        Raises:
            ValidationError: If the input is malformed (nothing is written)
            UserNotFoundError: If the user has no progression record
        """
        if not user_id:
            raise ValidationError("user_id is required", field="user_id")
        summary = self.validate_summary(summary)

        with self._user_lock(user_id):
            self._progression.get_progression(user_id)
            now = self.now()
            session_id = summary.session_id

            first_run = self._sessions.record(user_id, summary, goal_id, now)
            done = set() if first_run else self._sessions.completed_steps(user_id, session_id)
            if not goal_id:
                done.add("goal")

            if all(step in done for step in PIPELINE_STEPS):
                self.logger.info(f"Session {session_id} for user {user_id} already processed")
                return SessionOutcome(user_id=user_id, session_id=session_id, duplicate=True)

            if first_run:
                self.logger.info(f"Processing session {session_id} for user {user_id}")
            else:
                unfinished = [step for step in PIPELINE_STEPS if step not in done]
                self.logger.info(
                    f"Resuming session {session_id} for user {user_id}: {', '.join(unfinished)}"
                )
            outcome = SessionOutcome(user_id=user_id, session_id=session_id, resumed=not first_run)
            requests: List[NotificationRequest] = []

            update = self._run_step(
                outcome, done, "goal",
                lambda: self._goals.update_goal_from_session(goal_id, summary, user_id=user_id),
            )
            if update is not None:
                outcome.goal = update.goal
                requests.extend(update.notifications)

            award = self._run_step(outcome, done, "xp", lambda: self._progression.award_xp(user_id, summary))
            if award is not None:
                outcome.xp_earned = award.xp_earned
                outcome.total_xp = award.total_xp
                outcome.leveled_up = award.leveled_up
                outcome.new_level = award.new_level
                outcome.rank = award.rank
                requests.extend(award.notifications)

            stats: Optional[LifetimeStats] = self._run_step(
                outcome, done, "lifetime_totals",
                lambda: self._progression.record_session_totals(user_id, summary),
            )

            streak = self._run_step(
                outcome, done, "streak", lambda: self._streaks.update_streak(user_id, summary.ended_at(now))
            )
            if streak is not None:
                outcome.streak = streak.streak
                outcome.streak_increased = streak.increased
                outcome.streak_broken = streak.broken
                requests.extend(streak.notifications)

            if "milestones" not in done:
                if stats is None and "lifetime_totals" in done:
                    # Totals were added by an earlier attempt
                    stats = self._run(
                        outcome, "lifetime_totals", lambda: self._progression.get_progression(user_id).stats
                    )
                if stats is not None:
                    milestones = self._run_step(
                        outcome, done, "milestones", lambda: self._milestones.check_milestones(user_id, stats)
                    )
                    if milestones is not None:
                        outcome.new_milestones = milestones.milestones
                        requests.extend(milestones.notifications)
                        self._refresh_xp(outcome, milestones.xp_awarded)
                else:
                    self.logger.warning(f"Skipping milestones for session {session_id}: lifetime totals unavailable")

            badges = self._run_step(outcome, done, "badges", lambda: self._badges.check_badge_progress(user_id, summary))
            if badges is not None:
                outcome.new_badges = badges.badges
                requests.extend(badges.notifications)

            quest_updates = self._run_step(outcome, done, "quests", lambda: self._quests.apply_session(user_id, summary))
            if quest_updates is not None:
                for quest_update in quest_updates:
                    requests.extend(quest_update.notifications)
                    if quest_update.completed:
                        outcome.completed_quests.append(quest_update.quest)
                        self._refresh_xp(outcome, quest_update.xp_awarded)

            self._dispatch(outcome, requests)

        if outcome.partial:
            self.logger.warning(
                f"Session {session_id} for user {user_id} partially processed: "
                f"{', '.join(sorted(outcome.failures))} failed"
            )
        return outcome

    def _run_step(
        self,
        outcome: SessionOutcome,
        done: Set[str],
        step: str,
        action: Callable[[], R],
    ) -> Optional[R]:
        if step in done:
            return None
        try:
            result = action()
        except TransientStorageError as e:
            # Left unlogged so a replay of the session runs it again
            self._record_failure(outcome, step, e)
            return None
        except Exception as e:
            self._record_failure(outcome, step, e)
            self._mark_step(outcome, step)
            return None
        self._mark_step(outcome, step)
        return result

    def _mark_step(self, outcome: SessionOutcome, step: str) -> None:
        try:
            self._sessions.mark_step(outcome.user_id, outcome.session_id, step, self.now())
        except Exception:
            self.logger.exception(
                f"Could not log step {step} of session {outcome.session_id} (user {outcome.user_id})"
            )

    def _run(self, outcome: SessionOutcome, component: str, action: Callable[[], R]) -> Optional[R]:
        try:
            return action()
        except Exception as e:
            self._record_failure(outcome, component, e)
            return None

    def _record_failure(self, outcome: SessionOutcome, component: str, error: Exception) -> None:
        self.logger.exception(f"{component} failed for session {outcome.session_id} (user {outcome.user_id})")
        outcome.failures[component] = str(error) or error.__class__.__name__

    def _refresh_xp(self, outcome: SessionOutcome, bonus: int) -> None:
        if not bonus:
            return
        progression = self._run(outcome, "xp_refresh", lambda: self._progression.get_progression(outcome.user_id))
        if progression is None:
            return
        outcome.total_xp = progression.xp
        if outcome.new_level is not None and progression.level > outcome.new_level:
            outcome.leveled_up = True
        outcome.new_level = progression.level
        outcome.rank = progression.rank

    def _dispatch(self, outcome: SessionOutcome, requests: List[NotificationRequest]) -> None:
        for request in requests:
            try:
                notification = self._router.route(outcome.user_id, request)
            except Exception as e:
                self.logger.exception(f"Could not store {request.type.value} notification for user {outcome.user_id}")
                outcome.failures.setdefault("notifications", str(e) or e.__class__.__name__)
                continue

            outcome.notifications.append(notification)
            self._mark_source_notified(notification.type, notification.data)

    def _mark_source_notified(self, notification_type: NotificationType, data: Dict[str, Any]) -> None:
        try:
            if notification_type == NotificationType.MILESTONE_ACHIEVED and data.get("milestoneId"):
                self._milestones.mark_notified(data["milestoneId"])
            elif notification_type == NotificationType.BADGE_UNLOCKED and data.get("badgeId"):
                self._badges.mark_notified(data["badgeId"])
        except Exception:
            self.logger.exception(f"Could not mark {notification_type.value} source as notified")

    # -------------------------------------------------------------------------
    # Read side
    # -------------------------------------------------------------------------

    def get_achievement_summary(self, user_id: str) -> AchievementSummary:
        """
        The user's complete progression state.

        Raises:
            UserNotFoundError: If the user has no progression record
        """
        progression = self._progression.get_progression(user_id)
        level = calculate_level_info(progression.xp)
        badges = self._badges.get_badges(user_id)
        milestones = self._milestones.get_milestones(user_id)
        active_quests = self._quests.get_active_quests(user_id)
        position, total_users = self._progression.get_leaderboard_position(user_id)

        return AchievementSummary(
            user_id=user_id,
            xp=progression.xp,
            level=level.level,
            rank=level.rank,
            xp_to_next_level=level.xp_for_next,
            level_progress=level.progress_percent,
            streak=progression.streak,
            longest_streak=progression.longest_streak,
            last_activity_date=progression.last_activity_date,
            badges=badges,
            milestones=milestones,
            quests=active_quests,
            statistics=AchievementStatistics(
                total_badges=len(badges),
                total_milestones=len(milestones),
                active_quests=len(active_quests),
                completed_quests=self._quests.count_quests(user_id, QuestStatus.COMPLETED),
                leaderboard_position=position,
                total_users=total_users,
                lifetime_distance=progression.stats.total_distance,
                lifetime_calories=progression.stats.total_calories,
                lifetime_workouts=progression.stats.total_workouts,
            ),
        )

    def get_goal_progress_summary(self, goal_id: str) -> GoalProgressSummary:
        """
        Raises:
            GoalNotFoundError: If the goal does not exist
        """
        return self._goals.get_goal_progress_summary(goal_id)
