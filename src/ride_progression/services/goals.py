"""
Goal progress tracking from completed sessions.

Handles:
- Linking sessions to goals (each session counts once)
- Cumulative totals and completion percentage
- Weekly buckets for chart rendering
- Estimated weight curve for weight-loss goals
- 25/50/75/100% progress notifications
"""

import math
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import List, Optional

from pydantic import ValidationError as PydanticValidationError

from ..db.repositories.goal_repository import GoalRepository
from ..exceptions import GoalNotFoundError, ValidationError
from ..models.goals import (
    Goal,
    GoalProgressSummary,
    GoalSessionPage,
    GoalStatistics,
    GoalStatus,
    GoalType,
    WeeklyProgress,
    WeightEntry,
    WeightSource,
)
from ..models.notifications import (
    ActionType,
    NotificationAction,
    NotificationPriority,
    NotificationRequest,
    NotificationType,
)
from ..models.session import SessionSummary
from ..utils.clock import ensure_utc
from .base import BaseService


KCAL_PER_KG = 7700
COMPLETION_THRESHOLDS = (25, 50, 75, 100)
RECENT_SESSION_LIMIT = 10

SECONDS_PER_DAY = 86400


def _days_between(start: datetime, end: datetime) -> int:
    """Whole days from start to end, rounded up (negative if end is earlier)."""
    return math.ceil((end - start).total_seconds() / SECONDS_PER_DAY)


def time_progress(goal: Goal, now: datetime) -> float:
    """Share of the goal's time window that has elapsed, 0-100."""
    total_days = _days_between(goal.start_date, goal.target_date)
    if total_days <= 0:
        return 100.0
    days_passed = _days_between(goal.start_date, now)
    return max(0.0, min(days_passed / total_days * 100, 100.0))


def calculate_completion(goal: Goal, now: datetime) -> float:
    """
    Completion percentage for a goal, clamped to [0, 100].

    - weight_loss / muscle_gain: 70% weight progress, 30% time progress
    - maintenance: 60% workout consistency, 40% time progress
    - anything else: time progress only
    """
    elapsed = time_progress(goal, now)

    if goal.goal_type.tracks_weight:
        remaining = abs(goal.target_weight - goal.current_weight)
        total_change = abs(goal.target_weight - goal.initial_weight)
        weight_progress = (total_change - remaining) / total_change * 100 if total_change > 0 else 0.0
        completion = weight_progress * 0.7 + elapsed * 0.3
    elif goal.goal_type == GoalType.MAINTENANCE:
        days_passed = _days_between(goal.start_date, now)
        # Roughly three to four workouts per week
        expected_workouts = math.floor(days_passed / 2)
        workout_progress = (
            min(goal.progress_data.total_workouts / expected_workouts * 100, 100.0)
            if expected_workouts > 0
            else 0.0
        )
        completion = workout_progress * 0.6 + elapsed * 0.4
    else:
        completion = elapsed

    return max(0.0, min(completion, 100.0))


def add_to_weekly_progress(goal: Goal, summary: SessionSummary, session_end: datetime) -> WeeklyProgress:
    """Add a session to its weekly bucket, creating the bucket if needed."""
    week_number = math.floor((session_end - goal.start_date) / timedelta(days=7))

    bucket = next((w for w in goal.weekly_progress if w.week_number == week_number), None)
    if bucket is None:
        week_start = goal.start_date + timedelta(days=week_number * 7)
        bucket = WeeklyProgress(
            week_number=week_number,
            week_start=week_start,
            week_end=week_start + timedelta(days=6),
        )
        goal.weekly_progress.append(bucket)

    bucket.total_distance += summary.total_distance
    bucket.total_calories += summary.total_calories
    bucket.workout_count += 1
    if summary.avg_speed:
        bucket.avg_speed = (
            bucket.avg_speed * (bucket.workout_count - 1) + summary.avg_speed
        ) / bucket.workout_count

    goal.weekly_progress.sort(key=lambda w: w.week_number)
    return bucket


def estimate_weight_change(goal: Goal, calories: float, when: datetime) -> Optional[WeightEntry]:
    """Lower the estimated weight of a weight-loss goal by the burned calories."""
    if goal.goal_type != GoalType.WEIGHT_LOSS or calories <= 0:
        return None

    estimated = goal.current_weight - calories / KCAL_PER_KG
    entry = WeightEntry(date=when, weight=estimated, source=WeightSource.ESTIMATED)
    goal.weight_history.append(entry)
    goal.current_weight = estimated
    return entry


@dataclass
class GoalUpdate:
    """Result of applying a session to a goal."""

    goal: Goal
    linked: bool
    previous_percentage: float
    notifications: List[NotificationRequest] = field(default_factory=list)

    @property
    def completion_percentage(self) -> float:
        return self.goal.progress_data.completion_percentage


class GoalProgressUpdater(BaseService):
    """Applies completed sessions to goals and reports goal progress."""

    def __init__(self, goals: GoalRepository, clock=None, logger=None) -> None:
        super().__init__(clock=clock, logger=logger)
        self._goals = goals

    def create_goal(
        self,
        user_id: str,
        goal_type: GoalType,
        start_date: datetime,
        target_date: datetime,
        current_weight: float,
        target_weight: float,
        goal_id: Optional[str] = None,
    ) -> Goal:
        """
        Create an active goal. The starting weight opens the weight history.

        Raises:
            ValidationError: If a field is out of range
        """
        now = self.now()
        try:
            goal = Goal(
                id=goal_id or str(uuid.uuid4()),
                user_id=user_id,
                goal_type=goal_type,
                start_date=start_date,
                target_date=target_date,
                current_weight=current_weight,
                target_weight=target_weight,
                weight_history=[
                    WeightEntry(
                        date=ensure_utc(start_date),
                        weight=current_weight,
                        source=WeightSource.INITIAL,
                    )
                ],
            )
        except PydanticValidationError as e:
            first = e.errors()[0]
            raise ValidationError(
                f"Invalid goal: {first['msg']}",
                field=".".join(str(p) for p in first["loc"]),
            ) from e

        goal.progress_data.last_updated = now
        created = self._goals.create(goal, now)
        self.logger.info(f"Created {goal_type.value} goal {created.id} for user {user_id}")
        return created

    def get_goal(self, goal_id: str) -> Goal:
        goal = self._goals.get(goal_id)
        if goal is None:
            raise GoalNotFoundError(goal_id)
        return goal

    def update_goal_from_session(
        self,
        goal_id: str,
        summary: SessionSummary,
        user_id: Optional[str] = None,
    ) -> GoalUpdate:
        """
        Apply a completed session to a goal.

        A session already linked to the goal, or a goal that is no longer
        active, leaves the goal unchanged (``linked`` is False).

        Args:
            goal_id: The goal to credit
            summary: The completed session
            user_id: The rider; when given, the goal must belong to them

        Raises:
            GoalNotFoundError: If the goal does not exist or belongs to another
                user (nothing is written)
        """
        stored = self.get_goal(goal_id)
        if user_id is not None and stored.user_id != user_id:
            self.logger.warning(f"User {user_id} sent session {summary.session_id} for goal {goal_id} of another user")
            raise GoalNotFoundError(goal_id)
        previous = stored.progress_data.completion_percentage

        if stored.status != GoalStatus.ACTIVE:
            self.logger.info(f"Goal {goal_id} is {stored.status.value}; session {summary.session_id} not counted")
            return GoalUpdate(goal=stored, linked=False, previous_percentage=previous)

        if summary.session_id in stored.linked_sessions:
            self.logger.debug(f"Session {summary.session_id} already counted toward goal {goal_id}")
            return GoalUpdate(goal=stored, linked=False, previous_percentage=previous)

        now = self.now()
        session_end = summary.ended_at(now)
        goal = stored.model_copy(deep=True)

        goal.linked_sessions.append(summary.session_id)
        progress = goal.progress_data
        progress.total_distance += summary.total_distance
        progress.total_calories += summary.total_calories
        progress.total_workouts += 1
        progress.last_updated = now
        progress.completion_percentage = calculate_completion(goal, now)

        add_to_weekly_progress(goal, summary, session_end)
        estimate_weight_change(goal, summary.total_calories, now)

        if progress.completion_percentage >= 100:
            goal.status = GoalStatus.COMPLETED

        if not self._goals.save_with_session(goal, summary, now):
            # Linked by a concurrent completion between our read and write
            self.logger.debug(f"Session {summary.session_id} was linked to goal {goal_id} concurrently")
            return GoalUpdate(goal=self.get_goal(goal_id), linked=False, previous_percentage=previous)

        update = GoalUpdate(goal=goal, linked=True, previous_percentage=previous)
        update.notifications.extend(self._threshold_notifications(goal, previous))

        self.logger.info(
            f"Goal {goal_id} updated: {progress.total_distance:.2f} km, "
            f"{progress.total_calories:.0f} kcal, {progress.total_workouts} workouts, "
            f"{progress.completion_percentage:.1f}% complete"
        )
        if goal.status == GoalStatus.COMPLETED:
            self.logger.info(f"Goal {goal_id} completed")
        return update

    def get_goal_progress_summary(self, goal_id: str) -> GoalProgressSummary:
        """
        Everything needed to render a goal's progress.

        Raises:
            GoalNotFoundError: If the goal does not exist
        """
        goal = self.get_goal(goal_id)
        now = self.now()
        progress = goal.progress_data
        workouts = progress.total_workouts

        statistics = GoalStatistics(
            total_sessions=len(goal.linked_sessions),
            average_distance=round(progress.total_distance / workouts, 2) if workouts else 0.0,
            average_calories=round(progress.total_calories / workouts) if workouts else 0.0,
            days_remaining=_days_between(now, goal.target_date),
            days_elapsed=_days_between(goal.start_date, now),
        )

        return GoalProgressSummary(
            goal=goal,
            progress=progress,
            weekly_progress=goal.weekly_progress,
            weight_history=goal.weight_history,
            recent_sessions=self._goals.list_sessions(goal_id, limit=RECENT_SESSION_LIMIT),
            statistics=statistics,
        )

    def get_goal_sessions(self, goal_id: str, limit: int = 50, offset: int = 0) -> GoalSessionPage:
        """
        Sessions linked to a goal, newest first.

        Raises:
            GoalNotFoundError: If the goal does not exist
        """
        self.get_goal(goal_id)
        limit = max(1, limit)
        offset = max(0, offset)
        total = self._goals.count_sessions(goal_id)
        return GoalSessionPage(
            sessions=self._goals.list_sessions(goal_id, limit=limit, offset=offset),
            total=total,
            limit=limit,
            offset=offset,
            has_more=offset + limit < total,
        )

    def list_goals(self, user_id: str, status: Optional[GoalStatus] = None) -> List[Goal]:
        return self._goals.list_for_user(user_id, status=status)

    @staticmethod
    def _threshold_notifications(goal: Goal, previous: float) -> List[NotificationRequest]:
        current = goal.progress_data.completion_percentage
        requests = []

        for threshold in COMPLETION_THRESHOLDS:
            if not previous < threshold <= current:
                continue

            if threshold == 100:
                title = "🎉 Goal Completed!"
                message = f"Congratulations! You've achieved your {goal.goal_type.value.replace('_', ' ')} goal!"
            elif threshold == 75:
                title = "🚀 Almost There!"
                message = f"You're {threshold}% complete! Keep pushing!"
            elif threshold == 50:
                title = "💪 Halfway There!"
                message = "You've reached the halfway point of your goal!"
            else:
                title = f"✨ {threshold}% Complete!"
                message = f"Great progress! You're {threshold}% of the way to your goal!"

            requests.append(
                NotificationRequest(
                    type=NotificationType.GOAL_PROGRESS,
                    title=title,
                    message=message,
                    priority=NotificationPriority.HIGH if threshold == 100 else NotificationPriority.MEDIUM,
                    actions=[
                        NotificationAction(
                            type=ActionType.NAVIGATION,
                            label="View Progress",
                            data={"route": "/goal-details", "goalId": goal.id},
                            is_primary=True,
                        )
                    ],
                    data={
                        "goalId": goal.id,
                        "completionPercentage": current,
                        "milestone": threshold,
                        "totalDistance": goal.progress_data.total_distance,
                        "totalCalories": goal.progress_data.total_calories,
                        "totalWorkouts": goal.progress_data.total_workouts,
                    },
                )
            )

        return requests
