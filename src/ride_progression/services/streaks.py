"""
Consecutive-day activity streaks.

The streak counts calendar days (UTC) with at least one completed session.
Writes go through a version compare-and-set; on conflict the update is
recomputed from a fresh read.
"""

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import List, Optional, Tuple

from ..db.repositories.user_repository import UserProgressionRepository
from ..exceptions import ConcurrencyError
from ..models.notifications import NotificationPriority, NotificationRequest, NotificationType
from ..utils.clock import ensure_utc
from .base import BaseService


STREAK_MILESTONES = (7, 14, 30, 60, 100)


@dataclass
class StreakUpdate:
    """Result of applying one activity to a user's streak."""

    user_id: str
    streak: int
    increased: bool
    broken: bool
    longest_streak: int
    last_activity_date: Optional[date]
    notifications: List[NotificationRequest] = field(default_factory=list)


def next_streak(
    current: int,
    last_activity: Optional[date],
    activity: date,
) -> Tuple[int, bool, bool]:
    """
    Compute the streak after an activity on ``activity``.

    Returns:
        Tuple of (new_streak, increased, broken)
    """
    if last_activity is None:
        return 1, True, False

    days_diff = (activity - last_activity).days
    if days_diff == 0:
        return current, False, False
    if days_diff == 1:
        return current + 1, True, False
    if days_diff > 1:
        return 1, False, True
    # Activity before the last recorded day (late upload)
    return current, False, False


def activity_day(value) -> date:
    """Calendar day (UTC) of a datetime; dates pass through."""
    if isinstance(value, datetime):
        return ensure_utc(value).date()
    return value


class StreakTracker(BaseService):
    """Owns ``streak``, ``longest_streak`` and ``last_activity_date``."""

    def __init__(
        self,
        users: UserProgressionRepository,
        max_retries: int = 3,
        clock=None,
        logger=None,
    ) -> None:
        super().__init__(clock=clock, logger=logger)
        self._users = users
        self._max_retries = max(1, max_retries)

    def update_streak(self, user_id: str, activity_date) -> StreakUpdate:
        """
        Apply an activity to the user's streak.

        Args:
            user_id: The user's unique identifier
            activity_date: Day (or timestamp) of the activity

        Returns:
            StreakUpdate with any streak_milestone notification

        Raises:
            UserNotFoundError: If the user has no progression record
            ConcurrencyError: If every compare-and-set attempt conflicted
        """
        day = activity_day(activity_date)

        for attempt in range(1, self._max_retries + 1):
            progression = self._users.require(user_id)
            last = progression.last_activity_date

            streak, increased, broken = next_streak(progression.streak, last, day)
            longest = max(progression.longest_streak, streak)
            new_last = day if last is None or day >= last else last

            written = self._users.compare_and_set_streak(
                user_id,
                expected_version=progression.version,
                streak=streak,
                longest_streak=longest,
                last_activity_date=new_last,
                now=self.now(),
            )
            if written:
                update = StreakUpdate(
                    user_id=user_id,
                    streak=streak,
                    increased=increased,
                    broken=broken,
                    longest_streak=longest,
                    last_activity_date=new_last,
                )
                if increased and streak in STREAK_MILESTONES:
                    update.notifications.append(self._milestone_notification(streak))
                self.logger.info(f"Streak updated for user {user_id}: {streak} days")
                return update

            self.logger.debug(
                f"Streak write conflict for user {user_id} (attempt {attempt}/{self._max_retries})"
            )

        raise ConcurrencyError(
            f"Streak update for user {user_id} conflicted {self._max_retries} times",
            operation="update_streak",
            details={"user_id": user_id},
        )

    @staticmethod
    def _milestone_notification(streak: int) -> NotificationRequest:
        return NotificationRequest(
            type=NotificationType.STREAK_MILESTONE,
            title=f"🔥 {streak} Day Streak!",
            message=f"Amazing consistency! You've maintained a {streak} day workout streak!",
            priority=NotificationPriority.MEDIUM,
            data={"streak": streak},
        )
