"""
Progression calculator.

Handles:
- XP earned from a completed session
- Cumulative XP, level and rank
- Lifetime distance/calorie/workout totals
"""

import math
from dataclasses import dataclass, field
from typing import List, Tuple

from ..db.repositories.user_repository import UserProgressionRepository
from ..models.notifications import NotificationPriority, NotificationRequest, NotificationType
from ..models.progression import (
    LifetimeStats,
    Rank,
    UserProgression,
    calculate_level,
    calculate_rank,
    xp_to_next_level,
)
from ..models.session import SessionSummary
from .base import BaseService


# =============================================================================
# XP Formula
# =============================================================================

BASE_SESSION_XP = 50
XP_PER_KM = 10
XP_PER_MINUTE = 1
CALORIES_PER_XP = 10

# (exclusive lower bound, bonus), highest first
SPEED_BONUS_TIERS = ((25, 30), (20, 20), (15, 10))
POWER_BONUS_TIERS = ((200, 40), (150, 25), (100, 15))


def _tier_bonus(value: float, tiers) -> int:
    for threshold, bonus in tiers:
        if value > threshold:
            return bonus
    return 0


def calculate_workout_xp(summary: SessionSummary) -> int:
    """
    XP earned for one session.

    base 50 + 10/km + 1/minute + calories/10 + speed tier + power tier,
    floored once at the end.
    """
    xp = (
        BASE_SESSION_XP
        + summary.total_distance * XP_PER_KM
        + summary.duration_minutes * XP_PER_MINUTE
        + summary.total_calories / CALORIES_PER_XP
        + _tier_bonus(summary.avg_speed, SPEED_BONUS_TIERS)
        + _tier_bonus(summary.avg_power, POWER_BONUS_TIERS)
    )
    return math.floor(xp)


@dataclass
class XPAward:
    """Result of adding XP to a user."""

    user_id: str
    xp_earned: int
    total_xp: int
    previous_xp: int
    previous_level: int
    new_level: int
    rank: Rank
    xp_to_next_level: int
    source: str = "workout"
    notifications: List[NotificationRequest] = field(default_factory=list)

    @property
    def leveled_up(self) -> bool:
        return self.new_level > self.previous_level


class ProgressionCalculator(BaseService):
    """Owns XP, level, rank and lifetime totals on UserProgression."""

    def __init__(self, users: UserProgressionRepository, clock=None, logger=None) -> None:
        super().__init__(clock=clock, logger=logger)
        self._users = users

    def initialize_user(self, user_id: str) -> UserProgression:
        """Create the user's progression record (idempotent)."""
        progression = self._users.create(user_id, self.now())
        self.logger.debug(f"Progression ready for user {user_id}")
        return progression

    def get_progression(self, user_id: str) -> UserProgression:
        """
        Raises:
            UserNotFoundError: If the user has no progression record
        """
        return self._users.require(user_id)

    def get_leaderboard_position(self, user_id: str) -> Tuple[int, int]:
        """Return (position, total users) when ranked by XP."""
        return self._users.get_leaderboard_position(user_id)

    def award_xp(self, user_id: str, summary: SessionSummary) -> XPAward:
        """
        Award XP for a completed session.

        Raises:
            UserNotFoundError: If the user has no progression record
        """
        return self._add_xp(user_id, calculate_workout_xp(summary), source="workout")

    def grant_bonus_xp(self, user_id: str, amount: int, source: str) -> XPAward:
        """
        Grant reward XP (milestones, quests) with the same level-up handling.

        Raises:
            UserNotFoundError: If the user has no progression record
        """
        return self._add_xp(user_id, max(int(amount), 0), source=source)

    def record_session_totals(self, user_id: str, summary: SessionSummary) -> LifetimeStats:
        """Add one session to the lifetime totals and return the new totals."""
        return self._users.add_session_totals(
            user_id,
            summary.total_distance,
            summary.total_calories,
            self.now(),
        )

    def _add_xp(self, user_id: str, amount: int, source: str) -> XPAward:
        previous_xp, new_xp = self._users.increment_xp(user_id, amount, self.now())
        previous_level = calculate_level(previous_xp)
        new_level = calculate_level(new_xp)

        award = XPAward(
            user_id=user_id,
            xp_earned=amount,
            total_xp=new_xp,
            previous_xp=previous_xp,
            previous_level=previous_level,
            new_level=new_level,
            rank=calculate_rank(new_level),
            xp_to_next_level=xp_to_next_level(new_xp),
            source=source,
        )

        self.logger.info(f"Added {amount} XP from {source} to user {user_id}. Total: {new_xp}")

        if award.leveled_up:
            self.logger.info(f"Level up for user {user_id}! {previous_level} -> {new_level}")
            award.notifications.append(self._level_up_notification(award))

        return award

    @staticmethod
    def _level_up_notification(award: XPAward) -> NotificationRequest:
        return NotificationRequest(
            type=NotificationType.LEVEL_UP,
            title=f"Level {award.new_level} Reached!",
            message=(
                f"Congratulations! You've reached level {award.new_level}. "
                f"Your rank is now: {award.rank.value}"
            ),
            priority=NotificationPriority.MEDIUM,
            data={
                "level": award.new_level,
                "previousLevel": award.previous_level,
                "rank": award.rank.value,
                "xpEarned": award.xp_earned,
                "source": award.source,
            },
        )

