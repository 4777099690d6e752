"""
Lifetime milestones.

A milestone is awarded once per (user, type, value) when a lifetime total
reaches the threshold value. Each one grants ``value * 5`` bonus XP; a grant
that fails is retried on the next evaluation for that user.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from ..db.repositories.milestone_repository import MilestoneRepository
from ..exceptions import ProgressionError
from ..models.achievements import Milestone, MilestoneType
from ..models.notifications import NotificationPriority, NotificationRequest, NotificationType
from ..models.progression import LifetimeStats
from .base import BaseService
from .progression import ProgressionCalculator


MILESTONE_XP_PER_UNIT = 5

# type -> (unit, ascending threshold values)
MILESTONE_THRESHOLDS: Dict[MilestoneType, Tuple[str, Tuple[int, ...]]] = {
    MilestoneType.DISTANCE: ("km", (10, 50, 100, 250, 500, 1000)),
    MilestoneType.WORKOUTS: ("workouts", (5, 10, 25, 50, 100, 250)),
    MilestoneType.CALORIES: ("kcal", (1000, 5000, 10000, 25000, 50000)),
}


def lifetime_value(stats: LifetimeStats, milestone_type: MilestoneType) -> float:
    if milestone_type == MilestoneType.DISTANCE:
        return stats.total_distance
    if milestone_type == MilestoneType.WORKOUTS:
        return stats.total_workouts
    return stats.total_calories


@dataclass
class MilestoneCheck:
    """Milestones newly created by one evaluation."""

    milestones: List[Milestone] = field(default_factory=list)
    xp_awarded: int = 0
    notifications: List[NotificationRequest] = field(default_factory=list)


class MilestoneEvaluator(BaseService):
    """Awards lifetime milestones and their bonus XP."""

    def __init__(
        self,
        milestones: MilestoneRepository,
        progression: ProgressionCalculator,
        clock=None,
        logger=None,
    ) -> None:
        super().__init__(clock=clock, logger=logger)
        self._milestones = milestones
        self._progression = progression

    def check_milestones(self, user_id: str, stats: LifetimeStats) -> MilestoneCheck:
        """
        Create every milestone the lifetime totals have reached.

        Safe to call repeatedly: a milestone that already exists is skipped,
        including one inserted concurrently by another completion. Bonus XP
        still owed for an earlier milestone is granted first.

        Args:
            user_id: The user's unique identifier
            stats: Lifetime totals including the current session

        Returns:
            MilestoneCheck with the milestones created by this call
        """
        result = MilestoneCheck()
        now = self.now()

        for pending in self._milestones.list_unrewarded(user_id):
            self.logger.info(f"Retrying bonus XP for milestone {pending.title} of user {user_id}")
            self._grant_reward(pending, result)

        for milestone_type, (unit, thresholds) in MILESTONE_THRESHOLDS.items():
            reached = lifetime_value(stats, milestone_type)
            for value in thresholds:
                if reached < value:
                    break

                created = self._milestones.insert_if_absent(
                    Milestone(
                        user_id=user_id,
                        type=milestone_type,
                        value=value,
                        unit=unit,
                        achieved_at=now,
                        xp_reward=value * MILESTONE_XP_PER_UNIT,
                    )
                )
                if created is None:
                    continue

                self.logger.info(f"Milestone achieved for user {user_id}: {value} {unit}")
                result.milestones.append(created)
                result.notifications.append(self._milestone_notification(created))
                self._grant_reward(created, result)

        return result

    def _grant_reward(self, milestone: Milestone, result: MilestoneCheck) -> None:
        if not self._milestones.claim_reward(milestone.id):
            return
        try:
            award = self._progression.grant_bonus_xp(
                milestone.user_id,
                milestone.xp_reward,
                source=f"milestone:{milestone.type.value}:{milestone.value}",
            )
        except ProgressionError as e:
            self.logger.error(
                f"Could not grant {milestone.xp_reward} XP for milestone "
                f"{milestone.title} to user {milestone.user_id}: {e}"
            )
            self._milestones.release_reward(milestone.id)
            return
        milestone.reward_granted = True
        result.xp_awarded += award.xp_earned
        result.notifications.extend(award.notifications)

    def get_milestones(self, user_id: str, limit: Optional[int] = None) -> List[Milestone]:
        return self._milestones.list_for_user(user_id, limit=limit)

    def get_unnotified(self, user_id: str) -> List[Milestone]:
        return [m for m in self._milestones.list_for_user(user_id) if not m.notified]

    def mark_notified(self, milestone_id: int) -> bool:
        return self._milestones.mark_notified(milestone_id)

    @staticmethod
    def _milestone_notification(milestone: Milestone) -> NotificationRequest:
        return NotificationRequest(
            type=NotificationType.MILESTONE_ACHIEVED,
            title="🏆 Milestone Achieved!",
            message=(
                f"You've reached {milestone.value} {milestone.unit}! "
                f"Earned {milestone.xp_reward} bonus XP."
            ),
            priority=NotificationPriority.MEDIUM,
            data={
                "milestoneId": milestone.id,
                "milestoneType": milestone.type.value,
                "value": milestone.value,
                "unit": milestone.unit,
                "xpReward": milestone.xp_reward,
            },
        )
