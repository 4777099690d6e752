"""Per-session performance badges."""

from dataclasses import dataclass, field
from typing import List

from ..db.repositories.badge_repository import BadgeRepository
from ..models.achievements import Badge, BadgeType
from ..models.notifications import NotificationPriority, NotificationRequest, NotificationType
from ..models.session import SessionSummary
from .base import BaseService


@dataclass(frozen=True)
class BadgeCriteria:
    name: str
    type: BadgeType
    field: str
    required: float
    description: str


BADGE_CRITERIA = (
    BadgeCriteria("Speed Demon", BadgeType.SPEED, "avg_speed", 30, "Maintain 30+ km/h average speed"),
    BadgeCriteria("Endurance King", BadgeType.DISTANCE, "total_distance", 50, "Complete a 50+ km ride"),
    BadgeCriteria("Power House", BadgeType.POWER, "avg_power", 250, "Maintain 250+ watts average power"),
    BadgeCriteria(
        "Calorie Crusher",
        BadgeType.CALORIES,
        "total_calories",
        1000,
        "Burn 1000+ calories in one session",
    ),
)


@dataclass
class BadgeCheck:
    """Badges newly awarded for one session."""

    badges: List[Badge] = field(default_factory=list)
    notifications: List[NotificationRequest] = field(default_factory=list)


class BadgeEvaluator(BaseService):
    """Awards each badge at most once per user; badges are never upgraded."""

    def __init__(self, badges: BadgeRepository, clock=None, logger=None) -> None:
        super().__init__(clock=clock, logger=logger)
        self._badges = badges

    def check_badge_progress(self, user_id: str, summary: SessionSummary) -> BadgeCheck:
        """
        Award the badges this session qualifies for.

        Args:
            user_id: The user's unique identifier
            summary: The completed session

        Returns:
            BadgeCheck with badges created by this call
        """
        result = BadgeCheck()
        now = self.now()

        for criteria in BADGE_CRITERIA:
            session_value = getattr(summary, criteria.field)
            if session_value < criteria.required:
                continue

            badge = self._badges.insert_if_absent(
                Badge(
                    user_id=user_id,
                    name=criteria.name,
                    type=criteria.type,
                    description=criteria.description,
                    awarded_at=now,
                    metadata={
                        "sessionValue": session_value,
                        "requiredValue": criteria.required,
                    },
                )
            )
            if badge is None:
                continue

            self.logger.info(f"Badge awarded to user {user_id}: {badge.name}")
            result.badges.append(badge)
            result.notifications.append(
                NotificationRequest(
                    type=NotificationType.BADGE_UNLOCKED,
                    title="⚡ Badge Unlocked!",
                    message=f'You\'ve earned the "{badge.name}" badge! {badge.description}',
                    priority=NotificationPriority.MEDIUM,
                    data={
                        "badgeId": badge.id,
                        "badgeName": badge.name,
                        "badgeType": badge.type.value,
                        "description": badge.description,
                    },
                )
            )

        return result

    def get_badges(self, user_id: str) -> List[Badge]:
        return self._badges.list_for_user(user_id)

    def mark_notified(self, badge_id: int) -> bool:
        return self._badges.mark_notified(badge_id)
