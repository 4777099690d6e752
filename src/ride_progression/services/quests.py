"""
Quest lifecycle: generation, session-driven progress, completion rewards and
expiry.
"""

from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta, timezone
from typing import Dict, List, Optional

from ..db.repositories.quest_repository import QuestRepository
from ..exceptions import ProgressionError, QuestNotFoundError
from ..models.notifications import NotificationPriority, NotificationRequest, NotificationType
from ..models.quests import (
    Quest,
    QuestCategory,
    QuestDifficulty,
    QuestProgress,
    QuestRewards,
    QuestStatus,
    QuestType,
)
from ..models.session import SessionSummary
from .base import BaseService
from .progression import ProgressionCalculator


# Templates: (slug, title, description, category, target, xp, difficulty, icon)
DAILY_QUESTS = (
    ("morning-ride", "Morning Ride", "Complete a 5km cycling session",
     QuestCategory.DISTANCE, 5, 50, QuestDifficulty.EASY, "🚴"),
    ("calorie-burner", "Calorie Burner", "Burn 300 calories today",
     QuestCategory.CALORIES, 300, 75, QuestDifficulty.MEDIUM, "🔥"),
)

WEEKLY_QUESTS = (
    ("weekly-explorer", "Weekly Explorer", "Ride 50km this week",
     QuestCategory.DISTANCE, 50, 200, QuestDifficulty.MEDIUM, "🗺️"),
    ("saddle-time", "Saddle Time", "Spend 180 minutes cycling this week",
     QuestCategory.TIME, 180, 150, QuestDifficulty.MEDIUM, "⏱️"),
)

SESSION_CATEGORIES = (QuestCategory.DISTANCE, QuestCategory.TIME, QuestCategory.CALORIES)


def session_contribution(summary: SessionSummary) -> Dict[QuestCategory, float]:
    """How much a session advances each session-driven category."""
    return {
        QuestCategory.DISTANCE: summary.total_distance,
        QuestCategory.TIME: summary.duration_minutes,
        QuestCategory.CALORIES: summary.total_calories,
    }


def _end_of_day(day: date) -> datetime:
    return datetime.combine(day, time.max, tzinfo=timezone.utc)


@dataclass
class QuestUpdate:
    """Result of adding progress to one quest."""

    quest: Quest
    completed: bool = False
    xp_awarded: int = 0
    notifications: List[NotificationRequest] = field(default_factory=list)


class QuestService(BaseService):
    """Creates quests and moves them through active -> completed / expired."""

    def __init__(
        self,
        quests: QuestRepository,
        progression: ProgressionCalculator,
        clock=None,
        logger=None,
    ) -> None:
        super().__init__(clock=clock, logger=logger)
        self._quests = quests
        self._progression = progression

    # -------------------------------------------------------------------------
    # Generation
    # -------------------------------------------------------------------------

    def create_daily_quests(self, user_id: str, day: Optional[date] = None) -> List[Quest]:
        """
        Create the day's quests, ending at the end of ``day`` (UTC).

        Quest IDs are derived from the user and day, so calling this twice for
        the same day creates nothing the second time.
        """
        day = day or self.now().date()
        start = datetime.combine(day, time.min, tzinfo=timezone.utc)
        return self._create_from_templates(
            user_id, QuestType.DAILY, DAILY_QUESTS, day.isoformat(), start, _end_of_day(day)
        )

    def create_weekly_quests(self, user_id: str, day: Optional[date] = None) -> List[Quest]:
        """Create the ISO week's quests, ending on the week's Sunday."""
        day = day or self.now().date()
        monday = day - timedelta(days=day.weekday())
        year, week, _ = day.isocalendar()
        start = datetime.combine(monday, time.min, tzinfo=timezone.utc)
        return self._create_from_templates(
            user_id,
            QuestType.WEEKLY,
            WEEKLY_QUESTS,
            f"{year}-W{week:02d}",
            start,
            _end_of_day(monday + timedelta(days=6)),
        )

    def create_quest(self, quest: Quest) -> Quest:
        """Store a custom quest (challenge, special, ...)."""
        if not self._quests.insert_if_absent(quest, self.now()):
            self.logger.debug(f"Quest {quest.id} already exists")
            return self.get_quest(quest.id)
        return quest

    def _create_from_templates(
        self,
        user_id: str,
        quest_type: QuestType,
        templates,
        period: str,
        start: datetime,
        end: datetime,
    ) -> List[Quest]:
        now = self.now()
        created = []
        for slug, title, description, category, target, xp, difficulty, icon in templates:
            quest = Quest(
                id=f"{user_id}:{quest_type.value}:{period}:{slug}",
                user_id=user_id,
                title=title,
                description=description,
                quest_type=quest_type,
                category=category,
                progress=QuestProgress(target=target),
                start_date=start,
                end_date=end,
                rewards=QuestRewards(xp=xp),
                difficulty=difficulty,
                icon=icon,
            )
            if self._quests.insert_if_absent(quest, now):
                created.append(quest)

        if created:
            self.logger.info(f"Created {len(created)} {quest_type.value} quests for user {user_id} ({period})")
        return created

    # -------------------------------------------------------------------------
    # Progress
    # -------------------------------------------------------------------------

    def update_progress(self, quest_id: str, value: float) -> QuestUpdate:
        """
        Add progress to a quest, clamped at its target.

        Reaching the target completes the quest and grants its XP reward.
        Quests that are not active are returned unchanged.

        Raises:
            QuestNotFoundError: If the quest does not exist
        """
        quest = self.get_quest(quest_id)
        return self._advance(quest, value)

    def apply_session(self, user_id: str, summary: SessionSummary) -> List[QuestUpdate]:
        """
        Advance the user's active quests by a completed session.

        Only distance, time and calorie quests are session driven.

        Returns:
            One QuestUpdate per quest that received progress
        """
        contribution = session_contribution(summary)
        updates = []
        for quest in self._quests.list_active(user_id, self.now()):
            if quest.category not in SESSION_CATEGORIES:
                continue
            value = contribution[quest.category]
            if value <= 0:
                continue
            updates.append(self._advance(quest, value))
        return updates

    def _advance(self, quest: Quest, value: float) -> QuestUpdate:
        now = self.now()
        before = quest.progress.current
        completed = quest.apply_progress(value, now)

        if quest.progress.current == before and not completed:
            return QuestUpdate(quest=quest)

        if not self._quests.save_progress(quest, now):
            # Completed or expired by someone else since we read it
            return QuestUpdate(quest=self.get_quest(quest.id))

        update = QuestUpdate(quest=quest, completed=completed)
        if completed:
            self.logger.info(f"Quest completed by user {quest.user_id}: {quest.title}")
            update.notifications.append(self._completed_notification(quest))
            self._grant_reward(quest, update)
        return update

    def _grant_reward(self, quest: Quest, update: QuestUpdate) -> None:
        if quest.rewards.xp <= 0:
            return
        try:
            award = self._progression.grant_bonus_xp(
                quest.user_id, quest.rewards.xp, source=f"quest:{quest.id}"
            )
        except ProgressionError as e:
            self.logger.error(
                f"Could not grant {quest.rewards.xp} XP for quest {quest.id} to user {quest.user_id}: {e}"
            )
            return
        update.xp_awarded = award.xp_earned
        update.notifications.extend(award.notifications)

    # -------------------------------------------------------------------------
    # Expiry and queries
    # -------------------------------------------------------------------------

    def expire_overdue(self, now: Optional[datetime] = None) -> int:
        """Expire every active quest whose end date has passed."""
        expired = self._quests.expire_overdue(now or self.now())
        if expired:
            self.logger.info(f"Expired {expired} overdue quests")
        return expired

    def get_quest(self, quest_id: str) -> Quest:
        quest = self._quests.get(quest_id)
        if quest is None:
            raise QuestNotFoundError(quest_id)
        return quest

    def get_active_quests(self, user_id: str) -> List[Quest]:
        return self._quests.list_active(user_id, self.now())

    def get_user_quests(
        self,
        user_id: str,
        status: Optional[QuestStatus] = None,
        quest_type: Optional[QuestType] = None,
    ) -> List[Quest]:
        return self._quests.list_for_user(user_id, status=status, quest_type=quest_type)

    def count_quests(self, user_id: str, status: QuestStatus) -> int:
        return self._quests.count_by_status(user_id, status)

    @staticmethod
    def _completed_notification(quest: Quest) -> NotificationRequest:
        return NotificationRequest(
            type=NotificationType.QUEST_COMPLETED,
            title=f"{quest.icon} Quest Complete!",
            message=f'You completed "{quest.title}"! Earned {quest.rewards.xp} XP.',
            priority=NotificationPriority.MEDIUM,
            data={
                "questId": quest.id,
                "questType": quest.quest_type.value,
                "xpReward": quest.rewards.xp,
            },
        )
