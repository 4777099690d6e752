"""Wiring for the progression engine.

``build_engine`` creates one ProgressionDatabase and passes it, with the
presence and transport collaborators, explicitly into every service.
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Union

from .config import Settings, get_settings
from .db.database import ProgressionDatabase
from .db.repositories import (
    BadgeRepository,
    GoalRepository,
    MilestoneRepository,
    NotificationRepository,
    QuestRepository,
    SessionLogRepository,
    UserProgressionRepository,
)
from .models.progression import UserProgression
from .services.badges import BadgeEvaluator
from .services.base import NotificationTransport, PresenceProvider
from .services.coordinator import SessionCompletionCoordinator
from .services.goals import GoalProgressUpdater
from .services.milestones import MilestoneEvaluator
from .services.notifications import NotificationRouter
from .services.progression import ProgressionCalculator
from .services.quests import QuestService
from .services.scheduler import MaintenanceScheduler
from .services.streaks import StreakTracker
from .utils.clock import Clock

logger = logging.getLogger(__name__)


@dataclass
class ProgressionEngine:
    """Every service of the engine, sharing one database."""

    database: ProgressionDatabase
    progression: ProgressionCalculator
    streaks: StreakTracker
    milestones: MilestoneEvaluator
    badges: BadgeEvaluator
    goals: GoalProgressUpdater
    quests: QuestService
    notifications: NotificationRouter
    coordinator: SessionCompletionCoordinator
    scheduler: MaintenanceScheduler

    def register_user(self, user_id: str) -> UserProgression:
        """Create the progression record that lives with a user account."""
        return self.progression.initialize_user(user_id)

    def on_session_completed(self, user_id: str, summary, goal_id: Optional[str] = None):
        return self.coordinator.on_session_completed(user_id, summary, goal_id)

    def get_achievement_summary(self, user_id: str):
        return self.coordinator.get_achievement_summary(user_id)

    def get_goal_progress_summary(self, goal_id: str):
        return self.coordinator.get_goal_progress_summary(goal_id)


def build_engine(
    settings: Optional[Settings] = None,
    db_path: Optional[Union[str, Path]] = None,
    presence: Optional[PresenceProvider] = None,
    transport: Optional[NotificationTransport] = None,
    clock: Optional[Clock] = None,
) -> ProgressionEngine:
    """
    Build a fully wired engine.

    Args:
        settings: Settings to use (defaults to ``get_settings()``)
        db_path: Overrides ``settings.progression_db_path``
        presence: Live-connection lookup (defaults to always offline)
        transport: Outbound delivery (defaults to logging only)
        clock: Time source shared by every service
    """
    settings = settings or get_settings()
    database = ProgressionDatabase(
        db_path or settings.progression_db_path,
        timeout=settings.db_timeout_seconds,
    )

    users = UserProgressionRepository(database)

    progression = ProgressionCalculator(users, clock=clock)
    streaks = StreakTracker(users, max_retries=settings.streak_write_retries, clock=clock)
    milestones = MilestoneEvaluator(MilestoneRepository(database), progression, clock=clock)
    badges = BadgeEvaluator(BadgeRepository(database), clock=clock)
    goals = GoalProgressUpdater(GoalRepository(database), clock=clock)
    quests = QuestService(QuestRepository(database), progression, clock=clock)
    router = NotificationRouter(
        NotificationRepository(database),
        presence=presence,
        transport=transport,
        ttl_days=settings.notification_ttl_days,
        cleanup_read_after_days=settings.cleanup_read_after_days,
        clock=clock,
    )
    coordinator = SessionCompletionCoordinator(
        SessionLogRepository(database),
        progression=progression,
        streaks=streaks,
        milestones=milestones,
        badges=badges,
        goals=goals,
        quests=quests,
        router=router,
        clock=clock,
    )
    scheduler = MaintenanceScheduler(
        quests,
        router,
        users,
        enabled=settings.maintenance_enabled,
        hour_utc=settings.maintenance_hour_utc,
        clock=clock,
    )

    logger.debug(f"Progression engine built on {database.db_path}")
    return ProgressionEngine(
        database=database,
        progression=progression,
        streaks=streaks,
        milestones=milestones,
        badges=badges,
        goals=goals,
        quests=quests,
        notifications=router,
        coordinator=coordinator,
        scheduler=scheduler,
    )
