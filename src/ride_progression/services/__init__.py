"""Progression services."""

from .base import BaseService, NotificationTransport, PresenceProvider
from .progression import ProgressionCalculator, XPAward, calculate_workout_xp
from .streaks import StreakTracker, StreakUpdate, next_streak
from .milestones import MILESTONE_THRESHOLDS, MilestoneCheck, MilestoneEvaluator
from .badges import BADGE_CRITERIA, BadgeCheck, BadgeEvaluator
from .goals import GoalProgressUpdater, GoalUpdate, calculate_completion
from .quests import QuestService, QuestUpdate
from .notifications import LoggingTransport, NotificationRouter, NullPresence
from .coordinator import SessionCompletionCoordinator
from .scheduler import MaintenanceReport, MaintenanceResult, MaintenanceScheduler

__all__ = [
    "BaseService",
    "NotificationTransport",
    "PresenceProvider",
    "ProgressionCalculator",
    "XPAward",
    "calculate_workout_xp",
    "StreakTracker",
    "StreakUpdate",
    "next_streak",
    "MILESTONE_THRESHOLDS",
    "MilestoneCheck",
    "MilestoneEvaluator",
    "BADGE_CRITERIA",
    "BadgeCheck",
    "BadgeEvaluator",
    "GoalProgressUpdater",
    "GoalUpdate",
    "calculate_completion",
    "QuestService",
    "QuestUpdate",
    "LoggingTransport",
    "NotificationRouter",
    "NullPresence",
    "SessionCompletionCoordinator",
    "MaintenanceReport",
    "MaintenanceResult",
    "MaintenanceScheduler",
]
