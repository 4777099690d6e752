"""Data models for the ride progression engine."""

from .base import to_camel
from .session import SessionSummary
from .progression import (
    LevelInfo,
    LifetimeStats,
    Rank,
    UserProgression,
    calculate_level,
    calculate_level_info,
    calculate_rank,
    get_xp_for_level,
    xp_to_next_level,
)
from .achievements import Badge, BadgeType, Milestone, MilestoneType
from .goals import (
    Goal,
    GoalProgressSummary,
    GoalSession,
    GoalSessionPage,
    GoalStatistics,
    GoalStatus,
    GoalType,
    ProgressData,
    WeeklyProgress,
    WeightEntry,
    WeightSource,
)
from .quests import (
    Quest,
    QuestCategory,
    QuestDifficulty,
    QuestProgress,
    QuestRewards,
    QuestStatus,
    QuestType,
)
from .notifications import (
    ActionType,
    DeliveryChannel,
    Notification,
    NotificationAction,
    NotificationPriority,
    NotificationRequest,
    NotificationStats,
    NotificationType,
)
from .outcomes import AchievementStatistics, AchievementSummary, SessionOutcome

__all__ = [
    "to_camel",
    "SessionSummary",
    # Progression
    "LevelInfo",
    "LifetimeStats",
    "Rank",
    "UserProgression",
    "calculate_level",
    "calculate_level_info",
    "calculate_rank",
    "get_xp_for_level",
    "xp_to_next_level",
    # Achievements
    "Badge",
    "BadgeType",
    "Milestone",
    "MilestoneType",
    # Goals
    "Goal",
    "GoalProgressSummary",
    "GoalSession",
    "GoalSessionPage",
    "GoalStatistics",
    "GoalStatus",
    "GoalType",
    "ProgressData",
    "WeeklyProgress",
    "WeightEntry",
    "WeightSource",
    # Quests
    "Quest",
    "QuestCategory",
    "QuestDifficulty",
    "QuestProgress",
    "QuestRewards",
    "QuestStatus",
    "QuestType",
    # Notifications
    "ActionType",
    "DeliveryChannel",
    "Notification",
    "NotificationAction",
    "NotificationPriority",
    "NotificationRequest",
    "NotificationStats",
    "NotificationType",
    # Outcomes
    "AchievementStatistics",
    "AchievementSummary",
    "SessionOutcome",
]
