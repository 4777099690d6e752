"""Repository implementations for progression state."""

from .base import Repository, SQLiteRepository
from .user_repository import UserProgressionRepository
from .session_repository import SessionLogRepository
from .goal_repository import GoalRepository
from .milestone_repository import MilestoneRepository
from .badge_repository import BadgeRepository
from .quest_repository import QuestRepository
from .notification_repository import NotificationRepository

__all__ = [
    "Repository",
    "SQLiteRepository",
    "UserProgressionRepository",
    "SessionLogRepository",
    "GoalRepository",
    "MilestoneRepository",
    "BadgeRepository",
    "QuestRepository",
    "NotificationRepository",
]
