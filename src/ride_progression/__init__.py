"""Ride progression engine: XP, levels, streaks, awards, goals and quests
driven by completed cycling sessions."""

from .engine import ProgressionEngine, build_engine
from .exceptions import (
    ConcurrencyError,
    DeliveryError,
    ErrorCode,
    GoalNotFoundError,
    NotFoundError,
    NotificationNotFoundError,
    ProgressionError,
    QuestNotFoundError,
    SessionValidationError,
    TransientStorageError,
    UserNotFoundError,
    ValidationError,
)
from .models import SessionOutcome, SessionSummary

__version__ = "0.1.0"

__all__ = [
    "ProgressionEngine",
    "build_engine",
    "SessionOutcome",
    "SessionSummary",
    "ConcurrencyError",
    "DeliveryError",
    "ErrorCode",
    "GoalNotFoundError",
    "NotFoundError",
    "NotificationNotFoundError",
    "ProgressionError",
    "QuestNotFoundError",
    "SessionValidationError",
    "TransientStorageError",
    "UserNotFoundError",
    "ValidationError",
]
