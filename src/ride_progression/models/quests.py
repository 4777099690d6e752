"""Quest models and the quest state machine.

    active --progress reaches target--> completed
    active --end_date passed---------> expired

``completed`` and ``expired`` are terminal. ``locked`` quests accept no
progress until something unlocks them.
"""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..utils.clock import ensure_utc
from .base import to_camel


class QuestStatus(str, Enum):
    ACTIVE = "active"
    COMPLETED = "completed"
    EXPIRED = "expired"
    LOCKED = "locked"

    @property
    def is_terminal(self) -> bool:
        return self in (QuestStatus.COMPLETED, QuestStatus.EXPIRED)


class QuestType(str, Enum):
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    CHALLENGE = "challenge"
    SPECIAL = "special"


class QuestCategory(str, Enum):
    DISTANCE = "distance"
    TIME = "time"
    CALORIES = "calories"
    STREAK = "streak"
    SOCIAL = "social"
    HEALTH = "health"


class QuestDifficulty(str, Enum):
    EASY = "easy"
    MEDIUM = "medium"
    HARD = "hard"
    EXPERT = "expert"


class QuestProgress(BaseModel):
    """Numeric progress toward the quest target."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
    )

    current: float = Field(default=0.0, ge=0)
    target: float = Field(..., gt=0)


class QuestRewards(BaseModel):
    """What completing the quest grants."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
    )

    xp: int = Field(default=100, ge=0)
    badge: Optional[str] = Field(None, description="Badge name granted on completion")


class Quest(BaseModel):
    """Time-boxed goal with a numeric target and expiry."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
    )

    id: str = Field(..., description="Quest identifier")
    user_id: str = Field(..., description="Owner")
    title: str
    description: str
    quest_type: QuestType
    category: QuestCategory
    progress: QuestProgress
    status: QuestStatus = Field(default=QuestStatus.ACTIVE)
    start_date: datetime
    end_date: datetime
    rewards: QuestRewards = Field(default_factory=QuestRewards)
    difficulty: QuestDifficulty = Field(default=QuestDifficulty.MEDIUM)
    icon: str = Field(default="🎯")
    completed_at: Optional[datetime] = Field(None)

    @field_validator("start_date", "end_date", "completed_at")
    @classmethod
    def _normalize_dates(cls, value: Optional[datetime]) -> Optional[datetime]:
        return ensure_utc(value) if value is not None else None

    def is_completed(self) -> bool:
        return self.progress.current >= self.progress.target

    def is_expired(self, now: datetime) -> bool:
        return self.end_date < ensure_utc(now) and self.status != QuestStatus.COMPLETED

    def apply_progress(self, value: float, now: datetime) -> bool:
        """
        Add progress, clamped at the target.

        Args:
            value: Amount to add (negative values are ignored)
            now: Current time, used for the expiry check and completed_at

        Returns:
            True if this call moved the quest from active to completed
        """
        if self.status != QuestStatus.ACTIVE or value <= 0:
            return False
        if self.is_expired(now):
            return False

        self.progress.current = min(self.progress.current + value, self.progress.target)

        if self.is_completed():
            self.status = QuestStatus.COMPLETED
            self.completed_at = ensure_utc(now)
            return True
        return False

    def expire(self, now: datetime) -> bool:
        """Move an overdue active quest to expired. Returns True on transition."""
        if self.status == QuestStatus.ACTIVE and self.is_expired(now):
            self.status = QuestStatus.EXPIRED
            return True
        return False
