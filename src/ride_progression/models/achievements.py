"""Milestone and badge records.

Both are append-only: once created they never change except for the
``notified`` flag.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field

from .base import to_camel


class MilestoneType(str, Enum):
    """Lifetime statistics that carry milestones."""
    DISTANCE = "distance"
    WORKOUTS = "workouts"
    CALORIES = "calories"


class BadgeType(str, Enum):
    """Session field a badge is judged on."""
    SPEED = "speed"
    DISTANCE = "distance"
    POWER = "power"
    CALORIES = "calories"


class Milestone(BaseModel):
    """One-time lifetime achievement, unique per (user, type, value)."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
    )

    id: Optional[int] = Field(None, description="Record ID")
    user_id: str = Field(..., description="Owner")
    type: MilestoneType = Field(..., description="Tracked statistic")
    value: int = Field(..., description="Threshold value reached")
    unit: str = Field(..., description="Unit of the value (km, workouts, kcal)")
    achieved_at: datetime = Field(..., description="When the threshold was crossed")
    xp_reward: int = Field(..., description="Bonus XP granted")
    reward_granted: bool = Field(default=False, description="Whether the bonus XP was added")
    notified: bool = Field(default=False, description="Whether the user was told")

    @property
    def title(self) -> str:
        return f"{self.value} {self.unit}"


class Badge(BaseModel):
    """One-time per-session performance award, unique per (user, name)."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
    )

    id: Optional[int] = Field(None, description="Record ID")
    user_id: str = Field(..., description="Owner")
    name: str = Field(..., description="Badge display name")
    type: BadgeType = Field(..., description="Judged session field")
    description: str = Field(..., description="How the badge is earned")
    awarded_at: datetime = Field(..., description="When it was awarded")
    metadata: Dict[str, Any] = Field(default_factory=dict, description="Qualifying values")
    notified: bool = Field(default=False, description="Whether the user was told")
