"""User progression models: XP, level, rank and streak."""

import math
from datetime import date, datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from .base import to_camel


class Rank(str, Enum):
    """Named rank tiers, ascending."""
    NOVICE = "Novice"
    BEGINNER = "Beginner"
    INTERMEDIATE = "Intermediate"
    ADVANCED = "Advanced"
    EXPERT = "Expert"
    CHAMPION = "Champion"
    LEGEND = "Legend"


# (minimum level, rank), highest first
RANK_THRESHOLDS = (
    (50, Rank.LEGEND),
    (40, Rank.CHAMPION),
    (30, Rank.EXPERT),
    (20, Rank.ADVANCED),
    (10, Rank.INTERMEDIATE),
    (5, Rank.BEGINNER),
)


class LevelInfo(BaseModel):
    """Information about a user's level."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
    )

    level: int = Field(..., description="Current level")
    rank: Rank = Field(..., description="Rank tier for the level")
    xp_required: int = Field(..., description="Total XP required for this level")
    xp_for_next: int = Field(..., description="XP needed to reach next level")
    xp_in_level: int = Field(..., description="XP earned within current level")
    progress_percent: float = Field(..., description="Progress to next level (0-100)")


class LifetimeStats(BaseModel):
    """Cumulative totals across every recorded session."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
    )

    total_distance: float = Field(default=0.0, description="Lifetime distance in km")
    total_calories: float = Field(default=0.0, description="Lifetime calories (kcal)")
    total_workouts: int = Field(default=0, description="Lifetime completed sessions")


class UserProgression(BaseModel):
    """Progress state owned by a user account."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
    )

    user_id: str = Field(..., description="User identifier")
    xp: int = Field(default=0, ge=0, description="Cumulative XP")
    streak: int = Field(default=0, ge=0, description="Current streak in days")
    longest_streak: int = Field(default=0, ge=0, description="Longest streak achieved")
    last_activity_date: Optional[date] = Field(None, description="Day of the last session")
    stats: LifetimeStats = Field(default_factory=LifetimeStats, description="Lifetime totals")
    version: int = Field(default=0, description="Optimistic concurrency version")
    created_at: Optional[datetime] = Field(None, description="When the record was created")
    updated_at: Optional[datetime] = Field(None, description="Last update time")

    @property
    def level(self) -> int:
        return calculate_level(self.xp)

    @property
    def rank(self) -> Rank:
        return calculate_rank(self.level)


# =============================================================================
# Helper Functions
# =============================================================================

def calculate_level(xp: int) -> int:
    """
    Calculate level from total XP.

    level = floor(sqrt(xp / 100)) + 1
    Level 1: 0-99 XP
    Level 2: 100-399 XP
    Level 3: 400-899 XP

    Args:
        xp: Total XP earned

    Returns:
        The level (1 for any non-positive XP)
    """
    if xp <= 0:
        return 1
    # isqrt(xp // 100) == floor(sqrt(xp / 100)) for integer xp, without float error
    return math.isqrt(int(xp) // 100) + 1


def get_xp_for_level(level: int) -> int:
    """Total XP required to reach a level: (level - 1)^2 * 100."""
    if level <= 1:
        return 0
    return (level - 1) ** 2 * 100


def xp_to_next_level(xp: int) -> int:
    """XP still needed to reach the next level."""
    return get_xp_for_level(calculate_level(xp) + 1) - max(xp, 0)


def calculate_rank(level: int) -> Rank:
    """Map a level onto its rank tier."""
    for min_level, rank in RANK_THRESHOLDS:
        if level >= min_level:
            return rank
    return Rank.NOVICE


def calculate_level_info(xp: int) -> LevelInfo:
    """
    Calculate level information from total XP.

    Args:
        xp: Total XP earned

    Returns:
        LevelInfo with current level, rank and progress
    """
    level = calculate_level(xp)
    xp_required = get_xp_for_level(level)
    next_level_xp = get_xp_for_level(level + 1)
    xp_needed = next_level_xp - xp_required
    xp_in_level = max(xp, 0) - xp_required

    progress = (xp_in_level / xp_needed * 100) if xp_needed > 0 else 100.0

    return LevelInfo(
        level=level,
        rank=calculate_rank(level),
        xp_required=xp_required,
        xp_for_next=next_level_xp - max(xp, 0),
        xp_in_level=xp_in_level,
        progress_percent=round(progress, 1),
    )
