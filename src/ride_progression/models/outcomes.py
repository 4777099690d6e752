"""Aggregate results returned to the calling service."""

from datetime import date
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from .achievements import Badge, Milestone
from .base import to_camel
from .goals import Goal
from .notifications import Notification
from .progression import Rank
from .quests import Quest


class SessionOutcome(BaseModel):
    """Best-effort result of processing one completed session.

    Components that failed are listed in ``failures``; their part of the
    result is left at its default.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
    )

    user_id: str
    session_id: str
    duplicate: bool = Field(default=False, description="Session was already processed")
    resumed: bool = Field(default=False, description="Replay that re-ran steps left unfinished")
    xp_earned: int = 0
    total_xp: Optional[int] = None
    leveled_up: bool = False
    new_level: Optional[int] = None
    rank: Optional[Rank] = None
    streak: Optional[int] = None
    streak_increased: bool = False
    streak_broken: bool = False
    goal: Optional[Goal] = None
    new_milestones: List[Milestone] = Field(default_factory=list)
    new_badges: List[Badge] = Field(default_factory=list)
    completed_quests: List[Quest] = Field(default_factory=list)
    notifications: List[Notification] = Field(default_factory=list)
    failures: Dict[str, str] = Field(default_factory=dict)

    @property
    def partial(self) -> bool:
        return bool(self.failures)


class AchievementStatistics(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
    )

    total_badges: int = 0
    total_milestones: int = 0
    active_quests: int = 0
    completed_quests: int = 0
    leaderboard_position: Optional[int] = None
    total_users: Optional[int] = None
    lifetime_distance: float = 0.0
    lifetime_calories: float = 0.0
    lifetime_workouts: int = 0


class AchievementSummary(BaseModel):
    """User's complete achievement summary."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
    )

    user_id: str
    xp: int
    level: int
    rank: Rank
    xp_to_next_level: int
    level_progress: float = Field(default=0.0, description="Progress to next level (0-100)")
    streak: int
    longest_streak: int = 0
    last_activity_date: Optional[date] = None
    badges: List[Badge] = Field(default_factory=list)
    milestones: List[Milestone] = Field(default_factory=list)
    quests: List[Quest] = Field(default_factory=list)
    statistics: AchievementStatistics = Field(default_factory=AchievementStatistics)
