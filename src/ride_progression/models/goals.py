"""Goal data models for session-driven goal tracking."""

from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..utils.clock import ensure_utc
from .base import to_camel


class GoalType(str, Enum):
    """Kinds of fitness objective."""
    WEIGHT_LOSS = "weight_loss"
    MUSCLE_GAIN = "muscle_gain"
    MAINTENANCE = "maintenance"
    ENDURANCE = "endurance"

    @property
    def tracks_weight(self) -> bool:
        return self in (GoalType.WEIGHT_LOSS, GoalType.MUSCLE_GAIN)


class GoalStatus(str, Enum):
    """Goal lifecycle states."""
    ACTIVE = "active"
    COMPLETED = "completed"
    PAUSED = "paused"


class WeightSource(str, Enum):
    INITIAL = "initial"
    ESTIMATED = "estimated"
    MANUAL = "manual"


class ProgressData(BaseModel):
    """Cumulative progress toward a goal."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
    )

    total_distance: float = Field(default=0.0, description="Distance in km")
    total_calories: float = Field(default=0.0, description="Calories burned (kcal)")
    total_workouts: int = Field(default=0, description="Linked sessions counted")
    completion_percentage: float = Field(default=0.0, ge=0, le=100, description="0-100")
    last_updated: Optional[datetime] = Field(None, description="Last progress update")


class WeeklyProgress(BaseModel):
    """Per-week bucket for chart rendering."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
    )

    week_number: int = Field(..., description="Weeks since goal start (0-based)")
    week_start: datetime = Field(..., description="First day of the week")
    week_end: datetime = Field(..., description="Last day of the week")
    total_distance: float = Field(default=0.0)
    total_calories: float = Field(default=0.0)
    workout_count: int = Field(default=0)
    avg_speed: float = Field(default=0.0, description="Running average speed in km/h")


class WeightEntry(BaseModel):
    """A point on the goal's weight curve."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
    )

    date: datetime = Field(..., description="When the weight applies")
    weight: float = Field(..., description="Weight in kg")
    source: WeightSource = Field(default=WeightSource.ESTIMATED)


class Goal(BaseModel):
    """A user's longer-term fitness objective."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
    )

    id: str = Field(..., description="Goal identifier")
    user_id: str = Field(..., description="Owner")
    goal_type: GoalType = Field(..., description="Objective kind")
    status: GoalStatus = Field(default=GoalStatus.ACTIVE)
    start_date: datetime = Field(..., description="When tracking started")
    target_date: datetime = Field(..., description="Deadline")
    current_weight: float = Field(..., gt=0, description="Current (estimated) weight in kg")
    target_weight: float = Field(..., gt=0, description="Target weight in kg")
    progress_data: ProgressData = Field(default_factory=ProgressData)
    weekly_progress: List[WeeklyProgress] = Field(default_factory=list)
    weight_history: List[WeightEntry] = Field(default_factory=list)
    linked_sessions: List[str] = Field(default_factory=list, description="Counted session IDs")
    created_at: Optional[datetime] = Field(None)
    updated_at: Optional[datetime] = Field(None)

    @field_validator("start_date", "target_date")
    @classmethod
    def _normalize_dates(cls, value: datetime) -> datetime:
        return ensure_utc(value)

    @property
    def initial_weight(self) -> float:
        if self.weight_history:
            return self.weight_history[0].weight
        return self.current_weight


class GoalSession(BaseModel):
    """A session counted toward a goal."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
    )

    session_id: str
    end_time: datetime
    distance: float = 0.0
    calories: float = 0.0
    avg_speed: float = 0.0
    duration_seconds: float = 0.0


class GoalSessionPage(BaseModel):
    """Paginated sessions linked to a goal."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
    )

    sessions: List[GoalSession] = Field(default_factory=list)
    total: int = 0
    limit: int = 50
    offset: int = 0
    has_more: bool = False


class GoalStatistics(BaseModel):
    """Derived figures shown alongside goal progress."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
    )

    total_sessions: int = 0
    average_distance: float = 0.0
    average_calories: float = 0.0
    days_remaining: int = 0
    days_elapsed: int = 0


class GoalProgressSummary(BaseModel):
    """Everything a goal-details screen needs."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
    )

    goal: Goal
    progress: ProgressData
    weekly_progress: List[WeeklyProgress] = Field(default_factory=list)
    weight_history: List[WeightEntry] = Field(default_factory=list)
    recent_sessions: List[GoalSession] = Field(default_factory=list)
    statistics: GoalStatistics
