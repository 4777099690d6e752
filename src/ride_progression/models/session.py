"""Completed workout session summary consumed by the engine."""

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..utils.clock import ensure_utc
from .base import to_camel


NUMERIC_FIELDS = (
    "total_distance",
    "total_calories",
    "duration_seconds",
    "avg_speed",
    "max_speed",
    "avg_power",
    "max_power",
)


class SessionSummary(BaseModel):
    """Summary of a completed ride, produced by the telemetry layer.

    Distances are in km, speeds in km/h, power in watts. Optional numeric
    fields that are missing or null default to 0.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
        allow_inf_nan=False,
    )

    session_id: str = Field(..., min_length=1, description="Telemetry session identifier")
    total_distance: float = Field(default=0.0, ge=0, description="Distance in km")
    total_calories: float = Field(default=0.0, ge=0, description="Calories burned (kcal)")
    duration_seconds: float = Field(default=0.0, ge=0, description="Moving time in seconds")
    avg_speed: float = Field(default=0.0, ge=0, description="Average speed in km/h")
    max_speed: float = Field(default=0.0, ge=0, description="Maximum speed in km/h")
    avg_power: float = Field(default=0.0, ge=0, description="Average power in watts")
    max_power: float = Field(default=0.0, ge=0, description="Maximum power in watts")
    end_time: Optional[datetime] = Field(None, description="When the session ended")

    @field_validator(*NUMERIC_FIELDS, mode="before")
    @classmethod
    def _none_as_zero(cls, value: Any) -> Any:
        return 0.0 if value is None else value

    @field_validator("end_time")
    @classmethod
    def _normalize_end_time(cls, value: Optional[datetime]) -> Optional[datetime]:
        return ensure_utc(value) if value is not None else None

    @property
    def duration_minutes(self) -> float:
        return self.duration_seconds / 60

    def ended_at(self, default: datetime) -> datetime:
        """End time, falling back to ``default`` when telemetry omitted it."""
        return self.end_time if self.end_time is not None else ensure_utc(default)
