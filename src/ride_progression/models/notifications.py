"""Notification models.

Evaluators emit ``NotificationRequest``s; the router turns each one into a
stored ``Notification`` delivered through exactly one channel.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from .base import to_camel


class NotificationType(str, Enum):
    """Kinds of notification raised by the engine."""
    LEVEL_UP = "level_up"
    STREAK_MILESTONE = "streak_milestone"
    MILESTONE_ACHIEVED = "milestone_achieved"
    BADGE_UNLOCKED = "badge_unlocked"
    GOAL_PROGRESS = "goal_progress"
    QUEST_COMPLETED = "quest_completed"


class NotificationPriority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class DeliveryChannel(str, Enum):
    """How a notification reached (or was sent to) the user."""
    LIVE = "live"
    PUSH = "push"


class ActionType(str, Enum):
    NAVIGATION = "navigation"
    API_CALL = "api_call"
    EXTERNAL = "external"
    DISMISS = "dismiss"


class NotificationAction(BaseModel):
    """Button attached to a notification."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
    )

    type: ActionType
    label: str
    data: Dict[str, Any] = Field(default_factory=dict)
    is_primary: bool = False


class NotificationRequest(BaseModel):
    """A notification some component wants the user to receive."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
    )

    type: NotificationType
    title: str = Field(..., max_length=100)
    message: str = Field(..., max_length=500)
    priority: NotificationPriority = Field(default=NotificationPriority.MEDIUM)
    actions: List[NotificationAction] = Field(default_factory=list)
    data: Dict[str, Any] = Field(default_factory=dict)
    expires_at: Optional[datetime] = Field(None, description="Defaults to the configured TTL")


class Notification(BaseModel):
    """A stored notification and its delivery state."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
    )

    id: str
    user_id: str
    type: NotificationType
    title: str
    message: str
    priority: NotificationPriority = NotificationPriority.MEDIUM
    actions: List[NotificationAction] = Field(default_factory=list)
    data: Dict[str, Any] = Field(default_factory=dict)
    expires_at: Optional[datetime] = None
    created_at: datetime
    is_read: bool = False
    read_at: Optional[datetime] = None
    channel: Optional[DeliveryChannel] = Field(None, description="None until dispatched")
    dispatched_at: Optional[datetime] = None
    delivery_error: Optional[str] = None

    @property
    def delivered(self) -> bool:
        return self.channel is not None and self.delivery_error is None


class NotificationStats(BaseModel):
    """Per-user notification counts."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
    )

    total: int = 0
    unread: int = 0
    by_type: Dict[str, int] = Field(default_factory=dict)
    by_channel: Dict[str, int] = Field(default_factory=dict)
