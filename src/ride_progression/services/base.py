"""
Base service classes and protocols.

Defines the collaborator interfaces the engine consumes and the base class
shared by every service.
"""

import logging
from abc import ABC
from typing import Any, Dict, Optional, Protocol, runtime_checkable

from ..utils.clock import Clock, utc_now


@runtime_checkable
class PresenceProvider(Protocol):
    """Tells whether a user currently holds a live connection."""

    def is_user_connected(self, user_id: str) -> bool:
        """Return True if a live channel to the user is open."""
        ...


@runtime_checkable
class NotificationTransport(Protocol):
    """
    Outbound delivery channels.

    Implementations raise on failure, ideally DeliveryError; the router wraps
    anything else in one and decides what a failure means.
    """

    def send_live(self, user_id: str, payload: Dict[str, Any]) -> None:
        """Deliver over the user's live connection."""
        ...

    def send_push(self, user_id: str, payload: Dict[str, Any]) -> None:
        """Deliver as a deferred push notification."""
        ...


class BaseService(ABC):
    """
    Abstract base class for all services.

    Provides common functionality:
    - Logging setup
    - An injectable clock
    """

    def __init__(
        self,
        clock: Optional[Clock] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self._clock = clock or utc_now
        self._logger = logger or logging.getLogger(self.__class__.__name__)

    @property
    def logger(self) -> logging.Logger:
        """Get the logger instance."""
        return self._logger

    def now(self):
        """Current time from the injected clock."""
        return self._clock()
