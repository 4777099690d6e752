"""
Custom exceptions for the ride progression engine.

This module defines a hierarchy of exceptions used throughout the engine.
Each exception includes:
- A descriptive message
- An error code the surrounding service can map to a response
- Optional details for debugging

The session coordinator isolates NotFoundError and TransientStorageError per
component; ValidationError aborts a completion before anything is written.
"""

from typing import Any, Dict, Optional
from enum import Enum


class ErrorCode(str, Enum):
    """Error codes for consistent error reporting."""

    # General errors
    INTERNAL_ERROR = "INTERNAL_ERROR"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    NOT_FOUND = "NOT_FOUND"

    # Session errors
    SESSION_VALIDATION_ERROR = "SESSION_VALIDATION_ERROR"

    # Entity lookups
    USER_NOT_FOUND = "USER_NOT_FOUND"
    GOAL_NOT_FOUND = "GOAL_NOT_FOUND"
    QUEST_NOT_FOUND = "QUEST_NOT_FOUND"
    NOTIFICATION_NOT_FOUND = "NOTIFICATION_NOT_FOUND"

    # Storage errors
    TRANSIENT_STORAGE_ERROR = "TRANSIENT_STORAGE_ERROR"
    CONCURRENT_UPDATE = "CONCURRENT_UPDATE"

    # Delivery errors
    DELIVERY_FAILED = "DELIVERY_FAILED"


class ProgressionError(Exception):
    """
    Base exception for all progression engine errors.

    Attributes:
        message: Human-readable error message
        code: Error code from ErrorCode enum
        details: Optional dictionary with additional error details
    """

    def __init__(
        self,
        message: str,
        code: ErrorCode = ErrorCode.INTERNAL_ERROR,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.message = message
        self.code = code
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for the calling layer."""
        result: Dict[str, Any] = {
            "error": {
                "code": self.code.value,
                "message": self.message,
            }
        }
        if self.details:
            result["error"]["details"] = self.details
        return result

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(code={self.code.value}, message={self.message!r})"


# ============================================================================
# Validation Errors
# ============================================================================

class ValidationError(ProgressionError):
    """Raised when input validation fails."""

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        error_details = details or {}
        if field:
            error_details["field"] = field
        super().__init__(
            message=message,
            code=ErrorCode.VALIDATION_ERROR,
            details=error_details,
        )


class SessionValidationError(ValidationError):
    """Raised when a session summary is malformed."""

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message=message, field=field, details=details)
        self.code = ErrorCode.SESSION_VALIDATION_ERROR


# ============================================================================
# Not Found Errors
# ============================================================================

class NotFoundError(ProgressionError):
    """Raised when a requested record does not exist."""

    def __init__(
        self,
        resource_type: str,
        resource_id: str,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        message = f"{resource_type} with ID '{resource_id}' not found"
        error_details = details or {}
        error_details["resource_type"] = resource_type
        error_details["resource_id"] = resource_id
        super().__init__(
            message=message,
            code=ErrorCode.NOT_FOUND,
            details=error_details,
        )


class UserNotFoundError(NotFoundError):
    """Raised when a user's progression record is missing."""

    def __init__(self, user_id: str, details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(resource_type="User", resource_id=user_id, details=details)
        self.code = ErrorCode.USER_NOT_FOUND


class GoalNotFoundError(NotFoundError):
    """Raised when a goal is missing."""

    def __init__(self, goal_id: str, details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(resource_type="Goal", resource_id=goal_id, details=details)
        self.code = ErrorCode.GOAL_NOT_FOUND


class QuestNotFoundError(NotFoundError):
    """Raised when a quest is missing."""

    def __init__(self, quest_id: str, details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(resource_type="Quest", resource_id=quest_id, details=details)
        self.code = ErrorCode.QUEST_NOT_FOUND


class NotificationNotFoundError(NotFoundError):
    """Raised when a notification is missing."""

    def __init__(self, notification_id: str, details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(
            resource_type="Notification",
            resource_id=notification_id,
            details=details,
        )
        self.code = ErrorCode.NOTIFICATION_NOT_FOUND


# ============================================================================
# Storage Errors
# ============================================================================

class TransientStorageError(ProgressionError):
    """Raised when the store hiccups (locked database, I/O error).

    Retrying the failed component call is safe.
    """

    def __init__(
        self,
        message: str = "Storage operation failed",
        operation: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        error_details = details or {}
        if operation:
            error_details["operation"] = operation
        super().__init__(
            message=message,
            code=ErrorCode.TRANSIENT_STORAGE_ERROR,
            details=error_details,
        )


class ConcurrencyError(TransientStorageError):
    """Raised when an optimistic write lost every retry."""

    def __init__(
        self,
        message: str,
        operation: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message=message, operation=operation, details=details)
        self.code = ErrorCode.CONCURRENT_UPDATE


# ============================================================================
# Delivery Errors
# ============================================================================

class DeliveryError(ProgressionError):
    """Raised by notification transports when a send fails."""

    def __init__(
        self,
        message: str,
        channel: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        error_details = details or {}
        if channel:
            error_details["channel"] = channel
        super().__init__(
            message=message,
            code=ErrorCode.DELIVERY_FAILED,
            details=error_details,
        )
