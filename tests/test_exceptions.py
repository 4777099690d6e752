"""Tests for the exception hierarchy."""

import pytest

from ride_progression.exceptions import (
    ConcurrencyError,
    DeliveryError,
    ErrorCode,
    GoalNotFoundError,
    NotFoundError,
    ProgressionError,
    SessionValidationError,
    TransientStorageError,
    UserNotFoundError,
    ValidationError,
)


class TestErrorCodes:
    """Each exception carries a stable error code."""

    @pytest.mark.parametrize(
        "error,code",
        [
            (ValidationError("bad input", field="user_id"), ErrorCode.VALIDATION_ERROR),
            (SessionValidationError("bad session"), ErrorCode.SESSION_VALIDATION_ERROR),
            (UserNotFoundError("rider-1"), ErrorCode.USER_NOT_FOUND),
            (GoalNotFoundError("goal-1"), ErrorCode.GOAL_NOT_FOUND),
            (TransientStorageError("database is locked"), ErrorCode.TRANSIENT_STORAGE_ERROR),
            (ConcurrencyError("lost every retry"), ErrorCode.CONCURRENT_UPDATE),
            (DeliveryError("push failed", channel="push"), ErrorCode.DELIVERY_FAILED),
        ],
    )
    def test_codes(self, error, code):
        assert error.code == code
        assert isinstance(error, ProgressionError)

    def test_hierarchy(self):
        assert issubclass(SessionValidationError, ValidationError)
        assert issubclass(UserNotFoundError, NotFoundError)
        assert issubclass(ConcurrencyError, TransientStorageError)


class TestToDict:
    """Tests for ProgressionError.to_dict."""

    def test_without_details(self):
        assert ProgressionError("boom").to_dict() == {
            "error": {"code": "INTERNAL_ERROR", "message": "boom"}
        }

    def test_with_field(self):
        data = ValidationError("user_id is required", field="user_id").to_dict()

        assert data["error"]["code"] == "VALIDATION_ERROR"
        assert data["error"]["details"] == {"field": "user_id"}

    def test_not_found_details(self):
        data = UserNotFoundError("rider-1").to_dict()

        assert data["error"]["code"] == "USER_NOT_FOUND"
        assert "rider-1" in data["error"]["message"]
