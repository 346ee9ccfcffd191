"""Tests for the error taxonomy and its HTTP mapping."""

import pytest
from fastapi import HTTPException

from capstone.registrations.exceptions import (
    AlreadyRegisteredError,
    LecturerSlotFullError,
    OneActiveRegistrationPerCategoryError,
    PreviouslyRejectedError,
    RegistrationNotFoundError,
    RegistrationNotPendingError,
    SlotFullError,
    TopicFullError,
)
from capstone.shared.exceptions import CapstoneServiceError, StorageTimeoutError, raise_http_exception
from capstone.topics.exceptions import InvalidTransitionError, TopicNotFoundError
from capstone.topics.state_machine import TransitionRejection


class TestRaiseHttpException:
    """Error codes map to HTTP problem responses."""

    @pytest.mark.parametrize(
        "error, status_code",
        [
            (TopicNotFoundError("t1"), 404),
            (RegistrationNotFoundError("r1"), 404),
            (InvalidTransitionError("draft", "graded", TransitionRejection.ILLEGAL_EDGE), 409),
            (AlreadyRegisteredError("t1", "s1"), 409),
            (PreviouslyRejectedError("t1"), 403),
            (OneActiveRegistrationPerCategoryError("thesis"), 409),
            (SlotFullError("t1", 2), 409),
            (TopicFullError("t1"), 409),
            (LecturerSlotFullError("t1"), 409),
            (RegistrationNotPendingError("r1", "approved"), 409),
            (StorageTimeoutError("approve_registration"), 503),
            (CapstoneServiceError("boom"), 500),
        ],
    )
    def test_status_codes(self, error, status_code):
        with pytest.raises(HTTPException) as exc_info:
            raise_http_exception(error)
        assert exc_info.value.status_code == status_code
        assert exc_info.value.detail["status"] == status_code

    def test_problem_body(self):
        with pytest.raises(HTTPException) as exc_info:
            raise_http_exception(SlotFullError("t1", 2))
        detail = exc_info.value.detail
        assert detail["type"].endswith("/errors/slot_full")
        assert detail["title"] == "Slot Full"
        assert "t1" in detail["detail"]

    def test_unknown_error_type_is_500(self):
        with pytest.raises(HTTPException) as exc_info:
            raise_http_exception(CapstoneServiceError("odd", "not_a_known_code"))
        assert exc_info.value.status_code == 500


class TestMessages:
    def test_storage_timeout_carries_operation(self):
        error = StorageTimeoutError("cancel_registration", "TimeoutError")
        assert error.operation == "cancel_registration"
        assert error.message == "Storage operation 'cancel_registration' failed: TimeoutError"

    def test_lecturer_slot_full_custom_message(self):
        error = LecturerSlotFullError("t1", "Topic 't1' already has a co supervisor")
        assert error.message == "Topic 't1' already has a co supervisor"

    def test_category_message_names_type(self):
        error = OneActiveRegistrationPerCategoryError("capstone_project")
        assert "capstone project" in error.message
