"""
Test suite for the workflow exception taxonomy
"""
import pytest

from dealflow.services.exceptions import (
    AcceptFailedError,
    AlreadyActedError,
    DealCreationFailedError,
    DuplicateApplicationError,
    ErrorCode,
    ForbiddenError,
    InvalidTransitionError,
    NotFoundError,
    NotSignableError,
    ServiceError,
    StorageError,
    UnauthorizedError,
    ValidationError,
)


class TestErrorCode:
    """Test ErrorCode enum functionality"""

    def test_error_code_values(self):
        assert ErrorCode.DUPLICATE_APPLICATION.value == "DUPLICATE_APPLICATION"
        assert ErrorCode.NOT_SIGNABLE.value == "NOT_SIGNABLE"

    @pytest.mark.parametrize("error, code", [
        (ValidationError("bad"), ErrorCode.VALIDATION_ERROR),
        (DuplicateApplicationError("a-1", "o-1"), ErrorCode.DUPLICATE_APPLICATION),
        (InvalidTransitionError("Application", "app-1", "accepted", "withdraw"), ErrorCode.INVALID_TRANSITION),
        (NotFoundError("Deal", "d-1"), ErrorCode.NOT_FOUND),
        (UnauthorizedError(), ErrorCode.UNAUTHORIZED),
        (ForbiddenError(), ErrorCode.FORBIDDEN),
        (AcceptFailedError("app-1"), ErrorCode.ACCEPT_FAILED),
        (DealCreationFailedError("app-1"), ErrorCode.DEAL_CREATION_FAILED),
        (AlreadyActedError("c-1", "athlete", "signed"), ErrorCode.ALREADY_ACTED),
        (NotSignableError("c-1", "draft"), ErrorCode.NOT_SIGNABLE),
        (StorageError("create application"), ErrorCode.STORAGE_ERROR),
    ])
    def test_each_error_carries_its_code(self, error, code):
        assert isinstance(error, ServiceError)
        assert error.error_code == code


class TestServiceError:
    """Test ServiceError base behaviour"""

    def test_add_detail(self):
        error = ServiceError("Something failed", details={"a": 1})

        error.add_detail("b", 2)

        assert error.details == {"a": 1, "b": 2}

    def test_to_dict(self):
        error = NotFoundError("Opportunity", "opp-9")

        assert error.to_dict() == {
            "code": "NOT_FOUND",
            "message": "Opportunity with id opp-9 not found",
            "details": {"resource": "Opportunity", "resource_id": "opp-9"},
        }

    def test_cause_is_chained(self):
        cause = ConnectionError("reset by peer")

        error = AcceptFailedError("app-1", cause=cause)

        assert error.__cause__ is cause

    def test_repr(self):
        assert repr(ForbiddenError("nope")).startswith("ForbiddenError(message='nope'")


class TestValidationError:

    def test_single_message(self):
        error = ValidationError("Cover letter is too long")

        assert error.violations == ["Cover letter is too long"]
        assert error.details["violations"] == ["Cover letter is too long"]

    def test_list_of_violations(self):
        error = ValidationError(["An athlete party is required", "A brand party is required"])

        assert error.message == "An athlete party is required; A brand party is required"
        assert error.details["violations"] == ["An athlete party is required", "A brand party is required"]


class TestOpaqueErrors:
    """Storage and conversion failures never leak their cause to callers"""

    def test_storage_error_public_message(self):
        error = StorageError("update contract", cause=RuntimeError("grpc deadline exceeded"))

        assert "grpc" in error.message
        assert "grpc" not in error.public_message()
        assert error.to_dict()["message"] == error.public_message()

    def test_deal_creation_failed_reports_accepted_application(self):
        error = DealCreationFailedError("app-1")

        assert error.details == {"application_id": "app-1", "application_status": "accepted"}
        assert "deal could not be created" in error.public_message()

    def test_domain_errors_keep_their_message(self):
        error = InvalidTransitionError("Application", "app-1", "accepted", "withdraw")

        assert error.public_message() == "Cannot withdraw Application app-1 in status 'accepted'"
        assert error.current_status == "accepted"
