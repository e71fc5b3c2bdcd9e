"""
Service-layer exceptions for the application, deal and contract workflow
"""
from typing import Optional, Dict, Any, List, Union
import logging
from datetime import datetime, timezone
from enum import Enum


logger = logging.getLogger(__name__)


class ErrorCode(Enum):
    """Enumeration of error codes for consistent error handling"""
    VALIDATION_ERROR = "VALIDATION_ERROR"
    DUPLICATE_APPLICATION = "DUPLICATE_APPLICATION"
    INVALID_TRANSITION = "INVALID_TRANSITION"
    NOT_FOUND = "NOT_FOUND"
    UNAUTHORIZED = "UNAUTHORIZED"
    FORBIDDEN = "FORBIDDEN"
    ACCEPT_FAILED = "ACCEPT_FAILED"
    DEAL_CREATION_FAILED = "DEAL_CREATION_FAILED"
    ALREADY_ACTED = "ALREADY_ACTED"
    NOT_SIGNABLE = "NOT_SIGNABLE"
    STORAGE_ERROR = "STORAGE_ERROR"


# Messages shown instead of the raw message for opaque failures
GENERIC_MESSAGES = {
    ErrorCode.STORAGE_ERROR: "An unexpected error occurred while processing your request",
    ErrorCode.ACCEPT_FAILED: "The application could not be accepted",
    ErrorCode.DEAL_CREATION_FAILED: "The application was accepted but the deal could not be created",
}


class ServiceError(Exception):
    """Base exception for workflow service errors"""

    error_code: ErrorCode = ErrorCode.STORAGE_ERROR

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None,
                 error_code: Optional[ErrorCode] = None, cause: Optional[Exception] = None):
        super().__init__(message)
        if cause is not None:
            self.__cause__ = cause
        self.message = message or "An error occurred"
        if error_code is not None:
            self.error_code = error_code
        self.details: Dict[str, Any] = details or {}
        self.timestamp = datetime.now(timezone.utc).isoformat()

    def add_detail(self, key: str, value: Any) -> None:
        """Add additional detail to the exception"""
        self.details[key] = value

    def public_message(self) -> str:
        """Message safe to return to the caller"""
        return GENERIC_MESSAGES.get(self.error_code, self.message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for API responses"""
        return {
            "code": self.error_code.value,
            "message": self.public_message(),
            "details": self.details,
        }

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(message='{self.message}', error_code='{self.error_code.value}', details={self.details})"


class ValidationError(ServiceError):
    """Caller-fixable input problem; carries every violated rule"""
    error_code = ErrorCode.VALIDATION_ERROR

    def __init__(self, message: Union[str, List[str]], violations: Optional[List[str]] = None, **kwargs):
        if isinstance(message, list):
            violations = message
            message = "; ".join(message) if message else "Validation failed"
        super().__init__(message, **kwargs)
        self.violations = list(violations) if violations else [message]
        self.add_detail("violations", self.violations)


class DuplicateApplicationError(ServiceError):
    """An active application already exists for the athlete/opportunity pair"""
    error_code = ErrorCode.DUPLICATE_APPLICATION

    def __init__(self, athlete_id: str, opportunity_id: str, application_id: Optional[str] = None):
        super().__init__(
            "You have already applied to this opportunity",
            details={"athlete_id": athlete_id, "opportunity_id": opportunity_id},
        )
        if application_id:
            self.add_detail("application_id", application_id)


class InvalidTransitionError(ServiceError):
    """State machine rule violated"""
    error_code = ErrorCode.INVALID_TRANSITION

    def __init__(self, resource: str, resource_id: str, current_status: str, action: str):
        super().__init__(
            f"Cannot {action} {resource} {resource_id} in status '{current_status}'",
            details={"resource": resource, "resource_id": resource_id,
                     "current_status": current_status, "action": action},
        )
        self.current_status = current_status


class NotFoundError(ServiceError):
    """Referenced record does not exist"""
    error_code = ErrorCode.NOT_FOUND

    def __init__(self, resource: str, resource_id: str):
        super().__init__(
            f"{resource} with id {resource_id} not found",
            details={"resource": resource, "resource_id": resource_id},
        )


class UnauthorizedError(ServiceError):
    """No authenticated identity"""
    error_code = ErrorCode.UNAUTHORIZED

    def __init__(self, message: str = "Authentication required"):
        super().__init__(message)


class ForbiddenError(ServiceError):
    """Authenticated identity may not perform the action"""
    error_code = ErrorCode.FORBIDDEN

    def __init__(self, message: str = "Access denied"):
        super().__init__(message)


class AcceptFailedError(ServiceError):
    """Phase A of the conversion failed; the application is unchanged"""
    error_code = ErrorCode.ACCEPT_FAILED

    def __init__(self, application_id: str, cause: Optional[Exception] = None):
        super().__init__(
            f"Failed to accept application {application_id}",
            details={"application_id": application_id},
            cause=cause,
        )


class DealCreationFailedError(ServiceError):
    """Phase B of the conversion failed after the application was accepted"""
    error_code = ErrorCode.DEAL_CREATION_FAILED

    def __init__(self, application_id: str, cause: Optional[Exception] = None):
        super().__init__(
            f"Application {application_id} was accepted but no deal was created",
            details={"application_id": application_id, "application_status": "accepted"},
            cause=cause,
        )


class AlreadyActedError(ServiceError):
    """The signing party already signed or declined"""
    error_code = ErrorCode.ALREADY_ACTED

    def __init__(self, contract_id: str, party_type: str, signature_status: str):
        super().__init__(
            "This party has already signed or declined",
            details={"contract_id": contract_id, "party_type": party_type,
                     "signature_status": signature_status},
        )


class NotSignableError(ServiceError):
    """Contract is not in a signable state"""
    error_code = ErrorCode.NOT_SIGNABLE

    def __init__(self, contract_id: str, status: str):
        super().__init__(
            "Contract is not in a signable state",
            details={"contract_id": contract_id, "status": status},
        )


class StorageError(ServiceError):
    """Opaque infrastructure failure"""
    error_code = ErrorCode.STORAGE_ERROR

    def __init__(self, operation: str, cause: Optional[Exception] = None):
        super().__init__(f"Storage failure during {operation}: {cause}", cause=cause)
        self.operation = operation
