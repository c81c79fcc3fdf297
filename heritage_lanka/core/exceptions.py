"""
Custom exceptions for the booking backend.

Every failure a service can report maps to one of these types so the API
layer can tell "not found" apart from "not allowed" and from "wrong state".
"""

from typing import Optional, Dict, Any
from enum import Enum


class ErrorCode(str, Enum):
    """Standardized error codes for the application."""

    # Lookup and ownership
    NOT_FOUND = "NOT_FOUND"
    FORBIDDEN = "FORBIDDEN"
    UNAUTHORIZED = "UNAUTHORIZED"

    # Lifecycle errors
    INVALID_TRANSITION = "INVALID_TRANSITION"
    PRECONDITION_FAILED = "PRECONDITION_FAILED"
    CONFLICT = "CONFLICT"

    # Input errors
    VALIDATION_ERROR = "VALIDATION_ERROR"
    OTP_EXPIRED = "OTP_EXPIRED"
    OTP_MISMATCH = "OTP_MISMATCH"

    # Collaborator errors
    UPSTREAM_FAILURE = "UPSTREAM_FAILURE"

    # Generic errors
    INTERNAL_SERVER_ERROR = "INTERNAL_SERVER_ERROR"


class HeritageLankaException(Exception):
    """Base exception for the booking backend."""

    def __init__(
        self,
        message: str,
        error_code: ErrorCode,
        details: Optional[Dict[str, Any]] = None,
        status_code: int = 500
    ):
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.details = details or {}
        self.status_code = status_code


class NotFoundError(HeritageLankaException):
    """Raised when an entity does not exist or is not visible to the caller."""

    def __init__(self, entity: str, entity_id: Any = None, message: Optional[str] = None):
        details = {"entity": entity}
        if entity_id is not None:
            details["id"] = str(entity_id)
        super().__init__(
            message=message or f"{entity} not found",
            error_code=ErrorCode.NOT_FOUND,
            details=details,
            status_code=404
        )


class AuthorizationError(HeritageLankaException):
    """Raised when the caller's role may not perform the operation."""

    def __init__(self, message: str = "Not allowed", details: Optional[Dict[str, Any]] = None):
        super().__init__(
            message=message,
            error_code=ErrorCode.FORBIDDEN,
            details=details,
            status_code=403
        )


class InvalidTransitionError(HeritageLankaException):
    """Raised when a trip status change is not in the transition table."""

    def __init__(self, current: str, target: str, message: Optional[str] = None):
        super().__init__(
            message=message or f"Cannot move trip from {current} to {target}",
            error_code=ErrorCode.INVALID_TRANSITION,
            details={"current_status": current, "target_status": target},
            status_code=400
        )


class PreconditionFailedError(HeritageLankaException):
    """Raised when the transition is legal but a side condition is unmet."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(
            message=message,
            error_code=ErrorCode.PRECONDITION_FAILED,
            details=details,
            status_code=409
        )


class ConflictError(HeritageLankaException):
    """Raised when a concurrent writer changed the row first."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(
            message=message,
            error_code=ErrorCode.CONFLICT,
            details=details,
            status_code=409
        )


class ValidationFailedError(HeritageLankaException):
    """Raised when input is malformed or out of range."""

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        error_code: ErrorCode = ErrorCode.VALIDATION_ERROR,
        status_code: int = 422
    ):
        super().__init__(
            message=message,
            error_code=error_code,
            details=details,
            status_code=status_code
        )


class OtpExpiredError(ValidationFailedError):
    """Raised when a start-of-trip code is used after its window."""

    def __init__(self, expires_at: Any):
        super().__init__(
            message="OTP has expired. Ask the traveler to issue a new code.",
            details={"expires_at": str(expires_at)},
            error_code=ErrorCode.OTP_EXPIRED,
            status_code=400
        )


class OtpMismatchError(ValidationFailedError):
    """Raised when the submitted code does not match the issued one."""

    def __init__(self):
        super().__init__(
            message="Invalid OTP. Please check and try again.",
            error_code=ErrorCode.OTP_MISMATCH,
            status_code=400
        )


class UpstreamFailureError(HeritageLankaException):
    """
    Raised when a collaborator (checkout, messaging, LLM) fails.

    ``retryable`` is true for timeouts and transport errors, false when the
    collaborator rejected the request itself.
    """

    def __init__(
        self,
        service_name: str,
        message: Optional[str] = None,
        retryable: bool = True,
        details: Optional[Dict[str, Any]] = None
    ):
        merged = {"service_name": service_name, "retryable": retryable}
        merged.update(details or {})
        super().__init__(
            message=message or f"Service '{service_name}' request failed",
            error_code=ErrorCode.UPSTREAM_FAILURE,
            details=merged,
            status_code=504 if retryable else 502
        )
        self.service_name = service_name
        self.retryable = retryable
