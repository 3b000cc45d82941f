"""
TransitOps - Custom Exception Hierarchy

Provides structured, typed exceptions with error codes for consistent
error handling across the application.

Usage:
    from transitops.exceptions import NotFoundError, InvalidTransitionError

    raise NotFoundError("Shipment", shipment_id)
    raise InvalidTransitionError("Cannot transition from Created to Mapped")

Rule validation itself never raises: validators return a TransitionCheck and
only the HTTP layer converts a failed check into InvalidTransitionError.
"""
from typing import Any, Dict, List, Optional


class TransitOpsException(Exception):
    """
    Base exception for all TransitOps errors.

    Attributes:
        message: Human-readable error message
        error_code: Machine-readable error code (e.g., "NOT_FOUND", "VALIDATION_ERROR")
        status_code: HTTP status code to return
        details: Additional context for debugging
    """

    error_code: str = "TRANSITOPS_ERROR"
    status_code: int = 500

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        *,
        details: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for API response."""
        result = {
            "error": self.error_code,
            "message": self.message,
        }
        if self.details:
            result["details"] = self.details
        return result


# ===================
# 400 Bad Request Errors
# ===================


class InvalidStateError(TransitOpsException):
    """Raised when an operation is invalid for the current state."""

    error_code = "INVALID_STATE"
    status_code = 400

    def __init__(
        self,
        message: str = "Operation not allowed in current state",
        *,
        current_state: Optional[str] = None,
        allowed_states: Optional[list] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        details = details or {}
        if current_state:
            details["current_state"] = current_state
        if allowed_states:
            details["allowed_states"] = allowed_states
        super().__init__(message, details=details)


class InvalidTransitionError(InvalidStateError):
    """Raised by the API layer when a status/sub-status change fails validation."""

    error_code = "INVALID_TRANSITION"

    def __init__(
        self,
        message: str,
        *,
        current_state: Optional[str] = None,
        allowed_states: Optional[list] = None,
        missing_fields: Optional[List[str]] = None,
    ):
        details: Dict[str, Any] = {}
        if missing_fields:
            details["missing_fields"] = missing_fields
        super().__init__(
            message,
            current_state=current_state,
            allowed_states=allowed_states,
            details=details,
        )


# ===================
# 401 Authentication Errors
# ===================


class AuthenticationError(TransitOpsException):
    """Raised when a scheduler call does not carry the monitor key."""

    error_code = "AUTHENTICATION_ERROR"
    status_code = 401

    def __init__(self, message: str = "Authentication required"):
        super().__init__(message)


# ===================
# 404 Not Found Errors
# ===================


class NotFoundError(TransitOpsException):
    """Raised when a resource is not found."""

    error_code = "NOT_FOUND"
    status_code = 404

    def __init__(
        self,
        resource: str = "Resource",
        resource_id: Any = None,
        *,
        details: Optional[Dict[str, Any]] = None,
    ):
        details = details or {}
        details["resource"] = resource
        if resource_id is not None:
            details["resource_id"] = str(resource_id)
        message = f"{resource} not found"
        if resource_id is not None:
            message = f"{resource} with ID {resource_id} not found"
        super().__init__(message, details=details)


# ===================
# 409 Conflict Errors
# ===================


class ConcurrencyError(TransitOpsException):
    """Raised when a shipment was moved by another writer after it was loaded."""

    error_code = "CONCURRENCY_ERROR"
    status_code = 409

    def __init__(
        self,
        message: str = "Resource was modified by another user",
        *,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, details=details)


# ===================
# 500 Storage Errors
# ===================


class StorageError(TransitOpsException):
    """
    Raised when a write to the data store fails.

    The message shown to callers is always generic; the underlying driver
    error is logged where it is caught.
    """

    error_code = "STORAGE_ERROR"
    status_code = 500

    def __init__(self, message: str = "Failed to save changes. Please try again."):
        super().__init__(message)
