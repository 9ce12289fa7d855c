"""
Base exception classes for application-wide error handling.

Every domain error raised by the booking and escrow services derives from
BaseApplicationError. BaseService.execute turns them into a failed
ServiceResult that carries the error code, details and the HTTP status
taken from the exception class.

Exception Hierarchy:
    BaseApplicationError (base)
    ├── ValidationError - Rejected input, no state change (400)
    ├── NotFoundError - Resource not found (404)
    ├── PermissionDeniedError - Caller may not perform the action (403)
    └── ConflictError - Caller's view of state is stale (409)

Usage:
    from core.exceptions import ConflictError, NotFoundError

    raise NotFoundError(
        f"Booking {booking_id} not found",
        error_code="BOOKING_NOT_FOUND",
        details={"booking_id": str(booking_id)},
    )

    try:
        ...
    except BaseApplicationError as e:
        return ServiceResult.from_exception(e)
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from typing import Any


class BaseApplicationError(Exception):
    """
    Base exception for all application-specific errors.

    Attributes:
        message: Human-readable error description
        error_code: Machine-readable code for client-side handling
        details: Additional error context (field errors, ids, states)
        http_status: Status code used when the error reaches the API layer
    """

    default_error_code: str = "APPLICATION_ERROR"
    http_status: int = 400

    def __init__(
        self,
        message: str,
        error_code: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        """
        Initialize the exception.

        Args:
            message: Human-readable error description
            error_code: Machine-readable error code (defaults to class default)
            details: Additional error context
        """
        self.message = message
        self.error_code = error_code or self.default_error_code
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        """
        Convert exception to dictionary for API response.

        Example:
            {
                "error": "Payment 7f0c... not found",
                "error_code": "PAYMENT_NOT_FOUND",
                "details": {"payment_id": "7f0c..."}
            }
        """
        result: dict[str, Any] = {
            "error": self.message,
            "error_code": self.error_code,
        }
        if self.details:
            result["details"] = self.details
        return result

    def __str__(self) -> str:
        """Return string representation with error code."""
        return f"[{self.error_code}] {self.message}"

    def __repr__(self) -> str:
        """Return detailed representation for debugging."""
        return (
            f"{self.__class__.__name__}("
            f"message={self.message!r}, "
            f"error_code={self.error_code!r}, "
            f"details={self.details!r})"
        )


class ValidationError(BaseApplicationError):
    """
    Raised when input validation fails.

    Input errors are rejected synchronously and never change state, so the
    caller can always recover by correcting the input and retrying.

    Note:
        For request-shape validation use DRF serializers. Use this for
        service-layer rules (amount limits, provider minimums).
    """

    default_error_code: str = "VALIDATION_ERROR"
    http_status: int = 400


class NotFoundError(BaseApplicationError):
    """
    Raised when a requested resource is not found.

    Use for single-resource lookups where existence is expected.
    """

    default_error_code: str = "NOT_FOUND"
    http_status: int = 404


class PermissionDeniedError(BaseApplicationError):
    """
    Raised when the caller lacks permission for an operation.

    For authentication failures (missing/invalid token), DRF's own
    NotAuthenticated is used instead.
    """

    default_error_code: str = "PERMISSION_DENIED"
    http_status: int = 403


class ConflictError(BaseApplicationError):
    """
    Raised when an operation conflicts with current resource state.

    Use for:
    - Duplicate entries (unique constraint violations)
    - Invalid state transitions
    - Lost compare-and-set races that cannot be resolved idempotently

    The caller should re-fetch and either no-op or escalate.
    """

    default_error_code: str = "CONFLICT"
    http_status: int = 409
