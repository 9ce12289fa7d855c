"""
Base service layer patterns for business logic encapsulation.

This module provides foundational patterns for the service layer:
- ServiceResult: Standard result wrapper for consistent success/failure handling
- BaseService: Base class with common service utilities

Service Layer Philosophy:
    Services encapsulate business logic separate from views and models.
    Views handle HTTP concerns, models handle data and state transitions,
    services coordinate the two inside explicit transaction boundaries.

Pattern Comparison:
    - Domain operations raise core.exceptions subclasses, so other
      services, signal receivers and workers can compose them inside
      one transaction
    - ServiceResult: what a view receives at the service/view boundary;
      BaseService.execute turns expected failures into failure results
    - Unexpected failures (database outages, bugs) propagate unchanged

Usage:
    from core.services import BaseService, ServiceResult

    class BookingLedger(BaseService):
        @classmethod
        def cancel_booking(cls, booking_id, actor=None):
            with cls.atomic():
                ...
            cls.get_logger().info("Booking cancelled", extra={...})
            return booking

    # In view
    result = BookingLedger.execute(
        BookingLedger.cancel_booking, booking.id, actor=request.user
    )
    if not result.success:
        return Response(result.to_response(), status=result.http_status)
    return Response(BookingSerializer(result.data).data)

Related:
    - core.exceptions: Domain errors raised by services
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Generic, TypeVar

from django.db import transaction

from core.exceptions import BaseApplicationError

if TYPE_CHECKING:
    from collections.abc import Callable, Generator
    from typing import Any

# Generic type for ServiceResult data
T = TypeVar("T")


@dataclass
class ServiceResult(Generic[T]):
    """
    Standard result wrapper for service operations.

    Provides consistent success/failure handling for views.

    Attributes:
        success: Whether the operation succeeded
        data: Result data if successful (None if failed)
        error: Error message if failed (None if successful)
        error_code: Machine-readable error code for client handling
        errors: Field-level errors for validation failures
        details: Extra context for the failure (ids, states, amounts)
        http_status: Status code a view should answer a failure with

    Usage:
        # Success case
        return ServiceResult.success(booking)

        # Failure case
        return ServiceResult.failure(
            "Only the client can re-quote a booking",
            error_code="PERMISSION_DENIED",
            http_status=403,
        )

        # Check result
        result = BookingLedger.execute(BookingLedger.get_booking, booking_id)
        if result.success:
            booking = result.data
        else:
            print(f"Error: {result.error} ({result.error_code})")
    """

    success: bool
    data: T | None = None
    error: str | None = None
    error_code: str | None = None
    errors: dict[str, list[str]] | None = field(default=None)
    details: dict[str, Any] | None = field(default=None)
    http_status: int = 200

    @classmethod
    def ok(cls, data: T) -> ServiceResult[T]:
        """
        Create a successful result.

        Alias for success() - use whichever reads better in context.
        """
        return cls(success=True, data=data)

    @classmethod
    def success(cls, data: T) -> ServiceResult[T]:
        """
        Create a successful result.

        Args:
            data: The result data

        Returns:
            ServiceResult with success=True and data set
        """
        return cls(success=True, data=data)

    @classmethod
    def failure(
        cls,
        error: str,
        error_code: str | None = None,
        errors: dict[str, list[str]] | None = None,
        details: dict[str, Any] | None = None,
        http_status: int = 400,
    ) -> ServiceResult[T]:
        """
        Create a failed result.

        Args:
            error: Human-readable error message
            error_code: Machine-readable error code for client handling
            errors: Field-level errors (for validation failures)
            details: Extra failure context
            http_status: Status code for the API response (default 400)

        Returns:
            ServiceResult with success=False and error details
        """
        return cls(
            success=False,
            error=error,
            error_code=error_code,
            errors=errors,
            details=details,
            http_status=http_status,
        )

    @classmethod
    def from_exception(cls, exc: Exception, error_code: str | None = None) -> ServiceResult[T]:
        """
        Create a failed result from an exception.

        Application errors keep their message, code, details and HTTP
        status. Any other exception is reported under its class name.

        Args:
            exc: The caught exception
            error_code: Optional error code override

        Returns:
            ServiceResult with error details from exception

        Example:
            try:
                engine.release(payment_id, trigger=trigger)
            except InvalidTransitionError as e:
                return ServiceResult.from_exception(e)
        """
        if isinstance(exc, BaseApplicationError):
            return cls.failure(
                exc.message,
                error_code=error_code or exc.error_code,
                details=exc.details or None,
                http_status=exc.http_status,
            )
        return cls.failure(
            str(exc),
            error_code=error_code or exc.__class__.__name__.upper(),
        )

    def to_response(self) -> dict[str, Any]:
        """
        Convert to API response format.

        Returns:
            Dict with success status and data or error details

        Example:
            {
                "success": False,
                "error": "Booking 7f0c... not found",
                "error_code": "BOOKING_NOT_FOUND",
                "details": {"booking_id": "7f0c..."}
            }
        """
        if self.success:
            return {"success": True, "data": self.data}

        response: dict[str, Any] = {
            "success": False,
            "error": self.error,
        }
        if self.error_code:
            response["error_code"] = self.error_code
        if self.errors:
            response["errors"] = self.errors
        if self.details:
            response["details"] = self.details
        return response

    def map(self, func) -> ServiceResult:
        """
        Transform the data if successful.

        Example:
            result = engine.execute(engine.get_payment, payment_id)
            serialized = result.map(lambda p: PaymentSerializer(p).data)
        """
        if self.success and self.data is not None:
            return ServiceResult.success(func(self.data))
        return self  # type: ignore

    def __bool__(self) -> bool:
        """Allow using result in boolean context (same as result.success)."""
        return self.success


class BaseService:
    """
    Base class for service layer classes.

    Provides common utilities for services:
    - Logging setup per service
    - Database transaction management
    - Conversion of expected failures into ServiceResult

    Design Notes:
        - Services raise core.exceptions subclasses for expected failures
        - Views call operations through execute() and branch on
          result.success
        - Unexpected failures (database outages, bugs) propagate unchanged
    """

    @classmethod
    def get_logger(cls) -> logging.Logger:
        """
        Get logger for this service.

        Returns a logger named after the service class for
        easy filtering in logs.
        """
        return logging.getLogger(f"{cls.__module__}.{cls.__name__}")

    @classmethod
    @contextmanager
    def atomic(cls) -> Generator[None, None, None]:
        """
        Execute operations in a database transaction.

        All database operations within this context manager are
        wrapped in a transaction (or a savepoint when nested). If any
        operation fails, all changes are rolled back.

        Example:
            with cls.atomic():
                booking.cancel(actor=actor)
                booking.save()
                booking_cancelled.send(sender=Booking, booking=booking)
        """
        with transaction.atomic():
            yield

    @classmethod
    def handle_exception(
        cls,
        exc: Exception,
        context: str = "",
        log_level: int = logging.ERROR,
    ) -> ServiceResult:
        """
        Convert exception to ServiceResult with logging.

        Args:
            exc: The caught exception
            context: Additional context for logging
            log_level: Logging level (default ERROR)

        Returns:
            ServiceResult with error details
        """
        message = f"{context}: {exc}" if context else str(exc)
        cls.get_logger().log(
            log_level,
            message,
            exc_info=log_level >= logging.ERROR,
            extra={"error_code": getattr(exc, "error_code", None)},
        )
        return ServiceResult.from_exception(exc)

    @classmethod
    def execute(cls, operation: Callable[..., T], *args, **kwargs) -> ServiceResult[T]:
        """
        Run a service operation and wrap its outcome in a ServiceResult.

        BaseApplicationError subclasses are expected failures (bad input,
        missing rows, state conflicts) and become failure results. Any
        other exception propagates.

        Example:
            engine = PaymentEscrowEngine()
            result = engine.execute(engine.verify, payment.id, verifier=user)
        """
        try:
            return ServiceResult.success(operation(*args, **kwargs))
        except BaseApplicationError as exc:
            return cls.handle_exception(
                exc,
                context=getattr(operation, "__name__", "operation"),
                log_level=logging.INFO,
            )
