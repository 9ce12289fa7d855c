"""
Payment-specific exceptions for fee and escrow operations.

Exception Hierarchy:
    ValidationError (core)
    ├── InvalidAmountError - Gross amount not a positive cent-precise number
    ├── AmountTooSmallError - Fees would exceed the gross amount
    └── UnknownScheduleVersionError - No fee schedule registered for version

    NotFoundError (core)
    └── PaymentNotFoundError - Payment lookup failures

    ConflictError (core)
    ├── InvalidTransitionError - Escrow transition not allowed from current state
    └── DuplicatePaymentError - Booking already has an open payment

Usage:
    from payments.exceptions import InvalidTransitionError

    raise InvalidTransitionError(
        "Cannot release payment from 'pending_verification'",
        details={"current_state": "pending_verification", "target_state": "released"}
    )

Note:
    A release or fail that loses a race against another terminal
    transition is not an error; the engine returns the terminal row.
    InvalidTransitionError means the caller's view of the payment is
    stale in a way that cannot be resolved idempotently.
"""

from __future__ import annotations

from core.exceptions import ConflictError, NotFoundError, ValidationError

# =============================================================================
# Fee Calculation Exceptions
# =============================================================================


class InvalidAmountError(ValidationError):
    """
    Raised when a gross amount is rejected.

    Use for:
    - Zero or negative amounts
    - NaN, infinity, or values that are not numbers
    - Precision finer than one cent
    - Amounts that do not match the booking's quote
    """

    default_error_code: str = "INVALID_AMOUNT"


class AmountTooSmallError(ValidationError):
    """
    Raised when fees would consume more than the gross amount.

    With the fixed processor fee, very small amounts (e.g. $0.01) would
    produce a negative payout.
    """

    default_error_code: str = "AMOUNT_TOO_SMALL"


class UnknownScheduleVersionError(ValidationError):
    """Raised when no fee schedule is registered for the requested version."""

    default_error_code: str = "UNKNOWN_SCHEDULE_VERSION"


# =============================================================================
# Escrow Exceptions
# =============================================================================


class PaymentNotFoundError(NotFoundError):
    """
    Raised when a payment cannot be found.

    Example:
        payment = Payment.objects.filter(id=payment_id).first()
        if not payment:
            raise PaymentNotFoundError(
                f"Payment {payment_id} not found",
                details={"payment_id": str(payment_id)}
            )
    """

    default_error_code: str = "PAYMENT_NOT_FOUND"


class InvalidTransitionError(ConflictError):
    """
    Raised when an escrow transition is not allowed.

    Use for:
    - Verifying a payment that is no longer pending verification
    - Releasing a payment that has not been verified
    - Deadline release before the escrow hold has elapsed
    - Creating a payment for a booking that is not awaiting payment
    """

    default_error_code: str = "INVALID_STATE_TRANSITION"


class DuplicatePaymentError(ConflictError):
    """
    Raised when a booking already has a non-terminal payment.

    Backed by the partial unique constraint on Payment.booking, so it
    also fires when two submissions race.
    """

    default_error_code: str = "DUPLICATE_PAYMENT"
