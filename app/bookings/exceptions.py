"""
Booking-specific exceptions.

Exception Hierarchy:
    ValidationError (core)
    ├── InvalidPriceError - Quoted price not a positive cent amount
    └── ProviderUnavailableError - Provider cannot take this booking

    NotFoundError (core)
    └── BookingNotFoundError

    ConflictError (core)
    ├── CannotCancelFundedBookingError - Booking already confirmed/completed
    └── CannotRequoteFundedBookingError - Price is locked once funded
"""

from core.exceptions import ConflictError, NotFoundError, ValidationError


class InvalidPriceError(ValidationError):
    """Raised for zero, negative, non-numeric or sub-cent quoted prices."""

    default_error_code: str = "INVALID_PRICE"


class ProviderUnavailableError(ValidationError):
    """
    Raised when the provider cannot accept the booking as requested.

    Use for:
    - Provider has no talent profile or is not accepting bookings
    - Hours below the provider's minimum
    - Price below the provider's or the service's minimum
    - Service inactive or offered by a different provider
    """

    default_error_code: str = "PROVIDER_UNAVAILABLE"


class BookingNotFoundError(NotFoundError):
    default_error_code: str = "BOOKING_NOT_FOUND"


class CannotCancelFundedBookingError(ConflictError):
    """
    Raised when cancelling a booking that is confirmed or completed.

    A funded booking is cancelled by failing its payment instead.
    """

    default_error_code: str = "CANNOT_CANCEL_FUNDED_BOOKING"


class CannotRequoteFundedBookingError(ConflictError):
    default_error_code: str = "CANNOT_REQUOTE_FUNDED_BOOKING"
