"""
BookingLedger service.

Owns Booking rows: creation with provider minimum checks, cancellation
before funding, and re-quoting. Confirmation, completion and voiding of a
funded booking are driven by the escrow engine in the payments app; the
ledger never reads payment state.

Usage:
    from bookings.services import BookingLedger

    booking = BookingLedger.create_booking(
        client=client,
        provider=provider,
        quoted_price="300.00",
        scheduled_date=timezone.now() + timedelta(days=3),
        hours=2,
    )
    BookingLedger.cancel_booking(booking.id, actor=client, reason="Plans changed")
"""

from __future__ import annotations

from decimal import Decimal, InvalidOperation
from typing import TYPE_CHECKING

from django.core.exceptions import ValidationError as DjangoValidationError
from django_fsm import ConcurrentTransition

from bookings.exceptions import (
    BookingNotFoundError,
    CannotCancelFundedBookingError,
    CannotRequoteFundedBookingError,
    InvalidPriceError,
    ProviderUnavailableError,
)
from bookings.models import Booking, BookingStatus, TalentProfile
from bookings.signals import booking_cancelled, booking_requoted
from core.exceptions import ValidationError
from core.helpers import parse_money, to_cents
from core.services import BaseService

if TYPE_CHECKING:
    from datetime import datetime
    from typing import Any
    from uuid import UUID

    from bookings.models import TalentService

HOURS_STEP = Decimal("0.01")
MAX_HOURS = Decimal("9999.99")


class BookingLedger(BaseService):
    """
    Service for the booking lifecycle owned by the bookings app.

    Methods:
        create_booking: Validate provider minimums and create a booking
        cancel_booking: requested -> cancelled (idempotent when cancelled)
        requote_booking: Change the price of an unfunded booking
        get_booking: Fetch a booking or raise BookingNotFoundError
    """

    @classmethod
    def create_booking(
        cls,
        client,
        provider,
        quoted_price: Any,
        scheduled_date: datetime,
        hours: Any,
        service: TalentService | None = None,
        title: str = "",
        description: str = "",
    ) -> Booking:
        """
        Create a booking in the requested state.

        Raises:
            ValidationError: If client and provider are the same user or
                hours is not positive
            InvalidPriceError: If quoted_price is not a positive cent amount
            ProviderUnavailableError: If the provider cannot take the booking
        """
        logger = cls.get_logger()

        if client.pk == provider.pk:
            raise ValidationError(
                "A user cannot book themselves",
                error_code="SELF_BOOKING",
                details={"user_id": str(client.pk)},
            )

        price = cls._parse_price(quoted_price)
        hours_value = cls._parse_hours(hours)
        profile = cls._get_available_profile(provider)
        cls._check_minimums(profile, price, hours_value, service)

        booking = Booking.objects.create(
            client=client,
            provider=provider,
            service=service,
            title=title,
            description=description,
            scheduled_date=scheduled_date,
            hours=hours_value,
            quoted_price_cents=to_cents(price),
            hourly_rate_snapshot_cents=profile.hourly_rate_cents,
        )

        logger.info(
            f"Booking {booking.id} created",
            extra={
                "booking_id": str(booking.id),
                "client_id": str(client.pk),
                "provider_id": str(provider.pk),
                "quoted_price": str(price),
            },
        )
        return booking

    @classmethod
    def cancel_booking(
        cls,
        booking_id: UUID | str,
        actor=None,
        reason: str = "",
    ) -> Booking:
        """
        Cancel a booking that has not been funded.

        Cancelling an already cancelled booking returns it unchanged.
        Open payments for the booking are failed by the payments app in
        the same transaction (booking_cancelled signal).

        Raises:
            BookingNotFoundError: If the booking does not exist
            CannotCancelFundedBookingError: If the booking is confirmed
                or completed
        """
        logger = cls.get_logger()

        with cls.atomic():
            booking = cls._get_locked(booking_id)

            if booking.status == BookingStatus.CANCELLED:
                return booking
            if booking.status != BookingStatus.REQUESTED:
                raise CannotCancelFundedBookingError(
                    f"Booking {booking.id} is {booking.status} and cannot be cancelled",
                    details={"booking_id": str(booking.id), "status": booking.status},
                )

            booking.cancel(actor=actor, reason=reason)
            try:
                booking.save()
            except ConcurrentTransition:
                current = cls.get_booking(booking.id)
                if current.status == BookingStatus.CANCELLED:
                    return current
                raise CannotCancelFundedBookingError(
                    f"Booking {booking.id} changed to {current.status} while cancelling",
                    details={"booking_id": str(booking.id), "status": current.status},
                ) from None

            booking_cancelled.send(
                sender=Booking, booking=booking, actor=actor, reason=reason
            )

        logger.info(
            f"Booking {booking.id} cancelled",
            extra={
                "booking_id": str(booking.id),
                "actor_id": str(actor.pk) if actor else None,
            },
        )
        return booking

    @classmethod
    def requote_booking(
        cls,
        booking_id: UUID | str,
        quoted_price: Any,
        hours: Any = None,
        actor=None,
    ) -> Booking:
        """
        Change the quoted price (and optionally hours) of a requested booking.

        Every open payment for the booking was computed against the old
        price, so the payments app fails them (booking_requoted signal).

        Raises:
            BookingNotFoundError: If the booking does not exist
            CannotRequoteFundedBookingError: If the booking is not requested
            InvalidPriceError / ProviderUnavailableError: As for create_booking
        """
        logger = cls.get_logger()
        price = cls._parse_price(quoted_price)
        hours_value = None if hours is None else cls._parse_hours(hours)

        with cls.atomic():
            booking = cls._get_locked(booking_id)

            if booking.status != BookingStatus.REQUESTED:
                raise CannotRequoteFundedBookingError(
                    f"Booking {booking.id} is {booking.status} and cannot be re-quoted",
                    details={"booking_id": str(booking.id), "status": booking.status},
                )

            if hours_value is None:
                hours_value = booking.hours
            profile = cls._get_available_profile(booking.provider)
            cls._check_minimums(profile, price, hours_value, booking.service)

            previous_price = booking.quoted_price
            booking.quoted_price_cents = to_cents(price)
            booking.hours = hours_value
            booking.quote_version += 1
            try:
                booking.save()
            except ConcurrentTransition:
                raise CannotRequoteFundedBookingError(
                    f"Booking {booking.id} changed state while re-quoting",
                    details={"booking_id": str(booking.id)},
                ) from None

            booking_requoted.send(
                sender=Booking,
                booking=booking,
                actor=actor,
                previous_price=previous_price,
            )

        logger.info(
            f"Booking {booking.id} re-quoted",
            extra={
                "booking_id": str(booking.id),
                "previous_price": str(previous_price),
                "quoted_price": str(price),
                "quote_version": booking.quote_version,
            },
        )
        return booking

    @classmethod
    def get_booking(cls, booking_id: UUID | str) -> Booking:
        """
        Raises:
            BookingNotFoundError: If no booking has this id
        """
        try:
            return Booking.objects.get(id=booking_id)
        except (Booking.DoesNotExist, DjangoValidationError, ValueError):
            raise BookingNotFoundError(
                f"Booking {booking_id} not found",
                details={"booking_id": str(booking_id)},
            ) from None

    # ==========================================================================
    # Helpers
    # ==========================================================================

    @classmethod
    def _get_locked(cls, booking_id: UUID | str) -> Booking:
        try:
            return Booking.objects.select_for_update().get(id=booking_id)
        except (Booking.DoesNotExist, DjangoValidationError, ValueError):
            raise BookingNotFoundError(
                f"Booking {booking_id} not found",
                details={"booking_id": str(booking_id)},
            ) from None

    @staticmethod
    def _parse_price(quoted_price: Any) -> Decimal:
        try:
            price = parse_money(quoted_price)
        except ValueError as e:
            raise InvalidPriceError(
                f"Invalid quoted price: {quoted_price!r}",
                details={"quoted_price": str(quoted_price), "reason": str(e)},
            ) from e
        if price <= 0:
            raise InvalidPriceError(
                "Quoted price must be greater than zero",
                details={"quoted_price": str(price)},
            )
        return price

    @staticmethod
    def _parse_hours(hours: Any) -> Decimal:
        try:
            value = Decimal(str(hours))
        except (InvalidOperation, ValueError):
            value = None
        if isinstance(hours, bool) or value is None or not value.is_finite() or value <= 0:
            raise ValidationError(
                "Hours must be a positive number",
                error_code="INVALID_HOURS",
                details={"hours": str(hours)},
            )
        # Booking.hours is DecimalField(max_digits=6, decimal_places=2)
        if value > MAX_HOURS or value.quantize(HOURS_STEP) != value:
            raise ValidationError(
                f"Hours must be at most {MAX_HOURS} with two decimal places",
                error_code="INVALID_HOURS",
                details={"hours": str(hours)},
            )
        return value.quantize(HOURS_STEP)

    @staticmethod
    def _get_available_profile(provider) -> TalentProfile:
        profile = TalentProfile.objects.filter(user=provider).first()
        if profile is None:
            raise ProviderUnavailableError(
                "Provider has no talent profile",
                details={"provider_id": str(provider.pk), "reason": "no_profile"},
            )
        if not profile.is_accepting_bookings:
            raise ProviderUnavailableError(
                "Provider is not accepting bookings",
                details={"provider_id": str(provider.pk), "reason": "not_accepting"},
            )
        return profile

    @staticmethod
    def _check_minimums(
        profile: TalentProfile,
        price: Decimal,
        hours: Decimal,
        service: TalentService | None,
    ) -> None:
        provider_id = str(profile.user_id)

        if hours < profile.minimum_booking_hours:
            raise ProviderUnavailableError(
                f"Provider requires at least {profile.minimum_booking_hours} hours",
                details={
                    "provider_id": provider_id,
                    "reason": "below_minimum_hours",
                    "minimum_booking_hours": str(profile.minimum_booking_hours),
                },
            )
        if price < profile.minimum_price:
            raise ProviderUnavailableError(
                f"Provider requires a price of at least {profile.minimum_price}",
                details={
                    "provider_id": provider_id,
                    "reason": "below_minimum_price",
                    "minimum_price": str(profile.minimum_price),
                },
            )

        if service is None:
            return
        if service.provider_id != profile.user_id or not service.is_active:
            raise ProviderUnavailableError(
                "Service is not offered by this provider",
                details={
                    "provider_id": provider_id,
                    "service_id": str(service.pk),
                    "reason": "service_unavailable",
                },
            )
        if service.min_price is not None and price < service.min_price:
            raise ProviderUnavailableError(
                f"Service requires a price of at least {service.min_price}",
                details={
                    "provider_id": provider_id,
                    "service_id": str(service.pk),
                    "reason": "below_service_minimum",
                    "min_price": str(service.min_price),
                },
            )
