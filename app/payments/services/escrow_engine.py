"""
Escrow engine for booking payments.

This module provides the PaymentEscrowEngine which owns Payment rows and
every escrow state change:

    create_payment  booking requested, payment pending_verification
    verify          pending_verification -> verified, booking confirmed
    release         verified -> released, payout written, booking completed
    fail            pending_verification/verified -> failed,
                    booking voided when the payment was verified

Concurrency:
    Each transition locks the booking row (select_for_update) and then
    saves the payment with a compare-and-set on its loaded status
    (ConcurrentTransitionMixin). A release or fail that loses the race
    against another terminal transition re-reads the payment and returns
    the terminal row instead of raising, so the deadline sweeper and a
    manual release can run concurrently without coordination.

Usage:
    from payments.services import PaymentEscrowEngine

    engine = PaymentEscrowEngine()
    payment = engine.create_payment(booking.id, "300.00", "bank_transfer")
    engine.verify(payment.id, verifier=staff_user)
    engine.release(payment.id, trigger=ReleaseTrigger.DELIVERY_CONFIRMED)
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta
from typing import TYPE_CHECKING

from django.conf import settings
from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import IntegrityError, transaction
from django.utils import timezone
from django_fsm import ConcurrentTransition, TransitionNotAllowed

from bookings.exceptions import BookingNotFoundError
from bookings.models import Booking, BookingStatus
from core.exceptions import ValidationError
from core.helpers import to_cents
from core.services import BaseService
from payments.exceptions import (
    DuplicatePaymentError,
    InvalidAmountError,
    InvalidTransitionError,
    PaymentNotFoundError,
)
from payments.fees import FeeCalculator
from payments.models import Payment, Payout
from payments.state_machines import PaymentStatus, ReleaseTrigger

if TYPE_CHECKING:
    from typing import Any
    from uuid import UUID

    from payments.fees import FeeBreakdown


@dataclass(frozen=True)
class ReleaseOutcome:
    """Result of a release call."""

    payment: Payment
    released: bool


class PaymentEscrowEngine(BaseService):
    """
    Service for escrow payment operations.

    Args:
        calculator: Fee calculator shared by preview and commit
        hold_period: Escrow hold after verification
            (default: ESCROW_HOLD_PERIOD_DAYS setting)
        schedule_version: Fee schedule for new payments
            (default: PAYMENTS_FEE_SCHEDULE_VERSION setting)
    """

    def __init__(
        self,
        calculator: FeeCalculator | None = None,
        hold_period: timedelta | None = None,
        schedule_version: int | None = None,
    ):
        self.calculator = calculator or FeeCalculator()
        if hold_period is None:
            hold_period = timedelta(days=settings.ESCROW_HOLD_PERIOD_DAYS)
        self.hold_period = hold_period
        if schedule_version is None:
            schedule_version = settings.PAYMENTS_FEE_SCHEDULE_VERSION
        self.schedule_version = schedule_version

    # ==========================================================================
    # Fee Preview
    # ==========================================================================

    def preview(self, gross_amount: Any) -> FeeBreakdown:
        """
        Advisory fee breakdown with the current schedule.

        Uses the same computation as create_payment; nothing is persisted.
        """
        return self.calculator.compute(gross_amount, self.schedule_version)

    # ==========================================================================
    # Create
    # ==========================================================================

    def create_payment(
        self,
        booking_id: UUID | str,
        gross_amount: Any,
        payment_method: str,
        client_notes: str = "",
    ) -> Payment:
        """
        Record a client payment for a requested booking.

        Raises:
            InvalidAmountError: If gross_amount is invalid or differs from
                the booking's quoted price
            AmountTooSmallError / UnknownScheduleVersionError: From the
                fee calculator
            ValidationError: If payment_method is blank
            BookingNotFoundError: If the booking does not exist
            InvalidTransitionError: If the booking is not requested
            DuplicatePaymentError: If the booking already has an open payment
        """
        logger = self.get_logger()

        if not payment_method or not payment_method.strip():
            raise ValidationError(
                "Payment method is required",
                error_code="PAYMENT_METHOD_REQUIRED",
            )

        breakdown = self.calculator.compute(gross_amount, self.schedule_version)

        with self.atomic():
            booking = self._lock_booking(booking_id)

            if booking.status != BookingStatus.REQUESTED:
                raise InvalidTransitionError(
                    f"Booking {booking.id} is {booking.status} and cannot take a payment",
                    details={
                        "booking_id": str(booking.id),
                        "booking_status": booking.status,
                    },
                )
            if breakdown.gross_amount != booking.quoted_price:
                raise InvalidAmountError(
                    "Payment amount does not match the booking quote",
                    error_code="AMOUNT_QUOTE_MISMATCH",
                    details={
                        "gross_amount": str(breakdown.gross_amount),
                        "quoted_price": str(booking.quoted_price),
                        "quote_version": booking.quote_version,
                    },
                )

            try:
                with transaction.atomic():
                    payment = Payment.objects.create(
                        booking=booking,
                        provider_id=booking.provider_id,
                        gross_amount_cents=to_cents(breakdown.gross_amount),
                        platform_fee_cents=to_cents(breakdown.platform_fee),
                        processor_fee_cents=to_cents(breakdown.processor_fee),
                        payout_amount_cents=to_cents(breakdown.payout),
                        platform_fee_rate=breakdown.platform_fee_rate,
                        schedule_version=breakdown.schedule_version,
                        payment_method=payment_method.strip(),
                        client_notes=client_notes,
                        metadata={"quote_version": booking.quote_version},
                    )
            except IntegrityError:
                existing = Payment.objects.filter(booking=booking).open().first()
                if existing is None:
                    raise
                raise DuplicatePaymentError(
                    f"Booking {booking.id} already has an open payment",
                    details={
                        "booking_id": str(booking.id),
                        "payment_id": str(existing.id),
                        "status": existing.status,
                    },
                ) from None

            self._notify_on_commit(payment, "submitted")

        logger.info(
            f"Payment {payment.id} created for booking {booking.id}",
            extra={
                "payment_id": str(payment.id),
                "booking_id": str(booking.id),
                "gross_amount": str(breakdown.gross_amount),
                "platform_fee": str(breakdown.platform_fee),
                "processor_fee": str(breakdown.processor_fee),
                "payout": str(breakdown.payout),
                "schedule_version": breakdown.schedule_version,
            },
        )
        return payment

    # ==========================================================================
    # Transitions
    # ==========================================================================

    def verify(self, payment_id: UUID | str, verifier, notes: str = "") -> Payment:
        """
        Confirm receipt of funds and start the escrow hold.

        Raises:
            PaymentNotFoundError: If the payment does not exist
            InvalidTransitionError: If the payment is not pending
                verification or the booking is no longer requested
        """
        logger = self.get_logger()

        with self.atomic():
            payment = self._get_payment(payment_id)
            booking = self._lock_booking(payment.booking_id)

            if payment.status != PaymentStatus.PENDING_VERIFICATION:
                raise self._transition_error(payment, PaymentStatus.VERIFIED)

            try:
                payment.verify(
                    verifier=verifier, hold_period=self.hold_period, notes=notes
                )
                payment.save()
            except (ConcurrentTransition, TransitionNotAllowed):
                current = self._get_payment(payment_id)
                raise self._transition_error(current, PaymentStatus.VERIFIED) from None

            try:
                booking.confirm()
                booking.save()
            except (ConcurrentTransition, TransitionNotAllowed):
                raise InvalidTransitionError(
                    f"Booking {booking.id} is {booking.status} and cannot be confirmed",
                    details={
                        "payment_id": str(payment.id),
                        "booking_id": str(booking.id),
                        "booking_status": booking.status,
                    },
                ) from None

            self._notify_on_commit(payment, "verified")

        logger.info(
            f"Payment {payment.id} verified",
            extra={
                "payment_id": str(payment.id),
                "booking_id": str(booking.id),
                "verifier_id": str(verifier.pk) if verifier else None,
                "escrow_release_at": payment.escrow_release_at.isoformat(),
            },
        )
        return payment

    def release(
        self,
        payment_id: UUID | str,
        trigger: str,
        actor=None,
    ) -> Payment:
        """
        Release escrowed funds to the provider.

        A payment that is already released or failed (including one that
        reached that state while this call was running) is returned as
        it is, and no second payout is written.

        Raises:
            See release_with_outcome
        """
        return self.release_with_outcome(payment_id, trigger, actor=actor).payment

    def release_with_outcome(
        self,
        payment_id: UUID | str,
        trigger: str,
        actor=None,
    ) -> ReleaseOutcome:
        """
        Release escrowed funds and report whether this call released them.

        outcome.released is False when the payment was already terminal
        or another caller won the race, so callers can tell their own
        release apart from a concurrent one.

        Raises:
            ValidationError: If trigger is not a ReleaseTrigger
            PaymentNotFoundError: If the payment does not exist
            InvalidTransitionError: If the payment is still pending
                verification, or the trigger is deadline_elapsed and the
                escrow hold has not elapsed (code ESCROW_HOLD_ACTIVE)
        """
        logger = self.get_logger()

        if trigger not in ReleaseTrigger.values:
            raise ValidationError(
                f"Unknown release trigger: {trigger}",
                error_code="INVALID_RELEASE_TRIGGER",
                details={"trigger": str(trigger), "allowed": ReleaseTrigger.values},
            )

        with self.atomic():
            payment = self._get_payment(payment_id)

            if payment.is_terminal:
                logger.info(
                    f"Payment {payment.id} already {payment.status}, release is a no-op",
                    extra={"payment_id": str(payment.id), "status": payment.status},
                )
                return ReleaseOutcome(payment=payment, released=False)

            if payment.status != PaymentStatus.VERIFIED:
                raise self._transition_error(payment, PaymentStatus.RELEASED)

            if trigger == ReleaseTrigger.DEADLINE_ELAPSED and not payment.hold_elapsed(
                timezone.now()
            ):
                raise InvalidTransitionError(
                    f"Escrow hold for payment {payment.id} has not elapsed",
                    error_code="ESCROW_HOLD_ACTIVE",
                    details={
                        "payment_id": str(payment.id),
                        "escrow_release_at": payment.escrow_release_at.isoformat(),
                    },
                )

            booking = self._lock_booking(payment.booking_id)

            try:
                payment.release(trigger=trigger)
                payment.save()
            except (ConcurrentTransition, TransitionNotAllowed):
                current = self._resolve_lost_race(payment_id, PaymentStatus.RELEASED)
                return ReleaseOutcome(payment=current, released=False)

            Payout.objects.create(
                payment=payment,
                provider_id=payment.provider_id,
                amount_cents=payment.payout_amount_cents,
            )

            try:
                booking.complete()
                booking.save()
            except (ConcurrentTransition, TransitionNotAllowed):
                raise InvalidTransitionError(
                    f"Booking {booking.id} is {booking.status} and cannot be completed",
                    details={
                        "payment_id": str(payment.id),
                        "booking_id": str(booking.id),
                        "booking_status": booking.status,
                    },
                ) from None

            self._notify_on_commit(payment, "released")

        logger.info(
            f"Payment {payment.id} released",
            extra={
                "payment_id": str(payment.id),
                "booking_id": str(booking.id),
                "trigger": trigger,
                "payout": str(payment.payout_amount),
                "actor_id": str(actor.pk) if actor else None,
            },
        )
        return ReleaseOutcome(payment=payment, released=True)

    def fail(self, payment_id: UUID | str, reason: str, actor=None) -> Payment:
        """
        Fail an open payment.

        Failing a verified payment voids its booking (funds go back to
        the client). A payment that is already released or failed is
        returned as it is.

        Raises:
            PaymentNotFoundError: If the payment does not exist
            InvalidTransitionError: If the payment changed to another open
                state while failing
        """
        logger = self.get_logger()

        with self.atomic():
            payment = self._get_payment(payment_id)

            if payment.is_terminal:
                logger.info(
                    f"Payment {payment.id} already {payment.status}, fail is a no-op",
                    extra={"payment_id": str(payment.id), "status": payment.status},
                )
                return payment

            booking = self._lock_booking(payment.booking_id)
            was_verified = payment.status == PaymentStatus.VERIFIED

            try:
                payment.fail(reason=reason)
                payment.save()
            except (ConcurrentTransition, TransitionNotAllowed):
                return self._resolve_lost_race(payment_id, PaymentStatus.FAILED)

            if was_verified:
                try:
                    booking.void(actor=actor, reason=reason)
                    booking.save()
                except (ConcurrentTransition, TransitionNotAllowed):
                    raise InvalidTransitionError(
                        f"Booking {booking.id} is {booking.status} and cannot be voided",
                        details={
                            "payment_id": str(payment.id),
                            "booking_id": str(booking.id),
                            "booking_status": booking.status,
                        },
                    ) from None

        logger.info(
            f"Payment {payment.id} failed",
            extra={
                "payment_id": str(payment.id),
                "booking_id": str(booking.id),
                "was_verified": was_verified,
                "reason": reason,
                "actor_id": str(actor.pk) if actor else None,
            },
        )
        return payment

    # ==========================================================================
    # Lookup
    # ==========================================================================

    def get_payment(self, payment_id: UUID | str) -> Payment:
        """
        Raises:
            PaymentNotFoundError: If no payment has this id
        """
        return self._get_payment(payment_id)

    def get_payment_for_booking(self, booking_id: UUID | str) -> Payment:
        """
        Latest payment submitted for a booking.

        A booking keeps its failed payments after a re-quote, so the most
        recently created row reflects where the booking's funds stand.

        Raises:
            PaymentNotFoundError: If the booking has no payment
        """
        try:
            payment = (
                Payment.objects.filter(booking_id=booking_id)
                .select_related("booking", "payout")
                .order_by("-created_at", "-id")
                .first()
            )
        except (DjangoValidationError, ValueError):
            payment = None
        if payment is None:
            raise PaymentNotFoundError(
                f"No payment for booking {booking_id}",
                details={"booking_id": str(booking_id)},
            )
        return payment

    def fail_open_payments(self, booking_id: UUID | str, reason: str, actor=None) -> int:
        """
        Fail every open payment of a booking.

        Called when the booking is cancelled or re-quoted, inside the
        booking ledger's transaction.

        Returns:
            Number of payments failed
        """
        payment_ids = list(
            Payment.objects.filter(booking_id=booking_id)
            .open()
            .values_list("id", flat=True)
        )
        for payment_id in payment_ids:
            self.fail(payment_id, reason=reason, actor=actor)
        return len(payment_ids)

    # ==========================================================================
    # Helpers
    # ==========================================================================

    def _get_payment(self, payment_id: UUID | str) -> Payment:
        try:
            return Payment.objects.get(id=payment_id)
        except (Payment.DoesNotExist, DjangoValidationError, ValueError):
            raise PaymentNotFoundError(
                f"Payment {payment_id} not found",
                details={"payment_id": str(payment_id)},
            ) from None

    def _lock_booking(self, booking_id: UUID | str) -> Booking:
        try:
            return Booking.objects.select_for_update().get(id=booking_id)
        except (Booking.DoesNotExist, DjangoValidationError, ValueError):
            raise BookingNotFoundError(
                f"Booking {booking_id} not found",
                details={"booking_id": str(booking_id)},
            ) from None

    def _resolve_lost_race(self, payment_id: UUID | str, target: str) -> Payment:
        current = self._get_payment(payment_id)
        if current.is_terminal:
            self.get_logger().info(
                f"Payment {current.id} reached {current.status} concurrently",
                extra={
                    "payment_id": str(current.id),
                    "status": current.status,
                    "target_state": target,
                },
            )
            return current
        raise self._transition_error(current, target)

    @staticmethod
    def _transition_error(payment: Payment, target: str) -> InvalidTransitionError:
        return InvalidTransitionError(
            f"Cannot move payment {payment.id} from '{payment.status}' to '{target}'",
            details={
                "payment_id": str(payment.id),
                "current_state": payment.status,
                "target_state": str(target),
            },
        )

    @staticmethod
    def _notify_on_commit(payment: Payment, event: str) -> None:
        from payments.tasks import send_payment_notification

        payment_id = str(payment.id)
        transaction.on_commit(
            lambda: send_payment_notification.delay(payment_id, event)
        )
