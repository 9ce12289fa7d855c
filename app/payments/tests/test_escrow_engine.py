"""
Tests for PaymentEscrowEngine.

These tests verify that:
- Payments are created with the authoritative fee breakdown
- Each transition moves the booking along with the payment
- Release and fail are no-ops on terminal payments, even when they
  lose a race against another writer
- A payment is never paid out twice
- Notifications are queued only after the transaction commits
"""

from datetime import timedelta
from decimal import Decimal
from unittest.mock import patch

import pytest
from django.utils import timezone
from freezegun import freeze_time

from bookings.exceptions import BookingNotFoundError
from bookings.models import Booking, BookingStatus
from bookings.tests.factories import BookingFactory
from core.exceptions import ValidationError
from payments.exceptions import (
    AmountTooSmallError,
    DuplicatePaymentError,
    InvalidAmountError,
    InvalidTransitionError,
    PaymentNotFoundError,
)
from payments.models import Payment, Payout
from payments.services import PaymentEscrowEngine
from payments.state_machines import PaymentStatus, PayoutState, ReleaseTrigger
from payments.tests.factories import PaymentFactory


def _stale_lookup(stale):
    """Return the stale instance first, then fresh rows from the database."""
    calls = []

    def lookup(payment_id):
        calls.append(payment_id)
        if len(calls) == 1:
            return stale
        return Payment.objects.get(id=payment_id)

    return lookup


# =============================================================================
# Create
# =============================================================================


class TestCreatePayment:
    def test_creates_pending_payment_with_fees(self, engine, requested_booking):
        payment = engine.create_payment(
            requested_booking.id, "300.00", "bank_transfer", client_notes="Ref 42"
        )

        payment = Payment.objects.get(id=payment.id)
        assert payment.status == PaymentStatus.PENDING_VERIFICATION
        assert payment.provider_id == requested_booking.provider_id
        assert payment.gross_amount == Decimal("300.00")
        assert payment.platform_fee == Decimal("45.00")
        assert payment.processor_fee == Decimal("9.00")
        assert payment.payout_amount == Decimal("246.00")
        assert payment.platform_fee_rate == Decimal("0.1500")
        assert payment.schedule_version == 1
        assert payment.client_notes == "Ref 42"
        assert payment.metadata == {"quote_version": 1}

    def test_booking_stays_requested(self, engine, requested_booking):
        engine.create_payment(requested_booking.id, "300.00", "bank_transfer")

        booking = Booking.objects.get(id=requested_booking.id)
        assert booking.status == BookingStatus.REQUESTED

    def test_fee_breakdown_matches_preview(self, engine, client_user, provider_user):
        booking = BookingFactory(
            client=client_user, provider=provider_user, quoted_price_cents=150000
        )

        preview = engine.preview("1500.00")
        payment = engine.create_payment(booking.id, Decimal("1500.00"), "card")

        assert payment.platform_fee == preview.platform_fee == Decimal("180.00")
        assert payment.processor_fee == preview.processor_fee == Decimal("43.80")
        assert payment.payout_amount == preview.payout == Decimal("1276.20")

    def test_amount_must_match_quote(self, engine, requested_booking):
        with pytest.raises(InvalidAmountError) as exc_info:
            engine.create_payment(requested_booking.id, "299.99", "bank_transfer")

        assert exc_info.value.error_code == "AMOUNT_QUOTE_MISMATCH"
        assert exc_info.value.details["quoted_price"] == "300.00"
        assert not Payment.objects.exists()

    @pytest.mark.parametrize("amount", ["abc", "-5", "0", "10.001", None])
    def test_invalid_amount(self, engine, requested_booking, amount):
        with pytest.raises(InvalidAmountError):
            engine.create_payment(requested_booking.id, amount, "bank_transfer")

    def test_amount_too_small(self, engine, requested_booking):
        with pytest.raises(AmountTooSmallError):
            engine.create_payment(requested_booking.id, "0.10", "bank_transfer")

    @pytest.mark.parametrize("method", ["", "   "])
    def test_payment_method_required(self, engine, requested_booking, method):
        with pytest.raises(ValidationError) as exc_info:
            engine.create_payment(requested_booking.id, "300.00", method)

        assert exc_info.value.error_code == "PAYMENT_METHOD_REQUIRED"

    def test_unknown_booking(self, engine, db):
        with pytest.raises(BookingNotFoundError):
            engine.create_payment(
                "00000000-0000-0000-0000-000000000000", "300.00", "bank_transfer"
            )

    def test_booking_must_be_requested(self, engine, confirmed_booking):
        with pytest.raises(InvalidTransitionError):
            engine.create_payment(confirmed_booking.id, "300.00", "bank_transfer")

    def test_duplicate_open_payment(self, engine, pending_payment):
        with pytest.raises(DuplicatePaymentError) as exc_info:
            engine.create_payment(pending_payment.booking_id, "300.00", "bank_transfer")

        assert exc_info.value.details["payment_id"] == str(pending_payment.id)
        assert Payment.objects.filter(booking=pending_payment.booking).count() == 1

    def test_new_payment_after_failure(self, engine, pending_payment):
        engine.fail(pending_payment.id, reason="Rejected")

        payment = engine.create_payment(
            pending_payment.booking_id, "300.00", "bank_transfer"
        )

        assert payment.id != pending_payment.id
        assert payment.status == PaymentStatus.PENDING_VERIFICATION

    def test_notifies_after_commit(
        self, engine, requested_booking, django_capture_on_commit_callbacks
    ):
        with patch("payments.tasks.send_payment_notification.delay") as mock_delay:
            with django_capture_on_commit_callbacks(execute=True):
                payment = engine.create_payment(
                    requested_booking.id, "300.00", "bank_transfer"
                )

        mock_delay.assert_called_once_with(str(payment.id), "submitted")

    def test_no_notification_on_error(
        self, engine, requested_booking, django_capture_on_commit_callbacks
    ):
        with django_capture_on_commit_callbacks() as callbacks:
            with pytest.raises(InvalidAmountError):
                engine.create_payment(requested_booking.id, "100.00", "bank_transfer")

        assert callbacks == []


# =============================================================================
# Verify
# =============================================================================


class TestVerify:
    def test_verify_starts_hold_and_confirms_booking(
        self, engine, pending_payment, staff_user
    ):
        with freeze_time("2024-03-01 12:00:00"):
            payment = engine.verify(pending_payment.id, staff_user, notes="Wire in")

        payment = Payment.objects.get(id=payment.id)
        assert payment.status == PaymentStatus.VERIFIED
        assert payment.verified_by == staff_user
        assert payment.verification_notes == "Wire in"
        assert payment.escrow_release_at.isoformat() == "2024-03-08T12:00:00+00:00"

        booking = Booking.objects.get(id=pending_payment.booking_id)
        assert booking.status == BookingStatus.CONFIRMED
        assert booking.confirmed_at is not None

    def test_hold_period_from_settings(self, pending_payment, staff_user, settings):
        settings.ESCROW_HOLD_PERIOD_DAYS = 3

        payment = PaymentEscrowEngine().verify(pending_payment.id, staff_user)

        assert payment.escrow_release_at - payment.verified_at == timedelta(days=3)

    def test_verify_twice_rejected(self, engine, verified_payment, staff_user):
        with pytest.raises(InvalidTransitionError) as exc_info:
            engine.verify(verified_payment.id, staff_user)

        assert exc_info.value.details["current_state"] == PaymentStatus.VERIFIED

    def test_verify_failed_payment_rejected(self, engine, pending_payment, staff_user):
        engine.fail(pending_payment.id, reason="Bounced")

        with pytest.raises(InvalidTransitionError):
            engine.verify(pending_payment.id, staff_user)

    def test_cancelled_booking_rolls_back(self, engine, staff_user, client_user):
        booking = BookingFactory(client=client_user, status=BookingStatus.CANCELLED)
        payment = PaymentFactory(booking=booking)

        with pytest.raises(InvalidTransitionError):
            engine.verify(payment.id, staff_user)

        assert (
            Payment.objects.get(id=payment.id).status
            == PaymentStatus.PENDING_VERIFICATION
        )

    def test_unknown_payment(self, engine, staff_user):
        with pytest.raises(PaymentNotFoundError):
            engine.verify("not-a-uuid", staff_user)

    def test_lost_race_reports_current_state(self, engine, pending_payment, staff_user):
        stale = Payment.objects.get(id=pending_payment.id)
        engine.fail(pending_payment.id, reason="Rejected")

        with patch.object(
            PaymentEscrowEngine, "_get_payment", side_effect=_stale_lookup(stale)
        ):
            with pytest.raises(InvalidTransitionError) as exc_info:
                engine.verify(pending_payment.id, staff_user)

        assert exc_info.value.details["current_state"] == PaymentStatus.FAILED

    def test_notifies_after_commit(
        self, engine, pending_payment, staff_user, django_capture_on_commit_callbacks
    ):
        with patch("payments.tasks.send_payment_notification.delay") as mock_delay:
            with django_capture_on_commit_callbacks(execute=True):
                engine.verify(pending_payment.id, staff_user)

        mock_delay.assert_called_once_with(str(pending_payment.id), "verified")


# =============================================================================
# Release
# =============================================================================


class TestRelease:
    def test_delivery_confirmed_release(self, engine, verified_payment, client_user):
        payment = engine.release(
            verified_payment.id, ReleaseTrigger.DELIVERY_CONFIRMED, actor=client_user
        )

        payment = Payment.objects.get(id=payment.id)
        assert payment.status == PaymentStatus.RELEASED
        assert payment.release_trigger == ReleaseTrigger.DELIVERY_CONFIRMED

        payout = Payout.objects.get(payment=payment)
        assert payout.amount == Decimal("246.00")
        assert payout.provider_id == payment.provider_id
        assert payout.status == PayoutState.PENDING

        booking = Booking.objects.get(id=payment.booking_id)
        assert booking.status == BookingStatus.COMPLETED

    def test_deadline_release_after_hold(self, engine, due_payment):
        payment = engine.release(due_payment.id, ReleaseTrigger.DEADLINE_ELAPSED)

        assert payment.status == PaymentStatus.RELEASED
        assert payment.release_trigger == ReleaseTrigger.DEADLINE_ELAPSED

    def test_deadline_release_during_hold_rejected(self, engine, verified_payment):
        with pytest.raises(InvalidTransitionError) as exc_info:
            engine.release(verified_payment.id, ReleaseTrigger.DEADLINE_ELAPSED)

        assert exc_info.value.error_code == "ESCROW_HOLD_ACTIVE"
        assert (
            Payment.objects.get(id=verified_payment.id).status == PaymentStatus.VERIFIED
        )

    def test_pending_payment_cannot_be_released(self, engine, pending_payment):
        with pytest.raises(InvalidTransitionError):
            engine.release(pending_payment.id, ReleaseTrigger.DELIVERY_CONFIRMED)

    def test_unknown_trigger(self, engine, verified_payment):
        with pytest.raises(ValidationError) as exc_info:
            engine.release(verified_payment.id, "client_asked_nicely")

        assert exc_info.value.error_code == "INVALID_RELEASE_TRIGGER"

    def test_deadline_after_manual_release_is_noop(self, engine, verified_payment):
        first = engine.release(verified_payment.id, ReleaseTrigger.DELIVERY_CONFIRMED)

        with freeze_time(timezone.now() + timedelta(days=30)):
            second = engine.release(verified_payment.id, ReleaseTrigger.DEADLINE_ELAPSED)

        assert second.status == PaymentStatus.RELEASED
        assert second.release_trigger == ReleaseTrigger.DELIVERY_CONFIRMED
        assert second.released_at == first.released_at
        assert Payout.objects.filter(payment=verified_payment).count() == 1

    def test_release_of_failed_payment_is_noop(self, engine, verified_payment):
        engine.fail(verified_payment.id, reason="Chargeback")

        payment = engine.release(verified_payment.id, ReleaseTrigger.DELIVERY_CONFIRMED)

        assert payment.status == PaymentStatus.FAILED
        assert not Payout.objects.exists()

    def test_lost_race_returns_released_row(self, engine, due_payment):
        stale = Payment.objects.get(id=due_payment.id)
        engine.release(due_payment.id, ReleaseTrigger.DELIVERY_CONFIRMED)

        with patch.object(
            PaymentEscrowEngine, "_get_payment", side_effect=_stale_lookup(stale)
        ):
            payment = engine.release(due_payment.id, ReleaseTrigger.DEADLINE_ELAPSED)

        assert payment.status == PaymentStatus.RELEASED
        assert payment.release_trigger == ReleaseTrigger.DELIVERY_CONFIRMED
        assert Payout.objects.filter(payment=due_payment).count() == 1

    def test_outcome_reports_who_released(self, engine, due_payment):
        first = engine.release_with_outcome(due_payment.id, ReleaseTrigger.DEADLINE_ELAPSED)
        second = engine.release_with_outcome(
            due_payment.id, ReleaseTrigger.DEADLINE_ELAPSED
        )

        assert first.released is True
        assert second.released is False
        assert second.payment.status == PaymentStatus.RELEASED

    def test_outcome_of_lost_race_is_not_released(self, engine, due_payment):
        stale = Payment.objects.get(id=due_payment.id)
        engine.release(due_payment.id, ReleaseTrigger.DEADLINE_ELAPSED)

        with patch.object(
            PaymentEscrowEngine, "_get_payment", side_effect=_stale_lookup(stale)
        ):
            outcome = engine.release_with_outcome(
                due_payment.id, ReleaseTrigger.DEADLINE_ELAPSED
            )

        assert outcome.released is False
        assert outcome.payment.status == PaymentStatus.RELEASED
        assert Payout.objects.filter(payment=due_payment).count() == 1

    def test_lost_race_against_fail(self, engine, verified_payment):
        stale = Payment.objects.get(id=verified_payment.id)
        engine.fail(verified_payment.id, reason="Chargeback")

        with patch.object(
            PaymentEscrowEngine, "_get_payment", side_effect=_stale_lookup(stale)
        ):
            payment = engine.release(
                verified_payment.id, ReleaseTrigger.DELIVERY_CONFIRMED
            )

        assert payment.status == PaymentStatus.FAILED
        assert not Payout.objects.exists()

    def test_notifies_after_commit(
        self, engine, verified_payment, django_capture_on_commit_callbacks
    ):
        with patch("payments.tasks.send_payment_notification.delay") as mock_delay:
            with django_capture_on_commit_callbacks(execute=True):
                engine.release(verified_payment.id, ReleaseTrigger.DELIVERY_CONFIRMED)
                engine.release(verified_payment.id, ReleaseTrigger.DELIVERY_CONFIRMED)

        mock_delay.assert_called_once_with(str(verified_payment.id), "released")


# =============================================================================
# Fail
# =============================================================================


class TestFail:
    def test_fail_pending_keeps_booking_requested(self, engine, pending_payment):
        payment = engine.fail(pending_payment.id, reason="Funds never arrived")

        assert payment.status == PaymentStatus.FAILED
        assert payment.failure_reason == "Funds never arrived"
        booking = Booking.objects.get(id=pending_payment.booking_id)
        assert booking.status == BookingStatus.REQUESTED

    def test_fail_verified_voids_booking(self, engine, verified_payment, staff_user):
        engine.fail(verified_payment.id, reason="Chargeback", actor=staff_user)

        booking = Booking.objects.get(id=verified_payment.booking_id)
        assert booking.status == BookingStatus.CANCELLED
        assert booking.cancelled_by == staff_user
        assert booking.cancellation_reason == "Chargeback"

    def test_fail_released_is_noop(self, engine, released_payment):
        payment = engine.fail(released_payment.id, reason="Too late")

        assert payment.status == PaymentStatus.RELEASED
        assert payment.failure_reason == ""

    def test_fail_twice_keeps_first_reason(self, engine, pending_payment):
        engine.fail(pending_payment.id, reason="First")
        payment = engine.fail(pending_payment.id, reason="Second")

        assert payment.failure_reason == "First"

    def test_lost_race_returns_released_row(self, engine, verified_payment):
        stale = Payment.objects.get(id=verified_payment.id)
        engine.release(verified_payment.id, ReleaseTrigger.DELIVERY_CONFIRMED)

        with patch.object(
            PaymentEscrowEngine, "_get_payment", side_effect=_stale_lookup(stale)
        ):
            payment = engine.fail(verified_payment.id, reason="Chargeback")

        assert payment.status == PaymentStatus.RELEASED
        booking = Booking.objects.get(id=verified_payment.booking_id)
        assert booking.status == BookingStatus.COMPLETED

    def test_fail_sends_no_notification(
        self, engine, pending_payment, django_capture_on_commit_callbacks
    ):
        with django_capture_on_commit_callbacks() as callbacks:
            engine.fail(pending_payment.id, reason="Rejected")

        assert callbacks == []

    def test_fail_open_payments(self, engine, pending_payment):
        count = engine.fail_open_payments(pending_payment.booking_id, reason="Gone")

        assert count == 1
        assert Payment.objects.get(id=pending_payment.id).status == PaymentStatus.FAILED
        assert engine.fail_open_payments(pending_payment.booking_id, reason="Gone") == 0


class TestLookup:
    def test_get_payment(self, engine, pending_payment):
        assert engine.get_payment(pending_payment.id) == pending_payment

    def test_get_missing_payment(self, engine, db):
        with pytest.raises(PaymentNotFoundError):
            engine.get_payment("00000000-0000-0000-0000-000000000000")

    def test_get_payment_for_booking_returns_latest(self, engine, pending_payment):
        pending_payment.fail(reason="Booking re-quoted")
        pending_payment.save()
        replacement = PaymentFactory(booking=pending_payment.booking)
        Payment.objects.filter(id=replacement.id).update(
            created_at=pending_payment.created_at + timedelta(seconds=1)
        )

        assert engine.get_payment_for_booking(pending_payment.booking_id) == replacement

    def test_get_payment_for_booking_without_payment(self, engine, requested_booking):
        with pytest.raises(PaymentNotFoundError) as exc_info:
            engine.get_payment_for_booking(requested_booking.id)

        assert exc_info.value.details == {"booking_id": str(requested_booking.id)}

    def test_get_payment_for_malformed_booking_id(self, engine, db):
        with pytest.raises(PaymentNotFoundError):
            engine.get_payment_for_booking("not-a-uuid")
