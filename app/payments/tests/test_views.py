"""
Tests for payments API views.

Test Organization:
    - Each endpoint has its own test class
    - Tests follow pattern: test_<scenario>_<expected_outcome>

Testing Philosophy:
    Tests focus on observable HTTP behavior:
    - Response status codes
    - Response body structure and error codes
    - Database state changes
    - Authentication/permission enforcement
"""

from datetime import datetime, timedelta
from datetime import timezone as dt_timezone

from rest_framework import status
from rest_framework.test import APIClient

from bookings.models import Booking, BookingStatus
from payments.models import Payment
from payments.state_machines import PaymentStatus, ReleaseTrigger
from payments.tests.factories import PaymentFactory, VerifiedPaymentFactory

PAYMENTS_URL = "/api/v1/payments/"
FEE_PREVIEW_URL = "/api/v1/payments/fees/preview/"
EARNINGS_SUMMARY_URL = "/api/v1/payments/earnings/summary/"
EARNINGS_HISTORY_URL = "/api/v1/payments/earnings/history/"


def payment_detail_url(payment_id):
    return f"{PAYMENTS_URL}{payment_id}/"


def payment_action_url(payment_id, action):
    return f"{PAYMENTS_URL}{payment_id}/{action}/"


def booking_payment_url(booking_id):
    return f"{PAYMENTS_URL}booking/{booking_id}/"


class TestPaymentCreate:
    """Tests for POST /api/v1/payments/."""

    def test_client_submits_payment(self, client_api, requested_booking):
        response = client_api.post(
            PAYMENTS_URL,
            {
                "booking": str(requested_booking.id),
                "gross_amount": "300.00",
                "payment_method": "bank_transfer",
            },
            format="json",
        )

        assert response.status_code == status.HTTP_201_CREATED
        assert response.data["status"] == PaymentStatus.PENDING_VERIFICATION
        assert response.data["gross_amount"] == "300.00"
        assert response.data["platform_fee"] == "45.00"
        assert response.data["processor_fee"] == "9.00"
        assert response.data["payout_amount"] == "246.00"
        assert response.data["payout"] is None

    def test_provider_cannot_pay(self, provider_api, requested_booking):
        response = provider_api.post(
            PAYMENTS_URL,
            {
                "booking": str(requested_booking.id),
                "gross_amount": "300.00",
                "payment_method": "bank_transfer",
            },
            format="json",
        )

        assert response.status_code == status.HTTP_403_FORBIDDEN
        assert response.data["success"] is False
        assert response.data["error_code"] == "PERMISSION_DENIED"
        assert not Payment.objects.exists()

    def test_quote_mismatch(self, client_api, requested_booking):
        response = client_api.post(
            PAYMENTS_URL,
            {
                "booking": str(requested_booking.id),
                "gross_amount": "250.00",
                "payment_method": "bank_transfer",
            },
            format="json",
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.data["error_code"] == "AMOUNT_QUOTE_MISMATCH"

    def test_duplicate_payment_conflict(self, client_api, pending_payment):
        response = client_api.post(
            PAYMENTS_URL,
            {
                "booking": str(pending_payment.booking_id),
                "gross_amount": "300.00",
                "payment_method": "bank_transfer",
            },
            format="json",
        )

        assert response.status_code == status.HTTP_409_CONFLICT
        assert response.data["error_code"] == "DUPLICATE_PAYMENT"

    def test_unknown_booking(self, client_api):
        response = client_api.post(
            PAYMENTS_URL,
            {
                "booking": "00000000-0000-0000-0000-000000000000",
                "gross_amount": "300.00",
                "payment_method": "bank_transfer",
            },
            format="json",
        )

        assert response.status_code == status.HTTP_404_NOT_FOUND
        assert response.data["error_code"] == "BOOKING_NOT_FOUND"

    def test_missing_fields(self, client_api, requested_booking):
        response = client_api.post(
            PAYMENTS_URL, {"booking": str(requested_booking.id)}, format="json"
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert "gross_amount" in response.data

    def test_requires_authentication(self, requested_booking):
        response = APIClient().post(PAYMENTS_URL, {}, format="json")

        assert response.status_code == status.HTTP_401_UNAUTHORIZED


class TestPaymentRead:
    """Tests for GET /api/v1/payments/ and /api/v1/payments/{id}/."""

    def test_parties_see_payment(self, client_api, provider_api, pending_payment):
        for api in (client_api, provider_api):
            response = api.get(payment_detail_url(pending_payment.id))

            assert response.status_code == status.HTTP_200_OK
            assert response.data["id"] == str(pending_payment.id)

    def test_other_user_gets_404(self, other_api, pending_payment):
        response = other_api.get(payment_detail_url(pending_payment.id))

        assert response.status_code == status.HTTP_404_NOT_FOUND

    def test_list_filters_to_party(self, client_api, pending_payment):
        unrelated = PaymentFactory()

        response = client_api.get(PAYMENTS_URL)

        ids = [p["id"] for p in response.data["results"]]
        assert str(pending_payment.id) in ids
        assert str(unrelated.id) not in ids


class TestPaymentVerify:
    """Tests for POST /api/v1/payments/{id}/verify/."""

    def test_staff_verifies(self, staff_api, pending_payment):
        response = staff_api.post(
            payment_action_url(pending_payment.id, "verify"),
            {"notes": "Wire received"},
            format="json",
        )

        assert response.status_code == status.HTTP_200_OK
        assert response.data["status"] == PaymentStatus.VERIFIED
        assert response.data["escrow_release_at"] is not None
        booking = Booking.objects.get(id=pending_payment.booking_id)
        assert booking.status == BookingStatus.CONFIRMED

    def test_client_cannot_verify(self, client_api, pending_payment):
        response = client_api.post(payment_action_url(pending_payment.id, "verify"))

        assert response.status_code == status.HTTP_403_FORBIDDEN

    def test_verify_twice_conflict(self, staff_api, verified_payment):
        response = staff_api.post(payment_action_url(verified_payment.id, "verify"))

        assert response.status_code == status.HTTP_409_CONFLICT
        assert response.data["error_code"] == "INVALID_STATE_TRANSITION"


class TestPaymentRelease:
    """Tests for POST /api/v1/payments/{id}/release/."""

    def test_client_confirms_delivery(self, client_api, verified_payment):
        response = client_api.post(
            payment_action_url(verified_payment.id, "release"), format="json"
        )

        assert response.status_code == status.HTTP_200_OK
        assert response.data["status"] == PaymentStatus.RELEASED
        assert response.data["release_trigger"] == ReleaseTrigger.DELIVERY_CONFIRMED
        assert response.data["payout"]["amount"] == "246.00"

    def test_client_trigger_forced_to_delivery(self, client_api, verified_payment):
        response = client_api.post(
            payment_action_url(verified_payment.id, "release"),
            {"trigger": ReleaseTrigger.DEADLINE_ELAPSED},
            format="json",
        )

        assert response.status_code == status.HTTP_200_OK
        assert response.data["release_trigger"] == ReleaseTrigger.DELIVERY_CONFIRMED

    def test_provider_cannot_release(self, provider_api, verified_payment):
        response = provider_api.post(payment_action_url(verified_payment.id, "release"))

        assert response.status_code == status.HTTP_403_FORBIDDEN
        assert (
            Payment.objects.get(id=verified_payment.id).status == PaymentStatus.VERIFIED
        )

    def test_staff_deadline_release_during_hold(self, staff_api, verified_payment):
        response = staff_api.post(
            payment_action_url(verified_payment.id, "release"),
            {"trigger": ReleaseTrigger.DEADLINE_ELAPSED},
            format="json",
        )

        assert response.status_code == status.HTTP_409_CONFLICT
        assert response.data["error_code"] == "ESCROW_HOLD_ACTIVE"

    def test_release_of_released_payment_is_ok(self, client_api, verified_payment):
        url = payment_action_url(verified_payment.id, "release")
        client_api.post(url, format="json")

        response = client_api.post(url, format="json")

        assert response.status_code == status.HTTP_200_OK
        assert response.data["status"] == PaymentStatus.RELEASED


class TestPaymentFail:
    """Tests for POST /api/v1/payments/{id}/fail/."""

    def test_staff_fails_verified_payment(self, staff_api, verified_payment):
        response = staff_api.post(
            payment_action_url(verified_payment.id, "fail"),
            {"reason": "Chargeback"},
            format="json",
        )

        assert response.status_code == status.HTTP_200_OK
        assert response.data["status"] == PaymentStatus.FAILED
        booking = Booking.objects.get(id=verified_payment.booking_id)
        assert booking.status == BookingStatus.CANCELLED

    def test_reason_required(self, staff_api, pending_payment):
        response = staff_api.post(
            payment_action_url(pending_payment.id, "fail"), {}, format="json"
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST

    def test_client_cannot_fail(self, client_api, pending_payment):
        response = client_api.post(
            payment_action_url(pending_payment.id, "fail"),
            {"reason": "Changed my mind"},
            format="json",
        )

        assert response.status_code == status.HTTP_403_FORBIDDEN


class TestFeePreview:
    """Tests for GET /api/v1/payments/fees/preview/."""

    def test_preview(self, client_api):
        response = client_api.get(FEE_PREVIEW_URL, {"amount": "3000.00"})

        assert response.status_code == status.HTTP_200_OK
        assert response.data["platform_fee"] == "300.00"
        assert response.data["processor_fee"] == "87.30"
        assert response.data["payout"] == "2612.70"
        assert response.data["platform_fee_rate"] == "0.1000"
        assert response.data["schedule_version"] == 1

    def test_invalid_amount(self, client_api):
        response = client_api.get(FEE_PREVIEW_URL, {"amount": "lots"})

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.data["error_code"] == "INVALID_AMOUNT"

    def test_amount_too_small(self, client_api):
        response = client_api.get(FEE_PREVIEW_URL, {"amount": "0.20"})

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.data["error_code"] == "AMOUNT_TOO_SMALL"


class TestEarnings:
    """Tests for the earnings summary and history endpoints."""

    def test_provider_summary(self, provider_api, released_payment):
        start = (released_payment.released_at - timedelta(days=1)).isoformat()
        end = (released_payment.released_at + timedelta(days=1)).isoformat()

        response = provider_api.get(EARNINGS_SUMMARY_URL, {"start": start, "end": end})

        assert response.status_code == status.HTTP_200_OK
        assert response.data["total_earnings"] == "246.00"
        assert response.data["completed_count"] == 1

    def test_summary_invalid_period(self, provider_api):
        response = provider_api.get(
            EARNINGS_SUMMARY_URL,
            {
                "start": datetime(2024, 2, 1, tzinfo=dt_timezone.utc).isoformat(),
                "end": datetime(2024, 1, 1, tzinfo=dt_timezone.utc).isoformat(),
            },
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.data["error_code"] == "INVALID_PERIOD"

    def test_other_provider_requires_staff(self, client_api, provider_user):
        response = client_api.get(
            EARNINGS_SUMMARY_URL,
            {
                "start": "2024-01-01T00:00:00Z",
                "end": "2024-01-31T00:00:00Z",
                "provider_id": provider_user.id,
            },
        )

        assert response.status_code == status.HTTP_403_FORBIDDEN

    def test_staff_reads_provider_summary(self, staff_api, provider_user, released_payment):
        start = (released_payment.released_at - timedelta(days=1)).isoformat()
        end = (released_payment.released_at + timedelta(days=1)).isoformat()

        response = staff_api.get(
            EARNINGS_SUMMARY_URL,
            {"start": start, "end": end, "provider_id": provider_user.id},
        )

        assert response.status_code == status.HTTP_200_OK
        assert response.data["completed_count"] == 1

    def test_history_pages(self, provider_api, provider_user):
        for _ in range(3):
            PaymentFactory(booking__provider=provider_user)

        first = provider_api.get(EARNINGS_HISTORY_URL, {"page_size": 2})
        second = provider_api.get(
            EARNINGS_HISTORY_URL,
            {"page_size": 2, "cursor": first.data["next_cursor"]},
        )

        assert first.status_code == status.HTTP_200_OK
        assert len(first.data["results"]) == 2
        assert len(second.data["results"]) == 1
        assert second.data["next_cursor"] is None

    def test_history_bad_cursor(self, provider_api):
        response = provider_api.get(EARNINGS_HISTORY_URL, {"cursor": "garbage!"})

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.data["error_code"] == "INVALID_CURSOR"

    def test_history_page_size_limit(self, provider_api):
        response = provider_api.get(EARNINGS_HISTORY_URL, {"page_size": 500})

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.data["error_code"] == "INVALID_PAGE_SIZE"

    def test_history_status_filter(self, provider_api, provider_user):
        PaymentFactory(booking__provider=provider_user)
        verified = VerifiedPaymentFactory(booking__provider=provider_user)

        response = provider_api.get(EARNINGS_HISTORY_URL, {"status": "verified"})

        assert response.status_code == status.HTTP_200_OK
        assert [row["id"] for row in response.data["results"]] == [str(verified.id)]

    def test_history_unknown_status(self, provider_api):
        response = provider_api.get(EARNINGS_HISTORY_URL, {"status": "refunded"})

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.data["error_code"] == "INVALID_STATUS"

    def test_history_as_client(self, client_api, client_user, provider_user):
        paid = PaymentFactory(booking__client=client_user)
        PaymentFactory(booking__provider=provider_user)

        provider_side = client_api.get(EARNINGS_HISTORY_URL)
        client_side = client_api.get(EARNINGS_HISTORY_URL, {"role": "any"})

        assert provider_side.data["results"] == []
        assert [row["id"] for row in client_side.data["results"]] == [str(paid.id)]

    def test_history_unknown_role(self, client_api):
        response = client_api.get(EARNINGS_HISTORY_URL, {"role": "admin"})

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.data["error_code"] == "INVALID_ROLE"


class TestPaymentForBooking:
    """Tests for GET /api/v1/payments/booking/{booking_id}/."""

    def test_client_and_provider_see_payment(self, client_api, provider_api, pending_payment):
        url = booking_payment_url(pending_payment.booking_id)

        for api in (client_api, provider_api):
            response = api.get(url)

            assert response.status_code == status.HTTP_200_OK
            assert response.data["id"] == str(pending_payment.id)
            assert response.data["status"] == PaymentStatus.PENDING_VERIFICATION

    def test_latest_payment_after_requote(self, client_api, pending_payment):
        pending_payment.fail(reason="Booking re-quoted")
        pending_payment.save()
        replacement = PaymentFactory(booking=pending_payment.booking)
        Payment.objects.filter(id=replacement.id).update(
            created_at=pending_payment.created_at + timedelta(seconds=1)
        )

        response = client_api.get(booking_payment_url(pending_payment.booking_id))

        assert response.status_code == status.HTTP_200_OK
        assert response.data["id"] == str(replacement.id)

    def test_other_user_denied(self, other_api, pending_payment):
        response = other_api.get(booking_payment_url(pending_payment.booking_id))

        assert response.status_code == status.HTTP_403_FORBIDDEN
        assert response.data["error_code"] == "PERMISSION_DENIED"

    def test_staff_allowed(self, staff_api, pending_payment):
        response = staff_api.get(booking_payment_url(pending_payment.booking_id))

        assert response.status_code == status.HTTP_200_OK

    def test_booking_without_payment(self, client_api, requested_booking):
        response = client_api.get(booking_payment_url(requested_booking.id))

        assert response.status_code == status.HTTP_404_NOT_FOUND
        assert response.data["error_code"] == "PAYMENT_NOT_FOUND"

    def test_unknown_booking(self, client_api):
        response = client_api.get(
            booking_payment_url("00000000-0000-0000-0000-000000000000")
        )

        assert response.status_code == status.HTTP_404_NOT_FOUND
        assert response.data["error_code"] == "BOOKING_NOT_FOUND"
