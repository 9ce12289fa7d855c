"""
Pytest fixtures for payment tests.

Fixtures provide bookings and payments in each escrow state. Booking and
payment states are kept consistent with what PaymentEscrowEngine would
have produced (a verified payment has a confirmed booking).

Usage:
    def test_release(engine, verified_payment):
        payment = engine.release(verified_payment.id, ReleaseTrigger.DELIVERY_CONFIRMED)
        assert payment.status == PaymentStatus.RELEASED
"""

from datetime import timedelta

import pytest
from django.utils import timezone
from rest_framework.test import APIClient

from bookings.models import BookingStatus
from bookings.tests.factories import BookingFactory, TalentProfileFactory, UserFactory
from payments.services import PaymentEscrowEngine
from payments.state_machines import PaymentStatus, ReleaseTrigger
from payments.tests.factories import PaymentFactory, VerifiedPaymentFactory

# =============================================================================
# User Fixtures
# =============================================================================


@pytest.fixture
def client_user(db):
    """User who books and pays."""
    return UserFactory(email="client@example.com")


@pytest.fixture
def provider_user(db):
    """User who delivers the booked service and receives payouts."""
    return TalentProfileFactory(user__email="provider@example.com").user


@pytest.fixture
def other_user(db):
    return UserFactory()


@pytest.fixture
def staff_user(db):
    """Platform staff member who verifies payments."""
    return UserFactory(is_staff=True)


# =============================================================================
# Booking Fixtures
# =============================================================================


@pytest.fixture
def requested_booking(db, client_user, provider_user):
    """$300.00 booking awaiting payment."""
    return BookingFactory(client=client_user, provider=provider_user)


@pytest.fixture
def confirmed_booking(db, client_user, provider_user):
    return BookingFactory(
        client=client_user,
        provider=provider_user,
        status=BookingStatus.CONFIRMED,
        confirmed_at=timezone.now(),
    )


# =============================================================================
# Payment Fixtures
# =============================================================================


@pytest.fixture
def engine():
    return PaymentEscrowEngine(hold_period=timedelta(days=7), schedule_version=1)


@pytest.fixture
def pending_payment(db, requested_booking):
    return PaymentFactory(booking=requested_booking)


@pytest.fixture
def verified_payment(db, confirmed_booking, staff_user):
    """Verified payment whose hold ends in seven days."""
    return VerifiedPaymentFactory(booking=confirmed_booking, verified_by=staff_user)


@pytest.fixture
def due_payment(db, confirmed_booking, staff_user):
    """Verified payment whose hold ended an hour ago."""
    verified_at = timezone.now() - timedelta(days=7, hours=1)
    return VerifiedPaymentFactory(
        booking=confirmed_booking,
        verified_by=staff_user,
        verified_at=verified_at,
    )


@pytest.fixture
def released_payment(db, client_user, provider_user):
    booking = BookingFactory(
        client=client_user,
        provider=provider_user,
        status=BookingStatus.COMPLETED,
        completed_at=timezone.now(),
    )
    return PaymentFactory(
        booking=booking,
        status=PaymentStatus.RELEASED,
        verified_at=timezone.now() - timedelta(days=1),
        released_at=timezone.now(),
        release_trigger=ReleaseTrigger.DELIVERY_CONFIRMED,
    )


# =============================================================================
# API Client Fixtures
# =============================================================================


@pytest.fixture
def client_api(client_user):
    """API client authenticated as the booking client."""
    api = APIClient()
    api.force_authenticate(user=client_user)
    return api


@pytest.fixture
def provider_api(provider_user):
    api = APIClient()
    api.force_authenticate(user=provider_user)
    return api


@pytest.fixture
def staff_api(staff_user):
    api = APIClient()
    api.force_authenticate(user=staff_user)
    return api


@pytest.fixture
def other_api(other_user):
    api = APIClient()
    api.force_authenticate(user=other_user)
    return api
