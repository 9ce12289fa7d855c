"""
Pytest fixtures for booking tests.

Usage:
    def test_cancel(requested_booking, client_user):
        BookingLedger.cancel_booking(requested_booking.id, actor=client_user)
"""

from datetime import timedelta

import pytest
from django.utils import timezone
from rest_framework.test import APIClient

from bookings.models import BookingStatus
from bookings.tests.factories import (
    BookingFactory,
    TalentProfileFactory,
    TalentServiceFactory,
    UserFactory,
)

# =============================================================================
# User Fixtures
# =============================================================================


@pytest.fixture
def client_user(db):
    """User who books and pays."""
    return UserFactory()


@pytest.fixture
def provider_profile(db):
    """Talent profile accepting bookings with default minimums."""
    return TalentProfileFactory()


@pytest.fixture
def provider_user(provider_profile):
    """User who delivers the booked service."""
    return provider_profile.user


@pytest.fixture
def other_user(db):
    """User who is party to none of the test bookings."""
    return UserFactory()


@pytest.fixture
def staff_user(db):
    return UserFactory(is_staff=True)


@pytest.fixture
def talent_service(provider_user):
    return TalentServiceFactory(provider=provider_user, min_price_cents=20000)


@pytest.fixture
def scheduled_date():
    return timezone.now() + timedelta(days=5)


# =============================================================================
# Booking Fixtures
# =============================================================================


@pytest.fixture
def requested_booking(db, client_user, provider_user):
    return BookingFactory(client=client_user, provider=provider_user)


@pytest.fixture
def confirmed_booking(db, client_user, provider_user):
    return BookingFactory(
        client=client_user,
        provider=provider_user,
        status=BookingStatus.CONFIRMED,
        confirmed_at=timezone.now(),
    )


@pytest.fixture
def completed_booking(db, client_user, provider_user):
    return BookingFactory(
        client=client_user,
        provider=provider_user,
        status=BookingStatus.COMPLETED,
    )


@pytest.fixture
def cancelled_booking(db, client_user, provider_user):
    return BookingFactory(
        client=client_user,
        provider=provider_user,
        status=BookingStatus.CANCELLED,
        cancellation_reason="Original reason",
    )


# =============================================================================
# API Client Fixtures
# =============================================================================


@pytest.fixture
def api_client():
    return APIClient()


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
def other_api(other_user):
    api = APIClient()
    api.force_authenticate(user=other_user)
    return api
