"""
Bookings app configuration.

This app owns the priced engagement between a client and a talent
provider:
- Talent profiles and services with provider booking minimums
- Booking lifecycle (requested, confirmed, completed, cancelled)
- BookingLedger service for creating, cancelling and re-quoting bookings
"""

from django.apps import AppConfig


class BookingsConfig(AppConfig):
    """Configuration for the bookings application."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "bookings"
    verbose_name = "Bookings"
