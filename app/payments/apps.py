"""
Payments app configuration.

This app provides escrow payment processing for bookings:
- Fee calculation with versioned fee schedules
- Escrow engine (payment creation, verification, release, failure)
- Provider earnings reporting
- Deadline sweeper releasing payments whose escrow hold elapsed
"""

from django.apps import AppConfig


class PaymentsConfig(AppConfig):
    """Configuration for the payments application."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "payments"
    verbose_name = "Payments"

    def ready(self):
        from payments import signals  # noqa: F401
