"""
Django signal handlers for payments app.

This module reacts to booking lifecycle signals:
- booking_cancelled: fail the booking's open payments
- booking_requoted: fail open payments computed against the old price

Both signals are sent inside the booking ledger's transaction, so the
payment failures commit or roll back together with the booking change.

Related files:
    - bookings/signals.py: Signal definitions
    - apps.py: Signal registration
"""

from __future__ import annotations

import logging

from django.dispatch import receiver

from bookings.signals import booking_cancelled, booking_requoted
from payments.services import PaymentEscrowEngine

logger = logging.getLogger(__name__)


@receiver(booking_cancelled, dispatch_uid="payments.fail_on_booking_cancelled")
def fail_payments_on_booking_cancelled(sender, booking, actor=None, reason="", **kwargs):
    failure_reason = "Booking cancelled"
    if reason:
        failure_reason = f"{failure_reason}: {reason}"

    failed_count = PaymentEscrowEngine().fail_open_payments(
        booking.id, reason=failure_reason, actor=actor
    )
    if failed_count:
        logger.info(
            f"Failed {failed_count} open payments of cancelled booking {booking.id}",
            extra={"booking_id": str(booking.id), "failed_count": failed_count},
        )


@receiver(booking_requoted, dispatch_uid="payments.fail_on_booking_requoted")
def fail_payments_on_booking_requoted(
    sender, booking, actor=None, previous_price=None, **kwargs
):
    failed_count = PaymentEscrowEngine().fail_open_payments(
        booking.id,
        reason=f"Booking re-quoted from {previous_price} to {booking.quoted_price}",
        actor=actor,
    )
    if failed_count:
        logger.info(
            f"Failed {failed_count} open payments of re-quoted booking {booking.id}",
            extra={
                "booking_id": str(booking.id),
                "quote_version": booking.quote_version,
                "failed_count": failed_count,
            },
        )
