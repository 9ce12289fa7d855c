"""
Celery tasks for payment notifications.

Emails are queued after the escrow transaction commits, so a mail
outage never blocks or rolls back a state change:
- submitted: platform admin (verification needed) and client (receipt)
- verified: provider and client, funds are held in escrow
- released: provider, funds released

Usage:
    from payments.tasks import send_payment_notification

    send_payment_notification.delay(str(payment.id), "verified")

Deadline release tasks live in payments.workers.escrow_sweeper.
"""

from __future__ import annotations

import logging
from smtplib import SMTPException

from celery import shared_task
from django.conf import settings
from django.core.mail import send_mail

from payments.models import Payment

logger = logging.getLogger(__name__)


NOTIFICATION_EVENTS = ("submitted", "verified", "released")


def _build_messages(payment: Payment, event: str) -> list[tuple[str, str, list[str]]]:
    """Return (subject, body, recipients) for each email of an event."""
    booking = payment.booking
    client_email = booking.client.email
    provider_email = booking.provider.email
    title = booking.title or f"booking {booking.id}"

    if event == "submitted":
        return [
            (
                "Payment verification required",
                (
                    f"A payment of ${payment.gross_amount} was submitted for "
                    f"{title} via {payment.payment_method}.\n"
                    f"Payment ID: {payment.id}\n"
                    f"Platform fee: ${payment.platform_fee}\n"
                    f"Processor fee: ${payment.processor_fee}\n"
                    f"Provider payout: ${payment.payout_amount}"
                ),
                [settings.PAYMENTS_ADMIN_EMAIL],
            ),
            (
                "Payment received",
                (
                    f"We received your payment of ${payment.gross_amount} for "
                    f"{title}. It is pending verification; we will email you "
                    f"once it is held in escrow."
                ),
                [client_email],
            ),
        ]

    if event == "verified":
        release_date = payment.escrow_release_at.date().isoformat()
        return [
            (
                "Payment received for your booking",
                (
                    f"Payment for {title} has been verified and is held in "
                    f"escrow. Your payout of ${payment.payout_amount} will be "
                    f"released on delivery or on {release_date}."
                ),
                [provider_email],
            ),
            (
                "Your payment was verified",
                (
                    f"Your payment of ${payment.gross_amount} for {title} has "
                    f"been verified and is held in escrow until the work is "
                    f"delivered."
                ),
                [client_email],
            ),
        ]

    if event == "released":
        return [
            (
                "Your payout has been released",
                (
                    f"${payment.payout_amount} for {title} has been released "
                    f"from escrow and will be transferred to you."
                ),
                [provider_email],
            )
        ]

    raise ValueError(f"Unknown notification event: {event}")


@shared_task
def send_payment_notification(payment_id: str, event: str) -> dict:
    """
    Email the parties of a payment about an escrow event.

    Args:
        payment_id: UUID of the Payment
        event: One of "submitted", "verified", "released"

    Returns:
        Dict with:
        - status: "sent", "not_found" or "failed"
        - sent_count: Number of emails sent
    """
    try:
        payment = Payment.objects.select_related(
            "booking__client", "booking__provider"
        ).get(id=payment_id)
    except Payment.DoesNotExist:
        logger.warning(
            "Payment not found for notification",
            extra={"payment_id": payment_id, "event": event},
        )
        return {"status": "not_found", "sent_count": 0}

    sent_count = 0
    for subject, body, recipients in _build_messages(payment, event):
        recipients = [r for r in recipients if r]
        if not recipients:
            continue
        try:
            sent_count += send_mail(
                subject,
                body,
                settings.DEFAULT_FROM_EMAIL,
                recipients,
                fail_silently=False,
            )
        except (SMTPException, OSError) as e:
            logger.error(
                f"Failed to send payment notification: {e}",
                extra={
                    "payment_id": payment_id,
                    "event": event,
                    "recipients": recipients,
                },
            )
            return {"status": "failed", "sent_count": sent_count}

    logger.info(
        "Payment notification sent",
        extra={"payment_id": payment_id, "event": event, "sent_count": sent_count},
    )
    return {"status": "sent", "sent_count": sent_count}


# =============================================================================
# Re-exported Worker Tasks
# =============================================================================
# These tasks are defined in payments.workers but re-exported here for
# convenience and to ensure Celery autodiscover finds them.

from payments.workers import (  # noqa: E402, F401
    process_due_escrow_releases,
    release_escrow_payment,
)
