"""
Escrow sweeper for releasing payments by deadline.

This module provides Celery tasks that release verified payments once
their escrow hold has elapsed.

Tasks:
- process_due_escrow_releases: Periodic task that queues due payments
- release_escrow_payment: Releases a single payment through the engine

Usage:
    # Typically called via celery-beat schedule
    from payments.workers import process_due_escrow_releases

    process_due_escrow_releases.delay()

Note:
    The sweeper never coordinates with manual releases. Both go through
    PaymentEscrowEngine.release, whose compare-and-set makes whichever
    runs second a no-op.
"""

from __future__ import annotations

import logging

from celery import shared_task
from django.db import DatabaseError
from django.utils import timezone

from payments.exceptions import InvalidTransitionError, PaymentNotFoundError
from payments.models import Payment
from payments.services import PaymentEscrowEngine
from payments.state_machines import ReleaseTrigger

logger = logging.getLogger(__name__)


# =============================================================================
# Constants
# =============================================================================

# Maximum payments to queue per sweep (prevents memory issues)
BATCH_SIZE = 100


# =============================================================================
# Periodic Task: Scan for Due Payments
# =============================================================================


@shared_task
def process_due_escrow_releases() -> dict:
    """
    Scan for verified payments past their escrow deadline and queue releases.

    The task:
    1. Queries verified payments where escrow_release_at <= now
    2. Orders by escrow_release_at (oldest first)
    3. Queues a release_escrow_payment task for each, up to BATCH_SIZE

    Returns:
        Dict with:
        - queued_count: Number of payments queued for release

    Note:
        This task is idempotent. Payments left over from a full batch are
        picked up by the next run.
    """
    logger.info("Starting escrow deadline scan")

    due_ids = list(
        Payment.objects.due_for_release(timezone.now()).values_list("id", flat=True)[
            :BATCH_SIZE
        ]
    )

    for payment_id in due_ids:
        release_escrow_payment.delay(str(payment_id))

    logger.info(
        f"Escrow deadline scan complete: queued {len(due_ids)} payments",
        extra={"queued_count": len(due_ids)},
    )

    return {"queued_count": len(due_ids)}


# =============================================================================
# Individual Release Task
# =============================================================================


@shared_task(
    bind=True,
    autoretry_for=(DatabaseError,),
    retry_backoff=True,
    retry_backoff_max=300,
    retry_kwargs={"max_retries": 3},
    acks_late=True,
)
def release_escrow_payment(
    self,
    payment_id: str,
    trigger: str = ReleaseTrigger.DEADLINE_ELAPSED,
) -> dict:
    """
    Release a single payment through PaymentEscrowEngine.

    Args:
        payment_id: UUID of the Payment to release
        trigger: Release trigger (deadline_elapsed for sweeps)

    Returns:
        Dict with:
        - status: One of "released", "already_terminal", "not_found",
                  "not_releasable"
        - payment_id: The payment ID processed
        - error_code: Error code if not releasable

    Raises:
        DatabaseError: Re-raised to trigger Celery retry
    """
    engine = PaymentEscrowEngine()

    try:
        before = engine.get_payment(payment_id)
    except PaymentNotFoundError:
        logger.warning("Payment not found for release", extra={"payment_id": payment_id})
        return {"status": "not_found", "payment_id": payment_id}

    if before.is_terminal:
        return {"status": "already_terminal", "payment_id": payment_id}

    try:
        outcome = engine.release_with_outcome(payment_id, trigger=trigger)
    except InvalidTransitionError as e:
        logger.warning(
            f"Payment not releasable: {e}",
            extra={"payment_id": payment_id, "error_code": e.error_code},
        )
        return {
            "status": "not_releasable",
            "payment_id": payment_id,
            "error_code": e.error_code,
        }

    # A concurrent manual release is reported as already_terminal
    status = "released" if outcome.released else "already_terminal"
    return {"status": status, "payment_id": payment_id}
