"""
Workers for async payment processing.

This module contains Celery tasks for background payment operations:
- EscrowSweeper: Releases payments whose escrow hold has elapsed

Usage:
    from payments.workers import (
        process_due_escrow_releases,
        release_escrow_payment,
    )

    # Trigger a sweep manually
    process_due_escrow_releases.delay()

    # Release one payment by deadline
    release_escrow_payment.delay(str(payment_id))
"""

from payments.workers.escrow_sweeper import (
    process_due_escrow_releases,
    release_escrow_payment,
)

__all__ = [
    "process_due_escrow_releases",
    "release_escrow_payment",
]
