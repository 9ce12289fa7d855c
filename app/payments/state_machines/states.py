"""
State enums for payment models.

This module defines all state enums used by payment models with django-fsm.
These are Django TextChoices for database storage and admin integration.

State Machines Overview:

Payment States:
    pending_verification → verified → released
    pending_verification → failed
    verified → failed

Payout States:
    pending → paid
"""

from django.db import models


class PaymentStatus(models.TextChoices):
    """
    States for the escrow Payment lifecycle.

    Terminal states: RELEASED, FAILED

    State Flow:
        PENDING_VERIFICATION → VERIFIED → RELEASED

    Failure Flow:
        PENDING_VERIFICATION → FAILED (rejected, booking cancelled or re-quoted)
        VERIFIED → FAILED (funds returned, booking voided)
    """

    PENDING_VERIFICATION = "pending_verification", "Pending Verification"
    VERIFIED = "verified", "Verified"
    RELEASED = "released", "Released"
    FAILED = "failed", "Failed"

    @classmethod
    def terminal(cls) -> list[str]:
        return [cls.RELEASED, cls.FAILED]

    @classmethod
    def open(cls) -> list[str]:
        return [cls.PENDING_VERIFICATION, cls.VERIFIED]


class ReleaseTrigger(models.TextChoices):
    """What caused funds to leave escrow."""

    DELIVERY_CONFIRMED = "delivery_confirmed", "Delivery Confirmed"
    DEADLINE_ELAPSED = "deadline_elapsed", "Deadline Elapsed"


class PayoutState(models.TextChoices):
    """
    States for the Payout model lifecycle.

    Payouts are manual transfers: one is created pending when a payment
    is released, and staff mark it paid once the transfer is done.

    State Flow:
        PENDING → PAID
    """

    PENDING = "pending", "Pending"
    PAID = "paid", "Paid"
