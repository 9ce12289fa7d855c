"""
Payment model for escrowed booking payments.

A Payment holds the client's money for a Booking from submission until
it is released to the provider or failed. The fee breakdown is fixed at
creation and never recomputed.

Usage:
    from payments.models import Payment
    from payments.state_machines import PaymentStatus, ReleaseTrigger

    payment.verify(verifier=staff, hold_period=timedelta(days=7))
    payment.save()  # compare-and-set on pending_verification

    payment.release(trigger=ReleaseTrigger.DELIVERY_CONFIRMED)
    payment.save()  # compare-and-set on verified

Note:
    The status field is protected and the model uses
    ConcurrentTransitionMixin: save() issues
    UPDATE ... WHERE id = %s AND status = <status when loaded>
    and raises django_fsm.ConcurrentTransition when another writer got
    there first. Do not call refresh_from_db() on a payment; query it
    again instead.
"""

from __future__ import annotations

from decimal import Decimal
from typing import TYPE_CHECKING

from django.conf import settings
from django.db import models
from django.utils import timezone
from django_fsm import ConcurrentTransitionMixin, FSMField, transition

from core.helpers import from_cents
from core.model_mixins import UUIDPrimaryKeyMixin
from core.models import BaseModel
from payments.state_machines import PaymentStatus, ReleaseTrigger

if TYPE_CHECKING:
    from datetime import datetime, timedelta


class PaymentQuerySet(models.QuerySet):
    """Common payment filters."""

    def open(self):
        """Payments that still hold funds or await verification."""
        return self.filter(status__in=PaymentStatus.open())

    def for_provider(self, provider_id):
        return self.filter(provider_id=provider_id)

    def for_client(self, client_id):
        return self.filter(booking__client_id=client_id)

    def for_party(self, user_id):
        """Payments where the user is the booking client or the provider."""
        return self.filter(
            models.Q(booking__client_id=user_id) | models.Q(provider_id=user_id)
        )

    def due_for_release(self, now: datetime):
        """Verified payments whose escrow hold has elapsed, oldest first."""
        return self.filter(
            status=PaymentStatus.VERIFIED,
            escrow_release_at__lte=now,
        ).order_by("escrow_release_at", "id")


class Payment(ConcurrentTransitionMixin, UUIDPrimaryKeyMixin, BaseModel):
    """
    Escrowed payment for a booking.

    State Flow:
        PENDING_VERIFICATION -> VERIFIED -> RELEASED
        PENDING_VERIFICATION/VERIFIED -> FAILED

    Fields:
        booking: Booking this payment funds
        provider: Booking provider, copied at creation for reporting
        *_cents: Fee breakdown in cents; gross is always the exact sum
            of platform fee, processor fee and payout (DB constraint)
        platform_fee_rate: Tier rate applied to the gross amount
        schedule_version: Fee schedule version used for the breakdown
        escrow_release_at: When the deadline sweeper may release funds
        release_trigger: What released the funds

    Note:
        At most one payment per booking may be open at a time
        (partial unique constraint on booking).
    """

    # ==========================================================================
    # Relationships
    # ==========================================================================

    booking = models.ForeignKey(
        "bookings.Booking",
        on_delete=models.PROTECT,
        related_name="payments",
        help_text="Booking this payment funds",
    )
    provider = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="escrow_payments",
        help_text="Provider receiving the payout",
    )

    # ==========================================================================
    # Amounts
    # ==========================================================================

    gross_amount_cents = models.PositiveBigIntegerField(
        help_text="Amount paid by the client, in cents",
    )
    platform_fee_cents = models.PositiveBigIntegerField(
        help_text="Platform commission, in cents",
    )
    processor_fee_cents = models.PositiveBigIntegerField(
        help_text="Payment processor fee, in cents",
    )
    payout_amount_cents = models.PositiveBigIntegerField(
        help_text="Amount owed to the provider, in cents",
    )
    platform_fee_rate = models.DecimalField(max_digits=5, decimal_places=4)
    schedule_version = models.PositiveSmallIntegerField()

    # ==========================================================================
    # Submission
    # ==========================================================================

    payment_method = models.CharField(max_length=50)
    client_notes = models.TextField(blank=True, default="")

    # ==========================================================================
    # State
    # ==========================================================================

    status = FSMField(
        default=PaymentStatus.PENDING_VERIFICATION,
        choices=PaymentStatus.choices,
        db_index=True,
        protected=True,
        help_text="Current escrow state (managed by FSM)",
    )

    verified_at = models.DateTimeField(null=True, blank=True)
    verified_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="+",
    )
    verification_notes = models.TextField(blank=True, default="")
    escrow_release_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="Deadline after which funds are released automatically",
    )

    released_at = models.DateTimeField(null=True, blank=True)
    release_trigger = models.CharField(
        max_length=30,
        choices=ReleaseTrigger.choices,
        blank=True,
        default="",
    )

    failed_at = models.DateTimeField(null=True, blank=True)
    failure_reason = models.TextField(blank=True, default="")

    metadata = models.JSONField(
        default=dict,
        blank=True,
        help_text="Arbitrary JSON metadata for extensibility",
    )

    objects = PaymentQuerySet.as_manager()

    class Meta:
        ordering = ["-created_at", "-id"]
        verbose_name = "Payment"
        verbose_name_plural = "Payments"
        indexes = [
            models.Index(
                fields=["provider", "status", "released_at"],
                name="payment_provider_released_idx",
            ),
            models.Index(
                fields=["provider", "created_at", "id"],
                name="payment_provider_created_idx",
            ),
            models.Index(
                fields=["status", "escrow_release_at"],
                name="payment_status_release_idx",
            ),
        ]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(gross_amount_cents__gt=0),
                name="payment_gross_positive",
            ),
            models.CheckConstraint(
                condition=models.Q(
                    gross_amount_cents=models.F("platform_fee_cents")
                    + models.F("processor_fee_cents")
                    + models.F("payout_amount_cents")
                ),
                name="payment_amounts_balance",
            ),
            models.UniqueConstraint(
                fields=["booking"],
                condition=~models.Q(
                    status__in=[PaymentStatus.RELEASED, PaymentStatus.FAILED]
                ),
                name="payment_one_open_per_booking",
            ),
        ]

    def __str__(self) -> str:
        return f"Payment({self.id}, {self.status}, {self.gross_amount})"

    # ==========================================================================
    # Money
    # ==========================================================================

    @property
    def gross_amount(self) -> Decimal:
        return from_cents(self.gross_amount_cents)

    @property
    def platform_fee(self) -> Decimal:
        return from_cents(self.platform_fee_cents)

    @property
    def processor_fee(self) -> Decimal:
        return from_cents(self.processor_fee_cents)

    @property
    def payout_amount(self) -> Decimal:
        return from_cents(self.payout_amount_cents)

    @property
    def is_terminal(self) -> bool:
        return self.status in PaymentStatus.terminal()

    def hold_elapsed(self, now: datetime) -> bool:
        return self.escrow_release_at is not None and self.escrow_release_at <= now

    # ==========================================================================
    # State Transitions (django-fsm)
    # ==========================================================================

    @transition(
        field=status,
        source=PaymentStatus.PENDING_VERIFICATION,
        target=PaymentStatus.VERIFIED,
    )
    def verify(self, verifier, hold_period: timedelta, notes: str = ""):
        """
        Confirm the funds were received and start the escrow hold.

        Transition: PENDING_VERIFICATION -> VERIFIED
        """
        self.verified_at = timezone.now()
        self.verified_by = verifier
        self.verification_notes = notes
        self.escrow_release_at = self.verified_at + hold_period

    @transition(
        field=status,
        source=PaymentStatus.VERIFIED,
        target=PaymentStatus.RELEASED,
    )
    def release(self, trigger: str):
        """
        Release escrowed funds to the provider.

        Transition: VERIFIED -> RELEASED

        The engine writes the Payout row in the same transaction.
        """
        self.released_at = timezone.now()
        self.release_trigger = trigger

    @transition(
        field=status,
        source=[PaymentStatus.PENDING_VERIFICATION, PaymentStatus.VERIFIED],
        target=PaymentStatus.FAILED,
    )
    def fail(self, reason: str = ""):
        """
        Mark payment as failed.

        Transition: PENDING_VERIFICATION/VERIFIED -> FAILED
        """
        self.failed_at = timezone.now()
        self.failure_reason = reason
