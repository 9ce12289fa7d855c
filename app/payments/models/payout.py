"""
Payout model for provider payouts created on escrow release.

A Payout records money owed to a provider once a Payment is released.
Transfers are made manually; staff mark a payout paid from the admin.

Usage:
    from payments.models import Payout

    payout = Payout.objects.get(payment=payment)
    payout.mark_paid(reference="WIRE-2024-0193")
    payout.save()
"""

from __future__ import annotations

from decimal import Decimal

from django.conf import settings
from django.db import models
from django.utils import timezone
from django_fsm import ConcurrentTransitionMixin, FSMField, transition

from core.helpers import from_cents
from core.model_mixins import UUIDPrimaryKeyMixin
from core.models import BaseModel
from payments.state_machines import PayoutState


class Payout(ConcurrentTransitionMixin, UUIDPrimaryKeyMixin, BaseModel):
    """
    Money owed to a provider for one released payment.

    State Flow:
        PENDING -> PAID

    Fields:
        payment: Released payment (one-to-one, so a payment can never
            be paid out twice)
        provider: Recipient
        amount_cents: Payment payout amount at release time
        method: How the transfer is made
        reference: Transfer reference recorded when marked paid
    """

    payment = models.OneToOneField(
        "payments.Payment",
        on_delete=models.PROTECT,
        related_name="payout",
    )
    provider = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="payouts",
    )
    amount_cents = models.PositiveBigIntegerField(
        help_text="Payout amount in cents",
    )
    method = models.CharField(max_length=30, default="manual_transfer")
    status = FSMField(
        default=PayoutState.PENDING,
        choices=PayoutState.choices,
        db_index=True,
        protected=True,
    )
    paid_at = models.DateTimeField(null=True, blank=True)
    reference = models.CharField(max_length=255, blank=True, default="")

    class Meta:
        ordering = ["-created_at"]
        verbose_name = "Payout"
        verbose_name_plural = "Payouts"

    def __str__(self) -> str:
        return f"Payout({self.id}, {self.status}, {self.amount})"

    @property
    def amount(self) -> Decimal:
        return from_cents(self.amount_cents)

    @transition(field=status, source=PayoutState.PENDING, target=PayoutState.PAID)
    def mark_paid(self, reference: str = ""):
        """Transfer to the provider confirmed."""
        self.paid_at = timezone.now()
        self.reference = reference
