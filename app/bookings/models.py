"""
Booking domain models.

This module contains:
- TalentProfile: Provider settings consulted when a booking is created
- TalentService: Named offering of a provider with an optional price floor
- Booking: Priced engagement between a client and a provider

Usage:
    from bookings.models import Booking, BookingStatus

    booking = Booking.objects.get(id=booking_id)
    booking.confirm()  # requested -> confirmed
    booking.save()     # compare-and-set on the loaded status

Note:
    Booking.status is a protected FSM field. Booking uses
    ConcurrentTransitionMixin, so save() only succeeds if the row still
    has the status this instance was loaded with, and raises
    django_fsm.ConcurrentTransition otherwise. Never refresh_from_db()
    a booking; query it again instead.
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


class BookingStatus(models.TextChoices):
    """
    States for the Booking lifecycle.

    Terminal states: COMPLETED, CANCELLED

    State Flow:
        REQUESTED -> CONFIRMED -> COMPLETED
        REQUESTED -> CANCELLED (cancelled before funding)
        CONFIRMED -> CANCELLED (funded engagement voided)
    """

    REQUESTED = "requested", "Requested"
    CONFIRMED = "confirmed", "Confirmed"
    COMPLETED = "completed", "Completed"
    CANCELLED = "cancelled", "Cancelled"


class TalentProfile(BaseModel):
    """
    Provider-side booking settings.

    A user without a profile cannot be booked.
    """

    user = models.OneToOneField(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="talent_profile",
        help_text="User offering services",
    )
    display_name = models.CharField(max_length=150)
    hourly_rate_cents = models.PositiveBigIntegerField(
        null=True,
        blank=True,
        help_text="Advertised hourly rate in cents",
    )
    minimum_booking_hours = models.DecimalField(
        max_digits=6,
        decimal_places=2,
        default=Decimal("2"),
        help_text="Smallest number of hours a booking may request",
    )
    minimum_price_cents = models.PositiveBigIntegerField(
        default=0,
        help_text="Smallest quoted price accepted, in cents",
    )
    is_accepting_bookings = models.BooleanField(default=True)

    class Meta:
        verbose_name = "Talent Profile"
        verbose_name_plural = "Talent Profiles"

    def __str__(self) -> str:
        return f"TalentProfile({self.display_name})"

    @property
    def hourly_rate(self) -> Decimal | None:
        if self.hourly_rate_cents is None:
            return None
        return from_cents(self.hourly_rate_cents)

    @property
    def minimum_price(self) -> Decimal:
        return from_cents(self.minimum_price_cents)


class TalentService(BaseModel):
    """Named offering of a provider, e.g. "Brand video shoot"."""

    provider = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="talent_services",
    )
    name = models.CharField(max_length=200)
    min_price_cents = models.PositiveBigIntegerField(
        null=True,
        blank=True,
        help_text="Price floor for bookings of this service, in cents",
    )
    is_active = models.BooleanField(default=True)

    class Meta:
        verbose_name = "Talent Service"
        verbose_name_plural = "Talent Services"

    def __str__(self) -> str:
        return f"TalentService({self.name})"

    @property
    def min_price(self) -> Decimal | None:
        if self.min_price_cents is None:
            return None
        return from_cents(self.min_price_cents)


class Booking(ConcurrentTransitionMixin, UUIDPrimaryKeyMixin, BaseModel):
    """
    Priced engagement between a client and a provider.

    State Flow:
        REQUESTED -> CONFIRMED   payment verified (escrow engine)
        CONFIRMED -> COMPLETED   payment released (escrow engine)
        REQUESTED -> CANCELLED   cancel_booking (ledger)
        CONFIRMED -> CANCELLED   verified payment failed (escrow engine)

    Fields:
        quoted_price_cents: Price agreed for the engagement; only changed
            by BookingLedger.requote_booking, which bumps quote_version
        hourly_rate_snapshot_cents: Provider's hourly rate at booking time
        quote_version: Incremented on every re-quote
    """

    # ==========================================================================
    # Parties
    # ==========================================================================

    client = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="client_bookings",
        help_text="User paying for the engagement",
    )
    provider = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="provider_bookings",
        help_text="Talent delivering the engagement",
    )
    service = models.ForeignKey(
        TalentService,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="bookings",
    )

    # ==========================================================================
    # Engagement Details
    # ==========================================================================

    title = models.CharField(max_length=200, blank=True, default="")
    description = models.TextField(blank=True, default="")
    scheduled_date = models.DateTimeField()
    hours = models.DecimalField(max_digits=6, decimal_places=2)

    # ==========================================================================
    # Pricing
    # ==========================================================================

    quoted_price_cents = models.PositiveBigIntegerField(
        help_text="Quoted price in cents",
    )
    hourly_rate_snapshot_cents = models.PositiveBigIntegerField(
        null=True,
        blank=True,
        help_text="Provider hourly rate in cents when the booking was made",
    )
    quote_version = models.PositiveIntegerField(default=1)

    # ==========================================================================
    # State
    # ==========================================================================

    status = FSMField(
        default=BookingStatus.REQUESTED,
        choices=BookingStatus.choices,
        db_index=True,
        protected=True,
    )

    confirmed_at = models.DateTimeField(null=True, blank=True)
    completed_at = models.DateTimeField(null=True, blank=True)
    cancelled_at = models.DateTimeField(null=True, blank=True)
    cancelled_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="+",
    )
    cancellation_reason = models.TextField(blank=True, default="")

    class Meta:
        ordering = ["-created_at"]
        verbose_name = "Booking"
        verbose_name_plural = "Bookings"
        indexes = [
            models.Index(fields=["client", "status"], name="booking_client_status_idx"),
            models.Index(
                fields=["provider", "status"], name="booking_provider_status_idx"
            ),
        ]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(quoted_price_cents__gt=0),
                name="booking_quoted_price_positive",
            ),
        ]

    def __str__(self) -> str:
        return f"Booking({self.id}, {self.status}, {self.quoted_price})"

    @property
    def quoted_price(self) -> Decimal:
        return from_cents(self.quoted_price_cents)

    @property
    def hourly_rate_snapshot(self) -> Decimal | None:
        if self.hourly_rate_snapshot_cents is None:
            return None
        return from_cents(self.hourly_rate_snapshot_cents)

    def is_party(self, user) -> bool:
        return user.pk in (self.client_id, self.provider_id)

    # ==========================================================================
    # State Transitions (django-fsm)
    # ==========================================================================

    @transition(
        field=status,
        source=BookingStatus.REQUESTED,
        target=BookingStatus.CONFIRMED,
    )
    def confirm(self):
        """Payment verified; the engagement is funded."""
        self.confirmed_at = timezone.now()

    @transition(
        field=status,
        source=BookingStatus.CONFIRMED,
        target=BookingStatus.COMPLETED,
    )
    def complete(self):
        """Payment released to the provider."""
        self.completed_at = timezone.now()

    @transition(
        field=status,
        source=BookingStatus.REQUESTED,
        target=BookingStatus.CANCELLED,
    )
    def cancel(self, actor=None, reason: str = ""):
        """Cancelled before any payment was verified."""
        self.cancelled_at = timezone.now()
        self.cancelled_by = actor
        self.cancellation_reason = reason

    @transition(
        field=status,
        source=BookingStatus.CONFIRMED,
        target=BookingStatus.CANCELLED,
    )
    def void(self, actor=None, reason: str = ""):
        """
        Funded engagement voided.

        Called when a verified payment fails and the funds go back to
        the client.
        """
        self.cancelled_at = timezone.now()
        self.cancelled_by = actor
        self.cancellation_reason = reason
