"""
Create payment and payout tables.
"""

import uuid

import django.db.models.deletion
import django_fsm
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):
    initial = True

    dependencies = [
        ("bookings", "0001_initial"),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="Payment",
            fields=[
                (
                    "created_at",
                    models.DateTimeField(
                        auto_now_add=True,
                        db_index=True,
                        help_text="Timestamp when this record was created",
                    ),
                ),
                (
                    "updated_at",
                    models.DateTimeField(
                        auto_now=True,
                        help_text="Timestamp when this record was last modified",
                    ),
                ),
                (
                    "id",
                    models.UUIDField(
                        default=uuid.uuid4,
                        editable=False,
                        primary_key=True,
                        serialize=False,
                        help_text="Unique identifier for this record",
                    ),
                ),
                (
                    "gross_amount_cents",
                    models.PositiveBigIntegerField(
                        help_text="Amount paid by the client, in cents"
                    ),
                ),
                (
                    "platform_fee_cents",
                    models.PositiveBigIntegerField(
                        help_text="Platform commission, in cents"
                    ),
                ),
                (
                    "processor_fee_cents",
                    models.PositiveBigIntegerField(
                        help_text="Payment processor fee, in cents"
                    ),
                ),
                (
                    "payout_amount_cents",
                    models.PositiveBigIntegerField(
                        help_text="Amount owed to the provider, in cents"
                    ),
                ),
                (
                    "platform_fee_rate",
                    models.DecimalField(decimal_places=4, max_digits=5),
                ),
                ("schedule_version", models.PositiveSmallIntegerField()),
                ("payment_method", models.CharField(max_length=50)),
                ("client_notes", models.TextField(blank=True, default="")),
                (
                    "status",
                    django_fsm.FSMField(
                        choices=[
                            ("pending_verification", "Pending Verification"),
                            ("verified", "Verified"),
                            ("released", "Released"),
                            ("failed", "Failed"),
                        ],
                        db_index=True,
                        default="pending_verification",
                        help_text="Current escrow state (managed by FSM)",
                        max_length=50,
                        protected=True,
                    ),
                ),
                ("verified_at", models.DateTimeField(blank=True, null=True)),
                ("verification_notes", models.TextField(blank=True, default="")),
                (
                    "escrow_release_at",
                    models.DateTimeField(
                        blank=True,
                        null=True,
                        help_text="Deadline after which funds are released automatically",
                    ),
                ),
                ("released_at", models.DateTimeField(blank=True, null=True)),
                (
                    "release_trigger",
                    models.CharField(
                        blank=True,
                        choices=[
                            ("delivery_confirmed", "Delivery Confirmed"),
                            ("deadline_elapsed", "Deadline Elapsed"),
                        ],
                        default="",
                        max_length=30,
                    ),
                ),
                ("failed_at", models.DateTimeField(blank=True, null=True)),
                ("failure_reason", models.TextField(blank=True, default="")),
                (
                    "metadata",
                    models.JSONField(
                        blank=True,
                        default=dict,
                        help_text="Arbitrary JSON metadata for extensibility",
                    ),
                ),
                (
                    "booking",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="payments",
                        to="bookings.booking",
                        help_text="Booking this payment funds",
                    ),
                ),
                (
                    "provider",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="escrow_payments",
                        to=settings.AUTH_USER_MODEL,
                        help_text="Provider receiving the payout",
                    ),
                ),
                (
                    "verified_by",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="+",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "verbose_name": "Payment",
                "verbose_name_plural": "Payments",
                "ordering": ["-created_at", "-id"],
                "indexes": [
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
                ],
                "constraints": [
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
                        condition=models.Q(
                            ("status__in", ["released", "failed"]), _negated=True
                        ),
                        fields=("booking",),
                        name="payment_one_open_per_booking",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="Payout",
            fields=[
                (
                    "created_at",
                    models.DateTimeField(
                        auto_now_add=True,
                        db_index=True,
                        help_text="Timestamp when this record was created",
                    ),
                ),
                (
                    "updated_at",
                    models.DateTimeField(
                        auto_now=True,
                        help_text="Timestamp when this record was last modified",
                    ),
                ),
                (
                    "id",
                    models.UUIDField(
                        default=uuid.uuid4,
                        editable=False,
                        primary_key=True,
                        serialize=False,
                        help_text="Unique identifier for this record",
                    ),
                ),
                (
                    "amount_cents",
                    models.PositiveBigIntegerField(help_text="Payout amount in cents"),
                ),
                (
                    "method",
                    models.CharField(default="manual_transfer", max_length=30),
                ),
                (
                    "status",
                    django_fsm.FSMField(
                        choices=[("pending", "Pending"), ("paid", "Paid")],
                        db_index=True,
                        default="pending",
                        max_length=50,
                        protected=True,
                    ),
                ),
                ("paid_at", models.DateTimeField(blank=True, null=True)),
                (
                    "reference",
                    models.CharField(blank=True, default="", max_length=255),
                ),
                (
                    "payment",
                    models.OneToOneField(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="payout",
                        to="payments.payment",
                    ),
                ),
                (
                    "provider",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="payouts",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "verbose_name": "Payout",
                "verbose_name_plural": "Payouts",
                "ordering": ["-created_at"],
            },
        ),
    ]
