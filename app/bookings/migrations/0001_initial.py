"""
Create talent profile, talent service and booking tables.
"""

import uuid
from decimal import Decimal

import django.db.models.deletion
import django_fsm
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):
    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="TalentProfile",
            fields=[
                (
                    "id",
                    models.BigAutoField(
                        auto_created=True,
                        primary_key=True,
                        serialize=False,
                        verbose_name="ID",
                    ),
                ),
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
                ("display_name", models.CharField(max_length=150)),
                (
                    "hourly_rate_cents",
                    models.PositiveBigIntegerField(
                        blank=True,
                        null=True,
                        help_text="Advertised hourly rate in cents",
                    ),
                ),
                (
                    "minimum_booking_hours",
                    models.DecimalField(
                        decimal_places=2,
                        default=Decimal("2"),
                        max_digits=6,
                        help_text="Smallest number of hours a booking may request",
                    ),
                ),
                (
                    "minimum_price_cents",
                    models.PositiveBigIntegerField(
                        default=0,
                        help_text="Smallest quoted price accepted, in cents",
                    ),
                ),
                ("is_accepting_bookings", models.BooleanField(default=True)),
                (
                    "user",
                    models.OneToOneField(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="talent_profile",
                        to=settings.AUTH_USER_MODEL,
                        help_text="User offering services",
                    ),
                ),
            ],
            options={
                "verbose_name": "Talent Profile",
                "verbose_name_plural": "Talent Profiles",
            },
        ),
        migrations.CreateModel(
            name="TalentService",
            fields=[
                (
                    "id",
                    models.BigAutoField(
                        auto_created=True,
                        primary_key=True,
                        serialize=False,
                        verbose_name="ID",
                    ),
                ),
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
                ("name", models.CharField(max_length=200)),
                (
                    "min_price_cents",
                    models.PositiveBigIntegerField(
                        blank=True,
                        null=True,
                        help_text="Price floor for bookings of this service, in cents",
                    ),
                ),
                ("is_active", models.BooleanField(default=True)),
                (
                    "provider",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="talent_services",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "verbose_name": "Talent Service",
                "verbose_name_plural": "Talent Services",
            },
        ),
        migrations.CreateModel(
            name="Booking",
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
                ("title", models.CharField(blank=True, default="", max_length=200)),
                ("description", models.TextField(blank=True, default="")),
                ("scheduled_date", models.DateTimeField()),
                ("hours", models.DecimalField(decimal_places=2, max_digits=6)),
                (
                    "quoted_price_cents",
                    models.PositiveBigIntegerField(help_text="Quoted price in cents"),
                ),
                (
                    "hourly_rate_snapshot_cents",
                    models.PositiveBigIntegerField(
                        blank=True,
                        null=True,
                        help_text="Provider hourly rate in cents when the booking was made",
                    ),
                ),
                ("quote_version", models.PositiveIntegerField(default=1)),
                (
                    "status",
                    django_fsm.FSMField(
                        choices=[
                            ("requested", "Requested"),
                            ("confirmed", "Confirmed"),
                            ("completed", "Completed"),
                            ("cancelled", "Cancelled"),
                        ],
                        db_index=True,
                        default="requested",
                        max_length=50,
                        protected=True,
                    ),
                ),
                ("confirmed_at", models.DateTimeField(blank=True, null=True)),
                ("completed_at", models.DateTimeField(blank=True, null=True)),
                ("cancelled_at", models.DateTimeField(blank=True, null=True)),
                ("cancellation_reason", models.TextField(blank=True, default="")),
                (
                    "cancelled_by",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="+",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "client",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="client_bookings",
                        to=settings.AUTH_USER_MODEL,
                        help_text="User paying for the engagement",
                    ),
                ),
                (
                    "provider",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="provider_bookings",
                        to=settings.AUTH_USER_MODEL,
                        help_text="Talent delivering the engagement",
                    ),
                ),
                (
                    "service",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="bookings",
                        to="bookings.talentservice",
                    ),
                ),
            ],
            options={
                "verbose_name": "Booking",
                "verbose_name_plural": "Bookings",
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(
                        fields=["client", "status"],
                        name="booking_client_status_idx",
                    ),
                    models.Index(
                        fields=["provider", "status"],
                        name="booking_provider_status_idx",
                    ),
                ],
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(quoted_price_cents__gt=0),
                        name="booking_quoted_price_positive",
                    ),
                ],
            },
        ),
    ]
