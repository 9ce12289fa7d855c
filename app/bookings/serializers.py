"""
Serializers for bookings API.

Serializer Hierarchy:
    BookingSerializer: Read representation of a booking
    BookingCreateSerializer: Create a booking as the requesting client
    BookingCancelSerializer: Optional cancellation reason
    BookingRequoteSerializer: New price (and optionally hours)

Design Decisions:
    - Read and write serializers are separate for clarity
    - Write serializers only check request shape; business rules
      (minimums, state) are enforced by BookingLedger
    - Money is rendered as a decimal string with two places
"""

from __future__ import annotations

from django.contrib.auth import get_user_model
from rest_framework import serializers

from bookings.models import Booking, TalentService

User = get_user_model()

MONEY_FIELD_KWARGS = {"max_digits": 12, "decimal_places": 2}


class BookingSerializer(serializers.ModelSerializer):
    """Booking as seen by its client, its provider, or staff."""

    quoted_price = serializers.DecimalField(read_only=True, **MONEY_FIELD_KWARGS)
    hourly_rate_snapshot = serializers.DecimalField(
        read_only=True, allow_null=True, **MONEY_FIELD_KWARGS
    )

    class Meta:
        model = Booking
        fields = [
            "id",
            "client",
            "provider",
            "service",
            "title",
            "description",
            "scheduled_date",
            "hours",
            "quoted_price",
            "hourly_rate_snapshot",
            "quote_version",
            "status",
            "confirmed_at",
            "completed_at",
            "cancelled_at",
            "cancellation_reason",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields


class BookingCreateSerializer(serializers.Serializer):
    """Request body for POST /api/v1/bookings/."""

    provider = serializers.PrimaryKeyRelatedField(queryset=User.objects.all())
    service = serializers.PrimaryKeyRelatedField(
        queryset=TalentService.objects.all(),
        required=False,
        allow_null=True,
    )
    quoted_price = serializers.DecimalField(**MONEY_FIELD_KWARGS)
    hours = serializers.DecimalField(max_digits=6, decimal_places=2)
    scheduled_date = serializers.DateTimeField()
    title = serializers.CharField(max_length=200, required=False, allow_blank=True)
    description = serializers.CharField(required=False, allow_blank=True)


class BookingCancelSerializer(serializers.Serializer):
    reason = serializers.CharField(required=False, allow_blank=True, default="")


class BookingRequoteSerializer(serializers.Serializer):
    quoted_price = serializers.DecimalField(**MONEY_FIELD_KWARGS)
    hours = serializers.DecimalField(
        max_digits=6, decimal_places=2, required=False, allow_null=True
    )
