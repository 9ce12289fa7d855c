"""
DRF serializers for payments app.

This module provides serializers for:
- Payment display and submission
- Escrow actions (verify, release, fail)
- Fee preview
- Earnings summary and history

Related files:
    - views.py: Payment API views
    - services/: PaymentEscrowEngine, EarningsReporter

Design Decisions:
    - Request serializers only check shape; escrow rules live in the engine
    - Money is rendered as a decimal string with two places
"""

from __future__ import annotations

from rest_framework import serializers

from payments.models import Payment, Payout
from payments.state_machines import ReleaseTrigger

MONEY_FIELD_KWARGS = {"max_digits": 12, "decimal_places": 2}


class PayoutSerializer(serializers.ModelSerializer):
    amount = serializers.DecimalField(read_only=True, **MONEY_FIELD_KWARGS)

    class Meta:
        model = Payout
        fields = ["id", "amount", "method", "status", "paid_at", "reference", "created_at"]
        read_only_fields = fields


class PaymentSerializer(serializers.ModelSerializer):
    """
    Payment serializer for API responses.

    Fields:
        gross_amount, platform_fee, processor_fee, payout_amount:
            Fee breakdown fixed at creation
        platform_fee_rate: Tier rate applied to the gross amount
        schedule_version: Fee schedule used
        escrow_release_at: Deadline for automatic release
        payout: Payout record once released
    """

    gross_amount = serializers.DecimalField(read_only=True, **MONEY_FIELD_KWARGS)
    platform_fee = serializers.DecimalField(read_only=True, **MONEY_FIELD_KWARGS)
    processor_fee = serializers.DecimalField(read_only=True, **MONEY_FIELD_KWARGS)
    payout_amount = serializers.DecimalField(read_only=True, **MONEY_FIELD_KWARGS)
    payout = PayoutSerializer(read_only=True, allow_null=True)

    class Meta:
        model = Payment
        fields = [
            "id",
            "booking",
            "provider",
            "gross_amount",
            "platform_fee",
            "processor_fee",
            "payout_amount",
            "platform_fee_rate",
            "schedule_version",
            "status",
            "payment_method",
            "client_notes",
            "verified_at",
            "verification_notes",
            "escrow_release_at",
            "released_at",
            "release_trigger",
            "failed_at",
            "failure_reason",
            "payout",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields


class PaymentCreateSerializer(serializers.Serializer):
    """Request body for POST /api/v1/payments/."""

    booking = serializers.UUIDField()
    gross_amount = serializers.DecimalField(**MONEY_FIELD_KWARGS)
    payment_method = serializers.CharField(max_length=50)
    client_notes = serializers.CharField(required=False, allow_blank=True, default="")


class PaymentVerifySerializer(serializers.Serializer):
    notes = serializers.CharField(required=False, allow_blank=True, default="")


class PaymentReleaseSerializer(serializers.Serializer):
    trigger = serializers.ChoiceField(
        choices=ReleaseTrigger.choices,
        default=ReleaseTrigger.DELIVERY_CONFIRMED,
    )


class PaymentFailSerializer(serializers.Serializer):
    reason = serializers.CharField()


class FeeBreakdownSerializer(serializers.Serializer):
    """Advisory fee preview. Matches what create_payment would store."""

    gross_amount = serializers.DecimalField(**MONEY_FIELD_KWARGS)
    platform_fee = serializers.DecimalField(**MONEY_FIELD_KWARGS)
    processor_fee = serializers.DecimalField(**MONEY_FIELD_KWARGS)
    payout = serializers.DecimalField(**MONEY_FIELD_KWARGS)
    platform_fee_rate = serializers.DecimalField(max_digits=5, decimal_places=4)
    schedule_version = serializers.IntegerField()


class FeePreviewQuerySerializer(serializers.Serializer):
    amount = serializers.CharField()


class EarningsSummaryQuerySerializer(serializers.Serializer):
    start = serializers.DateTimeField()
    end = serializers.DateTimeField()
    provider_id = serializers.IntegerField(required=False)


class EarningsSummarySerializer(serializers.Serializer):
    provider_id = serializers.CharField()
    period_start = serializers.DateTimeField()
    period_end = serializers.DateTimeField()
    total_earnings = serializers.DecimalField(**MONEY_FIELD_KWARGS)
    total_gross = serializers.DecimalField(**MONEY_FIELD_KWARGS)
    total_platform_fees = serializers.DecimalField(**MONEY_FIELD_KWARGS)
    completed_count = serializers.IntegerField()
    pending_count = serializers.IntegerField()
    average_payout = serializers.DecimalField(**MONEY_FIELD_KWARGS)


class EarningsHistoryQuerySerializer(serializers.Serializer):
    cursor = serializers.CharField(required=False, allow_blank=True)
    page_size = serializers.IntegerField(required=False, default=20)
    provider_id = serializers.IntegerField(required=False)
    status = serializers.CharField(required=False)
    role = serializers.CharField(required=False, default="provider")
