"""
Payment admin configuration.

Payments are read-only here: every state change goes through
PaymentEscrowEngine so the booking and the payout stay consistent.
Payouts can be marked paid once the manual transfer has been made.
"""

import logging

from django.contrib import admin
from django_fsm import ConcurrentTransition, TransitionNotAllowed

from payments.models import Payment, Payout
from payments.state_machines import PayoutState

logger = logging.getLogger(__name__)


@admin.register(Payment)
class PaymentAdmin(admin.ModelAdmin):
    """
    Admin configuration for Payment.

    Provides visibility into escrow status and the fee breakdown.
    """

    list_display = [
        "id",
        "booking",
        "provider",
        "gross_display",
        "payout_display",
        "status",
        "escrow_release_at",
        "created_at",
    ]
    list_filter = ["status", "release_trigger", "schedule_version", "created_at"]
    search_fields = ["id", "booking__id", "provider__username", "payment_method"]
    readonly_fields = [field.name for field in Payment._meta.fields]
    date_hierarchy = "created_at"
    ordering = ["-created_at"]

    fieldsets = (
        (None, {"fields": ("id", "booking", "provider", "status")}),
        (
            "Amounts",
            {
                "fields": (
                    "gross_amount_cents",
                    "platform_fee_cents",
                    "processor_fee_cents",
                    "payout_amount_cents",
                    "platform_fee_rate",
                    "schedule_version",
                ),
            },
        ),
        ("Submission", {"fields": ("payment_method", "client_notes", "metadata")}),
        (
            "Escrow",
            {
                "fields": (
                    "verified_at",
                    "verified_by",
                    "verification_notes",
                    "escrow_release_at",
                    "released_at",
                    "release_trigger",
                    "failed_at",
                    "failure_reason",
                ),
            },
        ),
        ("Timestamps", {"fields": ("created_at", "updated_at")}),
    )

    def gross_display(self, obj: Payment) -> str:
        return f"${obj.gross_amount}"

    gross_display.short_description = "Gross"

    def payout_display(self, obj: Payment) -> str:
        return f"${obj.payout_amount}"

    payout_display.short_description = "Payout"

    def has_add_permission(self, request) -> bool:
        """Payments are submitted through the API only."""
        return False

    def has_delete_permission(self, request, obj=None) -> bool:
        """Disable delete for payments (audit trail)."""
        return False


@admin.register(Payout)
class PayoutAdmin(admin.ModelAdmin):
    """Admin configuration for Payout."""

    list_display = ["id", "provider", "amount_cents", "method", "status", "paid_at"]
    list_filter = ["status", "method"]
    search_fields = ["id", "provider__username", "reference", "payment__id"]
    readonly_fields = [
        "id",
        "payment",
        "provider",
        "amount_cents",
        "status",
        "paid_at",
        "created_at",
        "updated_at",
    ]
    ordering = ["-created_at"]
    actions = ["mark_paid"]

    @admin.action(description="Mark selected payouts as paid")
    def mark_paid(self, request, queryset):
        """Bulk action to record completed manual transfers."""
        count = 0
        for payout in queryset.filter(status=PayoutState.PENDING):
            try:
                payout.mark_paid()
                payout.save()
            except (ConcurrentTransition, TransitionNotAllowed):
                logger.warning(
                    "Payout changed while marking paid",
                    extra={"payout_id": str(payout.id)},
                )
                continue
            count += 1
        self.message_user(request, f"Marked {count} payouts as paid.")

    def has_add_permission(self, request) -> bool:
        """Payouts are created on escrow release only."""
        return False

    def has_delete_permission(self, request, obj=None) -> bool:
        return False
