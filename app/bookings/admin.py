"""
Booking admin configuration.

Booking status is changed only through BookingLedger and the escrow
engine, so it is read-only here.
"""

from django.contrib import admin

from bookings.models import Booking, TalentProfile, TalentService


@admin.register(TalentProfile)
class TalentProfileAdmin(admin.ModelAdmin):
    list_display = [
        "display_name",
        "user",
        "hourly_rate_cents",
        "minimum_booking_hours",
        "minimum_price_cents",
        "is_accepting_bookings",
    ]
    list_filter = ["is_accepting_bookings"]
    search_fields = ["display_name", "user__username", "user__email"]


@admin.register(TalentService)
class TalentServiceAdmin(admin.ModelAdmin):
    list_display = ["name", "provider", "min_price_cents", "is_active"]
    list_filter = ["is_active"]
    search_fields = ["name", "provider__username"]


@admin.register(Booking)
class BookingAdmin(admin.ModelAdmin):
    """
    Admin configuration for Booking.

    Provides visibility into booking status and pricing history.
    """

    list_display = [
        "id",
        "client",
        "provider",
        "price_display",
        "quote_version",
        "status",
        "scheduled_date",
        "created_at",
    ]
    list_filter = ["status", "created_at"]
    search_fields = ["id", "title", "client__username", "provider__username"]
    readonly_fields = [
        "id",
        "status",
        "quote_version",
        "confirmed_at",
        "completed_at",
        "cancelled_at",
        "cancelled_by",
        "created_at",
        "updated_at",
    ]
    date_hierarchy = "created_at"
    ordering = ["-created_at"]

    fieldsets = (
        (None, {"fields": ("id", "client", "provider", "service", "status")}),
        (
            "Engagement",
            {"fields": ("title", "description", "scheduled_date", "hours")},
        ),
        (
            "Pricing",
            {
                "fields": (
                    "quoted_price_cents",
                    "hourly_rate_snapshot_cents",
                    "quote_version",
                ),
            },
        ),
        (
            "Status Timestamps",
            {
                "fields": (
                    "confirmed_at",
                    "completed_at",
                    "cancelled_at",
                    "cancelled_by",
                    "cancellation_reason",
                ),
            },
        ),
        ("Timestamps", {"fields": ("created_at", "updated_at")}),
    )

    def price_display(self, obj: Booking) -> str:
        """Display the quoted price formatted as currency."""
        return f"${obj.quoted_price}"

    price_display.short_description = "Quoted price"

    def has_change_permission(self, request, obj=None) -> bool:
        """Prices change only through re-quote, which fails open payments."""
        return False
