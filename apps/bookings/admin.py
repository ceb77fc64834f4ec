"""Admin registration for bookings."""

from __future__ import annotations

from django.contrib import admin

from .models import Booking, BookingExtra, BookingRoom


class BookingRoomInline(admin.TabularInline):
    model = BookingRoom
    extra = 0
    can_delete = False
    readonly_fields = ("room", "rate")


class BookingExtraInline(admin.TabularInline):
    model = BookingExtra
    extra = 0
    can_delete = False
    readonly_fields = ("name", "price", "quantity")


@admin.register(Booking)
class BookingAdmin(admin.ModelAdmin):
    """Read-mostly view; state changes go through the API so room nights stay consistent."""

    list_display = (
        "booking_number",
        "hotel",
        "guest",
        "status",
        "payment_status",
        "check_in",
        "check_out",
        "total_amount",
        "hold_expires_at",
        "created_at",
    )
    list_filter = ("hotel", "status", "payment_status", "source", "check_in")
    search_fields = ("booking_number", "guest__email", "guest__username", "idempotency_key")
    inlines = (BookingRoomInline, BookingExtraInline)
    readonly_fields = (
        "booking_number",
        "hotel",
        "guest",
        "check_in",
        "check_out",
        "nights",
        "status",
        "payment_status",
        "total_amount",
        "currency",
        "idempotency_key",
        "hold_expires_at",
        "confirmed_at",
        "checked_in_at",
        "checked_out_at",
        "cancelled_at",
        "cancellation_source",
        "cancellation_reason",
        "created_at",
        "updated_at",
    )

    def has_add_permission(self, request):  # type: ignore
        return False
