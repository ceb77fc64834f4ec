"""Admin registration for hotels and rooms."""

from __future__ import annotations

from django.contrib import admin

from .models import Hotel, Room


@admin.register(Hotel)
class HotelAdmin(admin.ModelAdmin):
    list_display = ("name", "slug", "is_active", "created_at")
    search_fields = ("name", "slug")
    prepopulated_fields = {"slug": ("name",)}


@admin.register(Room)
class RoomAdmin(admin.ModelAdmin):
    list_display = (
        "room_number",
        "hotel",
        "room_type",
        "floor",
        "status",
        "current_rate",
        "capacity",
        "is_active",
    )
    list_filter = ("hotel", "room_type", "status", "is_active", "floor")
    search_fields = ("room_number", "hotel__name")
    readonly_fields = ("last_cleaned_at", "created_at", "updated_at")

    def has_delete_permission(self, request, obj=None):  # type: ignore
        # Rooms are deactivated, never deleted.
        return False
