"""FilterSet definitions for the room registry listing."""

from __future__ import annotations

import django_filters  # type: ignore

from .models import Room


class RoomFilterSet(django_filters.FilterSet):
    hotel = django_filters.NumberFilter(field_name="hotel_id", lookup_expr="exact")
    room_type = django_filters.ChoiceFilter(choices=Room.RoomType.choices)
    floor = django_filters.NumberFilter(field_name="floor", lookup_expr="exact")
    status = django_filters.ChoiceFilter(choices=Room.Status.choices)
    capacity_min = django_filters.NumberFilter(field_name="capacity", lookup_expr="gte")
    rate_max = django_filters.NumberFilter(field_name="current_rate", lookup_expr="lte")

    class Meta:
        model = Room
        fields = ["hotel", "room_type", "floor", "status", "is_active"]
