"""FilterSet definitions for the booking listing."""

from __future__ import annotations

import django_filters  # type: ignore

from .domain.entities import BookingStatus, PaymentStatus
from .models import Booking, enum_choices


class BookingFilterSet(django_filters.FilterSet):
    hotel = django_filters.NumberFilter(field_name="hotel_id", lookup_expr="exact")
    room = django_filters.NumberFilter(field_name="lines__room_id", lookup_expr="exact", distinct=True)
    status = django_filters.MultipleChoiceFilter(choices=enum_choices(BookingStatus))
    payment_status = django_filters.ChoiceFilter(choices=enum_choices(PaymentStatus))
    # Stays touching [stay_from, stay_to)
    stay_from = django_filters.DateFilter(field_name="check_out", lookup_expr="gt")
    stay_to = django_filters.DateFilter(field_name="check_in", lookup_expr="lt")

    class Meta:
        model = Booking
        fields = ["hotel", "room", "status", "payment_status", "source"]
