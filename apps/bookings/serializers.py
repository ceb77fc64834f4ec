"""Serializers for the booking domain."""

from __future__ import annotations

from rest_framework import serializers  # type: ignore

from apps.rooms.models import Hotel

from .domain.entities import ExtraCharge, PaymentStatus
from .models import Booking, BookingExtra, BookingRoom


class BookingRoomSerializer(serializers.ModelSerializer):
    room_id = serializers.ReadOnlyField(source="room.id")
    room_number = serializers.ReadOnlyField(source="room.room_number")
    room_type = serializers.ReadOnlyField(source="room.room_type")

    class Meta:
        model = BookingRoom
        fields = ["room_id", "room_number", "room_type", "rate"]


class BookingExtraSerializer(serializers.ModelSerializer):
    class Meta:
        model = BookingExtra
        fields = ["name", "price", "quantity"]


class ExtraChargeField(serializers.Serializer):
    """Extra line item as sent by clients."""

    name = serializers.CharField(max_length=120)
    price = serializers.DecimalField(max_digits=10, decimal_places=2, min_value=0)
    quantity = serializers.IntegerField(min_value=1, default=1)


def to_extra_charges(items) -> list[ExtraCharge]:
    return [ExtraCharge(name=item["name"], price=item["price"], quantity=item["quantity"]) for item in items]


class BookingCreateSerializer(serializers.Serializer):
    """
    Booking request from a guest.

    Only the shape is checked here; availability, room ownership and
    pricing are decided by the create handler. Amounts are never accepted
    from the client.
    """

    hotel = serializers.PrimaryKeyRelatedField(queryset=Hotel.objects.filter(is_active=True))
    room_ids = serializers.ListField(child=serializers.IntegerField(min_value=1), allow_empty=False)
    check_in = serializers.DateField()
    check_out = serializers.DateField()
    adults = serializers.IntegerField(min_value=1, default=1)
    children = serializers.IntegerField(min_value=0, default=0)
    special_requests = serializers.CharField(required=False, allow_blank=True, default="")
    extras = ExtraChargeField(many=True, required=False)
    source = serializers.ChoiceField(choices=Booking.Source.choices, default=Booking.Source.DIRECT)
    idempotency_key = serializers.CharField(max_length=128, required=False, allow_blank=True)

    def validate(self, attrs):  # type: ignore
        if attrs["check_out"] <= attrs["check_in"]:
            raise serializers.ValidationError({"check_out": "Check-out date must be after check-in date."})
        return attrs


class BookingModifySerializer(serializers.Serializer):
    room_ids = serializers.ListField(child=serializers.IntegerField(min_value=1), allow_empty=False, required=False)
    check_in = serializers.DateField(required=False)
    check_out = serializers.DateField(required=False)
    extras = ExtraChargeField(many=True, required=False)

    def validate(self, attrs):  # type: ignore
        if not attrs:
            raise serializers.ValidationError("Nothing to change.")
        return attrs


class CancelBookingSerializer(serializers.Serializer):
    reason = serializers.CharField(required=False, allow_blank=True, default="", max_length=255)


class ConfirmPaymentSerializer(serializers.Serializer):
    outcome = serializers.ChoiceField(choices=[PaymentStatus.PAID.value, PaymentStatus.FAILED.value])


class CheckOutSerializer(serializers.Serializer):
    mark_rooms_dirty = serializers.BooleanField(default=True)


class BookingSerializer(serializers.ModelSerializer):
    """Booking as returned by every endpoint."""

    hotel_id = serializers.ReadOnlyField(source="hotel.id")
    guest_id = serializers.ReadOnlyField(source="guest.id")
    rooms = BookingRoomSerializer(source="lines", many=True, read_only=True)
    extras = BookingExtraSerializer(many=True, read_only=True)
    hold_expired = serializers.SerializerMethodField()

    class Meta:
        model = Booking
        fields = [
            "id",
            "booking_number",
            "hotel_id",
            "guest_id",
            "rooms",
            "extras",
            "check_in",
            "check_out",
            "nights",
            "status",
            "payment_status",
            "total_amount",
            "currency",
            "hold_expires_at",
            "hold_expired",
            "adults",
            "children",
            "special_requests",
            "source",
            "cancellation_reason",
            "cancellation_source",
            "confirmed_at",
            "checked_in_at",
            "checked_out_at",
            "cancelled_at",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields

    def get_hold_expired(self, obj: Booking) -> bool:
        return obj.is_hold_expired()
