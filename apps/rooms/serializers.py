"""Serializers for the room registry and the room board."""

from __future__ import annotations

from rest_framework import serializers  # type: ignore

from .models import Hotel, Room


class HotelSerializer(serializers.ModelSerializer):
    class Meta:
        model = Hotel
        fields = ["id", "name", "slug", "is_active"]
        read_only_fields = fields


class RoomSerializer(serializers.ModelSerializer):
    """Room registry record. ``status`` is the declared status, not occupancy."""

    hotel_id = serializers.ReadOnlyField(source="hotel.id")
    nightly_rate = serializers.DecimalField(max_digits=10, decimal_places=2, read_only=True)

    class Meta:
        model = Room
        fields = [
            "id",
            "hotel_id",
            "room_number",
            "room_type",
            "floor",
            "capacity",
            "base_rate",
            "current_rate",
            "nightly_rate",
            "status",
            "description",
            "is_active",
            "last_cleaned_at",
            "maintenance_notes",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields


class AvailabilityQuerySerializer(serializers.Serializer):
    hotel = serializers.PrimaryKeyRelatedField(queryset=Hotel.objects.filter(is_active=True))
    check_in = serializers.DateField()
    check_out = serializers.DateField()
    room_type = serializers.ChoiceField(choices=Room.RoomType.choices, required=False)

    def validate(self, attrs):  # type: ignore
        if attrs["check_out"] <= attrs["check_in"]:
            raise serializers.ValidationError({"check_out": "Check-out date must be after check-in date."})
        return attrs


class RoomStatusQuerySerializer(serializers.Serializer):
    hotel = serializers.PrimaryKeyRelatedField(queryset=Hotel.objects.all())
    room_type = serializers.ChoiceField(choices=Room.RoomType.choices, required=False)
    floor = serializers.IntegerField(required=False, min_value=0)


class CurrentBookingSerializer(serializers.Serializer):
    id = serializers.IntegerField(source="pk")
    booking_number = serializers.CharField()
    status = serializers.CharField()
    check_in = serializers.DateField()
    check_out = serializers.DateField()


class RoomStatusSerializer(serializers.Serializer):
    """One row of the real-time room board."""

    room = RoomSerializer()
    computed_status = serializers.CharField(source="status.value")
    current_booking = CurrentBookingSerializer(source="booking", allow_null=True)


class RoomMetricsSerializer(serializers.Serializer):
    total_rooms = serializers.IntegerField()
    occupied_rooms = serializers.IntegerField()
    reserved_rooms = serializers.IntegerField()
    available_rooms = serializers.IntegerField()
    dirty_rooms = serializers.IntegerField()
    maintenance_rooms = serializers.IntegerField()
    out_of_order_rooms = serializers.IntegerField()
    occupancy_rate = serializers.DecimalField(max_digits=5, decimal_places=2)
    availability_rate = serializers.DecimalField(max_digits=5, decimal_places=2)


class SetRoomStatusSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=Room.Status.choices)
    notes = serializers.CharField(required=False, allow_blank=True, default="")
