"""Room registry: housekeeping status changes and room lookups."""

from __future__ import annotations

from decimal import Decimal

import pytest

from apps.bookings.application.queries import find_available_rooms
from apps.bookings.tests.factories import days_from_today, make_hotel, make_room
from apps.rooms.models import Hotel, Room
from apps.rooms.services import (
    deactivate_room,
    get_hotel_rooms,
    get_room,
    mark_rooms_dirty,
    set_room_status,
)
from shared.domain.exceptions import BookingValidationError, NotFoundError

pytestmark = pytest.mark.django_db


@pytest.fixture
def hotel():
    return make_hotel()


def test_hotel_slugs_are_unique() -> None:
    first = Hotel.objects.create(name="Grand Plaza")
    second = Hotel.objects.create(name="Grand Plaza")

    assert first.slug == "grand-plaza"
    assert second.slug == "grand-plaza-2"


def test_current_rate_defaults_to_base_rate(hotel) -> None:
    room = make_room(hotel, "101", rate="120.00")

    assert room.current_rate == Decimal("120.00")
    assert room.nightly_rate == Decimal("120.00")


def test_cleaning_a_dirty_room_stamps_last_cleaned(hotel) -> None:
    room = make_room(hotel, "101", status=Room.Status.DIRTY)

    room = set_room_status(room.pk, Room.Status.VACANT)

    assert room.status == Room.Status.VACANT
    assert room.last_cleaned_at is not None


def test_maintenance_keeps_notes(hotel) -> None:
    room = make_room(hotel, "101")

    room = set_room_status(room.pk, Room.Status.MAINTENANCE, notes="Broken AC")

    room.refresh_from_db()
    assert room.status == Room.Status.MAINTENANCE
    assert room.maintenance_notes == "Broken AC"
    assert room.last_cleaned_at is None
    assert room not in find_available_rooms(hotel.pk, days_from_today(1), days_from_today(2))


def test_unknown_status_is_rejected(hotel) -> None:
    room = make_room(hotel, "101")

    with pytest.raises(BookingValidationError):
        set_room_status(room.pk, "occupied")


def test_room_of_another_hotel_is_not_found(hotel) -> None:
    room = make_room(make_hotel("Elsewhere"), "101")

    with pytest.raises(NotFoundError):
        get_room(room.pk, hotel_id=hotel.pk)


def test_deactivated_room_cannot_be_booked(hotel) -> None:
    room = make_room(hotel, "101")

    deactivate_room(room.pk)

    room.refresh_from_db()
    assert not room.is_active
    with pytest.raises(BookingValidationError) as excinfo:
        get_hotel_rooms(hotel.pk, [room.pk])
    assert excinfo.value.details["room_ids"] == [room.pk]


def test_get_hotel_rooms_requires_rooms(hotel) -> None:
    with pytest.raises(BookingValidationError):
        get_hotel_rooms(hotel.pk, [])


def test_get_hotel_rooms_ignores_duplicates(hotel) -> None:
    room = make_room(hotel, "101")

    assert get_hotel_rooms(hotel.pk, [room.pk, room.pk]) == [room]


def test_mark_rooms_dirty_leaves_out_of_service_rooms(hotel) -> None:
    vacant = make_room(hotel, "101")
    repair = make_room(hotel, "102", status=Room.Status.MAINTENANCE)

    assert mark_rooms_dirty([vacant.pk, repair.pk]) == 1

    vacant.refresh_from_db()
    repair.refresh_from_db()
    assert vacant.status == Room.Status.DIRTY
    assert repair.status == Room.Status.MAINTENANCE
