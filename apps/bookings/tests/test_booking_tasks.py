"""Background sweeps: lapsed holds and no-shows."""

from __future__ import annotations

from datetime import timedelta

import pytest
from django.utils import timezone

from apps.bookings.application.command_handlers import create_booking, expire_booking
from apps.bookings.domain.entities import BookingStatus, PaymentStatus
from apps.bookings.models import Booking, RoomNight
from apps.bookings.tasks import expire_pending_bookings, mark_no_show_bookings
from shared.domain.exceptions import StateTransitionError

from .factories import days_from_today, insert_booking, make_hotel, make_room, make_user

pytestmark = pytest.mark.django_db


@pytest.fixture
def hotel():
    return make_hotel()


@pytest.fixture
def guest():
    return make_user("guest")


def pending(hotel, guest, room, start=5, end=7) -> Booking:
    return create_booking(hotel.pk, guest.pk, [room.pk], days_from_today(start), days_from_today(end))


class TestExpirePendingBookings:
    def test_releases_only_lapsed_holds(self, hotel, guest) -> None:
        lapsed = pending(hotel, guest, make_room(hotel, "101"))
        live = pending(hotel, guest, make_room(hotel, "102"))
        Booking.objects.filter(pk=lapsed.pk).update(hold_expires_at=timezone.now() - timedelta(seconds=1))

        result = expire_pending_bookings.delay().get()

        assert result == {"expired": 1}
        lapsed.refresh_from_db()
        live.refresh_from_db()
        assert lapsed.status == BookingStatus.CANCELLED.value
        assert lapsed.cancellation_source == Booking.CancellationSource.SYSTEM
        assert lapsed.payment_status == PaymentStatus.PENDING.value
        assert not RoomNight.objects.filter(booking=lapsed).exists()
        assert live.status == BookingStatus.PENDING.value
        assert RoomNight.objects.filter(booking=live).count() == 2

    def test_nothing_to_do(self, hotel, guest) -> None:
        pending(hotel, guest, make_room(hotel, "101"))

        assert expire_pending_bookings() == {"expired": 0}

    def test_live_hold_cannot_be_expired(self, hotel, guest) -> None:
        booking = pending(hotel, guest, make_room(hotel, "101"))

        assert expire_booking(booking.pk) is None
        booking.refresh_from_db()
        assert booking.status == BookingStatus.PENDING.value

    def test_expire_rejects_non_pending(self, hotel, guest) -> None:
        booking = pending(hotel, guest, make_room(hotel, "101"))
        booking.status = BookingStatus.CONFIRMED.value

        with pytest.raises(StateTransitionError):
            booking.expire(timezone.now())


class TestMarkNoShowBookings:
    def test_marks_confirmed_arrivals_from_the_past(self, hotel, guest) -> None:
        room = make_room(hotel, "101")
        missed = insert_booking(hotel, guest, [room], days_from_today(-2), days_from_today(1))
        in_house = insert_booking(
            hotel,
            guest,
            [make_room(hotel, "102")],
            days_from_today(-2),
            days_from_today(1),
            status=BookingStatus.CHECKED_IN,
        )
        arriving_today = insert_booking(hotel, guest, [make_room(hotel, "103")], days_from_today(0), days_from_today(2))

        result = mark_no_show_bookings()

        assert result == {"marked": 1}
        missed.refresh_from_db()
        in_house.refresh_from_db()
        arriving_today.refresh_from_db()
        assert missed.status == BookingStatus.NO_SHOW.value
        assert not RoomNight.objects.filter(booking=missed).exists()
        assert in_house.status == BookingStatus.CHECKED_IN.value
        assert arriving_today.status == BookingStatus.CONFIRMED.value
