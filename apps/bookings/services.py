"""Ledger services: overlap detection, row locking and room-night claims."""

from __future__ import annotations

import logging
from datetime import date, datetime
from typing import Iterable

from django.db import IntegrityError, transaction  # type: ignore
from django.db.utils import NotSupportedError  # type: ignore
from django.utils import timezone  # type: ignore

from apps.rooms.models import Room
from shared.domain.exceptions import AvailabilityConflictError, NotFoundError
from shared.domain.value_objects import DateRange

from .domain.entities import stay_for
from .holds import blocking_filter, lapsed_filter, released_filter
from .models import Booking, RoomNight

logger = logging.getLogger(__name__)


def _lock_queryset_if_possible(queryset):
    """Apply select_for_update when inside transaction.atomic()."""

    if not transaction.get_connection().in_atomic_block:
        return queryset

    try:
        return queryset.select_for_update()
    except NotSupportedError:
        return queryset


# ----- overlap detection -----

def _blocking_bookings(
    room_ids: Iterable[int],
    check_in: date,
    check_out: date,
    *,
    exclude_booking_id: int | None = None,
    now: datetime | None = None,
):
    stay = stay_for(check_in, check_out)
    now = now or timezone.now()

    # Half-open intervals: existing.check_in < query.check_out AND existing.check_out > query.check_in
    bookings_qs = (
        Booking.objects.filter(blocking_filter(now))
        .filter(
            lines__room_id__in=list(room_ids),
            check_in__lt=stay.end_date,
            check_out__gt=stay.start_date,
        )
        .distinct()
    )
    if exclude_booking_id is not None:
        bookings_qs = bookings_qs.exclude(pk=exclude_booking_id)
    return bookings_qs


def find_blocking_bookings(
    room_ids: Iterable[int],
    check_in: date,
    check_out: date,
    *,
    exclude_booking_id: int | None = None,
    now: datetime | None = None,
) -> list[Booking]:
    """Bookings that block any of ``room_ids`` for [check_in, check_out)."""

    return list(
        _blocking_bookings(
            room_ids,
            check_in,
            check_out,
            exclude_booking_id=exclude_booking_id,
            now=now,
        ).order_by("check_in", "pk")
    )


def has_blocking_overlap(
    room_ids: Iterable[int],
    check_in: date,
    check_out: date,
    *,
    exclude_booking_id: int | None = None,
    now: datetime | None = None,
) -> bool:
    return _blocking_bookings(
        room_ids,
        check_in,
        check_out,
        exclude_booking_id=exclude_booking_id,
        now=now,
    ).exists()


# ----- locking -----

def lock_rooms(room_ids: Iterable[int]) -> list[Room]:
    """Lock room rows in primary-key order so concurrent writers queue up instead of deadlocking."""

    return list(_lock_queryset_if_possible(Room.objects.filter(pk__in=list(room_ids)).order_by("pk")))


def lock_booking(booking_id: int, *, hotel_id: int | None = None) -> Booking:
    bookings_qs = Booking.objects.filter(pk=booking_id)
    if hotel_id is not None:
        bookings_qs = bookings_qs.filter(hotel_id=hotel_id)
    booking = _lock_queryset_if_possible(bookings_qs).first()
    if booking is None:
        raise NotFoundError(f"Booking {booking_id} not found", booking_id=booking_id)
    return booking


# ----- room nights -----

def reclaim_lapsed_nights(room_ids: Iterable[int], stay: DateRange, now: datetime) -> int:
    """
    Free nights still held by bookings that no longer block.

    Covers holds that lapsed before the sweep got to them, so a stale
    pending row never stands in the way of a legitimate insert.
    """

    deleted, _ = (
        RoomNight.objects.filter(
            room_id__in=list(room_ids),
            night__gte=stay.start_date,
            night__lt=stay.end_date,
        )
        .filter(lapsed_filter(now, "booking__") | released_filter("booking__"))
        .delete()
    )
    if deleted:
        logger.info(f"Reclaimed {deleted} room nights from lapsed holds")
    return deleted


def claim_room_nights(booking: Booking, room_ids: Iterable[int], stay: DateRange, now: datetime) -> int:
    """
    Insert one RoomNight per room per night for ``booking``.

    The unique (room, night) constraint decides races between server
    processes: the loser gets AvailabilityConflictError, never an
    overlapping booking.
    """

    room_ids = list(room_ids)
    reclaim_lapsed_nights(room_ids, stay, now)
    rows = [
        RoomNight(room_id=room_id, night=night, booking=booking)
        for room_id in room_ids
        for night in stay.nights()
    ]
    try:
        with transaction.atomic():
            RoomNight.objects.bulk_create(rows)
    except IntegrityError:
        logger.warning(
            f"Room night constraint rejected booking {booking.booking_number} "
            f"for rooms {room_ids}, {stay}"
        )
        raise AvailabilityConflictError(room_ids=room_ids)
    return len(rows)


def release_room_nights(booking: Booking) -> int:
    deleted, _ = RoomNight.objects.filter(booking=booking).delete()
    return deleted
