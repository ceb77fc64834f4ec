"""
Room Status Projection

Merges a room's declared status with the bookings that currently touch it
into the status shown on the staff dashboard. Pure: no database access,
recomputed on every read and never stored.
"""

from dataclasses import dataclass
from datetime import date
from enum import Enum
from typing import Any, Iterable, Optional

from apps.bookings.domain.entities import BookingStatus


class ComputedStatus(str, Enum):
    VACANT = 'vacant'
    RESERVED = 'reserved'
    OCCUPIED = 'occupied'
    DIRTY = 'dirty'
    MAINTENANCE = 'maintenance'
    OUT_OF_ORDER = 'out_of_order'


OUT_OF_SERVICE = frozenset({ComputedStatus.MAINTENANCE.value, ComputedStatus.OUT_OF_ORDER.value})


@dataclass(frozen=True)
class Projection:
    status: ComputedStatus
    booking: Optional[Any] = None  # booking driving the status, if any


def _in_house(booking, today: date) -> bool:
    # The guest keeps the room through the check-out day until they check out.
    return booking.check_in <= today <= booking.check_out


def project(room_status: str, bookings: Iterable[Any], today: date) -> Projection:
    """
    Rule order (first match wins):
    1. maintenance / out_of_order governs regardless of bookings
    2. checked-in booking covering today -> occupied
    3. confirmed booking with check-in on or before today -> occupied
    4. confirmed booking with a later check-in -> reserved
    5. declared status (vacant or dirty)
    """
    if room_status in OUT_OF_SERVICE:
        return Projection(ComputedStatus(room_status))

    current = [booking for booking in bookings if booking.check_out >= today]
    ordered = sorted(current, key=lambda booking: booking.check_in)

    for booking in ordered:
        if booking.status == BookingStatus.CHECKED_IN.value and _in_house(booking, today):
            return Projection(ComputedStatus.OCCUPIED, booking)

    confirmed = [booking for booking in ordered if booking.status == BookingStatus.CONFIRMED.value]
    for booking in confirmed:
        if booking.check_in <= today:
            return Projection(ComputedStatus.OCCUPIED, booking)
    if confirmed:
        return Projection(ComputedStatus.RESERVED, confirmed[0])

    if room_status == ComputedStatus.DIRTY.value:
        return Projection(ComputedStatus.DIRTY)
    return Projection(ComputedStatus.VACANT)


def project_status(room_status: str, bookings: Iterable[Any], today: date) -> ComputedStatus:
    return project(room_status, bookings, today).status
