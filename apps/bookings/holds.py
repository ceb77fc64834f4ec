"""Reservation holds.

A pending booking holds its rooms for ``BOOKING_HOLD_MINUTES`` after
creation. Expiry is a derived predicate, evaluated wherever blocking
matters:

- ``is_expired`` / ``blocks_availability`` for a loaded booking,
- ``blocking_filter`` / ``lapsed_filter`` for ledger queries.

Both say the same thing: a pending booking blocks while ``now <
hold_expires_at``. The background sweep (``tasks.expire_pending_bookings``) only
tidies up records and room nights; if it never runs, reads and inserts
still treat lapsed holds as free.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta

from django.conf import settings  # type: ignore
from django.db.models import Q  # type: ignore

from .domain.entities import CONFIRMED_BLOCKING, BookingStatus

logger = logging.getLogger(__name__)


def hold_duration() -> timedelta:
    return timedelta(minutes=settings.BOOKING_HOLD_MINUTES)


def hold_expiry(now: datetime) -> datetime:
    return now + hold_duration()


def is_expired(booking, now: datetime) -> bool:
    """True when a pending booking's hold has lapsed. Other statuses never expire."""

    if booking.status != BookingStatus.PENDING.value:
        return False
    return booking.hold_expires_at is None or now >= booking.hold_expires_at


def blocks_availability(booking, now: datetime) -> bool:
    if booking.status in {status.value for status in CONFIRMED_BLOCKING}:
        return True
    return booking.status == BookingStatus.PENDING.value and not is_expired(booking, now)


def blocking_filter(now: datetime, prefix: str = "") -> Q:
    """
    Query form of ``blocks_availability``.

    ``prefix`` lets the filter be applied across a relation, e.g.
    ``blocking_filter(now, "booking__")`` on RoomNight.
    """

    confirmed = Q(**{f"{prefix}status__in": [status.value for status in CONFIRMED_BLOCKING]})
    live_hold = Q(**{
        f"{prefix}status": BookingStatus.PENDING.value,
        f"{prefix}hold_expires_at__gt": now,
    })
    return confirmed | live_hold


def lapsed_filter(now: datetime, prefix: str = "") -> Q:
    """Pending bookings whose hold is over; the complement of a live hold."""

    return Q(**{f"{prefix}status": BookingStatus.PENDING.value}) & (
        Q(**{f"{prefix}hold_expires_at__lte": now}) | Q(**{f"{prefix}hold_expires_at__isnull": True})
    )


def released_filter(prefix: str = "") -> Q:
    """Bookings in a status that never holds rooms (checked out, cancelled, no-show)."""

    holding = [status.value for status in BookingStatus if status.holds_inventory]
    return ~Q(**{f"{prefix}status__in": holding})
