"""Room registry services.

Housekeeping and maintenance workflows call into this module to change a
room's declarative status. These writes do not coordinate with the
booking ledger: the status board reads both at query time.
"""

from __future__ import annotations

import logging
from typing import Iterable

from django.utils import timezone  # type: ignore

from shared.domain.exceptions import BookingValidationError, NotFoundError

from .models import Room

logger = logging.getLogger(__name__)


def get_room(room_id: int, *, hotel_id: int | None = None) -> Room:
    """Fetch a room, treating a room from another hotel as missing."""

    qs = Room.objects.select_related("hotel")
    if hotel_id is not None:
        qs = qs.filter(hotel_id=hotel_id)
    try:
        return qs.get(pk=room_id)
    except Room.DoesNotExist:
        raise NotFoundError(f"Room {room_id} not found", room_id=room_id)


def get_hotel_rooms(hotel_id: int, room_ids: Iterable[int]) -> list[Room]:
    """
    Resolve booking room ids against the hotel's active rooms.

    Raises BookingValidationError when the list is empty or any id is not an
    active room of this hotel.
    """

    ids = list(dict.fromkeys(room_ids))
    if not ids:
        raise BookingValidationError("At least one room is required")

    rooms = list(
        Room.objects.filter(pk__in=ids, hotel_id=hotel_id, is_active=True).order_by("pk")
    )
    if len(rooms) != len(ids):
        missing = sorted(set(ids) - {room.pk for room in rooms})
        raise BookingValidationError(
            "One or more rooms are not active rooms of this hotel",
            room_ids=missing,
        )
    return rooms


def set_room_status(room_id: int, status: str, *, notes: str = "", hotel_id: int | None = None) -> Room:
    """Housekeeping/maintenance signal: change a room's declared status."""

    if status not in Room.Status.values:
        raise BookingValidationError(f"Unknown room status {status!r}")

    room = get_room(room_id, hotel_id=hotel_id)
    previous = room.status
    room.mark_status(status, notes=notes)
    logger.info(f"Room {room.room_number} (hotel {room.hotel_id}) status {previous} -> {status}")
    return room


def mark_rooms_dirty(room_ids: Iterable[int]) -> int:
    """Flag rooms for cleaning after check-out. Out-of-service rooms keep their status."""

    updated = (
        Room.objects.filter(pk__in=list(room_ids), status=Room.Status.VACANT)
        .update(status=Room.Status.DIRTY, updated_at=timezone.now())
    )
    if updated:
        logger.info(f"Marked {updated} rooms dirty after check-out")
    return updated


def deactivate_room(room_id: int, *, hotel_id: int | None = None) -> Room:
    room = get_room(room_id, hotel_id=hotel_id)
    room.deactivate()
    logger.info(f"Room {room.room_number} (hotel {room.hotel_id}) deactivated")
    return room
