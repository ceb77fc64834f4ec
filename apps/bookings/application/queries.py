"""
Booking Read Models

Read-only queries over the ledger and the room registry. Nothing here
writes or locks; every call recomputes from current state and is safe to
run concurrently with reservations.
"""

from collections import Counter, defaultdict
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Dict, List, Optional
import logging

from django.conf import settings
from django.db.models import Exists, F, OuterRef
from django.utils import timezone

from shared.domain.exceptions import BookingValidationError, NotFoundError
from apps.bookings.domain.entities import CONFIRMED_BLOCKING, stay_for
from apps.bookings.domain.projection import ComputedStatus, project
from apps.bookings.holds import blocking_filter
from apps.bookings.models import Booking, BookingRoom
from apps.rooms.models import Hotel, Room

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RoomStatus:
    room: Room
    status: ComputedStatus
    booking: Optional[Booking] = None


def _ensure_hotel(hotel_id: int):
    if not Hotel.objects.filter(pk=hotel_id).exists():
        raise NotFoundError(f"Hotel {hotel_id} not found", hotel_id=hotel_id)


def _validate_room_type(room_type: Optional[str]):
    if room_type and room_type not in Room.RoomType.values:
        raise BookingValidationError(f"Unknown room type {room_type!r}")


def available_rooms_qs(
    hotel_id: int,
    check_in: date,
    check_out: date,
    room_type: Optional[str] = None,
    now: Optional[datetime] = None,
):
    """
    Active, vacant rooms of the hotel with no blocking booking in [check_in, check_out).

    Lapsed holds are filtered out here even if the sweep has not run yet.
    """
    stay = stay_for(check_in, check_out)
    _validate_room_type(room_type)
    now = now or timezone.now()

    overlap = Exists(
        BookingRoom.objects.filter(room=OuterRef('pk'))
        .filter(blocking_filter(now, 'booking__'))
        .filter(
            booking__check_in__lt=stay.end_date,
            booking__check_out__gt=stay.start_date,
        )
    )
    rooms_qs = Room.objects.filter(
        hotel_id=hotel_id,
        is_active=True,
        status=Room.Status.VACANT,
    )
    if room_type:
        rooms_qs = rooms_qs.filter(room_type=room_type)
    return rooms_qs.annotate(has_overlap=overlap).filter(has_overlap=False).order_by('room_number', 'pk')


def find_available_rooms(
    hotel_id: int,
    check_in: date,
    check_out: date,
    room_type: Optional[str] = None,
    now: Optional[datetime] = None,
) -> List[Room]:
    _ensure_hotel(hotel_id)
    rooms = list(available_rooms_qs(hotel_id, check_in, check_out, room_type=room_type, now=now))
    logger.debug(f"{len(rooms)} rooms available in hotel {hotel_id} for {check_in} - {check_out}")
    return rooms


def _active_bookings_by_room(room_ids: List[int], today: date) -> Dict[int, List[Booking]]:
    """Confirmed or in-house bookings not yet checked out and starting by the reservation horizon."""
    horizon = today + timedelta(days=settings.ROOM_STATUS_RESERVATION_HORIZON_DAYS)
    lines = (
        BookingRoom.objects.filter(
            room_id__in=room_ids,
            booking__status__in=[status.value for status in CONFIRMED_BLOCKING],
            booking__check_out__gte=today,
            booking__check_in__lte=horizon,
        )
        .select_related('booking')
        .order_by('booking__check_in', 'booking_id')
    )
    by_room: Dict[int, List[Booking]] = defaultdict(list)
    for line in lines:
        by_room[line.room_id].append(line.booking)
    return by_room


def project_room_statuses(
    hotel_id: int,
    room_type: Optional[str] = None,
    floor: Optional[int] = None,
    today: Optional[date] = None,
) -> List[RoomStatus]:
    """
    Real-time room board

    Each active room of the hotel with its computed status and the booking
    driving it. Ordered by floor, then room number.
    """
    _ensure_hotel(hotel_id)
    _validate_room_type(room_type)
    today = today or timezone.localdate()

    rooms_qs = Room.objects.filter(hotel_id=hotel_id, is_active=True)
    if room_type:
        rooms_qs = rooms_qs.filter(room_type=room_type)
    if floor is not None:
        rooms_qs = rooms_qs.filter(floor=floor)
    rooms = list(rooms_qs.order_by(F('floor').asc(nulls_last=True), 'room_number', 'pk'))

    bookings = _active_bookings_by_room([room.pk for room in rooms], today)

    statuses = []
    for room in rooms:
        projection = project(room.status, bookings.get(room.pk, []), today)
        statuses.append(RoomStatus(room=room, status=projection.status, booking=projection.booking))
    return statuses


def _rate(count: int, total: int) -> Decimal:
    if not total:
        return Decimal('0.00')
    return (Decimal(count) * 100 / Decimal(total)).quantize(Decimal('0.01'), rounding=ROUND_HALF_UP)


def room_metrics(hotel_id: int, today: Optional[date] = None) -> Dict[str, Any]:
    """Dashboard counters over the computed statuses of the hotel's rooms."""
    statuses = project_room_statuses(hotel_id, today=today)
    counts = Counter(item.status for item in statuses)
    total = len(statuses)

    return {
        'total_rooms': total,
        'occupied_rooms': counts[ComputedStatus.OCCUPIED],
        'reserved_rooms': counts[ComputedStatus.RESERVED],
        'available_rooms': counts[ComputedStatus.VACANT],
        'dirty_rooms': counts[ComputedStatus.DIRTY],
        'maintenance_rooms': counts[ComputedStatus.MAINTENANCE],
        'out_of_order_rooms': counts[ComputedStatus.OUT_OF_ORDER],
        'occupancy_rate': _rate(counts[ComputedStatus.OCCUPIED], total),
        'availability_rate': _rate(counts[ComputedStatus.VACANT], total),
    }
