"""
Booking Command Handlers

These are the use cases of the reservation engine.
They orchestrate domain operations within transactions.

Commands:
- CreateBookingCommand: Create a pending booking with a hold
- ModifyBookingCommand: Change rooms, dates or extras in place
- ConfirmPaymentCommand: Apply a payment outcome (paid / failed)
- CancelBookingCommand: Cancel a booking
- CheckInBookingCommand: Check in a guest
- CheckOutBookingCommand: Check out a guest
- MarkNoShowCommand: Guest never arrived
- ExpireBookingCommand: Release a lapsed hold (background sweep)
"""

from dataclasses import dataclass, field
from datetime import date
from typing import List, Optional
import logging

from django.conf import settings
from django.db import IntegrityError, transaction
from django.utils import timezone

from shared.application.uow import DjangoUnitOfWork
from shared.domain.exceptions import (
    AvailabilityConflictError,
    BookingValidationError,
    IdempotencyConflict,
    NotFoundError,
    StateTransitionError,
)
from shared.domain.value_objects import DateRange
from apps.bookings.domain.entities import (
    BookingStatus,
    ExtraCharge,
    PaymentStatus,
    ensure_transition,
    stay_for,
)
from apps.bookings.holds import hold_expiry
from apps.bookings.models import Booking, BookingExtra, BookingRoom
from apps.bookings.services import (
    claim_room_nights,
    find_blocking_bookings,
    lock_booking,
    lock_rooms,
    release_room_nights,
)
from apps.rooms.models import Room
from apps.rooms.services import get_hotel_rooms, mark_rooms_dirty

logger = logging.getLogger(__name__)

OUT_OF_SERVICE = (Room.Status.MAINTENANCE, Room.Status.OUT_OF_ORDER)


# ===== Commands =====

@dataclass
class CreateBookingCommand:
    """
    Command to create a new booking

    This is the primary entry point for creating bookings.
    Retries carrying the same idempotency_key return the original booking.
    """
    hotel_id: int
    guest_id: int
    room_ids: List[int]
    check_in: date
    check_out: date
    adults: int = 1
    children: int = 0
    special_requests: str = ''
    extras: List[ExtraCharge] = field(default_factory=list)
    source: str = Booking.Source.DIRECT
    idempotency_key: Optional[str] = None


@dataclass
class ModifyBookingCommand:
    """Command to change a booking in place. None leaves a part unchanged."""
    booking_id: int
    room_ids: Optional[List[int]] = None
    check_in: Optional[date] = None
    check_out: Optional[date] = None
    extras: Optional[List[ExtraCharge]] = None
    hotel_id: Optional[int] = None


@dataclass
class ConfirmPaymentCommand:
    """Payment outcome reported by the payment provider"""
    booking_id: int
    outcome: str  # 'paid' | 'failed'
    hotel_id: Optional[int] = None


@dataclass
class CancelBookingCommand:
    """Command to cancel a booking"""
    booking_id: int
    reason: str = ''
    cancelled_by: str = Booking.CancellationSource.GUEST
    hotel_id: Optional[int] = None
    guest_id: Optional[int] = None  # restricts the lookup to the guest's own bookings


@dataclass
class CheckInBookingCommand:
    """Command to check in a guest"""
    booking_id: int
    hotel_id: Optional[int] = None


@dataclass
class CheckOutBookingCommand:
    """Command to check out a guest"""
    booking_id: int
    mark_rooms_dirty: bool = True
    hotel_id: Optional[int] = None


@dataclass
class MarkNoShowCommand:
    booking_id: int
    hotel_id: Optional[int] = None


@dataclass
class ExpireBookingCommand:
    booking_id: int


@dataclass
class CreateBookingResult:
    booking: Booking
    created: bool


# ===== Shared checks =====

def _validate_guests(rooms: List[Room], adults: int, children: int):
    if adults < 1:
        raise BookingValidationError("At least one adult is required")
    if children < 0:
        raise BookingValidationError("Children count cannot be negative")

    capacity = sum(room.capacity for room in rooms)
    if adults + children > capacity:
        raise BookingValidationError(
            f"Guests count ({adults + children}) exceeds room capacity ({capacity})",
            capacity=capacity,
        )


def _reject_out_of_service(rooms: List[Room]):
    blocked = [room.room_number for room in rooms if room.status in OUT_OF_SERVICE]
    if blocked:
        raise BookingValidationError(
            f"Rooms {', '.join(blocked)} are out of service",
            room_numbers=blocked,
        )


def _ensure_free(room_ids, stay: DateRange, now, exclude_booking_id=None):
    """Pre-insert overlap check; the room-night constraint still has the last word."""
    conflicts = find_blocking_bookings(
        room_ids,
        stay.start_date,
        stay.end_date,
        exclude_booking_id=exclude_booking_id,
        now=now,
    )
    if conflicts:
        logger.info(
            f"Availability conflict for rooms {list(room_ids)}, {stay}: "
            f"held by {[booking.booking_number for booking in conflicts]}"
        )
        raise AvailabilityConflictError(room_ids=room_ids)


def _extra_rows(booking: Booking, extras):
    return [
        BookingExtra(booking=booking, name=extra.name, price=extra.price, quantity=extra.quantity)
        for extra in extras
    ]


# ===== Command Handlers =====

class CreateBookingHandler:
    """
    Handler for CreateBooking command

    This implements the critical business logic for creating bookings
    with double booking prevention.

    Strategy:
    1. Validate the request (dates, rooms, guests) before any write
    2. Return the existing booking when the idempotency key is known
    3. Start database transaction (atomic)
    4. Lock the room rows with SELECT FOR UPDATE, in primary key order
    5. Reject overlapping blocking bookings (pre-check)
    6. Insert the booking, its lines and extras
    7. Claim one RoomNight per room per night; the unique (room, night)
       constraint turns a lost race into AvailabilityConflictError
    8. Commit, then publish BookingCreated
    """

    def handle(self, command: CreateBookingCommand) -> CreateBookingResult:
        key = command.idempotency_key or None
        logger.info(
            f"Creating booking for hotel {command.hotel_id}, guest {command.guest_id}, "
            f"rooms {command.room_ids}, dates {command.check_in} - {command.check_out}"
        )

        if key:
            existing = self._find_existing(key)
            if existing is not None:
                return CreateBookingResult(self._replay(existing, command), created=False)

        stay = stay_for(command.check_in, command.check_out)
        if stay.start_date < timezone.localdate():
            raise BookingValidationError("Check-in date cannot be in the past")

        rooms = get_hotel_rooms(command.hotel_id, command.room_ids)
        _validate_guests(rooms, command.adults, command.children)
        _reject_out_of_service(rooms)

        try:
            booking = self._create(command, stay, [room.pk for room in rooms])
        except IdempotencyConflict as exc:
            winner = self._find_existing(exc.idempotency_key)
            if winner is None:
                raise AvailabilityConflictError(
                    "Booking request is being processed, please retry",
                    room_ids=command.room_ids,
                ) from exc
            logger.warning(f"Lost idempotency race on key {key!r}, returning {winner.booking_number}")
            return CreateBookingResult(self._replay(winner, command), created=False)

        logger.info(
            f"Booking created successfully: {booking.booking_number} "
            f"(ID: {booking.pk}, total {booking.total_amount} {booking.currency})"
        )
        return CreateBookingResult(booking, created=True)

    def _create(self, command: CreateBookingCommand, stay: DateRange, room_ids: List[int]) -> Booking:
        now = timezone.now()

        with DjangoUnitOfWork() as uow:
            rooms = lock_rooms(room_ids)
            key = command.idempotency_key or None
            if key and self._find_existing(key) is not None:
                # A concurrent retry committed while we waited for the room locks
                raise IdempotencyConflict(key)
            _ensure_free(room_ids, stay, now)

            booking = self._insert_booking(command, stay, now)
            BookingRoom.objects.bulk_create([
                BookingRoom(booking=booking, room=room, rate=room.nightly_rate)
                for room in rooms
            ])
            BookingExtra.objects.bulk_create(_extra_rows(booking, command.extras))
            claim_room_nights(booking, room_ids, stay, now)

            # Total from the stored lines, never from the request
            booking.save()
            booking.record_created()
            uow.collect_events(booking)

        return booking

    def _insert_booking(self, command: CreateBookingCommand, stay: DateRange, now) -> Booking:
        """Insert the booking row, regenerating the booking number on collision."""
        key = command.idempotency_key or None

        for attempt in range(1, settings.BOOKING_NUMBER_ATTEMPTS + 1):
            booking = Booking(
                hotel_id=command.hotel_id,
                guest_id=command.guest_id,
                booking_number=Booking.generate_booking_number(),
                check_in=stay.start_date,
                check_out=stay.end_date,
                currency=settings.BOOKING_CURRENCY,
                idempotency_key=key,
                hold_expires_at=hold_expiry(now),
                adults=command.adults,
                children=command.children,
                special_requests=command.special_requests,
                source=command.source,
            )
            try:
                with transaction.atomic():
                    booking.save()
                return booking
            except IntegrityError:
                if key and Booking.objects.filter(idempotency_key=key).exists():
                    raise IdempotencyConflict(key)
                logger.warning(
                    f"Booking number {booking.booking_number} collided "
                    f"(attempt {attempt}/{settings.BOOKING_NUMBER_ATTEMPTS})"
                )

        raise BookingValidationError("Could not allocate a unique booking number")

    def _find_existing(self, key: str) -> Optional[Booking]:
        return Booking.objects.filter(idempotency_key=key).first()

    def _replay(self, existing: Booking, command: CreateBookingCommand) -> Booking:
        if existing.hotel_id != command.hotel_id or existing.guest_id != command.guest_id:
            raise BookingValidationError(
                "Idempotency key was already used for a different booking request",
                idempotency_key=existing.idempotency_key,
            )
        logger.info(f"Idempotent replay of booking {existing.booking_number}")
        return existing


class ModifyBookingHandler:
    """
    Handler for changing a pending or confirmed booking in place

    Availability is re-checked excluding the booking itself, then its
    room nights are released and claimed again for the new shape.
    Rooms that stay on the booking keep their negotiated rate.
    """

    def handle(self, command: ModifyBookingCommand) -> Booking:
        logger.info(f"Modifying booking {command.booking_id}")
        now = timezone.now()

        with DjangoUnitOfWork() as uow:
            booking = lock_booking(command.booking_id, hotel_id=command.hotel_id)

            if booking.status not in (BookingStatus.PENDING.value, BookingStatus.CONFIRMED.value):
                raise StateTransitionError(
                    f"Booking {booking.booking_number} is {booking.status} and can no longer be modified",
                    current=booking.status,
                )
            if booking.is_hold_expired(now):
                raise StateTransitionError(
                    f"Hold of booking {booking.booking_number} has expired",
                    current=booking.status,
                )

            stay = stay_for(command.check_in or booking.check_in, command.check_out or booking.check_out)
            if stay.start_date != booking.check_in and stay.start_date < timezone.localdate():
                raise BookingValidationError("Check-in date cannot be in the past")

            current_rates = {line.room_id: line.rate for line in booking.lines.all()}
            requested = command.room_ids if command.room_ids is not None else list(current_rates)
            rooms = get_hotel_rooms(booking.hotel_id, requested)
            room_ids = [room.pk for room in rooms]
            _validate_guests(rooms, booking.adults, booking.children)
            _reject_out_of_service([room for room in rooms if room.pk not in current_rates])

            locked = lock_rooms(room_ids)
            _ensure_free(room_ids, stay, now, exclude_booking_id=booking.pk)

            release_room_nights(booking)
            booking.lines.exclude(room_id__in=room_ids).delete()
            BookingRoom.objects.bulk_create([
                BookingRoom(booking=booking, room=room, rate=room.nightly_rate)
                for room in locked
                if room.pk not in current_rates
            ])
            if command.extras is not None:
                booking.extras.all().delete()
                BookingExtra.objects.bulk_create(_extra_rows(booking, command.extras))

            booking.check_in = stay.start_date
            booking.check_out = stay.end_date
            claim_room_nights(booking, room_ids, stay, now)
            booking.save()

            booking.record_modified()
            uow.collect_events(booking)

        logger.info(
            f"Booking {booking.booking_number} modified: rooms {room_ids}, {stay}, "
            f"total {booking.total_amount}"
        )
        return booking


class ConfirmPaymentHandler:
    """
    Handler for the payment confirmation signal

    paid: PENDING -> CONFIRMED. A hold that lapsed before payment arrived is
    honoured only if its rooms are still free.
    failed: the booking stays PENDING until its hold lapses.
    """

    def handle(self, command: ConfirmPaymentCommand) -> Booking:
        if command.outcome not in (PaymentStatus.PAID.value, PaymentStatus.FAILED.value):
            raise BookingValidationError(f"Unknown payment outcome {command.outcome!r}")

        logger.info(f"Payment {command.outcome} for booking {command.booking_id}")
        now = timezone.now()

        with DjangoUnitOfWork() as uow:
            booking = lock_booking(command.booking_id, hotel_id=command.hotel_id)

            if command.outcome == PaymentStatus.FAILED.value:
                booking.record_payment_failure()
                booking.save(update_fields=["payment_status", "updated_at"])
                uow.collect_events(booking)
                return booking

            if (
                booking.status == BookingStatus.CONFIRMED.value
                and booking.payment_status == PaymentStatus.PAID.value
            ):
                logger.info(f"Booking {booking.booking_number} already confirmed")
                return booking

            if booking.is_hold_expired(now):
                room_ids = booking.room_ids
                lock_rooms(room_ids)
                _ensure_free(room_ids, booking.stay, now, exclude_booking_id=booking.pk)
                claim_room_nights(booking, room_ids, booking.stay, now)
                logger.warning(f"Booking {booking.booking_number} paid after its hold lapsed, rooms re-claimed")

            booking.confirm(now)
            booking.save()
            uow.collect_events(booking)

        logger.info(f"Booking {booking.booking_number} confirmed successfully")
        return booking


class CancelBookingHandler:
    """
    Handler for cancelling a booking

    Guests are bound by the cancellation window; staff are not.
    Room nights are released in the same transaction.
    """

    def handle(self, command: CancelBookingCommand) -> Booking:
        logger.info(f"Cancelling booking {command.booking_id}, reason: {command.reason}")
        now = timezone.now()

        with DjangoUnitOfWork() as uow:
            booking = lock_booking(command.booking_id, hotel_id=command.hotel_id)
            if command.guest_id is not None and booking.guest_id != command.guest_id:
                raise NotFoundError(f"Booking {command.booking_id} not found", booking_id=command.booking_id)

            booking.cancel(
                command.reason,
                command.cancelled_by,
                now,
                enforce_window=command.cancelled_by != Booking.CancellationSource.STAFF,
            )
            release_room_nights(booking)
            booking.save()
            uow.collect_events(booking)

        logger.info(
            f"Booking {booking.booking_number} cancelled by {command.cancelled_by} "
            f"(payment {booking.payment_status})"
        )
        return booking


class CheckInBookingHandler:
    """Handler for checking in guest"""

    def handle(self, command: CheckInBookingCommand) -> Booking:
        logger.info(f"Checking in booking {command.booking_id}")
        now = timezone.now()
        today = timezone.localdate()

        with DjangoUnitOfWork() as uow:
            booking = lock_booking(command.booking_id, hotel_id=command.hotel_id)
            ensure_transition(booking.status, BookingStatus.CHECKED_IN)

            if today < booking.check_in:
                raise StateTransitionError(
                    f"Check-in for {booking.booking_number} opens on {booking.check_in}"
                )
            if today >= booking.check_out:
                raise StateTransitionError(
                    f"Stay of {booking.booking_number} ended on {booking.check_out}"
                )

            booking.check_in_guest(now)
            booking.save()
            uow.collect_events(booking)

        logger.info(f"Booking {booking.booking_number} checked in successfully")
        return booking


class CheckOutBookingHandler:
    """Handler for checking out guest. Rooms go to housekeeping as dirty."""

    def handle(self, command: CheckOutBookingCommand) -> Booking:
        logger.info(f"Checking out booking {command.booking_id}")
        now = timezone.now()

        with DjangoUnitOfWork() as uow:
            booking = lock_booking(command.booking_id, hotel_id=command.hotel_id)
            booking.check_out_guest(now)
            room_ids = booking.room_ids

            release_room_nights(booking)
            booking.save()
            if command.mark_rooms_dirty:
                mark_rooms_dirty(room_ids)
            uow.collect_events(booking)

        logger.info(f"Booking {booking.booking_number} checked out successfully")
        return booking


class MarkNoShowHandler:
    """Handler for guests that never arrived"""

    def handle(self, command: MarkNoShowCommand) -> Booking:
        with DjangoUnitOfWork() as uow:
            booking = lock_booking(command.booking_id, hotel_id=command.hotel_id)
            ensure_transition(booking.status, BookingStatus.NO_SHOW)
            if timezone.localdate() < booking.check_in:
                raise StateTransitionError(
                    f"Booking {booking.booking_number} cannot be a no-show before {booking.check_in}"
                )

            booking.mark_no_show()
            release_room_nights(booking)
            booking.save()
            uow.collect_events(booking)

        logger.info(f"Booking {booking.booking_number} marked as no-show")
        return booking


class ExpireBookingHandler:
    """
    Handler for releasing one lapsed hold

    Returns None when the booking no longer needs expiring (paid or
    cancelled since it was selected).
    """

    def handle(self, command: ExpireBookingCommand) -> Optional[Booking]:
        now = timezone.now()

        with DjangoUnitOfWork() as uow:
            booking = lock_booking(command.booking_id)
            if not booking.is_hold_expired(now):
                return None

            booking.expire(now)
            release_room_nights(booking)
            booking.save()
            uow.collect_events(booking)

        logger.info(f"Booking {booking.booking_number} expired, hold released")
        return booking


# ===== Entry points =====

def create_booking(
    hotel_id: int,
    guest_id: int,
    room_ids: List[int],
    check_in: date,
    check_out: date,
    *,
    adults: int = 1,
    children: int = 0,
    special_requests: str = '',
    extras: Optional[List[ExtraCharge]] = None,
    source: str = Booking.Source.DIRECT,
    idempotency_key: Optional[str] = None,
) -> Booking:
    """Create a pending booking, or return the one already created under idempotency_key."""
    command = CreateBookingCommand(
        hotel_id=hotel_id,
        guest_id=guest_id,
        room_ids=list(room_ids),
        check_in=check_in,
        check_out=check_out,
        adults=adults,
        children=children,
        special_requests=special_requests,
        extras=list(extras or []),
        source=source,
        idempotency_key=idempotency_key,
    )
    return CreateBookingHandler().handle(command).booking


def modify_booking(booking_id: int, **changes) -> Booking:
    return ModifyBookingHandler().handle(ModifyBookingCommand(booking_id=booking_id, **changes))


def confirm_payment(booking_id: int, outcome: str, *, hotel_id: Optional[int] = None) -> Booking:
    return ConfirmPaymentHandler().handle(
        ConfirmPaymentCommand(booking_id=booking_id, outcome=outcome, hotel_id=hotel_id)
    )


def cancel_booking(
    booking_id: int,
    reason: str = '',
    *,
    cancelled_by: str = Booking.CancellationSource.GUEST,
    hotel_id: Optional[int] = None,
    guest_id: Optional[int] = None,
) -> Booking:
    return CancelBookingHandler().handle(CancelBookingCommand(
        booking_id=booking_id,
        reason=reason,
        cancelled_by=cancelled_by,
        hotel_id=hotel_id,
        guest_id=guest_id,
    ))


def check_in(booking_id: int, *, hotel_id: Optional[int] = None) -> Booking:
    return CheckInBookingHandler().handle(CheckInBookingCommand(booking_id=booking_id, hotel_id=hotel_id))


def check_out(booking_id: int, *, mark_rooms_dirty: bool = True, hotel_id: Optional[int] = None) -> Booking:
    return CheckOutBookingHandler().handle(CheckOutBookingCommand(
        booking_id=booking_id,
        mark_rooms_dirty=mark_rooms_dirty,
        hotel_id=hotel_id,
    ))


def mark_no_show(booking_id: int, *, hotel_id: Optional[int] = None) -> Booking:
    return MarkNoShowHandler().handle(MarkNoShowCommand(booking_id=booking_id, hotel_id=hotel_id))


def expire_booking(booking_id: int) -> Optional[Booking]:
    return ExpireBookingHandler().handle(ExpireBookingCommand(booking_id=booking_id))
