"""
Booking Domain Events

Published after the transaction that produced them commits. Payments,
loyalty, notifications and digital keys subscribe to these through the
shared message bus; none of them take part in reservation logic.
"""

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from typing import List

from shared.domain.base import DomainEvent


@dataclass
class BookingEvent(DomainEvent):
    """Common payload of every booking event"""
    booking_number: str = ''
    hotel_id: int | None = None
    room_ids: List[int] = field(default_factory=list)


@dataclass
class BookingCreated(BookingEvent):
    """
    Event: A booking was created in PENDING with a live hold

    Triggers:
    - Payment capture (external)
    - Hold reminder notification
    """
    check_in: date | None = None
    check_out: date | None = None
    total_amount: Decimal = Decimal('0.00')
    hold_expires_at: datetime | None = None


@dataclass
class BookingModified(BookingEvent):
    """Event: Dates, rooms or extras of a booking changed"""
    check_in: date | None = None
    check_out: date | None = None
    total_amount: Decimal = Decimal('0.00')


@dataclass
class BookingConfirmed(BookingEvent):
    """
    Event: Payment confirmed (PENDING -> CONFIRMED)

    Triggers:
    - Loyalty accrual
    - Confirmation notification
    - Digital key provisioning
    """


@dataclass
class BookingPaymentFailed(BookingEvent):
    """Event: Payment attempt failed; the booking stays PENDING until its hold lapses"""


@dataclass
class BookingCheckedIn(BookingEvent):
    """Event: Guest has checked in (CONFIRMED -> CHECKED_IN)"""


@dataclass
class BookingCheckedOut(BookingEvent):
    """
    Event: Guest has checked out (CHECKED_IN -> CHECKED_OUT)

    Triggers:
    - Housekeeping task for the rooms
    - Review request
    """


@dataclass
class BookingCancelled(BookingEvent):
    """
    Event: Booking was cancelled

    Triggers:
    - Refund (if it was paid)
    - Cancellation notification
    """
    reason: str = ''
    old_status: str = ''
    refunded: bool = False


@dataclass
class BookingExpired(BookingEvent):
    """Event: Hold lapsed without payment and the sweep released the booking"""


@dataclass
class BookingNoShow(BookingEvent):
    """Event: Confirmed guest never arrived (CONFIRMED -> NO_SHOW)"""
