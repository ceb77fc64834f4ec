"""
Booking Domain Entities

Closed status types for the booking lifecycle and the pure rules that
operate on them:
- BookingStatus: lifecycle states and the transition table
- PaymentStatus: payment state tracking
- calculate_nights / calculate_total: ledger arithmetic
"""

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Iterable

from shared.domain.exceptions import BookingValidationError, StateTransitionError
from shared.domain.value_objects import DateRange, Money


class BookingStatus(str, Enum):
    """
    Booking Status Finite State Machine

    State transitions:
    - PENDING -> CONFIRMED (payment succeeded)
    - PENDING -> CANCELLED (guest cancelled, or the hold lapsed)
    - CONFIRMED -> CHECKED_IN (guest arrived)
    - CONFIRMED -> CANCELLED (guest or staff cancelled)
    - CONFIRMED -> NO_SHOW (guest never arrived)
    - CHECKED_IN -> CHECKED_OUT (guest left)
    """
    PENDING = 'pending'            # Held for payment (hold window)
    CONFIRMED = 'confirmed'        # Paid and confirmed
    CHECKED_IN = 'checked_in'      # Guest is in the room
    CHECKED_OUT = 'checked_out'    # Stay finished
    CANCELLED = 'cancelled'        # Cancelled, or hold expired
    NO_SHOW = 'no_show'            # Guest failed to arrive

    @property
    def is_terminal(self) -> bool:
        return not TRANSITIONS[self]

    @property
    def holds_inventory(self) -> bool:
        """Statuses whose room nights stay claimed (pending only until its hold lapses)."""
        return self in (BookingStatus.PENDING, BookingStatus.CONFIRMED, BookingStatus.CHECKED_IN)


class PaymentStatus(str, Enum):
    """Payment status tracking"""
    PENDING = 'pending'
    PAID = 'paid'
    REFUNDED = 'refunded'
    FAILED = 'failed'


TRANSITIONS: dict[BookingStatus, frozenset[BookingStatus]] = {
    BookingStatus.PENDING: frozenset({BookingStatus.CONFIRMED, BookingStatus.CANCELLED}),
    BookingStatus.CONFIRMED: frozenset({
        BookingStatus.CHECKED_IN,
        BookingStatus.CANCELLED,
        BookingStatus.NO_SHOW,
    }),
    BookingStatus.CHECKED_IN: frozenset({BookingStatus.CHECKED_OUT}),
    BookingStatus.CHECKED_OUT: frozenset(),
    BookingStatus.CANCELLED: frozenset(),
    BookingStatus.NO_SHOW: frozenset(),
}

# Statuses that always block a room; PENDING blocks only while its hold is live.
CONFIRMED_BLOCKING = (BookingStatus.CONFIRMED, BookingStatus.CHECKED_IN)


def can_transition(current, target) -> bool:
    return BookingStatus(target) in TRANSITIONS[BookingStatus(current)]


def ensure_transition(current, target) -> BookingStatus:
    """Validate a status change against the transition table."""
    current = BookingStatus(current)
    target = BookingStatus(target)
    if target not in TRANSITIONS[current]:
        raise StateTransitionError(
            f"Cannot move booking from {current.value} to {target.value}",
            current=current.value,
            target=target.value,
        )
    return target


def stay_for(check_in: date, check_out: date) -> DateRange:
    """Build the stay interval, rejecting check_out <= check_in."""
    if check_in is None or check_out is None:
        raise BookingValidationError("Check-in and check-out dates are required")
    if check_out <= check_in:
        raise BookingValidationError(
            "Check-out date must be after check-in date",
            check_in=str(check_in),
            check_out=str(check_out),
        )
    return DateRange(check_in, check_out)


def calculate_nights(check_in: date, check_out: date) -> int:
    return len(stay_for(check_in, check_out))


@dataclass(frozen=True)
class ExtraCharge:
    """Extra line item (breakfast, airport transfer, ...)"""
    name: str
    price: Decimal
    quantity: int = 1

    def __post_init__(self):
        if not self.name:
            raise BookingValidationError("Extra charge needs a name")
        if Decimal(self.price) < 0:
            raise BookingValidationError(f"Extra {self.name!r} has a negative price")
        if self.quantity < 1:
            raise BookingValidationError(f"Extra {self.name!r} needs a quantity of at least 1")

    @property
    def amount(self) -> Decimal:
        return Decimal(self.price) * self.quantity


def calculate_total(
    nightly_rates: Iterable[Decimal],
    nights: int,
    extras: Iterable[ExtraCharge] = (),
    currency: str = 'INR',
) -> Money:
    """
    Booking total

    sum(nightly rates of every room) * nights + sum(extra price * quantity)
    """
    rooms_total = Money.zero(currency)
    for rate in nightly_rates:
        rooms_total = rooms_total + Money(Decimal(rate), currency)
    total = rooms_total * nights
    for extra in extras:
        total = total + Money(extra.amount, currency)
    return total.quantize()
