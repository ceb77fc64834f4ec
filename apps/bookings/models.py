"""Booking ledger models.

``Booking`` is the single source of truth for reservations. ``RoomNight``
rows are the storage-level exclusion constraint: one row per room per
night of every booking that currently holds inventory, unique on
(room, night), so two blocking bookings can never share a room night no
matter how many server processes race to insert them.
"""

from __future__ import annotations

import secrets
from datetime import datetime, time, timedelta
from decimal import Decimal

from django.conf import settings  # type: ignore
from django.core.validators import MinValueValidator  # type: ignore
from django.db import models  # type: ignore
from django.utils import timezone  # type: ignore
from django.utils.translation import gettext_lazy as _  # type: ignore

from shared.domain.base import EventRecorder
from shared.domain.exceptions import CancellationNotAllowedError, StateTransitionError
from shared.domain.value_objects import DateRange

from . import holds
from .domain.entities import (
    BookingStatus,
    ExtraCharge,
    PaymentStatus,
    calculate_total,
    can_transition,
    ensure_transition,
    stay_for,
)
from .domain.events import (
    BookingCancelled,
    BookingCheckedIn,
    BookingCheckedOut,
    BookingConfirmed,
    BookingCreated,
    BookingExpired,
    BookingModified,
    BookingNoShow,
    BookingPaymentFailed,
)


def enum_choices(enum_cls) -> list[tuple[str, str]]:
    return [(member.value, member.value.replace("_", " ").capitalize()) for member in enum_cls]


class Booking(EventRecorder, models.Model):
    """A guest's reservation of one or more rooms for a date range."""

    class Source(models.TextChoices):
        DIRECT = "direct", _("Direct")
        BOOKING_COM = "booking_com", _("Booking.com")
        EXPEDIA = "expedia", _("Expedia")
        AIRBNB = "airbnb", _("Airbnb")

    class CancellationSource(models.TextChoices):
        GUEST = "guest", _("Guest")
        STAFF = "staff", _("Staff")
        SYSTEM = "system", _("System")

    hotel = models.ForeignKey("rooms.Hotel", on_delete=models.PROTECT, related_name="bookings")
    guest = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="bookings",
    )
    booking_number = models.CharField(max_length=20, unique=True, editable=False)
    check_in = models.DateField()
    check_out = models.DateField()
    nights = models.PositiveSmallIntegerField(default=1)
    status = models.CharField(
        max_length=16,
        choices=enum_choices(BookingStatus),
        default=BookingStatus.PENDING.value,
    )
    payment_status = models.CharField(
        max_length=16,
        choices=enum_choices(PaymentStatus),
        default=PaymentStatus.PENDING.value,
    )
    total_amount = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0.00"))
    currency = models.CharField(max_length=3, default="INR")
    idempotency_key = models.CharField(
        max_length=128,
        unique=True,
        null=True,
        blank=True,
        help_text=_("Client token that makes creation retries safe."),
    )
    hold_expires_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text=_("A pending booking blocks its rooms only until this moment."),
    )
    adults = models.PositiveSmallIntegerField(default=1, validators=[MinValueValidator(1)])
    children = models.PositiveSmallIntegerField(default=0)
    special_requests = models.TextField(blank=True)
    source = models.CharField(max_length=20, choices=Source.choices, default=Source.DIRECT)
    cancellation_reason = models.CharField(max_length=255, blank=True)
    cancellation_source = models.CharField(
        max_length=10,
        choices=CancellationSource.choices,
        blank=True,
    )
    confirmed_at = models.DateTimeField(null=True, blank=True)
    checked_in_at = models.DateTimeField(null=True, blank=True)
    checked_out_at = models.DateTimeField(null=True, blank=True)
    cancelled_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = _("Booking")
        verbose_name_plural = _("Bookings")
        ordering = ["-created_at"]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(check_out__gt=models.F("check_in")),
                name="booking_check_out_after_check_in",
            ),
        ]
        indexes = [
            models.Index(fields=["hotel", "check_in", "check_out"], name="booking_hotel_dates_idx"),
            models.Index(fields=["guest", "status"], name="booking_guest_status_idx"),
            models.Index(fields=["status", "hold_expires_at"], name="booking_status_hold_idx"),
        ]

    def __str__(self) -> str:
        return f"Booking {self.booking_number} ({self.status})"

    # ----- ledger arithmetic -----

    _TOTAL_FIELDS = {"check_in", "check_out", "nights", "total_amount"}

    @property
    def stay(self) -> DateRange:
        return stay_for(self.check_in, self.check_out)

    @property
    def room_ids(self) -> list[int]:
        return [line.room_id for line in self.lines.all()]

    def extra_charges(self) -> list[ExtraCharge]:
        return [
            ExtraCharge(name=extra.name, price=extra.price, quantity=extra.quantity)
            for extra in self.extras.all()
        ]

    def recalculate_totals(self) -> None:
        """Recompute nights and total from the stored room lines and extras."""
        self.nights = len(self.stay)
        if self.pk:
            total = calculate_total(
                [line.rate for line in self.lines.all()],
                self.nights,
                self.extra_charges(),
                currency=self.currency,
            )
            self.total_amount = total.amount

    def save(self, *args, **kwargs):  # type: ignore
        update_fields = kwargs.get("update_fields")
        if update_fields is None or self._TOTAL_FIELDS.intersection(update_fields):
            self.recalculate_totals()
            if update_fields is not None:
                kwargs["update_fields"] = sorted(set(update_fields) | {"nights", "total_amount"})
        if not self.idempotency_key:
            self.idempotency_key = None
        super().save(*args, **kwargs)

    @staticmethod
    def generate_booking_number(today=None) -> str:
        """Date prefix plus random suffix, e.g. BK20240310-3FA9C1."""
        today = today or timezone.localdate()
        return f"BK{today:%Y%m%d}-{secrets.token_hex(3).upper()}"

    # ----- hold -----

    def is_hold_expired(self, now: datetime | None = None) -> bool:
        return holds.is_expired(self, now or timezone.now())

    def blocks_availability(self, now: datetime | None = None) -> bool:
        return holds.blocks_availability(self, now or timezone.now())

    # ----- lifecycle -----

    def _event_payload(self) -> dict:
        return {
            "aggregate_id": self.pk,
            "booking_number": self.booking_number,
            "hotel_id": self.hotel_id,
            "room_ids": self.room_ids,
        }

    def _move_to(self, target: BookingStatus) -> BookingStatus:
        previous = BookingStatus(self.status)
        ensure_transition(previous, target)
        self.status = target.value
        return previous

    def record_created(self) -> None:
        self.add_event(BookingCreated(
            check_in=self.check_in,
            check_out=self.check_out,
            total_amount=self.total_amount,
            hold_expires_at=self.hold_expires_at,
            **self._event_payload(),
        ))

    def record_modified(self) -> None:
        self.add_event(BookingModified(
            check_in=self.check_in,
            check_out=self.check_out,
            total_amount=self.total_amount,
            **self._event_payload(),
        ))

    def confirm(self, now: datetime) -> None:
        """PENDING -> CONFIRMED after payment. The hold no longer matters."""
        self._move_to(BookingStatus.CONFIRMED)
        self.payment_status = PaymentStatus.PAID.value
        self.confirmed_at = now
        self.hold_expires_at = None
        self.add_event(BookingConfirmed(**self._event_payload()))

    def record_payment_failure(self) -> None:
        """Payment failed: stays PENDING, the hold keeps running."""
        if self.status != BookingStatus.PENDING.value:
            raise StateTransitionError(
                f"Cannot record a payment failure on a {self.status} booking",
                current=self.status,
            )
        self.payment_status = PaymentStatus.FAILED.value
        self.add_event(BookingPaymentFailed(**self._event_payload()))

    def check_in_guest(self, now: datetime) -> None:
        self._move_to(BookingStatus.CHECKED_IN)
        self.checked_in_at = now
        self.add_event(BookingCheckedIn(**self._event_payload()))

    def check_out_guest(self, now: datetime) -> None:
        self._move_to(BookingStatus.CHECKED_OUT)
        self.checked_out_at = now
        self.add_event(BookingCheckedOut(**self._event_payload()))

    def mark_no_show(self) -> None:
        self._move_to(BookingStatus.NO_SHOW)
        self.add_event(BookingNoShow(**self._event_payload()))

    def hours_until_check_in(self, now: datetime) -> float:
        arrival = timezone.make_aware(datetime.combine(self.check_in, time.min))
        return (arrival - now) / timedelta(hours=1)

    def can_cancel(self, now: datetime) -> bool:
        """
        Cancellation policy

        A pending booking can always be released. A confirmed one only
        while check-in is more than the cutoff away.
        """
        if not can_transition(self.status, BookingStatus.CANCELLED):
            return False
        if self.status == BookingStatus.PENDING.value:
            return True
        return self.hours_until_check_in(now) > settings.BOOKING_CANCELLATION_CUTOFF_HOURS

    def cancel(self, reason: str, source: str, now: datetime, *, enforce_window: bool = True) -> None:
        ensure_transition(self.status, BookingStatus.CANCELLED)
        if enforce_window and not self.can_cancel(now):
            raise CancellationNotAllowedError(
                f"Booking {self.booking_number} can no longer be cancelled "
                f"(less than {settings.BOOKING_CANCELLATION_CUTOFF_HOURS}h before check-in)"
            )
        previous = self._move_to(BookingStatus.CANCELLED)
        refunded = self.payment_status == PaymentStatus.PAID.value
        if refunded:
            self.payment_status = PaymentStatus.REFUNDED.value
        self.cancellation_reason = reason[:255]
        self.cancellation_source = source
        self.cancelled_at = now
        self.add_event(BookingCancelled(
            reason=self.cancellation_reason,
            old_status=previous.value,
            refunded=refunded,
            **self._event_payload(),
        ))

    def expire(self, now: datetime) -> None:
        """Hold lapsed: released like a cancellation, record kept for audit."""
        if self.status != BookingStatus.PENDING.value:
            raise StateTransitionError(
                f"Only pending bookings can expire, {self.booking_number} is {self.status}",
                current=self.status,
            )
        if not self.is_hold_expired(now):
            raise StateTransitionError(f"Hold of booking {self.booking_number} is still live")
        self._move_to(BookingStatus.CANCELLED)
        self.cancellation_reason = "Reservation hold expired before payment"
        self.cancellation_source = self.CancellationSource.SYSTEM
        self.cancelled_at = now
        self.add_event(BookingExpired(**self._event_payload()))


class BookingRoom(models.Model):
    """A room line of a booking with the nightly rate agreed at booking time."""

    booking = models.ForeignKey(Booking, on_delete=models.CASCADE, related_name="lines")
    room = models.ForeignKey("rooms.Room", on_delete=models.PROTECT, related_name="booking_lines")
    rate = models.DecimalField(max_digits=10, decimal_places=2, validators=[MinValueValidator(0)])

    class Meta:
        ordering = ["pk"]
        constraints = [
            models.UniqueConstraint(fields=["booking", "room"], name="booking_room_once"),
        ]

    def __str__(self) -> str:
        return f"{self.booking_id}: room {self.room_id} @ {self.rate}"


class BookingExtra(models.Model):
    """Extra line item charged on top of the room nights."""

    booking = models.ForeignKey(Booking, on_delete=models.CASCADE, related_name="extras")
    name = models.CharField(max_length=120)
    price = models.DecimalField(max_digits=10, decimal_places=2, validators=[MinValueValidator(0)])
    quantity = models.PositiveSmallIntegerField(default=1, validators=[MinValueValidator(1)])

    class Meta:
        ordering = ["pk"]

    def __str__(self) -> str:
        return f"{self.name} x{self.quantity}"


class RoomNight(models.Model):
    """One claimed night of one room. Unique per (room, night)."""

    room = models.ForeignKey("rooms.Room", on_delete=models.PROTECT, related_name="claimed_nights")
    night = models.DateField()
    booking = models.ForeignKey(Booking, on_delete=models.CASCADE, related_name="room_nights")

    class Meta:
        ordering = ["room", "night"]
        constraints = [
            models.UniqueConstraint(fields=["room", "night"], name="room_night_single_booking"),
        ]

    def __str__(self) -> str:
        return f"room {self.room_id} night {self.night} -> booking {self.booking_id}"
