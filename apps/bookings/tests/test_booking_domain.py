"""Unit tests for the booking state machine, ledger arithmetic, holds and room projection."""

from __future__ import annotations

from datetime import date, datetime, timedelta, timezone as dt_timezone
from decimal import Decimal
from types import SimpleNamespace

import pytest

from apps.bookings import holds
from apps.bookings.domain.entities import (
    BookingStatus,
    ExtraCharge,
    calculate_nights,
    calculate_total,
    can_transition,
    ensure_transition,
    stay_for,
)
from apps.bookings.domain.projection import ComputedStatus, project, project_status
from shared.domain.exceptions import BookingValidationError, StateTransitionError
from shared.domain.value_objects import DateRange, Money

NOW = datetime(2024, 3, 10, 12, 0, tzinfo=dt_timezone.utc)
TODAY = date(2024, 3, 10)


def booking(status: BookingStatus, check_in: date, check_out: date, hold_expires_at=None):
    return SimpleNamespace(
        status=status.value,
        check_in=check_in,
        check_out=check_out,
        hold_expires_at=hold_expires_at,
    )


class TestTransitions:
    def test_happy_path_is_allowed(self) -> None:
        assert can_transition(BookingStatus.PENDING, BookingStatus.CONFIRMED)
        assert can_transition("confirmed", "checked_in")
        assert can_transition(BookingStatus.CHECKED_IN, BookingStatus.CHECKED_OUT)

    @pytest.mark.parametrize(
        "current,target",
        [
            (BookingStatus.CHECKED_OUT, BookingStatus.PENDING),
            (BookingStatus.CANCELLED, BookingStatus.CONFIRMED),
            (BookingStatus.CHECKED_IN, BookingStatus.CANCELLED),
            (BookingStatus.PENDING, BookingStatus.CHECKED_IN),
            (BookingStatus.NO_SHOW, BookingStatus.CHECKED_IN),
        ],
    )
    def test_illegal_transitions_raise(self, current, target) -> None:
        with pytest.raises(StateTransitionError):
            ensure_transition(current, target)

    def test_terminal_statuses(self) -> None:
        terminal = {status for status in BookingStatus if status.is_terminal}
        assert terminal == {BookingStatus.CHECKED_OUT, BookingStatus.CANCELLED, BookingStatus.NO_SHOW}


class TestLedgerArithmetic:
    def test_nights_between_dates(self) -> None:
        assert calculate_nights(date(2024, 1, 1), date(2024, 1, 4)) == 3

    def test_total_is_rates_times_nights_plus_extras(self) -> None:
        total = calculate_total(
            [Decimal("100.00"), Decimal("150.00")],
            3,
            [ExtraCharge(name="Breakfast", price=Decimal("20.00"), quantity=2)],
        )
        assert total == Money(Decimal("790.00"), "INR")

    @pytest.mark.parametrize("check_out", [date(2024, 1, 1), date(2023, 12, 31)])
    def test_check_out_must_follow_check_in(self, check_out) -> None:
        with pytest.raises(BookingValidationError):
            stay_for(date(2024, 1, 1), check_out)

    def test_extra_charge_rejects_negative_price(self) -> None:
        with pytest.raises(BookingValidationError):
            ExtraCharge(name="Minibar", price=Decimal("-1"))

    def test_back_to_back_ranges_do_not_overlap(self) -> None:
        first = DateRange(date(2024, 3, 10), date(2024, 3, 14))
        assert not first.overlaps_with(DateRange(date(2024, 3, 14), date(2024, 3, 16)))
        assert first.overlaps_with(DateRange(date(2024, 3, 12), date(2024, 3, 16)))


class TestHolds:
    def test_live_hold_blocks(self) -> None:
        pending = booking(BookingStatus.PENDING, TODAY, TODAY + timedelta(days=2), NOW + timedelta(minutes=5))
        assert not holds.is_expired(pending, NOW)
        assert holds.blocks_availability(pending, NOW)

    def test_lapsed_hold_does_not_block(self) -> None:
        pending = booking(BookingStatus.PENDING, TODAY, TODAY + timedelta(days=2), NOW - timedelta(seconds=1))
        assert holds.is_expired(pending, NOW)
        assert not holds.blocks_availability(pending, NOW)

    def test_hold_ends_exactly_at_expiry(self) -> None:
        pending = booking(BookingStatus.PENDING, TODAY, TODAY + timedelta(days=2), NOW)
        assert holds.is_expired(pending, NOW)

    def test_confirmed_never_expires(self) -> None:
        confirmed = booking(BookingStatus.CONFIRMED, TODAY, TODAY + timedelta(days=2))
        assert not holds.is_expired(confirmed, NOW)
        assert holds.blocks_availability(confirmed, NOW)

    def test_cancelled_does_not_block(self) -> None:
        cancelled = booking(BookingStatus.CANCELLED, TODAY, TODAY + timedelta(days=2))
        assert not holds.blocks_availability(cancelled, NOW)


class TestProjection:
    def test_maintenance_wins_over_confirmed_stay(self) -> None:
        stay = booking(BookingStatus.CONFIRMED, TODAY - timedelta(days=1), TODAY + timedelta(days=2))
        assert project_status("maintenance", [stay], TODAY) == ComputedStatus.MAINTENANCE

    def test_out_of_order_wins_over_checked_in(self) -> None:
        stay = booking(BookingStatus.CHECKED_IN, TODAY, TODAY + timedelta(days=2))
        assert project_status("out_of_order", [stay], TODAY) == ComputedStatus.OUT_OF_ORDER

    def test_checked_in_guest_occupies(self) -> None:
        stay = booking(BookingStatus.CHECKED_IN, TODAY - timedelta(days=2), TODAY + timedelta(days=1))
        projection = project("dirty", [stay], TODAY)
        assert projection.status == ComputedStatus.OCCUPIED
        assert projection.booking is stay

    def test_checked_in_guest_occupies_on_check_out_day(self) -> None:
        stay = booking(BookingStatus.CHECKED_IN, TODAY - timedelta(days=2), TODAY)
        assert project_status("vacant", [stay], TODAY) == ComputedStatus.OCCUPIED

    def test_confirmed_arrival_today_counts_as_occupied(self) -> None:
        stay = booking(BookingStatus.CONFIRMED, TODAY, TODAY + timedelta(days=3))
        assert project_status("vacant", [stay], TODAY) == ComputedStatus.OCCUPIED

    def test_future_confirmed_arrival_is_reserved(self) -> None:
        stay = booking(BookingStatus.CONFIRMED, TODAY + timedelta(days=1), TODAY + timedelta(days=3))
        projection = project("vacant", [stay], TODAY)
        assert projection.status == ComputedStatus.RESERVED
        assert projection.booking is stay

    def test_occupied_beats_reserved(self) -> None:
        tonight = booking(BookingStatus.CONFIRMED, TODAY - timedelta(days=1), TODAY + timedelta(days=1))
        later = booking(BookingStatus.CONFIRMED, TODAY + timedelta(days=1), TODAY + timedelta(days=4))
        assert project_status("vacant", [later, tonight], TODAY) == ComputedStatus.OCCUPIED

    @pytest.mark.parametrize("declared", ["vacant", "dirty"])
    def test_falls_back_to_declared_status(self, declared) -> None:
        assert project_status(declared, [], TODAY) == ComputedStatus(declared)

    def test_finished_stays_are_ignored(self) -> None:
        gone = booking(BookingStatus.CONFIRMED, TODAY - timedelta(days=5), TODAY - timedelta(days=1))
        assert project_status("vacant", [gone], TODAY) == ComputedStatus.VACANT
