"""Integration tests for booking and room API endpoints."""

from __future__ import annotations

from datetime import date

from django.urls import reverse
from rest_framework import status
from rest_framework.test import APITestCase

from apps.bookings.domain.entities import BookingStatus
from apps.bookings.models import Booking, RoomNight
from apps.rooms.models import Room

from .factories import days_from_today, insert_booking, make_hotel, make_room, make_user


class BookingAPITests(APITestCase):
    """Covers creation, conflicts, idempotent retries and cancellation."""

    def setUp(self) -> None:
        self.guest = make_user("guest")
        self.other_guest = make_user("other")
        self.staff = make_user("frontdesk", staff=True)
        self.hotel = make_hotel()
        self.room = make_room(self.hotel, "101")
        self.client.force_authenticate(self.guest)
        self.list_url = reverse("booking-list")

    def _payload(self, check_in: date, check_out: date, **extra) -> dict:
        payload = {
            "hotel": self.hotel.pk,
            "room_ids": [self.room.pk],
            "check_in": str(check_in),
            "check_out": str(check_out),
            "adults": 2,
        }
        payload.update(extra)
        return payload

    def test_guest_can_create_booking(self) -> None:
        response = self.client.post(
            self.list_url,
            self._payload(days_from_today(1), days_from_today(4)),
            format="json",
        )

        self.assertEqual(response.status_code, status.HTTP_201_CREATED, response.data)
        self.assertEqual(response.data["status"], "pending")
        self.assertEqual(response.data["nights"], 3)
        self.assertEqual(response.data["total_amount"], "300.00")
        self.assertEqual(response.data["guest_id"], self.guest.pk)
        self.assertEqual([line["room_number"] for line in response.data["rooms"]], ["101"])
        self.assertEqual(RoomNight.objects.filter(room=self.room).count(), 3)

    def test_client_cannot_set_price(self) -> None:
        response = self.client.post(
            self.list_url,
            self._payload(days_from_today(1), days_from_today(2), total_amount="1.00"),
            format="json",
        )

        self.assertEqual(response.status_code, status.HTTP_201_CREATED, response.data)
        self.assertEqual(response.data["total_amount"], "100.00")

    def test_prevent_double_booking_on_overlap(self) -> None:
        first = self.client.post(self.list_url, self._payload(days_from_today(1), days_from_today(3)), format="json")
        self.assertEqual(first.status_code, status.HTTP_201_CREATED, first.data)

        self.client.force_authenticate(self.other_guest)
        conflict = self.client.post(self.list_url, self._payload(days_from_today(2), days_from_today(4)), format="json")

        self.assertEqual(conflict.status_code, status.HTTP_409_CONFLICT, conflict.data)
        self.assertEqual(conflict.data["code"], "availability_conflict")
        self.assertEqual(conflict.data["room_ids"], [self.room.pk])
        self.assertEqual(Booking.objects.count(), 1)

    def test_back_to_back_bookings_are_accepted(self) -> None:
        first = self.client.post(self.list_url, self._payload(days_from_today(1), days_from_today(3)), format="json")
        second = self.client.post(self.list_url, self._payload(days_from_today(3), days_from_today(5)), format="json")

        self.assertEqual(first.status_code, status.HTTP_201_CREATED, first.data)
        self.assertEqual(second.status_code, status.HTTP_201_CREATED, second.data)

    def test_invalid_dates_are_rejected(self) -> None:
        response = self.client.post(
            self.list_url,
            self._payload(days_from_today(3), days_from_today(3)),
            format="json",
        )

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST, response.data)
        self.assertIn("check_out", response.data)

    def test_unknown_room_is_a_validation_error(self) -> None:
        response = self.client.post(
            self.list_url,
            self._payload(days_from_today(1), days_from_today(2), room_ids=[999999]),
            format="json",
        )

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST, response.data)

    def test_retry_with_idempotency_key_returns_original(self) -> None:
        payload = self._payload(days_from_today(1), days_from_today(3))

        first = self.client.post(self.list_url, payload, format="json", HTTP_IDEMPOTENCY_KEY="retry-1")
        retry = self.client.post(self.list_url, payload, format="json", HTTP_IDEMPOTENCY_KEY="retry-1")

        self.assertEqual(first.status_code, status.HTTP_201_CREATED, first.data)
        self.assertEqual(retry.status_code, status.HTTP_200_OK, retry.data)
        self.assertEqual(retry.data["id"], first.data["id"])
        self.assertEqual(Booking.objects.count(), 1)

    def test_overlong_idempotency_header_is_rejected(self) -> None:
        response = self.client.post(
            self.list_url,
            self._payload(days_from_today(1), days_from_today(3)),
            format="json",
            HTTP_IDEMPOTENCY_KEY="k" * 200,
        )

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST, response.data)
        self.assertIn("idempotency_key", response.data)
        self.assertEqual(Booking.objects.count(), 0)

    def test_header_key_takes_precedence_over_body(self) -> None:
        payload = self._payload(days_from_today(1), days_from_today(3), idempotency_key="from-body")

        response = self.client.post(self.list_url, payload, format="json", HTTP_IDEMPOTENCY_KEY="from-header")

        self.assertEqual(response.status_code, status.HTTP_201_CREATED, response.data)
        self.assertEqual(Booking.objects.get().idempotency_key, "from-header")

    def test_conflict_does_not_reveal_other_bookings(self) -> None:
        taken = insert_booking(self.hotel, self.other_guest, [self.room], days_from_today(1), days_from_today(3))

        response = self.client.post(self.list_url, self._payload(days_from_today(1), days_from_today(3)), format="json")

        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT, response.data)
        self.assertNotIn(taken.booking_number, str(response.data))
        self.assertNotIn("context", response.data)

    def test_anonymous_request_is_rejected(self) -> None:
        self.client.force_authenticate(None)

        response = self.client.get(self.list_url)

        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_guest_sees_only_own_bookings(self) -> None:
        own = insert_booking(self.hotel, self.guest, [self.room], days_from_today(1), days_from_today(2))
        insert_booking(
            self.hotel, self.other_guest, [make_room(self.hotel, "102")], days_from_today(1), days_from_today(2)
        )

        response = self.client.get(self.list_url)

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual([item["id"] for item in response.data], [own.pk])

    def test_guest_can_cancel_own_booking(self) -> None:
        booking = insert_booking(self.hotel, self.guest, [self.room], days_from_today(10), days_from_today(12))

        response = self.client.post(
            reverse("booking-cancel", args=[booking.pk]),
            {"reason": "Plans changed"},
            format="json",
        )

        self.assertEqual(response.status_code, status.HTTP_200_OK, response.data)
        self.assertEqual(response.data["status"], "cancelled")
        self.assertEqual(response.data["cancellation_source"], "guest")
        self.assertFalse(RoomNight.objects.filter(booking=booking).exists())

    def test_guest_cannot_cancel_someone_elses_booking(self) -> None:
        booking = insert_booking(self.hotel, self.other_guest, [self.room], days_from_today(10), days_from_today(12))

        response = self.client.post(reverse("booking-cancel", args=[booking.pk]), {}, format="json")

        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
        booking.refresh_from_db()
        self.assertEqual(booking.status, "confirmed")

    def test_late_guest_cancellation_is_refused(self) -> None:
        booking = insert_booking(self.hotel, self.guest, [self.room], days_from_today(0), days_from_today(2))

        response = self.client.post(reverse("booking-cancel", args=[booking.pk]), {}, format="json")

        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT, response.data)

    def test_guest_cannot_run_front_desk_actions(self) -> None:
        booking = insert_booking(self.hotel, self.guest, [self.room], days_from_today(0), days_from_today(2))

        response = self.client.post(reverse("booking-check-in", args=[booking.pk]))

        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_guest_cannot_modify_booking(self) -> None:
        booking = insert_booking(self.hotel, self.guest, [self.room], days_from_today(5), days_from_today(7))

        response = self.client.patch(
            reverse("booking-detail", args=[booking.pk]),
            {"check_out": str(days_from_today(9))},
            format="json",
        )

        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)


class FrontDeskAPITests(APITestCase):
    """Staff-only lifecycle actions."""

    def setUp(self) -> None:
        self.guest = make_user("guest")
        self.staff = make_user("frontdesk", staff=True)
        self.hotel = make_hotel()
        self.room = make_room(self.hotel, "101")
        self.client.force_authenticate(self.staff)

    def test_payment_then_check_in_and_out(self) -> None:
        self.client.force_authenticate(self.guest)
        created = self.client.post(
            reverse("booking-list"),
            {
                "hotel": self.hotel.pk,
                "room_ids": [self.room.pk],
                "check_in": str(days_from_today(0)),
                "check_out": str(days_from_today(2)),
            },
            format="json",
        )
        self.assertEqual(created.status_code, status.HTTP_201_CREATED, created.data)
        booking_id = created.data["id"]

        self.client.force_authenticate(self.staff)
        paid = self.client.post(
            reverse("booking-confirm-payment", args=[booking_id]), {"outcome": "paid"}, format="json"
        )
        self.assertEqual(paid.status_code, status.HTTP_200_OK, paid.data)
        self.assertEqual(paid.data["status"], "confirmed")
        self.assertEqual(paid.data["payment_status"], "paid")
        self.assertIsNone(paid.data["hold_expires_at"])

        checked_in = self.client.post(reverse("booking-check-in", args=[booking_id]))
        self.assertEqual(checked_in.status_code, status.HTTP_200_OK, checked_in.data)
        self.assertEqual(checked_in.data["status"], "checked_in")

        checked_out = self.client.post(reverse("booking-check-out", args=[booking_id]), {}, format="json")
        self.assertEqual(checked_out.status_code, status.HTTP_200_OK, checked_out.data)
        self.assertEqual(checked_out.data["status"], "checked_out")
        self.room.refresh_from_db()
        self.assertEqual(self.room.status, Room.Status.DIRTY)

    def test_check_in_before_arrival_date_is_refused(self) -> None:
        booking = insert_booking(self.hotel, self.guest, [self.room], days_from_today(3), days_from_today(5))

        response = self.client.post(reverse("booking-check-in", args=[booking.pk]))

        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT, response.data)

    def test_illegal_transition_is_a_conflict(self) -> None:
        booking = insert_booking(self.hotel, self.guest, [self.room], days_from_today(3), days_from_today(5))

        response = self.client.post(reverse("booking-check-out", args=[booking.pk]), {}, format="json")

        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT, response.data)
        self.assertEqual(response.data["code"], "invalid_transition")

    def test_staff_can_extend_a_stay(self) -> None:
        booking = insert_booking(self.hotel, self.guest, [self.room], days_from_today(5), days_from_today(7))

        response = self.client.patch(
            reverse("booking-detail", args=[booking.pk]),
            {"check_out": str(days_from_today(8))},
            format="json",
        )

        self.assertEqual(response.status_code, status.HTTP_200_OK, response.data)
        self.assertEqual(response.data["nights"], 3)
        self.assertEqual(response.data["total_amount"], "300.00")

    def test_staff_can_filter_bookings_by_status(self) -> None:
        confirmed = insert_booking(self.hotel, self.guest, [self.room], days_from_today(5), days_from_today(7))
        insert_booking(
            self.hotel,
            self.guest,
            [make_room(self.hotel, "102")],
            days_from_today(5),
            days_from_today(7),
            status=BookingStatus.CANCELLED,
        )

        response = self.client.get(reverse("booking-list"), {"status": "confirmed"})

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual([item["id"] for item in response.data], [confirmed.pk])


class RoomAPITests(APITestCase):
    """Availability search, the room board and housekeeping updates."""

    def setUp(self) -> None:
        self.guest = make_user("guest")
        self.staff = make_user("frontdesk", staff=True)
        self.hotel = make_hotel()
        self.free = make_room(self.hotel, "101")
        self.booked = make_room(self.hotel, "102")
        insert_booking(self.hotel, self.guest, [self.booked], days_from_today(0), days_from_today(3))

    def test_availability_lists_free_rooms(self) -> None:
        self.client.force_authenticate(self.guest)

        response = self.client.get(
            reverse("room-availability"),
            {"hotel": self.hotel.pk, "check_in": str(days_from_today(1)), "check_out": str(days_from_today(2))},
        )

        self.assertEqual(response.status_code, status.HTTP_200_OK, response.data)
        self.assertEqual([room["room_number"] for room in response.data], ["101"])

    def test_availability_requires_a_valid_range(self) -> None:
        self.client.force_authenticate(self.guest)

        response = self.client.get(
            reverse("room-availability"),
            {"hotel": self.hotel.pk, "check_in": str(days_from_today(2)), "check_out": str(days_from_today(1))},
        )

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_room_board_is_staff_only(self) -> None:
        self.client.force_authenticate(self.guest)

        response = self.client.get(reverse("room-statuses"), {"hotel": self.hotel.pk})

        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_room_board(self) -> None:
        self.client.force_authenticate(self.staff)

        response = self.client.get(reverse("room-statuses"), {"hotel": self.hotel.pk})

        self.assertEqual(response.status_code, status.HTTP_200_OK, response.data)
        board = {row["room"]["room_number"]: row for row in response.data}
        self.assertEqual(board["101"]["computed_status"], "vacant")
        self.assertIsNone(board["101"]["current_booking"])
        self.assertEqual(board["102"]["computed_status"], "occupied")
        self.assertEqual(board["102"]["current_booking"]["status"], "confirmed")

    def test_metrics(self) -> None:
        self.client.force_authenticate(self.staff)

        response = self.client.get(reverse("room-metrics"), {"hotel": self.hotel.pk})

        self.assertEqual(response.status_code, status.HTTP_200_OK, response.data)
        self.assertEqual(response.data["total_rooms"], 2)
        self.assertEqual(response.data["occupied_rooms"], 1)
        self.assertEqual(response.data["occupancy_rate"], "50.00")

    def test_staff_can_set_room_status(self) -> None:
        self.client.force_authenticate(self.staff)

        response = self.client.post(
            reverse("room-set-status", args=[self.free.pk]),
            {"status": "maintenance", "notes": "Leaking tap"},
            format="json",
        )

        self.assertEqual(response.status_code, status.HTTP_200_OK, response.data)
        self.assertEqual(response.data["status"], "maintenance")
        self.assertEqual(response.data["maintenance_notes"], "Leaking tap")
