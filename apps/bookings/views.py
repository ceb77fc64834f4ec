"""API views for the booking domain."""

from __future__ import annotations

from drf_spectacular.utils import OpenApiParameter, extend_schema  # type: ignore
from rest_framework import mixins, permissions, status, viewsets  # type: ignore
from rest_framework.decorators import action  # type: ignore
from rest_framework.response import Response  # type: ignore

from .application import command_handlers as handlers
from .filters import BookingFilterSet
from .models import Booking
from .serializers import (
    BookingCreateSerializer,
    BookingModifySerializer,
    BookingSerializer,
    CancelBookingSerializer,
    CheckOutSerializer,
    ConfirmPaymentSerializer,
    to_extra_charges,
)

IDEMPOTENCY_HEADER = "Idempotency-Key"


def is_staff(user) -> bool:
    return bool(getattr(user, "is_staff", False) or getattr(user, "is_superuser", False))


class IsBookingStakeholder(permissions.BasePermission):
    """Guests reach their own bookings, hotel staff reach all of them."""

    def has_object_permission(self, request, view, obj: Booking):  # type: ignore
        user = request.user
        if not user.is_authenticated:
            return False
        return is_staff(user) or obj.guest_id == user.id


class BookingViewSet(
    mixins.ListModelMixin,
    mixins.RetrieveModelMixin,
    viewsets.GenericViewSet,
):
    """Create, list and drive bookings through their lifecycle."""

    queryset = (
        Booking.objects.select_related("hotel", "guest")
        .prefetch_related("lines__room", "extras")
        .all()
    )
    serializer_class = BookingSerializer
    filterset_class = BookingFilterSet
    permission_classes = [permissions.IsAuthenticated, IsBookingStakeholder]

    def get_serializer_class(self):  # type: ignore
        if self.action == "create":
            return BookingCreateSerializer
        if self.action == "partial_update":
            return BookingModifySerializer
        return BookingSerializer

    def get_queryset(self):  # type: ignore
        user = self.request.user
        qs = super().get_queryset()
        if not user.is_authenticated:
            return qs.none()
        if is_staff(user):
            return qs
        return qs.filter(guest=user)

    def _respond(self, booking: Booking, http_status=status.HTTP_200_OK) -> Response:
        data = BookingSerializer(booking, context=self.get_serializer_context()).data
        return Response(data, status=http_status)

    @extend_schema(
        request=BookingCreateSerializer,
        responses={201: BookingSerializer, 200: BookingSerializer},
        parameters=[OpenApiParameter(IDEMPOTENCY_HEADER, str, OpenApiParameter.HEADER, required=False)],
    )
    def create(self, request, *args, **kwargs):  # type: ignore
        payload = request.data.copy()
        # The header wins over the body field and goes through the same checks
        if request.headers.get(IDEMPOTENCY_HEADER):
            payload["idempotency_key"] = request.headers[IDEMPOTENCY_HEADER]
        serializer = self.get_serializer(data=payload)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        key = data.get("idempotency_key") or None
        result = handlers.CreateBookingHandler().handle(handlers.CreateBookingCommand(
            hotel_id=data["hotel"].pk,
            guest_id=request.user.id,
            room_ids=data["room_ids"],
            check_in=data["check_in"],
            check_out=data["check_out"],
            adults=data["adults"],
            children=data["children"],
            special_requests=data["special_requests"],
            extras=to_extra_charges(data.get("extras", [])),
            source=data["source"],
            idempotency_key=key,
        ))
        # A replayed request answers 200 with the original booking
        return self._respond(
            result.booking,
            status.HTTP_201_CREATED if result.created else status.HTTP_200_OK,
        )

    @extend_schema(request=BookingModifySerializer, responses=BookingSerializer)
    def partial_update(self, request, *args, **kwargs):  # type: ignore
        if not is_staff(request.user):
            return Response(status=status.HTTP_403_FORBIDDEN)
        booking = self.get_object()
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        changes = dict(serializer.validated_data)
        if "extras" in changes:
            changes["extras"] = to_extra_charges(changes["extras"])
        return self._respond(handlers.modify_booking(booking.pk, **changes))

    @extend_schema(request=CancelBookingSerializer, responses=BookingSerializer)
    @action(detail=True, methods=["post"])
    def cancel(self, request, pk=None):  # type: ignore
        booking: Booking = self.get_object()  # type: ignore
        serializer = CancelBookingSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        if is_staff(request.user):
            booking = handlers.cancel_booking(
                booking.pk,
                serializer.validated_data["reason"],
                cancelled_by=Booking.CancellationSource.STAFF,
            )
        else:
            booking = handlers.cancel_booking(
                booking.pk,
                serializer.validated_data["reason"],
                cancelled_by=Booking.CancellationSource.GUEST,
                guest_id=request.user.id,
            )
        return self._respond(booking)

    @extend_schema(request=ConfirmPaymentSerializer, responses=BookingSerializer)
    @action(
        detail=True,
        methods=["post"],
        url_path="confirm-payment",
        permission_classes=[permissions.IsAdminUser],
    )
    def confirm_payment(self, request, pk=None):  # type: ignore
        booking: Booking = self.get_object()  # type: ignore
        serializer = ConfirmPaymentSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        return self._respond(handlers.confirm_payment(booking.pk, serializer.validated_data["outcome"]))

    @extend_schema(request=None, responses=BookingSerializer)
    @action(detail=True, methods=["post"], url_path="check-in", permission_classes=[permissions.IsAdminUser])
    def check_in(self, request, pk=None):  # type: ignore
        booking: Booking = self.get_object()  # type: ignore
        return self._respond(handlers.check_in(booking.pk))

    @extend_schema(request=CheckOutSerializer, responses=BookingSerializer)
    @action(detail=True, methods=["post"], url_path="check-out", permission_classes=[permissions.IsAdminUser])
    def check_out(self, request, pk=None):  # type: ignore
        booking: Booking = self.get_object()  # type: ignore
        serializer = CheckOutSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        return self._respond(
            handlers.check_out(booking.pk, mark_rooms_dirty=serializer.validated_data["mark_rooms_dirty"])
        )

    @extend_schema(request=None, responses=BookingSerializer)
    @action(detail=True, methods=["post"], url_path="no-show", permission_classes=[permissions.IsAdminUser])
    def no_show(self, request, pk=None):  # type: ignore
        booking: Booking = self.get_object()  # type: ignore
        return self._respond(handlers.mark_no_show(booking.pk))
