"""API views for the room registry, availability search and room board."""

from __future__ import annotations

from drf_spectacular.utils import extend_schema  # type: ignore
from rest_framework import permissions, status, viewsets  # type: ignore
from rest_framework.decorators import action  # type: ignore
from rest_framework.response import Response  # type: ignore

from apps.bookings.application.queries import (
    find_available_rooms,
    project_room_statuses,
    room_metrics,
)

from .filters import RoomFilterSet
from .models import Room
from .serializers import (
    AvailabilityQuerySerializer,
    RoomMetricsSerializer,
    RoomSerializer,
    RoomStatusQuerySerializer,
    RoomStatusSerializer,
    SetRoomStatusSerializer,
)
from .services import set_room_status


class RoomViewSet(viewsets.ReadOnlyModelViewSet):
    """Read access to rooms plus the availability and status board endpoints."""

    queryset = Room.objects.select_related("hotel").all()
    serializer_class = RoomSerializer
    filterset_class = RoomFilterSet
    permission_classes = [permissions.IsAuthenticated]

    @extend_schema(parameters=[AvailabilityQuerySerializer], responses=RoomSerializer(many=True))
    @action(detail=False, methods=["get"])
    def availability(self, request):  # type: ignore
        query = AvailabilityQuerySerializer(data=request.query_params)
        query.is_valid(raise_exception=True)
        params = query.validated_data
        rooms = find_available_rooms(
            params["hotel"].pk,
            params["check_in"],
            params["check_out"],
            room_type=params.get("room_type"),
        )
        return Response(RoomSerializer(rooms, many=True).data)

    @extend_schema(parameters=[RoomStatusQuerySerializer], responses=RoomStatusSerializer(many=True))
    @action(detail=False, methods=["get"], permission_classes=[permissions.IsAdminUser])
    def statuses(self, request):  # type: ignore
        query = RoomStatusQuerySerializer(data=request.query_params)
        query.is_valid(raise_exception=True)
        params = query.validated_data
        board = project_room_statuses(
            params["hotel"].pk,
            room_type=params.get("room_type"),
            floor=params.get("floor"),
        )
        return Response(RoomStatusSerializer(board, many=True).data)

    @extend_schema(parameters=[RoomStatusQuerySerializer], responses=RoomMetricsSerializer)
    @action(detail=False, methods=["get"], permission_classes=[permissions.IsAdminUser])
    def metrics(self, request):  # type: ignore
        query = RoomStatusQuerySerializer(data=request.query_params)
        query.is_valid(raise_exception=True)
        return Response(RoomMetricsSerializer(room_metrics(query.validated_data["hotel"].pk)).data)

    @extend_schema(request=SetRoomStatusSerializer, responses=RoomSerializer)
    @action(
        detail=True,
        methods=["post"],
        url_path="set-status",
        permission_classes=[permissions.IsAdminUser],
    )
    def set_status(self, request, pk=None):  # type: ignore
        room = self.get_object()
        serializer = SetRoomStatusSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        room = set_room_status(
            room.pk,
            serializer.validated_data["status"],
            notes=serializer.validated_data["notes"],
        )
        return Response(RoomSerializer(room).data, status=status.HTTP_200_OK)
