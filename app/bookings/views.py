"""
ViewSets for bookings API.

URL Structure:
    /api/v1/bookings/                  GET, POST
    /api/v1/bookings/{id}/             GET
    /api/v1/bookings/{id}/cancel/      POST
    /api/v1/bookings/{id}/requote/     POST

Design Decisions:
    - Users only see bookings they are the client or provider of;
      staff see all bookings
    - The requesting user is always the client of a new booking
    - All state changes go through BookingLedger.execute; views branch
      on result.success
"""

from __future__ import annotations

from django.db.models import Q
from drf_spectacular.utils import OpenApiResponse, extend_schema, extend_schema_view
from rest_framework import status, viewsets
from rest_framework.decorators import action
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from bookings.models import Booking
from bookings.serializers import (
    BookingCancelSerializer,
    BookingCreateSerializer,
    BookingRequoteSerializer,
    BookingSerializer,
)
from bookings.services import BookingLedger
from core.exceptions import PermissionDeniedError
from core.services import ServiceResult


@extend_schema_view(
    list=extend_schema(
        operation_id="list_bookings",
        summary="List bookings",
        tags=["Bookings"],
    ),
    retrieve=extend_schema(
        operation_id="get_booking",
        summary="Get booking",
        tags=["Bookings"],
    ),
)
class BookingViewSet(viewsets.ReadOnlyModelViewSet):
    """
    ViewSet for booking operations.

    list:
        Bookings where the current user is client or provider.

    create:
        Request a booking from a provider. The current user is the client.

    cancel:
        Cancel a booking that has not been funded yet.

    requote:
        Change the price of a booking that has not been funded yet.
        Any submitted payment for the old price is failed.
    """

    serializer_class = BookingSerializer
    permission_classes = [IsAuthenticated]

    def get_queryset(self):
        """Filter to bookings the user is party to."""
        user = self.request.user
        queryset = Booking.objects.select_related("service")
        if user.is_staff:
            return queryset
        return queryset.filter(Q(client=user) | Q(provider=user))

    @extend_schema(
        operation_id="create_booking",
        summary="Create booking",
        tags=["Bookings"],
        request=BookingCreateSerializer,
        responses={201: BookingSerializer},
    )
    def create(self, request):
        """Create a booking in the requested state."""
        serializer = BookingCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        result = BookingLedger.execute(
            BookingLedger.create_booking,
            client=request.user,
            provider=data["provider"],
            quoted_price=data["quoted_price"],
            scheduled_date=data["scheduled_date"],
            hours=data["hours"],
            service=data.get("service"),
            title=data.get("title", ""),
            description=data.get("description", ""),
        )

        if not result.success:
            return Response(result.to_response(), status=result.http_status)

        return Response(
            BookingSerializer(result.data).data, status=status.HTTP_201_CREATED
        )

    @extend_schema(
        operation_id="cancel_booking",
        summary="Cancel booking",
        tags=["Bookings"],
        request=BookingCancelSerializer,
        responses={
            200: BookingSerializer,
            409: OpenApiResponse(description="Booking is already funded"),
        },
    )
    @action(detail=True, methods=["post"])
    def cancel(self, request, pk=None):
        """Cancel an unfunded booking (client or provider)."""
        booking = self.get_object()
        serializer = BookingCancelSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        result = BookingLedger.execute(
            BookingLedger.cancel_booking,
            booking.id,
            actor=request.user,
            reason=serializer.validated_data["reason"],
        )
        if not result.success:
            return Response(result.to_response(), status=result.http_status)

        return Response(BookingSerializer(result.data).data)

    @extend_schema(
        operation_id="requote_booking",
        summary="Re-quote booking",
        tags=["Bookings"],
        request=BookingRequoteSerializer,
        responses={
            200: BookingSerializer,
            403: OpenApiResponse(description="Only the client may re-quote"),
            409: OpenApiResponse(description="Booking is already funded"),
        },
    )
    @action(detail=True, methods=["post"])
    def requote(self, request, pk=None):
        """Change the quoted price of an unfunded booking (client only)."""
        booking = self.get_object()
        if booking.client_id != request.user.pk:
            denied = ServiceResult.from_exception(
                PermissionDeniedError(
                    "Only the client can re-quote a booking",
                    details={"booking_id": str(booking.id)},
                )
            )
            return Response(denied.to_response(), status=denied.http_status)

        serializer = BookingRequoteSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        result = BookingLedger.execute(
            BookingLedger.requote_booking,
            booking.id,
            quoted_price=serializer.validated_data["quoted_price"],
            hours=serializer.validated_data.get("hours"),
            actor=request.user,
        )
        if not result.success:
            return Response(result.to_response(), status=result.http_status)

        return Response(BookingSerializer(result.data).data)
