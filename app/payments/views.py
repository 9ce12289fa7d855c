"""
DRF views for payments app.

This module provides API views for:
- Payment submission and escrow actions
- Payment status lookup for a booking
- Advisory fee preview
- Provider earnings summary and history

Related files:
    - services/: PaymentEscrowEngine, EarningsReporter
    - serializers.py: Request/response serializers
    - urls.py: URL routing

Endpoints:
    GET  /api/v1/payments/                       - Payments the user is party to
    POST /api/v1/payments/                       - Submit payment (booking client)
    GET  /api/v1/payments/{id}/                  - Get payment
    GET  /api/v1/payments/booking/{booking_id}/  - Latest payment of a booking
    POST /api/v1/payments/{id}/verify/           - Verify payment (staff)
    POST /api/v1/payments/{id}/release/          - Release funds (staff or client)
    POST /api/v1/payments/{id}/fail/             - Fail payment (staff)
    GET  /api/v1/payments/fees/preview/          - Fee preview for an amount
    GET  /api/v1/payments/earnings/summary/      - Earnings summary
    GET  /api/v1/payments/earnings/history/      - Payment history (keyset cursor)

Security:
    - All endpoints require authentication
    - Staff may query earnings of any provider via provider_id

Error responses:
    Service calls go through BaseService.execute; a failed ServiceResult
    is returned as {"success": false, "error", "error_code", "details"}
    with the status the result carries.
"""

from __future__ import annotations

from django.db.models import Q
from drf_spectacular.types import OpenApiTypes
from drf_spectacular.utils import (
    OpenApiParameter,
    OpenApiResponse,
    extend_schema,
    extend_schema_view,
)
from rest_framework import mixins, status, viewsets
from rest_framework.decorators import action
from rest_framework.permissions import IsAdminUser, IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from bookings.services import BookingLedger
from core.exceptions import PermissionDeniedError
from core.services import ServiceResult
from payments.models import Payment
from payments.serializers import (
    EarningsHistoryQuerySerializer,
    EarningsSummaryQuerySerializer,
    EarningsSummarySerializer,
    FeeBreakdownSerializer,
    FeePreviewQuerySerializer,
    PaymentCreateSerializer,
    PaymentFailSerializer,
    PaymentReleaseSerializer,
    PaymentSerializer,
    PaymentVerifySerializer,
)
from payments.services import EarningsReporter, PaymentEscrowEngine
from payments.state_machines import ReleaseTrigger


def _denied(message: str, **details) -> Response:
    result = ServiceResult.from_exception(PermissionDeniedError(message, details=details))
    return Response(result.to_response(), status=result.http_status)


@extend_schema_view(
    list=extend_schema(
        operation_id="list_payments",
        summary="List payments",
        tags=["Payments"],
    ),
    retrieve=extend_schema(
        operation_id="get_payment",
        summary="Get payment",
        tags=["Payments"],
    ),
)
class PaymentViewSet(
    mixins.ListModelMixin,
    mixins.RetrieveModelMixin,
    viewsets.GenericViewSet,
):
    """
    ViewSet for escrow payments.

    create:
        Submit a payment for a requested booking. The amount must equal
        the booking's quoted price.

    for_booking:
        Latest payment of a booking, for either party of the booking.

    verify:
        Staff confirm the funds arrived; the escrow hold starts.

    release:
        Release funds to the provider. The booking client may confirm
        delivery; staff may also release by deadline.

    fail:
        Staff reject a payment or return verified funds to the client.
    """

    serializer_class = PaymentSerializer
    permission_classes = [IsAuthenticated]

    def get_queryset(self):
        """Filter to payments of bookings the user is party to."""
        user = self.request.user
        queryset = Payment.objects.select_related("booking", "payout")
        if user.is_staff:
            return queryset
        return queryset.filter(Q(booking__client=user) | Q(provider=user))

    def get_permissions(self):
        """Return permissions based on action."""
        if self.action in ("verify", "fail"):
            return [IsAuthenticated(), IsAdminUser()]
        return [IsAuthenticated()]

    @extend_schema(
        operation_id="create_payment",
        summary="Submit payment",
        tags=["Payments"],
        request=PaymentCreateSerializer,
        responses={
            201: PaymentSerializer,
            400: OpenApiResponse(description="Invalid amount or quote mismatch"),
            409: OpenApiResponse(description="Booking already has an open payment"),
        },
    )
    def create(self, request):
        """Submit a payment for a booking (booking client only)."""
        serializer = PaymentCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        lookup = BookingLedger.execute(BookingLedger.get_booking, data["booking"])
        if not lookup.success:
            return Response(lookup.to_response(), status=lookup.http_status)

        booking = lookup.data
        if booking.client_id != request.user.pk:
            return _denied(
                "Only the booking client can submit a payment",
                booking_id=str(booking.id),
            )

        engine = PaymentEscrowEngine()
        result = engine.execute(
            engine.create_payment,
            booking.id,
            gross_amount=data["gross_amount"],
            payment_method=data["payment_method"],
            client_notes=data["client_notes"],
        )
        if not result.success:
            return Response(result.to_response(), status=result.http_status)

        return Response(PaymentSerializer(result.data).data, status=status.HTTP_201_CREATED)

    @extend_schema(
        operation_id="get_booking_payment",
        summary="Get payment status for a booking",
        tags=["Payments"],
        responses={
            200: PaymentSerializer,
            403: OpenApiResponse(description="Not a party to the booking"),
            404: OpenApiResponse(description="Booking or payment not found"),
        },
    )
    @action(
        detail=False,
        methods=["get"],
        url_path=r"booking/(?P<booking_id>[^/.]+)",
    )
    def for_booking(self, request, booking_id=None):
        """Latest payment of a booking (client, provider or staff)."""
        lookup = BookingLedger.execute(BookingLedger.get_booking, booking_id)
        if not lookup.success:
            return Response(lookup.to_response(), status=lookup.http_status)

        booking = lookup.data
        user = request.user
        if not user.is_staff and user.pk not in (booking.client_id, booking.provider_id):
            return _denied(
                "Access denied to this booking",
                booking_id=str(booking.id),
            )

        engine = PaymentEscrowEngine()
        result = engine.execute(engine.get_payment_for_booking, booking.id)
        if not result.success:
            return Response(result.to_response(), status=result.http_status)

        return Response(PaymentSerializer(result.data).data)

    @extend_schema(
        operation_id="verify_payment",
        summary="Verify payment",
        tags=["Payments"],
        request=PaymentVerifySerializer,
        responses={200: PaymentSerializer},
    )
    @action(detail=True, methods=["post"])
    def verify(self, request, pk=None):
        """Verify a pending payment (staff only)."""
        payment = self.get_object()
        serializer = PaymentVerifySerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        engine = PaymentEscrowEngine()
        result = engine.execute(
            engine.verify,
            payment.id,
            verifier=request.user,
            notes=serializer.validated_data["notes"],
        )
        if not result.success:
            return Response(result.to_response(), status=result.http_status)

        return Response(PaymentSerializer(result.data).data)

    @extend_schema(
        operation_id="release_payment",
        summary="Release payment",
        tags=["Payments"],
        request=PaymentReleaseSerializer,
        responses={200: PaymentSerializer},
    )
    @action(detail=True, methods=["post"])
    def release(self, request, pk=None):
        """Release escrowed funds (staff, or the booking client on delivery)."""
        payment = self.get_object()
        serializer = PaymentReleaseSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        trigger = serializer.validated_data["trigger"]

        if not request.user.is_staff:
            if payment.booking.client_id != request.user.pk:
                return _denied(
                    "Only the booking client can confirm delivery",
                    payment_id=str(payment.id),
                )
            trigger = ReleaseTrigger.DELIVERY_CONFIRMED

        engine = PaymentEscrowEngine()
        result = engine.execute(
            engine.release, payment.id, trigger=trigger, actor=request.user
        )
        if not result.success:
            return Response(result.to_response(), status=result.http_status)

        return Response(PaymentSerializer(result.data).data)

    @extend_schema(
        operation_id="fail_payment",
        summary="Fail payment",
        tags=["Payments"],
        request=PaymentFailSerializer,
        responses={200: PaymentSerializer},
    )
    @action(detail=True, methods=["post"])
    def fail(self, request, pk=None):
        """Fail an open payment (staff only)."""
        payment = self.get_object()
        serializer = PaymentFailSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        engine = PaymentEscrowEngine()
        result = engine.execute(
            engine.fail,
            payment.id,
            reason=serializer.validated_data["reason"],
            actor=request.user,
        )
        if not result.success:
            return Response(result.to_response(), status=result.http_status)

        return Response(PaymentSerializer(result.data).data)


class FeePreviewView(APIView):
    """
    Advisory fee breakdown for an amount.

    GET /api/v1/payments/fees/preview/?amount=1500.00

    Returns:
        {"gross_amount": "1500.00", "platform_fee": "180.00", ...}
    """

    permission_classes = [IsAuthenticated]

    @extend_schema(
        operation_id="preview_fees",
        summary="Preview fees",
        tags=["Payments"],
        parameters=[
            OpenApiParameter("amount", OpenApiTypes.STR, required=True),
        ],
        responses={200: FeeBreakdownSerializer},
    )
    def get(self, request):
        serializer = FeePreviewQuerySerializer(data=request.query_params)
        serializer.is_valid(raise_exception=True)

        engine = PaymentEscrowEngine()
        result = engine.execute(engine.preview, serializer.validated_data["amount"])
        if not result.success:
            return Response(result.to_response(), status=result.http_status)

        return Response(FeeBreakdownSerializer(result.data).data)


class ProviderScopedMixin:
    """Resolve the user an earnings request is about."""

    def get_provider_id(self, request, requested_provider_id) -> ServiceResult:
        if requested_provider_id is None:
            return ServiceResult.success(request.user.pk)
        if requested_provider_id != request.user.pk and not request.user.is_staff:
            return ServiceResult.from_exception(
                PermissionDeniedError(
                    "Only staff can view another provider's earnings",
                    details={"provider_id": str(requested_provider_id)},
                )
            )
        return ServiceResult.success(requested_provider_id)


class EarningsSummaryView(ProviderScopedMixin, APIView):
    """
    Earnings summary for a period.

    GET /api/v1/payments/earnings/summary/?start=...&end=...
    """

    permission_classes = [IsAuthenticated]

    @extend_schema(
        operation_id="earnings_summary",
        summary="Earnings summary",
        tags=["Payments - Earnings"],
        parameters=[
            OpenApiParameter("start", OpenApiTypes.DATETIME, required=True),
            OpenApiParameter("end", OpenApiTypes.DATETIME, required=True),
            OpenApiParameter("provider_id", OpenApiTypes.INT),
        ],
        responses={200: EarningsSummarySerializer},
    )
    def get(self, request):
        serializer = EarningsSummaryQuerySerializer(data=request.query_params)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        provider = self.get_provider_id(request, data.get("provider_id"))
        if not provider.success:
            return Response(provider.to_response(), status=provider.http_status)

        result = EarningsReporter.execute(
            EarningsReporter.summarize, provider.data, data["start"], data["end"]
        )
        if not result.success:
            return Response(result.to_response(), status=result.http_status)

        return Response(EarningsSummarySerializer(result.data).data)


class EarningsHistoryView(ProviderScopedMixin, APIView):
    """
    Payment history, newest first.

    GET /api/v1/payments/earnings/history/?page_size=20&cursor=...
    GET /api/v1/payments/earnings/history/?role=any&status=verified

    role selects the side of the booking: provider (default), client
    or any.

    Returns:
        {"results": [...], "next_cursor": "..." | null}
    """

    permission_classes = [IsAuthenticated]

    @extend_schema(
        operation_id="earnings_history",
        summary="Earnings history",
        tags=["Payments - Earnings"],
        parameters=[
            OpenApiParameter("cursor", OpenApiTypes.STR),
            OpenApiParameter("page_size", OpenApiTypes.INT),
            OpenApiParameter("provider_id", OpenApiTypes.INT),
            OpenApiParameter("status", OpenApiTypes.STR),
            OpenApiParameter("role", OpenApiTypes.STR, enum=["provider", "client", "any"]),
        ],
        responses={200: PaymentSerializer(many=True)},
    )
    def get(self, request):
        serializer = EarningsHistoryQuerySerializer(data=request.query_params)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        provider = self.get_provider_id(request, data.get("provider_id"))
        if not provider.success:
            return Response(provider.to_response(), status=provider.http_status)

        result = EarningsReporter.execute(
            EarningsReporter.history,
            provider.data,
            cursor=data.get("cursor") or None,
            page_size=data["page_size"],
            status=data.get("status"),
            role=data["role"],
        )
        if not result.success:
            return Response(result.to_response(), status=result.http_status)

        page = result.data
        return Response(
            {
                "results": PaymentSerializer(page.items, many=True).data,
                "next_cursor": page.next_cursor,
            }
        )
