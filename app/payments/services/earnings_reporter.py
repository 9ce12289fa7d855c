"""
Earnings reporting for providers.

Read-only aggregation over payments. Nothing here writes.

Usage:
    from payments.services import EarningsReporter

    summary = EarningsReporter.summarize(provider.id, start, end)
    summary.total_earnings   # Decimal, payouts released within [start, end]

    page = EarningsReporter.history(provider.id, page_size=20)
    next_page = EarningsReporter.history(provider.id, cursor=page.next_cursor)

    # Everything a user paid or was paid, still in escrow
    EarningsReporter.history(user.id, role="any", status="verified")

Note:
    Earnings are attributed to the moment funds were released
    (released_at), never to when the payment was created, so a payment
    created inside a window but released after it does not count.
"""

from __future__ import annotations

import base64
import binascii
import json
import uuid
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal

from django.db.models import Count, Q, Sum

from core.exceptions import ValidationError
from core.helpers import from_cents, round_cents
from core.services import BaseService
from payments.models import Payment
from payments.state_machines import PaymentStatus

DEFAULT_PAGE_SIZE = 20
MAX_PAGE_SIZE = 100

# Which side of a payment the history is listed for
ROLE_PROVIDER = "provider"
ROLE_CLIENT = "client"
ROLE_ANY = "any"
HISTORY_ROLES = (ROLE_PROVIDER, ROLE_CLIENT, ROLE_ANY)


@dataclass(frozen=True)
class EarningsSummary:
    """Provider earnings over a closed time window. Not persisted."""

    provider_id: str
    period_start: datetime
    period_end: datetime
    total_earnings: Decimal
    total_gross: Decimal
    total_platform_fees: Decimal
    completed_count: int
    pending_count: int
    average_payout: Decimal


@dataclass(frozen=True)
class HistoryPage:
    """One page of payment history, newest first."""

    items: list[Payment]
    next_cursor: str | None


class EarningsReporter(BaseService):
    """
    Read-only provider earnings.

    Methods:
        summarize: Totals for payments released within a window
        history: Keyset-paginated payment list, optionally filtered by
            status and by the side of the booking the user is on
    """

    @classmethod
    def summarize(
        cls,
        provider_id: uuid.UUID | int | str,
        start: datetime,
        end: datetime,
    ) -> EarningsSummary:
        """
        Summarize a provider's earnings for [start, end] (both inclusive).

        total_earnings sums payout amounts of released payments whose
        released_at falls in the window; completed_count is their count.
        pending_count is the number of payments still in escrow
        (verified) whose verified_at falls in the window.

        Raises:
            ValidationError: If start is after end
        """
        if start > end:
            raise ValidationError(
                "Period start must not be after period end",
                error_code="INVALID_PERIOD",
                details={"start": start.isoformat(), "end": end.isoformat()},
            )

        payments = Payment.objects.for_provider(provider_id)

        released = payments.filter(
            status=PaymentStatus.RELEASED,
            released_at__gte=start,
            released_at__lte=end,
        ).aggregate(
            payout_cents=Sum("payout_amount_cents"),
            gross_cents=Sum("gross_amount_cents"),
            platform_fee_cents=Sum("platform_fee_cents"),
            count=Count("id"),
        )
        pending_count = payments.filter(
            status=PaymentStatus.VERIFIED,
            verified_at__gte=start,
            verified_at__lte=end,
        ).count()

        completed_count = released["count"]
        total_earnings = from_cents(released["payout_cents"] or 0)
        if completed_count:
            average_payout = round_cents(total_earnings / completed_count)
        else:
            average_payout = Decimal("0.00")

        cls.get_logger().debug(
            "Earnings summarized",
            extra={
                "provider_id": str(provider_id),
                "completed_count": completed_count,
                "pending_count": pending_count,
            },
        )

        return EarningsSummary(
            provider_id=str(provider_id),
            period_start=start,
            period_end=end,
            total_earnings=total_earnings,
            total_gross=from_cents(released["gross_cents"] or 0),
            total_platform_fees=from_cents(released["platform_fee_cents"] or 0),
            completed_count=completed_count,
            pending_count=pending_count,
            average_payout=average_payout,
        )

    @classmethod
    def history(
        cls,
        provider_id: uuid.UUID | int | str,
        cursor: str | None = None,
        page_size: int = DEFAULT_PAGE_SIZE,
        status: str | None = None,
        role: str = ROLE_PROVIDER,
    ) -> HistoryPage:
        """
        List a user's payments, newest first.

        By default only payments the user receives as provider are
        listed. role="client" lists payments for bookings the user made,
        role="any" lists both. status narrows the list to one payment
        status.

        Ordered by (created_at, id) descending. The cursor encodes the
        last row of the previous page, so rows created between page
        requests never shift or duplicate later pages.

        Raises:
            ValidationError: If page_size is outside 1..100, the cursor
                cannot be decoded, or status or role is unknown
        """
        if isinstance(page_size, bool) or not isinstance(page_size, int):
            raise cls._page_size_error(page_size)
        if not 1 <= page_size <= MAX_PAGE_SIZE:
            raise cls._page_size_error(page_size)
        if role not in HISTORY_ROLES:
            raise ValidationError(
                f"role must be one of {', '.join(HISTORY_ROLES)}",
                error_code="INVALID_ROLE",
                details={"role": str(role)},
            )
        if status is not None and status not in PaymentStatus.values:
            raise ValidationError(
                f"Unknown payment status: {status}",
                error_code="INVALID_STATUS",
                details={"status": str(status), "allowed": list(PaymentStatus.values)},
            )

        if role == ROLE_PROVIDER:
            queryset = Payment.objects.for_provider(provider_id)
        elif role == ROLE_CLIENT:
            queryset = Payment.objects.for_client(provider_id)
        else:
            queryset = Payment.objects.for_party(provider_id)
        if status is not None:
            queryset = queryset.filter(status=status)
        queryset = queryset.select_related("booking").order_by("-created_at", "-id")

        if cursor:
            created_at, last_id = decode_cursor(cursor)
            queryset = queryset.filter(
                Q(created_at__lt=created_at)
                | Q(created_at=created_at, id__lt=last_id)
            )

        rows = list(queryset[: page_size + 1])
        items = rows[:page_size]
        next_cursor = None
        if len(rows) > page_size:
            last = items[-1]
            next_cursor = encode_cursor(last.created_at, str(last.id))

        return HistoryPage(items=items, next_cursor=next_cursor)

    @staticmethod
    def _page_size_error(page_size) -> ValidationError:
        return ValidationError(
            f"page_size must be between 1 and {MAX_PAGE_SIZE}",
            error_code="INVALID_PAGE_SIZE",
            details={"page_size": str(page_size)},
        )


# =============================================================================
# Cursor Encoding
# =============================================================================


def encode_cursor(created_at: datetime, payment_id: str) -> str:
    """Opaque, URL-safe cursor for the row (created_at, id)."""
    payload = json.dumps({"c": created_at.isoformat(), "i": payment_id})
    return base64.urlsafe_b64encode(payload.encode()).decode()


def decode_cursor(cursor: str) -> tuple[datetime, uuid.UUID]:
    """
    Raises:
        ValidationError: If the cursor was not produced by encode_cursor
    """
    try:
        payload = json.loads(base64.urlsafe_b64decode(cursor.encode()))
        created_at = datetime.fromisoformat(payload["c"])
        payment_id = uuid.UUID(str(payload["i"]))
    except (binascii.Error, ValueError, KeyError, TypeError, UnicodeDecodeError):
        raise ValidationError(
            "Invalid cursor",
            error_code="INVALID_CURSOR",
            details={"cursor": cursor},
        ) from None
    if created_at.tzinfo is None:
        raise ValidationError(
            "Invalid cursor",
            error_code="INVALID_CURSOR",
            details={"cursor": cursor},
        )
    return created_at, payment_id
