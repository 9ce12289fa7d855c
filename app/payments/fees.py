"""
Fee calculation for escrow payments.

A gross amount is split into three parts that always add back up to the
gross exactly:

    gross = platform_fee + processor_fee + payout

The platform fee rate depends on the amount (tiered, inclusive upper
bounds). The processor fee is a percentage plus a fixed amount. Both fees
are rounded half-up to the cent; whatever rounding residue remains lands
on the payout.

Schedules are immutable and registered in code by version number. A
payment records the version it was computed with, so adding version 2
never changes what an existing payment says it was charged.

Usage:
    from payments.fees import FeeCalculator

    breakdown = FeeCalculator().compute(Decimal("1500.00"), schedule_version=1)
    breakdown.platform_fee   # Decimal("180.00")
    breakdown.processor_fee  # Decimal("43.80")
    breakdown.payout         # Decimal("1276.20")

Note:
    This module does no I/O and reads no settings. The caller decides
    which schedule version is current (see PaymentEscrowEngine).
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import TYPE_CHECKING

from core.helpers import parse_money, round_cents
from payments.exceptions import (
    AmountTooSmallError,
    InvalidAmountError,
    UnknownScheduleVersionError,
)

if TYPE_CHECKING:
    from typing import Any


@dataclass(frozen=True)
class FeeTier:
    """
    One row of a platform fee table.

    Attributes:
        upper_bound: Inclusive upper bound of the gross amount, or None
            for the open-ended top tier
        rate: Platform fee rate applied to the whole gross amount
    """

    upper_bound: Decimal | None
    rate: Decimal

    def covers(self, amount: Decimal) -> bool:
        return self.upper_bound is None or amount <= self.upper_bound


@dataclass(frozen=True)
class FeeSchedule:
    """
    Versioned fee table.

    Attributes:
        version: Version number recorded on every payment
        tiers: Platform fee tiers in ascending order, last one open-ended
        processor_rate: Processor percentage applied to the gross amount
        processor_fixed: Processor fixed fee per payment
    """

    version: int
    tiers: tuple[FeeTier, ...]
    processor_rate: Decimal
    processor_fixed: Decimal

    def __post_init__(self):
        if not self.tiers or self.tiers[-1].upper_bound is not None:
            raise ValueError(
                f"Fee schedule v{self.version} needs an open-ended top tier"
            )

    def platform_rate_for(self, amount: Decimal) -> Decimal:
        for tier in self.tiers:
            if tier.covers(amount):
                return tier.rate
        # Unreachable: the top tier is open-ended
        return self.tiers[-1].rate


@dataclass(frozen=True)
class FeeBreakdown:
    """Result of a fee computation. All amounts have cent precision."""

    gross_amount: Decimal
    platform_fee: Decimal
    processor_fee: Decimal
    payout: Decimal
    platform_fee_rate: Decimal
    schedule_version: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "gross_amount": str(self.gross_amount),
            "platform_fee": str(self.platform_fee),
            "processor_fee": str(self.processor_fee),
            "payout": str(self.payout),
            "platform_fee_rate": str(self.platform_fee_rate),
            "schedule_version": self.schedule_version,
        }


FEE_SCHEDULES: dict[int, FeeSchedule] = {
    1: FeeSchedule(
        version=1,
        tiers=(
            FeeTier(upper_bound=Decimal("500.00"), rate=Decimal("0.15")),
            FeeTier(upper_bound=Decimal("2000.00"), rate=Decimal("0.12")),
            FeeTier(upper_bound=None, rate=Decimal("0.10")),
        ),
        processor_rate=Decimal("0.029"),
        processor_fixed=Decimal("0.30"),
    ),
}


class FeeCalculator:
    """
    Pure fee computation over a schedule registry.

    The same instance serves the advisory preview and the commit path of
    PaymentEscrowEngine, so both always agree.
    """

    def __init__(self, schedules: dict[int, FeeSchedule] | None = None):
        self.schedules = FEE_SCHEDULES if schedules is None else schedules

    def get_schedule(self, version: int) -> FeeSchedule:
        """
        Look up a registered schedule.

        Raises:
            UnknownScheduleVersionError: If nothing is registered for version
        """
        schedule = self.schedules.get(version)
        if schedule is None:
            raise UnknownScheduleVersionError(
                f"No fee schedule registered for version {version}",
                details={
                    "schedule_version": version,
                    "known_versions": sorted(self.schedules),
                },
            )
        return schedule

    def compute(self, gross_amount: Any, schedule_version: int) -> FeeBreakdown:
        """
        Split a gross amount into platform fee, processor fee and payout.

        Args:
            gross_amount: Positive amount with at most cent precision
            schedule_version: Registered fee schedule version

        Returns:
            FeeBreakdown whose parts sum exactly to gross_amount

        Raises:
            InvalidAmountError: If gross_amount is not a positive cent amount
            AmountTooSmallError: If the fees exceed gross_amount
            UnknownScheduleVersionError: If the version is not registered
        """
        gross = self._parse_gross(gross_amount)
        schedule = self.get_schedule(schedule_version)

        rate = schedule.platform_rate_for(gross)
        platform_fee = round_cents(gross * rate)
        processor_fee = round_cents(
            gross * schedule.processor_rate + schedule.processor_fixed
        )
        payout = gross - platform_fee - processor_fee

        if payout < 0:
            raise AmountTooSmallError(
                f"Amount {gross} does not cover fees of "
                f"{platform_fee + processor_fee}",
                details={
                    "gross_amount": str(gross),
                    "platform_fee": str(platform_fee),
                    "processor_fee": str(processor_fee),
                },
            )

        return FeeBreakdown(
            gross_amount=gross,
            platform_fee=platform_fee,
            processor_fee=processor_fee,
            payout=payout,
            platform_fee_rate=rate,
            schedule_version=schedule.version,
        )

    @staticmethod
    def _parse_gross(gross_amount: Any) -> Decimal:
        try:
            gross = parse_money(gross_amount)
        except ValueError as e:
            raise InvalidAmountError(
                f"Invalid gross amount: {gross_amount!r}",
                details={"gross_amount": str(gross_amount), "reason": str(e)},
            ) from e

        if gross <= 0:
            raise InvalidAmountError(
                "Gross amount must be greater than zero",
                details={"gross_amount": str(gross)},
            )
        return gross
