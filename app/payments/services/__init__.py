"""
Payment services.

- PaymentEscrowEngine: Payment creation and escrow state changes
- EarningsReporter: Read-only provider earnings over payments
"""

from payments.services.earnings_reporter import (
    EarningsReporter,
    EarningsSummary,
    HistoryPage,
)
from payments.services.escrow_engine import PaymentEscrowEngine, ReleaseOutcome

__all__ = [
    "EarningsReporter",
    "EarningsSummary",
    "HistoryPage",
    "PaymentEscrowEngine",
    "ReleaseOutcome",
]
