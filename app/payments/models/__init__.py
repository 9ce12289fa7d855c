"""
Payment domain models.

This module contains all payment-related models:
- Payment: Escrowed payment for a booking with its fee breakdown
- Payout: Money owed to a provider once a payment is released
"""

from payments.models.payment import Payment, PaymentQuerySet
from payments.models.payout import Payout

__all__ = [
    "Payment",
    "PaymentQuerySet",
    "Payout",
]
