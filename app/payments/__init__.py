"""
Payments app for escrowed booking payments.

This app handles:
- Fee calculation (tiered platform fee plus processor fee)
- Escrow lifecycle (submit, verify, release, fail)
- Payouts owed to providers
- Provider earnings reporting
- Deadline release sweeps and payment notifications

Related apps:
    - bookings: Booking model and lifecycle signals

Usage:
    from payments.services import PaymentEscrowEngine

    engine = PaymentEscrowEngine()
    payment = engine.create_payment(booking.id, "300.00", "bank_transfer")
"""
