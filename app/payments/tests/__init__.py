"""
Tests for payments app.

This package contains test modules for:
- test_fees.py: Fee calculator figures, tiers and sum invariant
- test_models.py: Payment/Payout transitions and database constraints
- test_escrow_engine.py: PaymentEscrowEngine operations and races
- test_earnings_reporter.py: Earnings summary and keyset history
- test_signals.py: Payment failures on booking cancel and re-quote
- test_tasks.py: Notification emails
- test_views.py: API endpoint tests

Usage:
    pytest payments/tests/
    pytest payments/tests/test_escrow_engine.py
"""
