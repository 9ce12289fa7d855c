"""
Booking lifecycle signals.

Sent inside the ledger's transaction, after the booking row is saved.
Receivers that write (the payments app failing open payments) therefore
commit or roll back together with the booking change.

Signals:
    booking_cancelled(sender=Booking, booking, actor, reason)
    booking_requoted(sender=Booking, booking, actor, previous_price)
"""

from django.dispatch import Signal

booking_cancelled = Signal()
booking_requoted = Signal()
