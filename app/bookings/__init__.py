"""
Bookings app for talent engagements.

This app handles:
- Talent profiles and services with booking minimums
- Booking lifecycle (requested, confirmed, completed, cancelled)
- Re-quoting unfunded bookings

Related apps:
    - payments: Funds bookings; reacts to booking_cancelled and
      booking_requoted signals

Usage:
    from bookings.services import BookingLedger

    booking = BookingLedger.create_booking(client, provider, "300.00", date, 4)
"""
