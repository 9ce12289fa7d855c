"""
Helper functions for money handling.

Amounts travel through the API and the services as Decimal dollars and
are persisted as integer cents. These helpers are the only place where
the two representations are converted, so rounding rules live in one
module.

Usage:
    from core.helpers import parse_money, to_cents, from_cents

    amount = parse_money("1500.00")  # Decimal("1500.00")
    cents = to_cents(amount)         # 150000
    from_cents(cents)                # Decimal("1500.00")

Note:
    parse_money raises ValueError; callers translate it into their
    own domain error (InvalidAmount, InvalidPrice).
"""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from typing import Any

CENT = Decimal("0.01")

# Largest amount accepted from callers; its cents fit a 64-bit column.
MAX_AMOUNT = Decimal("1000000000.00")


def parse_money(value: Any) -> Decimal:
    """
    Convert a caller-supplied amount to a Decimal with cent precision.

    Accepts Decimal, int, str and float (floats go through their
    shortest repr, so 0.1 becomes Decimal("0.1")). Booleans are
    rejected even though they are ints.

    Args:
        value: The amount to parse

    Returns:
        Decimal quantized to two places

    Raises:
        ValueError: If the value is not a finite number, or has
            precision finer than a cent, or its magnitude exceeds
            MAX_AMOUNT
    """
    if isinstance(value, bool) or value is None:
        raise ValueError(f"Not a monetary amount: {value!r}")

    if isinstance(value, float):
        value = repr(value)

    try:
        amount = Decimal(str(value).strip()) if not isinstance(value, Decimal) else value
    except (InvalidOperation, ValueError) as e:
        raise ValueError(f"Not a monetary amount: {value!r}") from e

    if not amount.is_finite():
        raise ValueError(f"Amount must be finite: {value!r}")

    try:
        quantized = amount.quantize(CENT)
    except InvalidOperation as e:
        raise ValueError(f"Amount out of range: {value!r}") from e

    if quantized != amount:
        raise ValueError(f"Amount has sub-cent precision: {value!r}")

    if abs(quantized) > MAX_AMOUNT:
        raise ValueError(f"Amount exceeds {MAX_AMOUNT}: {value!r}")

    return quantized


def round_cents(value: Decimal) -> Decimal:
    """Round half-up to the cent."""
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def to_cents(amount: Decimal) -> int:
    """
    Convert a cent-precision Decimal to integer cents.

    Raises:
        ValueError: If the amount has sub-cent precision
    """
    cents = amount * 100
    if cents != cents.to_integral_value():
        raise ValueError(f"Amount has sub-cent precision: {amount}")
    return int(cents)


def from_cents(cents: int) -> Decimal:
    """Convert integer cents to a Decimal with two places."""
    return (Decimal(cents) / 100).quantize(CENT)
