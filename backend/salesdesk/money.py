# Overview: Currency conversion between API amounts and stored integer cents.

from __future__ import annotations

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP

CENT = Decimal("0.01")


class MoneyError(ValueError):
    """Raised when a value cannot be read as a currency amount."""


def to_decimal(value) -> Decimal:
    """
    Normalize an API amount to a two-place Decimal (half-up).

    Floats go through str() so 19.99 stays 19.99 rather than picking up
    binary noise.
    """
    if value is None or isinstance(value, bool):
        raise MoneyError("amount is required")
    if isinstance(value, float):
        value = str(value)
    try:
        amount = Decimal(value)
    except (InvalidOperation, TypeError, ValueError):
        raise MoneyError(f"invalid amount: {value!r}")
    if not amount.is_finite():
        raise MoneyError(f"invalid amount: {value!r}")
    return amount.quantize(CENT, rounding=ROUND_HALF_UP)


def to_cents(value) -> int:
    return int(to_decimal(value) * 100)


def cents_to_decimal(cents: int | None) -> Decimal | None:
    if cents is None:
        return None
    return (Decimal(int(cents)) / 100).quantize(CENT)


def cents_to_amount(cents: int | None) -> float | None:
    """Cents -> JSON number in currency units (e.g. 7147 -> 71.47)."""
    amount = cents_to_decimal(cents)
    return float(amount) if amount is not None else None
