# Overview: Exact conversion between decimal currency amounts and integer cents.

from __future__ import annotations

from decimal import Decimal, DecimalException

from .errors import ValidationError

# Maximum price: 9,999,999.99 (999,999,999 cents)
# This prevents database overflow issues and nonsensical prices
MAX_PRICE_CENTS = 999_999_999

# Ceiling for whole-sale amounts sent by clients (advisory totals)
MAX_TOTAL_CENTS = MAX_PRICE_CENTS * 1_000


def to_cents(value, field: str = "amount", *, limit: int = MAX_PRICE_CENTS) -> int:
    """
    Convert a major-unit amount (int, decimal string, float from JSON) to cents.

    Floats are routed through their shortest repr so 19.99 becomes 1999, not 1998.
    Negative values, fractions of a cent and amounts above limit are rejected.
    """
    if value is None or isinstance(value, bool):
        raise ValidationError(f"{field} is required")
    try:
        if isinstance(value, float):
            amount = Decimal(repr(value))
        else:
            amount = Decimal(str(value).strip())
    except (DecimalException, ValueError):
        raise ValidationError(f"{field} must be a number")

    if not amount.is_finite():
        raise ValidationError(f"{field} must be a number")
    if amount < 0:
        raise ValidationError(f"{field} must be >= 0")
    # Compared before scaling so huge exponents never reach int()
    if amount > Decimal(limit) / 100:
        raise ValidationError(f"{field} cannot exceed {limit / 100:,.2f}")

    try:
        cents = amount * 100
        if cents != cents.to_integral_value():
            raise ValidationError(f"{field} cannot have fractional cents")
        return int(cents)
    except DecimalException:
        raise ValidationError(f"{field} must be a number")


def from_cents(cents: int | None) -> Decimal | None:
    """Cents to a two-place Decimal in major units (for exports)."""
    if cents is None:
        return None
    return (Decimal(int(cents)) / 100).quantize(Decimal("0.01"))
