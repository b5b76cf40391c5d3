"""Helpers for Decimal normalization"""

from decimal import Decimal, ROUND_HALF_EVEN

# Matches the scale of the Numeric money columns
MONEY_QUANTUM = Decimal("0.0001")
# Numeric(20, 4) leaves 16 integer digits
MAX_MONEY = Decimal("1e16")


def coerce_decimal(value) -> Decimal:
    """Normalize numeric values (None, int, float, str) to Decimal"""
    if value is None:
        return Decimal("0")
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def to_money(value) -> Decimal:
    """
    Coerce and round to the stored money scale.

    Raises:
        decimal.InvalidOperation: value is not finite or too large to quantize
    """
    return coerce_decimal(value).quantize(MONEY_QUANTUM, rounding=ROUND_HALF_EVEN)


def is_storable_money(value: Decimal) -> bool:
    """Finite and within the range of the money columns"""
    return value.is_finite() and abs(value) < MAX_MONEY
