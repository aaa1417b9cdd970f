"""
Ratio & Share Calculator

Shared fixed-point arithmetic for every aggregator. Money is always
``Decimal`` quantized to cents; rates are strings with two decimals.
A zero denominator yields zero, never NaN or Infinity.
"""

from decimal import Decimal, ROUND_HALF_UP
from typing import Any

CENT = Decimal("0.01")
ZERO = Decimal("0")
HUNDRED = Decimal("100")


def to_decimal(value: Any) -> Decimal:
    """Coerce a column value to Decimal; NULL counts as zero"""
    if value is None:
        return ZERO
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float):
        return Decimal(str(value))
    return Decimal(value)


def quantize_money(value: Any) -> Decimal:
    return to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def safe_divide(numerator: Any, denominator: Any) -> Decimal:
    """numerator / denominator, or 0 when the denominator is 0"""
    denominator = to_decimal(denominator)
    if denominator == 0:
        return ZERO
    return to_decimal(numerator) / denominator


def percentage(part: Any, whole: Any) -> Decimal:
    return safe_divide(part, whole) * HUNDRED


def format_rate(value: Any) -> str:
    """Format as a two-decimal string, e.g. ``"84.00"``"""
    quantized = to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)
    if quantized == 0:
        # Avoid "-0.00"
        quantized = abs(quantized)
    return f"{quantized:.2f}"


def rate(part: Any, whole: Any) -> str:
    """Percentage of ``part`` in ``whole`` as a two-decimal string"""
    return format_rate(percentage(part, whole))


def growth_rate(current: Any, previous: Any) -> str:
    """
    Period-over-period growth percentage.

    previous = 0 and current > 0 reports "100.00" (first period of activity);
    both zero reports "0.00".
    """
    current = to_decimal(current)
    previous = to_decimal(previous)
    if previous == 0:
        return format_rate(HUNDRED if current > 0 else ZERO)
    return format_rate((current - previous) / previous * HUNDRED)
