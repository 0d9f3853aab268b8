"""
Money helpers. Every amount in the engine is a Decimal; rounding to the
currency's minor unit happens only when a user-facing figure is produced.
"""
from decimal import Decimal, ROUND_HALF_EVEN
from typing import Union

from discount_engine.core.config import settings

ZERO = Decimal("0")
HUNDRED = Decimal("100")

MoneyLike = Union[Decimal, int, float, str]


def to_decimal(value: MoneyLike) -> Decimal:
    """Convert to Decimal, going through str() so binary floats keep their printed value."""
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def quantize_money(value: MoneyLike, quantum: Decimal = None) -> Decimal:
    """Round half-to-even to the currency's minor unit."""
    return to_decimal(value).quantize(quantum or settings.CURRENCY_QUANTUM, rounding=ROUND_HALF_EVEN)


def percent_of(base: Decimal, percentage: Decimal) -> Decimal:
    """base * percentage / 100, unrounded."""
    return base * percentage / HUNDRED


def clamp(value: Decimal, low: Decimal, high: Decimal) -> Decimal:
    return max(low, min(value, high))
