from decimal import ROUND_HALF_UP, Decimal
from typing import Any


def to_decimal(value: Any) -> Decimal:
    """Coerce a DB aggregate (Decimal, float, int or None) to Decimal."""
    if value is None:
        return Decimal("0")
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def to_float(value: Any) -> float:
    return float(to_decimal(value))


def to_millions(amount: Any) -> float:
    """Scale a rupiah amount to millions for chart display."""
    return float(to_decimal(amount) / Decimal(1_000_000))


def percentage(actual: Any, target: Any) -> float:
    """Attainment in percent, one decimal. A zero target yields 0.0."""
    target_dec = to_decimal(target)
    if target_dec <= 0:
        return 0.0
    pct = to_decimal(actual) * 100 / target_dec
    return float(pct.quantize(Decimal("0.1"), rounding=ROUND_HALF_UP))
