from __future__ import annotations

from decimal import Decimal


def number_or_none(value: Decimal | None) -> int | float | None:
    """JSON-friendly rendering of a Numeric column: ints stay ints."""
    if value is None:
        return None
    value = Decimal(value)
    if value == value.to_integral_value():
        return int(value)
    return float(value)
