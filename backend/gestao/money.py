from __future__ import annotations

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any, Optional

CENTS = Decimal("0.01")
QTY_STEP = Decimal("0.001")

# Largest value a Numeric(12, x) column can hold with room for the fraction
MAX_AMOUNT = Decimal("999999999.99")


def to_decimal(value: Any) -> Decimal:
    """
    Convert JSON/CSV input into a Decimal.

    Floats go through str() so 0.1 stays 0.1 instead of its binary expansion.
    Raises ValueError for anything that is not a finite number.
    """
    if isinstance(value, bool):
        raise ValueError("boolean is not a number")
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, (int, float)):
        result = Decimal(str(value))
    elif isinstance(value, str):
        stripped = value.strip().replace(",", ".")
        if not stripped:
            raise ValueError("empty number")
        try:
            result = Decimal(stripped)
        except InvalidOperation:
            raise ValueError(f"not a number: {value!r}")
    else:
        raise ValueError(f"not a number: {value!r}")

    if not result.is_finite():
        raise ValueError("number must be finite")
    return result


def quantize_money(value: Decimal) -> Decimal:
    return value.quantize(CENTS, rounding=ROUND_HALF_UP)


def quantize_qty(value: Decimal) -> Decimal:
    return value.quantize(QTY_STEP, rounding=ROUND_HALF_UP)


def line_subtotal(quantity: Decimal, unit_price: Decimal) -> Decimal:
    """quantity x unit_price rounded to cents."""
    return quantize_money(quantity * unit_price)


def as_float(value: Optional[Decimal]) -> Optional[float]:
    """JSON representation of a Numeric column."""
    if value is None:
        return None
    return float(value)
