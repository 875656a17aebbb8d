# Overview: Money helpers; amounts are Decimal with two places, serialized as strings.

from __future__ import annotations

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any

CENT = Decimal("0.01")
ZERO = Decimal("0.00")

# Maximum amount accepted on any monetary field: 9,999,999,999.99
MAX_AMOUNT = Decimal("9999999999.99")


def to_decimal(value: Any) -> Decimal:
    """
    Convert JSON-ish input to a two-place Decimal.

    Accepts int, float, Decimal and numeric strings. Booleans are rejected
    (bool is an int subclass). Raises ValueError on anything else.
    """
    if isinstance(value, bool) or value is None:
        raise ValueError("must be a number")
    if isinstance(value, float):
        value = repr(value)
    try:
        amount = Decimal(str(value).strip()) if isinstance(value, str) else Decimal(value)
    except (InvalidOperation, TypeError):
        raise ValueError("must be a number")
    if not amount.is_finite():
        raise ValueError("must be a finite number")
    try:
        return amount.quantize(CENT, rounding=ROUND_HALF_UP)
    except InvalidOperation:
        # More digits than the decimal context holds
        raise ValueError(f"cannot exceed {MAX_AMOUNT}")


def to_money_str(value: Decimal | None) -> str | None:
    if value is None:
        return None
    return str(Decimal(value).quantize(CENT, rounding=ROUND_HALF_UP))
