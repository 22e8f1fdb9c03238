# Overview: Decimal money helpers shared by validation, services and serializers.

from __future__ import annotations

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP

TWO_PLACES = Decimal("0.01")

# Maximum price/amount: 99,999,999.99 (fits NUMERIC(10, 2))
MAX_AMOUNT = Decimal("99999999.99")


def to_money(value, field: str = "amount") -> Decimal:
    """
    Coerce an API value to a 2-place Decimal.

    Accepts int, Decimal, numeric strings and floats (floats go through str()
    so 19.99 stays 19.99). Booleans, NaN and infinities are rejected.
    Raises ValueError with a field-specific message; callers wrap it.
    """
    if value is None or isinstance(value, bool):
        raise ValueError(f"{field} must be a number")
    if isinstance(value, float):
        value = str(value)
    try:
        amount = Decimal(str(value).strip()) if isinstance(value, str) else Decimal(value)
    except (InvalidOperation, TypeError, ValueError):
        raise ValueError(f"{field} must be a number")
    if not amount.is_finite():
        raise ValueError(f"{field} must be a finite number")
    amount = amount.quantize(TWO_PLACES, rounding=ROUND_HALF_UP)
    if abs(amount) > MAX_AMOUNT:
        raise ValueError(f"{field} cannot exceed {MAX_AMOUNT}")
    return amount


def money_str(value) -> str | None:
    if value is None:
        return None
    return str(Decimal(value).quantize(TWO_PLACES, rounding=ROUND_HALF_UP))
