"""Decimal helpers for money amounts.

Amounts travel as ``Decimal`` inside the engine and as two-place strings
once they are persisted or shown to a customer.
"""

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

CENT = Decimal("0.01")
ZERO = Decimal("0")
HUNDRED = Decimal("100")


def to_decimal(value) -> Decimal:
    """Coerce ints, strings and Decimals to Decimal. Floats go through ``str``."""
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float):
        value = repr(value)
    try:
        return Decimal(value)
    except (InvalidOperation, TypeError, ValueError) as exc:
        raise ValueError(f"Not a valid amount: {value!r}") from exc


def round_money(amount: Decimal) -> Decimal:
    return to_decimal(amount).quantize(CENT, rounding=ROUND_HALF_UP)


def format_money(amount: Decimal) -> str:
    return f"{round_money(amount):.2f}"
