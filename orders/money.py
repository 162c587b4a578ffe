# orders/money.py
from __future__ import annotations

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP

CENT = Decimal("0.01")


def to_decimal(value) -> Decimal:
    """
    Coerce a money value (Decimal, int, float, str) to a 2-place Decimal.
    Floats go through str() so 50.1 stays 50.10 rather than 50.099999...
    """
    if isinstance(value, Decimal):
        d = value
    elif isinstance(value, float):
        d = Decimal(str(value))
    else:
        try:
            d = Decimal(value)
        except (InvalidOperation, TypeError, ValueError):
            raise ValueError(f"Not a money amount: {value!r}")
    if not d.is_finite():
        raise ValueError(f"Not a money amount: {value!r}")
    return d.quantize(CENT, rounding=ROUND_HALF_UP)


def to_cents(value) -> int:
    """
    Major units -> minor units, rounded half-up to the nearest cent.
    Decimal("200.00") -> 20000
    """
    amount = Decimal(str(value)) if isinstance(value, float) else Decimal(value or 0)
    return int((amount * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def cents_to_dollars(cents) -> Decimal:
    """
    12345 -> Decimal("123.45")
    """
    try:
        c = int(cents or 0)
    except (TypeError, ValueError):
        c = 0
    return (Decimal(c) / Decimal("100")).quantize(CENT, rounding=ROUND_HALF_UP)


def format_money(value) -> str:
    return f"${to_decimal(value):,.2f}"
