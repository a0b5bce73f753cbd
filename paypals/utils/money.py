# paypals/utils/money.py
# Money helpers: every amount is SGD with 2 decimals.

from __future__ import annotations

from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Optional

CENT = Decimal("0.01")
ZERO = Decimal("0.00")
# tolerance for "participants sum to the total"
SUM_TOLERANCE = Decimal("0.01")


def to_decimal(x: Any) -> Decimal:
    if isinstance(x, Decimal):
        return x
    if x is None:
        return ZERO
    return Decimal(str(x))


def q(x: Any) -> Decimal:
    return to_decimal(x).quantize(CENT, rounding=ROUND_HALF_UP)


def as_float(x: Any) -> Optional[float]:
    """JSON-friendly amount: 2-decimal float, or None."""
    if x is None:
        return None
    return float(q(x))


def fmt(x: Any) -> str:
    return f"{q(x):.2f}"
