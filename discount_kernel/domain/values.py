"""
Values -- Money helpers and the discount value type.

Responsibility:
    Provides the single sanctioned rounding function for monetary amounts
    and the ``DiscountType`` shared by every discount source.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.
    Imported by every other domain module.

Invariants enforced:
    - Decimal-only arithmetic: monetary values are never floats.
    - Cents precision: ``round_money`` quantizes to two decimal places with
      ROUND_HALF_UP, which for Decimal is round-half-away-from-zero
      (``-0.005`` rounds to ``-0.01``).

Failure modes:
    - ValueError from ``to_decimal`` on non-numeric input or on floats that
      are NaN/infinite.
"""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from enum import Enum
from typing import Any

CENT = Decimal("0.01")
ZERO = Decimal("0")
HUNDRED = Decimal("100")


class DiscountType(str, Enum):
    """How a discount value is interpreted."""

    PERCENT = "percent"
    FIXED = "fixed"


def to_decimal(value: Any) -> Decimal:
    """Coerce an int/str/Decimal (or float via its repr) to Decimal.

    Floats go through ``str()`` so ``0.1`` becomes ``Decimal("0.1")``
    rather than its binary expansion.
    """
    if isinstance(value, Decimal):
        result = value
    else:
        try:
            result = Decimal(str(value))
        except (InvalidOperation, ValueError) as exc:
            raise ValueError(f"Not a decimal amount: {value!r}") from exc
    if not result.is_finite():
        raise ValueError(f"Amount must be finite: {value!r}")
    return result


def round_money(amount: Decimal) -> Decimal:
    """Round to cents, half away from zero."""
    return amount.quantize(CENT, rounding=ROUND_HALF_UP)


def percent_of(amount: Decimal, percent: Decimal) -> Decimal:
    """Unrounded ``amount × percent / 100``."""
    return amount * percent / HUNDRED


def format_money(amount: Decimal) -> str:
    """Render an amount as ``$1234.50`` for human-readable reasons."""
    return f"${round_money(amount):.2f}"


def format_percent(percent: Decimal) -> str:
    """Render a percent without trailing zeros (``12.50`` -> ``12.5``)."""
    normalized = percent.normalize()
    if normalized == normalized.to_integral():
        return str(normalized.quantize(Decimal(1)))
    return format(normalized, "f")


def format_quantity(quantity: Decimal) -> str:
    """Render a measured quantity with thousands separators (``12,500``)."""
    normalized = quantity.normalize()
    if normalized == normalized.to_integral():
        return f"{normalized.quantize(Decimal(1)):,}"
    return f"{normalized:,f}"
