"""
discount_engines.amounts -- The shared discount-amount function.

Every discount source prices itself through ``discount_amount`` so that
estimated savings, applied amounts and promo-code amounts round
identically.

Invariants enforced:
    - Result is rounded to cents half-away-from-zero.
    - Result is never negative and never exceeds the subtotal.
    - Percent results are clamped to ``max_amount`` before rounding.
    - Configured values are non-negative and percents are at most 100.
"""

from __future__ import annotations

from decimal import Decimal

from discount_kernel.domain.values import (
    HUNDRED,
    ZERO,
    DiscountType,
    percent_of,
    round_money,
)
from discount_kernel.exceptions import InvalidDiscountValueError


def check_discount_value(discount_type: DiscountType, value: Decimal) -> None:
    """Reject negative values and percents above 100."""
    if value < ZERO or (discount_type == DiscountType.PERCENT and value > HUNDRED):
        raise InvalidDiscountValueError(discount_type.value, str(value))


def discount_amount(
    discount_type: DiscountType,
    value: Decimal,
    subtotal: Decimal,
    max_amount: Decimal | None = None,
) -> Decimal:
    """Price one discount against one subtotal.

    percent -> ``subtotal * value / 100`` clamped to ``max_amount``;
    fixed -> ``min(value, subtotal)``.
    """
    if subtotal <= ZERO or value <= ZERO:
        return round_money(ZERO)

    if discount_type == DiscountType.PERCENT:
        amount = percent_of(subtotal, value)
        if max_amount is not None:
            amount = min(amount, max_amount)
    else:
        amount = min(value, subtotal)

    amount = min(max(amount, ZERO), subtotal)
    return round_money(amount)
