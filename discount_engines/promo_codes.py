"""
discount_engines.promo_codes -- Pure promo code validation.

Responsibility:
    Run the ordered validity checks for an entered code against an order
    amount and price it.  The caller loads the code and counts the
    customer's past uses; this module only decides.

Architecture position:
    Engines -- pure calculation layer, zero I/O, no clock reads.

Invariants enforced:
    - Checks run in a fixed order and short-circuit on the first failure:
      exists/active/started -> not expired -> total cap -> per-customer cap
      -> minimum order.
    - Failures are values (``CodeValidationResult(valid=False)``), never
      exceptions.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from discount_engines.amounts import discount_amount
from discount_engines.tracer import traced_engine
from discount_kernel.domain.codes import CodeValidationResult, DiscountCode
from discount_kernel.domain.values import format_money

INVALID_CODE = "Invalid or expired discount code"
EXPIRED_CODE = "This discount code has expired"
USAGE_LIMIT_REACHED = "This discount code has reached its usage limit"
ALREADY_USED = "You have already used this discount code"


def minimum_order_reason(min_order_amount: Decimal) -> str:
    return f"Minimum order of {format_money(min_order_amount)} required"


def first_failure(
    code: DiscountCode | None,
    now: datetime,
    order_amount: Decimal,
    customer_uses: int = 0,
) -> str | None:
    """Return the first failing check's reason, or None when the code is usable."""
    if code is None or not code.is_active or code.starts_at > now:
        return INVALID_CODE
    if code.expires_at is not None and code.expires_at < now:
        return EXPIRED_CODE
    if code.max_uses_total is not None and code.times_used >= code.max_uses_total:
        return USAGE_LIMIT_REACHED
    if code.max_uses_per_customer is not None and customer_uses >= code.max_uses_per_customer:
        return ALREADY_USED
    if order_amount < code.min_order_amount:
        return minimum_order_reason(code.min_order_amount)
    return None


@traced_engine("promo_codes", "1.0", fingerprint_fields=("code", "order_amount", "customer_uses"))
def validate_code(
    code: DiscountCode | None,
    now: datetime,
    order_amount: Decimal,
    customer_uses: int = 0,
) -> CodeValidationResult:
    """Validate and price a loaded code against one order amount."""
    reason = first_failure(code, now, order_amount, customer_uses)
    if reason is not None:
        return CodeValidationResult.rejected(reason)

    return CodeValidationResult(
        valid=True,
        discount_code_id=code.id,
        code=code.code,
        name=code.name,
        description=code.description,
        discount_type=code.discount_type,
        discount_value=code.discount_value,
        max_discount_amount=code.max_discount_amount,
        discount_amount=discount_amount(
            code.discount_type,
            code.discount_value,
            order_amount,
            code.max_discount_amount,
        ),
    )
