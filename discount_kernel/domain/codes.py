"""
Promo code domain types (``discount_kernel.domain.codes``).

Pure value objects for organization-scoped discount codes, their usage
records, and the typed validation result.  Validation failures are values,
never exceptions.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from uuid import UUID

from discount_kernel.domain.values import ZERO, DiscountType


def normalize_code(code: str) -> str:
    """Codes are unique per org ignoring case and surrounding whitespace."""
    return code.strip().upper()


@dataclass(frozen=True)
class DiscountCode:
    """A promo code as configured by an organization."""

    id: UUID
    org_id: UUID
    code: str
    name: str
    discount_type: DiscountType
    discount_value: Decimal
    starts_at: datetime
    description: str | None = None
    max_discount_amount: Decimal | None = None
    min_order_amount: Decimal = ZERO
    max_uses_total: int | None = None
    max_uses_per_customer: int | None = 1
    expires_at: datetime | None = None
    is_active: bool = True
    times_used: int = 0
    total_discount_given: Decimal = ZERO


@dataclass(frozen=True)
class CodeUsage:
    """One recorded application of a code to a committed proposal."""

    id: UUID
    discount_code_id: UUID
    org_id: UUID
    order_amount: Decimal
    discount_amount: Decimal
    applied_at: datetime
    proposal_id: UUID | None = None
    customer_id: UUID | None = None
    customer_email: str | None = None
    applied_by: UUID | None = None


@dataclass(frozen=True)
class CodeValidationResult:
    """Outcome of validating an entered code against one order amount."""

    valid: bool
    reason: str | None = None
    discount_code_id: UUID | None = None
    code: str | None = None
    name: str | None = None
    description: str | None = None
    discount_type: DiscountType | None = None
    discount_value: Decimal | None = None
    max_discount_amount: Decimal | None = None
    discount_amount: Decimal = ZERO

    @classmethod
    def rejected(cls, reason: str) -> CodeValidationResult:
        return cls(valid=False, reason=reason)


@dataclass(frozen=True)
class UsageRecordResult:
    """Outcome of recording a code usage after a calculation was accepted."""

    recorded: bool
    reason: str | None = None
    usage: CodeUsage | None = None
