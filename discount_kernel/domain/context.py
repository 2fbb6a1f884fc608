"""
Calculation context and result types (``discount_kernel.domain.context``).

Responsibility
--------------
The input contract handed to the orchestrator (``DiscountContext``), the
loaded configuration snapshot it works against (``DiscountRuleSet``), and
the result contract it returns (``DiscountCalculationResult``).

Architecture position
---------------------
**Kernel domain layer** -- pure value objects.  ZERO I/O.

Invariants enforced
-------------------
* ``ManualDiscount`` carries exactly one of ``percent`` / ``amount``.
* ``DiscountCalculationResult.final_subtotal`` equals
  ``original_subtotal - total_discount`` and ``total_discount`` is the sum
  of the rounded applied amounts.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from uuid import UUID

from discount_kernel.domain.approval import ApprovalSettings
from discount_kernel.domain.campaigns import SeasonalCampaign
from discount_kernel.domain.loyalty import LoyaltyProgram
from discount_kernel.domain.rules import AutoDiscountRule
from discount_kernel.domain.values import ZERO, DiscountType
from discount_kernel.domain.volume import VolumeDiscountTierSet
from discount_kernel.exceptions import InvalidDiscountValueError


# =========================================================================
# Input
# =========================================================================


@dataclass(frozen=True)
class ServiceLine:
    """One priced service on the proposal."""

    type: str
    name: str
    quantity: Decimal = ZERO
    unit: str | None = None
    subtotal: Decimal = ZERO


@dataclass(frozen=True)
class ManualDiscount:
    """A discount typed in by the acting user.

    Exactly one of ``percent`` or ``amount`` is set.
    """

    percent: Decimal | None = None
    amount: Decimal | None = None
    reason: str | None = None

    def __post_init__(self) -> None:
        if (self.percent is None) == (self.amount is None):
            raise InvalidDiscountValueError(
                "manual", "exactly one of percent or amount is required",
            )
        value = self.percent if self.percent is not None else self.amount
        if value < ZERO:
            raise InvalidDiscountValueError("manual", str(value))

    @property
    def discount_type(self) -> DiscountType:
        return DiscountType.PERCENT if self.percent is not None else DiscountType.FIXED

    @property
    def value(self) -> Decimal:
        return self.percent if self.percent is not None else self.amount


@dataclass(frozen=True)
class DiscountContext:
    """Everything the orchestrator needs to know about one proposal."""

    org_id: UUID
    subtotal: Decimal
    services: tuple[ServiceLine, ...] = ()
    proposal_id: UUID | None = None
    pricing_tier: str | None = None
    customer_id: UUID | None = None
    customer_email: str | None = None
    is_new_customer: bool = False
    is_repeat_customer: bool = False
    customer_total_orders: int = 0
    customer_lifetime_value: Decimal | None = None
    promo_code: str | None = None
    manual_discount: ManualDiscount | None = None
    user_id: UUID | None = None
    user_role: str = "sales"

    def service_types(self) -> frozenset[str]:
        return frozenset(s.type for s in self.services)

    def first_service(self, service_type: str) -> ServiceLine | None:
        for line in self.services:
            if line.type == service_type:
                return line
        return None


@dataclass(frozen=True)
class DiscountRuleSet:
    """Immutable snapshot of one organization's discount configuration."""

    org_id: UUID
    campaigns: tuple[SeasonalCampaign, ...] = ()
    auto_rules: tuple[AutoDiscountRule, ...] = ()
    tier_sets: tuple[VolumeDiscountTierSet, ...] = ()
    approval_settings: ApprovalSettings | None = None
    loyalty_program: LoyaltyProgram | None = None


# =========================================================================
# Output
# =========================================================================


class DiscountSource(str, Enum):
    """Where a candidate discount came from, in discovery order."""

    SEASONAL = "seasonal"
    AUTOMATIC_RULE = "automatic_rule"
    VOLUME = "volume"
    LOYALTY = "loyalty"
    PROMO_CODE = "promo_code"
    MANUAL = "manual"


@dataclass(frozen=True)
class CandidateDiscount:
    source: DiscountSource
    name: str
    discount_type: DiscountType
    discount_value: Decimal
    estimated_savings: Decimal
    source_id: UUID | None = None
    description: str | None = None
    max_discount_amount: Decimal | None = None
    can_apply: bool = True
    stackable: bool = False
    priority: int = 0


@dataclass(frozen=True)
class AppliedDiscount:
    """A discount actually taken off the running subtotal."""

    position: int
    source: DiscountSource
    name: str
    discount_type: DiscountType
    discount_value: Decimal
    applied_to_subtotal: Decimal
    amount: Decimal
    source_id: UUID | None = None
    requires_approval: bool = False


@dataclass(frozen=True)
class UpsellSuggestion:
    type: str
    message: str
    potential_savings: Decimal | None = None
    potential_percent: Decimal | None = None
    action: str | None = None


@dataclass(frozen=True)
class DiscountCalculationResult:
    available_discounts: tuple[CandidateDiscount, ...]
    applied_discounts: tuple[AppliedDiscount, ...]
    original_subtotal: Decimal
    total_discount: Decimal
    final_subtotal: Decimal
    requires_approval: bool = False
    approval_reason: str | None = None
    upsell_suggestions: tuple[UpsellSuggestion, ...] = ()
    skipped_rule_ids: tuple[UUID, ...] = ()
