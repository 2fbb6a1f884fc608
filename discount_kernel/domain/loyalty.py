"""
Loyalty domain types (``discount_kernel.domain.loyalty``).

Responsibility
--------------
Pure value objects for the loyalty program, customer accounts, the
append-only point ledger, and the typed results of ledger operations.

Invariants enforced
-------------------
* Tier table: first tier starts at ``min_points == 0`` (no gap below the
  lowest tier), thresholds strictly increasing, discount percents in
  0..100.  Violations raise ``InvalidTierTableError`` at construction.
* Ledger: ``balance_after[n] == balance_after[n-1] + points[n]`` and the
  balance never goes negative.  ``LoyaltyTransaction`` is frozen; the
  ledger is append-only.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID

from discount_kernel.domain.values import HUNDRED, ZERO
from discount_kernel.exceptions import InvalidTierTableError


class TransactionType(str, Enum):
    """Kinds of ledger movement."""

    EARN_PURCHASE = "earn_purchase"
    EARN_SIGNUP = "earn_signup"
    EARN_REFERRAL = "earn_referral"
    REDEEM = "redeem"
    EXPIRE = "expire"
    ADJUST = "adjust"


@dataclass(frozen=True)
class LoyaltyTier:
    name: str
    min_points: int
    discount_percent: Decimal = ZERO
    perks: tuple[str, ...] = ()


DEFAULT_TIERS: tuple[LoyaltyTier, ...] = (
    LoyaltyTier("Bronze", 0, Decimal("0")),
    LoyaltyTier("Silver", 1000, Decimal("5"), ("priority_scheduling",)),
    LoyaltyTier("Gold", 5000, Decimal("10"), ("priority_scheduling", "free_inspection")),
    LoyaltyTier("Platinum", 15000, Decimal("15"), ("priority_scheduling", "free_inspection", "dedicated_manager")),
)


@dataclass(frozen=True)
class LoyaltyProgram:
    """Organization-wide loyalty configuration."""

    id: UUID
    org_id: UUID
    name: str = "Loyalty Rewards"
    is_active: bool = True
    points_per_dollar: Decimal = Decimal("1")
    points_for_signup: int = 0
    points_for_referral: int = 500
    points_to_dollar_ratio: Decimal = Decimal("0.01")
    min_points_to_redeem: int = 500
    max_redemption_percent: Decimal = Decimal("50")
    tiers: tuple[LoyaltyTier, ...] = DEFAULT_TIERS

    def __post_init__(self) -> None:
        validate_tier_table(self.name, self.tiers)


def validate_tier_table(program_name: str, tiers: tuple[LoyaltyTier, ...]) -> None:
    """Reject tier tables with a gap at the floor or non-increasing thresholds."""
    if not tiers:
        raise InvalidTierTableError(program_name, "at least one tier is required")
    if tiers[0].min_points != 0:
        raise InvalidTierTableError(
            program_name,
            f"lowest tier '{tiers[0].name}' must start at 0 points, "
            f"got {tiers[0].min_points}",
        )
    for previous, current in zip(tiers, tiers[1:]):
        if current.min_points <= previous.min_points:
            raise InvalidTierTableError(
                program_name,
                f"tier '{current.name}' threshold {current.min_points} does not "
                f"exceed '{previous.name}' threshold {previous.min_points}",
            )
    for tier in tiers:
        if tier.discount_percent < ZERO or tier.discount_percent > HUNDRED:
            raise InvalidTierTableError(
                program_name,
                f"tier '{tier.name}' discount {tier.discount_percent} outside 0..100",
            )


@dataclass(frozen=True)
class CustomerLoyaltyAccount:
    """A customer's running loyalty position."""

    id: UUID
    org_id: UUID
    customer_id: UUID
    referral_code: str
    enrolled_at: datetime
    current_points: int = 0
    total_points_earned: int = 0
    total_points_redeemed: int = 0
    total_orders: int = 0
    total_spent: Decimal = ZERO
    first_order_date: datetime | None = None
    last_order_date: datetime | None = None
    current_tier: str = "Bronze"
    tier_discount_percent: Decimal = ZERO
    referred_by: str | None = None
    referrals_count: int = 0


@dataclass(frozen=True)
class LoyaltyTransaction:
    """Immutable ledger row.  ``points`` is signed; ``balance_after`` is the
    account balance immediately after this row."""

    id: UUID
    account_id: UUID
    org_id: UUID
    type: TransactionType
    points: int
    balance_after: int
    created_at: datetime
    sequence: int = 0
    proposal_id: UUID | None = None
    description: str | None = None


@dataclass(frozen=True)
class EnrollmentResult:
    account: CustomerLoyaltyAccount
    transactions: tuple[LoyaltyTransaction, ...] = ()
    referrer_credited: bool = False


@dataclass(frozen=True)
class EarnResult:
    success: bool
    reason: str | None = None
    transaction: LoyaltyTransaction | None = None
    account: CustomerLoyaltyAccount | None = None
    tier_changed: bool = False


@dataclass(frozen=True)
class RedemptionResult:
    success: bool
    reason: str | None = None
    discount_amount: Decimal = ZERO
    transaction: LoyaltyTransaction | None = None


@dataclass(frozen=True)
class LedgerVerification:
    """Outcome of reconciling an account against its transaction history."""

    account_id: UUID
    current_points: int
    last_balance_after: int | None
    sum_of_deltas: int
    issues: tuple[str, ...] = field(default_factory=tuple)

    @property
    def is_consistent(self) -> bool:
        return not self.issues
