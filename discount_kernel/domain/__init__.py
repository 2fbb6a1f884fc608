"""
Pure domain layer.

This module contains pure data transfer objects and domain logic
with NO dependencies on:
- ORM (SQLAlchemy)
- Database
- Time/clock (time is always passed in)
- I/O

All domain objects are immutable and deterministic.
"""

from discount_kernel.domain.approval import (
    APPROVAL_TRANSITIONS,
    OPEN_APPROVAL_STATUSES,
    TERMINAL_APPROVAL_STATUSES,
    ApprovalDecision,
    ApprovalRequest,
    ApprovalSettings,
    ApprovalStatus,
    CreateApprovalRequestInput,
    ReviewAction,
    ReviewInput,
    RoleLimit,
    SweepReport,
)
from discount_kernel.domain.campaigns import (
    ActiveCampaign,
    SeasonalCampaign,
    TimeRemaining,
)
from discount_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from discount_kernel.domain.codes import (
    CodeUsage,
    CodeValidationResult,
    DiscountCode,
    UsageRecordResult,
    normalize_code,
)
from discount_kernel.domain.context import (
    AppliedDiscount,
    CandidateDiscount,
    DiscountCalculationResult,
    DiscountContext,
    DiscountRuleSet,
    DiscountSource,
    ManualDiscount,
    ServiceLine,
    UpsellSuggestion,
)
from discount_kernel.domain.loyalty import (
    DEFAULT_TIERS,
    CustomerLoyaltyAccount,
    EarnResult,
    EnrollmentResult,
    LedgerVerification,
    LoyaltyProgram,
    LoyaltyTier,
    LoyaltyTransaction,
    RedemptionResult,
    TransactionType,
)
from discount_kernel.domain.policy import (
    CalculationPolicy,
    CandidatePriorities,
    ComplementaryService,
    UpsellPolicy,
)
from discount_kernel.domain.rules import (
    AutoDiscountRule,
    DayOfWeekCondition,
    FirstOrderCondition,
    OrderMinimumCondition,
    RepeatCustomerCondition,
    RuleCondition,
    RuleType,
    SeasonalMonthCondition,
    ServiceComboCondition,
    ServiceQuantityCondition,
    UnsupportedCondition,
    parse_condition,
)
from discount_kernel.domain.values import (
    CENT,
    HUNDRED,
    ZERO,
    DiscountType,
    round_money,
    to_decimal,
)
from discount_kernel.domain.volume import (
    MeasurementType,
    NextTier,
    TierLevel,
    TierResult,
    VolumeDiscountTierSet,
)

__all__ = [
    # Values
    "CENT",
    "HUNDRED",
    "ZERO",
    "DiscountType",
    "round_money",
    "to_decimal",
    # Clock
    "Clock",
    "DeterministicClock",
    "SystemClock",
    # Promo codes
    "CodeUsage",
    "CodeValidationResult",
    "DiscountCode",
    "UsageRecordResult",
    "normalize_code",
    # Auto rules
    "AutoDiscountRule",
    "DayOfWeekCondition",
    "FirstOrderCondition",
    "OrderMinimumCondition",
    "RepeatCustomerCondition",
    "RuleCondition",
    "RuleType",
    "SeasonalMonthCondition",
    "ServiceComboCondition",
    "ServiceQuantityCondition",
    "UnsupportedCondition",
    "parse_condition",
    # Loyalty
    "DEFAULT_TIERS",
    "CustomerLoyaltyAccount",
    "EarnResult",
    "EnrollmentResult",
    "LedgerVerification",
    "LoyaltyProgram",
    "LoyaltyTier",
    "LoyaltyTransaction",
    "RedemptionResult",
    "TransactionType",
    # Volume
    "MeasurementType",
    "NextTier",
    "TierLevel",
    "TierResult",
    "VolumeDiscountTierSet",
    # Campaigns
    "ActiveCampaign",
    "SeasonalCampaign",
    "TimeRemaining",
    # Approval
    "APPROVAL_TRANSITIONS",
    "OPEN_APPROVAL_STATUSES",
    "TERMINAL_APPROVAL_STATUSES",
    "ApprovalDecision",
    "ApprovalRequest",
    "ApprovalSettings",
    "ApprovalStatus",
    "CreateApprovalRequestInput",
    "ReviewAction",
    "ReviewInput",
    "RoleLimit",
    "SweepReport",
    # Policy
    "CalculationPolicy",
    "CandidatePriorities",
    "ComplementaryService",
    "UpsellPolicy",
    # Calculation
    "AppliedDiscount",
    "CandidateDiscount",
    "DiscountCalculationResult",
    "DiscountContext",
    "DiscountRuleSet",
    "DiscountSource",
    "ManualDiscount",
    "ServiceLine",
    "UpsellSuggestion",
]
