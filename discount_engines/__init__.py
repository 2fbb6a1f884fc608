"""
Module: discount_engines
Responsibility:
    Package entrypoint that re-exports the public symbols of the pure
    discount calculation engines.  This is the canonical import surface
    for discount_services.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import discount_kernel/domain types and kernel exceptions
    (and sibling engine modules).  MUST NOT import discount_services.

Invariants enforced:
    - Purity: engines NEVER call ``datetime.now()``.  ``now`` is passed in
      by the caller.
    - Decimal-only arithmetic: every monetary amount is a ``Decimal``
      rounded to cents with ROUND_HALF_UP.
    - Determinism: identical inputs always produce identical outputs.

Audit relevance:
    Every engine entry point is traced via ``@traced_engine`` (see
    ``discount_engines.tracer``), emitting DISCOUNT_ENGINE_TRACE log
    records with the engine name, version and an input fingerprint.

Usage:
    from discount_engines import calculate_discounts, validate_code
    from discount_engines.volume import resolve_volume_tier
"""

from discount_kernel.logging_config import get_logger

logger = get_logger("engines")

from discount_engines.amounts import discount_amount
from discount_engines.approval import (
    check_approval_required,
    next_approver,
    review_target_status,
    sweep_action,
    validate_transition,
)
from discount_engines.auto_rules import (
    AutoRuleEvaluation,
    condition_matches,
    evaluate_rules,
)
from discount_engines.campaigns import active_campaigns, time_remaining
from discount_engines.loyalty import (
    earn_failure,
    generate_referral_code,
    purchase_points,
    redemption_failure,
    redemption_value,
    tier_for_points,
    verify_ledger,
)
from discount_engines.orchestrator import calculate_discounts, choose_discounts
from discount_engines.promo_codes import validate_code
from discount_engines.tracer import compute_input_fingerprint, traced_engine
from discount_engines.upsell import generate_upsells
from discount_engines.volume import resolve_volume_tier, select_tier_set

__all__ = [
    # Amounts
    "discount_amount",
    # Approval
    "check_approval_required",
    "next_approver",
    "review_target_status",
    "sweep_action",
    "validate_transition",
    # Auto rules
    "AutoRuleEvaluation",
    "condition_matches",
    "evaluate_rules",
    # Campaigns
    "active_campaigns",
    "time_remaining",
    # Loyalty
    "earn_failure",
    "generate_referral_code",
    "purchase_points",
    "redemption_failure",
    "redemption_value",
    "tier_for_points",
    "verify_ledger",
    # Orchestrator
    "calculate_discounts",
    "choose_discounts",
    # Promo codes
    "validate_code",
    # Tracer
    "compute_input_fingerprint",
    "traced_engine",
    # Upsell
    "generate_upsells",
    # Volume
    "resolve_volume_tier",
    "select_tier_set",
]
