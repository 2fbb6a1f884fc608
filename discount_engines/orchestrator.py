"""
discount_engines.orchestrator -- Discount calculation for one proposal.

Responsibility:
    Collect candidate discounts from every source, choose between the
    single best non-stackable discount and the full stackable set, apply
    the chosen discounts in order against a running subtotal, apply any
    manual discount last with an approval check, and attach upsell hints.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    Inputs are a calculation context, an already-loaded rule-set snapshot,
    the customer's loyalty account, the validated promo code, and ``now``.
    Loading and recording live in
    ``discount_services.calculation_service``.

Invariants enforced:
    - Discovery order is fixed: seasonal -> auto rules -> volume ->
      loyalty -> promo code.
    - Exactly one branch applies: the best non-stackable candidate (when
      its savings are strictly greater than the stackable sum) or every
      stackable candidate.  The manual discount is always additionally
      applied, last.
    - Equal-savings non-stackable candidates keep discovery order (first
      found wins).  Stackable candidates apply in descending priority,
      stable on discovery order, compounding against the running subtotal.
    - Round-then-subtract: each applied amount is rounded to cents before
      it is taken off the running subtotal.
    - Determinism: identical inputs yield identical output; nothing shared
      is mutated.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from discount_engines.amounts import discount_amount
from discount_engines.approval import check_approval_required
from discount_engines.auto_rules import evaluate_rules
from discount_engines.campaigns import active_campaigns
from discount_engines.tracer import traced_engine
from discount_engines.upsell import generate_upsells
from discount_engines.volume import resolve_volume_tier
from discount_kernel.domain.codes import CodeValidationResult
from discount_kernel.domain.context import (
    AppliedDiscount,
    CandidateDiscount,
    DiscountCalculationResult,
    DiscountContext,
    DiscountRuleSet,
    DiscountSource,
)
from discount_kernel.domain.loyalty import CustomerLoyaltyAccount
from discount_kernel.domain.policy import CalculationPolicy, CandidatePriorities
from discount_kernel.domain.values import (
    HUNDRED,
    ZERO,
    DiscountType,
    format_percent,
    format_quantity,
    round_money,
)
from discount_kernel.domain.volume import MeasurementType, TierResult

SQFT_UNIT = "sqft"
MANUAL_DISCOUNT_NAME = "Manual Discount"


# =========================================================================
# Candidate collection
# =========================================================================


def seasonal_candidates(
    context: DiscountContext,
    rule_set: DiscountRuleSet,
    now: datetime,
    policy: CalculationPolicy,
) -> list[CandidateDiscount]:
    candidates = []
    for active in active_campaigns(rule_set.campaigns, now, policy.expiring_soon_hours):
        campaign = active.campaign
        if campaign.min_order_amount and context.subtotal < campaign.min_order_amount:
            continue
        candidates.append(
            CandidateDiscount(
                source=DiscountSource.SEASONAL,
                source_id=campaign.id,
                name=campaign.name,
                description=campaign.banner_text or campaign.description,
                discount_type=campaign.discount_type,
                discount_value=campaign.discount_value,
                max_discount_amount=campaign.max_discount_amount,
                estimated_savings=discount_amount(
                    campaign.discount_type,
                    campaign.discount_value,
                    context.subtotal,
                    campaign.max_discount_amount,
                ),
                stackable=False,
                priority=policy.priorities.seasonal,
            )
        )
    return candidates


def total_sqft(context: DiscountContext) -> Decimal:
    return sum(
        (line.quantity for line in context.services if line.unit == SQFT_UNIT),
        ZERO,
    )


def volume_candidate(
    context: DiscountContext,
    tier: TierResult | None,
    priorities: CandidatePriorities,
) -> CandidateDiscount | None:
    if tier is None or tier.discount_percent <= ZERO:
        return None
    return CandidateDiscount(
        source=DiscountSource.VOLUME,
        source_id=tier.tier_set_id,
        name=f"{tier.level.label or 'Volume'} Discount",
        description=(
            f"{format_percent(tier.discount_percent)}% off for "
            f"{format_quantity(tier.value)} sq ft"
        ),
        discount_type=DiscountType.PERCENT,
        discount_value=tier.discount_percent,
        estimated_savings=discount_amount(
            DiscountType.PERCENT, tier.discount_percent, context.subtotal,
        ),
        stackable=tier.stackable,
        priority=priorities.volume,
    )


def loyalty_candidate(
    context: DiscountContext,
    rule_set: DiscountRuleSet,
    account: CustomerLoyaltyAccount | None,
    priorities: CandidatePriorities,
) -> CandidateDiscount | None:
    if account is None or account.tier_discount_percent <= ZERO:
        return None
    program = rule_set.loyalty_program
    if program is not None and not program.is_active:
        return None
    return CandidateDiscount(
        source=DiscountSource.LOYALTY,
        source_id=account.id,
        name=f"{account.current_tier} Member Discount",
        description=f"{format_percent(account.tier_discount_percent)}% loyalty discount",
        discount_type=DiscountType.PERCENT,
        discount_value=account.tier_discount_percent,
        estimated_savings=discount_amount(
            DiscountType.PERCENT, account.tier_discount_percent, context.subtotal,
        ),
        stackable=True,
        priority=priorities.loyalty,
    )


def promo_code_candidate(
    code_result: CodeValidationResult | None,
    priorities: CandidatePriorities,
) -> CandidateDiscount | None:
    if code_result is None or not code_result.valid:
        return None
    return CandidateDiscount(
        source=DiscountSource.PROMO_CODE,
        source_id=code_result.discount_code_id,
        name=code_result.name or code_result.code or "Promo Code",
        description=code_result.description,
        discount_type=code_result.discount_type,
        discount_value=code_result.discount_value,
        max_discount_amount=code_result.max_discount_amount,
        estimated_savings=code_result.discount_amount,
        stackable=True,
        priority=priorities.promo_code,
    )


# =========================================================================
# Selection and application
# =========================================================================


def choose_discounts(candidates: list[CandidateDiscount]) -> list[CandidateDiscount]:
    """Best non-stackable alone, or the whole stackable set in apply order."""
    applicable = [c for c in candidates if c.can_apply]

    best: CandidateDiscount | None = None
    for candidate in applicable:
        if candidate.stackable:
            continue
        if best is None or candidate.estimated_savings > best.estimated_savings:
            best = candidate

    stackable = [c for c in applicable if c.stackable]
    stackable_total = sum((c.estimated_savings for c in stackable), ZERO)

    if best is not None and best.estimated_savings > stackable_total:
        return [best]
    return sorted(stackable, key=lambda c: -c.priority)


def apply_in_order(
    chosen: list[CandidateDiscount],
    subtotal: Decimal,
) -> tuple[list[AppliedDiscount], Decimal]:
    applied: list[AppliedDiscount] = []
    running = subtotal
    for position, candidate in enumerate(chosen, start=1):
        amount = discount_amount(
            candidate.discount_type,
            candidate.discount_value,
            running,
            candidate.max_discount_amount,
        )
        applied.append(
            AppliedDiscount(
                position=position,
                source=candidate.source,
                source_id=candidate.source_id,
                name=candidate.name,
                discount_type=candidate.discount_type,
                discount_value=candidate.discount_value,
                applied_to_subtotal=running,
                amount=amount,
            )
        )
        running -= amount
    return applied, running


# =========================================================================
# Entry point
# =========================================================================


@traced_engine(
    "discount_orchestrator", "1.0",
    fingerprint_fields=("context", "now"),
)
def calculate_discounts(
    context: DiscountContext,
    rule_set: DiscountRuleSet,
    now: datetime,
    loyalty_account: CustomerLoyaltyAccount | None = None,
    code_result: CodeValidationResult | None = None,
    policy: CalculationPolicy | None = None,
) -> DiscountCalculationResult:
    """Run one discount calculation.

    Args:
        context: The proposal being priced.
        rule_set: The organization's loaded configuration.
        now: The instant to evaluate validity windows at.
        loyalty_account: The customer's loyalty account, if enrolled.
        code_result: Validation result for ``context.promo_code``, if any.
        policy: Candidate priorities and upsell settings.
    """
    policy = policy or CalculationPolicy()
    priorities = policy.priorities

    # 1. Collect candidates in discovery order
    candidates: list[CandidateDiscount] = []
    candidates.extend(seasonal_candidates(context, rule_set, now, policy))

    evaluation = evaluate_rules(rule_set.auto_rules, context, now)
    candidates.extend(evaluation.candidates)

    volume: TierResult | None = None
    sqft = total_sqft(context)
    if sqft > ZERO:
        volume = resolve_volume_tier(rule_set.tier_sets, MeasurementType.TOTAL_SQFT, sqft)
        found = volume_candidate(context, volume, priorities)
        if found is not None:
            candidates.append(found)

    loyalty = loyalty_candidate(context, rule_set, loyalty_account, priorities)
    if loyalty is not None:
        candidates.append(loyalty)

    promo = promo_code_candidate(code_result, priorities)
    if promo is not None:
        candidates.append(promo)

    # 2-5. Choose a branch and apply it against the running subtotal
    applied, running = apply_in_order(choose_discounts(candidates), context.subtotal)

    # 6. Manual discount, always last
    requires_approval = False
    approval_reason = None
    manual = context.manual_discount
    if manual is not None:
        amount = discount_amount(manual.discount_type, manual.value, running)
        if manual.percent is not None:
            percent = manual.percent
        elif running > ZERO:
            percent = amount / running * HUNDRED
        else:
            percent = ZERO
        decision = check_approval_required(
            rule_set.approval_settings,
            percent,
            amount,
            context.subtotal,
            context.user_role,
        )
        applied.append(
            AppliedDiscount(
                position=len(applied) + 1,
                source=DiscountSource.MANUAL,
                name=MANUAL_DISCOUNT_NAME,
                discount_type=manual.discount_type,
                discount_value=manual.value,
                applied_to_subtotal=running,
                amount=amount,
                requires_approval=decision.required,
            )
        )
        running -= amount
        requires_approval = decision.required
        approval_reason = decision.reason

    # 8. Upsells never touch totals
    upsells = generate_upsells(context, candidates, volume, loyalty_account, policy.upsell)

    total = sum((a.amount for a in applied), ZERO)
    return DiscountCalculationResult(
        available_discounts=tuple(candidates),
        applied_discounts=tuple(applied),
        original_subtotal=context.subtotal,
        total_discount=round_money(total),
        final_subtotal=context.subtotal - total,
        requires_approval=requires_approval,
        approval_reason=approval_reason,
        upsell_suggestions=upsells,
        skipped_rule_ids=tuple(rule.id for rule in evaluation.skipped),
    )
