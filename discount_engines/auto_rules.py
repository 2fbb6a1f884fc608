"""
discount_engines.auto_rules -- Automatic discount rule evaluation.

Responsibility:
    Decide which always-on rules match a calculation context at a given
    instant and turn the matches into candidate discounts.

Architecture position:
    Engines -- pure calculation layer, zero I/O.  ``now`` is passed in.

Invariants enforced:
    - Only active rules whose validity window contains ``now`` are
      considered.
    - Candidates are ordered by descending priority.  ``sorted`` is stable,
      so equal priorities keep configured order.
    - Condition matching is exhaustive over the condition variants; an
      ``UnsupportedCondition`` never matches and is reported in
      ``skipped`` so the caller can log it.
    - Estimated savings are computed against the original subtotal.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import assert_never

from discount_engines.amounts import discount_amount
from discount_engines.tracer import traced_engine
from discount_kernel.domain.context import (
    CandidateDiscount,
    DiscountContext,
    DiscountSource,
)
from discount_kernel.domain.rules import (
    AutoDiscountRule,
    DayOfWeekCondition,
    FirstOrderCondition,
    OrderMinimumCondition,
    RepeatCustomerCondition,
    RuleCondition,
    SeasonalMonthCondition,
    ServiceComboCondition,
    ServiceQuantityCondition,
    UnsupportedCondition,
)


@dataclass(frozen=True)
class AutoRuleEvaluation:
    candidates: tuple[CandidateDiscount, ...]
    skipped: tuple[AutoDiscountRule, ...] = ()


def weekday_sunday_first(moment: datetime) -> int:
    """0 = Sunday ... 6 = Saturday."""
    return moment.isoweekday() % 7


def condition_matches(
    condition: RuleCondition,
    context: DiscountContext,
    now: datetime,
) -> bool:
    match condition:
        case OrderMinimumCondition(min_amount=min_amount):
            return context.subtotal >= min_amount
        case FirstOrderCondition():
            return context.is_new_customer
        case RepeatCustomerCondition(min_orders=min_orders):
            return not context.is_new_customer and context.customer_total_orders >= min_orders
        case ServiceComboCondition(required_services=required, require_all=require_all):
            present = context.service_types()
            if require_all:
                return all(service in present for service in required)
            return any(service in present for service in required)
        case ServiceQuantityCondition(service=service, min_quantity=min_quantity):
            line = context.first_service(service)
            return line is not None and line.quantity >= min_quantity
        case SeasonalMonthCondition(start_month=start, end_month=end):
            return start <= now.month <= end
        case DayOfWeekCondition(days=days):
            return weekday_sunday_first(now) in days
        case UnsupportedCondition():
            return False
        case _:
            assert_never(condition)


def rule_to_candidate(rule: AutoDiscountRule, context: DiscountContext) -> CandidateDiscount:
    return CandidateDiscount(
        source=DiscountSource.AUTOMATIC_RULE,
        source_id=rule.id,
        name=rule.name,
        description=rule.description,
        discount_type=rule.discount_type,
        discount_value=rule.discount_value,
        max_discount_amount=rule.max_discount_amount,
        estimated_savings=discount_amount(
            rule.discount_type,
            rule.discount_value,
            context.subtotal,
            rule.max_discount_amount,
        ),
        can_apply=True,
        stackable=rule.stackable,
        priority=rule.priority,
    )


@traced_engine("auto_rules", "1.0", fingerprint_fields=("context", "now"))
def evaluate_rules(
    rules: tuple[AutoDiscountRule, ...] | list[AutoDiscountRule],
    context: DiscountContext,
    now: datetime,
) -> AutoRuleEvaluation:
    """Match every active, in-window rule against ``context``."""
    eligible = [rule for rule in rules if rule.is_active and rule.is_within_window(now)]
    ordered = sorted(eligible, key=lambda rule: -rule.priority)

    candidates: list[CandidateDiscount] = []
    skipped: list[AutoDiscountRule] = []
    for rule in ordered:
        if isinstance(rule.condition, UnsupportedCondition):
            skipped.append(rule)
            continue
        if condition_matches(rule.condition, context, now):
            candidates.append(rule_to_candidate(rule, context))

    return AutoRuleEvaluation(candidates=tuple(candidates), skipped=tuple(skipped))
