"""
Tests for automatic rule evaluation.

Covers:
- Matching for every condition variant
- Validity windows and inactive rules
- Priority ordering (stable on ties)
- Unsupported tags skipped, never matched
- Condition payload parsing
"""

from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from discount_engines.auto_rules import (
    condition_matches,
    evaluate_rules,
    weekday_sunday_first,
)
from discount_kernel.domain.context import DiscountSource, ServiceLine
from discount_kernel.domain.rules import (
    DayOfWeekCondition,
    FirstOrderCondition,
    OrderMinimumCondition,
    RepeatCustomerCondition,
    SeasonalMonthCondition,
    ServiceComboCondition,
    ServiceQuantityCondition,
    UnsupportedCondition,
    condition_to_payload,
    parse_condition,
)
from discount_kernel.domain.values import DiscountType
from discount_kernel.exceptions import MalformedRuleConditionError

SUNDAY = datetime(2024, 1, 7, 9, 0, tzinfo=timezone.utc)
SATURDAY = datetime(2024, 1, 6, 9, 0, tzinfo=timezone.utc)


def _line(service_type, quantity="0"):
    return ServiceLine(type=service_type, name=service_type, quantity=Decimal(quantity), unit="sqft")


class TestConditionMatching:
    """One test group per condition variant."""

    def test_order_minimum_inclusive(self, make_context, now):
        condition = OrderMinimumCondition(Decimal("500"))
        assert condition_matches(condition, make_context("500"), now)
        assert not condition_matches(condition, make_context("499.99"), now)

    def test_first_order(self, make_context, now):
        assert condition_matches(FirstOrderCondition(), make_context(is_new_customer=True), now)
        assert not condition_matches(FirstOrderCondition(), make_context(), now)

    def test_repeat_customer(self, make_context, now):
        condition = RepeatCustomerCondition(min_orders=3)
        assert condition_matches(condition, make_context(customer_total_orders=3), now)
        assert not condition_matches(condition, make_context(customer_total_orders=2), now)

    def test_repeat_customer_excludes_new(self, make_context, now):
        condition = RepeatCustomerCondition(min_orders=0)
        assert not condition_matches(condition, make_context(is_new_customer=True), now)

    def test_service_combo_all(self, make_context, now):
        condition = ServiceComboCondition(("sealcoating", "crack_filling"))
        both = make_context(services=[_line("sealcoating"), _line("crack_filling")])
        one = make_context(services=[_line("sealcoating")])
        assert condition_matches(condition, both, now)
        assert not condition_matches(condition, one, now)

    def test_service_combo_any(self, make_context, now):
        condition = ServiceComboCondition(("sealcoating", "striping"), require_all=False)
        assert condition_matches(condition, make_context(services=[_line("striping")]), now)
        assert not condition_matches(condition, make_context(services=[_line("paving")]), now)

    def test_service_quantity_uses_first_line(self, make_context, now):
        condition = ServiceQuantityCondition("sealcoating", Decimal("2000"))
        context = make_context(services=[_line("sealcoating", "1500"), _line("sealcoating", "5000")])
        assert not condition_matches(condition, context, now)

    def test_service_quantity_matches(self, make_context, now):
        condition = ServiceQuantityCondition("sealcoating", Decimal("2000"))
        assert condition_matches(condition, make_context(services=[_line("sealcoating", "2000")]), now)
        assert not condition_matches(condition, make_context(), now)

    def test_seasonal_month_range(self, make_context):
        condition = SeasonalMonthCondition(start_month=3, end_month=5)
        context = make_context()
        assert condition_matches(condition, context, datetime(2024, 3, 1, tzinfo=timezone.utc))
        assert condition_matches(condition, context, datetime(2024, 5, 31, tzinfo=timezone.utc))
        assert not condition_matches(condition, context, datetime(2024, 6, 1, tzinfo=timezone.utc))

    def test_seasonal_range_crossing_year_never_matches(self, make_context):
        condition = SeasonalMonthCondition(start_month=11, end_month=2)
        assert not condition_matches(condition, make_context(), datetime(2024, 12, 1, tzinfo=timezone.utc))
        assert not condition_matches(condition, make_context(), datetime(2024, 1, 15, tzinfo=timezone.utc))

    def test_day_of_week_sunday_is_zero(self, make_context):
        condition = DayOfWeekCondition(frozenset({0, 6}))
        assert weekday_sunday_first(SUNDAY) == 0
        assert weekday_sunday_first(SATURDAY) == 6
        assert condition_matches(condition, make_context(), SUNDAY)
        assert condition_matches(condition, make_context(), SATURDAY)

    def test_day_of_week_monday(self, make_context, now):
        """The default test clock sits on a Monday."""
        assert weekday_sunday_first(now) == 1
        assert not condition_matches(DayOfWeekCondition(frozenset({0, 6})), make_context(), now)

    def test_unsupported_never_matches(self, make_context, now):
        assert not condition_matches(UnsupportedCondition("loyalty_tier"), make_context(), now)


class TestEvaluateRules:
    """Tests for the rule evaluation pass."""

    def test_matching_rule_becomes_candidate(self, make_rule, make_context, now):
        rule = make_rule(discount_value="10", max_discount_amount=Decimal("50"), stackable=True)
        evaluation = evaluate_rules([rule], make_context("1000"), now)

        assert len(evaluation.candidates) == 1
        candidate = evaluation.candidates[0]
        assert candidate.source == DiscountSource.AUTOMATIC_RULE
        assert candidate.source_id == rule.id
        assert candidate.estimated_savings == Decimal("50.00")
        assert candidate.stackable is True

    def test_inactive_rule_ignored(self, make_rule, make_context, now):
        evaluation = evaluate_rules([make_rule(is_active=False)], make_context(), now)
        assert evaluation.candidates == ()

    def test_window_bounds(self, make_rule, make_context, now):
        future = make_rule(starts_at=now + timedelta(seconds=1))
        past = make_rule(expires_at=now - timedelta(seconds=1))
        edge = make_rule(starts_at=now, expires_at=now, name="Edge")
        evaluation = evaluate_rules([future, past, edge], make_context(), now)
        assert [c.name for c in evaluation.candidates] == ["Edge"]

    def test_priority_descending_and_stable(self, make_rule, make_context, now):
        low = make_rule(priority=1, name="low")
        high = make_rule(priority=9, name="high")
        tie_a = make_rule(priority=5, name="tie_a")
        tie_b = make_rule(priority=5, name="tie_b")
        evaluation = evaluate_rules([low, tie_a, high, tie_b], make_context(), now)
        assert [c.name for c in evaluation.candidates] == ["high", "tie_a", "tie_b", "low"]

    def test_unsupported_rule_skipped(self, make_rule, make_context, now):
        unknown = make_rule(condition=UnsupportedCondition("loyalty_tier", {"tier": "Gold"}))
        known = make_rule(name="known")
        evaluation = evaluate_rules([unknown, known], make_context(), now)

        assert [c.name for c in evaluation.candidates] == ["known"]
        assert evaluation.skipped == (unknown,)
        assert unknown.rule_type == "loyalty_tier"

    def test_non_matching_rule_not_skipped(self, make_rule, make_context, now):
        rule = make_rule(condition=FirstOrderCondition())
        evaluation = evaluate_rules([rule], make_context(), now)
        assert evaluation.candidates == ()
        assert evaluation.skipped == ()

    def test_fixed_savings_against_original_subtotal(self, make_rule, make_context, now):
        rule = make_rule(discount_type=DiscountType.FIXED, discount_value="250")
        evaluation = evaluate_rules([rule], make_context("200"), now)
        assert evaluation.candidates[0].estimated_savings == Decimal("200.00")


class TestParseCondition:
    """Stored payloads become typed variants."""

    def test_camel_case_keys(self):
        condition = parse_condition("order_minimum", {"minAmount": "500"})
        assert condition == OrderMinimumCondition(Decimal("500"))

    def test_repeat_customer_default(self):
        assert parse_condition("repeat_customer", {}) == RepeatCustomerCondition(1)

    def test_service_quantity_accepts_min_sqft(self):
        condition = parse_condition("service_quantity", {"service": "sealcoating", "min_sqft": 3000})
        assert condition == ServiceQuantityCondition("sealcoating", Decimal("3000"))

    def test_day_of_week(self):
        assert parse_condition("day_of_week", {"days": [0, 6]}) == DayOfWeekCondition(frozenset({0, 6}))

    def test_unknown_tag(self):
        condition = parse_condition("loyalty_tier", {"tier": "Gold"})
        assert isinstance(condition, UnsupportedCondition)
        assert condition.rule_type == "loyalty_tier"
        assert condition.payload == {"tier": "Gold"}

    @pytest.mark.parametrize(
        "rule_type,payload",
        [
            ("order_minimum", {}),
            ("service_combo", {"required_services": []}),
            ("service_quantity", {"min_quantity": "5"}),
            ("seasonal", {"start_month": 3}),
            ("day_of_week", {"days": "monday"}),
            ("order_minimum", {"min_amount": "lots"}),
        ],
    )
    def test_malformed_payload(self, rule_type, payload):
        with pytest.raises(MalformedRuleConditionError) as exc_info:
            parse_condition(rule_type, payload)
        assert exc_info.value.rule_type == rule_type

    def test_payload_round_trip(self):
        condition = ServiceComboCondition(("sealcoating", "striping"), require_all=False)
        assert parse_condition("service_combo", condition_to_payload(condition)) == condition
