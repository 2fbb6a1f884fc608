"""
Tests for the discount orchestrator.

Covers:
- Capped promo code against a large subtotal
- Non-stackable volume beating the stackable loyalty discount
- Compounding stackable discounts against the running subtotal
- Branch exclusivity and tie-breaking
- Manual discount applied last with the approval gate
- Candidate discovery order
- Determinism
"""

from datetime import timedelta
from decimal import Decimal
from uuid import uuid4

import pytest

from discount_engines.orchestrator import (
    MANUAL_DISCOUNT_NAME,
    calculate_discounts,
    choose_discounts,
)
from discount_kernel.domain.approval import ApprovalSettings
from discount_kernel.domain.codes import CodeValidationResult
from discount_kernel.domain.context import CandidateDiscount, DiscountSource
from discount_kernel.domain.loyalty import LoyaltyProgram
from discount_kernel.domain.rules import FirstOrderCondition, UnsupportedCondition
from discount_kernel.domain.values import DiscountType


@pytest.fixture
def summer10() -> CodeValidationResult:
    return CodeValidationResult(
        valid=True,
        discount_code_id=uuid4(),
        code="SUMMER10",
        name="Summer Savings",
        discount_type=DiscountType.PERCENT,
        discount_value=Decimal("10"),
        max_discount_amount=Decimal("500"),
        discount_amount=Decimal("500.00"),
    )


def _assert_totals(result):
    assert result.total_discount == sum(a.amount for a in result.applied_discounts)
    assert result.final_subtotal == result.original_subtotal - result.total_discount


class TestWorkedScenarios:
    """The three canonical calculations."""

    def test_capped_promo_code(self, make_context, make_rule_set, summer10, now):
        context = make_context("10000", promo_code="SUMMER10")
        result = calculate_discounts(context, make_rule_set(), now, code_result=summer10)

        (applied,) = result.applied_discounts
        assert applied.source == DiscountSource.PROMO_CODE
        assert applied.name == "Summer Savings"
        assert applied.amount == Decimal("500.00")
        assert result.final_subtotal == Decimal("9500.00")
        _assert_totals(result)

    def test_non_stackable_volume_beats_loyalty(
        self, make_context, make_rule_set, make_tier_set, make_account, sqft_line, now,
    ):
        context = make_context("10000", services=[sqft_line("6000")])
        rule_set = make_rule_set(tier_sets=[make_tier_set(stackable=False)])
        account = make_account(tier="Gold", percent="10")

        result = calculate_discounts(context, rule_set, now, loyalty_account=account)

        assert [c.source for c in result.available_discounts] == [
            DiscountSource.VOLUME, DiscountSource.LOYALTY,
        ]
        (applied,) = result.applied_discounts
        assert applied.source == DiscountSource.VOLUME
        assert applied.name == "Gold Discount"
        assert applied.amount == Decimal("1200.00")
        assert result.final_subtotal == Decimal("8800.00")

    def test_stackable_discounts_compound(self, make_context, make_rule_set, make_rule, now):
        ten = make_rule(name="Ten", discount_value="10", stackable=True, priority=10)
        five = make_rule(name="Five", discount_value="5", stackable=True, priority=5)
        result = calculate_discounts(make_context("1000"), make_rule_set(auto_rules=[five, ten]), now)

        assert [a.name for a in result.applied_discounts] == ["Ten", "Five"]
        assert [a.amount for a in result.applied_discounts] == [Decimal("100.00"), Decimal("45.00")]
        assert [a.applied_to_subtotal for a in result.applied_discounts] == [
            Decimal("1000"), Decimal("900.00"),
        ]
        assert [a.position for a in result.applied_discounts] == [1, 2]
        assert result.total_discount == Decimal("145.00")
        assert result.final_subtotal == Decimal("855.00")


class TestBranchSelection:
    """Exactly one branch applies."""

    def test_non_stackable_strictly_greater_wins(self, make_context, make_rule_set, make_rule, make_campaign, now):
        campaign = make_campaign(discount_value="20")
        rules = [
            make_rule(name="A", discount_value="10", stackable=True),
            make_rule(name="B", discount_value="5", stackable=True),
        ]
        result = calculate_discounts(
            make_context("1000"), make_rule_set(campaigns=[campaign], auto_rules=rules), now,
        )
        assert [a.source for a in result.applied_discounts] == [DiscountSource.SEASONAL]
        assert result.total_discount == Decimal("200.00")

    def test_equal_savings_prefers_stackable_set(self, make_context, make_rule_set, make_rule, make_campaign, now):
        campaign = make_campaign(discount_value="15")
        rules = [
            make_rule(name="A", discount_value="10", stackable=True),
            make_rule(name="B", discount_value="5", stackable=True),
        ]
        result = calculate_discounts(
            make_context("1000"), make_rule_set(campaigns=[campaign], auto_rules=rules), now,
        )
        assert [a.name for a in result.applied_discounts] == ["A", "B"]
        assert all(a.source == DiscountSource.AUTOMATIC_RULE for a in result.applied_discounts)

    def test_tie_between_non_stackables_keeps_discovery_order(
        self, make_context, make_rule_set, make_rule, make_campaign, now,
    ):
        campaign = make_campaign(name="Campaign", discount_value="10")
        rule = make_rule(name="Rule", discount_value="10", stackable=False, priority=99)
        result = calculate_discounts(
            make_context("1000"), make_rule_set(campaigns=[campaign], auto_rules=[rule]), now,
        )
        assert [a.name for a in result.applied_discounts] == ["Campaign"]

    def test_no_candidates(self, make_context, make_rule_set, now):
        result = calculate_discounts(make_context("1000"), make_rule_set(), now)
        assert result.applied_discounts == ()
        assert result.total_discount == Decimal("0")
        assert result.final_subtotal == Decimal("1000")

    def test_choose_discounts_skips_unapplicable(self):
        blocked = CandidateDiscount(
            source=DiscountSource.SEASONAL,
            name="blocked",
            discount_type=DiscountType.FIXED,
            discount_value=Decimal("900"),
            estimated_savings=Decimal("900"),
            can_apply=False,
        )
        usable = CandidateDiscount(
            source=DiscountSource.LOYALTY,
            name="usable",
            discount_type=DiscountType.PERCENT,
            discount_value=Decimal("5"),
            estimated_savings=Decimal("50"),
            stackable=True,
        )
        assert choose_discounts([blocked, usable]) == [usable]


class TestCandidates:
    """Candidate discovery and filtering."""

    def test_discovery_order(
        self, make_context, make_rule_set, make_rule, make_campaign, make_tier_set,
        make_account, sqft_line, summer10, now,
    ):
        rule_set = make_rule_set(
            campaigns=[make_campaign()],
            auto_rules=[make_rule()],
            tier_sets=[make_tier_set()],
        )
        context = make_context("10000", services=[sqft_line("2000")])
        result = calculate_discounts(
            context, rule_set, now, loyalty_account=make_account(), code_result=summer10,
        )
        assert [c.source for c in result.available_discounts] == [
            DiscountSource.SEASONAL,
            DiscountSource.AUTOMATIC_RULE,
            DiscountSource.VOLUME,
            DiscountSource.LOYALTY,
            DiscountSource.PROMO_CODE,
        ]

    def test_campaign_minimum_order(self, make_context, make_rule_set, make_campaign, now):
        campaign = make_campaign(min_order_amount=Decimal("5000"))
        result = calculate_discounts(make_context("4999"), make_rule_set(campaigns=[campaign]), now)
        assert result.available_discounts == ()

    def test_expired_campaign_ignored(self, make_context, make_rule_set, make_campaign, now):
        campaign = make_campaign(starts_at=now - timedelta(days=5), expires_at=now - timedelta(days=1))
        result = calculate_discounts(make_context(), make_rule_set(campaigns=[campaign]), now)
        assert result.available_discounts == ()

    def test_zero_percent_volume_bracket_is_not_a_candidate(
        self, make_context, make_rule_set, make_tier_set, sqft_line, now,
    ):
        context = make_context("1000", services=[sqft_line("500")])
        result = calculate_discounts(context, make_rule_set(tier_sets=[make_tier_set()]), now)
        assert result.available_discounts == ()

    def test_volume_sums_sqft_lines(self, make_context, make_rule_set, make_tier_set, sqft_line, now):
        context = make_context(
            "1000",
            services=[sqft_line("3000"), sqft_line("2500", service_type="crack_filling")],
        )
        result = calculate_discounts(context, make_rule_set(tier_sets=[make_tier_set()]), now)
        (candidate,) = result.available_discounts
        assert candidate.discount_value == Decimal("12")
        assert candidate.description == "12% off for 5,500 sq ft"

    def test_inactive_loyalty_program_suppresses_tier_discount(
        self, make_context, make_rule_set, make_account, org_id, now,
    ):
        program = LoyaltyProgram(id=uuid4(), org_id=org_id, is_active=False)
        result = calculate_discounts(
            make_context(), make_rule_set(loyalty_program=program), now, loyalty_account=make_account(),
        )
        assert result.available_discounts == ()

    def test_loyalty_candidate(self, make_context, make_rule_set, make_account, now):
        result = calculate_discounts(make_context("1000"), make_rule_set(), now, loyalty_account=make_account())
        (candidate,) = result.available_discounts
        assert candidate.name == "Gold Member Discount"
        assert candidate.description == "10% loyalty discount"
        assert candidate.stackable

    def test_invalid_code_ignored(self, make_context, make_rule_set, now):
        result = calculate_discounts(
            make_context(promo_code="NOPE"),
            make_rule_set(),
            now,
            code_result=CodeValidationResult.rejected("Invalid or expired discount code"),
        )
        assert result.available_discounts == ()

    def test_unsupported_rules_reported(self, make_context, make_rule_set, make_rule, now):
        unknown = make_rule(condition=UnsupportedCondition("loyalty_tier"))
        no_match = make_rule(condition=FirstOrderCondition())
        result = calculate_discounts(make_context(), make_rule_set(auto_rules=[unknown, no_match]), now)
        assert result.skipped_rule_ids == (unknown.id,)
        assert result.available_discounts == ()


class TestManualDiscount:
    """Manual discounts apply last and pass through the approval gate."""

    def test_applied_after_stackables(self, make_context, make_rule_set, make_rule, org_id, now):
        rule = make_rule(discount_value="10", stackable=True)
        context = make_context("1000", manual_percent="20", user_role="sales")
        rule_set = make_rule_set(auto_rules=[rule], approval_settings=ApprovalSettings(org_id=org_id))

        result = calculate_discounts(context, rule_set, now)

        manual = result.applied_discounts[-1]
        assert manual.source == DiscountSource.MANUAL
        assert manual.name == MANUAL_DISCOUNT_NAME
        assert manual.applied_to_subtotal == Decimal("900.00")
        assert manual.amount == Decimal("180.00")
        assert manual.requires_approval
        assert result.requires_approval
        assert result.approval_reason == "Discount of 20% exceeds your limit of 10%"
        assert result.final_subtotal == Decimal("720.00")
        _assert_totals(result)

    def test_fixed_manual_percent_of_running_subtotal(self, make_context, make_rule_set, make_rule, org_id, now):
        """$90 off a $900 running subtotal is exactly the 10% sales limit."""
        rule = make_rule(discount_value="10", stackable=True)
        context = make_context("1000", manual_amount="90")
        rule_set = make_rule_set(auto_rules=[rule], approval_settings=ApprovalSettings(org_id=org_id))

        result = calculate_discounts(context, rule_set, now)

        assert result.applied_discounts[-1].amount == Decimal("90.00")
        assert not result.requires_approval
        assert result.approval_reason is None

    def test_fixed_manual_on_zero_running_subtotal(self, make_context, make_rule_set, make_rule, org_id, now):
        rule = make_rule(discount_type=DiscountType.FIXED, discount_value="1000", stackable=True)
        context = make_context("1000", manual_amount="50")
        rule_set = make_rule_set(auto_rules=[rule], approval_settings=ApprovalSettings(org_id=org_id))

        result = calculate_discounts(context, rule_set, now)

        assert result.applied_discounts[-1].amount == Decimal("0.00")
        assert result.final_subtotal == Decimal("0.00")
        assert not result.requires_approval

    def test_no_settings_means_no_approval(self, make_context, make_rule_set, now):
        result = calculate_discounts(make_context("1000", manual_percent="90"), make_rule_set(), now)
        assert result.applied_discounts[-1].amount == Decimal("900.00")
        assert not result.requires_approval

    def test_manual_alongside_non_stackable_winner(self, make_context, make_rule_set, make_campaign, org_id, now):
        context = make_context("1000", manual_percent="5", user_role="manager")
        rule_set = make_rule_set(
            campaigns=[make_campaign(discount_value="20")],
            approval_settings=ApprovalSettings(org_id=org_id),
        )
        result = calculate_discounts(context, rule_set, now)
        assert [a.source for a in result.applied_discounts] == [DiscountSource.SEASONAL, DiscountSource.MANUAL]
        assert result.applied_discounts[1].amount == Decimal("40.00")
        assert result.final_subtotal == Decimal("760.00")


class TestDeterminism:

    def test_same_inputs_same_result(
        self, make_context, make_rule_set, make_rule, make_campaign, make_tier_set,
        make_account, sqft_line, summer10, now,
    ):
        rule_set = make_rule_set(
            campaigns=[make_campaign(discount_value="3")],
            auto_rules=[make_rule(stackable=True, priority=7)],
            tier_sets=[make_tier_set(stackable=True)],
        )
        context = make_context("7321.45", services=[sqft_line("4200")], manual_percent="2.5")
        account = make_account()

        first = calculate_discounts(context, rule_set, now, loyalty_account=account, code_result=summer10)
        second = calculate_discounts(context, rule_set, now, loyalty_account=account, code_result=summer10)

        assert first == second
        _assert_totals(first)
