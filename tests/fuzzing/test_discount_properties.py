"""
Property-based tests for the pure discount engines.

Properties checked:
- A priced discount always lies in [0, subtotal]
- Orchestrator totals: final = original - total, total = sum of applied
- Exactly one branch applies: a lone non-stackable or only stackables
- Loyalty tier assignment is monotonic in lifetime points
- Every whole quantity resolves to exactly one volume bracket
"""

from datetime import UTC, datetime
from decimal import Decimal
from uuid import uuid4

from hypothesis import HealthCheck, given, settings
from hypothesis import strategies as st

from discount_engines.amounts import discount_amount
from discount_engines.loyalty import tier_for_points
from discount_engines.orchestrator import calculate_discounts
from discount_engines.volume import bracket_index
from discount_kernel.domain.context import DiscountContext, DiscountRuleSet, DiscountSource, ManualDiscount
from discount_kernel.domain.loyalty import DEFAULT_TIERS
from discount_kernel.domain.rules import AutoDiscountRule, OrderMinimumCondition
from discount_kernel.domain.values import DiscountType
from discount_kernel.domain.volume import TierLevel

ORG_ID = uuid4()
NOW = datetime(2024, 1, 1, 12, 0, tzinfo=UTC)

money = st.decimals(min_value=Decimal("0"), max_value=Decimal("1000000"), places=2)
percents = st.decimals(min_value=Decimal("0"), max_value=Decimal("100"), places=2)

FUZZ_SETTINGS = settings(max_examples=200, suppress_health_check=[HealthCheck.too_slow])


@st.composite
def rules(draw):
    discount_type = draw(st.sampled_from(list(DiscountType)))
    value = draw(percents if discount_type == DiscountType.PERCENT else money)
    return AutoDiscountRule(
        id=uuid4(),
        org_id=ORG_ID,
        name=f"rule-{draw(st.integers(0, 999))}",
        condition=OrderMinimumCondition(Decimal("0")),
        discount_type=discount_type,
        discount_value=value,
        priority=draw(st.integers(0, 10)),
        max_discount_amount=draw(st.none() | money),
        stackable=draw(st.booleans()),
    )


@st.composite
def manual_discounts(draw):
    if draw(st.booleans()):
        return ManualDiscount(percent=draw(percents))
    return ManualDiscount(amount=draw(money))


@st.composite
def brackets(draw):
    widths = draw(st.lists(st.integers(1, 5000), min_size=0, max_size=5))
    bounds = [0]
    for width in widths:
        bounds.append(bounds[-1] + width)
    tiers = []
    for index, low in enumerate(bounds):
        high = Decimal(bounds[index + 1] - 1) if index + 1 < len(bounds) else None
        tiers.append(TierLevel(Decimal(low), high, draw(percents)))
    return tuple(tiers)


class TestDiscountAmountProperties:

    @given(
        discount_type=st.sampled_from(list(DiscountType)),
        value=money,
        subtotal=money,
        cap=st.none() | money,
    )
    @FUZZ_SETTINGS
    def test_within_subtotal(self, discount_type, value, subtotal, cap):
        """A discount is never negative and never exceeds what it is applied to."""
        if discount_type == DiscountType.PERCENT:
            value = min(value, Decimal("100"))
        amount = discount_amount(discount_type, value, subtotal, cap)
        assert Decimal("0") <= amount <= subtotal
        if cap is not None:
            assert amount <= cap + Decimal("0.005")


class TestOrchestratorProperties:

    @given(
        subtotal=money,
        auto_rules=st.lists(rules(), max_size=6),
        manual=st.none() | manual_discounts(),
    )
    @FUZZ_SETTINGS
    def test_totals_are_consistent(self, subtotal, auto_rules, manual):
        """Final subtotal is the original less the sum of the applied amounts."""
        context = DiscountContext(org_id=ORG_ID, subtotal=subtotal, manual_discount=manual)
        result = calculate_discounts(
            context, DiscountRuleSet(org_id=ORG_ID, auto_rules=tuple(auto_rules)), NOW,
        )

        applied_total = sum((a.amount for a in result.applied_discounts), Decimal("0"))
        assert result.total_discount == applied_total
        assert result.final_subtotal == result.original_subtotal - result.total_discount
        assert result.final_subtotal >= Decimal("0")
        assert [a.position for a in result.applied_discounts] == list(
            range(1, len(result.applied_discounts) + 1)
        )

    @given(subtotal=money, auto_rules=st.lists(rules(), max_size=6))
    @FUZZ_SETTINGS
    def test_single_branch(self, subtotal, auto_rules):
        """Either one non-stackable discount applies alone, or only stackables apply."""
        context = DiscountContext(org_id=ORG_ID, subtotal=subtotal)
        result = calculate_discounts(
            context, DiscountRuleSet(org_id=ORG_ID, auto_rules=tuple(auto_rules)), NOW,
        )

        by_id = {rule.id: rule for rule in auto_rules}
        chosen = [by_id[a.source_id] for a in result.applied_discounts]
        non_stackable = [rule for rule in chosen if not rule.stackable]
        assert not non_stackable or len(chosen) == 1
        assert all(a.source == DiscountSource.AUTOMATIC_RULE for a in result.applied_discounts)

    @given(subtotal=money, auto_rules=st.lists(rules(), max_size=4))
    @FUZZ_SETTINGS
    def test_deterministic(self, subtotal, auto_rules):
        """Identical inputs give identical results."""
        context = DiscountContext(org_id=ORG_ID, subtotal=subtotal)
        rule_set = DiscountRuleSet(org_id=ORG_ID, auto_rules=tuple(auto_rules))
        assert calculate_discounts(context, rule_set, NOW) == calculate_discounts(context, rule_set, NOW)


class TestTierProperties:

    @given(a=st.integers(0, 50_000), b=st.integers(0, 50_000))
    @FUZZ_SETTINGS
    def test_loyalty_tier_monotonic(self, a, b):
        """More lifetime points never means a lower tier."""
        low, high = sorted((a, b))
        assert tier_for_points(DEFAULT_TIERS, low).min_points <= tier_for_points(DEFAULT_TIERS, high).min_points
        assert tier_for_points(DEFAULT_TIERS, high).min_points <= high

    @given(tiers=brackets(), value=st.integers(0, 30_000))
    @FUZZ_SETTINGS
    def test_whole_quantity_in_exactly_one_bracket(self, tiers, value):
        """Contiguous brackets partition the whole numbers without overlap."""
        quantity = Decimal(value)
        containing = [i for i, tier in enumerate(tiers) if tier.contains(quantity)]
        assert len(containing) == 1
        assert bracket_index(tiers, quantity) == containing[0]
