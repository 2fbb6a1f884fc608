"""
Tests for volume tier resolution.

Covers:
- Bracket boundaries
- Values between brackets (fractional quantities)
- Below-floor values
- Next-tier distance and additional savings
- Tier set selection by measurement, service type and priority
- Bracket partition validation
"""

from decimal import Decimal

import pytest

from discount_engines.volume import bracket_index, resolve_volume_tier, select_tier_set
from discount_kernel.domain.volume import MeasurementType
from discount_kernel.exceptions import InvalidBracketPartitionError

SQFT = MeasurementType.TOTAL_SQFT


class TestBrackets:
    """The bracket containing the measured value wins."""

    @pytest.mark.parametrize(
        "value,expected_percent",
        [
            ("0", "0"),
            ("999", "0"),
            ("1000", "5"),
            ("4999", "5"),
            ("5000", "12"),
            ("250000", "12"),
        ],
    )
    def test_boundaries(self, make_tier_set, value, expected_percent):
        result = resolve_volume_tier([make_tier_set()], SQFT, Decimal(value))
        assert result.discount_percent == Decimal(expected_percent)

    def test_fraction_in_gap_resolves_to_lower_bracket(self, make_tier_set):
        result = resolve_volume_tier([make_tier_set()], SQFT, Decimal("999.5"))
        assert result.discount_percent == Decimal("0")
        assert result.next_tier.amount_to_reach == Decimal("0.5")

    def test_below_floor_returns_none(self, make_tier_set):
        tier_set = make_tier_set(brackets=(("100", "999", "2"), ("1000", None, "5")))
        assert resolve_volume_tier([tier_set], SQFT, Decimal("99")) is None
        assert bracket_index(tier_set.tiers, Decimal("99")) is None

    def test_no_matching_set(self, make_tier_set):
        assert resolve_volume_tier([make_tier_set()], MeasurementType.TOTAL_AMOUNT, Decimal("5000")) is None


class TestNextTier:

    def test_distance_and_additional_percent(self, make_tier_set):
        result = resolve_volume_tier([make_tier_set()], SQFT, Decimal("3000"))
        assert result.next_tier.level.discount_percent == Decimal("12")
        assert result.next_tier.amount_to_reach == Decimal("2000")
        assert result.next_tier.additional_savings_percent == Decimal("7")

    def test_top_bracket_has_no_next(self, make_tier_set):
        result = resolve_volume_tier([make_tier_set()], SQFT, Decimal("9000"))
        assert result.next_tier is None
        assert result.level.label == "Gold"


class TestDiscountAmount:
    """Only money-measured sets price themselves."""

    def test_total_amount_priced(self, make_tier_set):
        tier_set = make_tier_set(
            brackets=(("0", "9999.99", "0"), ("10000", None, "3")),
            measurement_type=MeasurementType.TOTAL_AMOUNT,
            step=Decimal("0.01"),
        )
        result = resolve_volume_tier([tier_set], MeasurementType.TOTAL_AMOUNT, Decimal("12345.67"))
        assert result.discount_amount == Decimal("370.37")

    def test_sqft_not_priced(self, make_tier_set):
        result = resolve_volume_tier([make_tier_set()], SQFT, Decimal("6000"))
        assert result.discount_amount == Decimal("0")


class TestSelectTierSet:

    def test_priority_then_configured_order(self, make_tier_set):
        first = make_tier_set(name="first", priority=1)
        second = make_tier_set(name="second", priority=1)
        top = make_tier_set(name="top", priority=5)
        assert select_tier_set([first, second, top], SQFT).name == "top"
        assert select_tier_set([first, second], SQFT).name == "first"

    def test_service_type_filter(self, make_tier_set):
        specific = make_tier_set(name="specific", service_type="paving", priority=9)
        general = make_tier_set(name="general")
        assert select_tier_set([specific, general], SQFT).name == "general"
        assert select_tier_set([specific, general], SQFT, "paving").name == "specific"

    def test_inactive_skipped(self, make_tier_set):
        assert select_tier_set([make_tier_set(is_active=False)], SQFT) is None


class TestPartitionValidation:
    """Brackets must cover [first.min, inf) with no gaps or overlaps."""

    def test_gap_rejected(self, make_tier_set):
        with pytest.raises(InvalidBracketPartitionError, match="gap"):
            make_tier_set(brackets=(("0", "999", "0"), ("1500", None, "5")))

    def test_overlap_rejected(self, make_tier_set):
        with pytest.raises(InvalidBracketPartitionError, match="overlap"):
            make_tier_set(brackets=(("0", "1000", "0"), ("1000", None, "5")))

    def test_last_must_be_unbounded(self, make_tier_set):
        with pytest.raises(InvalidBracketPartitionError):
            make_tier_set(brackets=(("0", "999", "0"), ("1000", "5000", "5")))

    def test_only_last_unbounded(self, make_tier_set):
        with pytest.raises(InvalidBracketPartitionError):
            make_tier_set(brackets=(("0", None, "0"), ("1000", None, "5")))

    def test_percent_range(self, make_tier_set):
        with pytest.raises(InvalidBracketPartitionError):
            make_tier_set(brackets=(("0", None, "120"),))

    def test_empty(self, make_tier_set):
        with pytest.raises(InvalidBracketPartitionError):
            make_tier_set(brackets=())
