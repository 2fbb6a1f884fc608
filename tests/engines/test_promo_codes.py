"""
Tests for promo code validation.

Covers:
- Each rejection reason
- Check order (first failure wins)
- Pricing of valid codes
"""

from datetime import timedelta
from decimal import Decimal
from uuid import uuid4

import pytest

from discount_engines.promo_codes import (
    ALREADY_USED,
    EXPIRED_CODE,
    INVALID_CODE,
    USAGE_LIMIT_REACHED,
    minimum_order_reason,
    validate_code,
)
from discount_kernel.domain.codes import DiscountCode, normalize_code
from discount_kernel.domain.values import DiscountType


@pytest.fixture
def make_code(org_id, now):
    def _make(**kwargs) -> DiscountCode:
        defaults = dict(
            id=uuid4(),
            org_id=org_id,
            code="SUMMER10",
            name="Summer 10",
            discount_type=DiscountType.PERCENT,
            discount_value=Decimal("10"),
            starts_at=now - timedelta(days=1),
        )
        defaults.update(kwargs)
        return DiscountCode(**defaults)

    return _make


class TestRejections:
    """Each failed check produces its own reason."""

    def test_missing_code(self, now):
        result = validate_code(None, now, Decimal("100"))
        assert not result.valid
        assert result.reason == INVALID_CODE
        assert result.discount_amount == Decimal("0")

    def test_inactive_code(self, make_code, now):
        result = validate_code(make_code(is_active=False), now, Decimal("100"))
        assert result.reason == INVALID_CODE

    def test_not_yet_started(self, make_code, now):
        result = validate_code(make_code(starts_at=now + timedelta(minutes=1)), now, Decimal("100"))
        assert result.reason == INVALID_CODE

    def test_expired(self, make_code, now):
        result = validate_code(make_code(expires_at=now - timedelta(seconds=1)), now, Decimal("100"))
        assert result.reason == EXPIRED_CODE

    def test_expiry_instant_is_still_valid(self, make_code, now):
        result = validate_code(make_code(expires_at=now), now, Decimal("100"))
        assert result.valid

    def test_total_usage_limit(self, make_code, now):
        result = validate_code(make_code(max_uses_total=5, times_used=5), now, Decimal("100"))
        assert result.reason == USAGE_LIMIT_REACHED

    def test_per_customer_limit(self, make_code, now):
        result = validate_code(make_code(max_uses_per_customer=1), now, Decimal("100"), customer_uses=1)
        assert result.reason == ALREADY_USED

    def test_unlimited_per_customer(self, make_code, now):
        result = validate_code(make_code(max_uses_per_customer=None), now, Decimal("100"), customer_uses=9)
        assert result.valid

    def test_minimum_order(self, make_code, now):
        result = validate_code(make_code(min_order_amount=Decimal("250")), now, Decimal("249.99"))
        assert result.reason == "Minimum order of $250.00 required"
        assert result.reason == minimum_order_reason(Decimal("250"))

    def test_minimum_order_is_inclusive(self, make_code, now):
        result = validate_code(make_code(min_order_amount=Decimal("250")), now, Decimal("250"))
        assert result.valid


class TestCheckOrder:
    """The first failing check wins."""

    def test_expired_before_usage_limit(self, make_code, now):
        code = make_code(
            expires_at=now - timedelta(days=1), max_uses_total=1, times_used=1,
        )
        assert validate_code(code, now, Decimal("100")).reason == EXPIRED_CODE

    def test_usage_limit_before_per_customer(self, make_code, now):
        code = make_code(max_uses_total=1, times_used=1, max_uses_per_customer=1)
        assert validate_code(code, now, Decimal("100"), customer_uses=1).reason == USAGE_LIMIT_REACHED

    def test_per_customer_before_minimum(self, make_code, now):
        code = make_code(min_order_amount=Decimal("1000"))
        assert validate_code(code, now, Decimal("10"), customer_uses=1).reason == ALREADY_USED

    def test_inactive_before_everything(self, make_code, now):
        code = make_code(
            is_active=False,
            expires_at=now - timedelta(days=1),
            max_uses_total=0,
            min_order_amount=Decimal("1000"),
        )
        assert validate_code(code, now, Decimal("10"), customer_uses=3).reason == INVALID_CODE


class TestValidCodes:
    """Valid codes carry their pricing."""

    def test_percent_code_capped(self, make_code, now):
        """SUMMER10 at 10% capped at $500 against $10,000."""
        code = make_code(max_discount_amount=Decimal("500"))
        result = validate_code(code, now, Decimal("10000"))

        assert result.valid
        assert result.reason is None
        assert result.discount_code_id == code.id
        assert result.code == "SUMMER10"
        assert result.discount_amount == Decimal("500.00")

    def test_fixed_code(self, make_code, now):
        code = make_code(discount_type=DiscountType.FIXED, discount_value=Decimal("75"))
        result = validate_code(code, now, Decimal("60"))
        assert result.discount_amount == Decimal("60.00")


class TestNormalizeCode:

    def test_upper_and_strip(self):
        assert normalize_code("  summer10 ") == "SUMMER10"
