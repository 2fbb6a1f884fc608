"""
Tests for PromoCodeService.

Covers:
- Creation, normalization and duplicates
- Validation against stored codes and prior usage
- Usage recording with total and per-customer caps
- Administration (list, deactivate, history)
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
)
from discount_kernel.domain.values import DiscountType
from discount_kernel.exceptions import (
    DiscountCodeNotFoundError,
    DuplicateDiscountCodeError,
    InvalidDiscountValueError,
)


@pytest.fixture
def summer10(code_service, org_id):
    return code_service.create(
        org_id,
        " summer10 ",
        "Summer Savings",
        DiscountType.PERCENT,
        Decimal("10"),
        max_discount_amount=Decimal("500"),
    )


class TestCreate:

    def test_code_is_normalized(self, summer10, now):
        assert summer10.code == "SUMMER10"
        assert summer10.starts_at == now
        assert summer10.max_uses_per_customer == 1

    def test_duplicate_ignores_case(self, code_service, summer10, org_id):
        with pytest.raises(DuplicateDiscountCodeError) as exc_info:
            code_service.create(org_id, "Summer10", "Again", DiscountType.FIXED, Decimal("5"))
        assert exc_info.value.code == "DUPLICATE_DISCOUNT_CODE"

    def test_same_code_in_another_org(self, code_service, summer10):
        other = code_service.create(uuid4(), "SUMMER10", "Elsewhere", DiscountType.FIXED, Decimal("5"))
        assert other.code == "SUMMER10"

    def test_invalid_percent_rejected(self, code_service, org_id):
        with pytest.raises(InvalidDiscountValueError):
            code_service.create(org_id, "BIG", "Too big", DiscountType.PERCENT, Decimal("150"))


class TestValidate:

    def test_capped_percent(self, code_service, summer10, org_id):
        result = code_service.validate(org_id, "summer10", Decimal("10000"))
        assert result.valid
        assert result.discount_code_id == summer10.id
        assert result.discount_amount == Decimal("500.00")

    def test_unknown_code(self, code_service, org_id):
        assert code_service.validate(org_id, "NOPE", Decimal("100")).reason == INVALID_CODE

    def test_other_org_code_invisible(self, code_service, summer10):
        assert code_service.validate(uuid4(), "SUMMER10", Decimal("100")).reason == INVALID_CODE

    def test_expired(self, code_service, org_id, deterministic_clock, now):
        code_service.create(
            org_id, "FLASH", "Flash", DiscountType.FIXED, Decimal("20"),
            expires_at=now + timedelta(hours=1),
        )
        deterministic_clock.advance_hours(2)
        assert code_service.validate(org_id, "FLASH", Decimal("100")).reason == EXPIRED_CODE

    def test_prior_use_by_email_is_case_insensitive(self, code_service, summer10, org_id):
        code_service.record_usage(
            summer10.id, Decimal("1000"), Decimal("100"), customer_email="Pat@Example.com",
        )
        result = code_service.validate(
            org_id, "SUMMER10", Decimal("1000"), customer_email="pat@example.com",
        )
        assert result.reason == ALREADY_USED

    def test_prior_use_by_customer_id(self, code_service, summer10, org_id):
        customer = uuid4()
        code_service.record_usage(summer10.id, Decimal("1000"), Decimal("100"), customer_id=customer)
        assert code_service.customer_uses(summer10.id, customer_id=customer) == 1
        result = code_service.validate(org_id, "SUMMER10", Decimal("1000"), customer_id=customer)
        assert result.reason == ALREADY_USED

    def test_logs_validation(self, code_service, summer10, org_id, captured_logs):
        code_service.validate(org_id, "SUMMER10", Decimal("200"))
        (record,) = [r for r in captured_logs() if r["message"] == "promo_code_validated"]
        assert record["valid"] is True
        assert record["discount_amount"] == "20.00"


class TestRecordUsage:

    def test_records_and_counts(self, code_service, summer10, actor_id, now):
        proposal = uuid4()
        result = code_service.record_usage(
            summer10.id, Decimal("1000"), Decimal("100"),
            proposal_id=proposal, customer_id=uuid4(), applied_by=actor_id,
        )
        assert result.recorded
        assert result.usage.proposal_id == proposal
        assert result.usage.applied_at == now

        (stored,) = code_service.list(summer10.org_id)
        assert stored.times_used == 1
        assert stored.total_discount_given == Decimal("100")

    def test_total_cap(self, code_service, org_id):
        code = code_service.create(
            org_id, "ONCE", "Once", DiscountType.FIXED, Decimal("10"),
            max_uses_total=1, max_uses_per_customer=None,
        )
        first = code_service.record_usage(code.id, Decimal("100"), Decimal("10"))
        second = code_service.record_usage(code.id, Decimal("100"), Decimal("10"))

        assert first.recorded
        assert not second.recorded
        assert second.reason == USAGE_LIMIT_REACHED
        assert code_service.list(org_id)[0].times_used == 1
        assert len(code_service.usage_history(code.id)) == 1

    def test_per_customer_cap(self, code_service, summer10):
        customer = uuid4()
        code_service.record_usage(summer10.id, Decimal("100"), Decimal("10"), customer_id=customer)
        again = code_service.record_usage(summer10.id, Decimal("100"), Decimal("10"), customer_id=customer)
        assert again.reason == ALREADY_USED

    def test_per_customer_rejection_undoes_increment(self, code_service, summer10):
        """A customer over the cap leaves the counters and history untouched."""
        customer = uuid4()
        code_service.record_usage(summer10.id, Decimal("100"), Decimal("10"), customer_id=customer)
        again = code_service.record_usage(summer10.id, Decimal("200"), Decimal("20"), customer_id=customer)

        assert not again.recorded
        assert again.usage is None
        (stored,) = code_service.list(summer10.org_id)
        assert stored.times_used == 1
        assert stored.total_discount_given == Decimal("10")
        assert len(code_service.usage_history(summer10.id)) == 1

    def test_other_customer_records_after_rejection(self, code_service, summer10):
        first = uuid4()
        code_service.record_usage(summer10.id, Decimal("100"), Decimal("10"), customer_id=first)
        code_service.record_usage(summer10.id, Decimal("100"), Decimal("10"), customer_id=first)

        other = code_service.record_usage(summer10.id, Decimal("100"), Decimal("10"), customer_id=uuid4())
        assert other.recorded
        assert code_service.list(summer10.org_id)[0].times_used == 2

    def test_validate_after_cap_reached(self, code_service, org_id):
        code = code_service.create(
            org_id, "TWICE", "Twice", DiscountType.FIXED, Decimal("10"),
            max_uses_total=2, max_uses_per_customer=None,
        )
        for _ in range(2):
            code_service.record_usage(code.id, Decimal("100"), Decimal("10"))
        assert code_service.validate(org_id, "TWICE", Decimal("100")).reason == USAGE_LIMIT_REACHED

    def test_unknown_code(self, code_service):
        with pytest.raises(DiscountCodeNotFoundError):
            code_service.record_usage(uuid4(), Decimal("100"), Decimal("10"))


class TestAdministration:

    def test_list_sorted_and_filtered(self, code_service, org_id):
        code_service.create(org_id, "ZULU", "Z", DiscountType.FIXED, Decimal("1"))
        code_service.create(org_id, "ALPHA", "A", DiscountType.FIXED, Decimal("1"), is_active=False)
        assert [c.code for c in code_service.list(org_id)] == ["ALPHA", "ZULU"]
        assert [c.code for c in code_service.list(org_id, active_only=True)] == ["ZULU"]

    def test_deactivate(self, code_service, summer10, org_id):
        assert not code_service.deactivate(summer10.id).is_active
        assert code_service.validate(org_id, "SUMMER10", Decimal("100")).reason == INVALID_CODE

    def test_usage_history_most_recent_first(self, code_service, org_id, deterministic_clock):
        code = code_service.create(
            org_id, "MULTI", "Multi", DiscountType.FIXED, Decimal("5"), max_uses_per_customer=None,
        )
        first = code_service.record_usage(code.id, Decimal("100"), Decimal("5"))
        deterministic_clock.advance(60)
        second = code_service.record_usage(code.id, Decimal("200"), Decimal("5"))

        history = code_service.usage_history(code.id)
        assert [u.id for u in history] == [second.usage.id, first.usage.id]
