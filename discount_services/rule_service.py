"""
discount_services.rule_service -- Automatic discount rule persistence.

Responsibility:
    Create, list and deactivate an organization's automatic rules and keep
    their application counters.  Matching is pure and lives in
    ``discount_engines.auto_rules``.

Invariants enforced:
    - Counters move only through an atomic in-database increment.
    - Every configuration write invalidates the org's cached rule set.
    - Flush-only: never commits or rolls back the session.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from uuid import UUID, uuid4

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from discount_engines.amounts import check_discount_value
from discount_kernel.domain.clock import Clock, SystemClock
from discount_kernel.domain.rules import AutoDiscountRule, RuleCondition
from discount_kernel.domain.values import DiscountType
from discount_kernel.exceptions import AutoRuleNotFoundError
from discount_kernel.logging_config import get_logger
from discount_kernel.models.auto_rule import AutoDiscountRuleModel
from discount_services.rule_set_cache import RuleSetCache

logger = get_logger("services.auto_rules")


class AutoRuleService:
    """Administration and counters for automatic discount rules."""

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        cache: RuleSetCache | None = None,
    ):
        self._session = session
        self._clock = clock or SystemClock()
        self._cache = cache

    def _invalidate(self, org_id: UUID) -> None:
        if self._cache is not None:
            self._cache.invalidate(org_id)

    def _get(self, rule_id: UUID) -> AutoDiscountRuleModel:
        model = self._session.get(AutoDiscountRuleModel, rule_id)
        if model is None:
            raise AutoRuleNotFoundError(str(rule_id))
        return model

    def create(
        self,
        org_id: UUID,
        name: str,
        condition: RuleCondition,
        discount_type: DiscountType,
        discount_value: Decimal,
        *,
        priority: int = 0,
        description: str | None = None,
        max_discount_amount: Decimal | None = None,
        stackable: bool = False,
        stack_with_codes: bool = True,
        starts_at: datetime | None = None,
        expires_at: datetime | None = None,
        is_active: bool = True,
    ) -> AutoDiscountRule:
        check_discount_value(discount_type, discount_value)
        rule = AutoDiscountRule(
            id=uuid4(),
            org_id=org_id,
            name=name,
            condition=condition,
            discount_type=discount_type,
            discount_value=discount_value,
            priority=priority,
            description=description,
            max_discount_amount=max_discount_amount,
            stackable=stackable,
            stack_with_codes=stack_with_codes,
            starts_at=starts_at,
            expires_at=expires_at,
            is_active=is_active,
        )
        self._session.add(AutoDiscountRuleModel.from_dto(rule))
        self._session.flush()
        self._invalidate(org_id)
        logger.info(
            "auto_rule_created",
            extra={
                "org_id": str(org_id),
                "rule_id": str(rule.id),
                "rule_type": rule.rule_type,
                "priority": priority,
            },
        )
        return rule

    def get(self, rule_id: UUID) -> AutoDiscountRule:
        return self._get(rule_id).to_dto()

    def list(self, org_id: UUID, active_only: bool = False) -> list[AutoDiscountRule]:
        """Rules in descending priority, creation order within a priority."""
        stmt = select(AutoDiscountRuleModel).where(AutoDiscountRuleModel.org_id == org_id)
        if active_only:
            stmt = stmt.where(AutoDiscountRuleModel.is_active.is_(True))
        stmt = stmt.order_by(
            AutoDiscountRuleModel.priority.desc(),
            AutoDiscountRuleModel.created_at,
        )
        return [m.to_dto() for m in self._session.execute(stmt).scalars()]

    def deactivate(self, rule_id: UUID) -> AutoDiscountRule:
        model = self._get(rule_id)
        model.is_active = False
        self._session.flush()
        self._invalidate(model.org_id)
        logger.info("auto_rule_deactivated", extra={"rule_id": str(rule_id)})
        return model.to_dto()

    def record_application(self, rule_id: UUID, amount: Decimal) -> None:
        result = self._session.execute(
            update(AutoDiscountRuleModel)
            .where(AutoDiscountRuleModel.id == rule_id)
            .values(
                times_applied=AutoDiscountRuleModel.times_applied + 1,
                total_discount_given=AutoDiscountRuleModel.total_discount_given + amount,
            )
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            raise AutoRuleNotFoundError(str(rule_id))
        logger.info(
            "auto_rule_applied",
            extra={"rule_id": str(rule_id), "amount": str(amount)},
        )
