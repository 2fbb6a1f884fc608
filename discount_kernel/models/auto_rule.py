"""
Module: discount_kernel.models.auto_rule
Responsibility: ORM persistence for automatic discount rules.

Architecture position: Kernel > Models.  May import from db/ only.

The condition is stored as ``(rule_type, conditions JSON)``.  ``to_dto``
parses it into a typed condition variant; an unknown ``rule_type`` becomes
``UnsupportedCondition`` rather than failing the load.

Failure modes:
    - MalformedRuleConditionError from to_dto when a known rule_type has a
      conditions payload missing required fields.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING, Any
from uuid import UUID

from sqlalchemy import JSON, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from discount_kernel.db.base import TrackedBase
from discount_kernel.db.types import UUIDString

if TYPE_CHECKING:
    from discount_kernel.domain.rules import AutoDiscountRule


class AutoDiscountRuleModel(TrackedBase):
    """Persistent automatic discount rule."""

    __tablename__ = "auto_discount_rules"

    __table_args__ = (
        Index("ix_auto_discount_rules_org_active", "org_id", "is_active", "priority"),
    )

    org_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    rule_type: Mapped[str] = mapped_column(String(50), nullable=False)
    conditions: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)
    discount_type: Mapped[str] = mapped_column(String(20), nullable=False)
    discount_value: Mapped[Decimal] = mapped_column(nullable=False)
    max_discount_amount: Mapped[Decimal | None] = mapped_column(nullable=True)
    priority: Mapped[int] = mapped_column(nullable=False, default=0)
    stackable: Mapped[bool] = mapped_column(nullable=False, default=False)
    stack_with_codes: Mapped[bool] = mapped_column(nullable=False, default=True)
    starts_at: Mapped[datetime | None] = mapped_column(nullable=True)
    expires_at: Mapped[datetime | None] = mapped_column(nullable=True)
    is_active: Mapped[bool] = mapped_column(nullable=False, default=True)
    times_applied: Mapped[int] = mapped_column(nullable=False, default=0)
    total_discount_given: Mapped[Decimal] = mapped_column(
        nullable=False, default=Decimal("0"),
    )

    def __repr__(self) -> str:
        return f"<AutoDiscountRule {self.name} type={self.rule_type} priority={self.priority}>"

    def to_dto(self) -> AutoDiscountRule:
        """Convert ORM model to frozen domain DTO."""
        from discount_kernel.domain.rules import (
            AutoDiscountRule as AutoDiscountRuleDTO,
            parse_condition,
        )
        from discount_kernel.domain.values import DiscountType

        return AutoDiscountRuleDTO(
            id=self.id,
            org_id=self.org_id,
            name=self.name,
            description=self.description,
            condition=parse_condition(self.rule_type, self.conditions),
            discount_type=DiscountType(self.discount_type),
            discount_value=self.discount_value,
            max_discount_amount=self.max_discount_amount,
            priority=self.priority,
            stackable=self.stackable,
            stack_with_codes=self.stack_with_codes,
            starts_at=self.starts_at,
            expires_at=self.expires_at,
            is_active=self.is_active,
            times_applied=self.times_applied,
            total_discount_given=self.total_discount_given,
        )

    @classmethod
    def from_dto(cls, dto: AutoDiscountRule) -> AutoDiscountRuleModel:
        """Create ORM model from domain DTO."""
        from discount_kernel.domain.rules import condition_to_payload

        return cls(
            id=dto.id,
            org_id=dto.org_id,
            name=dto.name,
            description=dto.description,
            rule_type=dto.rule_type,
            conditions=condition_to_payload(dto.condition),
            discount_type=dto.discount_type.value,
            discount_value=dto.discount_value,
            max_discount_amount=dto.max_discount_amount,
            priority=dto.priority,
            stackable=dto.stackable,
            stack_with_codes=dto.stack_with_codes,
            starts_at=dto.starts_at,
            expires_at=dto.expires_at,
            is_active=dto.is_active,
            times_applied=dto.times_applied,
            total_discount_given=dto.total_discount_given,
        )
