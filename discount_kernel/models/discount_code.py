"""
Module: discount_kernel.models.discount_code
Responsibility: ORM persistence for promo codes and their usage ledger.

Architecture position: Kernel > Models.  May import from db/ only.

Invariants enforced:
    - Code uniqueness: UNIQUE(org_id, code).  Codes are stored normalized
      (trimmed, upper-cased) so the constraint is case-insensitive.
    - Usage cap: ``times_used`` is only ever changed by the conditional
      UPDATE in PromoCodeService.record_usage, which refuses to pass
      ``max_uses_total``.

Failure modes:
    - IntegrityError on duplicate (org_id, code).
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import ForeignKey, Index, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from discount_kernel.db.base import TrackedBase
from discount_kernel.db.types import UUIDString

if TYPE_CHECKING:
    from discount_kernel.domain.codes import CodeUsage, DiscountCode


class DiscountCodeModel(TrackedBase):
    """Persistent promo code."""

    __tablename__ = "discount_codes"

    __table_args__ = (
        UniqueConstraint("org_id", "code", name="uq_discount_codes_org_code"),
        Index("ix_discount_codes_org_active", "org_id", "is_active"),
    )

    org_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    code: Mapped[str] = mapped_column(String(50), nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    discount_type: Mapped[str] = mapped_column(String(20), nullable=False)
    discount_value: Mapped[Decimal] = mapped_column(nullable=False)
    max_discount_amount: Mapped[Decimal | None] = mapped_column(nullable=True)
    min_order_amount: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    max_uses_total: Mapped[int | None] = mapped_column(nullable=True)
    max_uses_per_customer: Mapped[int | None] = mapped_column(nullable=True, default=1)
    starts_at: Mapped[datetime] = mapped_column(nullable=False)
    expires_at: Mapped[datetime | None] = mapped_column(nullable=True)
    is_active: Mapped[bool] = mapped_column(nullable=False, default=True)
    times_used: Mapped[int] = mapped_column(nullable=False, default=0)
    total_discount_given: Mapped[Decimal] = mapped_column(
        nullable=False, default=Decimal("0"),
    )

    def __repr__(self) -> str:
        return f"<DiscountCode {self.code} org={self.org_id} used={self.times_used}>"

    def to_dto(self) -> DiscountCode:
        """Convert ORM model to frozen domain DTO."""
        from discount_kernel.domain.codes import DiscountCode as DiscountCodeDTO
        from discount_kernel.domain.values import DiscountType

        return DiscountCodeDTO(
            id=self.id,
            org_id=self.org_id,
            code=self.code,
            name=self.name,
            description=self.description,
            discount_type=DiscountType(self.discount_type),
            discount_value=self.discount_value,
            max_discount_amount=self.max_discount_amount,
            min_order_amount=self.min_order_amount,
            max_uses_total=self.max_uses_total,
            max_uses_per_customer=self.max_uses_per_customer,
            starts_at=self.starts_at,
            expires_at=self.expires_at,
            is_active=self.is_active,
            times_used=self.times_used,
            total_discount_given=self.total_discount_given,
        )

    @classmethod
    def from_dto(cls, dto: DiscountCode) -> DiscountCodeModel:
        """Create ORM model from domain DTO."""
        return cls(
            id=dto.id,
            org_id=dto.org_id,
            code=dto.code,
            name=dto.name,
            description=dto.description,
            discount_type=dto.discount_type.value,
            discount_value=dto.discount_value,
            max_discount_amount=dto.max_discount_amount,
            min_order_amount=dto.min_order_amount,
            max_uses_total=dto.max_uses_total,
            max_uses_per_customer=dto.max_uses_per_customer,
            starts_at=dto.starts_at,
            expires_at=dto.expires_at,
            is_active=dto.is_active,
            times_used=dto.times_used,
            total_discount_given=dto.total_discount_given,
        )


class CodeUsageModel(TrackedBase):
    """Persistent code usage record. Append-only."""

    __tablename__ = "discount_code_usage"

    __table_args__ = (
        Index("ix_discount_code_usage_code_customer", "discount_code_id", "customer_id"),
        Index("ix_discount_code_usage_code_email", "discount_code_id", "customer_email"),
    )

    discount_code_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("discount_codes.id"), nullable=False,
    )
    org_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    proposal_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    customer_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    customer_email: Mapped[str | None] = mapped_column(String(320), nullable=True)
    order_amount: Mapped[Decimal] = mapped_column(nullable=False)
    discount_amount: Mapped[Decimal] = mapped_column(nullable=False)
    applied_at: Mapped[datetime] = mapped_column(nullable=False)
    applied_by: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)

    def to_dto(self) -> CodeUsage:
        from discount_kernel.domain.codes import CodeUsage as CodeUsageDTO

        return CodeUsageDTO(
            id=self.id,
            discount_code_id=self.discount_code_id,
            org_id=self.org_id,
            proposal_id=self.proposal_id,
            customer_id=self.customer_id,
            customer_email=self.customer_email,
            order_amount=self.order_amount,
            discount_amount=self.discount_amount,
            applied_at=self.applied_at,
            applied_by=self.applied_by,
        )

    @classmethod
    def from_dto(cls, dto: CodeUsage) -> CodeUsageModel:
        return cls(
            id=dto.id,
            discount_code_id=dto.discount_code_id,
            org_id=dto.org_id,
            proposal_id=dto.proposal_id,
            customer_id=dto.customer_id,
            customer_email=dto.customer_email,
            order_amount=dto.order_amount,
            discount_amount=dto.discount_amount,
            applied_at=dto.applied_at,
            applied_by=dto.applied_by,
        )
