"""
Module: discount_kernel.models.campaign
Responsibility: ORM persistence for seasonal campaigns.

Architecture position: Kernel > Models.  May import from db/ only.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import CheckConstraint, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from discount_kernel.db.base import TrackedBase
from discount_kernel.db.types import UUIDString

if TYPE_CHECKING:
    from discount_kernel.domain.campaigns import SeasonalCampaign


class SeasonalCampaignModel(TrackedBase):
    """Persistent seasonal campaign."""

    __tablename__ = "seasonal_campaigns"

    __table_args__ = (
        Index("ix_seasonal_campaigns_org_window", "org_id", "is_active", "starts_at", "expires_at"),
        CheckConstraint("expires_at >= starts_at", name="ck_seasonal_campaigns_window"),
    )

    org_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    banner_text: Mapped[str | None] = mapped_column(String(500), nullable=True)
    discount_type: Mapped[str] = mapped_column(String(20), nullable=False)
    discount_value: Mapped[Decimal] = mapped_column(nullable=False)
    max_discount_amount: Mapped[Decimal | None] = mapped_column(nullable=True)
    min_order_amount: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    promo_code: Mapped[str | None] = mapped_column(String(50), nullable=True)
    starts_at: Mapped[datetime] = mapped_column(nullable=False)
    expires_at: Mapped[datetime] = mapped_column(nullable=False)
    is_active: Mapped[bool] = mapped_column(nullable=False, default=True)
    views: Mapped[int] = mapped_column(nullable=False, default=0)
    times_applied: Mapped[int] = mapped_column(nullable=False, default=0)
    total_discount_given: Mapped[Decimal] = mapped_column(
        nullable=False, default=Decimal("0"),
    )

    def __repr__(self) -> str:
        return f"<SeasonalCampaign {self.name} {self.starts_at}..{self.expires_at}>"

    def to_dto(self) -> SeasonalCampaign:
        from discount_kernel.domain.campaigns import (
            SeasonalCampaign as SeasonalCampaignDTO,
        )
        from discount_kernel.domain.values import DiscountType

        return SeasonalCampaignDTO(
            id=self.id,
            org_id=self.org_id,
            name=self.name,
            description=self.description,
            banner_text=self.banner_text,
            discount_type=DiscountType(self.discount_type),
            discount_value=self.discount_value,
            max_discount_amount=self.max_discount_amount,
            min_order_amount=self.min_order_amount,
            promo_code=self.promo_code,
            starts_at=self.starts_at,
            expires_at=self.expires_at,
            is_active=self.is_active,
            views=self.views,
            times_applied=self.times_applied,
            total_discount_given=self.total_discount_given,
        )

    @classmethod
    def from_dto(cls, dto: SeasonalCampaign) -> SeasonalCampaignModel:
        return cls(
            id=dto.id,
            org_id=dto.org_id,
            name=dto.name,
            description=dto.description,
            banner_text=dto.banner_text,
            discount_type=dto.discount_type.value,
            discount_value=dto.discount_value,
            max_discount_amount=dto.max_discount_amount,
            min_order_amount=dto.min_order_amount,
            promo_code=dto.promo_code,
            starts_at=dto.starts_at,
            expires_at=dto.expires_at,
            is_active=dto.is_active,
            views=dto.views,
            times_applied=dto.times_applied,
            total_discount_given=dto.total_discount_given,
        )
