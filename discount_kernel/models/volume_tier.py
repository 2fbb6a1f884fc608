"""
Module: discount_kernel.models.volume_tier
Responsibility: ORM persistence for volume discount tier sets.

Architecture position: Kernel > Models.  May import from db/ only.

Brackets are stored as a JSON list.  ``to_dto`` rebuilds the domain tier
set, which re-validates the bracket partition, so a hand-edited row with an
overlap or gap raises InvalidBracketPartitionError at load time.
"""

from __future__ import annotations

from decimal import Decimal
from typing import TYPE_CHECKING, Any
from uuid import UUID

from sqlalchemy import JSON, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from discount_kernel.db.base import TrackedBase
from discount_kernel.db.types import UUIDString

if TYPE_CHECKING:
    from discount_kernel.domain.volume import VolumeDiscountTierSet


def _decimal_or_none(value: Any) -> Decimal | None:
    if value is None:
        return None
    return Decimal(str(value))


class VolumeDiscountTierSetModel(TrackedBase):
    """Persistent tier set."""

    __tablename__ = "volume_discount_tiers"

    __table_args__ = (
        Index("ix_volume_discount_tiers_org_measurement", "org_id", "measurement_type"),
    )

    org_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    measurement_type: Mapped[str] = mapped_column(String(30), nullable=False)
    service_type: Mapped[str | None] = mapped_column(String(100), nullable=True)
    tiers: Mapped[list[dict[str, Any]]] = mapped_column(JSON, nullable=False, default=list)
    step: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("1"))
    stackable: Mapped[bool] = mapped_column(nullable=False, default=False)
    priority: Mapped[int] = mapped_column(nullable=False, default=0)
    is_active: Mapped[bool] = mapped_column(nullable=False, default=True)

    def to_dto(self) -> VolumeDiscountTierSet:
        from discount_kernel.domain.volume import (
            MeasurementType,
            TierLevel,
            VolumeDiscountTierSet as VolumeDiscountTierSetDTO,
        )

        levels = tuple(
            TierLevel(
                min=Decimal(str(item["min"])),
                max=_decimal_or_none(item.get("max")),
                discount_percent=Decimal(
                    str(item.get("discount_percent", item.get("discountPercent", "0"))),
                ),
                label=item.get("label"),
            )
            for item in self.tiers
        )
        return VolumeDiscountTierSetDTO(
            id=self.id,
            org_id=self.org_id,
            name=self.name,
            description=self.description,
            measurement_type=MeasurementType(self.measurement_type),
            service_type=self.service_type,
            tiers=levels,
            step=self.step,
            stackable=self.stackable,
            priority=self.priority,
            is_active=self.is_active,
        )

    @classmethod
    def from_dto(cls, dto: VolumeDiscountTierSet) -> VolumeDiscountTierSetModel:
        return cls(
            id=dto.id,
            org_id=dto.org_id,
            name=dto.name,
            description=dto.description,
            measurement_type=dto.measurement_type.value,
            service_type=dto.service_type,
            tiers=[
                {
                    "min": str(level.min),
                    "max": None if level.max is None else str(level.max),
                    "discount_percent": str(level.discount_percent),
                    "label": level.label,
                }
                for level in dto.tiers
            ],
            step=dto.step,
            stackable=dto.stackable,
            priority=dto.priority,
            is_active=dto.is_active,
        )
