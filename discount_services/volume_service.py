"""
discount_services.volume_service -- Volume tier set persistence and lookup.

Bracket validation happens when the domain ``VolumeDiscountTierSet`` is
constructed, so an invalid partition never reaches the database.  Loading
a stored set re-validates it.
"""

from __future__ import annotations

from decimal import Decimal
from uuid import UUID, uuid4

from sqlalchemy import select
from sqlalchemy.orm import Session

from discount_engines.volume import resolve_volume_tier
from discount_kernel.domain.volume import (
    MeasurementType,
    TierLevel,
    TierResult,
    VolumeDiscountTierSet,
)
from discount_kernel.logging_config import get_logger
from discount_kernel.models.volume_tier import VolumeDiscountTierSetModel
from discount_services.rule_set_cache import RuleSetCache

logger = get_logger("services.volume")


class VolumeTierService:
    """Administration and lookup of volume discount tier sets."""

    def __init__(self, session: Session, cache: RuleSetCache | None = None):
        self._session = session
        self._cache = cache

    def create(
        self,
        org_id: UUID,
        name: str,
        measurement_type: MeasurementType,
        tiers: tuple[TierLevel, ...],
        *,
        service_type: str | None = None,
        description: str | None = None,
        step: Decimal = Decimal("1"),
        stackable: bool = False,
        priority: int = 0,
        is_active: bool = True,
    ) -> VolumeDiscountTierSet:
        tier_set = VolumeDiscountTierSet(
            id=uuid4(),
            org_id=org_id,
            name=name,
            measurement_type=measurement_type,
            tiers=tuple(tiers),
            service_type=service_type,
            description=description,
            step=step,
            stackable=stackable,
            is_active=is_active,
            priority=priority,
        )
        self._session.add(VolumeDiscountTierSetModel.from_dto(tier_set))
        self._session.flush()
        if self._cache is not None:
            self._cache.invalidate(org_id)
        logger.info(
            "volume_tier_set_created",
            extra={
                "org_id": str(org_id),
                "tier_set_id": str(tier_set.id),
                "measurement_type": measurement_type.value,
                "brackets": len(tier_set.tiers),
            },
        )
        return tier_set

    def list(self, org_id: UUID, active_only: bool = True) -> list[VolumeDiscountTierSet]:
        stmt = select(VolumeDiscountTierSetModel).where(
            VolumeDiscountTierSetModel.org_id == org_id,
        )
        if active_only:
            stmt = stmt.where(VolumeDiscountTierSetModel.is_active.is_(True))
        stmt = stmt.order_by(
            VolumeDiscountTierSetModel.priority.desc(),
            VolumeDiscountTierSetModel.created_at,
        )
        return [m.to_dto() for m in self._session.execute(stmt).scalars()]

    def calculate(
        self,
        org_id: UUID,
        measurement_type: MeasurementType,
        value: Decimal,
        service_type: str | None = None,
    ) -> TierResult | None:
        return resolve_volume_tier(
            self.list(org_id), measurement_type, value, service_type,
        )
