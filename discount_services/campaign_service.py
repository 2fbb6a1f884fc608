"""
discount_services.campaign_service -- Seasonal campaign persistence.

Responsibility:
    Create and list campaigns, report the campaigns running now with their
    countdowns, and keep view/application counters.

Invariants enforced:
    - ``expires_at >= starts_at`` (checked here and by a DB constraint).
    - Counters move only through atomic in-database increments.
    - Configuration writes invalidate the org's cached rule set.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from uuid import UUID, uuid4

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from discount_engines.amounts import check_discount_value
from discount_engines.campaigns import DEFAULT_EXPIRING_SOON_HOURS, active_campaigns
from discount_kernel.domain.campaigns import ActiveCampaign, SeasonalCampaign
from discount_kernel.domain.clock import Clock, SystemClock
from discount_kernel.domain.values import ZERO, DiscountType
from discount_kernel.exceptions import CampaignNotFoundError, ConfigurationError
from discount_kernel.logging_config import get_logger
from discount_kernel.models.campaign import SeasonalCampaignModel
from discount_services.rule_set_cache import RuleSetCache

logger = get_logger("services.campaigns")


class SeasonalCampaignService:
    """Seasonal campaign administration and countdowns."""

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        cache: RuleSetCache | None = None,
        expiring_soon_hours: int = DEFAULT_EXPIRING_SOON_HOURS,
    ):
        self._session = session
        self._clock = clock or SystemClock()
        self._cache = cache
        self._expiring_soon_hours = expiring_soon_hours

    def create(
        self,
        org_id: UUID,
        name: str,
        starts_at: datetime,
        expires_at: datetime,
        discount_type: DiscountType,
        discount_value: Decimal,
        *,
        description: str | None = None,
        banner_text: str | None = None,
        max_discount_amount: Decimal | None = None,
        min_order_amount: Decimal = ZERO,
        promo_code: str | None = None,
        is_active: bool = True,
    ) -> SeasonalCampaign:
        check_discount_value(discount_type, discount_value)
        if expires_at < starts_at:
            raise ConfigurationError(
                f"Campaign '{name}' expires before it starts "
                f"({expires_at.isoformat()} < {starts_at.isoformat()})"
            )
        campaign = SeasonalCampaign(
            id=uuid4(),
            org_id=org_id,
            name=name,
            starts_at=starts_at,
            expires_at=expires_at,
            discount_type=discount_type,
            discount_value=discount_value,
            description=description,
            banner_text=banner_text,
            max_discount_amount=max_discount_amount,
            min_order_amount=min_order_amount,
            promo_code=promo_code,
            is_active=is_active,
        )
        self._session.add(SeasonalCampaignModel.from_dto(campaign))
        self._session.flush()
        if self._cache is not None:
            self._cache.invalidate(org_id)
        logger.info(
            "campaign_created",
            extra={"org_id": str(org_id), "campaign_id": str(campaign.id), "name": name},
        )
        return campaign

    def list(self, org_id: UUID, active_only: bool = False) -> list[SeasonalCampaign]:
        stmt = select(SeasonalCampaignModel).where(SeasonalCampaignModel.org_id == org_id)
        if active_only:
            stmt = stmt.where(SeasonalCampaignModel.is_active.is_(True))
        stmt = stmt.order_by(SeasonalCampaignModel.starts_at)
        return [m.to_dto() for m in self._session.execute(stmt).scalars()]

    def get_active(self, org_id: UUID) -> tuple[ActiveCampaign, ...]:
        """Campaigns running now, each with its countdown."""
        now = self._clock.now()
        rows = self._session.execute(
            select(SeasonalCampaignModel)
            .where(
                SeasonalCampaignModel.org_id == org_id,
                SeasonalCampaignModel.is_active.is_(True),
                SeasonalCampaignModel.starts_at <= now,
                SeasonalCampaignModel.expires_at >= now,
            )
            .order_by(SeasonalCampaignModel.expires_at)
        ).scalars()
        return active_campaigns(
            [row.to_dto() for row in rows], now, self._expiring_soon_hours,
        )

    def _increment(self, campaign_id: UUID, **values) -> None:
        result = self._session.execute(
            update(SeasonalCampaignModel)
            .where(SeasonalCampaignModel.id == campaign_id)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            raise CampaignNotFoundError(str(campaign_id))

    def record_view(self, campaign_id: UUID) -> None:
        self._increment(campaign_id, views=SeasonalCampaignModel.views + 1)

    def record_application(self, campaign_id: UUID, amount: Decimal) -> None:
        self._increment(
            campaign_id,
            times_applied=SeasonalCampaignModel.times_applied + 1,
            total_discount_given=SeasonalCampaignModel.total_discount_given + amount,
        )
        logger.info(
            "campaign_applied",
            extra={"campaign_id": str(campaign_id), "amount": str(amount)},
        )
