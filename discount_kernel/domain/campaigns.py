"""
Seasonal campaign domain types (``discount_kernel.domain.campaigns``).
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from uuid import UUID

from discount_kernel.domain.values import ZERO, DiscountType


@dataclass(frozen=True)
class SeasonalCampaign:
    """A time-boxed marketing discount."""

    id: UUID
    org_id: UUID
    name: str
    starts_at: datetime
    expires_at: datetime
    discount_type: DiscountType
    discount_value: Decimal
    description: str | None = None
    banner_text: str | None = None
    max_discount_amount: Decimal | None = None
    min_order_amount: Decimal = ZERO
    promo_code: str | None = None
    is_active: bool = True
    views: int = 0
    times_applied: int = 0
    total_discount_given: Decimal = ZERO

    def is_running(self, now: datetime) -> bool:
        return self.is_active and self.starts_at <= now <= self.expires_at


@dataclass(frozen=True)
class TimeRemaining:
    days: int
    hours: int
    minutes: int


@dataclass(frozen=True)
class ActiveCampaign:
    campaign: SeasonalCampaign
    time_remaining: TimeRemaining
    is_expiring_soon: bool
