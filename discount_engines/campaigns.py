"""
discount_engines.campaigns -- Seasonal campaign windows and countdowns.

Architecture position:
    Engines -- pure calculation layer, zero I/O.  ``now`` is passed in.

Invariants enforced:
    - A campaign is running iff ``is_active`` and
      ``starts_at <= now <= expires_at``.
    - Countdown parts are floored; ``is_expiring_soon`` is strict
      (``remaining < window``).
"""

from __future__ import annotations

from collections.abc import Sequence
from datetime import datetime, timedelta

from discount_engines.tracer import traced_engine
from discount_kernel.domain.campaigns import (
    ActiveCampaign,
    SeasonalCampaign,
    TimeRemaining,
)

DEFAULT_EXPIRING_SOON_HOURS = 48


def time_remaining(expires_at: datetime, now: datetime) -> TimeRemaining:
    total_seconds = max(int((expires_at - now).total_seconds()), 0)
    days, rest = divmod(total_seconds, 86_400)
    hours, rest = divmod(rest, 3_600)
    return TimeRemaining(days=days, hours=hours, minutes=rest // 60)


@traced_engine("campaigns", "1.0", fingerprint_fields=("now", "expiring_soon_hours"))
def active_campaigns(
    campaigns: Sequence[SeasonalCampaign],
    now: datetime,
    expiring_soon_hours: int = DEFAULT_EXPIRING_SOON_HOURS,
) -> tuple[ActiveCampaign, ...]:
    window = timedelta(hours=expiring_soon_hours)
    return tuple(
        ActiveCampaign(
            campaign=campaign,
            time_remaining=time_remaining(campaign.expires_at, now),
            is_expiring_soon=(campaign.expires_at - now) < window,
        )
        for campaign in campaigns
        if campaign.is_running(now)
    )
