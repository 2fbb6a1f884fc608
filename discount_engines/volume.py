"""
discount_engines.volume -- Volume tier resolution.

Responsibility:
    Pick the tier set for a measurement, find the bracket containing the
    measured value, and describe the next bracket for upsell messaging.

Architecture position:
    Engines -- pure calculation layer, zero I/O.

Invariants enforced:
    - Tier sets are tried in descending priority (stable on configured
      order); the first whose measurement type matches and whose service
      type is unset or equal wins.
    - Brackets partition ``[first.min, inf)`` (validated on construction),
      so every value at or above the floor resolves to exactly one
      bracket.  A fractional value inside a ``step`` gap resolves to the
      lower bracket.
    - ``discount_amount`` is only computed for money-measured sets; for
      quantity measurements the caller applies the percent to its own
      subtotal.

Failure modes:
    - Returns None when no tier set matches or the value is below the
      first bracket.
"""

from __future__ import annotations

from collections.abc import Sequence
from decimal import Decimal

from discount_engines.tracer import traced_engine
from discount_kernel.domain.values import ZERO, percent_of, round_money
from discount_kernel.domain.volume import (
    MeasurementType,
    NextTier,
    TierLevel,
    TierResult,
    VolumeDiscountTierSet,
)


def select_tier_set(
    tier_sets: Sequence[VolumeDiscountTierSet],
    measurement_type: MeasurementType,
    service_type: str | None = None,
) -> VolumeDiscountTierSet | None:
    ordered = sorted(
        (ts for ts in tier_sets if ts.is_active),
        key=lambda ts: -ts.priority,
    )
    for tier_set in ordered:
        if tier_set.measurement_type != measurement_type:
            continue
        if tier_set.service_type is None or tier_set.service_type == service_type:
            return tier_set
    return None


def bracket_index(tiers: Sequence[TierLevel], value: Decimal) -> int | None:
    """Index of the bracket holding ``value``; None below the floor.

    Scanning from the top makes the lower bracket own any value that
    falls between its ``max`` and the next bracket's ``min``.
    """
    for index in range(len(tiers) - 1, -1, -1):
        if value >= tiers[index].min:
            return index
    return None


@traced_engine(
    "volume", "1.0",
    fingerprint_fields=("measurement_type", "value", "service_type"),
)
def resolve_volume_tier(
    tier_sets: Sequence[VolumeDiscountTierSet],
    measurement_type: MeasurementType,
    value: Decimal,
    service_type: str | None = None,
) -> TierResult | None:
    tier_set = select_tier_set(tier_sets, measurement_type, service_type)
    if tier_set is None:
        return None

    index = bracket_index(tier_set.tiers, value)
    if index is None:
        return None

    level = tier_set.tiers[index]
    next_tier = None
    if index + 1 < len(tier_set.tiers):
        following = tier_set.tiers[index + 1]
        next_tier = NextTier(
            level=following,
            amount_to_reach=following.min - value,
            additional_savings_percent=following.discount_percent - level.discount_percent,
        )

    if measurement_type == MeasurementType.TOTAL_AMOUNT:
        amount = round_money(percent_of(value, level.discount_percent))
    else:
        amount = round_money(ZERO)

    return TierResult(
        tier_set_id=tier_set.id,
        tier_set_name=tier_set.name,
        measurement_type=measurement_type,
        value=value,
        level=level,
        discount_percent=level.discount_percent,
        discount_amount=amount,
        stackable=tier_set.stackable,
        next_tier=next_tier,
    )
