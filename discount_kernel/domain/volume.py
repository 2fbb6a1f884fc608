"""
Volume tier domain types (``discount_kernel.domain.volume``).

A tier set maps a measured quantity (square feet, money, service units) to
a bracketed discount percent.  Construction validates that the brackets
partition ``[first.min, ∞)``: each bounded bracket ends exactly one
``step`` below the next bracket's start and only the last bracket is
unbounded.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from uuid import UUID

from discount_kernel.domain.values import HUNDRED, ZERO
from discount_kernel.exceptions import InvalidBracketPartitionError


class MeasurementType(str, Enum):
    TOTAL_SQFT = "total_sqft"
    TOTAL_AMOUNT = "total_amount"
    SERVICE_QUANTITY = "service_quantity"
    ANNUAL_VOLUME = "annual_volume"


@dataclass(frozen=True)
class TierLevel:
    min: Decimal
    max: Decimal | None
    discount_percent: Decimal
    label: str | None = None

    def contains(self, value: Decimal) -> bool:
        return value >= self.min and (self.max is None or value <= self.max)


@dataclass(frozen=True)
class VolumeDiscountTierSet:
    id: UUID
    org_id: UUID
    name: str
    measurement_type: MeasurementType
    tiers: tuple[TierLevel, ...]
    service_type: str | None = None
    description: str | None = None
    step: Decimal = Decimal("1")
    stackable: bool = False
    is_active: bool = True
    priority: int = 0

    def __post_init__(self) -> None:
        validate_brackets(self.name, self.tiers, self.step)


def validate_brackets(name: str, tiers: tuple[TierLevel, ...], step: Decimal) -> None:
    if not tiers:
        raise InvalidBracketPartitionError(name, "at least one bracket is required")
    if step <= ZERO:
        raise InvalidBracketPartitionError(name, f"step must be positive, got {step}")
    for index, tier in enumerate(tiers):
        if tier.discount_percent < ZERO or tier.discount_percent > HUNDRED:
            raise InvalidBracketPartitionError(
                name, f"bracket {index} discount {tier.discount_percent} outside 0..100",
            )
        is_last = index == len(tiers) - 1
        if is_last:
            if tier.max is not None:
                raise InvalidBracketPartitionError(
                    name, f"last bracket must be unbounded, got max={tier.max}",
                )
            continue
        if tier.max is None:
            raise InvalidBracketPartitionError(
                name, f"only the last bracket may be unbounded (bracket {index})",
            )
        if tier.max < tier.min:
            raise InvalidBracketPartitionError(
                name, f"bracket {index} has max {tier.max} below min {tier.min}",
            )
        following = tiers[index + 1]
        if following.min != tier.max + step:
            kind = "overlap" if following.min <= tier.max else "gap"
            raise InvalidBracketPartitionError(
                name,
                f"{kind} between bracket {index} (max {tier.max}) and "
                f"bracket {index + 1} (min {following.min})",
            )


@dataclass(frozen=True)
class NextTier:
    level: TierLevel
    amount_to_reach: Decimal
    additional_savings_percent: Decimal


@dataclass(frozen=True)
class TierResult:
    tier_set_id: UUID
    tier_set_name: str
    measurement_type: MeasurementType
    value: Decimal
    level: TierLevel
    discount_percent: Decimal
    discount_amount: Decimal
    stackable: bool = False
    next_tier: NextTier | None = None
