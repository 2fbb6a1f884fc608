"""
discount_engines.upsell -- Upsell suggestions.

Suggestions are derived from the candidate set and never change totals.
"""

from __future__ import annotations

from collections.abc import Sequence
from decimal import Decimal

from discount_kernel.domain.context import (
    CandidateDiscount,
    DiscountContext,
    DiscountSource,
    UpsellSuggestion,
)
from discount_kernel.domain.loyalty import CustomerLoyaltyAccount
from discount_kernel.domain.policy import UpsellPolicy
from discount_kernel.domain.values import (
    format_percent,
    format_quantity,
    percent_of,
    round_money,
)
from discount_kernel.domain.volume import TierResult


def _potential(subtotal: Decimal, percent: Decimal) -> Decimal:
    return round_money(percent_of(subtotal, percent))


def volume_suggestion(
    context: DiscountContext,
    candidates: Sequence[CandidateDiscount],
    volume: TierResult | None,
    policy: UpsellPolicy,
) -> UpsellSuggestion | None:
    has_volume = any(c.source == DiscountSource.VOLUME for c in candidates)
    if not has_volume:
        return UpsellSuggestion(
            type="volume",
            message="Add more square footage to unlock volume discounts!",
            action=policy.volume_action,
            potential_savings=_potential(context.subtotal, policy.volume_percent),
            potential_percent=policy.volume_percent,
        )
    if volume is None or volume.next_tier is None:
        return None

    following = volume.next_tier
    distance = format_quantity(following.amount_to_reach)
    return UpsellSuggestion(
        type="volume",
        message=(
            f"You're {distance} sq ft away from "
            f"{format_percent(following.level.discount_percent)}% off"
        ),
        action=f"Add {distance} sq ft to reach the next volume tier",
        potential_savings=_potential(context.subtotal, following.additional_savings_percent),
        potential_percent=following.additional_savings_percent,
    )


def combo_suggestions(
    context: DiscountContext,
    policy: UpsellPolicy,
) -> list[UpsellSuggestion]:
    present = context.service_types()
    suggestions = []
    for pair in policy.complementary:
        if pair.present in present and pair.missing not in present:
            suggestions.append(
                UpsellSuggestion(
                    type="combo",
                    message=f"Bundle with {pair.missing_label} for extra savings!",
                    action=f"Add {pair.missing_label} to your proposal",
                    potential_savings=_potential(context.subtotal, pair.potential_percent),
                    potential_percent=pair.potential_percent,
                )
            )
    return suggestions


def loyalty_suggestion(
    context: DiscountContext,
    loyalty_account: CustomerLoyaltyAccount | None,
    policy: UpsellPolicy,
) -> UpsellSuggestion | None:
    if not context.is_new_customer or loyalty_account is not None:
        return None
    return UpsellSuggestion(
        type="loyalty",
        message="Join our loyalty program to earn points!",
        action="Enroll in the loyalty program",
        potential_savings=_potential(context.subtotal, policy.loyalty_percent),
        potential_percent=policy.loyalty_percent,
    )


def generate_upsells(
    context: DiscountContext,
    candidates: Sequence[CandidateDiscount],
    volume: TierResult | None,
    loyalty_account: CustomerLoyaltyAccount | None,
    policy: UpsellPolicy,
) -> tuple[UpsellSuggestion, ...]:
    suggestions: list[UpsellSuggestion] = []

    volume_hint = volume_suggestion(context, candidates, volume, policy)
    if volume_hint is not None:
        suggestions.append(volume_hint)

    suggestions.extend(combo_suggestions(context, policy))

    loyalty_hint = loyalty_suggestion(context, loyalty_account, policy)
    if loyalty_hint is not None:
        suggestions.append(loyalty_hint)

    return tuple(suggestions)
