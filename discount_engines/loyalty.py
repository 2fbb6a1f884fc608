"""
discount_engines.loyalty -- Loyalty points and tier maths.

Responsibility:
    Points earned for a purchase, tier resolution from lifetime points,
    redemption checks and value, referral code generation, and ledger
    reconciliation.  Persistence lives in
    ``discount_services.loyalty_service``.

Architecture position:
    Engines -- pure calculation layer, zero I/O.

Invariants enforced:
    - Tier = highest tier whose ``min_points`` <= lifetime earned points.
      The tier table always starts at 0, so every account has a tier.
    - Purchase points = ``floor(order_amount * points_per_dollar) + bonus``.
    - Ledger reconciliation: ``current_points == last balance_after ==
      sum(points)``, every ``balance_after`` follows from its predecessor,
      and no balance is negative.
"""

from __future__ import annotations

import random
from collections.abc import Sequence
from decimal import ROUND_FLOOR, Decimal

from discount_engines.tracer import traced_engine
from discount_kernel.domain.loyalty import (
    CustomerLoyaltyAccount,
    LedgerVerification,
    LoyaltyProgram,
    LoyaltyTier,
    LoyaltyTransaction,
)
from discount_kernel.domain.values import round_money

REFERRAL_CODE_ALPHABET = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"
REFERRAL_CODE_LENGTH = 8

PROGRAM_INACTIVE = "Loyalty program is not active"
NOT_ENROLLED = "Customer is not enrolled in loyalty program"
INSUFFICIENT_POINTS = "Insufficient points"
NEGATIVE_ORDER_AMOUNT = "Order amount cannot be negative"
NEGATIVE_EARN = "Points earned cannot be negative"


def minimum_redemption_reason(min_points: int) -> str:
    return f"Minimum {min_points} points required to redeem"


def generate_referral_code(rng: random.Random | None = None) -> str:
    """Eight characters from an alphabet without 0/O and 1/I lookalikes."""
    chooser = rng or random.SystemRandom()
    return "".join(chooser.choice(REFERRAL_CODE_ALPHABET) for _ in range(REFERRAL_CODE_LENGTH))


def tier_for_points(tiers: Sequence[LoyaltyTier], lifetime_points: int) -> LoyaltyTier:
    current = tiers[0]
    for tier in tiers:
        if lifetime_points >= tier.min_points:
            current = tier
    return current


def purchase_points(program: LoyaltyProgram, order_amount: Decimal, bonus_points: int = 0) -> int:
    base = (order_amount * program.points_per_dollar).to_integral_value(rounding=ROUND_FLOOR)
    return int(base) + bonus_points


def base_purchase_points(program: LoyaltyProgram, order_amount: Decimal) -> int:
    return purchase_points(program, order_amount, 0)


def earn_failure(
    program: LoyaltyProgram | None,
    order_amount: Decimal,
    bonus_points: int = 0,
) -> str | None:
    """First reason a purchase cannot earn points, or None."""
    if program is None or not program.is_active:
        return PROGRAM_INACTIVE
    if order_amount < 0:
        return NEGATIVE_ORDER_AMOUNT
    if purchase_points(program, order_amount, bonus_points) < 0:
        return NEGATIVE_EARN
    return None


def redemption_value(program: LoyaltyProgram, points: int) -> Decimal:
    return round_money(Decimal(points) * program.points_to_dollar_ratio)


def redemption_failure(
    program: LoyaltyProgram | None,
    account: CustomerLoyaltyAccount | None,
    points: int,
) -> str | None:
    """First reason a redemption cannot proceed, or None."""
    if program is None or not program.is_active:
        return PROGRAM_INACTIVE
    if account is None:
        return NOT_ENROLLED
    if points < program.min_points_to_redeem:
        return minimum_redemption_reason(program.min_points_to_redeem)
    if points > account.current_points:
        return INSUFFICIENT_POINTS
    return None


def earn_description(base_points: int, order_amount: Decimal, bonus_points: int) -> str:
    text = f"Earned {base_points} points from ${round_money(order_amount):.2f} purchase"
    if bonus_points:
        text += f" + {bonus_points} bonus points"
    return text


def redeem_description(points: int, value: Decimal) -> str:
    return f"Redeemed {points} points for ${value:.2f} discount"


@traced_engine("loyalty_ledger", "1.0", fingerprint_fields=("account", "transactions"))
def verify_ledger(
    account: CustomerLoyaltyAccount,
    transactions: Sequence[LoyaltyTransaction],
) -> LedgerVerification:
    """Reconcile an account against its full history (oldest first)."""
    issues: list[str] = []
    running = 0
    for txn in transactions:
        running += txn.points
        if txn.balance_after != running:
            issues.append(
                f"transaction {txn.sequence} balance_after {txn.balance_after} "
                f"does not follow running balance {running}"
            )
        if txn.balance_after < 0:
            issues.append(f"transaction {txn.sequence} has negative balance {txn.balance_after}")

    last_balance = transactions[-1].balance_after if transactions else None
    expected_last = last_balance if last_balance is not None else 0
    if account.current_points != expected_last:
        issues.append(
            f"current_points {account.current_points} != last balance_after {expected_last}"
        )
    if account.current_points != running:
        issues.append(f"current_points {account.current_points} != sum of deltas {running}")
    if account.current_points < 0:
        issues.append(f"current_points {account.current_points} is negative")

    return LedgerVerification(
        account_id=account.id,
        current_points=account.current_points,
        last_balance_after=last_balance,
        sum_of_deltas=running,
        issues=tuple(issues),
    )

