"""
discount_engines.approval -- Pure approval gate and lifecycle rules.

Responsibility:
    Decide whether a discount needs human sign-off, validate approval
    request status transitions, and decide what a periodic sweep should do
    with an open request.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import discount_kernel/domain/ types and kernel exceptions.

Invariants enforced:
    - Gate order (first violation wins): role percent limit -> role amount
      limit -> global percent threshold -> global amount threshold ->
      order-total threshold.
    - Every comparison is strict ``>``: a discount exactly at a limit is
      allowed without approval.
    - The gate never raises.  No settings, or ``require_approval=False``,
      means approval is not required.
    - Transitions follow ``APPROVAL_TRANSITIONS``; anything else raises
      InvalidApprovalTransitionError.

Failure modes:
    - InvalidApprovalTransitionError from validate_transition.
    - InvalidReviewError from review_target_status for a counter offer
      without terms.
"""

from __future__ import annotations

from datetime import datetime, timedelta
from decimal import ROUND_HALF_UP, Decimal
from uuid import UUID

from discount_engines.tracer import traced_engine
from discount_kernel.domain.approval import (
    APPROVAL_TRANSITIONS,
    ApprovalDecision,
    ApprovalRequest,
    ApprovalSettings,
    ApprovalStatus,
    ReviewAction,
    ReviewInput,
)
from discount_kernel.domain.values import format_money, format_percent
from discount_kernel.exceptions import (
    InvalidApprovalTransitionError,
    InvalidReviewError,
)

_DISPLAY_PERCENT = Decimal("0.01")


def _display_percent(percent: Decimal) -> str:
    return format_percent(percent.quantize(_DISPLAY_PERCENT, rounding=ROUND_HALF_UP))


@traced_engine(
    "approval_gate", "1.0",
    fingerprint_fields=("discount_percent", "discount_amount", "order_total", "role"),
)
def check_approval_required(
    settings: ApprovalSettings | None,
    discount_percent: Decimal,
    discount_amount: Decimal,
    order_total: Decimal,
    role: str,
) -> ApprovalDecision:
    """Decide whether a discount needs review.

    Args:
        settings: The organization's approval settings (None = no overrides).
        discount_percent: Discount as a percent of the subtotal it was
            computed against.
        discount_amount: Rounded discount amount.
        order_total: Original order subtotal.
        role: Acting user's role name.
    """
    if settings is None or not settings.require_approval:
        return ApprovalDecision.not_required()

    limit = settings.role_limits.get(role)
    if limit is not None:
        if discount_percent > limit.max_percent:
            return ApprovalDecision(
                required=True,
                reason=(
                    f"Discount of {_display_percent(discount_percent)}% exceeds "
                    f"your limit of {format_percent(limit.max_percent)}%"
                ),
            )
        if limit.max_amount is not None and discount_amount > limit.max_amount:
            return ApprovalDecision(
                required=True,
                reason=(
                    f"Discount of {format_money(discount_amount)} exceeds "
                    f"your limit of {format_money(limit.max_amount)}"
                ),
            )

    if discount_percent > settings.approval_threshold_percent:
        return ApprovalDecision(
            required=True,
            reason=(
                f"Discount of {_display_percent(discount_percent)}% exceeds "
                f"threshold of {format_percent(settings.approval_threshold_percent)}%"
            ),
        )

    if discount_amount > settings.approval_threshold_amount:
        return ApprovalDecision(
            required=True,
            reason=(
                f"Discount of {format_money(discount_amount)} exceeds "
                f"threshold of {format_money(settings.approval_threshold_amount)}"
            ),
        )

    if (
        settings.approval_for_orders_over is not None
        and order_total > settings.approval_for_orders_over
    ):
        return ApprovalDecision(
            required=True,
            reason=(
                f"Order total of {format_money(order_total)} exceeds threshold "
                "for automatic discount approval"
            ),
        )

    return ApprovalDecision.not_required()


def validate_transition(current: ApprovalStatus, target: ApprovalStatus) -> None:
    """Raise InvalidApprovalTransitionError unless ``current -> target`` is allowed."""
    if target not in APPROVAL_TRANSITIONS.get(current, frozenset()):
        raise InvalidApprovalTransitionError(current.value, target.value)


def review_target_status(review: ReviewInput) -> ApprovalStatus:
    """approve and counter resolve to APPROVED; reject to REJECTED."""
    if review.action == ReviewAction.COUNTER:
        if review.counter_discount_type is None or review.counter_discount_value is None:
            raise InvalidReviewError(
                str(review.request_id),
                "counter offer requires counter_discount_type and counter_discount_value",
            )
        return ApprovalStatus.APPROVED
    if review.action == ReviewAction.APPROVE:
        return ApprovalStatus.APPROVED
    return ApprovalStatus.REJECTED


def next_approver(
    default_approvers: tuple[UUID, ...],
    current: UUID | None,
) -> UUID | None:
    """The approver after ``current`` in the default list, wrapping around."""
    if not default_approvers:
        return None
    if current not in default_approvers:
        return default_approvers[0]
    index = default_approvers.index(current)
    return default_approvers[(index + 1) % len(default_approvers)]


def sweep_action(
    request: ApprovalRequest,
    settings: ApprovalSettings,
    now: datetime,
) -> ApprovalStatus | None:
    """What a periodic sweep should do with one request at ``now``.

    Expiry wins over escalation.  Already-escalated requests are only
    candidates for expiry.  Deadlines are inclusive.
    """
    if request.status not in (ApprovalStatus.PENDING, ApprovalStatus.ESCALATED):
        return None
    age = now - request.requested_at
    if age >= timedelta(hours=settings.auto_reject_after_hours):
        return ApprovalStatus.EXPIRED
    if (
        request.status == ApprovalStatus.PENDING
        and age >= timedelta(hours=settings.escalation_after_hours)
    ):
        return ApprovalStatus.ESCALATED
    return None
