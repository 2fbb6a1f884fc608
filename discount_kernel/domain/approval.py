"""
Approval domain types (``discount_kernel.domain.approval``).

Responsibility
--------------
Pure value objects for the discount approval gate: org settings with
per-role limits, the gate decision, the approval request lifecycle state
machine, and review input.

Architecture position
---------------------
**Kernel domain layer** -- pure value objects.  ZERO I/O.

Invariants enforced
-------------------
* Lifecycle state machine -- ``APPROVAL_TRANSITIONS`` defines the only
  valid status transitions.  Terminal states have no outgoing edges and
  no state can be re-entered (``PENDING`` has no incoming edge).
* ``ESCALATED`` is non-terminal: an escalated request can still be
  reviewed, expired, or cancelled.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID

from discount_kernel.domain.values import DiscountType


# =========================================================================
# Approval Status Lifecycle
# =========================================================================


class ApprovalStatus(str, Enum):
    """Approval request lifecycle states."""

    PENDING = "pending"
    ESCALATED = "escalated"
    APPROVED = "approved"
    REJECTED = "rejected"
    EXPIRED = "expired"
    CANCELLED = "cancelled"


APPROVAL_TRANSITIONS: dict[ApprovalStatus, frozenset[ApprovalStatus]] = {
    ApprovalStatus.PENDING: frozenset({
        ApprovalStatus.APPROVED,
        ApprovalStatus.REJECTED,
        ApprovalStatus.ESCALATED,
        ApprovalStatus.EXPIRED,
        ApprovalStatus.CANCELLED,
    }),
    ApprovalStatus.ESCALATED: frozenset({
        ApprovalStatus.APPROVED,
        ApprovalStatus.REJECTED,
        ApprovalStatus.EXPIRED,
        ApprovalStatus.CANCELLED,
    }),
    ApprovalStatus.APPROVED: frozenset(),
    ApprovalStatus.REJECTED: frozenset(),
    ApprovalStatus.EXPIRED: frozenset(),
    ApprovalStatus.CANCELLED: frozenset(),
}

TERMINAL_APPROVAL_STATUSES: frozenset[ApprovalStatus] = frozenset({
    ApprovalStatus.APPROVED,
    ApprovalStatus.REJECTED,
    ApprovalStatus.EXPIRED,
    ApprovalStatus.CANCELLED,
})

OPEN_APPROVAL_STATUSES: frozenset[ApprovalStatus] = frozenset({
    ApprovalStatus.PENDING,
    ApprovalStatus.ESCALATED,
})


class ReviewAction(str, Enum):
    """What a reviewer can do with a request."""

    APPROVE = "approve"
    REJECT = "reject"
    COUNTER = "counter"


# =========================================================================
# Settings and Decision
# =========================================================================


@dataclass(frozen=True)
class RoleLimit:
    """Largest discount a role may grant without sign-off.

    ``max_amount`` of None means the role has no amount ceiling.
    """

    max_percent: Decimal
    max_amount: Decimal | None = None


DEFAULT_ROLE_LIMITS: dict[str, RoleLimit] = {
    "sales": RoleLimit(Decimal("10"), Decimal("200")),
    "manager": RoleLimit(Decimal("25"), Decimal("1000")),
    "admin": RoleLimit(Decimal("50"), Decimal("5000")),
    "owner": RoleLimit(Decimal("100"), None),
}


@dataclass(frozen=True)
class ApprovalSettings:
    """Organization approval thresholds."""

    org_id: UUID
    require_approval: bool = True
    approval_threshold_percent: Decimal = Decimal("15")
    approval_threshold_amount: Decimal = Decimal("500")
    approval_for_orders_over: Decimal | None = None
    role_limits: dict[str, RoleLimit] = field(default_factory=lambda: dict(DEFAULT_ROLE_LIMITS))
    default_approvers: tuple[UUID, ...] = ()
    escalation_after_hours: int = 24
    auto_reject_after_hours: int = 72
    notify_on_request: bool = True
    notify_on_approval: bool = True
    notify_on_rejection: bool = True


@dataclass(frozen=True)
class ApprovalDecision:
    """Result of the approval gate.  Never an error."""

    required: bool
    reason: str | None = None

    @classmethod
    def not_required(cls) -> ApprovalDecision:
        return cls(required=False)


# =========================================================================
# Request and Review
# =========================================================================


@dataclass(frozen=True)
class ApprovalRequest:
    """Immutable snapshot of a discount approval request."""

    id: UUID
    org_id: UUID
    proposal_id: UUID
    requested_by: UUID
    requested_at: datetime
    discount_type: DiscountType
    discount_value: Decimal
    discount_amount: Decimal
    proposal_total: Decimal
    discount_percent_of_total: Decimal
    reason: str
    status: ApprovalStatus = ApprovalStatus.PENDING
    proposal_number: str | None = None
    supporting_notes: str | None = None
    customer_id: UUID | None = None
    customer_name: str | None = None
    is_repeat_customer: bool = False
    customer_lifetime_value: Decimal | None = None
    assigned_to: UUID | None = None
    reviewed_by: UUID | None = None
    reviewed_at: datetime | None = None
    reviewer_notes: str | None = None
    counter_discount_type: DiscountType | None = None
    counter_discount_value: Decimal | None = None
    escalated: bool = False
    escalated_at: datetime | None = None
    escalated_to: UUID | None = None
    resolved_at: datetime | None = None

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_APPROVAL_STATUSES


@dataclass(frozen=True)
class CreateApprovalRequestInput:
    org_id: UUID
    proposal_id: UUID
    requested_by: UUID
    discount_type: DiscountType
    discount_value: Decimal
    proposal_total: Decimal
    reason: str
    proposal_number: str | None = None
    supporting_notes: str | None = None
    customer_id: UUID | None = None
    customer_name: str | None = None
    is_repeat_customer: bool = False
    customer_lifetime_value: Decimal | None = None
    # Set when the discount was priced against a running subtotal that
    # differs from proposal_total (other discounts applied first).
    discount_amount: Decimal | None = None
    applied_to_subtotal: Decimal | None = None


@dataclass(frozen=True)
class ReviewInput:
    request_id: UUID
    action: ReviewAction
    reviewed_by: UUID
    notes: str | None = None
    counter_discount_type: DiscountType | None = None
    counter_discount_value: Decimal | None = None


@dataclass(frozen=True)
class SweepReport:
    """What an approval sweep changed."""

    escalated: tuple[UUID, ...] = ()
    expired: tuple[UUID, ...] = ()

    @property
    def total(self) -> int:
        return len(self.escalated) + len(self.expired)
