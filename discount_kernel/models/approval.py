"""
Module: discount_kernel.models.approval
Responsibility: ORM persistence for approval settings and discount approval
    requests.

Architecture position: Kernel > Models.  May import from db/ only.

Invariants enforced:
    - Lifecycle state machine: DB check constraint limits status values;
      the service layer enforces transition rules.
    - One settings row per organization: UNIQUE(org_id).

Failure modes:
    - IntegrityError on an invalid status value.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING, Any
from uuid import UUID

from sqlalchemy import JSON, CheckConstraint, Index, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from discount_kernel.db.base import TrackedBase
from discount_kernel.db.types import UUIDString

if TYPE_CHECKING:
    from discount_kernel.domain.approval import ApprovalRequest, ApprovalSettings


def role_limits_to_payload(role_limits) -> dict[str, dict[str, str | None]]:
    return {
        role: {
            "max_percent": str(limit.max_percent),
            "max_amount": None if limit.max_amount is None else str(limit.max_amount),
        }
        for role, limit in role_limits.items()
    }


def role_limits_from_payload(payload: dict[str, Any]):
    from discount_kernel.domain.approval import RoleLimit

    limits = {}
    for role, item in payload.items():
        max_percent = item.get("max_percent", item.get("maxPercent"))
        max_amount = item.get("max_amount", item.get("maxAmount"))
        limits[role] = RoleLimit(
            max_percent=Decimal(str(max_percent)),
            max_amount=None if max_amount is None else Decimal(str(max_amount)),
        )
    return limits


class ApprovalSettingsModel(TrackedBase):
    """Persistent organization approval thresholds."""

    __tablename__ = "discount_approval_settings"

    __table_args__ = (
        UniqueConstraint("org_id", name="uq_discount_approval_settings_org"),
    )

    org_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    require_approval: Mapped[bool] = mapped_column(nullable=False, default=True)
    approval_threshold_percent: Mapped[Decimal] = mapped_column(
        nullable=False, default=Decimal("15"),
    )
    approval_threshold_amount: Mapped[Decimal] = mapped_column(
        nullable=False, default=Decimal("500"),
    )
    approval_for_orders_over: Mapped[Decimal | None] = mapped_column(nullable=True)
    role_limits: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)
    default_approvers: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    escalation_after_hours: Mapped[int] = mapped_column(nullable=False, default=24)
    auto_reject_after_hours: Mapped[int] = mapped_column(nullable=False, default=72)
    notify_on_request: Mapped[bool] = mapped_column(nullable=False, default=True)
    notify_on_approval: Mapped[bool] = mapped_column(nullable=False, default=True)
    notify_on_rejection: Mapped[bool] = mapped_column(nullable=False, default=True)

    def to_dto(self) -> ApprovalSettings:
        from discount_kernel.domain.approval import (
            ApprovalSettings as ApprovalSettingsDTO,
        )

        return ApprovalSettingsDTO(
            org_id=self.org_id,
            require_approval=self.require_approval,
            approval_threshold_percent=self.approval_threshold_percent,
            approval_threshold_amount=self.approval_threshold_amount,
            approval_for_orders_over=self.approval_for_orders_over,
            role_limits=role_limits_from_payload(self.role_limits),
            default_approvers=tuple(UUID(a) for a in self.default_approvers),
            escalation_after_hours=self.escalation_after_hours,
            auto_reject_after_hours=self.auto_reject_after_hours,
            notify_on_request=self.notify_on_request,
            notify_on_approval=self.notify_on_approval,
            notify_on_rejection=self.notify_on_rejection,
        )

    @classmethod
    def from_dto(cls, dto: ApprovalSettings) -> ApprovalSettingsModel:
        return cls(
            org_id=dto.org_id,
            require_approval=dto.require_approval,
            approval_threshold_percent=dto.approval_threshold_percent,
            approval_threshold_amount=dto.approval_threshold_amount,
            approval_for_orders_over=dto.approval_for_orders_over,
            role_limits=role_limits_to_payload(dto.role_limits),
            default_approvers=[str(a) for a in dto.default_approvers],
            escalation_after_hours=dto.escalation_after_hours,
            auto_reject_after_hours=dto.auto_reject_after_hours,
            notify_on_request=dto.notify_on_request,
            notify_on_approval=dto.notify_on_approval,
            notify_on_rejection=dto.notify_on_rejection,
        )


class DiscountApprovalRequestModel(TrackedBase):
    """Persistent discount approval request."""

    __tablename__ = "discount_approval_requests"

    __table_args__ = (
        CheckConstraint(
            "status IN ('pending', 'escalated', 'approved', 'rejected', "
            "'expired', 'cancelled')",
            name="ck_discount_approval_requests_valid_status",
        ),
        Index("ix_discount_approval_requests_org_status", "org_id", "status", "requested_at"),
        Index("ix_discount_approval_requests_proposal", "proposal_id"),
    )

    org_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    proposal_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    proposal_number: Mapped[str | None] = mapped_column(String(50), nullable=True)
    requested_by: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    requested_at: Mapped[datetime] = mapped_column(nullable=False)
    discount_type: Mapped[str] = mapped_column(String(20), nullable=False)
    discount_value: Mapped[Decimal] = mapped_column(nullable=False)
    discount_amount: Mapped[Decimal] = mapped_column(nullable=False)
    proposal_total: Mapped[Decimal] = mapped_column(nullable=False)
    discount_percent_of_total: Mapped[Decimal] = mapped_column(nullable=False)
    reason: Mapped[str] = mapped_column(Text, nullable=False)
    supporting_notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    customer_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    customer_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    is_repeat_customer: Mapped[bool] = mapped_column(nullable=False, default=False)
    customer_lifetime_value: Mapped[Decimal | None] = mapped_column(nullable=True)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="pending")
    assigned_to: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    reviewed_by: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    reviewed_at: Mapped[datetime | None] = mapped_column(nullable=True)
    reviewer_notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    counter_discount_type: Mapped[str | None] = mapped_column(String(20), nullable=True)
    counter_discount_value: Mapped[Decimal | None] = mapped_column(nullable=True)
    escalated: Mapped[bool] = mapped_column(nullable=False, default=False)
    escalated_at: Mapped[datetime | None] = mapped_column(nullable=True)
    escalated_to: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    resolved_at: Mapped[datetime | None] = mapped_column(nullable=True)

    def __repr__(self) -> str:
        return (
            f"<DiscountApprovalRequest {self.id} "
            f"proposal={self.proposal_id} status={self.status}>"
        )

    def to_dto(self) -> ApprovalRequest:
        """Convert ORM model to frozen domain DTO."""
        from discount_kernel.domain.approval import (
            ApprovalRequest as ApprovalRequestDTO,
            ApprovalStatus,
        )
        from discount_kernel.domain.values import DiscountType

        return ApprovalRequestDTO(
            id=self.id,
            org_id=self.org_id,
            proposal_id=self.proposal_id,
            proposal_number=self.proposal_number,
            requested_by=self.requested_by,
            requested_at=self.requested_at,
            discount_type=DiscountType(self.discount_type),
            discount_value=self.discount_value,
            discount_amount=self.discount_amount,
            proposal_total=self.proposal_total,
            discount_percent_of_total=self.discount_percent_of_total,
            reason=self.reason,
            supporting_notes=self.supporting_notes,
            customer_id=self.customer_id,
            customer_name=self.customer_name,
            is_repeat_customer=self.is_repeat_customer,
            customer_lifetime_value=self.customer_lifetime_value,
            status=ApprovalStatus(self.status),
            assigned_to=self.assigned_to,
            reviewed_by=self.reviewed_by,
            reviewed_at=self.reviewed_at,
            reviewer_notes=self.reviewer_notes,
            counter_discount_type=(
                DiscountType(self.counter_discount_type)
                if self.counter_discount_type else None
            ),
            counter_discount_value=self.counter_discount_value,
            escalated=self.escalated,
            escalated_at=self.escalated_at,
            escalated_to=self.escalated_to,
            resolved_at=self.resolved_at,
        )

    @classmethod
    def from_dto(cls, dto: ApprovalRequest) -> DiscountApprovalRequestModel:
        """Create ORM model from domain DTO."""
        return cls(
            id=dto.id,
            org_id=dto.org_id,
            proposal_id=dto.proposal_id,
            proposal_number=dto.proposal_number,
            requested_by=dto.requested_by,
            requested_at=dto.requested_at,
            discount_type=dto.discount_type.value,
            discount_value=dto.discount_value,
            discount_amount=dto.discount_amount,
            proposal_total=dto.proposal_total,
            discount_percent_of_total=dto.discount_percent_of_total,
            reason=dto.reason,
            supporting_notes=dto.supporting_notes,
            customer_id=dto.customer_id,
            customer_name=dto.customer_name,
            is_repeat_customer=dto.is_repeat_customer,
            customer_lifetime_value=dto.customer_lifetime_value,
            status=dto.status.value,
            assigned_to=dto.assigned_to,
            reviewed_by=dto.reviewed_by,
            reviewed_at=dto.reviewed_at,
            reviewer_notes=dto.reviewer_notes,
            counter_discount_type=(
                dto.counter_discount_type.value if dto.counter_discount_type else None
            ),
            counter_discount_value=dto.counter_discount_value,
            escalated=dto.escalated,
            escalated_at=dto.escalated_at,
            escalated_to=dto.escalated_to,
            resolved_at=dto.resolved_at,
        )
