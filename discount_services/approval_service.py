"""
discount_services.approval_service -- Discount approval settings and requests.

Responsibility:
    Persist an organization's approval thresholds, open approval requests
    for discounts that exceed them, apply reviewer decisions, and run the
    periodic escalation/expiry sweep.

Architecture position:
    Services -- stateful orchestration over engines + kernel.
    The gate decision and the lifecycle table are pure and live in
    ``discount_engines.approval``.

Invariants enforced:
    - Lifecycle: every status change is validated against
      ``APPROVAL_TRANSITIONS`` and written with a conditional UPDATE on
      the status it was read with, so two reviewers cannot both resolve
      the same request.
    - Terminal requests never change.
    - Notifier failures are logged and never fail creation or review.
    - Flush-only: never commits or rolls back the session.

Failure modes:
    - ApprovalRequestNotFoundError for an unknown request id.
    - ApprovalAlreadyResolvedError when acting on a terminal request, or
      when another writer resolved it first.
    - InvalidApprovalTransitionError for a transition not in the table.
    - InvalidReviewError for a counter offer without terms.

Usage:
    approvals = DiscountApprovalService(session, clock, notifier=notifier)
    request = approvals.create_request(CreateApprovalRequestInput(...))
    approvals.review(ReviewInput(request.id, ReviewAction.APPROVE, manager_id))
    report = approvals.sweep(org_id)
"""

from __future__ import annotations

import dataclasses
from decimal import ROUND_HALF_UP, Decimal
from typing import Any
from uuid import UUID, uuid4

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from discount_engines.amounts import discount_amount
from discount_engines.approval import (
    check_approval_required,
    next_approver,
    review_target_status,
    sweep_action,
    validate_transition,
)
from discount_kernel.domain.approval import (
    OPEN_APPROVAL_STATUSES,
    ApprovalDecision,
    ApprovalRequest,
    ApprovalSettings,
    ApprovalStatus,
    CreateApprovalRequestInput,
    ReviewInput,
    SweepReport,
)
from discount_kernel.domain.clock import Clock, SystemClock
from discount_kernel.domain.values import HUNDRED, ZERO, DiscountType
from discount_kernel.exceptions import (
    ApprovalAlreadyResolvedError,
    ApprovalRequestNotFoundError,
)
from discount_kernel.logging_config import get_logger
from discount_kernel.models.approval import (
    ApprovalSettingsModel,
    DiscountApprovalRequestModel,
    role_limits_to_payload,
)
from discount_services.notifier import LoggingNotifier, Notifier
from discount_services.rule_set_cache import RuleSetCache

logger = get_logger("services.approval")

_PERCENT_PLACES = Decimal("0.0001")


class DiscountApprovalService:
    """
    Approval settings, request lifecycle and sweep.

    Contract:
        Receives Session, Clock, Notifier and an optional RuleSetCache via
        constructor injection.
    Guarantees:
        - ``check_approval_required`` never raises.
        - ``sweep`` expires before it escalates and never touches a
          terminal request.
    Non-goals:
        - Scheduling.  The sweep is an explicit call made by an external
          timer.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        notifier: Notifier | None = None,
        cache: RuleSetCache | None = None,
    ):
        self._session = session
        self._clock = clock or SystemClock()
        self._notifier = notifier or LoggingNotifier()
        self._cache = cache

    # ------------------------------------------------------------------
    # Settings
    # ------------------------------------------------------------------

    def _settings_model(self, org_id: UUID) -> ApprovalSettingsModel | None:
        return self._session.execute(
            select(ApprovalSettingsModel).where(ApprovalSettingsModel.org_id == org_id)
        ).scalar_one_or_none()

    def get_settings(self, org_id: UUID) -> ApprovalSettings | None:
        model = self._settings_model(org_id)
        return model.to_dto() if model is not None else None

    def update_settings(self, org_id: UUID, **changes: Any) -> ApprovalSettings:
        """Create or update the org's settings from ApprovalSettings field names."""
        model = self._settings_model(org_id)
        if model is None:
            settings = ApprovalSettings(org_id=org_id, **changes)
            self._session.add(ApprovalSettingsModel.from_dto(settings))
        else:
            settings = dataclasses.replace(model.to_dto(), **changes)
            for f in dataclasses.fields(settings):
                if f.name == "org_id":
                    continue
                value = getattr(settings, f.name)
                if f.name == "role_limits":
                    value = role_limits_to_payload(value)
                elif f.name == "default_approvers":
                    value = [str(a) for a in value]
                setattr(model, f.name, value)
        self._session.flush()
        if self._cache is not None:
            self._cache.invalidate(org_id)
        logger.info(
            "approval_settings_updated",
            extra={"org_id": str(org_id), "fields": sorted(changes)},
        )
        return settings

    def check_approval_required(
        self,
        org_id: UUID,
        discount_percent: Decimal,
        discount_amount: Decimal,
        order_total: Decimal,
        role: str,
    ) -> ApprovalDecision:
        return check_approval_required(
            self.get_settings(org_id),
            discount_percent,
            discount_amount,
            order_total,
            role,
        )

    # ------------------------------------------------------------------
    # Requests
    # ------------------------------------------------------------------

    def _get(self, request_id: UUID) -> DiscountApprovalRequestModel:
        model = self._session.get(DiscountApprovalRequestModel, request_id)
        if model is None:
            raise ApprovalRequestNotFoundError(str(request_id))
        return model

    def get_request(self, request_id: UUID) -> ApprovalRequest:
        return self._get(request_id).to_dto()

    def create_request(self, data: CreateApprovalRequestInput) -> ApprovalRequest:
        """Open a pending request, snapshotting the amounts and customer facts."""
        settings = self.get_settings(data.org_id)
        base = data.applied_to_subtotal
        if base is None:
            base = data.proposal_total
        amount = data.discount_amount
        if amount is None:
            amount = discount_amount(data.discount_type, data.discount_value, base)
        # Same percent the gate evaluated.
        if data.discount_type == DiscountType.PERCENT:
            percent = data.discount_value
        elif base > ZERO:
            percent = amount / base * HUNDRED
        else:
            percent = ZERO
        percent = percent.quantize(_PERCENT_PLACES, rounding=ROUND_HALF_UP)

        approvers = settings.default_approvers if settings is not None else ()
        request = ApprovalRequest(
            id=uuid4(),
            org_id=data.org_id,
            proposal_id=data.proposal_id,
            proposal_number=data.proposal_number,
            requested_by=data.requested_by,
            requested_at=self._clock.now(),
            discount_type=data.discount_type,
            discount_value=data.discount_value,
            discount_amount=amount,
            proposal_total=data.proposal_total,
            discount_percent_of_total=percent,
            reason=data.reason,
            supporting_notes=data.supporting_notes,
            customer_id=data.customer_id,
            customer_name=data.customer_name,
            is_repeat_customer=data.is_repeat_customer,
            customer_lifetime_value=data.customer_lifetime_value,
            assigned_to=approvers[0] if approvers else None,
        )
        self._session.add(DiscountApprovalRequestModel.from_dto(request))
        self._session.flush()

        logger.info(
            "approval_request_created",
            extra={
                "request_id": str(request.id),
                "org_id": str(data.org_id),
                "proposal_id": str(data.proposal_id),
                "discount_amount": str(amount),
                "discount_percent": str(percent),
            },
        )
        if settings is None or settings.notify_on_request:
            self._notify("approval_requested", request, approvers)
        return request

    def pending_requests(self, org_id: UUID) -> list[ApprovalRequest]:
        """Open requests (pending or escalated), oldest first."""
        rows = self._session.execute(
            select(DiscountApprovalRequestModel)
            .where(
                DiscountApprovalRequestModel.org_id == org_id,
                DiscountApprovalRequestModel.status.in_(
                    [s.value for s in OPEN_APPROVAL_STATUSES]
                ),
            )
            .order_by(DiscountApprovalRequestModel.requested_at)
        ).scalars()
        return [row.to_dto() for row in rows]

    def _transition(
        self,
        model: DiscountApprovalRequestModel,
        target: ApprovalStatus,
        **values: Any,
    ) -> ApprovalRequest:
        current = ApprovalStatus(model.status)
        if current not in OPEN_APPROVAL_STATUSES:
            raise ApprovalAlreadyResolvedError(str(model.id), current.value)
        validate_transition(current, target)

        self._session.flush()
        result = self._session.execute(
            update(DiscountApprovalRequestModel)
            .where(
                DiscountApprovalRequestModel.id == model.id,
                DiscountApprovalRequestModel.status == current.value,
            )
            .values(status=target.value, **values)
            .execution_options(synchronize_session=False)
        )
        self._session.refresh(model)
        if result.rowcount == 0:
            raise ApprovalAlreadyResolvedError(str(model.id), model.status)

        logger.info(
            "approval_request_transitioned",
            extra={
                "request_id": str(model.id),
                "from_status": current.value,
                "to_status": target.value,
            },
        )
        return model.to_dto()

    def review(self, review: ReviewInput) -> ApprovalRequest:
        model = self._get(review.request_id)
        if ApprovalStatus(model.status) not in OPEN_APPROVAL_STATUSES:
            raise ApprovalAlreadyResolvedError(str(model.id), model.status)
        target = review_target_status(review)
        now = self._clock.now()

        values: dict[str, Any] = {
            "reviewed_by": review.reviewed_by,
            "reviewed_at": now,
            "reviewer_notes": review.notes,
            "resolved_at": now,
        }
        if review.counter_discount_type is not None and review.counter_discount_value is not None:
            values["counter_discount_type"] = review.counter_discount_type.value
            values["counter_discount_value"] = review.counter_discount_value

        request = self._transition(model, target, **values)

        settings = self.get_settings(request.org_id)
        should_notify = settings is None or (
            settings.notify_on_approval
            if target == ApprovalStatus.APPROVED
            else settings.notify_on_rejection
        )
        if should_notify:
            self._notify("approval_resolved", request)
        return request

    def cancel(self, request_id: UUID) -> ApprovalRequest:
        model = self._get(request_id)
        return self._transition(
            model, ApprovalStatus.CANCELLED, resolved_at=self._clock.now(),
        )

    # ------------------------------------------------------------------
    # Sweep
    # ------------------------------------------------------------------

    def sweep(self, org_id: UUID) -> SweepReport:
        """Expire and escalate open requests past their deadlines."""
        settings = self.get_settings(org_id) or ApprovalSettings(org_id=org_id)
        now = self._clock.now()
        rows = self._session.execute(
            select(DiscountApprovalRequestModel)
            .where(
                DiscountApprovalRequestModel.org_id == org_id,
                DiscountApprovalRequestModel.status.in_(
                    [s.value for s in OPEN_APPROVAL_STATUSES]
                ),
            )
            .order_by(DiscountApprovalRequestModel.requested_at)
        ).scalars().all()

        escalated: list[UUID] = []
        expired: list[UUID] = []
        for model in rows:
            action = sweep_action(model.to_dto(), settings, now)
            if action == ApprovalStatus.EXPIRED:
                self._transition(model, ApprovalStatus.EXPIRED, resolved_at=now)
                expired.append(model.id)
            elif action == ApprovalStatus.ESCALATED:
                target = next_approver(settings.default_approvers, model.assigned_to)
                request = self._transition(
                    model,
                    ApprovalStatus.ESCALATED,
                    escalated=True,
                    escalated_at=now,
                    escalated_to=target,
                    assigned_to=target,
                )
                escalated.append(model.id)
                self._notify("approval_escalated", request)

        report = SweepReport(escalated=tuple(escalated), expired=tuple(expired))
        logger.info(
            "approval_sweep_completed",
            extra={
                "org_id": str(org_id),
                "escalated": len(report.escalated),
                "expired": len(report.expired),
            },
        )
        return report

    # ------------------------------------------------------------------
    # Notifications
    # ------------------------------------------------------------------

    def _notify(self, event: str, request: ApprovalRequest, *args: Any) -> None:
        try:
            getattr(self._notifier, event)(request, *args)
        except Exception:
            logger.warning(
                "approval_notification_failed",
                extra={"request_id": str(request.id), "event": event},
                exc_info=True,
            )
