"""
discount_services.notifier -- Outbound notification port for approvals.

Email and in-app delivery live outside this package.  The approval service
talks to whatever implements ``Notifier``; ``LoggingNotifier`` is the
default and only writes structured log records.
"""

from __future__ import annotations

from typing import Protocol
from uuid import UUID

from discount_kernel.domain.approval import ApprovalRequest
from discount_kernel.logging_config import get_logger

logger = get_logger("services.notifier")


class Notifier(Protocol):
    """Pluggable interface for approval notifications."""

    def approval_requested(
        self, request: ApprovalRequest, approvers: tuple[UUID, ...],
    ) -> None:
        """A new request needs review by ``approvers``."""
        ...

    def approval_resolved(self, request: ApprovalRequest) -> None:
        """A request was approved, countered or rejected."""
        ...

    def approval_escalated(self, request: ApprovalRequest) -> None:
        """A request passed its escalation deadline and was reassigned."""
        ...


class LoggingNotifier:
    """Notifier that records each notification as a log event."""

    def approval_requested(
        self, request: ApprovalRequest, approvers: tuple[UUID, ...],
    ) -> None:
        logger.info(
            "approval_notification_requested",
            extra={
                "request_id": str(request.id),
                "proposal_id": str(request.proposal_id),
                "approvers": [str(a) for a in approvers],
            },
        )

    def approval_resolved(self, request: ApprovalRequest) -> None:
        logger.info(
            "approval_notification_resolved",
            extra={
                "request_id": str(request.id),
                "status": request.status.value,
                "requested_by": str(request.requested_by),
            },
        )

    def approval_escalated(self, request: ApprovalRequest) -> None:
        logger.info(
            "approval_notification_escalated",
            extra={
                "request_id": str(request.id),
                "escalated_to": str(request.escalated_to) if request.escalated_to else None,
            },
        )
