"""
discount_services.calculation_service -- The proposal workflow's entry point.

Responsibility:
    Load everything one calculation needs (the org's rule-set snapshot, the
    customer's loyalty account, the validated promo code), run the pure
    orchestrator, and, when the proposal workflow accepts a result, record
    its effects: promo code usage, rule and campaign counters, and an
    approval request for a manual discount that needs sign-off.

Architecture position:
    Services -- the only surface the proposal workflow calls.
    Composes PromoCodeService, LoyaltyLedgerService, AutoRuleService,
    SeasonalCampaignService and DiscountApprovalService over one session.

Invariants enforced:
    - ``calculate`` writes nothing.  Identical inputs against an unchanged
      configuration produce identical results.
    - ``commit`` is the only place calculation effects are recorded.
    - Flush-only: never commits or rolls back the session.

Failure modes:
    - MalformedRuleConditionError / InvalidTierTableError /
      InvalidBracketPartitionError when stored configuration is broken.
    - ValueError from commit when approval is required but the context
      carries no proposal_id or user_id.

Usage:
    service = DiscountCalculationService(session, clock, cache=cache)
    result = service.calculate(context)
    if proposal_accepted:
        service.commit(context, result)
"""

from __future__ import annotations

from dataclasses import dataclass
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from discount_engines.orchestrator import calculate_discounts
from discount_kernel.domain.approval import ApprovalRequest, CreateApprovalRequestInput
from discount_kernel.domain.clock import Clock, SystemClock
from discount_kernel.domain.codes import UsageRecordResult
from discount_kernel.domain.context import (
    DiscountCalculationResult,
    DiscountContext,
    DiscountRuleSet,
    DiscountSource,
)
from discount_kernel.domain.policy import CalculationPolicy
from discount_kernel.logging_config import LogContext, get_logger
from discount_kernel.models.auto_rule import AutoDiscountRuleModel
from discount_kernel.models.campaign import SeasonalCampaignModel
from discount_services.approval_service import DiscountApprovalService
from discount_services.campaign_service import SeasonalCampaignService
from discount_services.code_service import PromoCodeService
from discount_services.loyalty_service import LoyaltyLedgerService
from discount_services.notifier import Notifier
from discount_services.rule_service import AutoRuleService
from discount_services.rule_set_cache import RuleSetCache
from discount_services.volume_service import VolumeTierService

logger = get_logger("services.calculation")


@dataclass(frozen=True)
class CommitReport:
    """What ``commit`` recorded for one accepted calculation."""

    code_usage: UsageRecordResult | None = None
    rules_recorded: tuple[UUID, ...] = ()
    campaigns_recorded: tuple[UUID, ...] = ()
    approval_request: ApprovalRequest | None = None


class DiscountCalculationService:
    """
    Discount calculation and commit for the proposal workflow.

    Contract:
        Receives Session, Clock, RuleSetCache, CalculationPolicy and
        Notifier via constructor injection.  Builds its collaborator
        services over the same session and cache.
    Guarantees:
        - Unsupported rule tags are logged once per calculation as
          ``auto_rule_unsupported_tag`` and never applied.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        cache: RuleSetCache | None = None,
        policy: CalculationPolicy | None = None,
        notifier: Notifier | None = None,
    ):
        self._session = session
        self._clock = clock or SystemClock()
        self._cache = cache or RuleSetCache(clock=self._clock)
        self._policy = policy or CalculationPolicy()

        self.codes = PromoCodeService(session, self._clock)
        self.loyalty = LoyaltyLedgerService(session, self._clock, self._cache)
        self.rules = AutoRuleService(session, self._clock, self._cache)
        self.volume = VolumeTierService(session, self._cache)
        self.campaigns = SeasonalCampaignService(
            session, self._clock, self._cache, self._policy.expiring_soon_hours,
        )
        self.approvals = DiscountApprovalService(
            session, self._clock, notifier, self._cache,
        )

    @property
    def cache(self) -> RuleSetCache:
        return self._cache

    def load_rule_set(self, org_id: UUID) -> DiscountRuleSet:
        """Read the org's active configuration into an immutable snapshot."""
        campaigns = self._session.execute(
            select(SeasonalCampaignModel)
            .where(
                SeasonalCampaignModel.org_id == org_id,
                SeasonalCampaignModel.is_active.is_(True),
            )
            .order_by(SeasonalCampaignModel.starts_at)
        ).scalars()
        rules = self._session.execute(
            select(AutoDiscountRuleModel)
            .where(
                AutoDiscountRuleModel.org_id == org_id,
                AutoDiscountRuleModel.is_active.is_(True),
            )
            .order_by(AutoDiscountRuleModel.priority.desc(), AutoDiscountRuleModel.created_at)
        ).scalars()

        return DiscountRuleSet(
            org_id=org_id,
            campaigns=tuple(m.to_dto() for m in campaigns),
            auto_rules=tuple(m.to_dto() for m in rules),
            tier_sets=tuple(self.volume.list(org_id, active_only=True)),
            approval_settings=self.approvals.get_settings(org_id),
            loyalty_program=self.loyalty.get_program(org_id),
        )

    def calculate(self, context: DiscountContext) -> DiscountCalculationResult:
        with LogContext.bind(
            org_id=str(context.org_id),
            proposal_id=str(context.proposal_id) if context.proposal_id else None,
            customer_id=str(context.customer_id) if context.customer_id else None,
            actor_id=str(context.user_id) if context.user_id else None,
        ):
            rule_set = self._cache.get_or_load(context.org_id, self.load_rule_set)

            account = None
            if context.customer_id is not None:
                account = self.loyalty.get_account(context.org_id, context.customer_id)

            code_result = None
            if context.promo_code:
                code_result = self.codes.validate(
                    context.org_id,
                    context.promo_code,
                    context.subtotal,
                    customer_id=context.customer_id,
                    customer_email=context.customer_email,
                )

            result = calculate_discounts(
                context,
                rule_set,
                self._clock.now(),
                loyalty_account=account,
                code_result=code_result,
                policy=self._policy,
            )

            if result.skipped_rule_ids:
                rule_types = {rule.id: rule.rule_type for rule in rule_set.auto_rules}
                for rule_id in result.skipped_rule_ids:
                    logger.warning(
                        "auto_rule_unsupported_tag",
                        extra={"rule_id": str(rule_id), "rule_type": rule_types.get(rule_id)},
                    )

            logger.info(
                "discount_calculated",
                extra={
                    "original_subtotal": str(result.original_subtotal),
                    "total_discount": str(result.total_discount),
                    "final_subtotal": str(result.final_subtotal),
                    "available": len(result.available_discounts),
                    "applied": [a.source.value for a in result.applied_discounts],
                    "requires_approval": result.requires_approval,
                },
            )
            return result

    def commit(
        self,
        context: DiscountContext,
        result: DiscountCalculationResult,
    ) -> CommitReport:
        """Record the effects of an accepted calculation."""
        code_usage = None
        rules: list[UUID] = []
        campaigns: list[UUID] = []
        approval_request = None

        for applied in result.applied_discounts:
            if applied.source_id is None:
                continue
            if applied.source == DiscountSource.PROMO_CODE:
                code_usage = self.codes.record_usage(
                    applied.source_id,
                    order_amount=context.subtotal,
                    discount_amount=applied.amount,
                    proposal_id=context.proposal_id,
                    customer_id=context.customer_id,
                    customer_email=context.customer_email,
                    applied_by=context.user_id,
                )
            elif applied.source == DiscountSource.AUTOMATIC_RULE:
                self.rules.record_application(applied.source_id, applied.amount)
                rules.append(applied.source_id)
            elif applied.source == DiscountSource.SEASONAL:
                self.campaigns.record_application(applied.source_id, applied.amount)
                campaigns.append(applied.source_id)

        manual = context.manual_discount
        if result.requires_approval and manual is not None:
            if context.proposal_id is None or context.user_id is None:
                raise ValueError(
                    "proposal_id and user_id are required to request discount approval"
                )
            priced = next(
                a for a in result.applied_discounts if a.source == DiscountSource.MANUAL
            )
            approval_request = self.approvals.create_request(
                CreateApprovalRequestInput(
                    org_id=context.org_id,
                    proposal_id=context.proposal_id,
                    requested_by=context.user_id,
                    discount_type=manual.discount_type,
                    discount_value=manual.value,
                    proposal_total=context.subtotal,
                    reason=manual.reason or result.approval_reason or "",
                    supporting_notes=result.approval_reason,
                    customer_id=context.customer_id,
                    is_repeat_customer=context.is_repeat_customer,
                    customer_lifetime_value=context.customer_lifetime_value,
                    discount_amount=priced.amount,
                    applied_to_subtotal=priced.applied_to_subtotal,
                )
            )

        report = CommitReport(
            code_usage=code_usage,
            rules_recorded=tuple(rules),
            campaigns_recorded=tuple(campaigns),
            approval_request=approval_request,
        )
        logger.info(
            "discount_committed",
            extra={
                "org_id": str(context.org_id),
                "proposal_id": str(context.proposal_id) if context.proposal_id else None,
                "code_recorded": bool(code_usage and code_usage.recorded),
                "rules_recorded": len(report.rules_recorded),
                "campaigns_recorded": len(report.campaigns_recorded),
                "approval_requested": approval_request is not None,
            },
        )
        return report
