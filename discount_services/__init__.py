"""
discount_services -- Package init and public API.

Responsibility:
    Persistence-backed services that compose the pure discount engines
    (discount_engines/) with database sessions and a clock.  This is the
    **only** layer that may hold database sessions or read wall-clock time.

Architecture position:
    Services -- stateful orchestration over engines + kernel.

    Dependency direction:
        discount_services/ -> discount_engines/  (allowed)
        discount_services/ -> discount_kernel/   (allowed)
        discount_engines/  -> discount_services/ (FORBIDDEN)
        discount_kernel/   -> discount_services/ (FORBIDDEN)

Invariants enforced:
    - Flush-only: services never commit.  The caller owns the transaction
      (see ``discount_kernel.db.session_scope``).
    - Configuration writes invalidate the org's cached rule set.
"""

from discount_kernel.logging_config import get_logger

logger = get_logger("services")

from discount_services.approval_service import DiscountApprovalService
from discount_services.calculation_service import CommitReport, DiscountCalculationService
from discount_services.campaign_service import SeasonalCampaignService
from discount_services.code_service import PromoCodeService
from discount_services.loyalty_service import LoyaltyLedgerService
from discount_services.notifier import LoggingNotifier, Notifier
from discount_services.rule_service import AutoRuleService
from discount_services.rule_set_cache import RuleSetCache
from discount_services.volume_service import VolumeTierService

__all__ = [
    "AutoRuleService",
    "CommitReport",
    "DiscountApprovalService",
    "DiscountCalculationService",
    "LoggingNotifier",
    "LoyaltyLedgerService",
    "Notifier",
    "PromoCodeService",
    "RuleSetCache",
    "SeasonalCampaignService",
    "VolumeTierService",
]
