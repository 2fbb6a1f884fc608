"""
discount_services.loyalty_service -- The durable loyalty points ledger.

Responsibility:
    Enroll customers (signup and referral bonuses), earn points on
    purchases, redeem points for a discount, and expose the append-only
    transaction history with a reconciliation check.

Architecture position:
    Services -- stateful orchestration over engines + kernel.
    Points, tier and redemption maths live in ``discount_engines.loyalty``.

Invariants enforced:
    - Append-only ledger: every balance change writes exactly one
      ``LoyaltyTransaction`` whose ``balance_after`` is the account balance
      immediately after the change and whose ``sequence`` is the next
      number for that account.
    - Balance changes are in-database increments.  Redemption is a
      conditional UPDATE (``WHERE current_points >= :points``) so two
      concurrent redemptions can never drive the balance negative.
    - Tier = highest tier whose threshold is <= lifetime earned points,
      recomputed after every credit.
    - Flush-only: never commits or rolls back the session.

Failure modes:
    - AlreadyEnrolledError from enroll.
    - LoyaltyAccountNotFoundError from transaction_history/verify_account.
    - LedgerInvariantError from verify_account(strict=True).
    - Redemption and earning refusals are returned as results, not raised.

Usage:
    ledger = LoyaltyLedgerService(session, clock)
    ledger.enroll(org_id, customer_id, referred_by="K7M2QX9P")
    ledger.earn_points(org_id, customer_id, Decimal("1250.00"))
    result = ledger.redeem_points(org_id, customer_id, 500)
"""

from __future__ import annotations

import dataclasses
from collections.abc import Sequence
from decimal import Decimal
from typing import Any
from uuid import UUID, uuid4

from sqlalchemy import func, select, update
from sqlalchemy.orm import Session

from discount_engines.loyalty import (
    INSUFFICIENT_POINTS,
    base_purchase_points,
    earn_description,
    earn_failure,
    generate_referral_code,
    purchase_points,
    redeem_description,
    redemption_failure,
    redemption_value,
    tier_for_points,
    verify_ledger,
)
from discount_kernel.domain.clock import Clock, SystemClock
from discount_kernel.domain.loyalty import (
    DEFAULT_TIERS,
    CustomerLoyaltyAccount,
    EarnResult,
    EnrollmentResult,
    LedgerVerification,
    LoyaltyProgram,
    LoyaltyTier,
    LoyaltyTransaction,
    RedemptionResult,
    TransactionType,
)
from discount_kernel.exceptions import (
    AlreadyEnrolledError,
    LedgerInvariantError,
    LoyaltyAccountNotFoundError,
)
from discount_kernel.logging_config import get_logger
from discount_kernel.models.loyalty import (
    CustomerLoyaltyAccountModel,
    LoyaltyProgramModel,
    LoyaltyTransactionModel,
    tiers_to_payload,
)
from discount_services.rule_set_cache import RuleSetCache

logger = get_logger("services.loyalty")

SIGNUP_DESCRIPTION = "Signup bonus"
REFERRAL_DESCRIPTION = "Referral bonus"
DEFAULT_HISTORY_LIMIT = 50
_REFERRAL_CODE_ATTEMPTS = 10


class LoyaltyLedgerService:
    """
    Loyalty program settings and the customer points ledger.

    Contract:
        Receives Session, Clock and an optional RuleSetCache via
        constructor injection.
    Guarantees:
        - ``earn_points`` auto-enrolls a customer without an account.
        - ``redeem_points`` never leaves a negative balance.
    Non-goals:
        - Point expiry runs.  ``expire`` and ``adjust`` transactions are
          representable but nothing in this service writes them.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        cache: RuleSetCache | None = None,
    ):
        self._session = session
        self._clock = clock or SystemClock()
        self._cache = cache

    # ------------------------------------------------------------------
    # Program
    # ------------------------------------------------------------------

    def _program_model(self, org_id: UUID) -> LoyaltyProgramModel | None:
        return self._session.execute(
            select(LoyaltyProgramModel).where(LoyaltyProgramModel.org_id == org_id)
        ).scalar_one_or_none()

    def get_program(self, org_id: UUID) -> LoyaltyProgram | None:
        model = self._program_model(org_id)
        return model.to_dto() if model is not None else None

    def update_program(self, org_id: UUID, **changes: Any) -> LoyaltyProgram:
        """Create or update the org's program.

        ``changes`` are LoyaltyProgram field names.  The tier table is
        validated before anything is written.
        """
        model = self._program_model(org_id)
        if model is None:
            program = LoyaltyProgram(id=uuid4(), org_id=org_id, **changes)
            self._session.add(LoyaltyProgramModel.from_dto(program))
        else:
            program = dataclasses.replace(model.to_dto(), **changes)
            for f in dataclasses.fields(program):
                if f.name in ("id", "org_id"):
                    continue
                value = getattr(program, f.name)
                if f.name == "tiers":
                    value = tiers_to_payload(value)
                setattr(model, f.name, value)
        self._session.flush()
        if self._cache is not None:
            self._cache.invalidate(org_id)
        logger.info(
            "loyalty_program_updated",
            extra={
                "org_id": str(org_id),
                "fields": sorted(changes),
                "is_active": program.is_active,
            },
        )
        return program

    # ------------------------------------------------------------------
    # Accounts
    # ------------------------------------------------------------------

    def _account_model(self, org_id: UUID, customer_id: UUID) -> CustomerLoyaltyAccountModel | None:
        return self._session.execute(
            select(CustomerLoyaltyAccountModel).where(
                CustomerLoyaltyAccountModel.org_id == org_id,
                CustomerLoyaltyAccountModel.customer_id == customer_id,
            )
        ).scalar_one_or_none()

    def _require_account(self, org_id: UUID, customer_id: UUID) -> CustomerLoyaltyAccountModel:
        model = self._account_model(org_id, customer_id)
        if model is None:
            raise LoyaltyAccountNotFoundError(str(org_id), str(customer_id))
        return model

    def get_account(self, org_id: UUID, customer_id: UUID) -> CustomerLoyaltyAccount | None:
        model = self._account_model(org_id, customer_id)
        return model.to_dto() if model is not None else None

    def _unused_referral_code(self) -> str:
        for _ in range(_REFERRAL_CODE_ATTEMPTS):
            candidate = generate_referral_code()
            taken = self._session.execute(
                select(CustomerLoyaltyAccountModel.id).where(
                    CustomerLoyaltyAccountModel.referral_code == candidate,
                )
            ).first()
            if taken is None:
                return candidate
        raise RuntimeError("Could not allocate an unused referral code")

    @staticmethod
    def _apply_tier(
        model: CustomerLoyaltyAccountModel,
        tiers: Sequence[LoyaltyTier],
    ) -> bool:
        """Set the tier from lifetime points; True when it changed."""
        tier = tier_for_points(tiers, model.total_points_earned)
        changed = model.current_tier != tier.name
        model.current_tier = tier.name
        model.tier_discount_percent = tier.discount_percent
        return changed

    def _append(
        self,
        account: CustomerLoyaltyAccountModel,
        txn_type: TransactionType,
        points: int,
        description: str,
        proposal_id: UUID | None = None,
    ) -> LoyaltyTransaction:
        """Write the next ledger row for an account whose balance is already updated."""
        last = self._session.execute(
            select(func.max(LoyaltyTransactionModel.sequence)).where(
                LoyaltyTransactionModel.account_id == account.id,
            )
        ).scalar_one()
        txn = LoyaltyTransaction(
            id=uuid4(),
            account_id=account.id,
            org_id=account.org_id,
            type=txn_type,
            points=points,
            balance_after=account.current_points,
            created_at=self._clock.now(),
            sequence=(last or 0) + 1,
            proposal_id=proposal_id,
            description=description,
        )
        self._session.add(LoyaltyTransactionModel.from_dto(txn))
        self._session.flush()
        return txn

    def _credit(
        self,
        account: CustomerLoyaltyAccountModel,
        points: int,
        **extra_values: Any,
    ) -> None:
        self._session.flush()
        self._session.execute(
            update(CustomerLoyaltyAccountModel)
            .where(CustomerLoyaltyAccountModel.id == account.id)
            .values(
                current_points=CustomerLoyaltyAccountModel.current_points + points,
                total_points_earned=CustomerLoyaltyAccountModel.total_points_earned + points,
                **extra_values,
            )
            .execution_options(synchronize_session=False)
        )
        self._session.refresh(account)

    def enroll(
        self,
        org_id: UUID,
        customer_id: UUID,
        referred_by: str | None = None,
    ) -> EnrollmentResult:
        """Open an account, award the signup bonus and credit any referrer."""
        if self._account_model(org_id, customer_id) is not None:
            raise AlreadyEnrolledError(str(org_id), str(customer_id))

        program = self.get_program(org_id)
        tiers = program.tiers if program is not None else DEFAULT_TIERS
        signup = program.points_for_signup if program is not None else 0

        account = CustomerLoyaltyAccountModel(
            id=uuid4(),
            org_id=org_id,
            customer_id=customer_id,
            referral_code=self._unused_referral_code(),
            enrolled_at=self._clock.now(),
            current_points=signup,
            total_points_earned=signup,
            total_points_redeemed=0,
            total_orders=0,
            total_spent=Decimal("0"),
            referred_by=referred_by,
            referrals_count=0,
        )
        self._apply_tier(account, tiers)
        self._session.add(account)
        self._session.flush()

        transactions: list[LoyaltyTransaction] = []
        if signup:
            transactions.append(
                self._append(account, TransactionType.EARN_SIGNUP, signup, SIGNUP_DESCRIPTION)
            )

        referrer_credited = False
        if referred_by and program is not None and program.points_for_referral:
            referrer_credited = self._credit_referrer(
                org_id, referred_by, program.points_for_referral, tiers,
            )

        logger.info(
            "loyalty_customer_enrolled",
            extra={
                "org_id": str(org_id),
                "customer_id": str(customer_id),
                "account_id": str(account.id),
                "signup_points": signup,
                "referred_by": referred_by,
                "referrer_credited": referrer_credited,
            },
        )
        return EnrollmentResult(
            account=account.to_dto(),
            transactions=tuple(transactions),
            referrer_credited=referrer_credited,
        )

    def _credit_referrer(
        self,
        org_id: UUID,
        referral_code: str,
        points: int,
        tiers: Sequence[LoyaltyTier],
    ) -> bool:
        referrer = self._session.execute(
            select(CustomerLoyaltyAccountModel).where(
                CustomerLoyaltyAccountModel.org_id == org_id,
                CustomerLoyaltyAccountModel.referral_code == referral_code.strip().upper(),
            )
        ).scalar_one_or_none()
        if referrer is None:
            logger.warning(
                "loyalty_referral_code_unknown",
                extra={"org_id": str(org_id), "referral_code": referral_code},
            )
            return False

        self._credit(
            referrer,
            points,
            referrals_count=CustomerLoyaltyAccountModel.referrals_count + 1,
        )
        self._apply_tier(referrer, tiers)
        self._append(referrer, TransactionType.EARN_REFERRAL, points, REFERRAL_DESCRIPTION)
        return True

    # ------------------------------------------------------------------
    # Earning and redeeming
    # ------------------------------------------------------------------

    def earn_points(
        self,
        org_id: UUID,
        customer_id: UUID,
        order_amount: Decimal,
        bonus_points: int = 0,
        proposal_id: UUID | None = None,
    ) -> EarnResult:
        program = self.get_program(org_id)
        failure = earn_failure(program, order_amount, bonus_points)
        if failure is not None:
            logger.warning(
                "loyalty_earn_rejected",
                extra={"customer_id": str(customer_id), "reason": failure},
            )
            return EarnResult(success=False, reason=failure)

        account = self._account_model(org_id, customer_id)
        if account is None:
            self.enroll(org_id, customer_id)
            account = self._require_account(org_id, customer_id)

        now = self._clock.now()
        points = purchase_points(program, order_amount, bonus_points)
        self._credit(
            account,
            points,
            total_orders=CustomerLoyaltyAccountModel.total_orders + 1,
            total_spent=CustomerLoyaltyAccountModel.total_spent + order_amount,
            first_order_date=account.first_order_date or now,
            last_order_date=now,
        )
        previous_tier = account.current_tier
        tier_changed = self._apply_tier(account, program.tiers)
        txn = self._append(
            account,
            TransactionType.EARN_PURCHASE,
            points,
            earn_description(base_purchase_points(program, order_amount), order_amount, bonus_points),
            proposal_id,
        )

        if tier_changed:
            logger.info(
                "loyalty_tier_changed",
                extra={
                    "account_id": str(account.id),
                    "from_tier": previous_tier,
                    "to_tier": account.current_tier,
                },
            )
        logger.info(
            "loyalty_points_earned",
            extra={
                "account_id": str(account.id),
                "points": points,
                "balance_after": txn.balance_after,
            },
        )
        return EarnResult(
            success=True,
            transaction=txn,
            account=account.to_dto(),
            tier_changed=tier_changed,
        )

    def redeem_points(
        self,
        org_id: UUID,
        customer_id: UUID,
        points: int,
        proposal_id: UUID | None = None,
    ) -> RedemptionResult:
        program = self.get_program(org_id)
        account = self._account_model(org_id, customer_id)
        reason = redemption_failure(
            program, account.to_dto() if account is not None else None, points,
        )
        if reason is not None:
            logger.info(
                "loyalty_redemption_refused",
                extra={"customer_id": str(customer_id), "points": points, "reason": reason},
            )
            return RedemptionResult(success=False, reason=reason)

        self._session.flush()
        result = self._session.execute(
            update(CustomerLoyaltyAccountModel)
            .where(
                CustomerLoyaltyAccountModel.id == account.id,
                CustomerLoyaltyAccountModel.current_points >= points,
            )
            .values(
                current_points=CustomerLoyaltyAccountModel.current_points - points,
                total_points_redeemed=CustomerLoyaltyAccountModel.total_points_redeemed + points,
            )
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            logger.warning(
                "loyalty_redemption_lost_race",
                extra={"account_id": str(account.id), "points": points},
            )
            return RedemptionResult(success=False, reason=INSUFFICIENT_POINTS)

        self._session.refresh(account)
        value = redemption_value(program, points)
        txn = self._append(
            account,
            TransactionType.REDEEM,
            -points,
            redeem_description(points, value),
            proposal_id,
        )
        logger.info(
            "loyalty_points_redeemed",
            extra={
                "account_id": str(account.id),
                "points": points,
                "discount_amount": str(value),
                "balance_after": txn.balance_after,
            },
        )
        return RedemptionResult(success=True, discount_amount=value, transaction=txn)

    # ------------------------------------------------------------------
    # History and reconciliation
    # ------------------------------------------------------------------

    def transaction_history(
        self,
        org_id: UUID,
        customer_id: UUID,
        limit: int = DEFAULT_HISTORY_LIMIT,
    ) -> list[LoyaltyTransaction]:
        """Most recent transactions first."""
        account = self._require_account(org_id, customer_id)
        rows = self._session.execute(
            select(LoyaltyTransactionModel)
            .where(LoyaltyTransactionModel.account_id == account.id)
            .order_by(LoyaltyTransactionModel.sequence.desc())
            .limit(limit)
        ).scalars()
        return [row.to_dto() for row in rows]

    def verify_account(
        self,
        org_id: UUID,
        customer_id: UUID,
        strict: bool = False,
    ) -> LedgerVerification:
        account = self._require_account(org_id, customer_id)
        rows = self._session.execute(
            select(LoyaltyTransactionModel)
            .where(LoyaltyTransactionModel.account_id == account.id)
            .order_by(LoyaltyTransactionModel.sequence)
        ).scalars()
        verification = verify_ledger(account.to_dto(), [row.to_dto() for row in rows])
        if not verification.is_consistent:
            logger.error(
                "loyalty_ledger_inconsistent",
                extra={
                    "account_id": str(account.id),
                    "issues": list(verification.issues),
                },
            )
            if strict:
                raise LedgerInvariantError(str(account.id), "; ".join(verification.issues))
        return verification
