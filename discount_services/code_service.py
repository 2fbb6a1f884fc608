"""
discount_services.code_service -- Promo code persistence, validation and usage.

Responsibility:
    Load an organization's promo code, count the customer's prior uses,
    hand both to the pure validator, and record a usage once a calculation
    that applied the code is committed.  Also owns code administration
    (create, list, deactivate, usage history).

Architecture position:
    Services -- stateful orchestration over engines + kernel.
    Pure checks and pricing live in ``discount_engines.promo_codes``.

Invariants enforced:
    - Validation is read-only.  Nothing is written until ``record_usage``.
    - Usage cap: ``times_used`` is incremented only by a conditional UPDATE
      guarded by ``times_used < max_uses_total``.  When the guard matches
      no row, no usage row is written.
    - Per-customer cap is re-checked after the conditional UPDATE, while the
      code row is locked, and an over-cap increment is rolled back to a
      savepoint.
    - Flush-only: never commits or rolls back the session.

Failure modes:
    - DiscountCodeNotFoundError from record_usage/deactivate/usage_history
      for an unknown code id.
    - DuplicateDiscountCodeError from create.
    - InvalidDiscountValueError from create for a negative value or a
      percent above 100.

Usage:
    service = PromoCodeService(session, clock)
    result = service.validate(org_id, "SPRING25", Decimal("1200.00"),
                              customer_id=customer_id)
    if result.valid:
        service.record_usage(result.discount_code_id, ...)
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from uuid import UUID, uuid4

from sqlalchemy import func, or_, select, update
from sqlalchemy.orm import Session

from discount_engines.amounts import check_discount_value
from discount_engines.promo_codes import (
    ALREADY_USED,
    USAGE_LIMIT_REACHED,
    validate_code,
)
from discount_kernel.domain.clock import Clock, SystemClock
from discount_kernel.domain.codes import (
    CodeUsage,
    CodeValidationResult,
    DiscountCode,
    UsageRecordResult,
    normalize_code,
)
from discount_kernel.domain.values import ZERO, DiscountType
from discount_kernel.exceptions import (
    DiscountCodeNotFoundError,
    DuplicateDiscountCodeError,
)
from discount_kernel.logging_config import get_logger
from discount_kernel.models.discount_code import CodeUsageModel, DiscountCodeModel

logger = get_logger("services.codes")


class PromoCodeService:
    """
    Promo code validation and usage recording.

    Contract:
        Receives Session and Clock via constructor injection.
    Guarantees:
        - ``validate`` never writes and never raises for a bad code; the
          outcome is a ``CodeValidationResult``.
        - ``record_usage`` either writes a usage row and increments the
          counters, or writes nothing and returns ``recorded=False``.
    """

    def __init__(self, session: Session, clock: Clock | None = None):
        self._session = session
        self._clock = clock or SystemClock()

    # ------------------------------------------------------------------
    # Lookup helpers
    # ------------------------------------------------------------------

    def _find(self, org_id: UUID, code: str) -> DiscountCodeModel | None:
        return self._session.execute(
            select(DiscountCodeModel).where(
                DiscountCodeModel.org_id == org_id,
                DiscountCodeModel.code == normalize_code(code),
            )
        ).scalar_one_or_none()

    def _get(self, code_id: UUID) -> DiscountCodeModel:
        model = self._session.get(DiscountCodeModel, code_id)
        if model is None:
            raise DiscountCodeNotFoundError(str(code_id))
        return model

    def customer_uses(
        self,
        code_id: UUID,
        customer_id: UUID | None = None,
        customer_email: str | None = None,
    ) -> int:
        """Prior usages of a code by a customer id OR by an email address."""
        matches = []
        if customer_id is not None:
            matches.append(CodeUsageModel.customer_id == customer_id)
        if customer_email:
            matches.append(
                func.lower(CodeUsageModel.customer_email) == customer_email.strip().lower()
            )
        if not matches:
            return 0
        return self._session.execute(
            select(func.count(CodeUsageModel.id)).where(
                CodeUsageModel.discount_code_id == code_id,
                or_(*matches),
            )
        ).scalar_one()

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------

    def validate(
        self,
        org_id: UUID,
        code: str,
        order_amount: Decimal,
        customer_id: UUID | None = None,
        customer_email: str | None = None,
    ) -> CodeValidationResult:
        model = self._find(org_id, code)
        dto = model.to_dto() if model is not None else None
        uses = 0
        if dto is not None:
            uses = self.customer_uses(dto.id, customer_id, customer_email)

        result = validate_code(dto, self._clock.now(), order_amount, uses)
        logger.info(
            "promo_code_validated",
            extra={
                "org_id": str(org_id),
                "code": normalize_code(code),
                "valid": result.valid,
                "reason": result.reason,
                "discount_amount": str(result.discount_amount),
            },
        )
        return result

    # ------------------------------------------------------------------
    # Recording
    # ------------------------------------------------------------------

    def record_usage(
        self,
        code_id: UUID,
        order_amount: Decimal,
        discount_amount: Decimal,
        proposal_id: UUID | None = None,
        customer_id: UUID | None = None,
        customer_email: str | None = None,
        applied_by: UUID | None = None,
    ) -> UsageRecordResult:
        """
        Write one usage row and bump the code's counters atomically.

        The conditional UPDATE runs first and holds the code row's lock
        until the transaction ends, so the per-customer count that follows
        sees every usage committed by a competing transaction.  A customer
        over the cap rolls the savepoint back, undoing the increment.
        """
        model = self._get(code_id)
        per_customer_cap = model.max_uses_per_customer

        savepoint = self._session.begin_nested()
        result = self._session.execute(
            update(DiscountCodeModel)
            .where(
                DiscountCodeModel.id == code_id,
                or_(
                    DiscountCodeModel.max_uses_total.is_(None),
                    DiscountCodeModel.times_used < DiscountCodeModel.max_uses_total,
                ),
            )
            .values(
                times_used=DiscountCodeModel.times_used + 1,
                total_discount_given=DiscountCodeModel.total_discount_given + discount_amount,
            )
            .execution_options(synchronize_session=False)
        )
        rejection = None
        if result.rowcount == 0:
            rejection = USAGE_LIMIT_REACHED
        elif per_customer_cap is not None:
            uses = self.customer_uses(code_id, customer_id, customer_email)
            if uses >= per_customer_cap:
                rejection = ALREADY_USED
        if rejection is not None:
            savepoint.rollback()
            logger.warning(
                "promo_code_usage_rejected",
                extra={"code_id": str(code_id), "reason": rejection},
            )
            return UsageRecordResult(recorded=False, reason=rejection)

        usage = CodeUsage(
            id=uuid4(),
            discount_code_id=code_id,
            org_id=model.org_id,
            proposal_id=proposal_id,
            customer_id=customer_id,
            customer_email=customer_email,
            order_amount=order_amount,
            discount_amount=discount_amount,
            applied_at=self._clock.now(),
            applied_by=applied_by,
        )
        self._session.add(CodeUsageModel.from_dto(usage))
        self._session.flush()
        savepoint.commit()
        self._session.refresh(model)

        logger.info(
            "promo_code_usage_recorded",
            extra={
                "code_id": str(code_id),
                "proposal_id": str(proposal_id) if proposal_id else None,
                "times_used": model.times_used,
                "discount_amount": str(discount_amount),
            },
        )
        return UsageRecordResult(recorded=True, usage=usage)

    # ------------------------------------------------------------------
    # Administration
    # ------------------------------------------------------------------

    def create(
        self,
        org_id: UUID,
        code: str,
        name: str,
        discount_type: DiscountType,
        discount_value: Decimal,
        *,
        description: str | None = None,
        max_discount_amount: Decimal | None = None,
        min_order_amount: Decimal = ZERO,
        max_uses_total: int | None = None,
        max_uses_per_customer: int | None = 1,
        starts_at: datetime | None = None,
        expires_at: datetime | None = None,
        is_active: bool = True,
    ) -> DiscountCode:
        check_discount_value(discount_type, discount_value)
        normalized = normalize_code(code)
        if self._find(org_id, normalized) is not None:
            raise DuplicateDiscountCodeError(str(org_id), normalized)

        dto = DiscountCode(
            id=uuid4(),
            org_id=org_id,
            code=normalized,
            name=name,
            description=description,
            discount_type=discount_type,
            discount_value=discount_value,
            max_discount_amount=max_discount_amount,
            min_order_amount=min_order_amount,
            max_uses_total=max_uses_total,
            max_uses_per_customer=max_uses_per_customer,
            starts_at=starts_at or self._clock.now(),
            expires_at=expires_at,
            is_active=is_active,
        )
        self._session.add(DiscountCodeModel.from_dto(dto))
        self._session.flush()
        logger.info(
            "promo_code_created",
            extra={"org_id": str(org_id), "code": normalized, "code_id": str(dto.id)},
        )
        return dto

    def list(self, org_id: UUID, active_only: bool = False) -> list[DiscountCode]:
        stmt = select(DiscountCodeModel).where(DiscountCodeModel.org_id == org_id)
        if active_only:
            stmt = stmt.where(DiscountCodeModel.is_active.is_(True))
        stmt = stmt.order_by(DiscountCodeModel.code)
        return [m.to_dto() for m in self._session.execute(stmt).scalars()]

    def deactivate(self, code_id: UUID) -> DiscountCode:
        model = self._get(code_id)
        model.is_active = False
        self._session.flush()
        logger.info("promo_code_deactivated", extra={"code_id": str(code_id)})
        return model.to_dto()

    def usage_history(self, code_id: UUID) -> list[CodeUsage]:
        """Usages of a code, most recent first."""
        self._get(code_id)
        rows = self._session.execute(
            select(CodeUsageModel)
            .where(CodeUsageModel.discount_code_id == code_id)
            .order_by(CodeUsageModel.applied_at.desc())
        ).scalars()
        return [row.to_dto() for row in rows]
