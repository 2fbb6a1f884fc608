"""
Module: discount_kernel.models.loyalty
Responsibility: ORM persistence for loyalty programs, customer accounts and
    the append-only point ledger.

Architecture position: Kernel > Models.  May import from db/ only.

Invariants enforced:
    - One program per organization: UNIQUE(org_id).
    - One account per customer per organization: UNIQUE(org_id, customer_id).
    - Referral codes are globally unique.
    - Ledger ordering: UNIQUE(account_id, sequence).  A concurrent append
      that loses the race on ``sequence`` fails with IntegrityError instead
      of interleaving balances.
    - Balance non-negativity: CHECK(current_points >= 0) backs the
      conditional decrement in LoyaltyLedgerService.redeem_points.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING, Any
from uuid import UUID

from sqlalchemy import (
    JSON,
    CheckConstraint,
    ForeignKey,
    Index,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from discount_kernel.db.base import TrackedBase
from discount_kernel.db.types import UUIDString

if TYPE_CHECKING:
    from discount_kernel.domain.loyalty import (
        CustomerLoyaltyAccount,
        LoyaltyProgram,
        LoyaltyTransaction,
    )


def tiers_to_payload(tiers) -> list[dict[str, Any]]:
    return [
        {
            "name": tier.name,
            "min_points": tier.min_points,
            "discount_percent": str(tier.discount_percent),
            "perks": list(tier.perks),
        }
        for tier in tiers
    ]


def tiers_from_payload(payload: list[dict[str, Any]]):
    from discount_kernel.domain.loyalty import LoyaltyTier

    return tuple(
        LoyaltyTier(
            name=item["name"],
            min_points=int(item.get("min_points", item.get("minPoints", 0))),
            discount_percent=Decimal(
                str(item.get("discount_percent", item.get("discountPercent", "0"))),
            ),
            perks=tuple(item.get("perks", ())),
        )
        for item in payload
    )


class LoyaltyProgramModel(TrackedBase):
    """Persistent loyalty program configuration."""

    __tablename__ = "loyalty_programs"

    __table_args__ = (
        UniqueConstraint("org_id", name="uq_loyalty_programs_org"),
    )

    org_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    is_active: Mapped[bool] = mapped_column(nullable=False, default=True)
    points_per_dollar: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("1"))
    points_for_signup: Mapped[int] = mapped_column(nullable=False, default=0)
    points_for_referral: Mapped[int] = mapped_column(nullable=False, default=500)
    points_to_dollar_ratio: Mapped[Decimal] = mapped_column(
        nullable=False, default=Decimal("0.01"),
    )
    min_points_to_redeem: Mapped[int] = mapped_column(nullable=False, default=500)
    max_redemption_percent: Mapped[Decimal] = mapped_column(
        nullable=False, default=Decimal("50"),
    )
    tiers: Mapped[list[dict[str, Any]]] = mapped_column(JSON, nullable=False, default=list)

    def to_dto(self) -> LoyaltyProgram:
        """Convert ORM model to frozen domain DTO (validates the tier table)."""
        from discount_kernel.domain.loyalty import LoyaltyProgram as LoyaltyProgramDTO

        return LoyaltyProgramDTO(
            id=self.id,
            org_id=self.org_id,
            name=self.name,
            is_active=self.is_active,
            points_per_dollar=self.points_per_dollar,
            points_for_signup=self.points_for_signup,
            points_for_referral=self.points_for_referral,
            points_to_dollar_ratio=self.points_to_dollar_ratio,
            min_points_to_redeem=self.min_points_to_redeem,
            max_redemption_percent=self.max_redemption_percent,
            tiers=tiers_from_payload(self.tiers),
        )

    @classmethod
    def from_dto(cls, dto: LoyaltyProgram) -> LoyaltyProgramModel:
        return cls(
            id=dto.id,
            org_id=dto.org_id,
            name=dto.name,
            is_active=dto.is_active,
            points_per_dollar=dto.points_per_dollar,
            points_for_signup=dto.points_for_signup,
            points_for_referral=dto.points_for_referral,
            points_to_dollar_ratio=dto.points_to_dollar_ratio,
            min_points_to_redeem=dto.min_points_to_redeem,
            max_redemption_percent=dto.max_redemption_percent,
            tiers=tiers_to_payload(dto.tiers),
        )


class CustomerLoyaltyAccountModel(TrackedBase):
    """Persistent customer loyalty position."""

    __tablename__ = "customer_loyalty_accounts"

    __table_args__ = (
        UniqueConstraint("org_id", "customer_id", name="uq_loyalty_accounts_customer"),
        UniqueConstraint("referral_code", name="uq_loyalty_accounts_referral_code"),
        CheckConstraint("current_points >= 0", name="ck_loyalty_accounts_non_negative"),
    )

    org_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    customer_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    referral_code: Mapped[str] = mapped_column(String(20), nullable=False)
    enrolled_at: Mapped[datetime] = mapped_column(nullable=False)
    current_points: Mapped[int] = mapped_column(nullable=False, default=0)
    total_points_earned: Mapped[int] = mapped_column(nullable=False, default=0)
    total_points_redeemed: Mapped[int] = mapped_column(nullable=False, default=0)
    total_orders: Mapped[int] = mapped_column(nullable=False, default=0)
    total_spent: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    first_order_date: Mapped[datetime | None] = mapped_column(nullable=True)
    last_order_date: Mapped[datetime | None] = mapped_column(nullable=True)
    current_tier: Mapped[str] = mapped_column(String(100), nullable=False, default="Bronze")
    tier_discount_percent: Mapped[Decimal] = mapped_column(
        nullable=False, default=Decimal("0"),
    )
    referred_by: Mapped[str | None] = mapped_column(String(20), nullable=True)
    referrals_count: Mapped[int] = mapped_column(nullable=False, default=0)

    def __repr__(self) -> str:
        return (
            f"<LoyaltyAccount customer={self.customer_id} "
            f"points={self.current_points} tier={self.current_tier}>"
        )

    def to_dto(self) -> CustomerLoyaltyAccount:
        from discount_kernel.domain.loyalty import (
            CustomerLoyaltyAccount as CustomerLoyaltyAccountDTO,
        )

        return CustomerLoyaltyAccountDTO(
            id=self.id,
            org_id=self.org_id,
            customer_id=self.customer_id,
            referral_code=self.referral_code,
            enrolled_at=self.enrolled_at,
            current_points=self.current_points,
            total_points_earned=self.total_points_earned,
            total_points_redeemed=self.total_points_redeemed,
            total_orders=self.total_orders,
            total_spent=self.total_spent,
            first_order_date=self.first_order_date,
            last_order_date=self.last_order_date,
            current_tier=self.current_tier,
            tier_discount_percent=self.tier_discount_percent,
            referred_by=self.referred_by,
            referrals_count=self.referrals_count,
        )

    @classmethod
    def from_dto(cls, dto: CustomerLoyaltyAccount) -> CustomerLoyaltyAccountModel:
        return cls(
            id=dto.id,
            org_id=dto.org_id,
            customer_id=dto.customer_id,
            referral_code=dto.referral_code,
            enrolled_at=dto.enrolled_at,
            current_points=dto.current_points,
            total_points_earned=dto.total_points_earned,
            total_points_redeemed=dto.total_points_redeemed,
            total_orders=dto.total_orders,
            total_spent=dto.total_spent,
            first_order_date=dto.first_order_date,
            last_order_date=dto.last_order_date,
            current_tier=dto.current_tier,
            tier_discount_percent=dto.tier_discount_percent,
            referred_by=dto.referred_by,
            referrals_count=dto.referrals_count,
        )


class LoyaltyTransactionModel(TrackedBase):
    """Persistent ledger row. Append-only."""

    __tablename__ = "loyalty_transactions"

    __table_args__ = (
        UniqueConstraint("account_id", "sequence", name="uq_loyalty_transactions_sequence"),
        Index("ix_loyalty_transactions_account_occurred", "account_id", "occurred_at"),
        CheckConstraint("balance_after >= 0", name="ck_loyalty_transactions_non_negative"),
    )

    account_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("customer_loyalty_accounts.id"), nullable=False,
    )
    org_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    type: Mapped[str] = mapped_column(String(30), nullable=False)
    points: Mapped[int] = mapped_column(nullable=False)
    balance_after: Mapped[int] = mapped_column(nullable=False)
    sequence: Mapped[int] = mapped_column(nullable=False)
    proposal_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    occurred_at: Mapped[datetime] = mapped_column(nullable=False)

    def to_dto(self) -> LoyaltyTransaction:
        from discount_kernel.domain.loyalty import (
            LoyaltyTransaction as LoyaltyTransactionDTO,
            TransactionType,
        )

        return LoyaltyTransactionDTO(
            id=self.id,
            account_id=self.account_id,
            org_id=self.org_id,
            type=TransactionType(self.type),
            points=self.points,
            balance_after=self.balance_after,
            created_at=self.occurred_at,
            sequence=self.sequence,
            proposal_id=self.proposal_id,
            description=self.description,
        )

    @classmethod
    def from_dto(cls, dto: LoyaltyTransaction) -> LoyaltyTransactionModel:
        return cls(
            id=dto.id,
            account_id=dto.account_id,
            org_id=dto.org_id,
            type=dto.type.value,
            points=dto.points,
            balance_after=dto.balance_after,
            sequence=dto.sequence,
            proposal_id=dto.proposal_id,
            description=dto.description,
            occurred_at=dto.created_at,
        )
