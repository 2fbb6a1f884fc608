"""
Calculation policy (``discount_kernel.domain.policy``).

Tunable, non-persisted knobs for the orchestrator: the priority each
built-in discount source is given when it becomes a candidate, the upsell
suggestion settings, and the campaign expiring-soon window.  Loaded from
YAML by ``discount_config``; the defaults here match the shipped
``engine.yaml``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal


@dataclass(frozen=True)
class CandidatePriorities:
    seasonal: int = 100
    promo_code: int = 90
    volume: int = 80
    loyalty: int = 50


@dataclass(frozen=True)
class ComplementaryService:
    """Suggest ``missing`` whenever ``present`` is on the proposal without it."""

    present: str
    missing: str
    potential_percent: Decimal = Decimal("10")

    @property
    def missing_label(self) -> str:
        return self.missing.replace("_", " ")


@dataclass(frozen=True)
class UpsellPolicy:
    volume_percent: Decimal = Decimal("5")
    volume_action: str = "Increase project size to 5,000+ sq ft"
    complementary: tuple[ComplementaryService, ...] = (
        ComplementaryService("sealcoating", "crack_filling"),
    )
    loyalty_percent: Decimal = Decimal("5")


@dataclass(frozen=True)
class CalculationPolicy:
    priorities: CandidatePriorities = field(default_factory=CandidatePriorities)
    upsell: UpsellPolicy = field(default_factory=UpsellPolicy)
    expiring_soon_hours: int = 48
