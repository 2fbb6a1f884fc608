"""
Automatic discount rule domain types (``discount_kernel.domain.rules``).

Responsibility
--------------
Models rule conditions as an explicit tagged union: one frozen dataclass per
rule tag, each carrying only the fields that tag needs.  Stored rules keep
their condition as a JSON payload keyed by tag; ``parse_condition`` is the
single place where payloads become typed variants.

Invariants enforced
-------------------
* Every known tag maps to exactly one variant in ``CONDITION_TYPES``.
* Unknown tags parse to ``UnsupportedCondition`` rather than raising, so a
  partially migrated rule table still evaluates.  The evaluator never
  matches an ``UnsupportedCondition``.
* A known tag with a payload missing required fields raises
  ``MalformedRuleConditionError``: that is broken configuration, not an
  unknown rule.

Payload keys accept both ``snake_case`` and ``camelCase`` spellings.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Union
from uuid import UUID

from discount_kernel.domain.values import ZERO, DiscountType, to_decimal
from discount_kernel.exceptions import MalformedRuleConditionError


class RuleType(str, Enum):
    """Rule tags understood by the evaluator."""

    ORDER_MINIMUM = "order_minimum"
    FIRST_ORDER = "first_order"
    REPEAT_CUSTOMER = "repeat_customer"
    SERVICE_COMBO = "service_combo"
    SERVICE_QUANTITY = "service_quantity"
    SEASONAL = "seasonal"
    DAY_OF_WEEK = "day_of_week"


@dataclass(frozen=True)
class OrderMinimumCondition:
    min_amount: Decimal


@dataclass(frozen=True)
class FirstOrderCondition:
    pass


@dataclass(frozen=True)
class RepeatCustomerCondition:
    min_orders: int = 1


@dataclass(frozen=True)
class ServiceComboCondition:
    required_services: tuple[str, ...]
    require_all: bool = True


@dataclass(frozen=True)
class ServiceQuantityCondition:
    service: str
    min_quantity: Decimal


@dataclass(frozen=True)
class SeasonalMonthCondition:
    """Inclusive calendar-month range.

    A range with ``start_month > end_month`` (a window crossing the year
    boundary) never matches; wraparound semantics are undecided.
    """

    start_month: int
    end_month: int


@dataclass(frozen=True)
class DayOfWeekCondition:
    """Weekdays numbered 0 = Sunday through 6 = Saturday."""

    days: frozenset[int]


@dataclass(frozen=True)
class UnsupportedCondition:
    """Stored rule whose tag this version does not understand."""

    rule_type: str
    payload: dict[str, Any] = field(default_factory=dict, compare=False)


RuleCondition = Union[
    OrderMinimumCondition,
    FirstOrderCondition,
    RepeatCustomerCondition,
    ServiceComboCondition,
    ServiceQuantityCondition,
    SeasonalMonthCondition,
    DayOfWeekCondition,
    UnsupportedCondition,
]

CONDITION_TYPES: dict[RuleType, type] = {
    RuleType.ORDER_MINIMUM: OrderMinimumCondition,
    RuleType.FIRST_ORDER: FirstOrderCondition,
    RuleType.REPEAT_CUSTOMER: RepeatCustomerCondition,
    RuleType.SERVICE_COMBO: ServiceComboCondition,
    RuleType.SERVICE_QUANTITY: ServiceQuantityCondition,
    RuleType.SEASONAL: SeasonalMonthCondition,
    RuleType.DAY_OF_WEEK: DayOfWeekCondition,
}


def _get(payload: dict[str, Any], rule_type: str, *keys: str, default: Any = ...) -> Any:
    for key in keys:
        if key in payload and payload[key] is not None:
            return payload[key]
    if default is ...:
        raise MalformedRuleConditionError(rule_type, f"missing '{keys[0]}'")
    return default


def parse_condition(rule_type: str, payload: dict[str, Any] | None) -> RuleCondition:
    """Turn a stored ``(rule_type, conditions)`` pair into a typed variant."""
    payload = payload or {}
    try:
        tag = RuleType(rule_type)
    except ValueError:
        return UnsupportedCondition(rule_type=rule_type, payload=dict(payload))

    try:
        match tag:
            case RuleType.ORDER_MINIMUM:
                return OrderMinimumCondition(
                    min_amount=to_decimal(_get(payload, rule_type, "min_amount", "minAmount")),
                )
            case RuleType.FIRST_ORDER:
                return FirstOrderCondition()
            case RuleType.REPEAT_CUSTOMER:
                return RepeatCustomerCondition(
                    min_orders=int(_get(payload, rule_type, "min_orders", "minOrders", default=1)),
                )
            case RuleType.SERVICE_COMBO:
                required = _get(payload, rule_type, "required_services", "requiredServices")
                if not isinstance(required, (list, tuple)) or not required:
                    raise MalformedRuleConditionError(
                        rule_type, "required_services must be a non-empty list",
                    )
                return ServiceComboCondition(
                    required_services=tuple(str(s) for s in required),
                    require_all=bool(_get(payload, rule_type, "require_all", "requireAll", default=True)),
                )
            case RuleType.SERVICE_QUANTITY:
                return ServiceQuantityCondition(
                    service=str(_get(payload, rule_type, "service")),
                    min_quantity=to_decimal(
                        _get(payload, rule_type, "min_quantity", "minQuantity", "min_sqft"),
                    ),
                )
            case RuleType.SEASONAL:
                return SeasonalMonthCondition(
                    start_month=int(_get(payload, rule_type, "start_month", "startMonth")),
                    end_month=int(_get(payload, rule_type, "end_month", "endMonth")),
                )
            case RuleType.DAY_OF_WEEK:
                days = _get(payload, rule_type, "days")
                if not isinstance(days, (list, tuple, set, frozenset)):
                    raise MalformedRuleConditionError(rule_type, "days must be a list")
                return DayOfWeekCondition(days=frozenset(int(d) for d in days))
    except (TypeError, ValueError) as exc:
        raise MalformedRuleConditionError(rule_type, str(exc)) from exc
    raise MalformedRuleConditionError(rule_type, "no parser registered")


def condition_to_payload(condition: RuleCondition) -> dict[str, Any]:
    """Inverse of ``parse_condition`` for persistence (JSON-safe values)."""
    match condition:
        case OrderMinimumCondition(min_amount=min_amount):
            return {"min_amount": str(min_amount)}
        case FirstOrderCondition():
            return {}
        case RepeatCustomerCondition(min_orders=min_orders):
            return {"min_orders": min_orders}
        case ServiceComboCondition(required_services=required, require_all=require_all):
            return {"required_services": list(required), "require_all": require_all}
        case ServiceQuantityCondition(service=service, min_quantity=min_quantity):
            return {"service": service, "min_quantity": str(min_quantity)}
        case SeasonalMonthCondition(start_month=start, end_month=end):
            return {"start_month": start, "end_month": end}
        case DayOfWeekCondition(days=days):
            return {"days": sorted(days)}
        case UnsupportedCondition(payload=payload):
            return dict(payload)
    raise TypeError(f"Unknown condition variant: {type(condition).__name__}")


def rule_type_of(condition: RuleCondition) -> str:
    """Tag under which a condition variant is stored."""
    if isinstance(condition, UnsupportedCondition):
        return condition.rule_type
    for tag, cls in CONDITION_TYPES.items():
        if isinstance(condition, cls):
            return tag.value
    raise TypeError(f"Unknown condition variant: {type(condition).__name__}")


@dataclass(frozen=True)
class AutoDiscountRule:
    """An always-on, condition-driven discount rule.

    ``priority``: higher is evaluated and applied first.
    """

    id: UUID
    org_id: UUID
    name: str
    condition: RuleCondition
    discount_type: DiscountType
    discount_value: Decimal
    priority: int = 0
    description: str | None = None
    max_discount_amount: Decimal | None = None
    stackable: bool = False
    stack_with_codes: bool = True
    starts_at: datetime | None = None
    expires_at: datetime | None = None
    is_active: bool = True
    times_applied: int = 0
    total_discount_given: Decimal = ZERO

    @property
    def rule_type(self) -> str:
        return rule_type_of(self.condition)

    def is_within_window(self, now: datetime) -> bool:
        if self.starts_at is not None and self.starts_at > now:
            return False
        if self.expires_at is not None and self.expires_at < now:
            return False
        return True
