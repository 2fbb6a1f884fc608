"""
discount_services.rule_set_cache -- Per-organization rule-set snapshot cache.

Responsibility:
    Hold the most recently loaded ``DiscountRuleSet`` for each organization
    for a bounded time so that repeated calculations for the same org do not
    reload every configuration table.

Architecture position:
    Services -- injected into DiscountCalculationService and into every
    service that writes discount configuration.  Time comes from the
    injected Clock; the cache never reads the wall clock itself.

Invariants enforced:
    - An entry older than ``ttl_seconds`` is never returned.
    - ``invalidate(org_id)`` removes the org's entry immediately; the next
      ``get_or_load`` reloads.
    - The cache stores frozen snapshots only, so a returned rule set can
      never be mutated by a caller.

Usage:
    cache = RuleSetCache(ttl_seconds=300, clock=clock)
    rule_set = cache.get_or_load(org_id, loader)
    cache.invalidate(org_id)
"""

from __future__ import annotations

import threading
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timedelta
from uuid import UUID

from discount_kernel.domain.clock import Clock, SystemClock
from discount_kernel.domain.context import DiscountRuleSet
from discount_kernel.logging_config import get_logger

logger = get_logger("services.rule_set_cache")

DEFAULT_TTL_SECONDS = 300


@dataclass(frozen=True)
class _Entry:
    rule_set: DiscountRuleSet
    loaded_at: datetime


class RuleSetCache:
    """
    TTL cache of rule-set snapshots keyed by organization.

    Contract:
        ``get_or_load`` returns a cached snapshot younger than the TTL or
        calls ``loader(org_id)`` and caches its result.
    Non-goals:
        - No cross-process coherence.  Each process holds its own cache
          and relies on the TTL for changes written elsewhere.
    """

    def __init__(self, ttl_seconds: int = DEFAULT_TTL_SECONDS, clock: Clock | None = None):
        if ttl_seconds < 0:
            raise ValueError(f"ttl_seconds must be >= 0, got {ttl_seconds}")
        self._ttl = timedelta(seconds=ttl_seconds)
        self._clock = clock or SystemClock()
        self._entries: dict[UUID, _Entry] = {}
        self._lock = threading.Lock()

    @property
    def ttl_seconds(self) -> int:
        return int(self._ttl.total_seconds())

    def get(self, org_id: UUID) -> DiscountRuleSet | None:
        """The cached snapshot for ``org_id``, or None when absent or stale."""
        now = self._clock.now()
        with self._lock:
            entry = self._entries.get(org_id)
            if entry is None:
                return None
            if now - entry.loaded_at >= self._ttl:
                del self._entries[org_id]
                return None
            return entry.rule_set

    def put(self, rule_set: DiscountRuleSet) -> None:
        with self._lock:
            self._entries[rule_set.org_id] = _Entry(rule_set, self._clock.now())

    def get_or_load(
        self,
        org_id: UUID,
        loader: Callable[[UUID], DiscountRuleSet],
    ) -> DiscountRuleSet:
        cached = self.get(org_id)
        if cached is not None:
            return cached

        rule_set = loader(org_id)
        self.put(rule_set)
        logger.debug(
            "rule_set_loaded",
            extra={
                "org_id": str(org_id),
                "campaigns": len(rule_set.campaigns),
                "auto_rules": len(rule_set.auto_rules),
                "tier_sets": len(rule_set.tier_sets),
            },
        )
        return rule_set

    def invalidate(self, org_id: UUID) -> None:
        with self._lock:
            removed = self._entries.pop(org_id, None)
        if removed is not None:
            logger.debug("rule_set_invalidated", extra={"org_id": str(org_id)})

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __contains__(self, org_id: UUID) -> bool:
        return self.get(org_id) is not None

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
