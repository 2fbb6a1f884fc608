"""
Engine configuration schema.

The parsed form of ``engine.yaml``.  Calculation knobs reuse the kernel's
``CalculationPolicy`` types so the orchestrator receives exactly what was
configured; infrastructure settings (cache TTL, database) live beside them.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from discount_kernel.domain.policy import CalculationPolicy

# ---------------------------------------------------------------------------
# Infrastructure
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class CacheSettings:
    rule_set_ttl_seconds: int = 300


@dataclass(frozen=True)
class DatabaseSettings:
    url: str = "sqlite://"
    pool_size: int = 5
    max_overflow: int = 10
    echo: bool = False


# ---------------------------------------------------------------------------
# Root
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class EngineConfig:
    """Everything the discount engine reads from configuration."""

    version: int = 1
    policy: CalculationPolicy = field(default_factory=CalculationPolicy)
    cache: CacheSettings = field(default_factory=CacheSettings)
    database: DatabaseSettings = field(default_factory=DatabaseSettings)
    checksum: str = ""
