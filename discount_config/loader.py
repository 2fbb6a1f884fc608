"""
Configuration Loader (``discount_config.loader``).

Responsibility
--------------
Loads the engine YAML file and parses it into the frozen
``discount_config.schema`` dataclasses.  Runtime callers go through
``discount_config.get_active_config()``.

Invariants enforced
-------------------
* Parse errors raise ``ValueError`` or ``KeyError`` with descriptive
  messages; required keys have no silent defaults.
* Money and percent values are parsed as ``Decimal`` from their string
  form, never through float.
* ``compute_checksum`` produces a deterministic SHA-256 hash of the raw
  document.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Missing required keys  -> ``KeyError`` propagates.
* Wrong value types  -> ``ValueError``.
"""

from __future__ import annotations

import hashlib
import json
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any

import yaml

from discount_config.schema import CacheSettings, DatabaseSettings, EngineConfig
from discount_kernel.domain.policy import (
    CalculationPolicy,
    CandidatePriorities,
    ComplementaryService,
    UpsellPolicy,
)

SUPPORTED_VERSIONS = frozenset({1})


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
        ValueError: if the top level is not a mapping.
    """
    with open(path) as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValueError(f"{path}: top level must be a mapping, got {type(data).__name__}")
    return data


def parse_decimal(value: Any, key: str) -> Decimal:
    if isinstance(value, bool):
        raise ValueError(f"{key}: expected a number, got {value!r}")
    try:
        result = Decimal(str(value))
    except (InvalidOperation, ValueError) as exc:
        raise ValueError(f"{key}: expected a number, got {value!r}") from exc
    if not result.is_finite():
        raise ValueError(f"{key}: expected a finite number, got {value!r}")
    return result


def parse_int(value: Any, key: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"{key}: expected an integer, got {value!r}")
    return value


def parse_priorities(data: dict[str, Any]) -> CandidatePriorities:
    defaults = CandidatePriorities()
    return CandidatePriorities(
        seasonal=parse_int(data.get("seasonal", defaults.seasonal), "priorities.seasonal"),
        promo_code=parse_int(data.get("promo_code", defaults.promo_code), "priorities.promo_code"),
        volume=parse_int(data.get("volume", defaults.volume), "priorities.volume"),
        loyalty=parse_int(data.get("loyalty", defaults.loyalty), "priorities.loyalty"),
    )


def parse_complementary(data: dict[str, Any]) -> ComplementaryService:
    return ComplementaryService(
        present=str(data["present"]),
        missing=str(data["missing"]),
        potential_percent=parse_decimal(
            data.get("potential_percent", "10"), "upsell.complementary.potential_percent",
        ),
    )


def parse_upsell(data: dict[str, Any]) -> UpsellPolicy:
    defaults = UpsellPolicy()
    complementary = data.get("complementary")
    if complementary is None:
        pairs = defaults.complementary
    elif isinstance(complementary, list):
        pairs = tuple(parse_complementary(item) for item in complementary)
    else:
        raise ValueError("upsell.complementary: expected a list")
    return UpsellPolicy(
        volume_percent=parse_decimal(
            data.get("volume_percent", defaults.volume_percent), "upsell.volume_percent",
        ),
        volume_action=str(data.get("volume_action", defaults.volume_action)),
        complementary=pairs,
        loyalty_percent=parse_decimal(
            data.get("loyalty_percent", defaults.loyalty_percent), "upsell.loyalty_percent",
        ),
    )


def parse_policy(data: dict[str, Any]) -> CalculationPolicy:
    return CalculationPolicy(
        priorities=parse_priorities(data.get("priorities") or {}),
        upsell=parse_upsell(data.get("upsell") or {}),
        expiring_soon_hours=parse_int(
            data.get("expiring_soon_hours", 48), "campaigns.expiring_soon_hours",
        ),
    )


def parse_cache(data: dict[str, Any]) -> CacheSettings:
    ttl = parse_int(data.get("rule_set_ttl_seconds", 300), "cache.rule_set_ttl_seconds")
    if ttl < 0:
        raise ValueError(f"cache.rule_set_ttl_seconds must be >= 0, got {ttl}")
    return CacheSettings(rule_set_ttl_seconds=ttl)


def parse_database(data: dict[str, Any]) -> DatabaseSettings:
    return DatabaseSettings(
        url=str(data["url"]),
        pool_size=parse_int(data.get("pool_size", 5), "database.pool_size"),
        max_overflow=parse_int(data.get("max_overflow", 10), "database.max_overflow"),
        echo=bool(data.get("echo", False)),
    )


def compute_checksum(data: dict[str, Any]) -> str:
    """Deterministic SHA-256 of a parsed document."""
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()


def parse_engine_config(data: dict[str, Any]) -> EngineConfig:
    """
    Parse an ``EngineConfig`` from a loaded document.

    Required keys: ``version`` and ``database.url``.  Every other section
    falls back to the shipped defaults.
    """
    version = parse_int(data["version"], "version")
    if version not in SUPPORTED_VERSIONS:
        raise ValueError(f"Unsupported engine config version: {version}")

    calculation = dict(data.get("calculation") or {})
    if "campaigns" in data:
        calculation.setdefault(
            "expiring_soon_hours", (data["campaigns"] or {}).get("expiring_soon_hours", 48),
        )
    return EngineConfig(
        version=version,
        policy=parse_policy(calculation),
        cache=parse_cache(data.get("cache") or {}),
        database=parse_database(data["database"]),
        checksum=compute_checksum(data),
    )


def load_engine_config(path: Path) -> EngineConfig:
    return parse_engine_config(load_yaml_file(path))
