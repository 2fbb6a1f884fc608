"""
discount_config -- single public entrypoint for discount engine configuration.

Responsibility:
    Provides the ONLY way to obtain configuration at runtime through
    ``get_active_config()``, which returns a frozen ``EngineConfig``.
    YAML loading is internal tooling and never exposed to services.

Architecture position:
    Configuration -- sits above ``discount_kernel`` and beside
    ``discount_services``.  The kernel and the engines MUST NEVER import
    from ``discount_config``; callers hand ``EngineConfig.policy`` to
    ``DiscountCalculationService``.

Invariants enforced:
    - Single entrypoint: all runtime config flows through ``get_active_config()``.
    - Path resolution order: explicit ``path`` argument, then the
      ``DISCOUNT_ENGINE_CONFIG`` environment variable, then the shipped
      ``defaults/engine.yaml``.
    - ``DATABASE_URL``, when set, replaces ``database.url``.

Failure modes:
    - ``FileNotFoundError`` -- the resolved file does not exist.
    - ``ValueError`` / ``KeyError`` -- malformed or incomplete document.

Audit relevance:
    Every successful call emits a ``DISCOUNT_CONFIG_TRACE`` log entry with
    the source path, version and checksum.
"""

from __future__ import annotations

import dataclasses
import logging
import os
from pathlib import Path

from discount_config.loader import load_engine_config
from discount_config.schema import CacheSettings, DatabaseSettings, EngineConfig

_logger = logging.getLogger("discount_kernel.config")

CONFIG_PATH_ENV = "DISCOUNT_ENGINE_CONFIG"
DATABASE_URL_ENV = "DATABASE_URL"

_DEFAULT_CONFIG_PATH = Path(__file__).parent / "defaults" / "engine.yaml"


def resolve_config_path(path: Path | str | None = None) -> Path:
    if path is not None:
        return Path(path)
    from_env = os.environ.get(CONFIG_PATH_ENV)
    if from_env:
        return Path(from_env)
    return _DEFAULT_CONFIG_PATH


def get_active_config(path: Path | str | None = None) -> EngineConfig:
    """The ONLY public configuration entrypoint.

    Args:
        path: Override path to an engine YAML file.

    Returns:
        EngineConfig with the ``DATABASE_URL`` override applied.
    """
    source = resolve_config_path(path)
    config = load_engine_config(source)

    database_url = os.environ.get(DATABASE_URL_ENV)
    if database_url:
        config = dataclasses.replace(
            config,
            database=dataclasses.replace(config.database, url=database_url),
        )

    _logger.info(
        "DISCOUNT_CONFIG_TRACE",
        extra={
            "trace_type": "DISCOUNT_CONFIG_TRACE",
            "source": str(source),
            "version": config.version,
            "checksum": config.checksum,
            "cache_ttl_seconds": config.cache.rule_set_ttl_seconds,
        },
    )
    return config


__all__ = [
    "CacheSettings",
    "DatabaseSettings",
    "EngineConfig",
    "get_active_config",
    "resolve_config_path",
]
