# -*- coding: utf-8 -*-
"""
Parcel Resolver Service Configuration

Centralized configuration for the parcel resolver covering:
- Default batch merge policy (auto-merge without APN, cross-zip guard)
- Default provenance source label for mapped rows
- Batch size guard rail
- Logging and metrics settings

All settings can be overridden via environment variables with the
``LL_PR_`` prefix (e.g. ``LL_PR_PREVENT_CROSS_ZIP=false``).

Scoring weights and decision thresholds are deliberately NOT configurable;
they are module constants in ``matcher`` and ``merge_engine``.

Example:
    >>> from landledger.parcel_resolver.config import get_config
    >>> cfg = get_config()
    >>> print(cfg.auto_merge_without_apn, cfg.prevent_cross_zip)
"""

from __future__ import annotations

import logging
import os
import threading
from dataclasses import dataclass
from typing import Any, Optional

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Environment variable prefix
# ---------------------------------------------------------------------------

_ENV_PREFIX = "LL_PR_"


# ---------------------------------------------------------------------------
# ParcelResolverConfig
# ---------------------------------------------------------------------------


@dataclass
class ParcelResolverConfig:
    """Complete configuration for the parcel resolver.

    Attributes:
        auto_merge_without_apn: Allow auto-merging a high-scoring candidate
            even when the APN signal did not fire.
        prevent_cross_zip: Cap scores of candidates whose ZIP differs and
            route them to manual review instead of merging.
        default_source_label: Source label stamped on provenance entries
            when a caller does not supply one.
        max_records_per_batch: Soft limit on incoming records per batch;
            larger batches are processed but logged as a warning.
        log_level: Logging level for the resolver.
        enable_metrics: Whether Prometheus metrics collection is enabled.
    """

    # -- Merge policy --------------------------------------------------------
    auto_merge_without_apn: bool = True
    prevent_cross_zip: bool = True

    # -- Row mapping ---------------------------------------------------------
    default_source_label: str = "import"

    # -- Batch processing ----------------------------------------------------
    max_records_per_batch: int = 100_000

    # -- Logging -------------------------------------------------------------
    log_level: str = "INFO"

    # -- Metrics -------------------------------------------------------------
    enable_metrics: bool = True

    # ------------------------------------------------------------------
    # Factory helpers
    # ------------------------------------------------------------------

    @classmethod
    def from_env(cls) -> ParcelResolverConfig:
        """Build a ParcelResolverConfig from environment variables.

        Every field can be overridden via ``LL_PR_<FIELD_UPPER>``.
        Boolean values accept ``true/1/yes`` (case-insensitive).
        Integer values are parsed via ``int()``.

        Returns:
            Populated ParcelResolverConfig instance.
        """
        prefix = _ENV_PREFIX

        def _env(name: str, default: Any = None) -> Optional[str]:
            return os.environ.get(f"{prefix}{name}", default)

        def _bool(name: str, default: bool) -> bool:
            val = _env(name)
            if val is None:
                return default
            return val.strip().lower() in ("true", "1", "yes")

        def _int(name: str, default: int) -> int:
            val = _env(name)
            if val is None:
                return default
            try:
                return int(val)
            except ValueError:
                logger.warning(
                    "Invalid integer for %s%s=%s, using default %d",
                    prefix, name, val, default,
                )
                return default

        def _str(name: str, default: str) -> str:
            val = _env(name)
            if val is None:
                return default
            return val

        config = cls(
            auto_merge_without_apn=_bool(
                "AUTO_MERGE_WITHOUT_APN", cls.auto_merge_without_apn,
            ),
            prevent_cross_zip=_bool(
                "PREVENT_CROSS_ZIP", cls.prevent_cross_zip,
            ),
            default_source_label=_str(
                "DEFAULT_SOURCE_LABEL", cls.default_source_label,
            ),
            max_records_per_batch=_int(
                "MAX_RECORDS_PER_BATCH", cls.max_records_per_batch,
            ),
            log_level=_str("LOG_LEVEL", cls.log_level),
            enable_metrics=_bool("ENABLE_METRICS", cls.enable_metrics),
        )

        logger.info(
            "ParcelResolverConfig loaded: auto_merge_without_apn=%s, "
            "prevent_cross_zip=%s, source_label=%s, max_batch=%d, "
            "log_level=%s, metrics=%s",
            config.auto_merge_without_apn,
            config.prevent_cross_zip,
            config.default_source_label,
            config.max_records_per_batch,
            config.log_level,
            config.enable_metrics,
        )
        return config


# ---------------------------------------------------------------------------
# Thread-safe singleton accessor
# ---------------------------------------------------------------------------

_config_instance: Optional[ParcelResolverConfig] = None
_config_lock = threading.Lock()


def get_config() -> ParcelResolverConfig:
    """Return the singleton ParcelResolverConfig, creating from env if needed.

    Uses double-checked locking for thread safety with minimal
    contention on the hot path.
    """
    global _config_instance
    if _config_instance is None:
        with _config_lock:
            if _config_instance is None:
                _config_instance = ParcelResolverConfig.from_env()
    return _config_instance


def set_config(config: ParcelResolverConfig) -> None:
    """Replace the singleton ParcelResolverConfig (useful for testing).

    Args:
        config: New configuration to install.
    """
    global _config_instance
    with _config_lock:
        _config_instance = config
    logger.info("ParcelResolverConfig replaced programmatically")


def reset_config() -> None:
    """Reset the singleton (primarily for test teardown)."""
    global _config_instance
    with _config_lock:
        _config_instance = None


__all__ = [
    "ParcelResolverConfig",
    "get_config",
    "set_config",
    "reset_config",
]
