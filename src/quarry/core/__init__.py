# src/quarry/core/__init__.py
"""Core infrastructure: Canonical, Configuration, Logging, Computation Cache."""

# isort: skip_file
# canonical must load first: contracts.query imports it while core is
# still initializing.

from quarry.core.canonical import (
    canonical_json,
    stable_hash,
)
from quarry.core.config import (
    CacheSettings,
    DatasetSettings,
    LoggingSettings,
    QuarrySettings,
    QuerySettings,
    load_settings,
)
from quarry.core.logging import (
    configure_logging,
    get_logger,
)
from quarry.core.cache import (
    CacheEntry,
    CacheKey,
    CacheStats,
    ComputationCache,
)

__all__ = [
    "CacheEntry",
    "CacheKey",
    "CacheSettings",
    "CacheStats",
    "ComputationCache",
    "DatasetSettings",
    "LoggingSettings",
    "QuarrySettings",
    "QuerySettings",
    "canonical_json",
    "configure_logging",
    "get_logger",
    "load_settings",
    "stable_hash",
]
