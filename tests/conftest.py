# tests/conftest.py
"""Shared test fixtures.

Hypothesis Configuration:
- "ci" profile: Fast tests for CI (100 examples) - default
- "nightly" profile: Thorough tests (1000 examples)
- "debug" profile: Minimal tests with verbose output (10 examples)

Set profile via environment variable:
    HYPOTHESIS_PROFILE=nightly pytest tests/
"""

import os
from collections.abc import Iterator
from typing import Any

import pytest
from hypothesis import Phase, Verbosity, settings

# =============================================================================
# Hypothesis Configuration
# =============================================================================

# CI profile: Fast tests for continuous integration
settings.register_profile(
    "ci",
    max_examples=100,
    phases=[Phase.explicit, Phase.reuse, Phase.generate, Phase.shrink],
    deadline=None,  # Disable deadline for CI (timing varies)
)

# Nightly profile: Thorough testing for scheduled runs
settings.register_profile(
    "nightly",
    max_examples=1000,
    phases=[Phase.explicit, Phase.reuse, Phase.generate, Phase.shrink],
    deadline=None,
)

# Debug profile: Minimal examples with verbose output for debugging
settings.register_profile(
    "debug",
    max_examples=10,
    verbosity=Verbosity.verbose,
    phases=[Phase.explicit, Phase.reuse, Phase.generate, Phase.shrink],
    deadline=None,
)

# Load profile from environment, default to "ci"
settings.load_profile(os.getenv("HYPOTHESIS_PROFILE", "ci"))


# =============================================================================
# Datasets
# =============================================================================

PASSENGER_SCHEMA: list[dict[str, Any]] = [
    {"name": "pclass", "type": "numeric"},
    {"name": "sex", "type": "categorical"},
    {"name": "age", "type": "numeric"},
    {"name": "fare", "type": "numeric"},
    {"name": "survived", "type": "numeric"},
    {"name": "boarded", "type": "timestamp"},
]

# 2024-01-01 is a Monday; rows straddle day, week and month boundaries.
PASSENGER_ROWS: list[dict[str, Any]] = [
    {"pclass": "1", "sex": "female", "age": "29", "fare": "211.3", "survived": "1",
     "boarded": "2024-01-01T08:00:00Z"},
    {"pclass": "1", "sex": "male", "age": "45", "fare": "71.3", "survived": "0",
     "boarded": "2024-01-01T23:59:59Z"},
    {"pclass": "2", "sex": "female", "age": "22", "fare": "26.0", "survived": "1",
     "boarded": "2024-01-02T00:00:00Z"},
    {"pclass": "2", "sex": "male", "age": "", "fare": "13.0", "survived": "0",
     "boarded": "2024-01-07T23:59:59Z"},
    {"pclass": "3", "sex": "male", "age": "19", "fare": "7.9", "survived": "0",
     "boarded": "2024-01-08T00:00:00Z"},
    {"pclass": "3", "sex": "", "age": "33", "fare": "8.05", "survived": "1",
     "boarded": "2024-01-31T12:00:00Z"},
    {"pclass": "3", "sex": "female", "age": "4", "fare": "16.7", "survived": "1",
     "boarded": "2024-02-01T00:00:00Z"},
    {"pclass": "", "sex": "male", "age": "60", "fare": "9.5", "survived": "0",
     "boarded": ""},
]

# class is missing on row 3; survival is present everywhere
SURVIVAL_SCHEMA: list[dict[str, Any]] = [
    {"name": "class", "type": "numeric"},
    {"name": "survived", "type": "numeric"},
]
SURVIVAL_ROWS: list[dict[str, Any]] = [
    {"class": 1, "survived": 1},
    {"class": 1, "survived": 0},
    {"class": None, "survived": 0},
    {"class": 3, "survived": 1},
]


@pytest.fixture
def passenger_rows() -> list[dict[str, Any]]:
    return [dict(row) for row in PASSENGER_ROWS]


@pytest.fixture
def passenger_schema() -> list[dict[str, Any]]:
    return [dict(column) for column in PASSENGER_SCHEMA]


@pytest.fixture
def survival_rows() -> list[dict[str, Any]]:
    return [dict(row) for row in SURVIVAL_ROWS]


@pytest.fixture
def survival_schema() -> list[dict[str, Any]]:
    return [dict(column) for column in SURVIVAL_SCHEMA]


@pytest.fixture
def passenger_store(passenger_rows, passenger_schema):
    """ColumnStore over the passenger dataset (version 1)."""
    from quarry.engine.column_store import ColumnStore
    from quarry.engine.normalizer import SchemaNormalizer

    snapshot = SchemaNormalizer().ingest(passenger_rows, passenger_schema)
    return ColumnStore(snapshot)


@pytest.fixture
def cache() -> Iterator[Any]:
    """Computation cache with a generous budget, closed after the test."""
    from quarry.core.cache import ComputationCache

    with ComputationCache(max_size_bytes=16 * 1024 * 1024) as computation_cache:
        yield computation_cache


@pytest.fixture
def plugin_manager():
    from quarry.plugins.manager import PluginManager

    manager = PluginManager()
    manager.register_builtin_plugins()
    return manager


@pytest.fixture
def engine(passenger_rows, passenger_schema) -> Iterator[Any]:
    """AnalyticsEngine with the passenger dataset published."""
    from quarry.engine.service import AnalyticsEngine

    with AnalyticsEngine() as analytics:
        analytics.ingest(passenger_rows, passenger_schema)
        yield analytics
