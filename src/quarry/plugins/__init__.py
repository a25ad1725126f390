# src/quarry/plugins/__init__.py
"""Plugin system: model trainers via pluggy.

- Protocols: Type contracts for trainer implementations
- Base classes: Convenient defaults for trainers
- Results: Return type of a fit
- Manager: Trainer discovery, registration, and resolution
- Hookspecs: pluggy hook definitions
"""

# Enums (re-exported from contracts as part of public plugin API)
from quarry.contracts import Determinism, TrainerKind

# Base classes
from quarry.plugins.base import BaseTrainer

# Config base classes
from quarry.plugins.config_base import PluginConfigError, TrainerConfig

# Hookspecs
from quarry.plugins.hookspecs import hookimpl, hookspec

# Manager
from quarry.plugins.manager import DEFAULT_TRAINERS, PluginManager, PluginSpec

# Protocols
from quarry.plugins.protocols import FittedModel, TrainerProtocol

# Results
from quarry.plugins.results import FitResult

__all__ = [
    "DEFAULT_TRAINERS",
    "BaseTrainer",
    "Determinism",
    "FitResult",
    "FittedModel",
    "PluginConfigError",
    "PluginManager",
    "PluginSpec",
    "TrainerConfig",
    "TrainerKind",
    "TrainerProtocol",
    "hookimpl",
    "hookspec",
]
