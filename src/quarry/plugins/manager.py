# src/quarry/plugins/manager.py
"""Plugin manager for trainer discovery, registration, and lookup.

Uses pluggy for hook-based plugin registration.
"""

from dataclasses import dataclass
from typing import Any

import pluggy

from quarry.contracts import Determinism, InvalidParameterError, TrainerKind
from quarry.core.canonical import stable_hash
from quarry.plugins.hookspecs import PROJECT_NAME, QuarryTrainerSpec
from quarry.plugins.protocols import TrainerProtocol

# Built-in trainer serving each kind when a request names only the kind
DEFAULT_TRAINERS: dict[TrainerKind, str] = {
    TrainerKind.REGRESSION: "linear_regression",
    TrainerKind.CLUSTERING: "kmeans",
    TrainerKind.CLASSIFICATION: "logistic_regression",
}


def _config_hash(config_cls: Any) -> str | None:
    """Compute stable hash for a trainer config class.

    Hashes the config's field names and types to detect compatibility changes.

    Args:
        config_cls: A TrainerConfig subclass, or None

    Returns:
        SHA-256 hex digest of field names/types, or None if no config
    """
    if config_cls is None or not hasattr(config_cls, "model_fields"):
        return None

    fields_repr = {
        name: str(field.annotation) for name, field in config_cls.model_fields.items()
    }
    return stable_hash(fields_repr)


@dataclass(frozen=True)
class PluginSpec:
    """Registration record for a trainer plugin.

    Frozen for immutability - plugin specs shouldn't change after creation.
    """

    name: str
    kind: TrainerKind
    version: str
    determinism: Determinism
    requires_target: bool
    config_hash: str | None = None

    @classmethod
    def from_plugin(cls, plugin_cls: type) -> "PluginSpec":
        """Create spec from trainer class.

        Required attributes (will raise if missing):
        - name: str
        - kind: TrainerKind
        - plugin_version: str

        Raises:
            ValueError: If plugin is missing a required attribute
        """
        for attr in ("name", "kind", "plugin_version"):
            if not hasattr(plugin_cls, attr):
                raise ValueError(
                    f"Plugin {plugin_cls.__name__} must define '{attr}' attribute."
                )

        return cls(
            name=plugin_cls.name,  # type: ignore[attr-defined]
            kind=TrainerKind(plugin_cls.kind),  # type: ignore[attr-defined]
            version=plugin_cls.plugin_version,  # type: ignore[attr-defined]
            determinism=plugin_cls.determinism,  # type: ignore[attr-defined]
            requires_target=plugin_cls.requires_target,  # type: ignore[attr-defined]
            config_hash=_config_hash(getattr(plugin_cls, "config_model", None)),
        )


class PluginManager:
    """Manages trainer discovery, registration, and lookup.

    Usage:
        manager = PluginManager()
        manager.register_builtin_plugins()

        trainer_cls = manager.resolve(TrainerKind.CLUSTERING)   # -> KMeansTrainer
        trainer_cls = manager.resolve("linear_regression")
    """

    def __init__(self) -> None:
        self._pm = pluggy.PluginManager(PROJECT_NAME)
        self._pm.add_hookspecs(QuarryTrainerSpec)

        # Cache - map name to plugin class for duplicate detection
        self._trainers: dict[str, type[TrainerProtocol]] = {}

    def register_builtin_plugins(self) -> None:
        """Register all built-in trainer hook implementers.

        Call this once at startup to make built-in trainers discoverable.
        """
        from quarry.plugins.trainers.hookimpl import builtin_trainers

        self.register(builtin_trainers)

    def register(self, plugin: Any) -> None:
        """Register a plugin.

        Args:
            plugin: Plugin instance implementing hook methods
        """
        self._pm.register(plugin)
        try:
            self._refresh_caches()
        except ValueError:
            self._pm.unregister(plugin)
            raise

    def _refresh_caches(self) -> None:
        """Refresh trainer cache from hooks.

        Raises:
            ValueError: If two trainers share a name, or a trainer is
                missing required metadata
        """
        new_trainers: dict[str, type[TrainerProtocol]] = {}

        for trainers in self._pm.hook.quarry_get_trainers():
            for cls in trainers:
                PluginSpec.from_plugin(cls)
                name = cls.name
                if name in new_trainers:
                    raise ValueError(
                        f"Duplicate trainer plugin name: '{name}'. "
                        f"Already registered by {new_trainers[name].__name__}"
                    )
                new_trainers[name] = cls

        # All validated, update cache
        self._trainers = new_trainers

    # === Getters ===

    def get_trainers(self) -> list[type[TrainerProtocol]]:
        """Get all registered trainer plugins."""
        return list(self._trainers.values())

    def get_trainer_by_name(self, name: str) -> type[TrainerProtocol] | None:
        """Get trainer plugin by name."""
        return self._trainers.get(name)

    def get_specs(self) -> list[PluginSpec]:
        """Registration records for every trainer, sorted by name."""
        return [PluginSpec.from_plugin(self._trainers[name]) for name in sorted(self._trainers)]

    def resolve(self, trainer: TrainerKind | str) -> type[TrainerProtocol]:
        """Find the trainer for a kind (its built-in default) or a plugin name.

        Raises:
            InvalidParameterError: If nothing is registered under that name
        """
        if isinstance(trainer, TrainerKind):
            name = DEFAULT_TRAINERS[trainer]
        elif trainer not in self._trainers and trainer in {k.value for k in TrainerKind}:
            name = DEFAULT_TRAINERS[TrainerKind(trainer)]
        else:
            name = trainer

        cls = self._trainers.get(name)
        if cls is None:
            raise InvalidParameterError(
                f"Unknown trainer: {trainer!r}. Available: {sorted(self._trainers)}"
            )
        return cls
