# src/quarry/engine/models.py
"""
Model adapter: the train/predict contract over pluggable trainers.

train() resolves the trainer, validates its parameters and the requested
columns, then memoizes the fitted artifact under
(dataset version, trainer, feature columns, target, validated params).
Feature order is part of the key because it fixes the layout of the
prediction vector.

Training sees complete cases only: rows where every feature and the target
are present. A categorical "Unknown" produced by the normalizer counts as
absent here.
"""

import time
from collections.abc import Mapping, Sequence
from typing import Any

import numpy as np

from quarry.contracts import (
    ColumnType,
    InvalidParameterError,
    ModelArtifact,
    OperationKind,
    TrainerKind,
    TypeMismatchError,
)
from quarry.core.cache import CacheKey, ComputationCache
from quarry.core.logging import get_logger
from quarry.engine.column_store import ColumnStore
from quarry.plugins.config_base import TrainerConfig
from quarry.plugins.manager import PluginManager
from quarry.plugins.protocols import TrainerProtocol

logger = get_logger(__name__)


class ModelAdapter:
    """Trains and serves models for one ColumnStore.

    Example:
        adapter = ModelAdapter(store, cache, plugins)
        artifact = adapter.train(
            TrainerKind.CLUSTERING, ["age", "fare"], params={"num_clusters": 3}
        )
        cluster = adapter.predict(artifact, [29.0, 7.25])
    """

    def __init__(
        self,
        store: ColumnStore,
        cache: ComputationCache,
        plugins: PluginManager,
    ) -> None:
        self._store = store
        self._cache = cache
        self._plugins = plugins

    def train(
        self,
        trainer: TrainerKind | str,
        feature_columns: Sequence[str],
        target: str | None = None,
        params: Mapping[str, Any] | None = None,
    ) -> ModelArtifact:
        """Train (or fetch the memoized) model.

        Raises:
            InvalidParameterError: Unknown trainer, invalid parameters, a
                missing or superfluous target, or a bad feature list
            UnknownColumnError: If a feature or the target is undeclared
            TypeMismatchError: If a feature is not numeric or the target
                type is not accepted by the trainer
            ComputationError: If the trainer itself fails
        """
        trainer_cls = self._plugins.resolve(trainer)
        config = trainer_cls.config_model.from_dict(dict(params or {}))
        instance = trainer_cls()
        instance.validate_config(config, self._store.row_count)

        features = self._validate_columns(trainer_cls, feature_columns, target)

        key = CacheKey.build(
            self._store.version,
            OperationKind.TRAIN,
            {
                "trainer": trainer_cls.name,
                "features": features,
                "target": target,
                "params": config.cache_params(),
            },
        )
        return self._cache.get_or_compute(
            key,
            lambda: self.compute(key, instance, features, target, config),
        )

    def predict(self, artifact: ModelArtifact, feature_vector: Sequence[Any]) -> Any:
        """Apply a trained model to one feature vector. Never trains."""
        return artifact.predict(feature_vector)

    def _validate_columns(
        self,
        trainer_cls: type[TrainerProtocol],
        feature_columns: Sequence[str],
        target: str | None,
    ) -> list[str]:
        features = list(feature_columns)
        if not features:
            raise InvalidParameterError("train requires at least one feature column")
        if len(set(features)) != len(features):
            raise InvalidParameterError(f"Duplicate feature columns: {features}")

        for name in features:
            column = self._store.column(name)
            if column.type is not ColumnType.NUMERIC:
                raise TypeMismatchError(name, "a numeric feature column", column.type.value)

        if not trainer_cls.requires_target:
            if target is not None:
                raise InvalidParameterError(
                    f"Trainer {trainer_cls.name!r} does not take a target"
                )
            return features

        if target is None:
            raise InvalidParameterError(f"Trainer {trainer_cls.name!r} requires a target")
        if target in features:
            raise InvalidParameterError(f"Target {target!r} is also a feature column")
        column = self._store.column(target)
        if column.type not in trainer_cls.target_types:
            accepted = sorted(t.value for t in trainer_cls.target_types)
            raise TypeMismatchError(target, f"one of {accepted}", column.type.value)
        return features

    def compute(
        self,
        key: CacheKey,
        trainer: TrainerProtocol,
        features: list[str],
        target: str | None,
        config: TrainerConfig,
    ) -> ModelArtifact:
        """Uncached fit on the complete cases of the current snapshot."""
        columns = [self._store.column(name) for name in features]
        complete = np.ones(self._store.row_count, dtype=bool)
        for column in columns:
            complete &= ~column.missing

        target_values: np.ndarray | None = None
        if target is not None:
            target_column = self._store.column(target)
            complete &= ~target_column.missing
            target_values = target_column.values[complete]

        if not complete.any():
            raise InvalidParameterError(
                f"No complete rows for features {features}"
                + (f" and target {target!r}" if target is not None else "")
            )

        matrix = np.column_stack([c.values[complete] for c in columns]).astype(np.float64)
        start = time.perf_counter()
        fitted = trainer.fit(matrix, target_values, config)
        duration_ms = (time.perf_counter() - start) * 1000

        logger.info(
            "model_trained",
            trainer=trainer.name,
            version=key.dataset_version,
            rows=len(matrix),
            features=len(features),
            duration_ms=round(duration_ms, 2),
        )
        return ModelArtifact(
            model_id=key.token,
            trainer=trainer.name,
            kind=trainer.kind,
            feature_columns=tuple(features),
            target=target,
            trained_on=key.dataset_version,
            params=config.cache_params(),
            metrics=dict(fitted.metrics),
            model=fitted.model,
            training_rows=len(matrix),
        )
