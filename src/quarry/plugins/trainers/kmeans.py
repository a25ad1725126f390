"""k-means clustering trainer."""

import numpy as np
from pydantic import Field, field_validator
from sklearn.cluster import KMeans

from quarry.contracts import Determinism, InvalidParameterError, TrainerKind
from quarry.plugins.base import BaseTrainer
from quarry.plugins.config_base import TrainerConfig
from quarry.plugins.results import FitResult


class KMeansConfig(TrainerConfig):
    """Parameters for KMeansTrainer.

    seed makes the initialization reproducible, which is what lets a
    clustering be memoized like any deterministic computation.
    """

    num_clusters: int
    seed: int = 0
    n_init: int = Field(default=10, gt=0)
    max_iter: int = Field(default=300, gt=0)

    @field_validator("num_clusters")
    @classmethod
    def validate_positive(cls, v: int) -> int:
        """At least one cluster."""
        if v <= 0:
            raise ValueError(f"num_clusters must be positive, got {v}")
        return v


class KMeansTrainer(BaseTrainer):
    """Partitions complete rows into num_clusters clusters.

    predict() returns the cluster index; error is the mean squared distance
    of training rows to their centroid.
    """

    name = "kmeans"
    kind = TrainerKind.CLUSTERING
    determinism = Determinism.SEEDED
    plugin_version = "1.0.0"
    requires_target = False
    config_model = KMeansConfig

    def validate_config(self, config: TrainerConfig, row_count: int) -> None:
        assert isinstance(config, KMeansConfig)
        if config.num_clusters > row_count:
            raise InvalidParameterError(
                f"num_clusters ({config.num_clusters}) exceeds row count ({row_count})"
            )

    def fit(
        self,
        features: np.ndarray,
        target: np.ndarray | None,
        config: TrainerConfig,
    ) -> FitResult:
        assert isinstance(config, KMeansConfig)
        if len(features) < config.num_clusters:
            raise ValueError(
                f"only {len(features)} complete rows for {config.num_clusters} clusters"
            )

        model = KMeans(
            n_clusters=config.num_clusters,
            n_init=config.n_init,
            max_iter=config.max_iter,
            random_state=config.seed,
        ).fit(features)
        return FitResult(
            model=model,
            metrics={
                "error": float(model.inertia_) / len(features),
                "inertia": float(model.inertia_),
            },
        )
