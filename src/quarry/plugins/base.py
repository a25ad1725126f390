# src/quarry/plugins/base.py
"""Base class for trainer implementations.

Provides defaults and ensures interface compliance. Trainers can subclass
BaseTrainer for convenience, or implement TrainerProtocol directly.
"""

from abc import ABC, abstractmethod
from typing import ClassVar

import numpy as np

from quarry.contracts import ColumnType, Determinism, TrainerKind
from quarry.plugins.config_base import TrainerConfig
from quarry.plugins.results import FitResult


class BaseTrainer(ABC):
    """Base class for model trainers.

    Subclass and implement fit() to create a trainer.

    Example:
        class MeanRegressor(BaseTrainer):
            name = "mean"
            kind = TrainerKind.REGRESSION

            def fit(self, features, target, config) -> FitResult:
                model = _ConstantModel(float(target.mean()))
                return FitResult(model=model, metrics={"r2": 0.0, "error": ...})
    """

    name: ClassVar[str]
    kind: ClassVar[TrainerKind]

    # Metadata for reproducibility
    determinism: ClassVar[Determinism] = Determinism.DETERMINISTIC
    plugin_version: ClassVar[str] = "0.0.0"

    requires_target: ClassVar[bool] = True
    target_types: ClassVar[frozenset[ColumnType]] = frozenset({ColumnType.NUMERIC})
    config_model: ClassVar[type[TrainerConfig]] = TrainerConfig

    def validate_config(self, config: TrainerConfig, row_count: int) -> None:  # noqa: B027
        """Check parameters against dataset shape. Override when needed."""

    @abstractmethod
    def fit(
        self,
        features: np.ndarray,
        target: np.ndarray | None,
        config: TrainerConfig,
    ) -> FitResult:
        """Train on complete cases.

        Args:
            features: (rows, features) float64 matrix
            target: Target vector, or None for unsupervised trainers
            config: Validated parameters (an instance of config_model)

        Returns:
            FitResult with fitted model and metrics
        """
        ...
