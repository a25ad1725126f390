# src/quarry/plugins/protocols.py
"""Protocols for trainer plugins.

Trainers are black boxes behind a fixed contract: they receive a complete-
case feature matrix (and target vector when they require one) and return a
fitted model plus metrics. The engine knows nothing else about them.
"""

from typing import TYPE_CHECKING, ClassVar, Protocol, runtime_checkable

import numpy as np

from quarry.contracts import ColumnType, Determinism, TrainerKind

if TYPE_CHECKING:
    from quarry.plugins.config_base import TrainerConfig
    from quarry.plugins.results import FitResult


@runtime_checkable
class FittedModel(Protocol):
    """Anything that maps a 2-D feature matrix to one prediction per row.

    scikit-learn estimators satisfy this directly.
    """

    def predict(self, features: np.ndarray) -> np.ndarray: ...


@runtime_checkable
class TrainerProtocol(Protocol):
    """Protocol for model trainers.

    Example:
        class MeanRegressor:
            name = "mean"
            kind = TrainerKind.REGRESSION
            determinism = Determinism.DETERMINISTIC
            plugin_version = "1.0.0"
            requires_target = True
            target_types = frozenset({ColumnType.NUMERIC})
            config_model = TrainerConfig

            def validate_config(self, config, row_count): ...

            def fit(self, features, target, config) -> FitResult:
                ...
    """

    name: ClassVar[str]
    kind: ClassVar[TrainerKind]
    determinism: ClassVar[Determinism]
    plugin_version: ClassVar[str]
    requires_target: ClassVar[bool]
    target_types: ClassVar[frozenset[ColumnType]]
    config_model: ClassVar[type["TrainerConfig"]]

    def validate_config(self, config: "TrainerConfig", row_count: int) -> None:
        """Check parameters against dataset shape before any computation.

        Raises:
            InvalidParameterError: If the parameters cannot work for this dataset
        """
        ...

    def fit(
        self,
        features: np.ndarray,
        target: np.ndarray | None,
        config: "TrainerConfig",
    ) -> "FitResult":
        """Train on complete cases.

        Args:
            features: (rows, features) float64 matrix, no missing values
            target: Target vector aligned with features, or None
            config: Validated trainer parameters

        Returns:
            FitResult with the fitted model and its metrics
        """
        ...
