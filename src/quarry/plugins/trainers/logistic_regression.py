"""Logistic regression classification trainer."""

import numpy as np
from pydantic import Field
from sklearn.linear_model import LogisticRegression

from quarry.contracts import ColumnType, TrainerKind
from quarry.plugins.base import BaseTrainer
from quarry.plugins.config_base import TrainerConfig
from quarry.plugins.results import FitResult


class LogisticRegressionConfig(TrainerConfig):
    """Parameters for LogisticRegressionTrainer."""

    c: float = Field(default=1.0, gt=0, description="Inverse regularization strength")
    max_iter: int = Field(default=1000, gt=0)


class LogisticRegressionTrainer(BaseTrainer):
    """Predicts a class label; accuracy is measured on the training rows."""

    name = "logistic_regression"
    kind = TrainerKind.CLASSIFICATION
    plugin_version = "1.0.0"
    target_types = frozenset({ColumnType.NUMERIC, ColumnType.CATEGORICAL})
    config_model = LogisticRegressionConfig

    def fit(
        self,
        features: np.ndarray,
        target: np.ndarray | None,
        config: TrainerConfig,
    ) -> FitResult:
        assert isinstance(config, LogisticRegressionConfig)
        assert target is not None
        classes = np.unique(target)
        if len(classes) < 2:
            raise ValueError(f"classification needs at least 2 classes, got {len(classes)}")

        model = LogisticRegression(C=config.c, max_iter=config.max_iter).fit(features, target)
        accuracy = float(model.score(features, target))
        return FitResult(
            model=model,
            metrics={"accuracy": accuracy, "error": 1.0 - accuracy},
        )
