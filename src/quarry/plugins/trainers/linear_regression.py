"""Ordinary least squares regression trainer."""

import math

import numpy as np
from sklearn.linear_model import LinearRegression
from sklearn.metrics import mean_squared_error, r2_score

from quarry.contracts import TrainerKind
from quarry.plugins.base import BaseTrainer
from quarry.plugins.config_base import TrainerConfig
from quarry.plugins.results import FitResult


class LinearRegressionConfig(TrainerConfig):
    """Parameters for LinearRegressionTrainer."""

    fit_intercept: bool = True


class LinearRegressionTrainer(BaseTrainer):
    """Fits y = Xb (+ intercept); reports training r2 and RMSE as error."""

    name = "linear_regression"
    kind = TrainerKind.REGRESSION
    plugin_version = "1.0.0"
    config_model = LinearRegressionConfig

    def fit(
        self,
        features: np.ndarray,
        target: np.ndarray | None,
        config: TrainerConfig,
    ) -> FitResult:
        assert isinstance(config, LinearRegressionConfig)
        assert target is not None
        if len(features) < 2:
            raise ValueError(
                f"linear regression needs at least 2 complete rows, got {len(features)}"
            )

        y = target.astype(np.float64)
        model = LinearRegression(fit_intercept=config.fit_intercept).fit(features, y)
        predicted = model.predict(features)
        return FitResult(
            model=model,
            metrics={
                "r2": float(r2_score(y, predicted)),
                "error": math.sqrt(float(mean_squared_error(y, predicted))),
            },
        )
