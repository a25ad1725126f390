"""Hook implementation for built-in trainer plugins."""

from typing import Any

from quarry.plugins.hookspecs import hookimpl


class QuarryBuiltinTrainers:
    """Hook implementer for built-in trainer plugins."""

    @hookimpl
    def quarry_get_trainers(self) -> list[type[Any]]:
        """Return built-in trainer plugin classes."""
        from quarry.plugins.trainers.kmeans import KMeansTrainer
        from quarry.plugins.trainers.linear_regression import LinearRegressionTrainer
        from quarry.plugins.trainers.logistic_regression import LogisticRegressionTrainer

        return [
            LinearRegressionTrainer,
            KMeansTrainer,
            LogisticRegressionTrainer,
        ]


# Singleton instance for registration
builtin_trainers = QuarryBuiltinTrainers()
