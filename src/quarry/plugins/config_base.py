# src/quarry/plugins/config_base.py
"""Typed trainer parameters.

Trainers declare their parameters as a TrainerConfig subclass. The model
adapter builds it from the request's params dict, and the validated,
defaults-filled form becomes part of the model's cache key. So
{"num_clusters": 3} and {"num_clusters": 3, "seed": 0} name the same model.

Example:
    class KMeansConfig(TrainerConfig):
        num_clusters: int
        seed: int = 0

    cfg = KMeansConfig.from_dict({"num_clusters": 3})
    cfg.cache_params()  # {"num_clusters": 3, "seed": 0}
"""

from typing import Any, Self

from pydantic import BaseModel, ValidationError

from quarry.contracts import InvalidParameterError


class PluginConfigError(InvalidParameterError):
    """Trainer parameters failed validation."""


class TrainerConfig(BaseModel):
    """Base for trainer parameter models: frozen, unknown keys rejected."""

    model_config = {"extra": "forbid", "frozen": True}

    @classmethod
    def from_dict(cls, params: dict[str, Any]) -> Self:
        """Validate request parameters.

        Raises:
            PluginConfigError: Unknown keys, missing required parameters, or
                values that fail a field validator
        """
        try:
            return cls(**params)
        except ValidationError as e:
            raise PluginConfigError(f"Invalid parameters for {cls.__name__}: {e}") from e

    def cache_params(self) -> dict[str, Any]:
        """Every parameter, defaults included, as JSON-safe values."""
        return self.model_dump(mode="json")
