"""Operation outcomes and results.

These types answer: "What did a request produce?"

IMPORTANT:
- Every result handed out by the cache is shared by all callers of the same
  key, so results are frozen and hold tuples, never lists
- size_hint feeds the cache's LRU budget; it is an estimate, not a measurement
"""

import math
from collections.abc import Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import TYPE_CHECKING, Any

import numpy as np

from quarry.contracts.enums import TrainerKind
from quarry.contracts.errors import FeatureMismatchError, TypeMismatchError

if TYPE_CHECKING:
    from quarry.plugins.protocols import FittedModel


@dataclass(frozen=True)
class PagedResult:
    """One window of an ordered query result.

    items are group buckets ({'key', 'count', <aggregation labels>}) for
    grouped queries and reconstructed records otherwise.
    """

    items: tuple[dict[str, Any], ...]
    total_buckets: int
    page_offset: int
    page_size: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "items": [dict(item) for item in self.items],
            "total_buckets": self.total_buckets,
            "page_offset": self.page_offset,
            "page_size": self.page_size,
        }


@dataclass(frozen=True)
class CorrelationMatrix:
    """Pairwise Pearson coefficients; None where a pair is undefined.

    values[i][j] is the correlation of columns[i] with columns[j].
    """

    columns: tuple[str, ...]
    values: tuple[tuple[float | None, ...], ...]

    def get(self, a: str, b: str) -> float | None:
        """Coefficient for a named pair.

        Raises:
            KeyError: If either column is not in the matrix
        """
        try:
            i = self.columns.index(a)
            j = self.columns.index(b)
        except ValueError:
            raise KeyError(f"Column pair not in matrix: ({a!r}, {b!r})") from None
        return self.values[i][j]

    @property
    def size_hint(self) -> int:
        n = len(self.columns)
        return 64 * n * n + 64 * n + 128

    def to_dict(self) -> dict[str, Any]:
        return {
            "columns": list(self.columns),
            "values": [list(row) for row in self.values],
        }


@dataclass(frozen=True)
class ColumnSummary:
    """Descriptive statistics of one numeric column.

    Statistics are None when there are too few valid values to define them:
    mean/min/max need one value, stddev (sample, ddof=1) needs two.
    """

    column: str
    count: int
    missing_count: int
    mean: float | None
    stddev: float | None
    min: float | None
    max: float | None

    size_hint: int = field(default=256, repr=False)

    def to_dict(self) -> dict[str, Any]:
        return {
            "column": self.column,
            "count": self.count,
            "missing_count": self.missing_count,
            "mean": self.mean,
            "stddev": self.stddev,
            "min": self.min,
            "max": self.max,
        }


@dataclass(frozen=True)
class ModelArtifact:
    """An immutable trained model.

    A different feature set, target, parameter set or dataset version always
    produces a new artifact; artifacts are never retrained in place.
    """

    model_id: str
    trainer: str
    kind: TrainerKind
    feature_columns: tuple[str, ...]
    target: str | None
    trained_on: int
    params: Mapping[str, Any]
    metrics: Mapping[str, float]
    model: "FittedModel" = field(repr=False, compare=False)
    training_rows: int = 0

    def __post_init__(self) -> None:
        # Read-only copies; the artifact is shared by every cache hit
        object.__setattr__(self, "params", MappingProxyType(dict(self.params)))
        object.__setattr__(self, "metrics", MappingProxyType(dict(self.metrics)))

    @property
    def size_hint(self) -> int:
        hint = getattr(self.model, "size_hint", None)
        return (hint if isinstance(hint, int) else 4096) + 64 * len(self.feature_columns)

    def predict(self, feature_vector: Any) -> Any:
        """Predict one value from a feature vector in feature_columns order.

        Raises:
            FeatureMismatchError: If the vector length differs from the
                number of feature columns
            TypeMismatchError: If an entry is not a finite number
        """
        values = list(feature_vector)
        if len(values) != len(self.feature_columns):
            raise FeatureMismatchError(len(self.feature_columns), len(values))
        for column, value in zip(self.feature_columns, values, strict=True):
            if isinstance(value, bool) or not isinstance(value, (int, float, np.number)):
                raise TypeMismatchError(column, "a number", value)
            try:
                finite = math.isfinite(value)
            except OverflowError:
                finite = False
            if not finite:
                raise TypeMismatchError(column, "a finite number", value)

        matrix = np.asarray([values], dtype=np.float64)
        prediction = self.model.predict(matrix)[0]
        return prediction.item() if isinstance(prediction, np.generic) else prediction


@dataclass(frozen=True)
class TrainResult:
    """Response to a train request."""

    model_id: str
    metrics: dict[str, float]

    def to_dict(self) -> dict[str, Any]:
        return {"model_id": self.model_id, "metrics": dict(self.metrics)}


@dataclass(frozen=True)
class PredictResult:
    """Response to a predict request."""

    value: Any

    def to_dict(self) -> dict[str, Any]:
        return {"value": self.value}
