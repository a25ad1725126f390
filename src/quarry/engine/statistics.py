# src/quarry/engine/statistics.py
"""Descriptive statistics and pairwise correlation over numeric columns.

Correlation uses pairwise-complete observations: each pair is computed over
the rows where both columns are present, independently of the other pairs.
A pair with fewer than two co-observed rows, or with zero variance on either
side, has no defined coefficient and is reported as None rather than NaN.
"""

import math
from collections.abc import Sequence

import numpy as np

from quarry.contracts import (
    ColumnSummary,
    ColumnType,
    CorrelationMatrix,
    InvalidParameterError,
    OperationKind,
    TypeMismatchError,
)
from quarry.core.cache import CacheKey, ComputationCache
from quarry.engine.column_store import ColumnStore
from quarry.engine.normalizer import Column


def pearson(x: np.ndarray, y: np.ndarray) -> float | None:
    """Pearson coefficient of two equal-length samples, or None if undefined."""
    if len(x) < 2:
        return None
    dx = x - x.mean()
    dy = y - y.mean()
    denominator = math.sqrt(float(np.dot(dx, dx)) * float(np.dot(dy, dy)))
    if denominator == 0.0:
        return None
    # Clamp floating-point drift just outside [-1, 1]
    return max(-1.0, min(1.0, float(np.dot(dx, dy)) / denominator))


class StatisticsEngine:
    """Cached describe() and correlate() over one ColumnStore."""

    def __init__(self, store: ColumnStore, cache: ComputationCache) -> None:
        self._store = store
        self._cache = cache

    def _numeric(self, name: str) -> Column:
        column = self._store.column(name)
        if column.type is not ColumnType.NUMERIC:
            raise TypeMismatchError(name, "a numeric column", column.type.value)
        return column

    # === describe ===

    def describe(self, column: str) -> ColumnSummary:
        """Mean, sample stddev, min, max, count and missing count of a column.

        Raises:
            UnknownColumnError: If the column is undeclared
            TypeMismatchError: If the column is not numeric
        """
        self._numeric(column)
        key = CacheKey.build(self._store.version, OperationKind.DESCRIBE, {"column": column})
        return self._cache.get_or_compute(key, lambda: self.compute_describe(column))

    def compute_describe(self, name: str) -> ColumnSummary:
        column = self._numeric(name)
        valid = column.values[~column.missing]
        count = len(valid)
        return ColumnSummary(
            column=name,
            count=count,
            missing_count=len(column) - count,
            mean=float(valid.mean()) if count else None,
            stddev=float(valid.std(ddof=1)) if count >= 2 else None,
            min=float(valid.min()) if count else None,
            max=float(valid.max()) if count else None,
        )

    # === correlate ===

    def correlate(self, columns: Sequence[str]) -> CorrelationMatrix:
        """Pairwise Pearson matrix in the requested column order.

        The cached matrix covers the sorted set of requested columns, so any
        ordering (or repetition) of the same columns is one cache entry.

        Raises:
            InvalidParameterError: If no columns are requested
            UnknownColumnError: If a column is undeclared
            TypeMismatchError: If a column is not numeric
        """
        if not columns:
            raise InvalidParameterError("correlate requires at least one column")
        for name in columns:
            self._numeric(name)

        canonical = sorted(set(columns))
        key = CacheKey.build(
            self._store.version,
            OperationKind.CORRELATE,
            {"columns": canonical},
        )
        matrix: CorrelationMatrix = self._cache.get_or_compute(
            key, lambda: self.compute_correlation(canonical)
        )
        if list(matrix.columns) == list(columns):
            return matrix

        index = [matrix.columns.index(name) for name in columns]
        return CorrelationMatrix(
            columns=tuple(columns),
            values=tuple(tuple(matrix.values[i][j] for j in index) for i in index),
        )

    def compute_correlation(self, names: Sequence[str]) -> CorrelationMatrix:
        """Uncached pairwise-complete correlation matrix."""
        columns = [self._numeric(name) for name in names]
        n = len(columns)
        values: list[list[float | None]] = [[None] * n for _ in range(n)]

        for i, a in enumerate(columns):
            values[i][i] = 1.0 if a.valid_count >= 2 else None
            for j in range(i + 1, n):
                b = columns[j]
                both = ~(a.missing | b.missing)
                r = pearson(a.values[both], b.values[both])
                values[i][j] = r
                values[j][i] = r

        return CorrelationMatrix(
            columns=tuple(names),
            values=tuple(tuple(row) for row in values),
        )
