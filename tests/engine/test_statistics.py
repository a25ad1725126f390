"""Tests for descriptive statistics and pairwise correlation."""

from typing import Any

import numpy as np
import pytest
from hypothesis import given
from hypothesis import strategies as st


def _stats_engine(rows: list[dict[str, Any]], columns: list[str], cache):
    from quarry.engine.column_store import ColumnStore
    from quarry.engine.normalizer import SchemaNormalizer
    from quarry.engine.statistics import StatisticsEngine

    schema = [{"name": name, "type": "numeric", "required": False} for name in columns]
    snapshot = SchemaNormalizer().ingest(rows, schema)
    return StatisticsEngine(ColumnStore(snapshot), cache)


@pytest.fixture
def stats(passenger_store, cache):
    from quarry.engine.statistics import StatisticsEngine

    return StatisticsEngine(passenger_store, cache)


class TestDescribe:
    def test_describe_fare(self, stats) -> None:
        fares = np.array([211.3, 71.3, 26.0, 13.0, 7.9, 8.05, 16.7, 9.5])
        summary = stats.describe("fare")

        assert summary.count == 8
        assert summary.missing_count == 0
        assert summary.mean == pytest.approx(45.46875)
        assert summary.stddev == pytest.approx(float(fares.std(ddof=1)))
        assert summary.min == 7.9
        assert summary.max == 211.3

    def test_describe_skips_missing(self, stats) -> None:
        summary = stats.describe("age")
        assert summary.count == 7
        assert summary.missing_count == 1
        assert summary.mean == pytest.approx((29 + 45 + 22 + 19 + 33 + 4 + 60) / 7)

    def test_single_value_has_no_stddev(self, cache) -> None:
        engine = _stats_engine([{"x": 3}, {"x": None}], ["x"], cache)
        summary = engine.describe("x")
        assert summary.mean == 3.0
        assert summary.stddev is None

    def test_all_missing(self, cache) -> None:
        engine = _stats_engine([{"x": ""}, {"x": None}], ["x"], cache)
        summary = engine.describe("x")
        assert summary.count == 0
        assert summary.mean is summary.min is summary.max is None

    def test_non_numeric_column_rejected(self, stats) -> None:
        from quarry.contracts import TypeMismatchError

        with pytest.raises(TypeMismatchError):
            stats.describe("sex")

    def test_describe_is_memoized(self, stats, cache) -> None:
        assert stats.describe("fare") is stats.describe("fare")
        assert cache.stats().computations == 1


class TestCorrelate:
    def test_symmetric_with_unit_diagonal(self, stats) -> None:
        matrix = stats.correlate(["fare", "age", "pclass", "survived"])
        n = len(matrix.columns)
        for i in range(n):
            assert matrix.values[i][i] == 1.0
            for j in range(n):
                assert matrix.values[i][j] == matrix.values[j][i]

    def test_fare_falls_with_class(self, stats) -> None:
        assert stats.correlate(["pclass", "fare"]).get("pclass", "fare") < 0

    def test_request_order_is_preserved(self, stats, cache) -> None:
        forward = stats.correlate(["age", "fare"])
        backward = stats.correlate(["fare", "age"])

        assert forward.columns == ("age", "fare")
        assert backward.columns == ("fare", "age")
        assert forward.get("age", "fare") == backward.get("age", "fare")
        assert cache.stats().computations == 1

    def test_pairwise_complete_observations(self, cache) -> None:
        rows = [
            {"a": 1, "b": 2, "c": None},
            {"a": 2, "b": 4, "c": 5},
            {"a": 3, "b": 6, "c": None},
            {"a": 4, "b": None, "c": 7},
        ]
        matrix = _stats_engine(rows, ["a", "b", "c"], cache).correlate(["a", "b", "c"])
        assert matrix.get("a", "b") == pytest.approx(1.0)
        # a and c share two rows; b and c share one
        assert matrix.get("a", "c") == pytest.approx(1.0)
        assert matrix.get("b", "c") is None

    def test_zero_variance_is_none(self, cache) -> None:
        rows = [{"a": 1, "k": 5}, {"a": 2, "k": 5}, {"a": 3, "k": 5}]
        matrix = _stats_engine(rows, ["a", "k"], cache).correlate(["a", "k"])
        assert matrix.get("a", "k") is None
        # Diagonal only needs two valid values
        assert matrix.get("k", "k") == 1.0

    def test_diagonal_none_below_two_values(self, cache) -> None:
        rows = [{"a": 1}, {"a": None}]
        matrix = _stats_engine(rows, ["a"], cache).correlate(["a"])
        assert matrix.get("a", "a") is None

    def test_empty_request_rejected(self, stats) -> None:
        from quarry.contracts import InvalidParameterError

        with pytest.raises(InvalidParameterError):
            stats.correlate([])

    def test_unknown_and_non_numeric_columns(self, stats) -> None:
        from quarry.contracts import TypeMismatchError, UnknownColumnError

        with pytest.raises(UnknownColumnError):
            stats.correlate(["fare", "cabin"])
        with pytest.raises(TypeMismatchError):
            stats.correlate(["fare", "boarded"])

    def test_matrix_get_unknown_pair(self, stats) -> None:
        with pytest.raises(KeyError):
            stats.correlate(["fare", "age"]).get("fare", "pclass")

    @given(
        st.lists(
            st.tuples(
                st.one_of(st.none(), st.floats(-1e6, 1e6)),
                st.one_of(st.none(), st.floats(-1e6, 1e6)),
            ),
            max_size=30,
        )
    )
    def test_symmetry_property(self, pairs: list[tuple[float | None, float | None]]) -> None:
        from quarry.core.cache import ComputationCache

        rows = [{"x": x, "y": y} for x, y in pairs]
        with ComputationCache(max_size_bytes=1024 * 1024, compute_workers=1) as cache:
            matrix = _stats_engine(rows, ["x", "y"], cache).correlate(["x", "y"])
        xy = matrix.get("x", "y")
        assert xy == matrix.get("y", "x")
        if xy is not None:
            assert -1.0 <= xy <= 1.0


class TestPearson:
    def test_perfect_linear(self) -> None:
        from quarry.engine.statistics import pearson

        x = np.array([1.0, 2.0, 3.0, 4.0])
        assert pearson(x, 2 * x + 1) == pytest.approx(1.0)
        assert pearson(x, -x) == pytest.approx(-1.0)

    def test_undefined_cases(self) -> None:
        from quarry.engine.statistics import pearson

        assert pearson(np.array([1.0]), np.array([2.0])) is None
        assert pearson(np.array([1.0, 1.0]), np.array([2.0, 3.0])) is None
