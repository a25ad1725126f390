# src/quarry/engine/query.py
"""
Query engine: QuerySpec -> ordered, paginated result.

Execution:
1. Validate the spec against the snapshot and the configured page cap.
2. Ask the computation cache for the fully ordered result of the spec
   (paging excluded from the key). On a miss: select rows, fold them into
   bucket accumulators (or keep them as records when ungrouped), finalize,
   order by key, then apply the requested sort.
3. Window the ordered result. A window past the end is an empty page with
   the correct total, never an error.

Accumulators are commutative and associative, so the finalized buckets do
not depend on the order rows are folded in.
"""

from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Any

import numpy as np

from quarry.contracts import (
    AggregateFunction,
    ColumnType,
    InvalidQueryError,
    OperationKind,
    PagedResult,
    QuerySpec,
    SortSpec,
    TypeMismatchError,
)
from quarry.core.cache import CacheKey, ComputationCache
from quarry.engine.column_store import ColumnStore

# Rough per-item cost of a result dict (keys, boxed values, dict overhead)
_ITEM_BYTES = 256


@dataclass
class Accumulator:
    """Running sum/count/min/max over the valid values of one column."""

    total: float = 0.0
    count: int = 0
    minimum: float | None = None
    maximum: float | None = None

    def fold(self, values: np.ndarray) -> None:
        """Fold a batch of valid (non-missing) values."""
        if len(values) == 0:
            return
        self.merge(
            Accumulator(
                total=float(values.sum()),
                count=len(values),
                minimum=float(values.min()),
                maximum=float(values.max()),
            )
        )

    def merge(self, other: "Accumulator") -> None:
        self.total += other.total
        self.count += other.count
        if other.minimum is not None:
            self.minimum = (
                other.minimum if self.minimum is None else min(self.minimum, other.minimum)
            )
        if other.maximum is not None:
            self.maximum = (
                other.maximum if self.maximum is None else max(self.maximum, other.maximum)
            )

    def finalize(self, function: AggregateFunction) -> float | int | None:
        if function is AggregateFunction.SUM:
            return self.total
        if function is AggregateFunction.COUNT:
            return self.count
        if function is AggregateFunction.AVG:
            return self.total / self.count if self.count else None
        if function is AggregateFunction.MIN:
            return self.minimum
        return self.maximum


@dataclass
class AggregationBucket:
    """Rows sharing a group key plus one accumulator per aggregated column."""

    key: Any
    rows: int = 0
    accumulators: dict[str, Accumulator] = field(default_factory=dict)

    def merge(self, other: "AggregationBucket") -> None:
        self.rows += other.rows
        for column, acc in other.accumulators.items():
            self.accumulators.setdefault(column, Accumulator()).merge(acc)

    def finalize(self, spec: QuerySpec) -> dict[str, Any]:
        item: dict[str, Any] = {"key": self.key, "count": self.rows}
        for aggregation in spec.aggregations:
            if aggregation.column is None:
                item[aggregation.label] = self.rows
            else:
                item[aggregation.label] = self.accumulators[aggregation.column].finalize(
                    aggregation.function
                )
        return item


@dataclass(frozen=True)
class OrderedResult:
    """Fully ordered query result, as stored in the cache."""

    items: tuple[dict[str, Any], ...]

    @property
    def size_hint(self) -> int:
        return _ITEM_BYTES * (len(self.items) + 1)


def sort_items(items: Iterable[dict[str, Any]], sort: SortSpec) -> list[dict[str, Any]]:
    """Stable sort on one field; None values go last in either direction."""
    items = list(items)
    present = [item for item in items if item.get(sort.by) is not None]
    absent = [item for item in items if item.get(sort.by) is None]
    present.sort(key=lambda item: item[sort.by], reverse=sort.descending)
    return present + absent


class QueryEngine:
    """Executes QuerySpecs against one ColumnStore through the cache.

    Example:
        engine = QueryEngine(store, cache, max_page_size=500)
        page = engine.execute(QuerySpec(
            group_by=GroupBy(column="pclass"),
            aggregations=[Aggregation(function="avg", column="survived")],
        ))
    """

    def __init__(
        self,
        store: ColumnStore,
        cache: ComputationCache,
        max_page_size: int = 500,
    ) -> None:
        self._store = store
        self._cache = cache
        self._max_page_size = max_page_size

    def validate(self, spec: QuerySpec) -> None:
        """Reject a spec before it reaches the cache.

        Raises:
            InvalidQueryError: Paging out of bounds, aggregations without a
                grouping, or an unknown sort field
            UnknownColumnError: If any referenced column is undeclared
            TypeMismatchError: If a filter value or aggregated column has
                the wrong type
        """
        if spec.page_size <= 0:
            raise InvalidQueryError(f"page_size must be positive, got {spec.page_size}")
        if spec.page_size > self._max_page_size:
            raise InvalidQueryError(
                f"page_size {spec.page_size} exceeds maximum {self._max_page_size}"
            )
        if spec.page_offset < 0:
            raise InvalidQueryError(f"page_offset must be >= 0, got {spec.page_offset}")

        self._store.validate_filters(spec.filters)

        if spec.group_by is None:
            if spec.aggregations:
                raise InvalidQueryError("aggregations require group_by")
            if spec.sort is not None:
                # Records are keyed by column name
                if spec.sort.by not in self._store.snapshot:
                    raise InvalidQueryError(f"Unknown sort field: {spec.sort.by!r}")
            return

        self._store.validate_group_by(spec.group_by)
        for aggregation in spec.aggregations:
            if aggregation.column is None:
                continue
            column = self._store.column(aggregation.column)
            numeric_only = aggregation.function is not AggregateFunction.COUNT
            if numeric_only and column.type is not ColumnType.NUMERIC:
                raise TypeMismatchError(
                    column.name,
                    f"a numeric column for {aggregation.function.value}()",
                    column.type.value,
                )
        if spec.sort is not None:
            fields = {"key", "count", *(a.label for a in spec.aggregations)}
            if spec.sort.by not in fields:
                raise InvalidQueryError(
                    f"Unknown sort field: {spec.sort.by!r}. Available: {sorted(fields)}"
                )

    def cache_key(self, spec: QuerySpec) -> CacheKey:
        return CacheKey.build(self._store.version, OperationKind.QUERY, spec.signature_payload())

    def execute(self, spec: QuerySpec) -> PagedResult:
        """Run a query and return the requested page."""
        self.validate(spec)
        ordered: OrderedResult = self._cache.get_or_compute(
            self.cache_key(spec),
            lambda: self.compute(spec),
        )
        window = ordered.items[spec.page_offset : spec.page_offset + spec.page_size]
        return PagedResult(
            # Copies, so callers never mutate the shared cached items
            items=tuple(dict(item) for item in window),
            total_buckets=len(ordered.items),
            page_offset=spec.page_offset,
            page_size=spec.page_size,
        )

    def compute(self, spec: QuerySpec) -> OrderedResult:
        """Uncached evaluation of steps (1)-(2): select, fold, order, sort."""
        rows = self._store.select(spec.filters)

        if spec.group_by is None:
            items = self._store.records(rows)
        else:
            buckets = self._fold(rows, spec)
            items = [buckets[key].finalize(spec) for key in sorted(buckets)]

        if spec.sort is not None:
            items = sort_items(items, spec.sort)
        return OrderedResult(items=tuple(items))

    def _fold(self, rows: np.ndarray, spec: QuerySpec) -> dict[Any, AggregationBucket]:
        assert spec.group_by is not None
        kept, keys = self._store.group_keys(rows, spec.group_by)

        members: dict[Any, list[int]] = {}
        for row, key in zip(kept.tolist(), keys, strict=True):
            members.setdefault(key, []).append(row)

        aggregated = {a.column for a in spec.aggregations if a.column is not None}
        buckets: dict[Any, AggregationBucket] = {}
        for key, indices in members.items():
            idx = np.asarray(indices, dtype=np.int64)
            bucket = AggregationBucket(key=key, rows=len(indices))
            for name in aggregated:
                column = self._store.column(name)
                acc = Accumulator()
                valid = idx[~column.missing[idx]]
                if column.type is ColumnType.NUMERIC:
                    acc.fold(column.values[valid])
                else:
                    # count() over a non-numeric column: only the count is defined
                    acc.count = len(valid)
                bucket.accumulators[name] = acc
            buckets[key] = bucket
        return buckets
