# src/quarry/engine/column_store.py
"""
Columnar access to one immutable snapshot.

Selection evaluates a conjunction of filter terms over numpy columns. Terms
run in canonical order, and each term only examines the rows that survived
the previous ones, so a row stops being evaluated at its first failing
conjunct. Every term is a single O(rows) pass.

Missing numeric, timestamp and text cells never satisfy a term (not even
'ne'). Categorical cells always carry a category, "Unknown" included, and
compare like any other value. Grouping is stricter: a row whose key cell is
missing belongs to no bucket, whatever the column type.

Time buckets are computed in UTC with floor semantics against fixed epochs:
- day: midnight UTC
- week: the Monday on or before the timestamp (weeks counted from 1970-01-05)
- month: the first day of the month
"""

import math
import operator
from collections.abc import Callable, Sequence
from datetime import date, datetime, timezone
from typing import Any

import numpy as np
import pandas as pd

from quarry.contracts import (
    ColumnType,
    Comparator,
    FilterTerm,
    GroupBy,
    TimeBucket,
    TypeMismatchError,
)
from quarry.core.canonical import canonical_json
from quarry.engine.normalizer import Column, DatasetSnapshot, parse_timestamp

# A Monday; week buckets are whole weeks counted from here
WEEK_EPOCH = np.datetime64("1970-01-05", "D")

_COMPARE: dict[Comparator, Callable[[Any, Any], Any]] = {
    Comparator.EQ: operator.eq,
    Comparator.NE: operator.ne,
    Comparator.LT: operator.lt,
    Comparator.LE: operator.le,
    Comparator.GT: operator.gt,
    Comparator.GE: operator.ge,
}


def truncate_timestamps(values: np.ndarray, bucket: TimeBucket) -> np.ndarray:
    """Floor datetime64 values to bucket starts as datetime64[D]."""
    days = values.astype("datetime64[D]")
    if bucket is TimeBucket.DAY:
        return days
    if bucket is TimeBucket.WEEK:
        offset = (days - WEEK_EPOCH).astype(np.int64)
        return WEEK_EPOCH + (offset // 7) * 7
    return values.astype("datetime64[M]").astype("datetime64[D]")


def canonical_terms(filters: Sequence[FilterTerm]) -> list[FilterTerm]:
    """Filter terms sorted by their canonical form."""
    return sorted(filters, key=lambda term: canonical_json(term.canonical()))


class ColumnStore:
    """Read-only columnar view of a DatasetSnapshot.

    Safe for any number of concurrent callers: nothing here mutates, and the
    snapshot's arrays are flagged read-only.
    """

    def __init__(self, snapshot: DatasetSnapshot) -> None:
        self._snapshot = snapshot

    @property
    def snapshot(self) -> DatasetSnapshot:
        return self._snapshot

    @property
    def version(self) -> int:
        return self._snapshot.version

    @property
    def row_count(self) -> int:
        return self._snapshot.row_count

    def column(self, name: str) -> Column:
        """Raises UnknownColumnError for undeclared names."""
        return self._snapshot.column(name)

    # === Validation ===

    def validate_filters(self, filters: Sequence[FilterTerm]) -> None:
        """Check every term's column and value type without selecting rows.

        Raises:
            UnknownColumnError: If a term names an unknown column
            TypeMismatchError: If a value does not fit its column's type
        """
        for term in filters:
            self._operands(self.column(term.column), term)

    def validate_group_by(self, group_by: GroupBy) -> Column:
        """Raises UnknownColumnError / TypeMismatchError for unusable groupings."""
        column = self.column(group_by.column)
        if group_by.bucket is not None and column.type is not ColumnType.TIMESTAMP:
            raise TypeMismatchError(
                column.name, "a timestamp column for time buckets", column.type.value
            )
        return column

    def _operand(self, column: Column, value: Any) -> Any:
        if column.type is ColumnType.NUMERIC:
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                raise TypeMismatchError(column.name, "a number", value)
            try:
                number = float(value)
            except OverflowError:
                raise TypeMismatchError(column.name, "a finite number", value) from None
            if not math.isfinite(number):
                raise TypeMismatchError(column.name, "a finite number", value)
            return number
        if column.type is ColumnType.TIMESTAMP:
            if not isinstance(value, (str, date, datetime)):
                raise TypeMismatchError(column.name, "a datetime or ISO-8601 string", value)
            parsed = parse_timestamp(value)
            if parsed is None:
                raise TypeMismatchError(column.name, "a datetime or ISO-8601 string", value)
            return np.datetime64(parsed, "ns")
        if not isinstance(value, str):
            raise TypeMismatchError(column.name, "a string", value)
        return value

    def _operands(self, column: Column, term: FilterTerm) -> Any:
        if term.op is Comparator.IN:
            return [self._operand(column, v) for v in term.value]
        return self._operand(column, term.value)

    # === Selection ===

    def select(self, filters: Sequence[FilterTerm]) -> np.ndarray:
        """Row indices (ascending) satisfying every filter term.

        The result depends only on the set of terms, not their order.

        Raises:
            UnknownColumnError: If a term names an unknown column
            TypeMismatchError: If a value does not fit its column's type
        """
        # Validate every term up front so errors never depend on the data
        self.validate_filters(filters)
        compiled = []
        for term in canonical_terms(filters):
            column = self.column(term.column)
            compiled.append((column, term, self._operands(column, term)))

        rows = np.arange(self.row_count, dtype=np.int64)
        for column, term, operand in compiled:
            if len(rows) == 0:
                break
            rows = rows[self._matches(column, term, operand, rows)]
        return rows

    def _matches(
        self,
        column: Column,
        term: FilterTerm,
        operand: Any,
        rows: np.ndarray,
    ) -> np.ndarray:
        values = column.values[rows]
        if term.op is Comparator.IN:
            if values.dtype == object:
                candidates = set(operand)
                hits = np.fromiter((v in candidates for v in values), dtype=bool, count=len(values))
            else:
                hits = np.isin(values, np.array(operand, dtype=values.dtype))
        else:
            hits = np.asarray(_COMPARE[term.op](values, operand), dtype=bool)

        if column.type is ColumnType.CATEGORICAL:
            return hits
        return hits & ~column.missing[rows]

    # === Grouping ===

    def group_keys(self, rows: np.ndarray, group_by: GroupBy) -> tuple[np.ndarray, list[Any]]:
        """Resolve the bucket key of each row.

        Rows whose key is missing are dropped from grouping, including
        categorical rows stored as "Unknown".

        Returns:
            (kept row indices, key per kept row)
        """
        column = self.validate_group_by(group_by)
        rows = rows[~column.missing[rows]]
        values = column.values[rows]

        if column.type is ColumnType.NUMERIC:
            keys: list[Any] = values.tolist()
        elif column.type is ColumnType.TIMESTAMP:
            bucket = group_by.bucket or TimeBucket.DAY
            keys = truncate_timestamps(values, bucket).astype(object).tolist()
        else:
            keys = list(values)
        return rows, keys

    def group_key(self, row: int, group_by: GroupBy) -> Any:
        """Bucket key of a single row, or None if the row is not grouped."""
        _, keys = self.group_keys(np.array([row], dtype=np.int64), group_by)
        return keys[0] if keys else None

    # === Records ===

    def _cell(self, column: Column, row: int) -> Any:
        if column.missing[row] and column.type is not ColumnType.CATEGORICAL:
            return None
        value = column.values[row]
        if column.type is ColumnType.NUMERIC:
            return float(value)
        if column.type is ColumnType.TIMESTAMP:
            return pd.Timestamp(value).tz_localize(timezone.utc).to_pydatetime()
        return value

    def record(self, row: int) -> dict[str, Any]:
        """Reconstruct one row as column name -> value."""
        data = self._snapshot.data
        return {c.name: self._cell(data[c.name], row) for c in self._snapshot.columns}

    def records(self, rows: Sequence[int] | np.ndarray) -> list[dict[str, Any]]:
        return [self.record(int(row)) for row in rows]
