# src/quarry/engine/normalizer.py
"""
Schema normalizer: raw rows in, immutable typed snapshot out.

Missing-value policy per declared type (a value that is absent, blank or
fails to parse is "missing"):
- numeric: stored as 0.0 and flagged in the missing bitmap
- categorical: stored as the "Unknown" category and flagged
- timestamp: stored as NaT and flagged
- text: stored as "" and flagged

A row that is not a mapping is isolated rather than aborting ingestion:
every cell in it becomes missing and it is counted as malformed.

Snapshots are never mutated. Each successful ingestion produces a new
snapshot with the next version; a failed ingestion consumes no version.
"""

import math
import threading
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from datetime import date, datetime
from types import MappingProxyType
from typing import Any

import numpy as np
import pandas as pd
from pydantic import ValidationError

from quarry.contracts import ColumnDef, ColumnType, SchemaError, UnknownColumnError
from quarry.core.logging import get_logger

logger = get_logger(__name__)

UNKNOWN_CATEGORY = "Unknown"


def _parse_numeric(raw: Any) -> float | None:
    if raw is None:
        return None
    if isinstance(raw, bool):
        return float(raw)
    if isinstance(raw, (int, float, np.number)):
        try:
            value = float(raw)
        except OverflowError:
            return None
    elif isinstance(raw, str):
        text = raw.strip()
        if not text:
            return None
        try:
            value = float(text)
        except ValueError:
            return None
    else:
        return None
    return value if math.isfinite(value) else None


def _parse_categorical(raw: Any) -> str | None:
    if raw is None:
        return None
    if isinstance(raw, float) and not math.isfinite(raw):
        return None
    text = str(raw).strip()
    return text or None


def parse_timestamp(raw: Any) -> np.datetime64 | None:
    """Parse to a naive UTC datetime64[ns]; naive inputs are taken as UTC."""
    if raw is None or isinstance(raw, bool):
        return None
    try:
        if isinstance(raw, (int, float, np.number)):
            if not math.isfinite(raw):
                return None
            ts = pd.Timestamp(raw, unit="s", tz="UTC")
        elif isinstance(raw, str):
            text = raw.strip()
            if not text:
                return None
            ts = pd.Timestamp(text)
        elif isinstance(raw, (datetime, date, np.datetime64)):
            ts = pd.Timestamp(raw)
        else:
            return None
    except (ValueError, TypeError, OverflowError):
        return None
    if ts is pd.NaT:
        return None
    ts = ts.tz_localize("UTC") if ts.tz is None else ts.tz_convert("UTC")
    return ts.tz_localize(None).to_datetime64()


def _parse_text(raw: Any) -> str | None:
    if raw is None:
        return None
    if isinstance(raw, float) and not math.isfinite(raw):
        return None
    text = str(raw)
    return text if text.strip() else None


_PARSERS = {
    ColumnType.NUMERIC: _parse_numeric,
    ColumnType.CATEGORICAL: _parse_categorical,
    ColumnType.TIMESTAMP: parse_timestamp,
    ColumnType.TEXT: _parse_text,
}


@dataclass(frozen=True)
class Column:
    """One typed column: values plus missingness bitmap, aligned by row index.

    Both arrays are read-only.
    """

    definition: ColumnDef
    values: np.ndarray
    missing: np.ndarray

    @property
    def name(self) -> str:
        return self.definition.name

    @property
    def type(self) -> ColumnType:
        return self.definition.type

    @property
    def valid_count(self) -> int:
        return int(len(self.missing) - self.missing.sum())

    def __len__(self) -> int:
        return len(self.values)


@dataclass(frozen=True)
class IngestReport:
    """What the normalizer had to repair while building a snapshot."""

    row_count: int
    malformed_rows: int
    missing_counts: Mapping[str, int]


@dataclass(frozen=True)
class DatasetSnapshot:
    """Immutable, versioned view of the full dataset.

    Invariant: every column has length row_count.
    """

    version: int
    columns: tuple[ColumnDef, ...]
    row_count: int
    data: Mapping[str, Column] = field(repr=False)
    report: IngestReport = field(repr=False)

    @property
    def column_names(self) -> list[str]:
        return [c.name for c in self.columns]

    def column(self, name: str) -> Column:
        """Look up a column by name.

        Raises:
            UnknownColumnError: If the snapshot has no such column
        """
        try:
            return self.data[name]
        except KeyError:
            raise UnknownColumnError(name, self.column_names) from None

    def __contains__(self, name: object) -> bool:
        return name in self.data


def _coerce_schema(schema: Sequence[ColumnDef | Mapping[str, Any]]) -> tuple[ColumnDef, ...]:
    if not schema:
        raise SchemaError("Schema declares no columns")
    columns: list[ColumnDef] = []
    seen: set[str] = set()
    for item in schema:
        try:
            column = item if isinstance(item, ColumnDef) else ColumnDef.model_validate(item)
        except ValidationError as e:
            raise SchemaError(f"Invalid column declaration {item!r}: {e}") from e
        if column.name in seen:
            raise SchemaError(f"Duplicate column name: '{column.name}'")
        seen.add(column.name)
        columns.append(column)
    return tuple(columns)


def _build_column(definition: ColumnDef, raw_values: list[Any]) -> Column:
    parse = _PARSERS[definition.type]
    parsed = [parse(raw) for raw in raw_values]
    missing = np.fromiter((v is None for v in parsed), dtype=bool, count=len(parsed))

    if definition.type is ColumnType.NUMERIC:
        values = np.array([0.0 if v is None else v for v in parsed], dtype=np.float64)
    elif definition.type is ColumnType.TIMESTAMP:
        nat = np.datetime64("NaT", "ns")
        values = np.array([nat if v is None else v for v in parsed], dtype="datetime64[ns]")
    else:
        fill = UNKNOWN_CATEGORY if definition.type is ColumnType.CATEGORICAL else ""
        values = np.empty(len(parsed), dtype=object)
        values[:] = [fill if v is None else v for v in parsed]

    values.setflags(write=False)
    missing.setflags(write=False)
    return Column(definition=definition, values=values, missing=missing)


class SchemaNormalizer:
    """Parses raw rows into immutable snapshots with monotonic versions.

    Example:
        normalizer = SchemaNormalizer()
        snapshot = normalizer.ingest(
            [{"pclass": "1", "survived": 1}, {"pclass": "", "survived": 0}],
            schema=[
                ColumnDef(name="pclass", type="numeric"),
                ColumnDef(name="survived", type="numeric"),
            ],
        )
        assert snapshot.version == 1
        assert snapshot.column("pclass").missing.tolist() == [False, True]
    """

    def __init__(self, start_version: int = 0) -> None:
        self._version = start_version
        self._lock = threading.Lock()

    @property
    def version(self) -> int:
        """Version of the most recently produced snapshot (0 = none yet)."""
        return self._version

    def ingest(
        self,
        raw_rows: Iterable[Any],
        schema: Sequence[ColumnDef | Mapping[str, Any]],
    ) -> DatasetSnapshot:
        """Normalize raw rows into a new snapshot.

        Args:
            raw_rows: Mappings of column name to raw string/number. Extra keys
                are ignored; non-mapping rows are isolated as malformed.
            schema: Ordered column declarations

        Returns:
            New snapshot with version = previous version + 1

        Raises:
            SchemaError: If the schema is invalid or a required column is
                absent from every row
        """
        columns = _coerce_schema(schema)
        rows = list(raw_rows)

        raw_by_column: dict[str, list[Any]] = {c.name: [] for c in columns}
        present: set[str] = set()
        malformed = 0
        for row in rows:
            if not isinstance(row, Mapping):
                malformed += 1
                for values in raw_by_column.values():
                    values.append(None)
                continue
            for name, values in raw_by_column.items():
                if name in row:
                    present.add(name)
                values.append(row.get(name))

        absent = [c.name for c in columns if c.required and c.name not in present]
        if absent:
            raise SchemaError(f"Required columns absent from input: {absent}")

        data = {c.name: _build_column(c, raw_by_column[c.name]) for c in columns}
        report = IngestReport(
            row_count=len(rows),
            malformed_rows=malformed,
            missing_counts=MappingProxyType(
                {name: int(col.missing.sum()) for name, col in data.items()}
            ),
        )

        with self._lock:
            self._version += 1
            version = self._version

        if malformed:
            logger.warning("malformed_rows_isolated", version=version, count=malformed)
        logger.info(
            "dataset_ingested",
            version=version,
            rows=len(rows),
            columns=len(columns),
        )
        return DatasetSnapshot(
            version=version,
            columns=columns,
            row_count=len(rows),
            data=MappingProxyType(data),
            report=report,
        )
