"""Shared contracts for cross-boundary data types.

All dataclasses, enums, pydantic request models and errors that cross
subsystem boundaries are defined here.

Import pattern:
    from quarry.contracts import QuerySpec, PagedResult, UnknownColumnError
"""

# isort: skip_file
# Import order is load-bearing: query imports core.canonical, which loads
# core.config, which imports contracts.data and contracts.enums.

from quarry.contracts.enums import (
    AggregateFunction,
    ColumnType,
    Comparator,
    Determinism,
    OperationKind,
    TimeBucket,
    TrainerKind,
)
from quarry.contracts.errors import (
    ComputationError,
    DatasetNotLoadedError,
    FeatureMismatchError,
    InvalidParameterError,
    InvalidQueryError,
    QuarryError,
    SchemaError,
    TypeMismatchError,
    UnknownColumnError,
    UnknownModelError,
)
from quarry.contracts.data import ColumnDef
from quarry.contracts.results import (
    ColumnSummary,
    CorrelationMatrix,
    ModelArtifact,
    PagedResult,
    PredictResult,
    TrainResult,
)
from quarry.contracts.query import (
    Aggregation,
    FilterTerm,
    GroupBy,
    QuerySpec,
    SortSpec,
)

__all__ = [
    # data
    "ColumnDef",
    # enums
    "AggregateFunction",
    "ColumnType",
    "Comparator",
    "Determinism",
    "OperationKind",
    "TimeBucket",
    "TrainerKind",
    # errors
    "ComputationError",
    "DatasetNotLoadedError",
    "FeatureMismatchError",
    "InvalidParameterError",
    "InvalidQueryError",
    "QuarryError",
    "SchemaError",
    "TypeMismatchError",
    "UnknownColumnError",
    "UnknownModelError",
    # query
    "Aggregation",
    "FilterTerm",
    "GroupBy",
    "QuerySpec",
    "SortSpec",
    # results
    "ColumnSummary",
    "CorrelationMatrix",
    "ModelArtifact",
    "PagedResult",
    "PredictResult",
    "TrainResult",
]
