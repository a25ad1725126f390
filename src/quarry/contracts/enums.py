"""All type tags, modes, and kinds used across subsystem boundaries.

Uses (str, Enum) throughout so values serialize directly into canonical JSON
when they become part of a cache signature.
"""

from enum import Enum


class ColumnType(str, Enum):
    """Declared type of a dataset column."""

    NUMERIC = "numeric"
    CATEGORICAL = "categorical"
    TIMESTAMP = "timestamp"
    TEXT = "text"


class Comparator(str, Enum):
    """Comparison operator in a filter term.

    IN takes a list of candidate values; every other comparator takes a scalar.
    """

    EQ = "eq"
    NE = "ne"
    LT = "lt"
    LE = "le"
    GT = "gt"
    GE = "ge"
    IN = "in"


class AggregateFunction(str, Enum):
    """Aggregation applied to a column within a bucket."""

    SUM = "sum"
    AVG = "avg"
    COUNT = "count"
    MIN = "min"
    MAX = "max"


class TimeBucket(str, Enum):
    """Width of a time bucket for timestamp grouping.

    All buckets are computed in UTC and floor to the bucket start:
    - DAY: midnight
    - WEEK: Monday midnight (ISO weeks)
    - MONTH: first day of the month
    """

    DAY = "day"
    WEEK = "week"
    MONTH = "month"


class OperationKind(str, Enum):
    """Kind of derived artifact held by the computation cache."""

    QUERY = "query"
    DESCRIBE = "describe"
    CORRELATE = "correlate"
    TRAIN = "train"


class TrainerKind(str, Enum):
    """Tagged variant of model trainers.

    Each kind has one built-in trainer; plugins may register more trainers
    of the same kind under other names.
    """

    REGRESSION = "regression"
    CLUSTERING = "clustering"
    CLASSIFICATION = "classification"


class Determinism(str, Enum):
    """Trainer determinism classification.

    Only reproducible trainers can be memoized, so there is no
    non-deterministic member:
    - DETERMINISTIC: Same input always produces same model
    - SEEDED: Reproducible given the seed carried in the trainer params
    """

    DETERMINISTIC = "deterministic"
    SEEDED = "seeded"
