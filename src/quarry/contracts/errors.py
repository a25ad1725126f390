"""Error taxonomy shared by every quarry subsystem.

Caller errors (bad schema, bad query, bad parameters) are raised immediately
and never cached. ComputationError is the only error produced by running a
computation; it reaches every caller awaiting that computation and is not
cached either, so the next request retries.
"""

from typing import Any


class QuarryError(Exception):
    """Base class for all quarry errors."""


class SchemaError(QuarryError):
    """Ingestion failed; the previously published snapshot stays serviceable."""


class DatasetNotLoadedError(QuarryError):
    """A request arrived before any dataset was ingested."""


class InvalidQueryError(QuarryError):
    """Query specification is malformed or out of bounds."""


class InvalidParameterError(QuarryError):
    """Trainer or statistics parameters are invalid."""


class UnknownModelError(InvalidParameterError):
    """Model id does not name a live artifact (never trained, evicted, or stale)."""

    def __init__(self, model_id: str) -> None:
        super().__init__(f"Unknown or expired model id: {model_id!r}")
        self.model_id = model_id


class UnknownColumnError(QuarryError):
    """Request referenced a column the dataset does not declare."""

    def __init__(self, column: str, available: list[str] | None = None) -> None:
        message = f"Unknown column: {column!r}"
        if available is not None:
            message += f". Available columns: {available}"
        super().__init__(message)
        self.column = column


class TypeMismatchError(QuarryError):
    """Value or column type does not fit the requested operation."""

    def __init__(self, column: str, expected: str, got: Any) -> None:
        super().__init__(
            f"Column {column!r} expects {expected}, got {type(got).__name__} ({got!r})"
        )
        self.column = column
        self.expected = expected


class FeatureMismatchError(QuarryError):
    """Prediction feature vector does not match the model's feature arity."""

    def __init__(self, expected: int, got: int) -> None:
        super().__init__(f"Model expects {expected} features, got {got}")
        self.expected = expected
        self.got = got


class ComputationError(QuarryError):
    """A trainer or aggregation failed while computing a derived artifact."""
