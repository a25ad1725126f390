"""Query specification contracts.

QuerySpec is an immutable value used twice: to execute a query and, once
canonicalized, as the signature half of a cache key. Canonicalization sorts
filter terms (and the candidates of IN terms) so that logically identical
queries written in different orders share one cache entry.

Paging fields are outside the signature: every page of the same query is
served from one cached, fully ordered result.
"""

from typing import Any, Self

from pydantic import BaseModel, ValidationError, model_validator

from quarry.contracts.enums import AggregateFunction, Comparator, TimeBucket
from quarry.contracts.errors import InvalidQueryError
from quarry.core.canonical import canonical_json, normalize_value


class FilterTerm(BaseModel):
    """One (column, comparator, value) conjunct of a query predicate."""

    model_config = {"frozen": True, "extra": "forbid"}

    column: str
    op: Comparator = Comparator.EQ
    value: Any

    @model_validator(mode="after")
    def validate_in_has_candidates(self) -> "FilterTerm":
        """IN takes a non-empty list; every other comparator takes a scalar."""
        if self.op is Comparator.IN:
            if not isinstance(self.value, (list, tuple)) or not self.value:
                raise ValueError("'in' requires a non-empty list of values")
        elif isinstance(self.value, (list, tuple, dict)):
            raise ValueError(f"'{self.op.value}' requires a scalar value")
        return self

    def canonical(self) -> dict[str, Any]:
        """JSON-safe form with IN candidates sorted and deduplicated."""
        if self.op is Comparator.IN:
            candidates = {canonical_json(v): normalize_value(v) for v in self.value}
            value: Any = [candidates[k] for k in sorted(candidates)]
        else:
            value = normalize_value(self.value)
        return {"column": self.column, "op": self.op.value, "value": value}


class GroupBy(BaseModel):
    """Group by a column, optionally truncating timestamps to a bucket."""

    model_config = {"frozen": True, "extra": "forbid"}

    column: str
    bucket: TimeBucket | None = None


class Aggregation(BaseModel):
    """One (function, column) pair folded per bucket.

    COUNT may omit the column to count rows.
    """

    model_config = {"frozen": True, "extra": "forbid"}

    function: AggregateFunction
    column: str | None = None

    @model_validator(mode="after")
    def validate_column_present(self) -> "Aggregation":
        """Only COUNT may run without a column."""
        if self.column is None and self.function is not AggregateFunction.COUNT:
            raise ValueError(f"'{self.function.value}' requires a column")
        return self

    @property
    def label(self) -> str:
        """Result field name, e.g. 'avg(survived)' or 'count(*)'."""
        return f"{self.function.value}({self.column or '*'})"


class SortSpec(BaseModel):
    """Sort field and direction.

    For grouped queries `by` is 'key', 'count' or an aggregation label;
    otherwise it is a column name.
    """

    model_config = {"frozen": True, "extra": "forbid"}

    by: str
    descending: bool = False


class QuerySpec(BaseModel):
    """Filter / group / aggregate / sort / page request.

    Example:
        QuerySpec(
            filters=[FilterTerm(column="fare", op="gt", value=10)],
            group_by=GroupBy(column="pclass"),
            aggregations=[Aggregation(function="avg", column="survived")],
            sort=SortSpec(by="avg(survived)", descending=True),
            page_size=20,
        )

    Paging bounds are checked by the query engine against the configured
    maximum, so out-of-range values construct fine and fail at execution.
    """

    model_config = {"frozen": True, "extra": "forbid"}

    filters: tuple[FilterTerm, ...] = ()
    group_by: GroupBy | None = None
    aggregations: tuple[Aggregation, ...] = ()
    sort: SortSpec | None = None
    page_offset: int = 0
    page_size: int = 50

    @classmethod
    def from_request(cls, payload: dict[str, Any]) -> Self:
        """Build a spec from an untrusted request payload.

        Raises:
            InvalidQueryError: If the payload does not describe a valid query.
        """
        try:
            return cls.model_validate(payload)
        except ValidationError as e:
            raise InvalidQueryError(f"Invalid query: {e}") from e

    def canonical_filters(self) -> list[dict[str, Any]]:
        """Filter terms in a stable, order-independent order."""
        terms = [term.canonical() for term in self.filters]
        return sorted(terms, key=canonical_json)

    def signature_payload(self) -> dict[str, Any]:
        """Everything that determines the ordered result, minus paging."""
        return {
            "filters": self.canonical_filters(),
            "group_by": self.group_by.model_dump(mode="json") if self.group_by else None,
            "aggregations": [a.model_dump(mode="json") for a in self.aggregations],
            "sort": self.sort.model_dump(mode="json") if self.sort else None,
        }
