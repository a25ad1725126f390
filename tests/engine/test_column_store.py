"""Tests for ColumnStore selection, grouping and record reconstruction."""

from datetime import UTC, date, datetime
from typing import Any

import numpy as np
import pytest
from hypothesis import HealthCheck, given, settings
from hypothesis import strategies as st


def _term(column: str, op: str, value: Any):
    from quarry.contracts import FilterTerm

    return FilterTerm(column=column, op=op, value=value)


class TestSelect:
    """Conjunctive filters over typed columns."""

    def test_no_filters_selects_everything(self, passenger_store) -> None:
        assert passenger_store.select([]).tolist() == list(range(8))

    def test_numeric_comparison(self, passenger_store) -> None:
        rows = passenger_store.select([_term("fare", "gt", 10)])
        assert rows.tolist() == [0, 1, 2, 3, 6]

    def test_missing_numeric_never_matches(self, passenger_store) -> None:
        # Row 7 stores 0.0 for its missing pclass, which must not satisfy lt 2
        assert passenger_store.select([_term("pclass", "lt", 2)]).tolist() == [0, 1]

    def test_missing_numeric_does_not_match_ne(self, passenger_store) -> None:
        rows = passenger_store.select([_term("age", "ne", 29)])
        assert rows.tolist() == [1, 2, 4, 5, 6, 7]

    def test_unknown_category_is_an_ordinary_value(self, passenger_store) -> None:
        assert passenger_store.select([_term("sex", "eq", "Unknown")]).tolist() == [5]

    def test_in_on_categorical(self, passenger_store) -> None:
        rows = passenger_store.select([_term("sex", "in", ["female", "Unknown"])])
        assert rows.tolist() == [0, 2, 5, 6]

    def test_in_on_numeric(self, passenger_store) -> None:
        rows = passenger_store.select([_term("pclass", "in", [1, 3])])
        assert rows.tolist() == [0, 1, 4, 5, 6]

    def test_timestamp_comparison_with_iso_string(self, passenger_store) -> None:
        rows = passenger_store.select([_term("boarded", "ge", "2024-01-08")])
        assert rows.tolist() == [4, 5, 6]

    def test_conjunction(self, passenger_store) -> None:
        rows = passenger_store.select(
            [_term("sex", "eq", "male"), _term("survived", "eq", 0), _term("age", "gt", 40)]
        )
        assert rows.tolist() == [1, 7]

    @pytest.mark.parametrize(
        ("column", "value"),
        [
            ("fare", "cheap"),
            ("fare", True),
            ("sex", 1),
            ("boarded", 5),
            ("boarded", "not a date"),
            ("fare", 10**400),
            ("fare", float("nan")),
        ],
    )
    def test_type_mismatch(self, passenger_store, column: str, value: Any) -> None:
        from quarry.contracts import TypeMismatchError

        with pytest.raises(TypeMismatchError):
            passenger_store.select([_term(column, "eq", value)])

    def test_unknown_column(self, passenger_store) -> None:
        from quarry.contracts import UnknownColumnError

        with pytest.raises(UnknownColumnError):
            passenger_store.select([_term("cabin", "eq", "C85")])

    def test_errors_do_not_depend_on_earlier_terms(self, passenger_store) -> None:
        from quarry.contracts import TypeMismatchError

        # The first term matches nothing; the second is still validated
        with pytest.raises(TypeMismatchError):
            passenger_store.select([_term("fare", "gt", 1e9), _term("age", "eq", "old")])

    @settings(suppress_health_check=[HealthCheck.function_scoped_fixture])
    @given(
        st.permutations(
            [
                ("fare", "lt", 100),
                ("sex", "in", ["male", "female"]),
                ("age", "ge", 19),
                ("boarded", "lt", "2024-02-01"),
                ("pclass", "ne", 2),
            ]
        )
    )
    def test_result_independent_of_term_order(self, passenger_store, terms) -> None:
        expected = passenger_store.select([_term(*t) for t in sorted(terms, key=str)])
        assert passenger_store.select([_term(*t) for t in terms]).tolist() == expected.tolist()


class TestTimeBuckets:
    """UTC floor semantics at day, week and month boundaries."""

    def _keys(self, store, bucket: str | None) -> dict[int, Any]:
        from quarry.contracts import GroupBy

        rows, keys = store.group_keys(np.arange(8), GroupBy(column="boarded", bucket=bucket))
        return dict(zip(rows.tolist(), keys, strict=True))

    def test_day_buckets(self, passenger_store) -> None:
        keys = self._keys(passenger_store, "day")
        assert keys[0] == keys[1] == date(2024, 1, 1)
        assert keys[2] == date(2024, 1, 2)
        assert keys[3] == date(2024, 1, 7)
        assert keys[4] == date(2024, 1, 8)

    def test_week_buckets_start_on_monday(self, passenger_store) -> None:
        keys = self._keys(passenger_store, "week")
        # Sunday 2024-01-07 23:59:59 still belongs to the week of Monday 01-01
        assert {keys[i] for i in range(4)} == {date(2024, 1, 1)}
        assert keys[4] == date(2024, 1, 8)
        assert keys[5] == keys[6] == date(2024, 1, 29)

    def test_month_buckets(self, passenger_store) -> None:
        keys = self._keys(passenger_store, "month")
        assert {keys[i] for i in range(6)} == {date(2024, 1, 1)}
        assert keys[6] == date(2024, 2, 1)

    def test_default_bucket_is_day(self, passenger_store) -> None:
        assert self._keys(passenger_store, None) == self._keys(passenger_store, "day")

    def test_missing_timestamps_are_not_grouped(self, passenger_store) -> None:
        assert 7 not in self._keys(passenger_store, "day")

    def test_week_before_epoch(self) -> None:
        from quarry.contracts import TimeBucket
        from quarry.engine.column_store import truncate_timestamps

        values = np.array(["1969-12-31T12:00", "1970-01-05T00:00"], dtype="datetime64[ns]")
        weeks = truncate_timestamps(values, TimeBucket.WEEK)
        assert weeks.tolist() == [date(1969, 12, 29), date(1970, 1, 5)]

    def test_bucket_on_non_timestamp_rejected(self, passenger_store) -> None:
        from quarry.contracts import GroupBy, TypeMismatchError

        with pytest.raises(TypeMismatchError):
            passenger_store.validate_group_by(GroupBy(column="fare", bucket="day"))


class TestGroupKeys:
    def test_missing_categorical_key_is_dropped(self, passenger_store) -> None:
        from quarry.contracts import GroupBy

        # Row 5 is stored as "Unknown" but flagged missing
        assert passenger_store.record(5)["sex"] == "Unknown"
        assert passenger_store.group_key(5, GroupBy(column="sex")) is None
        assert passenger_store.group_key(4, GroupBy(column="sex")) == "male"

    def test_missing_numeric_key_is_dropped(self, passenger_store) -> None:
        from quarry.contracts import GroupBy

        assert passenger_store.group_key(7, GroupBy(column="pclass")) is None
        assert passenger_store.group_key(4, GroupBy(column="pclass")) == 3.0


class TestRecords:
    def test_record_reconstruction(self, passenger_store) -> None:
        record = passenger_store.record(3)
        assert record["pclass"] == 2.0
        assert record["sex"] == "male"
        assert record["age"] is None
        assert record["boarded"] == datetime(2024, 1, 7, 23, 59, 59, tzinfo=UTC)

    def test_missing_timestamp_is_none(self, passenger_store) -> None:
        assert passenger_store.record(7)["boarded"] is None

    def test_records_preserve_order(self, passenger_store) -> None:
        records = passenger_store.records([6, 0])
        assert [r["age"] for r in records] == [4.0, 29.0]
