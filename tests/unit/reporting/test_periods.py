"""Tests for bucket grid generation."""

from datetime import date, datetime, timedelta, timezone

import pytest

from policy_crm.reporting.periods import (
    Granularity,
    PeriodRangeError,
    TimeRange,
    bucket_label,
    bucket_start,
    generate_buckets,
    to_utc_date,
)


def labels(buckets) -> list[str]:
    return [bucket.label for bucket in buckets]


class TestGenerateBuckets:
    """Grid generation across granularities."""

    def test_day_grid_is_inclusive_and_gap_free(self) -> None:
        buckets = generate_buckets(date(2024, 1, 1), date(2024, 1, 5))

        assert labels(buckets) == [
            "2024-01-01",
            "2024-01-02",
            "2024-01-03",
            "2024-01-04",
            "2024-01-05",
        ]

    def test_single_day_range(self) -> None:
        assert labels(generate_buckets(date(2024, 6, 1), date(2024, 6, 1))) == [
            "2024-06-01"
        ]

    def test_leap_day_included(self) -> None:
        buckets = generate_buckets(date(2024, 2, 28), date(2024, 3, 1))

        assert labels(buckets) == ["2024-02-28", "2024-02-29", "2024-03-01"]

    def test_week_range_ending_on_monday_opens_next_week(self) -> None:
        buckets = generate_buckets(
            date(2024, 2, 26), date(2024, 3, 4), Granularity.WEEK
        )

        assert labels(buckets) == ["2024-W09", "2024-W10"]

    def test_week_range_within_one_week(self) -> None:
        buckets = generate_buckets(
            date(2024, 2, 26), date(2024, 3, 3), Granularity.WEEK
        )

        assert labels(buckets) == ["2024-W09"]

    def test_week_bucket_starts_on_monday_before_range(self) -> None:
        (bucket,) = generate_buckets(
            date(2024, 2, 28), date(2024, 2, 29), Granularity.WEEK
        )

        assert bucket.start == date(2024, 2, 26)
        assert bucket.end == date(2024, 3, 3)

    def test_month_grid(self) -> None:
        buckets = generate_buckets(
            date(2024, 1, 15), date(2024, 3, 2), Granularity.MONTH
        )

        assert labels(buckets) == ["2024-01", "2024-02", "2024-03"]
        assert buckets[0].start == date(2024, 1, 1)
        assert buckets[1].end == date(2024, 2, 29)

    def test_month_grid_crosses_year(self) -> None:
        buckets = generate_buckets(
            date(2023, 11, 30), date(2024, 1, 1), Granularity.MONTH
        )

        assert labels(buckets) == ["2023-11", "2023-12", "2024-01"]

    def test_year_grid(self) -> None:
        buckets = generate_buckets(
            date(2023, 6, 1), date(2024, 1, 1), Granularity.YEAR
        )

        assert labels(buckets) == ["2023", "2024"]

    def test_start_after_end_rejected(self) -> None:
        with pytest.raises(PeriodRangeError, match="after end date"):
            generate_buckets(date(2024, 1, 5), date(2024, 1, 1))

    def test_max_buckets_enforced(self) -> None:
        with pytest.raises(PeriodRangeError, match="more than 5 day buckets"):
            generate_buckets(date(2024, 1, 1), date(2024, 1, 10), max_buckets=5)

    def test_max_buckets_boundary_allowed(self) -> None:
        buckets = generate_buckets(date(2024, 1, 1), date(2024, 1, 10), max_buckets=10)

        assert len(buckets) == 10

    def test_datetime_bounds_use_utc_dates(self) -> None:
        start = datetime(2024, 1, 1, 23, 30, tzinfo=timezone(timedelta(hours=-5)))
        end = datetime(2024, 1, 3, 1, 0, tzinfo=timezone.utc)

        assert labels(generate_buckets(start, end)) == ["2024-01-02", "2024-01-03"]


class TestBucketLabel:
    """Canonical labels, shared by grids and aggregations."""

    def test_iso_week_belongs_to_thursday_year(self) -> None:
        assert bucket_label(date(2024, 12, 30), Granularity.WEEK) == "2025-W01"
        assert bucket_label(date(2021, 1, 3), Granularity.WEEK) == "2020-W53"

    def test_week_grid_across_iso_year_boundary(self) -> None:
        buckets = generate_buckets(
            date(2024, 12, 23), date(2025, 1, 6), Granularity.WEEK
        )

        assert labels(buckets) == ["2024-W52", "2025-W01", "2025-W02"]

    def test_labels_zero_padded(self) -> None:
        assert bucket_label(date(2024, 3, 7), Granularity.DAY) == "2024-03-07"
        assert bucket_label(date(2024, 3, 7), Granularity.MONTH) == "2024-03"
        assert bucket_label(date(2024, 3, 7), Granularity.WEEK) == "2024-W10"
        assert bucket_label(date(2024, 3, 7), Granularity.YEAR) == "2024"

    def test_timestamp_labelled_by_utc_date(self) -> None:
        moment = datetime(2024, 1, 31, 22, 0, tzinfo=timezone(timedelta(hours=-3)))

        assert bucket_label(moment, Granularity.MONTH) == "2024-02"

    def test_naive_datetime_taken_as_utc(self) -> None:
        assert to_utc_date(datetime(2024, 5, 1, 23, 59)) == date(2024, 5, 1)

    def test_bucket_start(self) -> None:
        assert bucket_start(date(2024, 3, 7), Granularity.WEEK) == date(2024, 3, 4)
        assert bucket_start(date(2024, 3, 7), Granularity.YEAR) == date(2024, 1, 1)


class TestTimeRange:
    def test_bounds_cover_whole_days(self) -> None:
        time_range = TimeRange(date(2024, 1, 1), date(2024, 1, 2))

        assert time_range.lower == datetime(2024, 1, 1, tzinfo=timezone.utc)
        assert time_range.upper_exclusive == datetime(2024, 1, 3, tzinfo=timezone.utc)
        assert time_range.contains(datetime(2024, 1, 2, 23, 59, 59, tzinfo=timezone.utc))
        assert not time_range.contains(datetime(2024, 1, 3, tzinfo=timezone.utc))
        assert not time_range.contains(
            datetime(2023, 12, 31, 23, 59, tzinfo=timezone.utc)
        )

    def test_open_range_contains_everything(self) -> None:
        time_range = TimeRange()

        assert not time_range.is_bounded
        assert time_range.contains(datetime(1999, 1, 1, tzinfo=timezone.utc))

    def test_inverted_range_rejected(self) -> None:
        with pytest.raises(PeriodRangeError):
            TimeRange(date(2024, 2, 1), date(2024, 1, 1))
