# PolicyCore - Policy Decision Management System
# Copyright (C) 2025 Luiz Frias <luizf35@gmail.com>
# Form F[x] Labs
#
# This software is dual-licensed under AGPL-3.0 and Commercial License.
# For commercial licensing, contact: luizf35@gmail.com
# See LICENSE file for full terms.

"""Calendar bucket generation for time-series reports.

A report's x-axis is a gap-free sequence of buckets. Every bucket carries a
canonical label; :func:`bucket_label` is the one function that maps a date
or timestamp to that label, and the record aggregators use it too, so grid
labels and aggregated labels always join.

Week buckets follow ISO-8601: weeks start on Monday and belong to the
ISO week-year of their Thursday, so 2024-12-30 is labelled ``2025-W01``.
"""

from collections.abc import Iterator
from datetime import date, datetime, timedelta, timezone
from enum import Enum

from attrs import frozen
from beartype import beartype


class Granularity(str, Enum):
    """Bucket size of a time-series report."""

    DAY = "day"
    WEEK = "week"
    MONTH = "month"
    YEAR = "year"


class PeriodRangeError(ValueError):
    """Raised for an unusable report date range."""


@frozen
class Bucket:
    """One slot on a report's time axis.

    ``start`` is the representative date used when querying metrics; for
    week/month/year buckets it may precede the requested range start.
    """

    label: str
    start: date
    end: date


@beartype
def to_utc_date(moment: date | datetime) -> date:
    """Calendar date of a moment in UTC; naive datetimes are taken as UTC."""
    if isinstance(moment, datetime):
        if moment.tzinfo is not None:
            moment = moment.astimezone(timezone.utc)
        return moment.date()
    return moment


@beartype
def bucket_start(moment: date | datetime, granularity: Granularity) -> date:
    """First calendar day of the bucket containing ``moment``."""
    day = to_utc_date(moment)
    if granularity is Granularity.WEEK:
        return day - timedelta(days=day.weekday())
    if granularity is Granularity.MONTH:
        return day.replace(day=1)
    if granularity is Granularity.YEAR:
        return day.replace(month=1, day=1)
    return day


@beartype
def bucket_label(moment: date | datetime, granularity: Granularity) -> str:
    """Canonical label of the bucket containing ``moment``."""
    day = to_utc_date(moment)
    if granularity is Granularity.WEEK:
        iso_year, iso_week, _ = day.isocalendar()
        return f"{iso_year:04d}-W{iso_week:02d}"
    if granularity is Granularity.MONTH:
        return f"{day.year:04d}-{day.month:02d}"
    if granularity is Granularity.YEAR:
        return f"{day.year:04d}"
    return day.isoformat()


def _next_start(start: date, granularity: Granularity) -> date:
    if granularity is Granularity.DAY:
        return start + timedelta(days=1)
    if granularity is Granularity.WEEK:
        return start + timedelta(days=7)
    if granularity is Granularity.MONTH:
        if start.month == 12:
            return date(start.year + 1, 1, 1)
        return date(start.year, start.month + 1, 1)
    return date(start.year + 1, 1, 1)


def _iter_buckets(start: date, end: date, granularity: Granularity) -> Iterator[Bucket]:
    current = bucket_start(start, granularity)
    while current <= end:
        following = _next_start(current, granularity)
        yield Bucket(
            label=bucket_label(current, granularity),
            start=current,
            end=following - timedelta(days=1),
        )
        current = following


@beartype
def generate_buckets(
    start: date,
    end: date,
    granularity: Granularity = Granularity.DAY,
    *,
    max_buckets: int | None = None,
) -> tuple[Bucket, ...]:
    """Ordered, gap-free buckets covering ``[start, end]`` (both inclusive).

    Raises:
        PeriodRangeError: if ``start`` is after ``end`` or the grid would
            exceed ``max_buckets``.
    """
    if isinstance(start, datetime) or isinstance(end, datetime):
        start, end = to_utc_date(start), to_utc_date(end)
    if start > end:
        raise PeriodRangeError(
            f"start date {start.isoformat()} is after end date {end.isoformat()}"
        )

    buckets: list[Bucket] = []
    for bucket in _iter_buckets(start, end, granularity):
        buckets.append(bucket)
        if max_buckets is not None and len(buckets) > max_buckets:
            raise PeriodRangeError(
                f"range {start.isoformat()}..{end.isoformat()} needs more than "
                f"{max_buckets} {granularity.value} buckets"
            )
    return tuple(buckets)


def _as_utc(moment: datetime) -> datetime:
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc)


def _midnight(day: date) -> datetime:
    return datetime(day.year, day.month, day.day, tzinfo=timezone.utc)


@frozen
class TimeRange:
    """Inclusive calendar-date range; either bound may be open."""

    start: date | None = None
    end: date | None = None

    def __attrs_post_init__(self) -> None:
        if self.start is not None and self.end is not None and self.start > self.end:
            raise PeriodRangeError(
                f"start date {self.start.isoformat()} is after end date "
                f"{self.end.isoformat()}"
            )

    @property
    def lower(self) -> datetime | None:
        """First instant inside the range (UTC)."""
        return _midnight(self.start) if self.start is not None else None

    @property
    def upper_exclusive(self) -> datetime | None:
        """First instant after the range (UTC)."""
        if self.end is None:
            return None
        return _midnight(self.end + timedelta(days=1))

    @property
    def is_bounded(self) -> bool:
        return self.start is not None and self.end is not None

    def contains(self, moment: datetime) -> bool:
        moment = _as_utc(moment)
        lower, upper = self.lower, self.upper_exclusive
        if lower is not None and moment < lower:
            return False
        if upper is not None and moment >= upper:
            return False
        return True
