# PolicyCore - Policy Decision Management System
# Copyright (C) 2025 Luiz Frias <luizf35@gmail.com>
# Form F[x] Labs
#
# This software is dual-licensed under AGPL-3.0 and Commercial License.
# For commercial licensing, contact: luizf35@gmail.com
# See LICENSE file for full terms.

"""Alignment of sparse metric series onto a bucket grid.

Aggregations only report buckets that had data. Merging lays every series
over the full grid, in grid order, filling gaps with zero, so a report never
has holes. Labels that are not on the grid are dropped.
"""

from collections.abc import Mapping, Sequence
from typing import Any

import attrs
from attrs import frozen
from beartype import beartype

from .periods import Bucket
from .pipeline import SparseSeries


@frozen
class MetricSeries:
    """A named sparse series.

    When ``categories`` is set the series is keyed by ``(label, category)``
    and contributes one metric per declared category instead of ``name``.
    """

    name: str
    values: SparseSeries = attrs.field(factory=dict)
    categories: tuple[str, ...] = attrs.field(default=(), converter=tuple)

    @property
    def metric_names(self) -> tuple[str, ...]:
        return self.categories or (self.name,)


@frozen
class ReportRow:
    """One bucket of a report."""

    label: str
    metrics: dict[str, int | float]

    def to_flat(self) -> dict[str, Any]:
        return {"label": self.label, **self.metrics}


@beartype
def merge_series(
    buckets: Sequence[Bucket], series: Sequence[MetricSeries]
) -> list[ReportRow]:
    """One row per bucket carrying every metric of every series.

    Raises:
        ValueError: if two series would produce the same metric name.
    """
    seen: set[str] = set()
    for item in series:
        for name in item.metric_names:
            if name in seen:
                raise ValueError(f"duplicate metric {name!r}")
            seen.add(name)

    rows = []
    for bucket in buckets:
        metrics: dict[str, int | float] = {}
        for item in series:
            if item.categories:
                for category in item.categories:
                    metrics[category] = item.values.get((bucket.label, category), 0)
            else:
                metrics[item.name] = item.values.get(bucket.label, 0)
        rows.append(ReportRow(label=bucket.label, metrics=metrics))
    return rows


@beartype
def zero_fill_categories(
    categories: Sequence[str], values: Mapping[str, int | float]
) -> list[tuple[str, int | float]]:
    """Every declared category in declared order; undeclared keys are dropped."""
    return [(category, values.get(category, 0)) for category in categories]
