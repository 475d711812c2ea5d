# PolicyCore - Policy Decision Management System
# Copyright (C) 2025 Luiz Frias <luizf35@gmail.com>
# Form F[x] Labs
#
# This software is dual-licensed under AGPL-3.0 and Commercial License.
# For commercial licensing, contact: luizf35@gmail.com
# See LICENSE file for full terms.

"""Time-series reporting: bucket grids, aggregation pipelines and series merging."""

from .periods import (
    Bucket,
    Granularity,
    PeriodRangeError,
    TimeRange,
    bucket_label,
    bucket_start,
    generate_buckets,
)
from .pipeline import (
    TOTAL_KEY,
    Accumulator,
    GroupStage,
    LookupStage,
    MatchStage,
    Pipeline,
    PipelineError,
    ProjectStage,
    SparseSeries,
    evaluate_pipeline,
)
from .aggregator import MetricAggregator, MetricSpec
from .merger import MetricSeries, ReportRow, merge_series, zero_fill_categories

__all__ = [
    "Bucket",
    "Granularity",
    "PeriodRangeError",
    "TimeRange",
    "bucket_label",
    "bucket_start",
    "generate_buckets",
    "TOTAL_KEY",
    "Accumulator",
    "GroupStage",
    "LookupStage",
    "MatchStage",
    "Pipeline",
    "PipelineError",
    "ProjectStage",
    "SparseSeries",
    "evaluate_pipeline",
    "MetricAggregator",
    "MetricSpec",
    "MetricSeries",
    "ReportRow",
    "merge_series",
    "zero_fill_categories",
]
