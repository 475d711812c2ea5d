# PolicyCore - Policy Decision Management System
# Copyright (C) 2025 Luiz Frias <luizf35@gmail.com>
# Form F[x] Labs
#
# This software is dual-licensed under AGPL-3.0 and Commercial License.
# For commercial licensing, contact: luizf35@gmail.com
# See LICENSE file for full terms.

"""Metric aggregation over a record source.

The aggregator owns no data. It turns a :class:`MetricSpec` into a
:class:`~policy_crm.reporting.pipeline.Pipeline` and hands it to the record
source, which executes it close to the data.
"""

from typing import TYPE_CHECKING

import attrs
from attrs import frozen
from beartype import beartype

from ..filters.predicate import MATCH_ALL, FilterPredicate
from ..models.entity import EntityType
from .periods import Granularity, TimeRange
from .pipeline import TOTAL_KEY, Accumulator, LookupStage, Pipeline, SparseSeries

if TYPE_CHECKING:
    from ..stores.base import RecordSource


@frozen
class MetricSpec:
    """What to measure: a count, or the sum of a numeric (possibly joined) field."""

    name: str
    entity: EntityType
    accumulator: Accumulator = Accumulator.COUNT
    value_field: str | None = None
    discriminant: str | None = None
    lookups: tuple[LookupStage, ...] = attrs.field(default=(), converter=tuple)
    predicate: FilterPredicate = MATCH_ALL
    time_field: str = "created_at"


class MetricAggregator:
    """Builds pipelines for metric specs and executes them through a record source."""

    def __init__(self, source: "RecordSource") -> None:
        self._source = source

    @staticmethod
    @beartype
    def pipeline_for(
        spec: MetricSpec,
        time_range: TimeRange,
        granularity: Granularity | None = None,
        *,
        discriminant: str | None = None,
    ) -> Pipeline:
        """match → lookup* → project → group."""
        pipeline = Pipeline().match(
            time_range, spec.predicate, time_field=spec.time_field
        )
        for lookup in spec.lookups:
            pipeline = pipeline.lookup(
                lookup.entity,
                local_field=lookup.local_field,
                as_field=lookup.as_field,
                foreign_field=lookup.foreign_field,
            )
        return pipeline.project(
            granularity,
            discriminant=discriminant,
            time_field=spec.time_field,
        ).group(spec.accumulator, spec.value_field)

    @beartype
    async def time_series(
        self, spec: MetricSpec, time_range: TimeRange, granularity: Granularity
    ) -> SparseSeries:
        """Sparse ``label`` (or ``(label, discriminant)``) to value map."""
        pipeline = self.pipeline_for(
            spec, time_range, granularity, discriminant=spec.discriminant
        )
        return await self._source.aggregate(spec.entity, pipeline)

    @beartype
    async def total(self, spec: MetricSpec, time_range: TimeRange) -> int | float:
        """Ungrouped value over the whole range."""
        pipeline = self.pipeline_for(spec, time_range)
        result = await self._source.aggregate(spec.entity, pipeline)
        return result.get(TOTAL_KEY, 0)

    @beartype
    async def categories(
        self, spec: MetricSpec, time_range: TimeRange
    ) -> dict[str, int | float]:
        """Value per discriminant, with no time axis."""
        if spec.discriminant is None:
            raise ValueError(f"metric {spec.name!r} has no discriminant field")
        pipeline = self.pipeline_for(spec, time_range, discriminant=spec.discriminant)
        result = await self._source.aggregate(spec.entity, pipeline)
        return {str(key): value for key, value in result.items()}
