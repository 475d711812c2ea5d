# PolicyCore - Policy Decision Management System
# Copyright (C) 2025 Luiz Frias <luizf35@gmail.com>
# Form F[x] Labs
#
# This software is dual-licensed under AGPL-3.0 and Commercial License.
# For commercial licensing, contact: luizf35@gmail.com
# See LICENSE file for full terms.

"""Typed aggregation pipelines.

A :class:`Pipeline` is an immutable sequence of stages, built functionally::

    pipeline = (
        Pipeline()
        .match(TimeRange(start, end))
        .lookup(EntityType.POLICY, local_field="policy_id", as_field="policy")
        .project(Granularity.MONTH)
        .group(Accumulator.SUM, "policy.premium")
    )

Stage order is enforced while building: at most one ``match`` and it comes
first, ``lookup`` stages precede the single ``project``, and ``group`` is
last. Record sources execute pipelines; :func:`evaluate_pipeline` is the
reference in-memory execution and the PostgreSQL store compiles the same
stages into SQL.

Result keys of an executed pipeline:

* time bucket and discriminant: ``(label, discriminant)``
* time bucket only: ``label``
* discriminant only: ``discriminant``
* neither: :data:`TOTAL_KEY`
"""

from collections.abc import Iterable, Mapping
from datetime import datetime
from enum import Enum
from typing import Any, TypeAlias, Union

import attrs
from attrs import frozen
from beartype import beartype

from ..filters.predicate import MATCH_ALL, FilterPredicate, get_path
from ..models.entity import EntityType
from .periods import Granularity, TimeRange, bucket_label

TOTAL_KEY = "total"

GroupKey: TypeAlias = Union[str, tuple[str, str]]
SparseSeries: TypeAlias = dict[GroupKey, Union[int, float]]


class PipelineError(ValueError):
    """Raised when stages are combined in an unsupported order."""


class Accumulator(str, Enum):
    COUNT = "count"
    SUM = "sum"


@frozen
class MatchStage:
    """Keep records whose ``time_field`` lies in the range and that match the predicate."""

    time_range: TimeRange = attrs.field(factory=TimeRange)
    predicate: FilterPredicate = MATCH_ALL
    time_field: str = "created_at"


@frozen
class LookupStage:
    """Inner join: attach the ``entity`` record whose ``foreign_field`` equals ``local_field``."""

    entity: EntityType
    local_field: str
    as_field: str
    foreign_field: str = "id"


@frozen
class ProjectStage:
    """Derive the group key from the time bucket and/or a discriminant field."""

    granularity: Granularity | None = None
    discriminant: str | None = None
    time_field: str = "created_at"


@frozen
class GroupStage:
    accumulator: Accumulator = Accumulator.COUNT
    value_field: str | None = None

    def __attrs_post_init__(self) -> None:
        if self.accumulator is Accumulator.SUM and not self.value_field:
            raise PipelineError("sum accumulator requires a value field")


Stage: TypeAlias = Union[MatchStage, LookupStage, ProjectStage, GroupStage]


@frozen
class Pipeline:
    """Immutable, ordered aggregation stages."""

    stages: tuple[Stage, ...] = attrs.field(default=(), converter=tuple)

    def _find(self, kind: type) -> Any:
        for stage in self.stages:
            if isinstance(stage, kind):
                return stage
        return None

    @property
    def match_stage(self) -> MatchStage | None:
        return self._find(MatchStage)

    @property
    def lookups(self) -> tuple[LookupStage, ...]:
        return tuple(stage for stage in self.stages if isinstance(stage, LookupStage))

    @property
    def project_stage(self) -> ProjectStage | None:
        return self._find(ProjectStage)

    @property
    def group_stage(self) -> GroupStage | None:
        return self._find(GroupStage)

    @property
    def is_complete(self) -> bool:
        return self.group_stage is not None

    def _append(self, stage: Stage) -> "Pipeline":
        if self.group_stage is not None:
            raise PipelineError("no stage may follow group")
        return Pipeline(stages=(*self.stages, stage))

    @beartype
    def match(
        self,
        time_range: TimeRange | None = None,
        predicate: FilterPredicate = MATCH_ALL,
        *,
        time_field: str = "created_at",
    ) -> "Pipeline":
        if self.stages:
            raise PipelineError("match must be the first stage")
        return self._append(
            MatchStage(
                time_range=time_range or TimeRange(),
                predicate=predicate,
                time_field=time_field,
            )
        )

    @beartype
    def lookup(
        self,
        entity: EntityType,
        *,
        local_field: str,
        as_field: str,
        foreign_field: str = "id",
    ) -> "Pipeline":
        if self.project_stage is not None:
            raise PipelineError("lookup must precede project")
        if any(stage.as_field == as_field for stage in self.lookups):
            raise PipelineError(f"duplicate lookup alias {as_field!r}")
        return self._append(
            LookupStage(
                entity=entity,
                local_field=local_field,
                as_field=as_field,
                foreign_field=foreign_field,
            )
        )

    @beartype
    def project(
        self,
        granularity: Granularity | None = None,
        *,
        discriminant: str | None = None,
        time_field: str = "created_at",
    ) -> "Pipeline":
        if self.project_stage is not None:
            raise PipelineError("project may appear only once")
        return self._append(
            ProjectStage(
                granularity=granularity, discriminant=discriminant, time_field=time_field
            )
        )

    @beartype
    def group(
        self, accumulator: Accumulator = Accumulator.COUNT, value_field: str | None = None
    ) -> "Pipeline":
        pipeline = self
        if pipeline.project_stage is None:
            pipeline = pipeline.project()
        return pipeline._append(
            GroupStage(accumulator=accumulator, value_field=value_field)
        )


def _moment(value: Any) -> datetime | None:
    if isinstance(value, datetime):
        return value
    if isinstance(value, str):
        try:
            return datetime.fromisoformat(value)
        except ValueError:
            return None
    return None


def _number(value: Any) -> int | float:
    if isinstance(value, bool) or value is None:
        return 0
    if isinstance(value, (int, float)):
        return value
    try:
        return float(value)
    except (TypeError, ValueError):
        return 0


def group_key(record: Mapping[str, Any], project: ProjectStage) -> GroupKey | None:
    """Group key of one record, or None when it cannot be placed."""
    label: str | None = None
    if project.granularity is not None:
        moment = _moment(get_path(record, project.time_field))
        if moment is None:
            return None
        label = bucket_label(moment, project.granularity)

    discriminant: str | None = None
    if project.discriminant is not None:
        value = get_path(record, project.discriminant)
        if value is None:
            return None
        discriminant = value.value if isinstance(value, Enum) else str(value)

    if label is not None and discriminant is not None:
        return (label, discriminant)
    return label or discriminant or TOTAL_KEY


def _join(
    records: Iterable[Mapping[str, Any]],
    lookup: LookupStage,
    related: Iterable[Mapping[str, Any]],
) -> list[dict[str, Any]]:
    index: dict[str, Mapping[str, Any]] = {}
    for candidate in related:
        key = get_path(candidate, lookup.foreign_field)
        if key is not None:
            index.setdefault(str(key), candidate)
    joined = []
    for record in records:
        local = get_path(record, lookup.local_field)
        match = index.get(str(local)) if local is not None else None
        if match is not None:
            joined.append({**record, lookup.as_field: match})
    return joined


@beartype
def evaluate_pipeline(
    pipeline: Pipeline,
    records: Iterable[Mapping[str, Any]],
    related: Mapping[EntityType, Iterable[Mapping[str, Any]]] | None = None,
) -> SparseSeries:
    """Execute ``pipeline`` over in-memory records.

    Only observed group keys appear in the result.
    """
    group = pipeline.group_stage
    project = pipeline.project_stage
    if group is None or project is None:
        raise PipelineError("pipeline has no group stage")

    rows: Iterable[Mapping[str, Any]] = records
    match = pipeline.match_stage
    if match is not None:
        rows = [
            record
            for record in rows
            if _in_range(record, match) and match.predicate.matches(record)
        ]
    for lookup in pipeline.lookups:
        rows = _join(rows, lookup, (related or {}).get(lookup.entity, ()))

    result: SparseSeries = {}
    for record in rows:
        key = group_key(record, project)
        if key is None:
            continue
        if group.accumulator is Accumulator.COUNT:
            increment: int | float = 1
        else:
            increment = _number(get_path(record, group.value_field or ""))
        result[key] = result.get(key, 0) + increment
    return result


def _in_range(record: Mapping[str, Any], match: MatchStage) -> bool:
    time_range = match.time_range
    if time_range.start is None and time_range.end is None:
        return True
    moment = _moment(get_path(record, match.time_field))
    return moment is not None and time_range.contains(moment)
