# PolicyCore - Policy Decision Management System
# Copyright (C) 2025 Luiz Frias <luizf35@gmail.com>
# Form F[x] Labs
#
# This software is dual-licensed under AGPL-3.0 and Commercial License.
# For commercial licensing, contact: luizf35@gmail.com
# See LICENSE file for full terms.

"""Compilation of filter predicates and pipelines into PostgreSQL.

Every table has ``id``, ``data`` (JSONB document), ``created_at`` and
``updated_at`` columns. Field paths address either a column or a document
field; dotted paths descend into nested objects or, when the head is a
lookup alias, into the joined table. All values travel as bind parameters.
"""

import re
from datetime import datetime
from enum import Enum
from typing import Any

from attrs import define, field, frozen

from ..filters.predicate import (
    FieldContains,
    FieldEquals,
    FilterPredicate,
    MembershipCondition,
    RangeCondition,
    ReferenceSetCondition,
    TextSearch,
)
from ..models.entity import EntityType
from ..reporting.periods import Granularity, TimeRange
from ..reporting.pipeline import Accumulator, MatchStage, Pipeline, PipelineError
from .base import SortSpec

COLUMNS = frozenset({"id", "created_at", "updated_at", "version"})
TIMESTAMP_COLUMNS = frozenset({"created_at", "updated_at"})
NUMERIC_FIELDS = frozenset({"age", "lifetime_value", "premium", "claim_amount"})

BUCKET_FORMATS: dict[Granularity, str] = {
    Granularity.DAY: "YYYY-MM-DD",
    Granularity.WEEK: 'IYYY-"W"IW',
    Granularity.MONTH: "YYYY-MM",
    Granularity.YEAR: "YYYY",
}

BASE_ALIAS = "t"

_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


def _checked(part: str) -> str:
    if not _IDENTIFIER.match(part):
        raise ValueError(f"invalid field name {part!r}")
    return part


def escape_like(term: str) -> str:
    """Escape LIKE wildcards so the term matches literally."""
    return term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


@define
class SqlParams:
    """Positional bind parameters (``$1``, ``$2`` ...)."""

    values: list[Any] = field(factory=list)

    def add(self, value: Any) -> str:
        self.values.append(value)
        return f"${len(self.values)}"


@frozen
class FieldRef:
    """Resolves dotted field paths to SQL expressions."""

    aliases: dict[str, str] = field(factory=dict)

    def _split(self, path: str) -> tuple[str, list[str]]:
        parts = [_checked(part) for part in path.split(".")]
        if len(parts) > 1 and parts[0] in self.aliases:
            return self.aliases[parts[0]], parts[1:]
        return BASE_ALIAS, parts

    def is_column(self, path: str) -> bool:
        _, parts = self._split(path)
        return len(parts) == 1 and parts[0] in COLUMNS

    def json(self, path: str) -> str:
        """JSONB expression of a document field."""
        alias, parts = self._split(path)
        return f"{alias}.data" + "".join(f"->'{part}'" for part in parts)

    def text(self, path: str) -> str:
        """Text expression of a column or document field."""
        alias, parts = self._split(path)
        if len(parts) == 1 and parts[0] in COLUMNS:
            return f"{alias}.{parts[0]}::text"
        head = "".join(f"->'{part}'" for part in parts[:-1])
        return f"{alias}.data{head}->>'{parts[-1]}'"

    def timestamp(self, path: str) -> str:
        alias, parts = self._split(path)
        if len(parts) == 1 and parts[0] in TIMESTAMP_COLUMNS:
            return f"{alias}.{parts[0]}"
        return f"({self.text(path)})::timestamptz"

    def numeric(self, path: str) -> str:
        alias, parts = self._split(path)
        if len(parts) == 1 and parts[0] == "version":
            return f"{alias}.version"
        return f"({self.text(path)})::numeric"


def _text_value(value: Any) -> str:
    if isinstance(value, Enum):
        value = value.value
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def _range_sql(condition: RangeCondition, ref: FieldRef, params: SqlParams) -> str:
    if condition.measure == "length":
        expr = f"jsonb_array_length(COALESCE({ref.json(condition.field)}, '[]'::jsonb))"
    elif isinstance(condition.minimum, datetime) or isinstance(condition.maximum, datetime):
        expr = ref.timestamp(condition.field)
    else:
        expr = ref.numeric(condition.field)
    clauses = []
    if condition.minimum is not None:
        clauses.append(f"{expr} >= {params.add(condition.minimum)}")
    if condition.maximum is not None:
        clauses.append(f"{expr} <= {params.add(condition.maximum)}")
    return " AND ".join(clauses) or "TRUE"


def condition_sql(condition: Any, ref: FieldRef, params: SqlParams) -> str:
    """SQL boolean expression for one predicate condition."""
    if isinstance(condition, TextSearch):
        pattern = params.add(f"%{escape_like(condition.term)}%")
        return "(" + " OR ".join(
            f"{ref.text(path)} ILIKE {pattern}" for path in condition.fields
        ) + ")"
    if isinstance(condition, FieldContains):
        pattern = params.add(f"%{escape_like(condition.term)}%")
        return f"{ref.text(condition.field)} ILIKE {pattern}"
    if isinstance(condition, FieldEquals):
        return f"{ref.text(condition.field)} = {params.add(_text_value(condition.value))}"
    if isinstance(condition, RangeCondition):
        return _range_sql(condition, ref, params)
    if isinstance(condition, (MembershipCondition, ReferenceSetCondition)):
        values = condition.values if isinstance(condition, MembershipCondition) else condition.ids
        array = params.add([_text_value(value) for value in values])
        is_array = isinstance(condition, ReferenceSetCondition) or condition.array_field
        if is_array:
            return f"COALESCE({ref.json(condition.field)}, '[]'::jsonb) ?| {array}::text[]"
        return f"{ref.text(condition.field)} = ANY({array}::text[])"
    raise TypeError(f"unsupported filter condition {type(condition).__name__}")


def predicate_sql(
    predicate: FilterPredicate, params: SqlParams, ref: FieldRef | None = None
) -> str:
    """AND of every condition; ``TRUE`` for the empty predicate."""
    ref = ref or FieldRef()
    clauses = [condition_sql(condition, ref, params) for condition in predicate.conditions]
    return " AND ".join(f"({clause})" for clause in clauses) or "TRUE"


def time_range_sql(
    time_range: TimeRange | None,
    params: SqlParams,
    time_field: str = "created_at",
    ref: FieldRef | None = None,
) -> str:
    """Half-open UTC instant range covering the inclusive calendar dates."""
    if time_range is None:
        return "TRUE"
    expr = (ref or FieldRef()).timestamp(time_field)
    clauses = []
    if time_range.lower is not None:
        clauses.append(f"{expr} >= {params.add(time_range.lower)}")
    if time_range.upper_exclusive is not None:
        clauses.append(f"{expr} < {params.add(time_range.upper_exclusive)}")
    return " AND ".join(clauses) or "TRUE"


def where_sql(
    time_range: TimeRange | None,
    predicate: FilterPredicate,
    params: SqlParams,
    *,
    time_field: str = "created_at",
    ref: FieldRef | None = None,
) -> str:
    return (
        f"{time_range_sql(time_range, params, time_field, ref)} "
        f"AND {predicate_sql(predicate, params, ref)}"
    )


def bucket_label_sql(timestamp_expr: str, granularity: Granularity) -> str:
    """Bucket label of a timestamptz, computed on its UTC calendar date."""
    return f"to_char(({timestamp_expr}) AT TIME ZONE 'UTC', '{BUCKET_FORMATS[granularity]}')"


@frozen
class CompiledQuery:
    sql: str
    params: list[Any]
    has_label: bool = False
    has_discriminant: bool = False


def compile_select(
    entity: EntityType,
    time_range: TimeRange | None,
    predicate: FilterPredicate,
    sort: SortSpec,
    limit: int | None,
    offset: int,
) -> CompiledQuery:
    params = SqlParams()
    ref = FieldRef()
    if ref.is_column(sort.field):
        order = f"{BASE_ALIAS}.{_checked(sort.field)}"
    elif sort.field in NUMERIC_FIELDS:
        order = ref.numeric(sort.field)
    else:
        order = f"lower({ref.text(sort.field)})"
    direction = "DESC" if sort.descending else "ASC"
    sql = (
        f"SELECT {BASE_ALIAS}.* FROM {entity.value} {BASE_ALIAS} "
        f"WHERE {where_sql(time_range, predicate, params)} "
        f"ORDER BY {order} {direction} NULLS LAST, {BASE_ALIAS}.id {direction}"
    )
    if limit is not None:
        sql += f" LIMIT {params.add(limit)}"
    if offset:
        sql += f" OFFSET {params.add(offset)}"
    return CompiledQuery(sql=sql, params=params.values)


def compile_count(
    entity: EntityType, time_range: TimeRange | None, predicate: FilterPredicate
) -> CompiledQuery:
    params = SqlParams()
    sql = (
        f"SELECT COUNT(*) FROM {entity.value} {BASE_ALIAS} "
        f"WHERE {where_sql(time_range, predicate, params)}"
    )
    return CompiledQuery(sql=sql, params=params.values)


def compile_pipeline(entity: EntityType, pipeline: Pipeline) -> CompiledQuery:
    """``SELECT label[, discriminant], value ... GROUP BY`` for a complete pipeline."""
    group = pipeline.group_stage
    project = pipeline.project_stage
    if group is None or project is None:
        raise PipelineError("pipeline has no group stage")

    params = SqlParams()
    aliases = {lookup.as_field: f"l{index}" for index, lookup in enumerate(pipeline.lookups)}
    ref = FieldRef(aliases=aliases)

    joins = []
    for lookup in pipeline.lookups:
        alias = aliases[lookup.as_field]
        foreign = ref.text(f"{lookup.as_field}.{lookup.foreign_field}")
        joins.append(
            f"JOIN {lookup.entity.value} {alias} ON {foreign} = {ref.text(lookup.local_field)}"
        )

    match = pipeline.match_stage or MatchStage()
    conditions = [
        time_range_sql(match.time_range, params, match.time_field, ref),
        predicate_sql(match.predicate, params, ref),
    ]

    keys = []
    if project.granularity is not None:
        keys.append(
            f"{bucket_label_sql(ref.timestamp(project.time_field), project.granularity)} AS label"
        )
        conditions.append(f"{ref.timestamp(project.time_field)} IS NOT NULL")
    if project.discriminant is not None:
        keys.append(f"{ref.text(project.discriminant)} AS discriminant")
        conditions.append(f"{ref.text(project.discriminant)} IS NOT NULL")

    if group.accumulator is Accumulator.COUNT:
        value = "COUNT(*)"
    else:
        value = f"COALESCE(SUM({ref.numeric(group.value_field or '')}), 0)"

    select = ", ".join([*keys, f"{value} AS value"])
    sql = f"SELECT {select} FROM {entity.value} {BASE_ALIAS}"
    if joins:
        sql += " " + " ".join(joins)
    sql += " WHERE " + " AND ".join(f"({condition})" for condition in conditions)
    if keys:
        sql += " GROUP BY " + ", ".join(str(index + 1) for index in range(len(keys)))
    sql += " HAVING COUNT(*) > 0"
    return CompiledQuery(
        sql=sql,
        params=params.values,
        has_label=project.granularity is not None,
        has_discriminant=project.discriminant is not None,
    )
