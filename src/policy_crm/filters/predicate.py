# PolicyCore - Policy Decision Management System
# Copyright (C) 2025 Luiz Frias <luizf35@gmail.com>
# Form F[x] Labs
#
# This software is dual-licensed under AGPL-3.0 and Commercial License.
# For commercial licensing, contact: luizf35@gmail.com
# See LICENSE file for full terms.

"""Immutable filter predicates.

A :class:`FilterPredicate` is an AND-combination of independent conditions.
It evaluates against plain record dicts in memory via :meth:`matches`; the
PostgreSQL store compiles the same conditions into SQL (see
``policy_crm.stores.sql``).
"""

from collections.abc import Mapping
from datetime import date, datetime, timezone
from typing import Any, TypeAlias, Union

import attrs
from attrs import frozen

Bound: TypeAlias = Union[int, float, datetime, None]

_MISSING = object()


def get_path(record: Mapping[str, Any], path: str) -> Any:
    """Resolve a dotted path (``location.city``) against nested mappings."""
    current: Any = record
    for part in path.split("."):
        if not isinstance(current, Mapping):
            return None
        current = current.get(part, _MISSING)
        if current is _MISSING:
            return None
    return current


def _comparable(value: Any) -> Any:
    if isinstance(value, datetime):
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day, tzinfo=timezone.utc)
    if isinstance(value, str):
        try:
            return float(value)
        except ValueError:
            return value
    return value


@frozen
class TextSearch:
    """Case-insensitive substring match on any of ``fields``."""

    fields: tuple[str, ...] = attrs.field(converter=tuple)
    term: str

    def matches(self, record: Mapping[str, Any]) -> bool:
        needle = self.term.lower()
        for path in self.fields:
            value = get_path(record, path)
            if value is not None and needle in str(value).lower():
                return True
        return False


@frozen
class FieldContains:
    """Case-insensitive substring match on a single (possibly nested) field."""

    field: str
    term: str

    def matches(self, record: Mapping[str, Any]) -> bool:
        value = get_path(record, self.field)
        return value is not None and self.term.lower() in str(value).lower()


@frozen
class FieldEquals:
    """Exact equality on a field."""

    field: str
    value: Any

    def matches(self, record: Mapping[str, Any]) -> bool:
        return get_path(record, self.field) == self.value


@frozen
class RangeCondition:
    """Inclusive range; ``measure="length"`` compares the size of an array."""

    field: str
    minimum: Bound = None
    maximum: Bound = None
    measure: str = "value"

    def matches(self, record: Mapping[str, Any]) -> bool:
        value = get_path(record, self.field)
        if self.measure == "length":
            value = len(value) if isinstance(value, (list, tuple)) else 0
        if value is None:
            return False
        value = _comparable(value)
        try:
            if self.minimum is not None and value < _comparable(self.minimum):
                return False
            if self.maximum is not None and value > _comparable(self.maximum):
                return False
        except TypeError:
            return False
        return True


@frozen
class MembershipCondition:
    """Field value (or, for array fields, any element) is one of ``values``."""

    field: str
    values: tuple[Any, ...] = attrs.field(converter=tuple)
    array_field: bool = False

    def matches(self, record: Mapping[str, Any]) -> bool:
        value = get_path(record, self.field)
        if isinstance(value, (list, tuple)):
            return any(item in self.values for item in value)
        return value in self.values


@frozen
class ReferenceSetCondition:
    """Array of reference ids shares at least one id with ``ids``."""

    field: str
    ids: tuple[str, ...] = attrs.field(converter=tuple)

    def matches(self, record: Mapping[str, Any]) -> bool:
        value = get_path(record, self.field) or ()
        return any(str(item) in self.ids for item in value)


Condition: TypeAlias = Union[
    TextSearch,
    FieldContains,
    FieldEquals,
    RangeCondition,
    MembershipCondition,
    ReferenceSetCondition,
]


@frozen
class FilterPredicate:
    """AND-combination of conditions; the empty predicate matches everything."""

    conditions: tuple[Condition, ...] = attrs.field(default=(), converter=tuple)

    @property
    def is_empty(self) -> bool:
        return not self.conditions

    def matches(self, record: Mapping[str, Any]) -> bool:
        return all(condition.matches(record) for condition in self.conditions)


MATCH_ALL = FilterPredicate()
