# PolicyCore - Policy Decision Management System
# Copyright (C) 2025 Luiz Frias <luizf35@gmail.com>
# Form F[x] Labs
#
# This software is dual-licensed under AGPL-3.0 and Commercial License.
# For commercial licensing, contact: luizf35@gmail.com
# See LICENSE file for full terms.

"""Composable filter construction for entity search.

Usage::

    predicate = (
        FilterBuilder()
        .add_search("smith")
        .add_range("age", 30, 40)
        .add_membership("tags", ["VIP"], allowed=None, array_field=True)
        .build()
    )

Conditions accumulate and are AND-combined by :meth:`FilterBuilder.build`.
Absent inputs (``None``, empty strings, empty collections) add nothing.
Contradictory or out-of-vocabulary inputs raise
:class:`FilterValidationError`; malformed reference ids are dropped.
"""

from collections.abc import Collection, Iterable, Mapping, Sequence
from datetime import date, datetime, time, timedelta, timezone
from typing import Any
from uuid import UUID

from beartype import beartype

from .predicate import (
    Condition,
    FieldContains,
    FieldEquals,
    FilterPredicate,
    MembershipCondition,
    RangeCondition,
    ReferenceSetCondition,
    TextSearch,
)

CUSTOMER_SEARCH_FIELDS: tuple[str, ...] = ("name", "email", "phone")


class FilterValidationError(ValueError):
    """One or more filter inputs are invalid."""

    def __init__(self, violations: Sequence[str]) -> None:
        self.violations = tuple(violations)
        super().__init__("; ".join(self.violations))


@beartype
def normalize_reference_id(value: object) -> str | None:
    """Canonical string form of a UUID reference, or None when malformed."""
    if isinstance(value, UUID):
        return str(value)
    if not isinstance(value, str):
        return None
    try:
        return str(UUID(value.strip()))
    except ValueError:
        return None


def _as_moment(value: date | datetime, *, end_of_day: bool = False) -> datetime:
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    moment = datetime.combine(value, time.min, tzinfo=timezone.utc)
    if end_of_day:
        return moment + timedelta(days=1) - timedelta(microseconds=1)
    return moment


class FilterBuilder:
    """Accumulates named filter conditions into one :class:`FilterPredicate`."""

    def __init__(self) -> None:
        self._conditions: list[Condition] = []

    def __len__(self) -> int:
        return len(self._conditions)

    @beartype
    def add_search(
        self, term: str | None, fields: Sequence[str] = CUSTOMER_SEARCH_FIELDS
    ) -> "FilterBuilder":
        """Case-insensitive substring search OR-ed across ``fields``."""
        if term and term.strip():
            self._conditions.append(TextSearch(fields=tuple(fields), term=term.strip()))
        return self

    @beartype
    def add_nested_contains(
        self, prefix: str, values: Mapping[str, str | None] | None
    ) -> "FilterBuilder":
        """One substring condition per sub-field, e.g. ``location.city``."""
        for key, value in (values or {}).items():
            if value and value.strip():
                self._conditions.append(
                    FieldContains(field=f"{prefix}.{key}", term=value.strip())
                )
        return self

    @beartype
    def add_range(
        self,
        field_name: str,
        minimum: int | float | datetime | None = None,
        maximum: int | float | datetime | None = None,
        *,
        measure: str = "value",
        label: str | None = None,
    ) -> "FilterBuilder":
        """Inclusive range on a field; either bound may be omitted."""
        if minimum is None and maximum is None:
            return self
        if minimum is not None and maximum is not None and minimum > maximum:
            name = label or field_name
            raise FilterValidationError(
                [f"{name} minimum cannot be greater than maximum"]
            )
        self._conditions.append(
            RangeCondition(
                field=field_name, minimum=minimum, maximum=maximum, measure=measure
            )
        )
        return self

    @beartype
    def add_date_range(
        self,
        field_name: str,
        after: date | datetime | None = None,
        before: date | datetime | None = None,
    ) -> "FilterBuilder":
        """Inclusive date range; a plain ``before`` date covers that whole UTC day."""
        lower = _as_moment(after) if after is not None else None
        upper = _as_moment(before, end_of_day=True) if before is not None else None
        return self.add_range(field_name, lower, upper, label=field_name)

    @beartype
    def add_membership(
        self,
        field_name: str,
        values: str | Iterable[str] | None,
        allowed: Collection[str] | None,
        *,
        array_field: bool = False,
        label: str | None = None,
    ) -> "FilterBuilder":
        """Value must be one of ``values``; each value must be ``allowed``."""
        if values is None:
            return self
        if isinstance(values, str):
            values = [values]
        wanted = [value.strip() for value in values if value and value.strip()]
        if not wanted:
            return self
        if allowed is not None:
            unknown = [value for value in wanted if value not in allowed]
            if unknown:
                name = label or field_name
                raise FilterValidationError(
                    [
                        f"Invalid {name} {value!r}. Must be one of: "
                        f"{', '.join(allowed)}"
                        for value in unknown
                    ]
                )
        self._conditions.append(
            MembershipCondition(
                field=field_name, values=tuple(dict.fromkeys(wanted)), array_field=array_field
            )
        )
        return self

    @beartype
    def add_equals(self, field_name: str, value: Any) -> "FilterBuilder":
        """Exact equality; ``None`` adds nothing."""
        if value is not None:
            self._conditions.append(FieldEquals(field=field_name, value=value))
        return self

    @beartype
    def add_reference_set(
        self, field_name: str, ids: Iterable[object] | None
    ) -> "FilterBuilder":
        """Array field shares an id with ``ids``; malformed ids are dropped."""
        normalized = [
            ref for ref in (normalize_reference_id(value) for value in ids or ()) if ref
        ]
        if normalized:
            self._conditions.append(
                ReferenceSetCondition(field=field_name, ids=tuple(dict.fromkeys(normalized)))
            )
        return self

    @beartype
    def build(self) -> FilterPredicate:
        """Snapshot the accumulated conditions; the builder stays usable."""
        return FilterPredicate(conditions=tuple(self._conditions))

    @beartype
    def reset(self) -> "FilterBuilder":
        """Drop every accumulated condition."""
        self._conditions = []
        return self
