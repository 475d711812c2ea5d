# PolicyCore - Policy Decision Management System
# Copyright (C) 2025 Luiz Frias <luizf35@gmail.com>
# Form F[x] Labs
#
# This software is dual-licensed under AGPL-3.0 and Commercial License.
# For commercial licensing, contact: luizf35@gmail.com
# See LICENSE file for full terms.

"""Record store interfaces.

Records are plain dicts: ``id`` (UUID), ``created_at`` and ``updated_at``
(timezone-aware UTC datetimes), ``version`` for customers, and the entity's
JSON-friendly document fields at the top level (enum values as strings,
reference ids as strings, nested objects as dicts). Both store
implementations return this shape, so filter predicates and pipelines behave
identically against either.
"""

from collections.abc import Iterable, Mapping
from datetime import datetime
from enum import Enum
from typing import Any, Protocol, TypeAlias, runtime_checkable
from uuid import UUID

from attrs import frozen

from ..filters.predicate import MATCH_ALL, FilterPredicate
from ..models.entity import EntityType
from ..reporting.periods import TimeRange
from ..reporting.pipeline import Pipeline, SparseSeries

Record: TypeAlias = dict[str, Any]

# Document fields that must be unique per entity. Values are compared as stored.
UNIQUE_FIELDS: dict[EntityType, tuple[str, ...]] = {
    EntityType.CUSTOMER: ("email", "phone"),
    EntityType.SEGMENT: ("name",),
    EntityType.POLICY: ("name",),
}

VERSIONED_ENTITIES = frozenset({EntityType.CUSTOMER})


@frozen
class PartialUnique:
    """``field`` is unique among records whose ``where_field`` equals ``where_value``."""

    field: str
    where_field: str
    where_value: str

    def applies_to(self, document: Mapping[str, Any]) -> bool:
        return (
            document.get(self.where_field) == self.where_value
            and document.get(self.field) is not None
        )


# At most one pending claim per held policy.
PARTIAL_UNIQUE_FIELDS: dict[EntityType, tuple[PartialUnique, ...]] = {
    EntityType.CLAIM: (PartialUnique("customer_policy_id", "status", "Pending"),),
}


class MembershipOp(str, Enum):
    ADD = "add"
    REMOVE = "remove"


@frozen
class SortSpec:
    field: str = "created_at"
    descending: bool = True


DEFAULT_SORT = SortSpec()


@runtime_checkable
class RecordSource(Protocol):
    """Read side used by search and reporting."""

    async def query(
        self,
        entity: EntityType,
        time_range: TimeRange | None = None,
        predicate: FilterPredicate = MATCH_ALL,
        *,
        sort: SortSpec = DEFAULT_SORT,
        limit: int | None = None,
        offset: int = 0,
    ) -> list[Record]: ...

    async def count(
        self,
        entity: EntityType,
        time_range: TimeRange | None = None,
        predicate: FilterPredicate = MATCH_ALL,
    ) -> int: ...

    async def aggregate(self, entity: EntityType, pipeline: Pipeline) -> SparseSeries: ...


@runtime_checkable
class EntityStore(Protocol):
    """Write side and point reads used by the services.

    Implementations raise :class:`~policy_crm.core.errors.StoreError`
    subclasses: ``EntityNotFoundError`` for missing records,
    ``ConcurrentModificationError`` when ``expected_version`` is stale and
    ``DuplicateValueError`` for unique field clashes.
    """

    async def get(self, entity: EntityType, record_id: UUID) -> Record | None: ...

    async def get_many(
        self, entity: EntityType, record_ids: Iterable[UUID]
    ) -> list[Record]: ...

    async def find_by_field(
        self, entity: EntityType, field_name: str, value: Any
    ) -> Record | None: ...

    async def insert(
        self,
        entity: EntityType,
        document: Mapping[str, Any],
        *,
        record_id: UUID | None = None,
        created_at: datetime | None = None,
    ) -> Record: ...

    async def update(
        self, entity: EntityType, record_id: UUID, changes: Mapping[str, Any]
    ) -> Record: ...

    async def update_if(
        self,
        entity: EntityType,
        record_id: UUID,
        changes: Mapping[str, Any],
        expected: Mapping[str, Any],
    ) -> Record | None:
        """Apply ``changes`` only while every ``expected`` field still matches.

        Returns ``None`` when a field no longer matches; raises
        ``EntityNotFoundError`` when the record is gone.
        """
        ...

    async def update_customer(
        self,
        customer_id: UUID,
        changes: Mapping[str, Any],
        expected_version: int,
    ) -> Record: ...

    async def update_customer_segments(
        self,
        customer_id: UUID,
        new_set: Iterable[UUID],
        expected_version: int,
    ) -> Record: ...

    async def update_membership(
        self, segment_id: UUID, customer_id: UUID, op: MembershipOp
    ) -> bool: ...

    async def next_sequence_value(self, scope: str) -> int: ...


@runtime_checkable
class RecordStore(RecordSource, EntityStore, Protocol):
    """Both sides; what the application wires into its services."""


def segment_document(new_set: Iterable[UUID]) -> dict[str, list[str]]:
    """Customer document change that stores ``new_set`` in a stable order."""
    return {"segment_ids": sorted({str(segment_id) for segment_id in new_set})}
