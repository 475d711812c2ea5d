# PolicyCore - Policy Decision Management System
# Copyright (C) 2025 Luiz Frias <luizf35@gmail.com>
# Form F[x] Labs
#
# This software is dual-licensed under AGPL-3.0 and Commercial License.
# For commercial licensing, contact: luizf35@gmail.com
# See LICENSE file for full terms.

"""In-memory record store.

Backs the test-suite and ``STORE_BACKEND=memory`` local runs. Records are
deep-copied on the way in and out so callers can never mutate stored state.
"""

import asyncio
import copy
from collections.abc import Iterable, Mapping
from datetime import datetime, timezone
from typing import Any
from uuid import UUID, uuid4

from beartype import beartype

from ..core.errors import (
    ConcurrentModificationError,
    DuplicateValueError,
    EntityNotFoundError,
)
from ..filters.predicate import MATCH_ALL, FilterPredicate, get_path
from ..models.entity import EntityType
from ..reporting.periods import TimeRange
from ..reporting.pipeline import Pipeline, SparseSeries, evaluate_pipeline
from .base import (
    DEFAULT_SORT,
    PARTIAL_UNIQUE_FIELDS,
    UNIQUE_FIELDS,
    VERSIONED_ENTITIES,
    MembershipOp,
    Record,
    SortSpec,
    segment_document,
)

_IDENTITY_FIELDS = frozenset({"id", "created_at", "updated_at", "version"})


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _sort_value(value: Any) -> Any:
    if isinstance(value, str):
        return value.lower()
    return value


class InMemoryStore:
    """Dict-backed implementation of :class:`~policy_crm.stores.base.RecordStore`."""

    def __init__(self) -> None:
        self._records: dict[EntityType, dict[UUID, Record]] = {
            entity: {} for entity in EntityType
        }
        self._sequences: dict[str, int] = {}
        self._lock = asyncio.Lock()

    # Read side

    def _scan(
        self,
        entity: EntityType,
        time_range: TimeRange | None,
        predicate: FilterPredicate,
    ) -> list[Record]:
        rows = []
        for record in self._records[entity].values():
            if time_range is not None and not time_range.contains(record["created_at"]):
                continue
            if predicate.matches(record):
                rows.append(record)
        return rows

    @beartype
    async def query(
        self,
        entity: EntityType,
        time_range: TimeRange | None = None,
        predicate: FilterPredicate = MATCH_ALL,
        *,
        sort: SortSpec = DEFAULT_SORT,
        limit: int | None = None,
        offset: int = 0,
    ) -> list[Record]:
        rows = self._scan(entity, time_range, predicate)
        present = [row for row in rows if get_path(row, sort.field) is not None]
        missing = [row for row in rows if get_path(row, sort.field) is None]
        present.sort(
            key=lambda row: (_sort_value(get_path(row, sort.field)), str(row["id"])),
            reverse=sort.descending,
        )
        ordered = present + missing
        end = None if limit is None else offset + limit
        return copy.deepcopy(ordered[offset:end])

    @beartype
    async def count(
        self,
        entity: EntityType,
        time_range: TimeRange | None = None,
        predicate: FilterPredicate = MATCH_ALL,
    ) -> int:
        return len(self._scan(entity, time_range, predicate))

    @beartype
    async def aggregate(self, entity: EntityType, pipeline: Pipeline) -> SparseSeries:
        related = {
            lookup.entity: list(self._records[lookup.entity].values())
            for lookup in pipeline.lookups
        }
        return evaluate_pipeline(
            pipeline, list(self._records[entity].values()), related
        )

    # Entity side

    @beartype
    async def get(self, entity: EntityType, record_id: UUID) -> Record | None:
        record = self._records[entity].get(record_id)
        return copy.deepcopy(record) if record is not None else None

    @beartype
    async def get_many(
        self, entity: EntityType, record_ids: Iterable[UUID]
    ) -> list[Record]:
        table = self._records[entity]
        return [
            copy.deepcopy(table[record_id])
            for record_id in dict.fromkeys(record_ids)
            if record_id in table
        ]

    @beartype
    async def find_by_field(
        self, entity: EntityType, field_name: str, value: Any
    ) -> Record | None:
        for record in self._records[entity].values():
            if get_path(record, field_name) == value:
                return copy.deepcopy(record)
        return None

    def _check_unique(
        self, entity: EntityType, document: Mapping[str, Any], exclude: UUID | None
    ) -> None:
        for field_name in UNIQUE_FIELDS.get(entity, ()):
            value = document.get(field_name)
            if value is None:
                continue
            for record_id, record in self._records[entity].items():
                if record_id != exclude and record.get(field_name) == value:
                    raise DuplicateValueError(entity.value, field_name, value)

    def _check_partial_unique(
        self, entity: EntityType, candidate: Mapping[str, Any], exclude: UUID | None
    ) -> None:
        for rule in PARTIAL_UNIQUE_FIELDS.get(entity, ()):
            if not rule.applies_to(candidate):
                continue
            value = candidate[rule.field]
            for record_id, record in self._records[entity].items():
                if (
                    record_id != exclude
                    and rule.applies_to(record)
                    and record[rule.field] == value
                ):
                    raise DuplicateValueError(entity.value, rule.field, value)

    @beartype
    async def insert(
        self,
        entity: EntityType,
        document: Mapping[str, Any],
        *,
        record_id: UUID | None = None,
        created_at: datetime | None = None,
    ) -> Record:
        self._check_unique(entity, document, exclude=None)
        self._check_partial_unique(entity, document, exclude=None)
        moment = created_at or _now()
        if moment.tzinfo is None:
            moment = moment.replace(tzinfo=timezone.utc)
        record: Record = {
            key: value
            for key, value in copy.deepcopy(dict(document)).items()
            if key not in _IDENTITY_FIELDS
        }
        record.update(id=record_id or uuid4(), created_at=moment, updated_at=moment)
        if entity in VERSIONED_ENTITIES:
            record["version"] = 1
        self._records[entity][record["id"]] = record
        return copy.deepcopy(record)

    def _apply(
        self, entity: EntityType, record: Record, changes: Mapping[str, Any]
    ) -> Record:
        self._check_unique(entity, changes, exclude=record["id"])
        self._check_partial_unique(entity, {**record, **changes}, exclude=record["id"])
        record.update(
            {
                key: value
                for key, value in copy.deepcopy(dict(changes)).items()
                if key not in _IDENTITY_FIELDS
            }
        )
        record["updated_at"] = _now()
        if entity in VERSIONED_ENTITIES:
            record["version"] += 1
        return copy.deepcopy(record)

    @beartype
    async def update(
        self, entity: EntityType, record_id: UUID, changes: Mapping[str, Any]
    ) -> Record:
        record = self._records[entity].get(record_id)
        if record is None:
            raise EntityNotFoundError(entity.value, record_id)
        return self._apply(entity, record, changes)

    @beartype
    async def update_if(
        self,
        entity: EntityType,
        record_id: UUID,
        changes: Mapping[str, Any],
        expected: Mapping[str, Any],
    ) -> Record | None:
        record = self._records[entity].get(record_id)
        if record is None:
            raise EntityNotFoundError(entity.value, record_id)
        if any(get_path(record, name) != value for name, value in expected.items()):
            return None
        return self._apply(entity, record, changes)

    @beartype
    async def update_customer(
        self,
        customer_id: UUID,
        changes: Mapping[str, Any],
        expected_version: int,
    ) -> Record:
        record = self._records[EntityType.CUSTOMER].get(customer_id)
        if record is None:
            raise EntityNotFoundError(EntityType.CUSTOMER.value, customer_id)
        if record["version"] != expected_version:
            raise ConcurrentModificationError(
                EntityType.CUSTOMER.value, customer_id, expected_version
            )
        return self._apply(EntityType.CUSTOMER, record, changes)

    @beartype
    async def update_customer_segments(
        self,
        customer_id: UUID,
        new_set: Iterable[UUID],
        expected_version: int,
    ) -> Record:
        return await self.update_customer(
            customer_id, segment_document(new_set), expected_version
        )

    @beartype
    async def update_membership(
        self, segment_id: UUID, customer_id: UUID, op: MembershipOp
    ) -> bool:
        """Add or remove one member; returns False when nothing changed."""
        segment = self._records[EntityType.SEGMENT].get(segment_id)
        if segment is None:
            raise EntityNotFoundError(EntityType.SEGMENT.value, segment_id)
        members: list[str] = segment.setdefault("customer_ids", [])
        member = str(customer_id)
        if op is MembershipOp.ADD:
            if member in members:
                return False
            members.append(member)
        else:
            if member not in members:
                return False
            members.remove(member)
        segment["updated_at"] = _now()
        return True

    @beartype
    async def next_sequence_value(self, scope: str) -> int:
        async with self._lock:
            value = self._sequences.get(scope, 0) + 1
            self._sequences[scope] = value
            return value
