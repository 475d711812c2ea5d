# PolicyCore - Policy Decision Management System
# Copyright (C) 2025 Luiz Frias <luizf35@gmail.com>
# Form F[x] Labs
#
# This software is dual-licensed under AGPL-3.0 and Commercial License.
# For commercial licensing, contact: luizf35@gmail.com
# See LICENSE file for full terms.

"""PostgreSQL record store over the shared asyncpg pool."""

import json
from collections.abc import AsyncIterator, Iterable, Mapping
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID, uuid4

import asyncpg
from beartype import beartype

from ..core.database import Database
from ..core.errors import (
    ConcurrentModificationError,
    DuplicateValueError,
    EntityNotFoundError,
    StoreError,
)
from ..core.logging_utils import get_logger
from ..filters.predicate import MATCH_ALL, FilterPredicate
from ..models.entity import EntityType
from ..reporting.periods import TimeRange
from ..reporting.pipeline import TOTAL_KEY, Accumulator, Pipeline, SparseSeries
from .base import (
    DEFAULT_SORT,
    VERSIONED_ENTITIES,
    MembershipOp,
    Record,
    SortSpec,
    segment_document,
)
from .sql import BASE_ALIAS, FieldRef, compile_count, compile_pipeline, compile_select

logger = get_logger(__name__)

# Unique index name -> document field, see the initial alembic migration.
UNIQUE_INDEXES: dict[str, str] = {
    "customers_email_key": "email",
    "customers_phone_key": "phone",
    "segments_name_key": "name",
    "policies_name_key": "name",
    "claims_pending_customer_policy_key": "customer_policy_id",
}

_IDENTITY_FIELDS = frozenset({"id", "created_at", "updated_at", "version"})


def _document(values: Mapping[str, Any]) -> dict[str, Any]:
    return {key: value for key, value in values.items() if key not in _IDENTITY_FIELDS}


def row_to_record(row: Any) -> Record:
    """Flatten an ``(id, data, created_at, updated_at[, version])`` row."""
    row = dict(row)
    data = row.get("data") or {}
    if isinstance(data, str):
        data = json.loads(data)
    record: Record = {**data}
    record["id"] = row["id"]
    record["created_at"] = row["created_at"]
    record["updated_at"] = row["updated_at"]
    if row.get("version") is not None:
        record["version"] = row["version"]
    return record


def _text_param(value: Any) -> str:
    return str(value.value if isinstance(value, Enum) else value)


def _number(value: Any) -> int | float:
    if isinstance(value, Decimal):
        return int(value) if value == value.to_integral_value() else float(value)
    return value


class PostgresStore:
    """JSONB-document implementation of :class:`~policy_crm.stores.base.RecordStore`."""

    def __init__(self, db: Database) -> None:
        self._db = db

    @asynccontextmanager
    async def _translated(self, operation: str) -> AsyncIterator[None]:
        """Re-raise driver failures as store errors."""
        try:
            yield
        except StoreError:
            raise
        except asyncpg.UniqueViolationError as exc:
            field_name = UNIQUE_INDEXES.get(exc.constraint_name or "", "value")
            table = (exc.table_name or operation).strip()
            raise DuplicateValueError(table, field_name, None) from exc
        except (asyncpg.PostgresError, asyncpg.InterfaceError, OSError) as exc:
            logger.error("Store operation %s failed: %s", operation, exc)
            raise StoreError(f"{operation}: {exc}") from exc

    # Read side

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
        compiled = compile_select(entity, time_range, predicate, sort, limit, offset)
        async with self._translated(f"query {entity.value}"):
            rows = await self._db.fetch(compiled.sql, *compiled.params)
        return [row_to_record(row) for row in rows]

    @beartype
    async def count(
        self,
        entity: EntityType,
        time_range: TimeRange | None = None,
        predicate: FilterPredicate = MATCH_ALL,
    ) -> int:
        compiled = compile_count(entity, time_range, predicate)
        async with self._translated(f"count {entity.value}"):
            value = await self._db.fetchval(compiled.sql, *compiled.params)
        return int(value or 0)

    @beartype
    async def aggregate(self, entity: EntityType, pipeline: Pipeline) -> SparseSeries:
        compiled = compile_pipeline(entity, pipeline)
        async with self._translated(f"aggregate {entity.value}"):
            rows = await self._db.fetch(compiled.sql, *compiled.params)

        group = pipeline.group_stage
        as_count = group is not None and group.accumulator is Accumulator.COUNT
        result: SparseSeries = {}
        for row in rows:
            value = int(row["value"]) if as_count else float(_number(row["value"]))
            if compiled.has_label and compiled.has_discriminant:
                result[(row["label"], row["discriminant"])] = value
            elif compiled.has_label:
                result[row["label"]] = value
            elif compiled.has_discriminant:
                result[row["discriminant"]] = value
            else:
                result[TOTAL_KEY] = value
        return result

    # Entity side

    @beartype
    async def get(self, entity: EntityType, record_id: UUID) -> Record | None:
        async with self._translated(f"get {entity.value}"):
            row = await self._db.fetchrow(
                f"SELECT * FROM {entity.value} WHERE id = $1", record_id
            )
        return row_to_record(row) if row else None

    @beartype
    async def get_many(
        self, entity: EntityType, record_ids: Iterable[UUID]
    ) -> list[Record]:
        ids = list(dict.fromkeys(record_ids))
        if not ids:
            return []
        async with self._translated(f"get_many {entity.value}"):
            rows = await self._db.fetch(
                f"SELECT * FROM {entity.value} WHERE id = ANY($1::uuid[])", ids
            )
        by_id = {row["id"]: row_to_record(row) for row in rows}
        return [by_id[record_id] for record_id in ids if record_id in by_id]

    @beartype
    async def find_by_field(
        self, entity: EntityType, field_name: str, value: Any
    ) -> Record | None:
        async with self._translated(f"find {entity.value}"):
            row = await self._db.fetchrow(
                f"SELECT * FROM {entity.value} t "
                f"WHERE {FieldRef().text(field_name)} = $1 LIMIT 1",
                str(value),
            )
        return row_to_record(row) if row else None

    @beartype
    async def insert(
        self,
        entity: EntityType,
        document: Mapping[str, Any],
        *,
        record_id: UUID | None = None,
        created_at: datetime | None = None,
    ) -> Record:
        moment = created_at or datetime.now(timezone.utc)
        if moment.tzinfo is None:
            moment = moment.replace(tzinfo=timezone.utc)
        async with self._translated(f"insert {entity.value}"):
            row = await self._db.fetchrow(
                f"""
                INSERT INTO {entity.value} (id, data, created_at, updated_at)
                VALUES ($1, $2, $3, $3)
                RETURNING *
                """,
                record_id or uuid4(),
                _document(document),
                moment,
            )
        return row_to_record(row)

    @beartype
    async def update(
        self, entity: EntityType, record_id: UUID, changes: Mapping[str, Any]
    ) -> Record:
        version_clause = ", version = version + 1" if entity in VERSIONED_ENTITIES else ""
        async with self._translated(f"update {entity.value}"):
            row = await self._db.fetchrow(
                f"""
                UPDATE {entity.value}
                SET data = data || $2::jsonb, updated_at = now(){version_clause}
                WHERE id = $1
                RETURNING *
                """,
                record_id,
                _document(changes),
            )
        if row is None:
            raise EntityNotFoundError(entity.value, record_id)
        return row_to_record(row)

    @beartype
    async def update_if(
        self,
        entity: EntityType,
        record_id: UUID,
        changes: Mapping[str, Any],
        expected: Mapping[str, Any],
    ) -> Record | None:
        ref = FieldRef()
        guards = "".join(
            f" AND {ref.text(name)} = ${position}"
            for position, name in enumerate(expected, start=3)
        )
        version_clause = (
            f", version = {BASE_ALIAS}.version + 1"
            if entity in VERSIONED_ENTITIES
            else ""
        )
        async with self._translated(f"update {entity.value}"):
            row = await self._db.fetchrow(
                f"""
                UPDATE {entity.value} {BASE_ALIAS}
                SET data = {BASE_ALIAS}.data || $2::jsonb,
                    updated_at = now(){version_clause}
                WHERE {BASE_ALIAS}.id = $1{guards}
                RETURNING {BASE_ALIAS}.*
                """,
                record_id,
                _document(changes),
                *(_text_param(value) for value in expected.values()),
            )
            if row is None:
                exists = await self._db.fetchval(
                    f"SELECT EXISTS(SELECT 1 FROM {entity.value} WHERE id = $1)",
                    record_id,
                )
        if row is None:
            if not exists:
                raise EntityNotFoundError(entity.value, record_id)
            return None
        return row_to_record(row)

    @beartype
    async def update_customer(
        self,
        customer_id: UUID,
        changes: Mapping[str, Any],
        expected_version: int,
    ) -> Record:
        async with self._translated("update customers"):
            row = await self._db.fetchrow(
                """
                UPDATE customers
                SET data = data || $3::jsonb,
                    version = version + 1,
                    updated_at = now()
                WHERE id = $1 AND version = $2
                RETURNING *
                """,
                customer_id,
                expected_version,
                _document(changes),
            )
            if row is None:
                exists = await self._db.fetchval(
                    "SELECT EXISTS(SELECT 1 FROM customers WHERE id = $1)", customer_id
                )
        if row is None:
            if exists:
                raise ConcurrentModificationError(
                    EntityType.CUSTOMER.value, customer_id, expected_version
                )
            raise EntityNotFoundError(EntityType.CUSTOMER.value, customer_id)
        return row_to_record(row)

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
        """Idempotent single-member change; returns False when nothing changed."""
        if op is MembershipOp.ADD:
            query = """
                UPDATE segments
                SET data = jsonb_set(
                        data,
                        '{customer_ids}',
                        COALESCE(data->'customer_ids', '[]'::jsonb) || to_jsonb($2::text)
                    ),
                    updated_at = now()
                WHERE id = $1
                  AND NOT COALESCE(data->'customer_ids', '[]'::jsonb) ? $2::text
            """
        else:
            query = """
                UPDATE segments
                SET data = jsonb_set(
                        data,
                        '{customer_ids}',
                        COALESCE(data->'customer_ids', '[]'::jsonb) - $2::text
                    ),
                    updated_at = now()
                WHERE id = $1
                  AND COALESCE(data->'customer_ids', '[]'::jsonb) ? $2::text
            """
        async with self._translated(f"{op.value} segment member"):
            status = await self._db.execute(query, segment_id, str(customer_id))
            if status.endswith(" 0"):
                exists = await self._db.fetchval(
                    "SELECT EXISTS(SELECT 1 FROM segments WHERE id = $1)", segment_id
                )
                if not exists:
                    raise EntityNotFoundError(EntityType.SEGMENT.value, segment_id)
                return False
        return True

    @beartype
    async def next_sequence_value(self, scope: str) -> int:
        """Atomically increment and read the counter for ``scope``."""
        async with self._translated("next_sequence_value"):
            value = await self._db.fetchval(
                """
                INSERT INTO policy_number_sequences (scope, last_number)
                VALUES ($1, 1)
                ON CONFLICT (scope) DO UPDATE
                SET last_number = policy_number_sequences.last_number + 1
                RETURNING last_number
                """,
                scope,
            )
        return int(value)
