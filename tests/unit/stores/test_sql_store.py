"""Tests for SQL compilation and the PostgreSQL store over a mocked pool."""

from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Any
from unittest.mock import MagicMock
from uuid import uuid4

import asyncpg
import pytest

from policy_crm.core.errors import (
    ConcurrentModificationError,
    DuplicateValueError,
    EntityNotFoundError,
    StoreError,
)
from policy_crm.filters.builder import FilterBuilder
from policy_crm.filters.predicate import MATCH_ALL
from policy_crm.models.entity import EntityType
from policy_crm.reporting.periods import Granularity, TimeRange
from policy_crm.reporting.pipeline import TOTAL_KEY, Accumulator, Pipeline
from policy_crm.stores.base import DEFAULT_SORT, MembershipOp, SortSpec
from policy_crm.stores.postgres import PostgresStore, row_to_record
from policy_crm.stores.sql import (
    FieldRef,
    SqlParams,
    compile_count,
    compile_pipeline,
    compile_select,
    escape_like,
    predicate_sql,
)

REVENUE_PIPELINE = (
    Pipeline()
    .match(TimeRange(date(2024, 1, 1), date(2024, 1, 31)))
    .lookup(EntityType.POLICY, local_field="policy_id", as_field="policy")
    .project(Granularity.WEEK)
    .group(Accumulator.SUM, "policy.premium")
)


class TestFieldRef:
    def test_document_and_column_paths(self) -> None:
        ref = FieldRef()

        assert ref.text("name") == "t.data->>'name'"
        assert ref.text("location.city") == "t.data->'location'->>'city'"
        assert ref.text("id") == "t.id::text"
        assert ref.timestamp("created_at") == "t.created_at"
        assert ref.json("tags") == "t.data->'tags'"
        assert ref.numeric("age") == "(t.data->>'age')::numeric"

    def test_lookup_alias(self) -> None:
        ref = FieldRef(aliases={"policy": "l0"})

        assert ref.text("policy.id") == "l0.id::text"
        assert ref.numeric("policy.premium") == "(l0.data->>'premium')::numeric"

    def test_rejects_unsafe_identifiers(self) -> None:
        with pytest.raises(ValueError, match="invalid field name"):
            FieldRef().text("name'; DROP TABLE customers; --")


class TestPredicateSql:
    def test_empty_predicate_is_true(self) -> None:
        assert predicate_sql(MATCH_ALL, SqlParams()) == "TRUE"

    def test_conditions_bind_parameters(self) -> None:
        params = SqlParams()
        predicate = (
            FilterBuilder()
            .add_search("50%_off", ("name",))
            .add_range("age", 18, 65)
            .add_membership("tags", ["VIP"], None, array_field=True)
            .add_membership("status", ["Active"], None)
            .add_range("policy_ids", 1, measure="length")
            .build()
        )

        sql = predicate_sql(predicate, params)

        assert "t.data->>'name' ILIKE $1" in sql
        assert "(t.data->>'age')::numeric >= $2 AND (t.data->>'age')::numeric <= $3" in sql
        assert "COALESCE(t.data->'tags', '[]'::jsonb) ?| $4::text[]" in sql
        assert "t.data->>'status' = ANY($5::text[])" in sql
        assert "jsonb_array_length(COALESCE(t.data->'policy_ids', '[]'::jsonb)) >= $6" in sql
        assert params.values == ["%50\\%\\_off%", 18, 65, ["VIP"], ["Active"], 1]

    def test_escape_like(self) -> None:
        assert escape_like("a\\b%c_d") == "a\\\\b\\%c\\_d"


class TestCompile:
    def test_select_orders_with_nulls_last(self) -> None:
        compiled = compile_select(
            EntityType.CUSTOMER,
            None,
            MATCH_ALL,
            SortSpec(field="name", descending=False),
            limit=10,
            offset=20,
        )

        assert compiled.sql.startswith("SELECT t.* FROM customers t WHERE TRUE AND TRUE")
        assert "ORDER BY lower(t.data->>'name') ASC NULLS LAST, t.id ASC" in compiled.sql
        assert compiled.sql.endswith("LIMIT $1 OFFSET $2")
        assert compiled.params == [10, 20]

    def test_select_numeric_sort(self) -> None:
        compiled = compile_select(
            EntityType.CUSTOMER, None, MATCH_ALL, SortSpec(field="age"), None, 0
        )

        assert "ORDER BY (t.data->>'age')::numeric DESC NULLS LAST" in compiled.sql

    def test_count_with_time_range(self) -> None:
        compiled = compile_count(
            EntityType.CLAIM, TimeRange(date(2024, 1, 1), date(2024, 1, 1)), MATCH_ALL
        )

        assert "t.created_at >= $1 AND t.created_at < $2" in compiled.sql
        assert compiled.params == [
            datetime(2024, 1, 1, tzinfo=timezone.utc),
            datetime(2024, 1, 2, tzinfo=timezone.utc),
        ]

    def test_pipeline_with_lookup_and_week_label(self) -> None:
        compiled = compile_pipeline(EntityType.CUSTOMER_POLICY, REVENUE_PIPELINE)

        assert "JOIN policies l0 ON l0.id::text = t.data->>'policy_id'" in compiled.sql
        assert (
            "to_char((t.created_at) AT TIME ZONE 'UTC', 'IYYY-\"W\"IW') AS label"
            in compiled.sql
        )
        assert "COALESCE(SUM((l0.data->>'premium')::numeric), 0) AS value" in compiled.sql
        assert "GROUP BY 1" in compiled.sql
        assert compiled.has_label and not compiled.has_discriminant

    def test_pipeline_total_has_no_group_by(self) -> None:
        compiled = compile_pipeline(EntityType.CUSTOMER, Pipeline().match().group())

        assert "GROUP BY" not in compiled.sql
        assert compiled.sql.startswith("SELECT COUNT(*) AS value FROM customers t")


class TestRowToRecord:
    def test_flattens_row(self) -> None:
        record_id = uuid4()
        moment = datetime(2024, 1, 1, tzinfo=timezone.utc)

        record = row_to_record(
            {
                "id": record_id,
                "data": '{"name": "VIP", "id": "spoofed"}',
                "created_at": moment,
                "updated_at": moment,
                "version": None,
            }
        )

        assert record == {
            "name": "VIP",
            "id": record_id,
            "created_at": moment,
            "updated_at": moment,
        }


def _row(**data: Any) -> dict[str, Any]:
    moment = datetime(2024, 1, 1, tzinfo=timezone.utc)
    return {
        "id": uuid4(),
        "data": data,
        "created_at": moment,
        "updated_at": moment,
        "version": 1,
    }


class TestPostgresStore:
    async def test_query_passes_compiled_sql(self, mock_db: MagicMock) -> None:
        mock_db.fetch.return_value = [_row(name="Ann")]
        store = PostgresStore(mock_db)

        records = await store.query(EntityType.CUSTOMER, sort=DEFAULT_SORT, limit=5)

        sql, *params = mock_db.fetch.await_args.args
        assert sql.startswith("SELECT t.* FROM customers t")
        assert params == [5]
        assert records[0]["name"] == "Ann"

    async def test_aggregate_converts_decimals(self, mock_db: MagicMock) -> None:
        mock_db.fetch.return_value = [
            {"label": "2024-W01", "value": Decimal("150.50")},
            {"label": "2024-W02", "value": Decimal("20")},
        ]

        result = await PostgresStore(mock_db).aggregate(
            EntityType.CUSTOMER_POLICY, REVENUE_PIPELINE
        )

        assert result == {"2024-W01": 150.5, "2024-W02": 20.0}

    async def test_aggregate_keys(self, mock_db: MagicMock) -> None:
        store = PostgresStore(mock_db)
        mock_db.fetch.return_value = [
            {"label": "2024-01-01", "discriminant": "Pending", "value": 2}
        ]
        by_status = Pipeline().match().project(
            Granularity.DAY, discriminant="status"
        ).group()
        assert await store.aggregate(EntityType.CLAIM, by_status) == {
            ("2024-01-01", "Pending"): 2
        }

        mock_db.fetch.return_value = [{"value": 7}]
        assert await store.aggregate(EntityType.CLAIM, Pipeline().group()) == {
            TOTAL_KEY: 7
        }

    async def test_update_customer_distinguishes_stale_from_missing(
        self, mock_db: MagicMock
    ) -> None:
        store = PostgresStore(mock_db)
        mock_db.fetchrow.return_value = None

        mock_db.fetchval.return_value = True
        with pytest.raises(ConcurrentModificationError):
            await store.update_customer(uuid4(), {"name": "x"}, 3)

        mock_db.fetchval.return_value = False
        with pytest.raises(EntityNotFoundError):
            await store.update_customer(uuid4(), {"name": "x"}, 3)

    async def test_update_customer_strips_identity_fields(self, mock_db: MagicMock) -> None:
        mock_db.fetchrow.return_value = _row(name="New")
        customer_id = uuid4()

        await PostgresStore(mock_db).update_customer(
            customer_id, {"name": "New", "version": 99}, 1
        )

        _, *params = mock_db.fetchrow.await_args.args
        assert params == [customer_id, 1, {"name": "New"}]

    async def test_update_membership(self, mock_db: MagicMock) -> None:
        store = PostgresStore(mock_db)
        segment_id, customer_id = uuid4(), uuid4()

        assert await store.update_membership(segment_id, customer_id, MembershipOp.ADD)

        mock_db.execute.return_value = "UPDATE 0"
        mock_db.fetchval.return_value = True
        assert not await store.update_membership(
            segment_id, customer_id, MembershipOp.REMOVE
        )

        mock_db.fetchval.return_value = False
        with pytest.raises(EntityNotFoundError):
            await store.update_membership(segment_id, customer_id, MembershipOp.ADD)

    async def test_get_many_preserves_order(self, mock_db: MagicMock) -> None:
        first, second = _row(name="A"), _row(name="B")
        mock_db.fetch.return_value = [first, second]

        found = await PostgresStore(mock_db).get_many(
            EntityType.SEGMENT, [second["id"], first["id"]]
        )

        assert [record["name"] for record in found] == ["B", "A"]

    async def test_get_many_of_nothing_skips_query(self, mock_db: MagicMock) -> None:
        assert await PostgresStore(mock_db).get_many(EntityType.SEGMENT, []) == []
        mock_db.fetch.assert_not_awaited()

    async def test_next_sequence_value(self, mock_db: MagicMock) -> None:
        mock_db.fetchval.return_value = 4

        assert await PostgresStore(mock_db).next_sequence_value("POL-2024") == 4
        assert "policy_number_sequences" in mock_db.fetchval.await_args.args[0]

    async def test_driver_failures_become_store_errors(self, mock_db: MagicMock) -> None:
        mock_db.fetch.side_effect = OSError("connection refused")

        with pytest.raises(StoreError, match="connection refused"):
            await PostgresStore(mock_db).query(EntityType.CUSTOMER)

    async def test_update_if_guards_on_expected_fields(self, mock_db: MagicMock) -> None:
        mock_db.fetchrow.return_value = _row(status="Approved")
        claim_id = uuid4()

        record = await PostgresStore(mock_db).update_if(
            EntityType.CLAIM, claim_id, {"status": "Approved"}, {"status": "Pending"}
        )

        sql, *params = mock_db.fetchrow.await_args.args
        assert "UPDATE claims t" in sql
        assert "WHERE t.id = $1 AND t.data->>'status' = $3" in sql
        assert "version" not in sql
        assert params == [claim_id, {"status": "Approved"}, "Pending"]
        assert record["status"] == "Approved"

    async def test_update_if_distinguishes_mismatch_from_missing(
        self, mock_db: MagicMock
    ) -> None:
        store = PostgresStore(mock_db)
        mock_db.fetchrow.return_value = None

        mock_db.fetchval.return_value = True
        assert (
            await store.update_if(
                EntityType.CLAIM, uuid4(), {"status": "Rejected"}, {"status": "Pending"}
            )
            is None
        )

        mock_db.fetchval.return_value = False
        with pytest.raises(EntityNotFoundError):
            await store.update_if(
                EntityType.CLAIM, uuid4(), {"status": "Rejected"}, {"status": "Pending"}
            )

    async def test_pending_claim_index_violation_names_field(
        self, mock_db: MagicMock
    ) -> None:
        violation = asyncpg.UniqueViolationError("duplicate key value")
        violation.constraint_name = "claims_pending_customer_policy_key"
        violation.table_name = "claims"
        mock_db.fetchrow.side_effect = violation

        with pytest.raises(DuplicateValueError) as excinfo:
            await PostgresStore(mock_db).insert(
                EntityType.CLAIM, {"customer_policy_id": "abc", "status": "Pending"}
            )

        assert excinfo.value.field_name == "customer_policy_id"
