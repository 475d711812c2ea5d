"""Tests for dashboard report orchestration."""

from datetime import date
from unittest.mock import AsyncMock

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from fixtures.factories import utc
from policy_crm.core.cache import Cache
from policy_crm.core.errors import StoreError, StoreFailure, ValidationFailure
from policy_crm.models.entity import EntityType
from policy_crm.reporting.periods import Granularity
from policy_crm.schemas.report import DashboardSummary, ReportRequest, SummaryRequest
from policy_crm.services.cache_keys import CacheKeys
from policy_crm.services.report_service import ReportService, flatten_rows
from policy_crm.stores.memory import InMemoryStore

FIRST_WEEK = ReportRequest(start_date=date(2024, 1, 1), end_date=date(2024, 1, 5))


class TestTimeSeriesReports:
    async def test_revenue_zero_fills_quiet_days(
        self, store: InMemoryStore, seed_policy, seed_sale
    ) -> None:
        policy = await seed_policy(premium=100.0)
        await seed_sale(policy["id"], utc(2024, 1, 1))
        await seed_sale(policy["id"], utc(2024, 1, 5, 8))
        await seed_sale(policy["id"], utc(2024, 1, 5, 20))
        await seed_sale(policy["id"], utc(2024, 1, 6))

        rows = (await ReportService(store).revenue(FIRST_WEEK)).unwrap()

        assert flatten_rows(rows) == [
            {"label": "2024-01-01", "revenue": 100.0},
            {"label": "2024-01-02", "revenue": 0},
            {"label": "2024-01-03", "revenue": 0},
            {"label": "2024-01-04", "revenue": 0},
            {"label": "2024-01-05", "revenue": 200.0},
        ]

    async def test_weekly_revenue(self, store: InMemoryStore, seed_policy, seed_sale) -> None:
        policy = await seed_policy(premium=50.0)
        await seed_sale(policy["id"], utc(2024, 2, 26))
        await seed_sale(policy["id"], utc(2024, 3, 4))
        request = ReportRequest(
            start_date=date(2024, 2, 26),
            end_date=date(2024, 3, 4),
            granularity=Granularity.WEEK,
        )

        rows = (await ReportService(store).revenue(request)).unwrap()

        assert flatten_rows(rows) == [
            {"label": "2024-W09", "revenue": 50.0},
            {"label": "2024-W10", "revenue": 50.0},
        ]

    async def test_customer_acquisition(
        self, store: InMemoryStore, seed, seed_policy, seed_sale
    ) -> None:
        await seed(EntityType.CUSTOMER, {"email": "a@x.io"}, utc(2024, 1, 2))
        await seed(EntityType.CUSTOMER, {"email": "b@x.io"}, utc(2024, 1, 2))
        policy = await seed_policy()
        await seed_sale(policy["id"], utc(2024, 1, 3))

        rows = (await ReportService(store).customer_acquisition(FIRST_WEEK)).unwrap()

        assert rows[1].metrics == {"registered": 2, "policyBuyers": 0}
        assert rows[2].metrics == {"registered": 0, "policyBuyers": 1}

    async def test_claim_status_has_every_status(self, store: InMemoryStore, seed) -> None:
        await seed(EntityType.CLAIM, {"status": "Approved"}, utc(2024, 1, 4))
        await seed(EntityType.CLAIM, {"status": "Pending"}, utc(2024, 1, 4))
        await seed(EntityType.CLAIM, {"status": "Pending"}, utc(2024, 1, 4))

        rows = (await ReportService(store).claim_status(FIRST_WEEK)).unwrap()

        assert rows[0].metrics == {"Pending": 0, "Approved": 0, "Rejected": 0}
        assert rows[3].metrics == {"Pending": 2, "Approved": 1, "Rejected": 0}

    async def test_too_many_buckets_rejected_before_store_access(
        self, store: InMemoryStore
    ) -> None:
        store.aggregate = AsyncMock()

        result = await ReportService(store, max_buckets=3).revenue(FIRST_WEEK)

        assert isinstance(result.unwrap_err(), ValidationFailure)
        store.aggregate.assert_not_awaited()

    async def test_store_failure_fails_whole_report(self, store: InMemoryStore) -> None:
        store.aggregate = AsyncMock(side_effect=StoreError("aggregate customers: down"))

        result = await ReportService(store).customer_acquisition(FIRST_WEEK)

        error = result.unwrap_err()
        assert isinstance(error, StoreFailure)
        assert error.operation == "customer_acquisition"


class TestSnapshotReports:
    async def test_policy_distribution_lists_every_type(
        self, store: InMemoryStore, seed_policy, seed_sale
    ) -> None:
        travel = await seed_policy(name="Trip", policy_type="Travel")
        await seed_sale(travel["id"], utc(2024, 1, 1))
        await seed_sale(travel["id"], utc(2024, 1, 2))

        rows = (await ReportService(store).policy_distribution(SummaryRequest())).unwrap()

        assert [(row.policy_type.value, row.customer_count) for row in rows] == [
            ("Vehicle", 0),
            ("Travel", 2),
            ("Concierge", 0),
        ]

    async def test_summary_totals(
        self, store: InMemoryStore, seed, seed_policy, seed_sale
    ) -> None:
        await seed(EntityType.CUSTOMER, {"email": "a@x.io"}, utc(2024, 1, 1))
        policy = await seed_policy(premium=120.5)
        await seed_sale(policy["id"], utc(2024, 1, 1))
        await seed_sale(policy["id"], utc(2024, 1, 2), status="Cancelled")
        await seed(EntityType.CLAIM, {"status": "Pending"}, utc(2024, 1, 3))

        summary = (await ReportService(store).summary(SummaryRequest())).unwrap()

        assert summary == DashboardSummary(
            total_customers=1,
            total_active_policies=1,
            total_revenue=241.0,
            total_claims=1,
        )

    async def test_summary_window(self, store: InMemoryStore, seed) -> None:
        await seed(EntityType.CUSTOMER, {"email": "a@x.io"}, utc(2023, 12, 31))
        await seed(EntityType.CUSTOMER, {"email": "b@x.io"}, utc(2024, 1, 1))

        summary = (
            await ReportService(store).summary(SummaryRequest(start_date=date(2024, 1, 1)))
        ).unwrap()

        assert summary.total_customers == 1


class TestReportCache:
    async def test_report_served_from_cache(
        self, store: InMemoryStore, report_cache: Cache, seed_policy, seed_sale
    ) -> None:
        policy = await seed_policy(premium=10.0)
        await seed_sale(policy["id"], utc(2024, 1, 2))
        service = ReportService(store, report_cache, cache_ttl=30)

        first = (await service.revenue(FIRST_WEEK)).unwrap()
        await seed_sale(policy["id"], utc(2024, 1, 2, 18))
        second = (await service.revenue(FIRST_WEEK)).unwrap()

        assert flatten_rows(first) == flatten_rows(second)
        key = CacheKeys.report("revenue", date(2024, 1, 1), date(2024, 1, 5), Granularity.DAY)
        assert await report_cache.get(key) == flatten_rows(first)

    async def test_summary_cached(self, store: InMemoryStore, report_cache: Cache) -> None:
        service = ReportService(store, report_cache)

        first = (await service.summary(SummaryRequest())).unwrap()
        await store.insert(EntityType.CUSTOMER, {"email": "late@x.io"})
        second = (await service.summary(SummaryRequest())).unwrap()

        assert first == second

    async def test_cache_outage_falls_back_to_store(
        self, store: InMemoryStore, seed_policy, seed_sale
    ) -> None:
        broken = Cache(AsyncMock())
        broken.get = AsyncMock(side_effect=RedisConnectionError("down"))
        broken.set = AsyncMock(side_effect=RedisConnectionError("down"))
        policy = await seed_policy(premium=10.0)
        await seed_sale(policy["id"], utc(2024, 1, 1))

        rows = (await ReportService(store, broken).revenue(FIRST_WEEK)).unwrap()

        assert rows[0].metrics == {"revenue": 10.0}


@pytest.mark.parametrize(
    ("granularity", "expected"),
    [
        (Granularity.DAY, "report:revenue:2024-01-01:2024-01-05:day"),
        (None, "report:revenue:2024-01-01:2024-01-05"),
    ],
)
def test_cache_keys(granularity: Granularity | None, expected: str) -> None:
    assert CacheKeys.report("revenue", date(2024, 1, 1), date(2024, 1, 5), granularity) == expected
