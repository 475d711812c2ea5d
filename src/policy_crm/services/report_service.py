# PolicyCore - Policy Decision Management System
# Copyright (C) 2025 Luiz Frias <luizf35@gmail.com>
# Form F[x] Labs
#
# This software is dual-licensed under AGPL-3.0 and Commercial License.
# For commercial licensing, contact: luizf35@gmail.com
# See LICENSE file for full terms.

"""Dashboard report orchestration.

Each time-series report runs grid → aggregate → merge: the bucket grid is
built first (rejecting bad ranges before any store access), independent
metric aggregations run concurrently, and the merger lays them over the
grid. A failure of any aggregation fails the whole report.
"""

import asyncio
from collections.abc import Sequence
from typing import Any

from beartype import beartype
from redis.exceptions import RedisError

from ..core.cache import Cache
from ..core.errors import ServiceError, StoreError, StoreFailure, ValidationFailure
from ..core.logging_utils import get_logger
from ..core.result_types import Err, Ok, Result
from ..filters.builder import FilterBuilder
from ..models.claim import ClaimStatus
from ..models.entity import EntityType
from ..models.policy import PolicyStatus, PolicyType
from ..reporting.aggregator import MetricAggregator, MetricSpec
from ..reporting.merger import MetricSeries, ReportRow, merge_series, zero_fill_categories
from ..reporting.periods import PeriodRangeError, TimeRange, generate_buckets
from ..reporting.pipeline import Accumulator, LookupStage
from ..schemas.report import (
    DashboardSummary,
    PolicyDistributionRow,
    ReportRequest,
    SummaryRequest,
)
from ..stores.base import RecordSource
from .cache_keys import CacheKeys
from .performance_monitor import performance_monitor

logger = get_logger(__name__)

POLICY_LOOKUP = LookupStage(
    entity=EntityType.POLICY, local_field="policy_id", as_field="policy"
)

REVENUE = MetricSpec(
    name="revenue",
    entity=EntityType.CUSTOMER_POLICY,
    accumulator=Accumulator.SUM,
    value_field="policy.premium",
    lookups=(POLICY_LOOKUP,),
)
REGISTERED = MetricSpec(name="registered", entity=EntityType.CUSTOMER)
POLICY_BUYERS = MetricSpec(name="policyBuyers", entity=EntityType.CUSTOMER_POLICY)
CLAIMS_BY_STATUS = MetricSpec(
    name="claims", entity=EntityType.CLAIM, discriminant="status"
)
CLAIMS = MetricSpec(name="claims", entity=EntityType.CLAIM)
ACTIVE_POLICIES = MetricSpec(
    name="activePolicies",
    entity=EntityType.CUSTOMER_POLICY,
    predicate=FilterBuilder().add_equals("status", PolicyStatus.ACTIVE.value).build(),
)
POLICIES_BY_TYPE = MetricSpec(
    name="customerCount",
    entity=EntityType.CUSTOMER_POLICY,
    discriminant="policy.type",
    lookups=(POLICY_LOOKUP,),
)

CLAIM_STATUSES = tuple(status.value for status in ClaimStatus)
POLICY_TYPES = tuple(policy_type.value for policy_type in PolicyType)


class ReportService:
    """Builds dashboard reports from a record source."""

    def __init__(
        self,
        source: RecordSource,
        cache: Cache | None = None,
        *,
        max_buckets: int | None = None,
        cache_ttl: int = 60,
    ) -> None:
        self._aggregator = MetricAggregator(source)
        self._cache = cache
        self._max_buckets = max_buckets
        self._cache_ttl = cache_ttl

    async def _cached(self, key: str) -> Any | None:
        if self._cache is None or not self._cache.is_connected:
            return None
        try:
            return await self._cache.get(key)
        except RedisError as exc:
            logger.warning("Report cache read failed for %s: %s", key, exc)
            return None

    async def _store_cached(self, key: str, value: Any) -> None:
        if self._cache is None or not self._cache.is_connected:
            return
        try:
            await self._cache.set(key, value, self._cache_ttl)
        except RedisError as exc:
            logger.warning("Report cache write failed for %s: %s", key, exc)

    async def _time_series(
        self,
        name: str,
        request: ReportRequest,
        metrics: Sequence[tuple[MetricSpec, tuple[str, ...]]],
    ) -> Result[list[ReportRow], ServiceError]:
        try:
            buckets = generate_buckets(
                request.start_date,
                request.end_date,
                request.granularity,
                max_buckets=self._max_buckets,
            )
        except PeriodRangeError as exc:
            return Err(ValidationFailure([str(exc)]))

        key = CacheKeys.report(
            name, request.start_date, request.end_date, request.granularity
        )
        cached = await self._cached(key)
        if isinstance(cached, list):
            return Ok(
                [
                    ReportRow(
                        label=row["label"],
                        metrics={k: v for k, v in row.items() if k != "label"},
                    )
                    for row in cached
                ]
            )

        time_range = TimeRange(request.start_date, request.end_date)
        try:
            sparse = await asyncio.gather(
                *(
                    self._aggregator.time_series(spec, time_range, request.granularity)
                    for spec, _ in metrics
                )
            )
        except StoreError as exc:
            return Err(StoreFailure(name, str(exc)))

        series = [
            MetricSeries(name=spec.name, values=values, categories=categories)
            for (spec, categories), values in zip(metrics, sparse)
        ]
        rows = merge_series(buckets, series)
        await self._store_cached(key, [row.to_flat() for row in rows])
        return Ok(rows)

    @beartype
    @performance_monitor("revenue_report")
    async def revenue(
        self, request: ReportRequest
    ) -> Result[list[ReportRow], ServiceError]:
        """Premium of policies sold per bucket: ``{label, revenue}``."""
        return await self._time_series("revenue", request, [(REVENUE, ())])

    @beartype
    @performance_monitor("customer_acquisition_report")
    async def customer_acquisition(
        self, request: ReportRequest
    ) -> Result[list[ReportRow], ServiceError]:
        """Registrations and purchases per bucket: ``{label, registered, policyBuyers}``."""
        return await self._time_series(
            "customer_acquisition",
            request,
            [(REGISTERED, ()), (POLICY_BUYERS, ())],
        )

    @beartype
    @performance_monitor("claim_status_report")
    async def claim_status(
        self, request: ReportRequest
    ) -> Result[list[ReportRow], ServiceError]:
        """Claims per status per bucket; every status in every row."""
        return await self._time_series(
            "claim_status", request, [(CLAIMS_BY_STATUS, CLAIM_STATUSES)]
        )

    @beartype
    @performance_monitor("policy_distribution_report")
    async def policy_distribution(
        self, request: SummaryRequest
    ) -> Result[list[PolicyDistributionRow], ServiceError]:
        """Customer policies per policy type; every type present."""
        time_range = TimeRange(request.start_date, request.end_date)
        try:
            counts = await self._aggregator.categories(POLICIES_BY_TYPE, time_range)
        except StoreError as exc:
            return Err(StoreFailure("policy_distribution", str(exc)))
        return Ok(
            [
                PolicyDistributionRow(policy_type=policy_type, customer_count=int(count))
                for policy_type, count in zero_fill_categories(POLICY_TYPES, counts)
            ]
        )

    @beartype
    @performance_monitor("dashboard_summary")
    async def summary(
        self, request: SummaryRequest
    ) -> Result[DashboardSummary, ServiceError]:
        """Headline totals, optionally bounded by creation date."""
        key = CacheKeys.report("summary", request.start_date, request.end_date)
        cached = await self._cached(key)
        if isinstance(cached, dict):
            return Ok(DashboardSummary.model_validate(cached))

        time_range = TimeRange(request.start_date, request.end_date)
        try:
            customers, active, revenue, claims = await asyncio.gather(
                self._aggregator.total(REGISTERED, time_range),
                self._aggregator.total(ACTIVE_POLICIES, time_range),
                self._aggregator.total(REVENUE, time_range),
                self._aggregator.total(CLAIMS, time_range),
            )
        except StoreError as exc:
            return Err(StoreFailure("summary", str(exc)))

        summary = DashboardSummary(
            total_customers=int(customers),
            total_active_policies=int(active),
            total_revenue=float(revenue),
            total_claims=int(claims),
        )
        await self._store_cached(key, summary.model_dump(mode="json"))
        return Ok(summary)


@beartype
def flatten_rows(rows: Sequence[ReportRow]) -> list[dict[str, Any]]:
    """Rows as ``{label, <metric>: value}`` dicts."""
    return [row.to_flat() for row in rows]
