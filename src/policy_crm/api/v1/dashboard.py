# PolicyCore - Policy Decision Management System
# Copyright (C) 2025 Luiz Frias <luizf35@gmail.com>
# Form F[x] Labs
#
# This software is dual-licensed under AGPL-3.0 and Commercial License.
# For commercial licensing, contact: luizf35@gmail.com
# See LICENSE file for full terms.

"""Dashboard report endpoints.

Time-series reports take ``startDate`` and ``endDate`` (inclusive, UTC) and
an optional ``granularity`` (``day``, ``week``, ``month`` or ``year``; the
legacy ``type`` parameter is accepted as an alias) and return one row per
bucket, zero-filled.
"""

from datetime import date
from typing import Any, Union

from beartype import beartype
from fastapi import APIRouter, Depends, Query, Response
from pydantic import ValidationError

from ...reporting.periods import Granularity
from ...schemas.common import ErrorResponse
from ...schemas.report import (
    DashboardSummary,
    PolicyDistributionRow,
    ReportRequest,
    SummaryRequest,
)
from ...services.report_service import ReportService, flatten_rows
from ..dependencies import get_report_service
from ..response_patterns import handle_result, validation_error

router = APIRouter()


def _violations(exc: ValidationError) -> list[str]:
    return [error["msg"] for error in exc.errors()]


def _report_request(
    start_date: date, end_date: date, granularity: Granularity | None
) -> ReportRequest:
    return ReportRequest(
        start_date=start_date,
        end_date=end_date,
        granularity=granularity or Granularity.DAY,
    )


class ReportQuery:
    """Query parameters shared by the time-series reports."""

    def __init__(
        self,
        start_date: date = Query(..., alias="startDate"),
        end_date: date = Query(..., alias="endDate"),
        granularity: Granularity | None = Query(None),
        legacy_type: Granularity | None = Query(None, alias="type"),
    ) -> None:
        self.start_date = start_date
        self.end_date = end_date
        self.granularity = granularity or legacy_type


class SummaryQuery:
    def __init__(
        self,
        start_date: date | None = Query(None, alias="startDate"),
        end_date: date | None = Query(None, alias="endDate"),
    ) -> None:
        self.start_date = start_date
        self.end_date = end_date


async def _time_series(
    name: str, query: ReportQuery, response: Response, service: ReportService
) -> Union[list[dict[str, Any]], ErrorResponse]:
    try:
        request = _report_request(query.start_date, query.end_date, query.granularity)
    except ValidationError as exc:
        return validation_error(response, _violations(exc))
    result = await getattr(service, name)(request)
    return handle_result(result.map(flatten_rows), response)


@router.get("/summary")
@beartype
async def dashboard_summary(
    response: Response,
    query: SummaryQuery = Depends(),
    service: ReportService = Depends(get_report_service),
) -> Union[DashboardSummary, ErrorResponse]:
    """Totals of customers, active policies, revenue and claims."""
    try:
        request = SummaryRequest(start_date=query.start_date, end_date=query.end_date)
    except ValidationError as exc:
        return validation_error(response, _violations(exc))
    return handle_result(await service.summary(request), response)


@router.get("/revenue")
@beartype
async def revenue_report(
    response: Response,
    query: ReportQuery = Depends(),
    service: ReportService = Depends(get_report_service),
) -> Union[list[dict[str, Any]], ErrorResponse]:
    """``[{label, revenue}]``."""
    return await _time_series("revenue", query, response, service)


@router.get("/customer-acquisition")
@beartype
async def customer_acquisition_report(
    response: Response,
    query: ReportQuery = Depends(),
    service: ReportService = Depends(get_report_service),
) -> Union[list[dict[str, Any]], ErrorResponse]:
    """``[{label, registered, policyBuyers}]``."""
    return await _time_series("customer_acquisition", query, response, service)


@router.get("/claim-status")
@beartype
async def claim_status_report(
    response: Response,
    query: ReportQuery = Depends(),
    service: ReportService = Depends(get_report_service),
) -> Union[list[dict[str, Any]], ErrorResponse]:
    """``[{label, Pending, Approved, Rejected}]``."""
    return await _time_series("claim_status", query, response, service)


@router.get("/policy-distribution")
@beartype
async def policy_distribution_report(
    response: Response,
    query: SummaryQuery = Depends(),
    service: ReportService = Depends(get_report_service),
) -> Union[list[PolicyDistributionRow], ErrorResponse]:
    """``[{policyType, customerCount}]`` for every policy type."""
    try:
        request = SummaryRequest(start_date=query.start_date, end_date=query.end_date)
    except ValidationError as exc:
        return validation_error(response, _violations(exc))
    return handle_result(await service.policy_distribution(request), response)
