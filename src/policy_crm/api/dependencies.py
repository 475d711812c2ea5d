# PolicyCore - Policy Decision Management System
# Copyright (C) 2025 Luiz Frias <luizf35@gmail.com>
# Form F[x] Labs
#
# This software is dual-licensed under AGPL-3.0 and Commercial License.
# For commercial licensing, contact: luizf35@gmail.com
# See LICENSE file for full terms.

"""FastAPI dependencies wiring the record store and services into endpoints.

The store and the optional report cache are created by the application
lifespan and kept on ``app.state``; services are cheap, request-scoped
wrappers around them.
"""

from beartype import beartype
from fastapi import Depends, HTTPException, Query, Request, status

from ..core.cache import Cache
from ..core.config import Settings, get_settings
from ..services.claim_service import ClaimService
from ..services.customer_policy_service import CustomerPolicyService
from ..services.customer_service import CustomerService
from ..services.policy_service import PolicyService
from ..services.report_service import ReportService
from ..services.segment_service import SegmentService
from ..stores.base import RecordStore


@beartype
def get_store(request: Request) -> RecordStore:
    """Record store created at startup."""
    return request.app.state.store  # type: ignore[no-any-return]


@beartype
def get_report_cache(request: Request) -> Cache | None:
    """Report cache, or None when caching is disabled or unavailable."""
    return getattr(request.app.state, "cache", None)


class PaginationParams:
    """Common pagination parameters for list endpoints."""

    def __init__(
        self,
        page: int = Query(1, description="1-based page number"),
        limit: int | None = Query(None, description="Items per page"),
        settings: Settings = Depends(get_settings),
    ) -> None:
        if page < 1:
            # NOTE: This is a dependency class, not an endpoint
            # We need to keep raising HTTPException here as FastAPI expects it
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Page must be at least 1",
            )
        limit = settings.default_page_size if limit is None else limit
        if limit < 1:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Limit must be at least 1",
            )
        self.page = page
        self.limit = min(limit, settings.max_page_size)


def get_customer_service(store: RecordStore = Depends(get_store)) -> CustomerService:
    return CustomerService(store)


def get_segment_service(store: RecordStore = Depends(get_store)) -> SegmentService:
    return SegmentService(store)


def get_policy_service(store: RecordStore = Depends(get_store)) -> PolicyService:
    return PolicyService(store)


def get_customer_policy_service(
    store: RecordStore = Depends(get_store),
) -> CustomerPolicyService:
    return CustomerPolicyService(store)


def get_claim_service(store: RecordStore = Depends(get_store)) -> ClaimService:
    return ClaimService(store)


def get_report_service(
    store: RecordStore = Depends(get_store),
    cache: Cache | None = Depends(get_report_cache),
    settings: Settings = Depends(get_settings),
) -> ReportService:
    return ReportService(
        store,
        cache if settings.report_cache_enabled else None,
        max_buckets=settings.report_max_buckets,
        cache_ttl=settings.report_cache_ttl_seconds,
    )
