# PolicyCore - Policy Decision Management System
# Copyright (C) 2025 Luiz Frias <luizf35@gmail.com>
# Form F[x] Labs
#
# This software is dual-licensed under AGPL-3.0 and Commercial License.
# For commercial licensing, contact: luizf35@gmail.com
# See LICENSE file for full terms.

"""Health check endpoint reporting store, cache and service timing status."""

import time
from datetime import datetime, timezone
from typing import Any

from beartype import beartype
from fastapi import APIRouter, Depends, Request
from pydantic import Field

from ...core.config import Settings, get_settings
from ...core.logging_utils import get_logger
from ...models.base import BaseModelConfig
from ...services.performance_monitor import performance_tracker

logger = get_logger(__name__)

router = APIRouter()

APP_START_TIME = time.monotonic()


class HealthResponse(BaseModelConfig):
    """Overall system health response."""

    status: str = Field(..., pattern=r"^(healthy|degraded)$")
    timestamp: datetime = Field(..., description="Health check timestamp")
    environment: str = Field(..., description="Environment name")
    store_backend: str = Field(..., description="Record store implementation")
    database_connected: bool | None = Field(
        default=None, description="None when the store is not PostgreSQL-backed"
    )
    cache_connected: bool = Field(..., description="Report cache availability")
    uptime_seconds: float = Field(..., ge=0)
    operations: dict[str, dict[str, Any]] = Field(
        default_factory=dict, description="Timing statistics per service operation"
    )


@router.get("/health")
@beartype
async def health_check(
    request: Request,
    settings: Settings = Depends(get_settings),
) -> HealthResponse:
    state = request.app.state
    database = getattr(state, "database", None)
    cache = getattr(state, "cache", None)

    database_connected = database.is_connected if database is not None else None
    cache_connected = cache is not None and cache.is_connected
    healthy = database_connected is not False and (
        cache_connected or not settings.report_cache_enabled
    )
    if not healthy:
        logger.warning(
            "Health degraded: database_connected=%s cache_connected=%s",
            database_connected,
            cache_connected,
        )

    return HealthResponse(
        status="healthy" if healthy else "degraded",
        timestamp=datetime.now(timezone.utc),
        environment=settings.api_env,
        store_backend=settings.store_backend,
        database_connected=database_connected,
        cache_connected=cache_connected,
        uptime_seconds=time.monotonic() - APP_START_TIME,
        operations=performance_tracker.get_all_stats(),
    )
