# PolicyCore - Policy Decision Management System
# Copyright (C) 2025 Luiz Frias <luizf35@gmail.com>
# Form F[x] Labs
#
# This software is dual-licensed under AGPL-3.0 and Commercial License.
# For commercial licensing, contact: luizf35@gmail.com
# See LICENSE file for full terms.

"""API v1 router aggregation."""

from fastapi import APIRouter

from . import (
    claims,
    customer_policies,
    customers,
    dashboard,
    health,
    policies,
    segments,
)

router = APIRouter(prefix="/api/v1")

router.include_router(health.router, tags=["health"])
router.include_router(dashboard.router, prefix="/dashboard", tags=["dashboard"])
router.include_router(customers.router, prefix="/customers", tags=["customers"])
router.include_router(segments.router, prefix="/segments", tags=["segments"])
router.include_router(policies.router, prefix="/policies", tags=["policies"])
router.include_router(
    customer_policies.router, prefix="/customer-policies", tags=["customer-policies"]
)
router.include_router(claims.router, prefix="/claims", tags=["claims"])

__all__ = ["router"]
