# PolicyCore - Policy Decision Management System
# Copyright (C) 2025 Luiz Frias <luizf35@gmail.com>
# Form F[x] Labs
#
# This software is dual-licensed under AGPL-3.0 and Commercial License.
# For commercial licensing, contact: luizf35@gmail.com
# See LICENSE file for full terms.

"""API request/response schemas."""

from .common import APIInfo, ErrorResponse, PaginatedResponse
from .report import DashboardSummary, PolicyDistributionRow, ReportRequest, SummaryRequest

__all__ = [
    "APIInfo",
    "ErrorResponse",
    "PaginatedResponse",
    "DashboardSummary",
    "PolicyDistributionRow",
    "ReportRequest",
    "SummaryRequest",
]
