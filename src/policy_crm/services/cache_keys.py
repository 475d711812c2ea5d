# PolicyCore - Policy Decision Management System
# Copyright (C) 2025 Luiz Frias <luizf35@gmail.com>
# Form F[x] Labs
#
# This software is dual-licensed under AGPL-3.0 and Commercial License.
# For commercial licensing, contact: luizf35@gmail.com
# See LICENSE file for full terms.

"""Centralized cache key management for consistency and type safety."""

from datetime import date

from beartype import beartype

from ..reporting.periods import Granularity


class CacheKeys:
    """Centralized cache key management."""

    REPORT_PREFIX = "report"

    @staticmethod
    @beartype
    def report(
        name: str,
        start: date | None,
        end: date | None,
        granularity: Granularity | None = None,
    ) -> str:
        """Cache key for one dashboard report over a date range."""
        lower = start.isoformat() if start else "open"
        upper = end.isoformat() if end else "open"
        key = f"{CacheKeys.REPORT_PREFIX}:{name}:{lower}:{upper}"
        if granularity is not None:
            key += f":{granularity.value}"
        return key
