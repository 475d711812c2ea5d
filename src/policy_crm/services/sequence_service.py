# PolicyCore - Policy Decision Management System
# Copyright (C) 2025 Luiz Frias <luizf35@gmail.com>
# Form F[x] Labs
#
# This software is dual-licensed under AGPL-3.0 and Commercial License.
# For commercial licensing, contact: luizf35@gmail.com
# See LICENSE file for full terms.

"""Policy number allocation."""

from datetime import datetime, timezone

from beartype import beartype

from ..core.errors import StoreError, StoreFailure
from ..core.result_types import Err, Ok, Result
from ..stores.base import EntityStore
from .performance_monitor import performance_monitor

POLICY_NUMBER_PREFIX = "POL"


@beartype
def format_policy_number(year: int, sequence: int) -> str:
    """``POL-<year>-<NNN>``: zero padded to at least three digits."""
    return f"{POLICY_NUMBER_PREFIX}-{year:04d}-{sequence:03d}"


class SequenceService:
    """Allocates policy numbers from one counter per year.

    The counter lives in the store and is incremented and read in a single
    atomic step, so concurrent purchases never receive the same number.
    """

    def __init__(self, store: EntityStore) -> None:
        self._store = store

    @beartype
    @performance_monitor("allocate_policy_number")
    async def next_policy_number(
        self, year: int | None = None
    ) -> Result[str, StoreFailure]:
        """Allocate the next number for ``year`` (default: current UTC year)."""
        year = year or datetime.now(timezone.utc).year
        try:
            sequence = await self._store.next_sequence_value(
                f"{POLICY_NUMBER_PREFIX}-{year:04d}"
            )
        except StoreError as exc:
            return Err(StoreFailure("allocate_policy_number", str(exc)))
        return Ok(format_policy_number(year, sequence))
