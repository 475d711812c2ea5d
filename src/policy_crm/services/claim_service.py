# PolicyCore - Policy Decision Management System
# Copyright (C) 2025 Luiz Frias <luizf35@gmail.com>
# Form F[x] Labs
#
# This software is dual-licensed under AGPL-3.0 and Commercial License.
# For commercial licensing, contact: luizf35@gmail.com
# See LICENSE file for full terms.

"""Claim filing and decisions."""

import asyncio
from uuid import UUID

from beartype import beartype

from ..core.errors import (
    Conflict,
    DuplicateValueError,
    NotFound,
    ServiceError,
    StoreError,
    ValidationFailure,
    from_store_error,
)
from ..core.logging_utils import get_logger
from ..core.result_types import Err, Ok, Result
from ..filters.builder import FilterBuilder
from ..models.claim import ClaimCreate, ClaimDecision, ClaimPolicy, ClaimStatus
from ..models.entity import EntityType
from ..models.policy import PolicyStatus
from ..schemas.common import PaginatedResponse
from ..stores.base import RecordStore
from .performance_monitor import performance_monitor

logger = get_logger(__name__)

PENDING_EXISTS = "A pending claim already exists for this policy"
ONLY_PENDING = "Only pending claims can be updated"


class ClaimService:
    """Claims against customer policies; at most one pending claim per policy."""

    def __init__(self, store: RecordStore) -> None:
        self._store = store

    @beartype
    @performance_monitor("file_claim")
    async def file(self, data: ClaimCreate) -> Result[ClaimPolicy, ServiceError]:
        try:
            held = await self._store.get(EntityType.CUSTOMER_POLICY, data.customer_policy_id)
            if held is None:
                return Err(NotFound("Customer policy", str(data.customer_policy_id)))
            if held.get("status") != PolicyStatus.ACTIVE.value:
                return Err(ValidationFailure(["Cannot claim on an inactive policy"]))

            pending = (
                FilterBuilder()
                .add_equals("customer_policy_id", str(data.customer_policy_id))
                .add_equals("status", ClaimStatus.PENDING.value)
                .build()
            )
            if await self._store.count(EntityType.CLAIM, predicate=pending):
                return Err(Conflict(PENDING_EXISTS))

            record = await self._store.insert(
                EntityType.CLAIM,
                {
                    "customer_policy_id": str(data.customer_policy_id),
                    "customer_id": held["customer_id"],
                    "policy_id": held["policy_id"],
                    "claim_amount": data.claim_amount,
                    "reason": data.reason,
                    "status": ClaimStatus.PENDING.value,
                },
            )
        except DuplicateValueError:
            return Err(Conflict(PENDING_EXISTS))
        except StoreError as exc:
            return Err(from_store_error(exc, "file_claim"))

        logger.info("Claim %s filed on %s", record["id"], data.customer_policy_id)
        return Ok(ClaimPolicy.from_record(record))

    @beartype
    @performance_monitor("decide_claim")
    async def decide(
        self, claim_id: UUID, decision: ClaimDecision
    ) -> Result[ClaimPolicy, ServiceError]:
        """Move a pending claim to its decided status."""
        try:
            claim = await self._store.get(EntityType.CLAIM, claim_id)
            if claim is None:
                return Err(NotFound("Claim", str(claim_id)))
            if claim.get("status") != ClaimStatus.PENDING.value:
                return Err(ValidationFailure([ONLY_PENDING]))
            record = await self._store.update_if(
                EntityType.CLAIM,
                claim_id,
                {"status": decision.status.value},
                expected={"status": ClaimStatus.PENDING.value},
            )
            if record is None:
                return Err(ValidationFailure([ONLY_PENDING]))
        except StoreError as exc:
            return Err(from_store_error(exc, "decide_claim"))
        return Ok(ClaimPolicy.from_record(record))

    @beartype
    @performance_monitor("list_claims")
    async def list(
        self, page: int = 1, limit: int = 10, status: ClaimStatus | None = None
    ) -> Result[PaginatedResponse[ClaimPolicy], ServiceError]:
        predicate = (
            FilterBuilder()
            .add_equals("status", status.value if status is not None else None)
            .build()
        )
        try:
            records, total = await asyncio.gather(
                self._store.query(
                    EntityType.CLAIM,
                    predicate=predicate,
                    limit=limit,
                    offset=(page - 1) * limit,
                ),
                self._store.count(EntityType.CLAIM, predicate=predicate),
            )
        except StoreError as exc:
            return Err(from_store_error(exc, "list_claims"))
        return Ok(
            PaginatedResponse[ClaimPolicy].build(
                [ClaimPolicy.from_record(record) for record in records],
                page=page,
                limit=limit,
                total=total,
            )
        )
