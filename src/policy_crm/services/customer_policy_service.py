# PolicyCore - Policy Decision Management System
# Copyright (C) 2025 Luiz Frias <luizf35@gmail.com>
# Form F[x] Labs
#
# This software is dual-licensed under AGPL-3.0 and Commercial License.
# For commercial licensing, contact: luizf35@gmail.com
# See LICENSE file for full terms.

"""Customer policy purchases."""

import asyncio
from datetime import datetime, timezone
from typing import Any
from uuid import UUID

from beartype import beartype

from ..core.errors import (
    ConcurrentModificationError,
    Conflict,
    NotFound,
    ServiceError,
    StoreError,
    ValidationFailure,
    from_store_error,
)
from ..core.logging_utils import get_logger
from ..core.result_types import Err, Ok, Result
from ..filters.builder import FilterBuilder
from ..models.entity import EntityType
from ..models.policy import CustomerPolicy, CustomerPolicyCreate, PolicyStatus
from ..schemas.common import PaginatedResponse
from ..stores.base import Record, RecordStore
from .performance_monitor import performance_monitor
from .sequence_service import SequenceService

logger = get_logger(__name__)

CUSTOMER_UPDATE_ATTEMPTS = 3


def _holdings(customer: Record, customer_policy_id: UUID, policy: Record) -> dict[str, Any]:
    """Customer fields after adding one held policy."""
    policy_ids = list(customer.get("policy_ids", []))
    policy_ids.append(str(customer_policy_id))
    policy_types = list(customer.get("policy_types", []))
    if policy["type"] not in policy_types:
        policy_types.append(policy["type"])
    lifetime_value = float(customer.get("lifetime_value") or 0) + float(policy["premium"])
    return {
        "policy_ids": policy_ids,
        "policy_types": policy_types,
        "lifetime_value": round(lifetime_value, 2),
    }


class CustomerPolicyService:
    """Sells catalogue policies to customers under allocated policy numbers."""

    def __init__(
        self, store: RecordStore, sequences: SequenceService | None = None
    ) -> None:
        self._store = store
        self._sequences = sequences or SequenceService(store)

    async def _attach_to_customer(
        self, customer_id: UUID, customer_policy_id: UUID, policy: Record
    ) -> ServiceError | None:
        for _ in range(CUSTOMER_UPDATE_ATTEMPTS):
            customer = await self._store.get(EntityType.CUSTOMER, customer_id)
            if customer is None:
                return NotFound("Customer", str(customer_id))
            try:
                await self._store.update_customer(
                    customer_id,
                    _holdings(customer, customer_policy_id, policy),
                    customer["version"],
                )
            except ConcurrentModificationError:
                continue
            return None
        return Conflict(
            f"Customer {customer_id} kept changing while recording policy "
            f"{customer_policy_id}"
        )

    @beartype
    @performance_monitor("purchase_policy")
    async def purchase(
        self, data: CustomerPolicyCreate
    ) -> Result[CustomerPolicy, ServiceError]:
        """Record a purchase and update the customer's holdings."""
        try:
            customer, policy = await asyncio.gather(
                self._store.get(EntityType.CUSTOMER, data.customer_id),
                self._store.get(EntityType.POLICY, data.policy_id),
            )
        except StoreError as exc:
            return Err(from_store_error(exc, "purchase_policy"))
        if customer is None:
            return Err(NotFound("Customer", str(data.customer_id)))
        if policy is None:
            return Err(NotFound("Policy", str(data.policy_id)))
        if policy.get("status") != PolicyStatus.ACTIVE.value:
            return Err(
                ValidationFailure([f"Policy {data.policy_id} is not available for purchase"])
            )

        number = await self._sequences.next_policy_number()
        if number.is_err():
            return Err(number.unwrap_err())

        try:
            record = await self._store.insert(
                EntityType.CUSTOMER_POLICY,
                {
                    "customer_id": str(data.customer_id),
                    "policy_id": str(data.policy_id),
                    "policy_number": number.unwrap(),
                    "status": PolicyStatus.ACTIVE.value,
                    "start_date": datetime.now(timezone.utc).isoformat(),
                    "end_date": None,
                },
            )
            error = await self._attach_to_customer(data.customer_id, record["id"], policy)
        except StoreError as exc:
            return Err(from_store_error(exc, "purchase_policy"))
        if error is not None:
            logger.warning(
                "Customer policy %s recorded but customer %s holdings not updated: %s",
                record["id"],
                data.customer_id,
                error.message,
            )
            return Err(error)

        logger.info(
            "Customer %s bought policy %s as %s",
            data.customer_id,
            data.policy_id,
            record["policy_number"],
        )
        return Ok(CustomerPolicy.from_record(record))

    @beartype
    @performance_monitor("list_customer_policies")
    async def list(
        self, page: int = 1, limit: int = 10, search: str | None = None
    ) -> Result[PaginatedResponse[CustomerPolicy], ServiceError]:
        """Newest first; ``search`` matches the policy number."""
        predicate = FilterBuilder().add_search(search, ("policy_number",)).build()
        try:
            records, total = await asyncio.gather(
                self._store.query(
                    EntityType.CUSTOMER_POLICY,
                    predicate=predicate,
                    limit=limit,
                    offset=(page - 1) * limit,
                ),
                self._store.count(EntityType.CUSTOMER_POLICY, predicate=predicate),
            )
        except StoreError as exc:
            return Err(from_store_error(exc, "list_customer_policies"))
        return Ok(
            PaginatedResponse[CustomerPolicy].build(
                [CustomerPolicy.from_record(record) for record in records],
                page=page,
                limit=limit,
                total=total,
            )
        )
