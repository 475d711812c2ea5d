# PolicyCore - Policy Decision Management System
# Copyright (C) 2025 Luiz Frias <luizf35@gmail.com>
# Form F[x] Labs
#
# This software is dual-licensed under AGPL-3.0 and Commercial License.
# For commercial licensing, contact: luizf35@gmail.com
# See LICENSE file for full terms.

"""Customer service: creation, updates and search."""

import asyncio
from collections.abc import Mapping
from typing import Any
from uuid import UUID

from attrs import frozen
from beartype import beartype

from ..core.errors import (
    NotFound,
    ServiceError,
    StoreError,
    ValidationFailure,
    from_store_error,
)
from ..core.logging_utils import get_logger
from ..core.result_types import Err, Ok, Result
from ..filters.builder import FilterValidationError
from ..filters.parsing import ParsedFilterRequest, build_customer_predicate
from ..models.customer import Customer, CustomerCreate, CustomerUpdate
from ..models.entity import EntityType
from ..schemas.common import PaginatedResponse
from ..stores.base import RecordStore, SortSpec, segment_document
from .membership_sync import MembershipSynchronizer, SyncOutcome
from .performance_monitor import performance_monitor

logger = get_logger(__name__)


@frozen
class CustomerWrite:
    """A saved customer and the segment writes still awaiting reconciliation."""

    customer: Customer
    pending_segment_ids: tuple[UUID, ...] = ()

    @classmethod
    def from_outcome(cls, outcome: SyncOutcome) -> "CustomerWrite":
        return cls(
            customer=Customer.from_record(outcome.customer),
            pending_segment_ids=outcome.failed,
        )


class CustomerService:
    """Customer business logic over a record store."""

    def __init__(self, store: RecordStore) -> None:
        self._store = store
        self._membership = MembershipSynchronizer(store)

    @beartype
    @performance_monitor("create_customer")
    async def create(self, data: CustomerCreate) -> Result[CustomerWrite, ServiceError]:
        """Insert a customer and add it to its segments."""
        document: dict[str, Any] = data.model_dump(mode="json", exclude={"segment_ids"})
        document.update(
            segment_document(data.segment_ids),
            policy_ids=[],
            policy_types=[],
            lifetime_value=0,
            last_interaction=None,
        )
        try:
            await self._membership.ensure_segments_exist(data.segment_ids)
            record = await self._store.insert(EntityType.CUSTOMER, document)
            outcome = await self._membership.attach(record)
        except StoreError as exc:
            return Err(from_store_error(exc, "create_customer"))

        logger.info("Created customer %s", record["id"])
        return Ok(CustomerWrite.from_outcome(outcome))

    @beartype
    @performance_monitor("get_customer")
    async def get(self, customer_id: UUID) -> Result[Customer, ServiceError]:
        try:
            record = await self._store.get(EntityType.CUSTOMER, customer_id)
        except StoreError as exc:
            return Err(from_store_error(exc, "get_customer"))
        if record is None:
            return Err(NotFound("Customer", str(customer_id)))
        return Ok(Customer.from_record(record))

    @beartype
    @performance_monitor("update_customer")
    async def update(
        self,
        customer_id: UUID,
        data: CustomerUpdate,
        expected_version: int | None = None,
    ) -> Result[CustomerWrite, ServiceError]:
        """Partially update a customer.

        When ``segment_ids`` is given it replaces the customer's segment set
        and segments are synchronised. ``expected_version`` guards against
        lost updates; without it the version read at the start is used.
        """
        changes: Mapping[str, Any] = data.changes()
        try:
            if data.segment_ids is not None:
                outcome = await self._membership.sync(
                    customer_id,
                    data.segment_ids,
                    changes=changes,
                    expected_version=expected_version,
                )
                return Ok(CustomerWrite.from_outcome(outcome))

            if expected_version is None:
                current = await self._store.get(EntityType.CUSTOMER, customer_id)
                if current is None:
                    return Err(NotFound("Customer", str(customer_id)))
                expected_version = current["version"]
            record = await self._store.update_customer(
                customer_id, changes, expected_version
            )
        except StoreError as exc:
            return Err(from_store_error(exc, "update_customer"))
        return Ok(CustomerWrite(customer=Customer.from_record(record)))

    @beartype
    @performance_monitor("reconcile_customer_segments")
    async def reconcile_segments(
        self, customer_id: UUID
    ) -> Result[CustomerWrite, ServiceError]:
        """Repair segment member lists from the customer's stored set."""
        try:
            outcome = await self._membership.reconcile(customer_id)
        except StoreError as exc:
            return Err(from_store_error(exc, "reconcile_customer_segments"))
        return Ok(CustomerWrite.from_outcome(outcome))

    @beartype
    @performance_monitor("search_customers")
    async def search(
        self, request: ParsedFilterRequest
    ) -> Result[PaginatedResponse[Customer], ServiceError]:
        """One page of customers matching every filter in ``request``."""
        try:
            predicate = build_customer_predicate(request)
        except FilterValidationError as exc:
            return Err(ValidationFailure(exc.violations))

        sort = SortSpec(
            field=request.sort_field, descending=request.sort_order == "desc"
        )
        try:
            records, total = await asyncio.gather(
                self._store.query(
                    EntityType.CUSTOMER,
                    predicate=predicate,
                    sort=sort,
                    limit=request.limit,
                    offset=request.offset,
                ),
                self._store.count(EntityType.CUSTOMER, predicate=predicate),
            )
        except StoreError as exc:
            return Err(from_store_error(exc, "search_customers"))

        return Ok(
            PaginatedResponse[Customer].build(
                [Customer.from_record(record) for record in records],
                page=request.page,
                limit=request.limit,
                total=total,
            )
        )
