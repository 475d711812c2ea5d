# PolicyCore - Policy Decision Management System
# Copyright (C) 2025 Luiz Frias <luizf35@gmail.com>
# Form F[x] Labs
#
# This software is dual-licensed under AGPL-3.0 and Commercial License.
# For commercial licensing, contact: luizf35@gmail.com
# See LICENSE file for full terms.

"""Segment service."""

import asyncio
from uuid import UUID

from beartype import beartype

from ..core.errors import NotFound, ServiceError, StoreError, from_store_error
from ..core.result_types import Err, Ok, Result
from ..models.customer import Customer
from ..models.entity import EntityType
from ..models.segment import Segment, SegmentCreate, SegmentUpdate
from ..schemas.common import PaginatedResponse
from ..stores.base import RecordStore, SortSpec
from .performance_monitor import performance_monitor


class SegmentService:
    """Segment creation, renaming and listing.

    Membership is never written here; it follows customer writes through
    :class:`~policy_crm.services.membership_sync.MembershipSynchronizer`.
    """

    def __init__(self, store: RecordStore) -> None:
        self._store = store

    @beartype
    @performance_monitor("create_segment")
    async def create(self, data: SegmentCreate) -> Result[Segment, ServiceError]:
        try:
            record = await self._store.insert(
                EntityType.SEGMENT, {"name": data.name, "customer_ids": []}
            )
        except StoreError as exc:
            return Err(from_store_error(exc, "create_segment"))
        return Ok(Segment.from_record(record))

    @beartype
    @performance_monitor("rename_segment")
    async def rename(
        self, segment_id: UUID, data: SegmentUpdate
    ) -> Result[Segment, ServiceError]:
        try:
            record = await self._store.update(
                EntityType.SEGMENT, segment_id, {"name": data.name}
            )
        except StoreError as exc:
            return Err(from_store_error(exc, "rename_segment"))
        return Ok(Segment.from_record(record))

    @beartype
    @performance_monitor("list_segments")
    async def list(
        self, page: int = 1, limit: int = 10
    ) -> Result[PaginatedResponse[Segment], ServiceError]:
        try:
            records, total = await asyncio.gather(
                self._store.query(
                    EntityType.SEGMENT,
                    sort=SortSpec(field="name", descending=False),
                    limit=limit,
                    offset=(page - 1) * limit,
                ),
                self._store.count(EntityType.SEGMENT),
            )
        except StoreError as exc:
            return Err(from_store_error(exc, "list_segments"))
        return Ok(
            PaginatedResponse[Segment].build(
                [Segment.from_record(record) for record in records],
                page=page,
                limit=limit,
                total=total,
            )
        )

    @beartype
    @performance_monitor("list_segment_customers")
    async def members(
        self, segment_id: UUID, page: int = 1, limit: int = 10
    ) -> Result[PaginatedResponse[Customer], ServiceError]:
        """Customers listed by the segment, in listing order."""
        try:
            segment = await self._store.get(EntityType.SEGMENT, segment_id)
            if segment is None:
                return Err(NotFound("Segment", str(segment_id)))
            member_ids = [UUID(str(value)) for value in segment.get("customer_ids", [])]
            offset = (page - 1) * limit
            records = await self._store.get_many(
                EntityType.CUSTOMER, member_ids[offset : offset + limit]
            )
        except StoreError as exc:
            return Err(from_store_error(exc, "list_segment_customers"))
        return Ok(
            PaginatedResponse[Customer].build(
                [Customer.from_record(record) for record in records],
                page=page,
                limit=limit,
                total=len(member_ids),
            )
        )
