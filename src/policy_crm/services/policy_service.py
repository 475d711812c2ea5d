# PolicyCore - Policy Decision Management System
# Copyright (C) 2025 Luiz Frias <luizf35@gmail.com>
# Form F[x] Labs
#
# This software is dual-licensed under AGPL-3.0 and Commercial License.
# For commercial licensing, contact: luizf35@gmail.com
# See LICENSE file for full terms.

"""Policy catalogue service."""

import asyncio
from uuid import UUID

from beartype import beartype

from ..core.errors import NotFound, ServiceError, StoreError, from_store_error
from ..core.result_types import Err, Ok, Result
from ..models.entity import EntityType
from ..models.policy import Policy, PolicyCreate, PolicyUpdate
from ..schemas.common import PaginatedResponse
from ..stores.base import RecordStore
from .performance_monitor import performance_monitor


class PolicyService:
    """Catalogue policies customers can buy; names are unique."""

    def __init__(self, store: RecordStore) -> None:
        self._store = store

    @beartype
    @performance_monitor("create_policy")
    async def create(self, data: PolicyCreate) -> Result[Policy, ServiceError]:
        try:
            record = await self._store.insert(
                EntityType.POLICY, data.model_dump(mode="json")
            )
        except StoreError as exc:
            return Err(from_store_error(exc, "create_policy"))
        return Ok(Policy.from_record(record))

    @beartype
    @performance_monitor("update_policy")
    async def update(
        self, policy_id: UUID, data: PolicyUpdate
    ) -> Result[Policy, ServiceError]:
        try:
            record = await self._store.update(
                EntityType.POLICY,
                policy_id,
                data.model_dump(mode="json", exclude_none=True),
            )
        except StoreError as exc:
            return Err(from_store_error(exc, "update_policy"))
        return Ok(Policy.from_record(record))

    @beartype
    async def get(self, policy_id: UUID) -> Result[Policy, ServiceError]:
        try:
            record = await self._store.get(EntityType.POLICY, policy_id)
        except StoreError as exc:
            return Err(from_store_error(exc, "get_policy"))
        if record is None:
            return Err(NotFound("Policy", str(policy_id)))
        return Ok(Policy.from_record(record))

    @beartype
    @performance_monitor("list_policies")
    async def list(
        self, page: int = 1, limit: int = 10
    ) -> Result[PaginatedResponse[Policy], ServiceError]:
        try:
            records, total = await asyncio.gather(
                self._store.query(
                    EntityType.POLICY, limit=limit, offset=(page - 1) * limit
                ),
                self._store.count(EntityType.POLICY),
            )
        except StoreError as exc:
            return Err(from_store_error(exc, "list_policies"))
        return Ok(
            PaginatedResponse[Policy].build(
                [Policy.from_record(record) for record in records],
                page=page,
                limit=limit,
                total=total,
            )
        )
