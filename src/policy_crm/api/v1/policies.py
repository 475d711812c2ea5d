# PolicyCore - Policy Decision Management System
# Copyright (C) 2025 Luiz Frias <luizf35@gmail.com>
# Form F[x] Labs
#
# This software is dual-licensed under AGPL-3.0 and Commercial License.
# For commercial licensing, contact: luizf35@gmail.com
# See LICENSE file for full terms.

"""Policy catalogue endpoints."""

from typing import Union
from uuid import UUID

from beartype import beartype
from fastapi import APIRouter, Depends, Response, status

from ...models.policy import Policy, PolicyCreate, PolicyUpdate
from ...schemas.common import ErrorResponse, PaginatedResponse
from ...services.policy_service import PolicyService
from ..dependencies import PaginationParams, get_policy_service
from ..response_patterns import handle_result

router = APIRouter()


@router.get("")
@beartype
async def list_policies(
    response: Response,
    pagination: PaginationParams = Depends(),
    service: PolicyService = Depends(get_policy_service),
) -> Union[PaginatedResponse[Policy], ErrorResponse]:
    return handle_result(await service.list(pagination.page, pagination.limit), response)


@router.post("", status_code=status.HTTP_201_CREATED)
@beartype
async def create_policy(
    policy_data: PolicyCreate,
    response: Response,
    service: PolicyService = Depends(get_policy_service),
) -> Union[Policy, ErrorResponse]:
    return handle_result(
        await service.create(policy_data),
        response,
        success_status=status.HTTP_201_CREATED,
    )


@router.get("/{policy_id}")
@beartype
async def get_policy(
    policy_id: UUID,
    response: Response,
    service: PolicyService = Depends(get_policy_service),
) -> Union[Policy, ErrorResponse]:
    return handle_result(await service.get(policy_id), response)


@router.patch("/{policy_id}")
@beartype
async def update_policy(
    policy_id: UUID,
    policy_update: PolicyUpdate,
    response: Response,
    service: PolicyService = Depends(get_policy_service),
) -> Union[Policy, ErrorResponse]:
    return handle_result(await service.update(policy_id, policy_update), response)
