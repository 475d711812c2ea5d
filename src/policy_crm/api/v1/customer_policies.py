# PolicyCore - Policy Decision Management System
# Copyright (C) 2025 Luiz Frias <luizf35@gmail.com>
# Form F[x] Labs
#
# This software is dual-licensed under AGPL-3.0 and Commercial License.
# For commercial licensing, contact: luizf35@gmail.com
# See LICENSE file for full terms.

"""Customer policy purchase endpoints."""

from typing import Union

from beartype import beartype
from fastapi import APIRouter, Depends, Query, Response, status

from ...models.policy import CustomerPolicy, CustomerPolicyCreate
from ...schemas.common import ErrorResponse, PaginatedResponse
from ...services.customer_policy_service import CustomerPolicyService
from ..dependencies import PaginationParams, get_customer_policy_service
from ..response_patterns import handle_result

router = APIRouter()


@router.post("", status_code=status.HTTP_201_CREATED)
@beartype
async def purchase_policy(
    purchase: CustomerPolicyCreate,
    response: Response,
    service: CustomerPolicyService = Depends(get_customer_policy_service),
) -> Union[CustomerPolicy, ErrorResponse]:
    """Sell a catalogue policy to a customer under a new policy number."""
    return handle_result(
        await service.purchase(purchase),
        response,
        success_status=status.HTTP_201_CREATED,
    )


@router.get("")
@beartype
async def list_customer_policies(
    response: Response,
    pagination: PaginationParams = Depends(),
    search: str | None = Query(None, description="Policy number fragment"),
    service: CustomerPolicyService = Depends(get_customer_policy_service),
) -> Union[PaginatedResponse[CustomerPolicy], ErrorResponse]:
    result = await service.list(pagination.page, pagination.limit, search)
    return handle_result(result, response)
