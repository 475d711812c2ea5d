# PolicyCore - Policy Decision Management System
# Copyright (C) 2025 Luiz Frias <luizf35@gmail.com>
# Form F[x] Labs
#
# This software is dual-licensed under AGPL-3.0 and Commercial License.
# For commercial licensing, contact: luizf35@gmail.com
# See LICENSE file for full terms.

"""Claim endpoints."""

from typing import Union
from uuid import UUID

from beartype import beartype
from fastapi import APIRouter, Depends, Query, Response, status

from ...models.claim import ClaimCreate, ClaimDecision, ClaimPolicy, ClaimStatus
from ...schemas.common import ErrorResponse, PaginatedResponse
from ...services.claim_service import ClaimService
from ..dependencies import PaginationParams, get_claim_service
from ..response_patterns import handle_result

router = APIRouter()


@router.post("", status_code=status.HTTP_201_CREATED)
@beartype
async def file_claim(
    claim_data: ClaimCreate,
    response: Response,
    service: ClaimService = Depends(get_claim_service),
) -> Union[ClaimPolicy, ErrorResponse]:
    return handle_result(
        await service.file(claim_data),
        response,
        success_status=status.HTTP_201_CREATED,
    )


@router.get("")
@beartype
async def list_claims(
    response: Response,
    pagination: PaginationParams = Depends(),
    claim_status: ClaimStatus | None = Query(None, alias="status"),
    service: ClaimService = Depends(get_claim_service),
) -> Union[PaginatedResponse[ClaimPolicy], ErrorResponse]:
    result = await service.list(pagination.page, pagination.limit, claim_status)
    return handle_result(result, response)


@router.patch("/{claim_id}")
@beartype
async def decide_claim(
    claim_id: UUID,
    decision: ClaimDecision,
    response: Response,
    service: ClaimService = Depends(get_claim_service),
) -> Union[ClaimPolicy, ErrorResponse]:
    """Approve or reject a pending claim."""
    return handle_result(await service.decide(claim_id, decision), response)
