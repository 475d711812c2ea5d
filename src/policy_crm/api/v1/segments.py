# PolicyCore - Policy Decision Management System
# Copyright (C) 2025 Luiz Frias <luizf35@gmail.com>
# Form F[x] Labs
#
# This software is dual-licensed under AGPL-3.0 and Commercial License.
# For commercial licensing, contact: luizf35@gmail.com
# See LICENSE file for full terms.

"""Segment endpoints."""

from typing import Union
from uuid import UUID

from beartype import beartype
from fastapi import APIRouter, Depends, Response, status

from ...models.customer import Customer
from ...models.segment import Segment, SegmentCreate, SegmentUpdate
from ...schemas.common import ErrorResponse, PaginatedResponse
from ...services.segment_service import SegmentService
from ..dependencies import PaginationParams, get_segment_service
from ..response_patterns import handle_result

router = APIRouter()


@router.get("")
@beartype
async def list_segments(
    response: Response,
    pagination: PaginationParams = Depends(),
    service: SegmentService = Depends(get_segment_service),
) -> Union[PaginatedResponse[Segment], ErrorResponse]:
    result = await service.list(pagination.page, pagination.limit)
    return handle_result(result, response)


@router.post("", status_code=status.HTTP_201_CREATED)
@beartype
async def create_segment(
    segment_data: SegmentCreate,
    response: Response,
    service: SegmentService = Depends(get_segment_service),
) -> Union[Segment, ErrorResponse]:
    return handle_result(
        await service.create(segment_data),
        response,
        success_status=status.HTTP_201_CREATED,
    )


@router.patch("/{segment_id}")
@beartype
async def rename_segment(
    segment_id: UUID,
    segment_update: SegmentUpdate,
    response: Response,
    service: SegmentService = Depends(get_segment_service),
) -> Union[Segment, ErrorResponse]:
    return handle_result(await service.rename(segment_id, segment_update), response)


@router.get("/{segment_id}/customers")
@beartype
async def list_segment_customers(
    segment_id: UUID,
    response: Response,
    pagination: PaginationParams = Depends(),
    service: SegmentService = Depends(get_segment_service),
) -> Union[PaginatedResponse[Customer], ErrorResponse]:
    """Customers the segment lists."""
    result = await service.members(segment_id, pagination.page, pagination.limit)
    return handle_result(result, response)
