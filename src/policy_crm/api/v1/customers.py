# PolicyCore - Policy Decision Management System
# Copyright (C) 2025 Luiz Frias <luizf35@gmail.com>
# Form F[x] Labs
#
# This software is dual-licensed under AGPL-3.0 and Commercial License.
# For commercial licensing, contact: luizf35@gmail.com
# See LICENSE file for full terms.

"""Customer endpoints: creation, partial updates, search and segment repair.

Search takes flat query parameters (see
:func:`~policy_crm.filters.parsing.parse_query_params`); list parameters
may be repeated or comma-joined.
"""

from typing import Union
from uuid import UUID

from beartype import beartype
from fastapi import APIRouter, Depends, Query, Request, Response, status

from ...core.config import Settings, get_settings
from ...filters.builder import FilterValidationError
from ...filters.parsing import parse_query_params
from ...models.customer import Customer, CustomerCreate, CustomerUpdate
from ...schemas.common import ErrorResponse, PaginatedResponse
from ...services.customer_service import CustomerService, CustomerWrite
from ..dependencies import get_customer_service
from ..response_patterns import handle_result, validation_error

router = APIRouter()

PENDING_SEGMENTS_HEADER = "X-Segment-Sync-Pending"


def _saved(write: CustomerWrite, response: Response) -> Customer:
    if write.pending_segment_ids:
        response.headers[PENDING_SEGMENTS_HEADER] = ",".join(
            str(segment_id) for segment_id in write.pending_segment_ids
        )
    return write.customer


@router.get("")
@beartype
async def search_customers(
    request: Request,
    response: Response,
    service: CustomerService = Depends(get_customer_service),
    settings: Settings = Depends(get_settings),
) -> Union[PaginatedResponse[Customer], ErrorResponse]:
    """Paginated customer search."""
    try:
        parsed = parse_query_params(
            request.query_params.multi_items(),
            default_limit=settings.default_page_size,
            max_limit=settings.max_page_size,
        )
    except FilterValidationError as exc:
        return validation_error(response, exc.violations)
    return handle_result(await service.search(parsed), response)


@router.post("", status_code=status.HTTP_201_CREATED)
@beartype
async def create_customer(
    customer_data: CustomerCreate,
    response: Response,
    service: CustomerService = Depends(get_customer_service),
) -> Union[Customer, ErrorResponse]:
    """Create a customer and add it to its segments."""
    result = await service.create(customer_data)
    return handle_result(
        result.map(lambda write: _saved(write, response)),
        response,
        success_status=status.HTTP_201_CREATED,
    )


@router.get("/{customer_id}")
@beartype
async def get_customer(
    customer_id: UUID,
    response: Response,
    service: CustomerService = Depends(get_customer_service),
) -> Union[Customer, ErrorResponse]:
    return handle_result(await service.get(customer_id), response)


@router.patch("/{customer_id}")
@beartype
async def update_customer(
    customer_id: UUID,
    customer_update: CustomerUpdate,
    response: Response,
    expected_version: int | None = Query(
        None, ge=1, description="Reject the update if the customer changed since"
    ),
    service: CustomerService = Depends(get_customer_service),
) -> Union[Customer, ErrorResponse]:
    """Partial update; ``segment_ids`` replaces the whole segment set."""
    result = await service.update(customer_id, customer_update, expected_version)
    return handle_result(result.map(lambda write: _saved(write, response)), response)


@router.post("/{customer_id}/reconcile-segments")
@beartype
async def reconcile_customer_segments(
    customer_id: UUID,
    response: Response,
    service: CustomerService = Depends(get_customer_service),
) -> Union[Customer, ErrorResponse]:
    """Bring segment member lists in line with the customer's segment set."""
    result = await service.reconcile_segments(customer_id)
    return handle_result(result.map(lambda write: _saved(write, response)), response)
