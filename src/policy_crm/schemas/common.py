# PolicyCore - Policy Decision Management System
# Copyright (C) 2025 Luiz Frias <luizf35@gmail.com>
# Form F[x] Labs
#
# This software is dual-licensed under AGPL-3.0 and Commercial License.
# For commercial licensing, contact: luizf35@gmail.com
# See LICENSE file for full terms.

"""Common schemas used across the API."""

from typing import Any, Generic, TypeVar

from pydantic import Field

from ..models.base import BaseModelConfig

T = TypeVar("T")


class ErrorResponse(BaseModelConfig):
    """Standardized error response for business logic failures."""

    success: bool = Field(default=False, description="Always false for error responses")
    error: str = Field(..., description="Human-readable error message")
    error_code: str | None = Field(default=None, description="Machine-readable error code")
    details: dict[str, Any] | None = Field(default=None, description="Additional error context")


class PaginatedResponse(BaseModelConfig, Generic[T]):
    """One page of a listing."""

    page: int = Field(..., ge=1, description="Current page number")
    limit: int = Field(..., ge=1, description="Items per page")
    total: int = Field(..., ge=0, description="Total number of matching items")
    total_pages: int = Field(..., ge=0, description="Total number of pages")
    data: list[T] = Field(default_factory=list, description="Items on this page")

    @classmethod
    def build(cls, items: list[Any], *, page: int, limit: int, total: int) -> Any:
        return cls(
            page=page,
            limit=limit,
            total=total,
            total_pages=(total + limit - 1) // limit,
            data=items,
        )


class APIInfo(BaseModelConfig):
    """API information response."""

    name: str = Field(..., description="API name")
    version: str = Field(..., description="API version")
    status: str = Field(..., description="API status")
    environment: str = Field(..., description="Deployment environment")
