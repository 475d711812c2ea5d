# PolicyCore - Policy Decision Management System
# Copyright (C) 2025 Luiz Frias <luizf35@gmail.com>
# Form F[x] Labs
#
# This software is dual-licensed under AGPL-3.0 and Commercial License.
# For commercial licensing, contact: luizf35@gmail.com
# See LICENSE file for full terms.

"""API response patterns following Result[T, E] + HTTP semantics."""

from collections.abc import Sequence
from typing import Any, TypeVar, Union

from beartype import beartype
from fastapi import Response, status

from ..core.errors import (
    Conflict,
    NotFound,
    ServiceError,
    StoreFailure,
    ValidationFailure,
)
from ..core.result_types import Result
from ..schemas.common import ErrorResponse

T = TypeVar("T")

_STATUS_BY_ERROR: dict[type, int] = {
    ValidationFailure: status.HTTP_400_BAD_REQUEST,
    NotFound: status.HTTP_404_NOT_FOUND,
    Conflict: status.HTTP_409_CONFLICT,
    StoreFailure: status.HTTP_500_INTERNAL_SERVER_ERROR,
}

_CODE_BY_ERROR: dict[type, str] = {
    ValidationFailure: "validation_failed",
    NotFound: "not_found",
    Conflict: "conflict",
    StoreFailure: "store_failure",
}


class APIResponseHandler:
    """Maps service results onto HTTP responses."""

    @staticmethod
    @beartype
    def map_error_to_status(error: ServiceError) -> int:
        """HTTP status code for a service error."""
        return _STATUS_BY_ERROR.get(type(error), status.HTTP_422_UNPROCESSABLE_ENTITY)

    @staticmethod
    @beartype
    def to_error_response(error: ServiceError) -> ErrorResponse:
        details: dict[str, Any] | None = None
        if isinstance(error, ValidationFailure):
            details = {"violations": list(error.violations)}
        elif isinstance(error, NotFound):
            details = {"entity": error.entity, "id": error.identifier}
        elif isinstance(error, StoreFailure):
            details = {"operation": error.operation, "cause": error.cause}
        return ErrorResponse(
            error=error.message,
            error_code=_CODE_BY_ERROR.get(type(error)),
            details=details,
        )

    @staticmethod
    @beartype
    def from_result(
        result: Result[T, ServiceError],
        response: Response,
        success_status: int = status.HTTP_200_OK,
    ) -> Union[T, ErrorResponse]:
        """Unwrap an ``Ok`` or turn an ``Err`` into an :class:`ErrorResponse`.

        Args:
            result: Service layer Result
            response: FastAPI Response object to set status code
            success_status: HTTP status for successful operations

        Returns:
            Either the unwrapped success value or ErrorResponse
        """
        if result.is_err():
            error = result.unwrap_err()
            response.status_code = APIResponseHandler.map_error_to_status(error)
            return APIResponseHandler.to_error_response(error)

        response.status_code = success_status
        return result.unwrap()


@beartype
def handle_result(
    result: Result[T, ServiceError],
    response: Response,
    success_status: int = status.HTTP_200_OK,
) -> Union[T, ErrorResponse]:
    """Convenience function for standard result handling."""
    return APIResponseHandler.from_result(result, response, success_status)


@beartype
def validation_error(response: Response, violations: Sequence[str]) -> ErrorResponse:
    """400 response for input rejected at the HTTP boundary."""
    error = ValidationFailure(violations)
    response.status_code = APIResponseHandler.map_error_to_status(error)
    return APIResponseHandler.to_error_response(error)
