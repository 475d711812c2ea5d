# PolicyCore - Policy Decision Management System
# Copyright (C) 2025 Luiz Frias <luizf35@gmail.com>
# Form F[x] Labs
#
# This software is dual-licensed under AGPL-3.0 and Commercial License.
# For commercial licensing, contact: luizf35@gmail.com
# See LICENSE file for full terms.

"""Error taxonomy shared by stores, services and the API layer.

Services never raise for expected failures; they return ``Err`` wrapping one
of the frozen error values below. Store implementations raise the exception
types, which services translate at their boundary.
"""

from typing import TypeAlias, Union

from attrs import field, frozen


@frozen
class ValidationFailure:
    """Input rejected before any store access; lists every violation."""

    violations: tuple[str, ...] = field(converter=tuple)

    @property
    def message(self) -> str:
        return "Validation failed: " + "; ".join(self.violations)


@frozen
class NotFound:
    """A referenced entity does not exist in the store."""

    entity: str
    identifier: str

    @property
    def message(self) -> str:
        return f"{self.entity} {self.identifier} not found"


@frozen
class Conflict:
    """Duplicate unique value or concurrent modification."""

    reason: str

    @property
    def message(self) -> str:
        return self.reason


@frozen
class StoreFailure:
    """Record store access failed; the underlying cause is attached."""

    operation: str
    cause: str

    @property
    def message(self) -> str:
        return f"Store operation '{self.operation}' failed: {self.cause}"


ServiceError: TypeAlias = Union[ValidationFailure, NotFound, Conflict, StoreFailure]


class StoreError(Exception):
    """Raised by record stores when the backing engine fails."""


class EntityNotFoundError(StoreError):
    """Raised by entity stores when a referenced record is missing."""

    def __init__(self, entity: str, identifier: object) -> None:
        super().__init__(f"{entity} {identifier} not found")
        self.entity = entity
        self.identifier = str(identifier)


class ConcurrentModificationError(StoreError):
    """Raised when an optimistic version check fails."""

    def __init__(self, entity: str, identifier: object, expected_version: int) -> None:
        super().__init__(
            f"Concurrent modification of {entity_label(entity).lower()} {identifier} "
            f"(expected version {expected_version})"
        )
        self.entity = entity
        self.identifier = str(identifier)
        self.expected_version = expected_version


class DuplicateValueError(StoreError):
    """Raised when a unique constraint is violated."""

    def __init__(self, entity: str, field_name: str, value: object) -> None:
        super().__init__(f"{entity_label(entity)} with this {field_name} already exists")
        self.entity = entity
        self.field_name = field_name
        self.value = value


_ENTITY_LABELS = {
    "customers": "Customer",
    "segments": "Segment",
    "policies": "Policy",
    "customer_policies": "Customer policy",
    "claims": "Claim",
}


def entity_label(entity: str) -> str:
    """Human-readable singular name of a record collection."""
    return _ENTITY_LABELS.get(entity, entity)


def from_store_error(exc: StoreError, operation: str) -> ServiceError:
    """Translate a store exception into the service error it represents."""
    if isinstance(exc, EntityNotFoundError):
        return NotFound(entity_label(exc.entity), exc.identifier)
    if isinstance(exc, (ConcurrentModificationError, DuplicateValueError)):
        return Conflict(str(exc))
    return StoreFailure(operation, str(exc))
