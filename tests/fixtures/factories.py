"""Test data factories."""

from datetime import datetime, timezone
from typing import Any
from uuid import UUID

from policy_crm.models.customer import CustomerCreate


def utc(year: int, month: int, day: int, hour: int = 12) -> datetime:
    """Aware UTC timestamp used when seeding records."""
    return datetime(year, month, day, hour, tzinfo=timezone.utc)


def customer_create(
    name: str = "Ann Lee",
    email: str = "ann@example.com",
    segment_ids: list[UUID] | None = None,
    **overrides: Any,
) -> CustomerCreate:
    return CustomerCreate(
        name=name, email=email, segment_ids=segment_ids or [], **overrides
    )


def customer_payload(
    name: str = "Ann Lee", email: str = "ann@example.com", **overrides: Any
) -> dict[str, Any]:
    """JSON body for ``POST /api/v1/customers``."""
    return {"name": name, "email": email, **overrides}
