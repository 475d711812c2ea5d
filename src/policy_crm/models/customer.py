# PolicyCore - Policy Decision Management System
# Copyright (C) 2025 Luiz Frias <luizf35@gmail.com>
# Form F[x] Labs
#
# This software is dual-licensed under AGPL-3.0 and Commercial License.
# For commercial licensing, contact: luizf35@gmail.com
# See LICENSE file for full terms.

"""Customer domain models with strict validation.

This module defines all customer-related models including creation,
updates, and the core customer entity itself.
"""

from datetime import datetime
from enum import Enum
from uuid import UUID

from pydantic import EmailStr, Field, field_validator, model_validator

from .base import BaseModelConfig, IdentifiableModel
from .policy import PolicyType


class CustomerStatus(str, Enum):
    """Enumeration of customer account states."""

    ACTIVE = "Active"
    INACTIVE = "Inactive"


class EngagementScore(str, Enum):
    """How engaged the customer is with the brand."""

    HIGH = "High"
    MEDIUM = "Medium"
    AT_LOW = "At-Low"


class LifecycleStage(str, Enum):
    """Position of the customer in the sales lifecycle."""

    PROSPECT = "Prospect"
    ACTIVE = "Active"
    AT_RISK = "At-Risk"
    CHURNED = "Churned"


class PaymentBehavior(str, Enum):
    """Observed premium payment behaviour."""

    ON_TIME = "On-time"
    DELAYED = "Delayed"


class Location(BaseModelConfig):
    """Free-form customer location."""

    city: str | None = Field(None, max_length=100)
    state: str | None = Field(None, max_length=100)
    country: str | None = Field(None, max_length=100)


class CustomerBase(BaseModelConfig):
    """Base customer attributes shared across all customer operations."""

    name: str = Field(..., min_length=1, max_length=200, description="Full name")
    email: EmailStr = Field(..., description="Customer's email address")
    phone: str | None = Field(
        None,
        min_length=5,
        max_length=20,
        pattern=r"^\+?[0-9][0-9 \-]*$",
        description="Customer's phone number",
    )
    age: int | None = Field(None, ge=0, le=150, description="Age in years")
    location: Location | None = Field(None, description="Customer location")
    tags: list[str] = Field(default_factory=list, description="Free-form tags")
    status: CustomerStatus = Field(default=CustomerStatus.ACTIVE)
    engagement_score: EngagementScore = Field(default=EngagementScore.AT_LOW)
    lifecycle_stage: LifecycleStage = Field(default=LifecycleStage.PROSPECT)
    payment_behavior: PaymentBehavior = Field(default=PaymentBehavior.ON_TIME)

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v: str) -> str:
        """Emails are unique case-insensitively, store them lowercased."""
        return v.lower()

    @field_validator("tags")
    @classmethod
    def normalize_tags(cls, v: list[str]) -> list[str]:
        """Drop blank tags and duplicates while keeping order."""
        seen: dict[str, None] = {}
        for tag in v:
            tag = tag.strip()
            if tag:
                seen.setdefault(tag, None)
        return list(seen)


class CustomerCreate(CustomerBase):
    """Model for creating a new customer."""

    segment_ids: list[UUID] = Field(
        default_factory=list, description="Segments the customer belongs to"
    )


class CustomerUpdate(BaseModelConfig):
    """Model for updating an existing customer.

    All fields are optional to support partial updates.
    """

    name: str | None = Field(None, min_length=1, max_length=200)
    email: EmailStr | None = Field(None)
    phone: str | None = Field(
        None, min_length=5, max_length=20, pattern=r"^\+?[0-9][0-9 \-]*$"
    )
    age: int | None = Field(None, ge=0, le=150)
    location: Location | None = Field(None)
    tags: list[str] | None = Field(None)
    status: CustomerStatus | None = Field(None)
    engagement_score: EngagementScore | None = Field(None)
    lifecycle_stage: LifecycleStage | None = Field(None)
    payment_behavior: PaymentBehavior | None = Field(None)
    last_interaction: datetime | None = Field(None)
    segment_ids: list[UUID] | None = Field(
        None, description="Replacement segment set; omit to leave unchanged"
    )

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v: str | None) -> str | None:
        return v.lower() if v is not None else None

    @model_validator(mode="after")
    def validate_at_least_one_field(self) -> "CustomerUpdate":
        """Ensure at least one field is provided and required ones stay set."""
        provided = set(self.model_fields_set)
        if self.segment_ids is None:
            provided.discard("segment_ids")
        if not provided:
            raise ValueError("At least one field must be provided for update")
        for name in ("name", "email"):
            if name in self.model_fields_set and getattr(self, name) is None:
                raise ValueError(f"{name} cannot be cleared")
        return self

    def changes(self) -> dict[str, object]:
        """JSON-friendly changes for the fields the caller sent.

        Excludes the segment set. An explicit null clears an optional field
        and resets a defaulted one to its default.
        """
        changes = self.model_dump(
            mode="json", exclude_unset=True, exclude={"segment_ids"}
        )
        for name, value in changes.items():
            if value is None:
                default = Customer.model_fields[name].get_default(
                    call_default_factory=True
                )
                changes[name] = default.value if isinstance(default, Enum) else default
        return changes


class Customer(CustomerBase, IdentifiableModel):
    """Complete customer entity with all attributes."""

    segment_ids: list[UUID] = Field(
        default_factory=list, description="Authoritative segment membership"
    )
    policy_ids: list[UUID] = Field(
        default_factory=list, description="Customer policies held"
    )
    policy_types: list[PolicyType] = Field(
        default_factory=list, description="Product lines of policies held"
    )
    lifetime_value: float = Field(default=0, ge=0, description="Total premium")
    last_interaction: datetime | None = Field(None)
    version: int = Field(default=1, ge=1, description="Optimistic lock counter")
