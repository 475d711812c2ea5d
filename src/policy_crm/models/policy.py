# PolicyCore - Policy Decision Management System
# Copyright (C) 2025 Luiz Frias <luizf35@gmail.com>
# Form F[x] Labs
#
# This software is dual-licensed under AGPL-3.0 and Commercial License.
# For commercial licensing, contact: luizf35@gmail.com
# See LICENSE file for full terms.

"""Policy catalogue and customer policy models."""

from datetime import datetime
from enum import Enum
from uuid import UUID

from pydantic import Field, model_validator

from .base import BaseModelConfig, IdentifiableModel


class PolicyType(str, Enum):
    """Product lines offered."""

    VEHICLE = "Vehicle"
    TRAVEL = "Travel"
    CONCIERGE = "Concierge"


class PolicyStatus(str, Enum):
    """Lifecycle states shared by catalogue and customer policies."""

    ACTIVE = "Active"
    EXPIRED = "Expired"
    CANCELLED = "Cancelled"


class PolicyCreate(BaseModelConfig):
    """Model for adding a policy to the catalogue."""

    name: str = Field(..., min_length=1, max_length=200, description="Unique name")
    type: PolicyType = Field(..., description="Product line")
    premium: float = Field(..., gt=0, description="Premium charged on purchase")
    status: PolicyStatus = Field(default=PolicyStatus.ACTIVE)


class PolicyUpdate(BaseModelConfig):
    """Partial catalogue policy update."""

    name: str | None = Field(None, min_length=1, max_length=200)
    type: PolicyType | None = Field(None)
    premium: float | None = Field(None, gt=0)
    status: PolicyStatus | None = Field(None)

    @model_validator(mode="after")
    def validate_at_least_one_field(self) -> "PolicyUpdate":
        if all(getattr(self, name) is None for name in type(self).model_fields):
            raise ValueError("At least one field must be provided for update")
        return self


class Policy(IdentifiableModel):
    """Catalogue policy a customer can buy."""

    name: str = Field(..., min_length=1, max_length=200)
    type: PolicyType = Field(..., description="Product line")
    premium: float = Field(..., ge=0, description="Premium charged on purchase")
    status: PolicyStatus = Field(default=PolicyStatus.ACTIVE)


class CustomerPolicyCreate(BaseModelConfig):
    """A customer buying a catalogue policy."""

    customer_id: UUID
    policy_id: UUID


class CustomerPolicy(IdentifiableModel):
    """A policy held by a customer."""

    customer_id: UUID
    policy_id: UUID
    policy_number: str = Field(..., pattern=r"^POL-\d{4}-\d{3,}$")
    status: PolicyStatus = Field(default=PolicyStatus.ACTIVE)
    start_date: datetime
    end_date: datetime | None = Field(None)
