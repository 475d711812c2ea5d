# PolicyCore - Policy Decision Management System
# Copyright (C) 2025 Luiz Frias <luizf35@gmail.com>
# Form F[x] Labs
#
# This software is dual-licensed under AGPL-3.0 and Commercial License.
# For commercial licensing, contact: luizf35@gmail.com
# See LICENSE file for full terms.

"""Claim models."""

from enum import Enum
from uuid import UUID

from pydantic import Field

from .base import BaseModelConfig, IdentifiableModel


class ClaimStatus(str, Enum):
    """Claim decision states, in the order dashboards display them."""

    PENDING = "Pending"
    APPROVED = "Approved"
    REJECTED = "Rejected"


class ClaimCreate(BaseModelConfig):
    """A claim filed against an active customer policy."""

    customer_policy_id: UUID
    claim_amount: float = Field(..., gt=0)
    reason: str = Field(..., min_length=1, max_length=2000)


class ClaimDecision(BaseModelConfig):
    """New status for a pending claim."""

    status: ClaimStatus


class ClaimPolicy(IdentifiableModel):
    """A claim filed against a customer policy."""

    customer_policy_id: UUID
    customer_id: UUID
    policy_id: UUID
    claim_amount: float = Field(..., gt=0)
    reason: str = Field(..., min_length=1)
    status: ClaimStatus = Field(default=ClaimStatus.PENDING)
