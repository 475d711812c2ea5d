# PolicyCore - Policy Decision Management System
# Copyright (C) 2025 Luiz Frias <luizf35@gmail.com>
# Form F[x] Labs
#
# This software is dual-licensed under AGPL-3.0 and Commercial License.
# For commercial licensing, contact: luizf35@gmail.com
# See LICENSE file for full terms.

"""Domain models."""

from .base import BaseModelConfig, IdentifiableModel
from .claim import ClaimCreate, ClaimDecision, ClaimPolicy, ClaimStatus
from .customer import (
    Customer,
    CustomerCreate,
    CustomerStatus,
    CustomerUpdate,
    EngagementScore,
    LifecycleStage,
    Location,
    PaymentBehavior,
)
from .entity import EntityType
from .policy import (
    CustomerPolicy,
    CustomerPolicyCreate,
    Policy,
    PolicyCreate,
    PolicyStatus,
    PolicyType,
    PolicyUpdate,
)
from .segment import Segment, SegmentCreate, SegmentUpdate

__all__ = [
    "BaseModelConfig",
    "IdentifiableModel",
    "ClaimCreate",
    "ClaimDecision",
    "ClaimPolicy",
    "ClaimStatus",
    "Customer",
    "CustomerCreate",
    "CustomerStatus",
    "CustomerUpdate",
    "EntityType",
    "EngagementScore",
    "LifecycleStage",
    "Location",
    "PaymentBehavior",
    "CustomerPolicy",
    "CustomerPolicyCreate",
    "Policy",
    "PolicyCreate",
    "PolicyStatus",
    "PolicyType",
    "PolicyUpdate",
    "Segment",
    "SegmentCreate",
    "SegmentUpdate",
]
