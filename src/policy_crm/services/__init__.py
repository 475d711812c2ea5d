# PolicyCore - Policy Decision Management System
# Copyright (C) 2025 Luiz Frias <luizf35@gmail.com>
# Form F[x] Labs
#
# This software is dual-licensed under AGPL-3.0 and Commercial License.
# For commercial licensing, contact: luizf35@gmail.com
# See LICENSE file for full terms.

"""Business services."""

from .claim_service import ClaimService
from .customer_policy_service import CustomerPolicyService
from .customer_service import CustomerService, CustomerWrite
from .membership_sync import (
    MembershipPlan,
    MembershipSynchronizer,
    SyncOutcome,
    plan_membership,
)
from .policy_service import PolicyService
from .report_service import ReportService
from .segment_service import SegmentService
from .sequence_service import SequenceService, format_policy_number

__all__ = [
    "ClaimService",
    "CustomerPolicyService",
    "CustomerService",
    "CustomerWrite",
    "MembershipPlan",
    "MembershipSynchronizer",
    "SyncOutcome",
    "plan_membership",
    "PolicyService",
    "ReportService",
    "SegmentService",
    "SequenceService",
    "format_policy_number",
]
