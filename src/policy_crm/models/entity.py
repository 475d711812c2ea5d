# PolicyCore - Policy Decision Management System
# Copyright (C) 2025 Luiz Frias <luizf35@gmail.com>
# Form F[x] Labs
#
# This software is dual-licensed under AGPL-3.0 and Commercial License.
# For commercial licensing, contact: luizf35@gmail.com
# See LICENSE file for full terms.

"""Entity kinds held by the record store."""

from enum import Enum


class EntityType(str, Enum):
    """Record collections; values double as table names."""

    CUSTOMER = "customers"
    SEGMENT = "segments"
    POLICY = "policies"
    CUSTOMER_POLICY = "customer_policies"
    CLAIM = "claims"
