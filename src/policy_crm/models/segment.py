# PolicyCore - Policy Decision Management System
# Copyright (C) 2025 Luiz Frias <luizf35@gmail.com>
# Form F[x] Labs
#
# This software is dual-licensed under AGPL-3.0 and Commercial License.
# For commercial licensing, contact: luizf35@gmail.com
# See LICENSE file for full terms.

"""Customer segment models."""

from uuid import UUID

from pydantic import Field

from .base import BaseModelConfig, IdentifiableModel


class SegmentCreate(BaseModelConfig):
    """Model for creating a segment."""

    name: str = Field(..., min_length=1, max_length=100, description="Unique name")


class SegmentUpdate(BaseModelConfig):
    """Model for renaming a segment."""

    name: str = Field(..., min_length=1, max_length=100)


class Segment(IdentifiableModel):
    """Named group of customers.

    ``customer_ids`` mirrors ``Customer.segment_ids``; the customer side is
    authoritative.
    """

    name: str = Field(..., min_length=1, max_length=100)
    customer_ids: list[UUID] = Field(default_factory=list)
