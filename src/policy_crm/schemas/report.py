# PolicyCore - Policy Decision Management System
# Copyright (C) 2025 Luiz Frias <luizf35@gmail.com>
# Form F[x] Labs
#
# This software is dual-licensed under AGPL-3.0 and Commercial License.
# For commercial licensing, contact: luizf35@gmail.com
# See LICENSE file for full terms.

"""Dashboard report request and response schemas."""

from datetime import date

from pydantic import AliasChoices, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel

from ..models.base import BaseModelConfig
from ..models.policy import PolicyType
from ..reporting.periods import Granularity


class _CamelModel(BaseModelConfig):
    """Accepts snake or camel case input, serialises as camel case."""

    model_config = ConfigDict(
        frozen=True,
        extra="forbid",
        validate_assignment=True,
        str_strip_whitespace=True,
        validate_default=True,
        alias_generator=to_camel,
        populate_by_name=True,
    )


class ReportRequest(_CamelModel):
    """Time-series report window; both dates inclusive, interpreted in UTC."""

    start_date: date
    end_date: date
    granularity: Granularity = Field(
        default=Granularity.DAY,
        validation_alias=AliasChoices("granularity", "type"),
    )

    @model_validator(mode="after")
    def validate_range(self) -> "ReportRequest":
        if self.start_date > self.end_date:
            raise ValueError("startDate must not be after endDate")
        return self


class SummaryRequest(_CamelModel):
    """Optional window for totals; either bound may be absent."""

    start_date: date | None = None
    end_date: date | None = None

    @model_validator(mode="after")
    def validate_range(self) -> "SummaryRequest":
        if (
            self.start_date is not None
            and self.end_date is not None
            and self.start_date > self.end_date
        ):
            raise ValueError("startDate must not be after endDate")
        return self


class DashboardSummary(_CamelModel):
    """Headline totals."""

    total_customers: int = Field(..., ge=0)
    total_active_policies: int = Field(..., ge=0)
    total_revenue: float = Field(..., ge=0)
    total_claims: int = Field(..., ge=0)


class PolicyDistributionRow(_CamelModel):
    policy_type: PolicyType
    customer_count: int = Field(..., ge=0)
