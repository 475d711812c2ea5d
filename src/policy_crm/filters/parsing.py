# PolicyCore - Policy Decision Management System
# Copyright (C) 2025 Luiz Frias <luizf35@gmail.com>
# Form F[x] Labs
#
# This software is dual-licensed under AGPL-3.0 and Commercial License.
# For commercial licensing, contact: luizf35@gmail.com
# See LICENSE file for full terms.

"""Normalisation of loosely-typed search query parameters.

Query strings arrive as flat, optional, string-valued parameters where list
parameters may be repeated (``tags=a&tags=b``), comma-joined (``tags=a,b``)
or bracketed (``tags[]=a``). :func:`parse_query_params` turns them into a
validated :class:`ParsedFilterRequest`; :func:`validate_filter_request`
applies the domain bounds and collects every violation;
:func:`build_customer_predicate` hands the result to the
:class:`~policy_crm.filters.builder.FilterBuilder`.
"""

from collections.abc import Iterable, Mapping
from datetime import date, datetime
from typing import Any, Literal

from beartype import beartype
from pydantic import Field, ValidationError, field_validator

from ..models.base import BaseModelConfig
from ..models.customer import (
    CustomerStatus,
    EngagementScore,
    LifecycleStage,
    PaymentBehavior,
)
from ..models.policy import PolicyType
from .builder import FilterBuilder, FilterValidationError
from .predicate import FilterPredicate

LIST_PARAMS = frozenset(
    {
        "tags",
        "segment_ids",
        "status",
        "lifecycle_stage",
        "engagement_score",
        "payment_behavior",
        "policy_type",
    }
)

SORT_FIELDS: dict[str, str] = {
    "created_at": "created_at",
    "createdAt": "created_at",
    "updated_at": "updated_at",
    "updatedAt": "updated_at",
    "name": "name",
    "email": "email",
    "age": "age",
    "lifetime_value": "lifetime_value",
    "lifetimeValue": "lifetime_value",
}

Number = int | float


def _allowed(enum_type: type) -> tuple[str, ...]:
    return tuple(member.value for member in enum_type)


LIFECYCLE_STAGES = _allowed(LifecycleStage)
ENGAGEMENT_SCORES = _allowed(EngagementScore)
PAYMENT_BEHAVIORS = _allowed(PaymentBehavior)
CUSTOMER_STATUSES = _allowed(CustomerStatus)
POLICY_TYPES = _allowed(PolicyType)


class ParsedFilterRequest(BaseModelConfig):
    """Typed, normalised search request."""

    search: str | None = None
    location_city: str | None = None
    location_state: str | None = None
    location_country: str | None = None
    age_min: Number | None = None
    age_max: Number | None = None
    premium_min: Number | None = None
    premium_max: Number | None = None
    policies_min: int | None = None
    policies_max: int | None = None
    tags: tuple[str, ...] = ()
    segment_ids: tuple[str, ...] = ()
    status: tuple[str, ...] = ()
    lifecycle_stage: tuple[str, ...] = ()
    engagement_score: tuple[str, ...] = ()
    payment_behavior: tuple[str, ...] = ()
    policy_type: tuple[str, ...] = ()
    created_after: date | datetime | None = None
    created_before: date | datetime | None = None
    page: int = Field(default=1, ge=1)
    limit: int = Field(default=10, ge=1)
    sort_field: str = "created_at"
    sort_order: Literal["asc", "desc"] = "desc"

    @field_validator("sort_field", mode="before")
    @classmethod
    def normalize_sort_field(cls, v: Any) -> str:
        if v not in SORT_FIELDS:
            raise ValueError(f"must be one of: {', '.join(sorted(set(SORT_FIELDS.values())))}")
        return SORT_FIELDS[v]

    @field_validator("sort_order", mode="before")
    @classmethod
    def normalize_sort_order(cls, v: Any) -> str:
        """Anything other than ``asc`` sorts descending."""
        return "asc" if str(v).strip().lower() == "asc" else "desc"

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit

    @property
    def location(self) -> dict[str, str | None]:
        return {
            "city": self.location_city,
            "state": self.location_state,
            "country": self.location_country,
        }


def _split(values: Iterable[str]) -> list[str]:
    items: list[str] = []
    for value in values:
        items.extend(part.strip() for part in value.split(","))
    return [item for item in items if item]


def _collect(
    params: Mapping[str, str | list[str]] | Iterable[tuple[str, str]],
) -> dict[str, list[str]]:
    pairs: Iterable[tuple[str, Any]]
    pairs = params.items() if isinstance(params, Mapping) else params
    collected: dict[str, list[str]] = {}
    for key, value in pairs:
        key = key[:-2] if key.endswith("[]") else key
        values = value if isinstance(value, list) else [value]
        collected.setdefault(key, []).extend(str(item) for item in values)
    return collected


def _describe(errors: Iterable[Mapping[str, Any]]) -> dict[str, str]:
    """One message per offending parameter, keyed by parameter name.

    A union such as ``int | float`` reports once per member; the last
    member's message is kept.
    """
    messages: dict[str, str] = {}
    for error in errors:
        location = str(error["loc"][0]) if error["loc"] else "query"
        messages[location] = f"{location}: {error['msg']}"
    return messages


@beartype
def parse_query_params(
    params: Mapping[str, str | list[str]] | Iterable[tuple[str, str]],
    *,
    default_limit: int = 10,
    max_limit: int = 100,
) -> ParsedFilterRequest:
    """Normalise raw query parameters.

    Blank values are treated as absent and unknown keys are ignored.
    ``limit`` is capped at ``max_limit``. Unparseable values raise
    :class:`FilterValidationError` listing every offending parameter along
    with the domain violations of the parameters that did parse.
    """
    collected = _collect(params)
    raw: dict[str, Any] = {}
    for name in ParsedFilterRequest.model_fields:
        values = collected.get(name)
        if not values:
            continue
        if name in LIST_PARAMS:
            items = _split(values)
            if items:
                raw[name] = tuple(dict.fromkeys(items))
            continue
        value = values[-1].strip()
        if value:
            raw[name] = value
    raw.setdefault("limit", default_limit)

    try:
        parsed = ParsedFilterRequest.model_validate(raw)
    except ValidationError as exc:
        messages = _describe(exc.errors())
        parsable = {key: value for key, value in raw.items() if key not in messages}
        remainder = ParsedFilterRequest.model_validate(parsable)
        raise FilterValidationError(
            [*messages.values(), *validate_filter_request(remainder)]
        ) from exc

    if parsed.limit > max_limit:
        parsed = parsed.model_copy(update={"limit": max_limit})
    return parsed


def _check_range(
    violations: list[str],
    label: str,
    minimum: Number | None,
    maximum: Number | None,
    *,
    lower: Number = 0,
    upper: Number | None = None,
) -> None:
    for bound_name, value in (("minimum", minimum), ("maximum", maximum)):
        if value is None:
            continue
        if upper is not None and not lower <= value <= upper:
            violations.append(f"{label} {bound_name} must be between {lower} and {upper}")
        elif upper is None and value < lower:
            violations.append(
                f"{label} {bound_name} must be greater than or equal to {lower}"
            )
    if minimum is not None and maximum is not None and minimum > maximum:
        violations.append(f"{label} minimum cannot be greater than maximum")


def _check_enum(
    violations: list[str], label: str, values: tuple[str, ...], allowed: tuple[str, ...]
) -> None:
    for value in values:
        if value not in allowed:
            violations.append(
                f"Invalid {label} {value!r}. Must be one of: {', '.join(allowed)}"
            )


@beartype
def validate_filter_request(request: ParsedFilterRequest) -> list[str]:
    """Every violated bound or vocabulary rule; empty when the request is valid."""
    violations: list[str] = []
    _check_range(violations, "Age", request.age_min, request.age_max, upper=150)
    _check_range(violations, "Premium", request.premium_min, request.premium_max)
    _check_range(
        violations, "Policies count", request.policies_min, request.policies_max
    )
    _check_enum(violations, "lifecycle stage", request.lifecycle_stage, LIFECYCLE_STAGES)
    _check_enum(
        violations, "engagement score", request.engagement_score, ENGAGEMENT_SCORES
    )
    _check_enum(
        violations, "payment behavior", request.payment_behavior, PAYMENT_BEHAVIORS
    )
    _check_enum(violations, "status", request.status, CUSTOMER_STATUSES)
    _check_enum(violations, "policy type", request.policy_type, POLICY_TYPES)
    if request.created_after is not None and request.created_before is not None:
        after = request.created_after
        before = request.created_before
        if isinstance(after, datetime):
            after = after.date()
        if isinstance(before, datetime):
            before = before.date()
        if after > before:
            violations.append("created_after cannot be later than created_before")
    return violations


@beartype
def build_customer_predicate(
    request: ParsedFilterRequest, builder: FilterBuilder | None = None
) -> FilterPredicate:
    """Translate a parsed request into a customer search predicate.

    Raises :class:`FilterValidationError` when the request breaks any rule
    checked by :func:`validate_filter_request`.
    """
    violations = validate_filter_request(request)
    if violations:
        raise FilterValidationError(violations)

    builder = (builder or FilterBuilder()).reset()
    return (
        builder.add_search(request.search)
        .add_nested_contains("location", request.location)
        .add_range("age", request.age_min, request.age_max, label="Age")
        .add_range(
            "lifetime_value",
            request.premium_min,
            request.premium_max,
            label="Premium",
        )
        .add_range(
            "policy_ids",
            request.policies_min,
            request.policies_max,
            measure="length",
            label="Policies count",
        )
        .add_membership("tags", request.tags, None, array_field=True)
        .add_membership("status", request.status, CUSTOMER_STATUSES)
        .add_membership(
            "lifecycle_stage", request.lifecycle_stage, LIFECYCLE_STAGES
        )
        .add_membership(
            "engagement_score", request.engagement_score, ENGAGEMENT_SCORES
        )
        .add_membership(
            "payment_behavior", request.payment_behavior, PAYMENT_BEHAVIORS
        )
        .add_membership(
            "policy_types", request.policy_type, POLICY_TYPES, array_field=True
        )
        .add_reference_set("segment_ids", request.segment_ids)
        .add_date_range("created_at", request.created_after, request.created_before)
        .build()
    )
