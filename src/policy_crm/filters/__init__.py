# PolicyCore - Policy Decision Management System
# Copyright (C) 2025 Luiz Frias <luizf35@gmail.com>
# Form F[x] Labs
#
# This software is dual-licensed under AGPL-3.0 and Commercial License.
# For commercial licensing, contact: luizf35@gmail.com
# See LICENSE file for full terms.

"""Dynamic filter construction for entity search."""

from .builder import FilterBuilder, FilterValidationError, normalize_reference_id
from .parsing import (
    ParsedFilterRequest,
    build_customer_predicate,
    parse_query_params,
    validate_filter_request,
)
from .predicate import MATCH_ALL, FilterPredicate, get_path

__all__ = [
    "FilterBuilder",
    "FilterValidationError",
    "normalize_reference_id",
    "ParsedFilterRequest",
    "build_customer_predicate",
    "parse_query_params",
    "validate_filter_request",
    "MATCH_ALL",
    "FilterPredicate",
    "get_path",
]
