# PolicyCore - Policy Decision Management System
# Copyright (C) 2025 Luiz Frias <luizf35@gmail.com>
# Form F[x] Labs
#
# This software is dual-licensed under AGPL-3.0 and Commercial License.
# For commercial licensing, contact: luizf35@gmail.com
# See LICENSE file for full terms.

"""Record stores: interfaces, in-memory and PostgreSQL implementations."""

from .base import (
    DEFAULT_SORT,
    EntityStore,
    MembershipOp,
    Record,
    RecordSource,
    RecordStore,
    SortSpec,
)
from .memory import InMemoryStore
from .postgres import PostgresStore

__all__ = [
    "DEFAULT_SORT",
    "EntityStore",
    "MembershipOp",
    "Record",
    "RecordSource",
    "RecordStore",
    "SortSpec",
    "InMemoryStore",
    "PostgresStore",
]
