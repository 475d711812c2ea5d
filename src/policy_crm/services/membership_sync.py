# PolicyCore - Policy Decision Management System
# Copyright (C) 2025 Luiz Frias <luizf35@gmail.com>
# Form F[x] Labs
#
# This software is dual-licensed under AGPL-3.0 and Commercial License.
# For commercial licensing, contact: luizf35@gmail.com
# See LICENSE file for full terms.

"""Customer ⇄ segment membership synchronisation.

Membership is stored twice: ``customer.segment_ids`` and
``segment.customer_ids``. The customer's set is authoritative. Every change
writes the customer first (guarded by its optimistic ``version``), then
brings segment member lists in line, additions before removals, one write at
a time. Segment writes that fail after the customer write are not fatal:
they are logged as reconciliation tasks and reported in the
:class:`SyncOutcome`, and the next sync or :meth:`MembershipSynchronizer.reconcile`
repairs them because the delta is computed against what segments actually
list, not only against the previous customer set.
"""

from collections.abc import Iterable, Mapping
from typing import Any
from uuid import UUID

import attrs
from attrs import frozen
from beartype import beartype

from ..core.errors import EntityNotFoundError, StoreError
from ..core.logging_utils import get_logger
from ..filters.builder import FilterBuilder
from ..models.entity import EntityType
from ..stores.base import MembershipOp, Record, RecordStore, segment_document

logger = get_logger(__name__)


def _id_set(values: Iterable[Any]) -> frozenset[UUID]:
    return frozenset(value if isinstance(value, UUID) else UUID(str(value)) for value in values)


@frozen
class MembershipPlan:
    """Segments to add the customer to and to remove it from."""

    new_set: frozenset[UUID] = attrs.field(converter=frozenset)
    added: frozenset[UUID] = attrs.field(converter=frozenset)
    removed: frozenset[UUID] = attrs.field(converter=frozenset)

    @property
    def is_noop(self) -> bool:
        return not self.added and not self.removed


@frozen
class SyncOutcome:
    """Result of one synchronisation."""

    customer: Record
    added: tuple[UUID, ...] = ()
    removed: tuple[UUID, ...] = ()
    failed: tuple[UUID, ...] = ()

    @property
    def desynced(self) -> bool:
        """True when some segment writes failed and reconciliation is pending."""
        return bool(self.failed)


def plan_membership(
    old_set: Iterable[UUID],
    new_set: Iterable[UUID],
    listed_in: Iterable[UUID] | None = None,
) -> MembershipPlan:
    """Delta from ``old_set`` to ``new_set``.

    ``listed_in`` holds the segments that currently list the customer; when
    given, segments that disagree with ``new_set`` are repaired too.
    """
    old, new = _id_set(old_set), _id_set(new_set)
    added = new - old
    removed = old - new
    if listed_in is not None:
        listed = _id_set(listed_in)
        added = (added | (new - listed)) - listed
        removed = removed | (listed - new)
    return MembershipPlan(new_set=new, added=added, removed=removed)


class MembershipSynchronizer:
    """Applies customer segment changes to both sides of the relationship."""

    def __init__(self, store: RecordStore) -> None:
        self._store = store

    async def _customer(self, customer_id: UUID) -> Record:
        customer = await self._store.get(EntityType.CUSTOMER, customer_id)
        if customer is None:
            raise EntityNotFoundError(EntityType.CUSTOMER.value, customer_id)
        return customer

    async def _listing_segments(self, customer_id: UUID) -> frozenset[UUID]:
        predicate = (
            FilterBuilder().add_reference_set("customer_ids", [customer_id]).build()
        )
        segments = await self._store.query(EntityType.SEGMENT, predicate=predicate)
        return _id_set(segment["id"] for segment in segments)

    @beartype
    async def ensure_segments_exist(self, segment_ids: Iterable[UUID]) -> None:
        """Raise :class:`EntityNotFoundError` for the first unknown segment id."""
        wanted = sorted(_id_set(segment_ids), key=str)
        if not wanted:
            return
        found = await self._store.get_many(EntityType.SEGMENT, wanted)
        known = {record["id"] for record in found}
        for segment_id in wanted:
            if segment_id not in known:
                raise EntityNotFoundError(EntityType.SEGMENT.value, segment_id)

    @beartype
    async def apply(
        self, customer: Record, plan: MembershipPlan
    ) -> SyncOutcome:
        """Write segment deltas for an already-written customer.

        Failures are collected, not raised.
        """
        customer_id: UUID = customer["id"]
        failed: list[UUID] = []
        steps = [(segment_id, MembershipOp.ADD) for segment_id in sorted(plan.added, key=str)]
        steps += [
            (segment_id, MembershipOp.REMOVE) for segment_id in sorted(plan.removed, key=str)
        ]
        for segment_id, op in steps:
            try:
                await self._store.update_membership(segment_id, customer_id, op)
            except StoreError as exc:
                failed.append(segment_id)
                logger.warning(
                    "Reconciliation task: %s customer %s in segment %s failed: %s",
                    op.value,
                    customer_id,
                    segment_id,
                    exc,
                )
        return SyncOutcome(
            customer=customer,
            added=tuple(sorted(plan.added, key=str)),
            removed=tuple(sorted(plan.removed, key=str)),
            failed=tuple(failed),
        )

    @beartype
    async def sync(
        self,
        customer_id: UUID,
        new_set: Iterable[UUID],
        *,
        changes: Mapping[str, Any] | None = None,
        expected_version: int | None = None,
    ) -> SyncOutcome:
        """Store ``new_set`` (plus optional field ``changes``) and sync segments.

        Raises:
            EntityNotFoundError: customer or a segment in ``new_set`` is missing;
                nothing has been written.
            ConcurrentModificationError: the customer changed since it was read.
            StoreError: the customer write failed.
        """
        new_set = _id_set(new_set)
        customer = await self._customer(customer_id)
        await self.ensure_segments_exist(new_set)
        listed = await self._listing_segments(customer_id)
        plan = plan_membership(customer.get("segment_ids", ()), new_set, listed)

        version = expected_version if expected_version is not None else customer["version"]
        updated = await self._store.update_customer(
            customer_id, {**(changes or {}), **segment_document(new_set)}, version
        )
        return await self.apply(updated, plan)

    @beartype
    async def attach(self, customer: Record) -> SyncOutcome:
        """Add a freshly created customer to the segments it was created with."""
        plan = plan_membership((), customer.get("segment_ids", ()))
        return await self.apply(customer, plan)

    @beartype
    async def reconcile(self, customer_id: UUID) -> SyncOutcome:
        """Bring every segment in line with the customer's stored set."""
        customer = await self._customer(customer_id)
        current = _id_set(customer.get("segment_ids", ()))
        listed = await self._listing_segments(customer_id)
        plan = plan_membership(current, current, listed)
        outcome = await self.apply(customer, plan)
        if not plan.is_noop:
            logger.info(
                "Reconciled customer %s: %d add(s), %d removal(s), %d failed",
                customer_id,
                len(plan.added),
                len(plan.removed),
                len(outcome.failed),
            )
        return outcome
