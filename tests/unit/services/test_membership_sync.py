"""Tests for customer/segment membership synchronisation."""

from uuid import UUID, uuid4

import pytest

from fixtures.factories import customer_create
from policy_crm.core.errors import Conflict, NotFound, StoreError
from policy_crm.models.customer import CustomerUpdate
from policy_crm.models.entity import EntityType
from policy_crm.services.customer_service import CustomerService
from policy_crm.services.membership_sync import (
    MembershipSynchronizer,
    plan_membership,
)
from policy_crm.stores.base import MembershipOp
from policy_crm.stores.memory import InMemoryStore

A = UUID(int=0xA)
B = UUID(int=0xB)
C = UUID(int=0xC)


class FlakyStore(InMemoryStore):
    """Fails membership writes for the segments in ``failing``."""

    def __init__(self) -> None:
        super().__init__()
        self.failing: set[UUID] = set()

    async def update_membership(
        self, segment_id: UUID, customer_id: UUID, op: MembershipOp
    ) -> bool:
        if segment_id in self.failing:
            raise StoreError(f"segment {segment_id} unavailable")
        return await super().update_membership(segment_id, customer_id, op)


@pytest.fixture
def flaky_store() -> FlakyStore:
    return FlakyStore()


async def make_segments(store: InMemoryStore, *ids: UUID) -> None:
    for segment_id in ids:
        await store.insert(
            EntityType.SEGMENT,
            {"name": f"segment-{segment_id.int}", "customer_ids": []},
            record_id=segment_id,
        )


async def members(store: InMemoryStore, segment_id: UUID) -> list[str]:
    segment = await store.get(EntityType.SEGMENT, segment_id)
    return segment["customer_ids"]


class TestPlanMembership:
    def test_delta_between_sets(self) -> None:
        plan = plan_membership({A, B}, {B, C})

        assert plan.added == {C}
        assert plan.removed == {A}
        assert not plan.is_noop

    def test_same_set_is_noop(self) -> None:
        assert plan_membership({A}, {A}).is_noop

    def test_listing_disagreement_repaired(self) -> None:
        plan = plan_membership({A, B}, {A, B}, listed_in={A, C})

        assert plan.added == {B}
        assert plan.removed == {C}

    def test_accepts_string_ids(self) -> None:
        plan = plan_membership([str(A)], [str(B)])

        assert plan.added == {B}
        assert plan.removed == {A}


class TestSegmentSync:
    """Both sides of the relationship follow customer writes."""

    async def test_create_adds_customer_to_segments(self, store: InMemoryStore) -> None:
        await make_segments(store, A, B)
        service = CustomerService(store)

        result = await service.create(customer_create(segment_ids=[A, B]))

        write = result.unwrap()
        customer_id = str(write.customer.id)
        assert set(write.customer.segment_ids) == {A, B}
        assert write.pending_segment_ids == ()
        assert await members(store, A) == [customer_id]
        assert await members(store, B) == [customer_id]

    async def test_replacing_segment_set(self, store: InMemoryStore) -> None:
        await make_segments(store, A, B, C)
        service = CustomerService(store)
        customer = (await service.create(customer_create(segment_ids=[A, B]))).unwrap().customer

        result = await service.update(customer.id, CustomerUpdate(segment_ids=[B, C]))

        updated = result.unwrap().customer
        assert updated.segment_ids == sorted([B, C], key=str)
        assert updated.version == customer.version + 1
        assert await members(store, A) == []
        assert await members(store, B) == [str(customer.id)]
        assert await members(store, C) == [str(customer.id)]

    async def test_field_changes_ride_along(self, store: InMemoryStore) -> None:
        await make_segments(store, A)
        service = CustomerService(store)
        customer = (await service.create(customer_create())).unwrap().customer

        result = await service.update(
            customer.id, CustomerUpdate(name="Ann B. Lee", segment_ids=[A])
        )

        assert result.unwrap().customer.name == "Ann B. Lee"
        assert await members(store, A) == [str(customer.id)]

    async def test_unknown_segment_writes_nothing(self, store: InMemoryStore) -> None:
        await make_segments(store, A)
        service = CustomerService(store)
        customer = (await service.create(customer_create(segment_ids=[A]))).unwrap().customer
        missing = uuid4()

        result = await service.update(customer.id, CustomerUpdate(segment_ids=[missing]))

        assert result.unwrap_err() == NotFound("Segment", str(missing))
        stored = await store.get(EntityType.CUSTOMER, customer.id)
        assert stored["version"] == customer.version
        assert stored["segment_ids"] == [str(A)]
        assert await members(store, A) == [str(customer.id)]

    async def test_create_with_unknown_segment_creates_nothing(
        self, store: InMemoryStore
    ) -> None:
        result = await CustomerService(store).create(customer_create(segment_ids=[uuid4()]))

        assert isinstance(result.unwrap_err(), NotFound)
        assert await store.count(EntityType.CUSTOMER) == 0

    async def test_stale_version_conflicts(self, store: InMemoryStore) -> None:
        await make_segments(store, A)
        service = CustomerService(store)
        customer = (await service.create(customer_create())).unwrap().customer
        await service.update(customer.id, CustomerUpdate(name="Changed"))

        result = await service.update(
            customer.id, CustomerUpdate(segment_ids=[A]), expected_version=customer.version
        )

        assert isinstance(result.unwrap_err(), Conflict)
        assert await members(store, A) == []

    async def test_failed_segment_write_reported_then_reconciled(
        self, flaky_store: FlakyStore
    ) -> None:
        await make_segments(flaky_store, A, B, C)
        service = CustomerService(flaky_store)
        customer = (
            await service.create(customer_create(segment_ids=[A, B]))
        ).unwrap().customer
        flaky_store.failing = {C}

        write = (
            await service.update(customer.id, CustomerUpdate(segment_ids=[B, C]))
        ).unwrap()

        assert write.pending_segment_ids == (C,)
        assert write.customer.segment_ids == sorted([B, C], key=str)
        assert await members(flaky_store, A) == []
        assert await members(flaky_store, C) == []

        flaky_store.failing = set()
        repaired = (await service.reconcile_segments(customer.id)).unwrap()

        assert repaired.pending_segment_ids == ()
        assert await members(flaky_store, C) == [str(customer.id)]
        assert await members(flaky_store, B) == [str(customer.id)]

    async def test_next_sync_self_heals(self, flaky_store: FlakyStore) -> None:
        await make_segments(flaky_store, A, B)
        service = CustomerService(flaky_store)
        flaky_store.failing = {A}
        customer = (await service.create(customer_create(segment_ids=[A]))).unwrap()

        assert customer.pending_segment_ids == (A,)

        flaky_store.failing = set()
        await service.update(customer.customer.id, CustomerUpdate(segment_ids=[A, B]))

        assert await members(flaky_store, A) == [str(customer.customer.id)]
        assert await members(flaky_store, B) == [str(customer.customer.id)]

    async def test_reconcile_removes_stale_listing(self, store: InMemoryStore) -> None:
        await make_segments(store, A, B)
        service = CustomerService(store)
        customer = (await service.create(customer_create(segment_ids=[A]))).unwrap().customer
        await store.update_membership(B, customer.id, MembershipOp.ADD)

        outcome = await MembershipSynchronizer(store).reconcile(customer.id)

        assert outcome.removed == (B,)
        assert not outcome.desynced
        assert await members(store, B) == []

    async def test_reconcile_missing_customer(self, store: InMemoryStore) -> None:
        result = await CustomerService(store).reconcile_segments(uuid4())

        assert isinstance(result.unwrap_err(), NotFound)
