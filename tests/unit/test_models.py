"""Unit tests for domain models, results and error values."""

from datetime import datetime, timezone
from uuid import uuid4

import pytest
from pydantic import ValidationError

from policy_crm.core.errors import (
    ConcurrentModificationError,
    Conflict,
    DuplicateValueError,
    EntityNotFoundError,
    NotFound,
    StoreError,
    StoreFailure,
    ValidationFailure,
    from_store_error,
)
from policy_crm.core.result_types import Err, Ok, collect_results
from policy_crm.models.customer import Customer, CustomerCreate, CustomerUpdate
from policy_crm.models.policy import CustomerPolicy, PolicyCreate


class TestCustomerModels:
    def test_email_lowercased_and_tags_cleaned(self) -> None:
        customer = CustomerCreate(
            name="Ann", email="Ann@Example.COM", tags=["vip", "vip", "  ", "fleet "]
        )

        assert customer.email == "ann@example.com"
        assert customer.tags == ["vip", "fleet"]

    def test_extra_fields_forbidden(self) -> None:
        with pytest.raises(ValidationError):
            CustomerCreate(name="Ann", email="ann@example.com", favourite_colour="blue")

    def test_age_bounds(self) -> None:
        with pytest.raises(ValidationError):
            CustomerCreate(name="Ann", email="ann@example.com", age=151)

    def test_models_are_frozen(self) -> None:
        customer = CustomerCreate(name="Ann", email="ann@example.com")

        with pytest.raises(ValidationError):
            customer.name = "Bea"  # type: ignore[misc]

    def test_update_changes_exclude_segments(self) -> None:
        update = CustomerUpdate(name="Bea", segment_ids=[uuid4()])

        assert update.changes() == {"name": "Bea"}

    def test_update_changes_carry_explicit_nulls(self) -> None:
        update = CustomerUpdate.model_validate(
            {"phone": None, "age": None, "payment_behavior": None}
        )

        assert update.changes() == {
            "phone": None,
            "age": None,
            "payment_behavior": "On-time",
        }

    def test_update_cannot_clear_required_fields(self) -> None:
        with pytest.raises(ValidationError, match="name cannot be cleared"):
            CustomerUpdate.model_validate({"name": None})

    def test_update_of_null_segments_only_rejected(self) -> None:
        with pytest.raises(ValidationError):
            CustomerUpdate.model_validate({"segment_ids": None})

    def test_empty_update_rejected(self) -> None:
        with pytest.raises(ValidationError):
            CustomerUpdate()

    def test_from_record_ignores_unknown_keys(self) -> None:
        now = datetime.now(timezone.utc)
        record = {
            "id": uuid4(),
            "created_at": now,
            "updated_at": now,
            "version": 3,
            "name": "Ann",
            "email": "ann@example.com",
            "segment_ids": [str(uuid4())],
            "legacy_field": True,
        }

        customer = Customer.from_record(record)

        assert customer.version == 3
        assert len(customer.segment_ids) == 1


class TestPolicyModels:
    def test_policy_number_format(self) -> None:
        now = datetime.now(timezone.utc)
        base = {
            "id": uuid4(),
            "created_at": now,
            "updated_at": now,
            "customer_id": uuid4(),
            "policy_id": uuid4(),
            "start_date": now,
        }

        assert CustomerPolicy(**base, policy_number="POL-2024-1234").policy_number
        with pytest.raises(ValidationError):
            CustomerPolicy(**base, policy_number="POL-24-1")

    def test_unknown_policy_type(self) -> None:
        with pytest.raises(ValidationError):
            PolicyCreate(name="Pet", type="Pet", premium=10)


class TestResults:
    def test_ok_and_err(self) -> None:
        ok = Ok(2)
        err = Err(NotFound("Customer", "1"))

        assert ok.map(lambda value: value * 2) == Ok(4)
        assert err.map(lambda value: value * 2) is err
        assert err.unwrap_or(0) == 0
        with pytest.raises(ValueError):
            err.unwrap()
        with pytest.raises(ValueError):
            ok.unwrap_err()

    def test_collect_results(self) -> None:
        assert collect_results([Ok(1), Ok(2)]) == Ok([1, 2])
        assert collect_results([Ok(1), Err("x"), Err("y")]) == Err("x")


class TestErrors:
    def test_messages(self) -> None:
        assert ValidationFailure(["a", "b"]).message == "Validation failed: a; b"
        assert NotFound("Segment", "42").message == "Segment 42 not found"
        assert "save" in StoreFailure("save", "timeout").message

    @pytest.mark.parametrize(
        ("exc", "expected"),
        [
            (EntityNotFoundError("segments", "7"), NotFound("Segment", "7")),
            (
                DuplicateValueError("customers", "email", "a@x.io"),
                Conflict("Customer with this email already exists"),
            ),
            (StoreError("pool exhausted"), StoreFailure("op", "pool exhausted")),
        ],
    )
    def test_from_store_error(self, exc: StoreError, expected: object) -> None:
        assert from_store_error(exc, "op") == expected

    def test_concurrent_modification_is_conflict(self) -> None:
        error = from_store_error(ConcurrentModificationError("customers", "9", 2), "op")

        assert isinstance(error, Conflict)
        assert "expected version 2" in error.message
