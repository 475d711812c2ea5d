"""Test configuration and fixtures.

Services run against :class:`~policy_crm.stores.memory.InMemoryStore`; the
PostgreSQL store is exercised against a mocked asyncpg wrapper and the
report cache against fakeredis.
"""

from collections.abc import AsyncGenerator, Callable, Generator
from datetime import datetime
from typing import Any
from unittest.mock import AsyncMock, MagicMock
from uuid import UUID

import pytest
import pytest_asyncio
from fakeredis import FakeAsyncRedis
from fastapi import FastAPI
from fastapi.testclient import TestClient

from policy_crm.core.cache import Cache
from policy_crm.core.config import clear_settings_cache
from policy_crm.main import create_app
from policy_crm.models.entity import EntityType
from policy_crm.services.performance_monitor import performance_tracker
from policy_crm.stores.memory import InMemoryStore


@pytest.fixture(autouse=True)
def reset_singletons() -> Generator[None, None, None]:
    """Reset settings and operation statistics between tests."""
    clear_settings_cache()
    performance_tracker.reset_stats()
    yield
    clear_settings_cache()


@pytest.fixture
def store() -> InMemoryStore:
    return InMemoryStore()


@pytest.fixture
def seed(store: InMemoryStore) -> Callable[..., Any]:
    """Insert a raw document with an explicit creation time."""

    async def _seed(
        entity: EntityType, document: dict[str, Any], created_at: datetime | None = None
    ) -> dict[str, Any]:
        return await store.insert(entity, document, created_at=created_at)

    return _seed


@pytest.fixture
def seed_policy(seed: Callable[..., Any]) -> Callable[..., Any]:
    async def _seed_policy(
        name: str = "Vehicle Basic",
        policy_type: str = "Vehicle",
        premium: float = 100.0,
        status: str = "Active",
    ) -> dict[str, Any]:
        return await seed(
            EntityType.POLICY,
            {"name": name, "type": policy_type, "premium": premium, "status": status},
        )

    return _seed_policy


@pytest.fixture
def seed_sale(seed: Callable[..., Any]) -> Callable[..., Any]:
    """A customer policy sold at ``created_at``."""

    async def _seed_sale(
        policy_id: UUID,
        created_at: datetime,
        customer_id: UUID | None = None,
        status: str = "Active",
    ) -> dict[str, Any]:
        return await seed(
            EntityType.CUSTOMER_POLICY,
            {
                "customer_id": str(customer_id or UUID(int=1)),
                "policy_id": str(policy_id),
                "policy_number": "POL-2024-001",
                "status": status,
                "start_date": created_at.isoformat(),
                "end_date": None,
            },
            created_at,
        )

    return _seed_sale


@pytest.fixture
def mock_db() -> MagicMock:
    """Create mock database connection for testing."""
    db = MagicMock()
    db.fetchval = AsyncMock(return_value=None)
    db.fetchrow = AsyncMock(return_value=None)
    db.fetch = AsyncMock(return_value=[])
    db.execute = AsyncMock(return_value="UPDATE 1")
    return db


@pytest_asyncio.fixture
async def fake_redis() -> AsyncGenerator[FakeAsyncRedis, None]:
    """Create fake Redis client for testing."""
    client = FakeAsyncRedis(decode_responses=True)
    yield client
    await client.aclose()


@pytest.fixture
def report_cache(fake_redis: FakeAsyncRedis) -> Cache:
    return Cache(fake_redis)


@pytest.fixture
def app(store: InMemoryStore) -> FastAPI:
    """Application wired to the in-memory store; lifespan is not run."""
    application = create_app()
    application.state.store = store
    return application


@pytest.fixture
def client(app: FastAPI) -> TestClient:
    return TestClient(app)
