"""Unit tests for application wiring and settings."""

from unittest.mock import AsyncMock, patch

import pytest
from fastapi.testclient import TestClient
from pydantic import ValidationError
from redis.exceptions import ConnectionError as RedisConnectionError

from policy_crm.core.cache import Cache
from policy_crm.core.config import Settings, clear_settings_cache, get_settings
from policy_crm.main import _open_cache, create_app
from policy_crm.stores.memory import InMemoryStore


class TestSettings:
    def test_defaults(self) -> None:
        settings = Settings()

        assert settings.store_backend == "postgres"
        assert settings.default_page_size == 10
        assert settings.report_cache_enabled is True

    def test_environment_override(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("STORE_BACKEND", "memory")
        monkeypatch.setenv("MAX_PAGE_SIZE", "50")
        clear_settings_cache()

        settings = get_settings()

        assert settings.store_backend == "memory"
        assert settings.max_page_size == 50
        assert get_settings() is settings

    def test_unknown_backend_rejected(self) -> None:
        with pytest.raises(ValidationError):
            Settings(store_backend="sqlite")

    def test_settings_are_frozen(self) -> None:
        settings = Settings()

        with pytest.raises(ValidationError):
            settings.api_port = 1  # type: ignore[misc]


class TestLifespan:
    def test_memory_backend_without_cache(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("STORE_BACKEND", "memory")
        monkeypatch.setenv("REPORT_CACHE_ENABLED", "false")
        clear_settings_cache()
        app = create_app()

        with TestClient(app) as client:
            assert isinstance(app.state.store, InMemoryStore)
            assert app.state.cache is None
            assert client.get("/api/v1/health").json()["status"] == "healthy"

    async def test_unreachable_cache_is_skipped(self) -> None:
        with patch.object(Cache, "get", AsyncMock(side_effect=RedisConnectionError("refused"))):
            cache = await _open_cache(get_settings())

        assert cache is None

    async def test_cache_disabled(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("REPORT_CACHE_ENABLED", "false")
        clear_settings_cache()

        assert await _open_cache(get_settings()) is None


def test_request_validation_errors_are_400(client: TestClient) -> None:
    response = client.post("/api/v1/segments", json={"name": ""})

    assert response.status_code == 400
    body = response.json()
    assert body["success"] is False
    assert body["error_code"] == "validation_failed"
    assert body["details"]["violations"][0].startswith("body.name")
