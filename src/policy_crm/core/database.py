# PolicyCore - Policy Decision Management System
# Copyright (C) 2025 Luiz Frias <luizf35@gmail.com>
# Form F[x] Labs
#
# This software is dual-licensed under AGPL-3.0 and Commercial License.
# For commercial licensing, contact: luizf35@gmail.com
# See LICENSE file for full terms.

"""Database connection management with asyncpg and connection pooling."""

import contextlib
import json
from collections.abc import AsyncIterator
from typing import Any

import asyncpg
from attrs import field, frozen
from beartype import beartype

from .config import Settings, get_settings
from .logging_utils import get_logger

logger = get_logger(__name__)


@frozen
class PoolConfig:
    """Immutable pool configuration."""

    url: str = field()
    min_connections: int = field(default=2)
    max_connections: int = field(default=10)
    connection_timeout: float = field(default=10.0)
    command_timeout: float = field(default=30.0)

    @classmethod
    def from_settings(cls, settings: Settings) -> "PoolConfig":
        return cls(
            url=settings.database_url,
            min_connections=settings.database_pool_min,
            max_connections=settings.database_pool_max,
            connection_timeout=settings.database_pool_timeout,
            command_timeout=settings.database_command_timeout,
        )


class Database:
    """Thin asyncpg pool wrapper shared by the PostgreSQL record store."""

    def __init__(self, config: PoolConfig | None = None) -> None:
        self._config = config or PoolConfig.from_settings(get_settings())
        self._pool: asyncpg.Pool | None = None

    @beartype
    async def _init_connection(self, conn: asyncpg.Connection) -> None:
        """Register the JSONB codec so documents round-trip as dicts."""
        await conn.set_type_codec(
            "jsonb",
            encoder=lambda v: json.dumps(v, default=str),
            decoder=json.loads,
            schema="pg_catalog",
        )

    @beartype
    async def connect(self) -> None:
        """Create the connection pool."""
        if self._pool is not None:
            return

        self._pool = await asyncpg.create_pool(
            self._config.url,
            min_size=self._config.min_connections,
            max_size=self._config.max_connections,
            command_timeout=self._config.command_timeout,
            init=self._init_connection,
        )
        logger.info(
            "Database pool ready (min=%d, max=%d)",
            self._config.min_connections,
            self._config.max_connections,
        )

    @beartype
    async def disconnect(self) -> None:
        """Close the connection pool."""
        if self._pool is not None:
            await self._pool.close()
        self._pool = None

    @contextlib.asynccontextmanager
    async def acquire(self) -> AsyncIterator[asyncpg.Connection]:
        """Acquire a pooled connection."""
        if self._pool is None:
            raise RuntimeError("Database not connected")

        async with self._pool.acquire(timeout=self._config.connection_timeout) as conn:
            yield conn

    @beartype
    async def execute(self, query: str, *args: Any) -> str:
        """Execute a query without returning results."""
        async with self.acquire() as conn:
            return await conn.execute(query, *args)

    @beartype
    async def fetch(self, query: str, *args: Any) -> list[Any]:
        """Execute a query and fetch all results."""
        async with self.acquire() as conn:
            return await conn.fetch(query, *args)

    @beartype
    async def fetchrow(self, query: str, *args: Any) -> Any:
        """Execute a query and fetch a single row."""
        async with self.acquire() as conn:
            return await conn.fetchrow(query, *args)

    @beartype
    async def fetchval(self, query: str, *args: Any) -> Any:
        """Execute a query and fetch a single value."""
        async with self.acquire() as conn:
            return await conn.fetchval(query, *args)

    @property
    def is_connected(self) -> bool:
        """Check if database is connected."""
        return self._pool is not None

