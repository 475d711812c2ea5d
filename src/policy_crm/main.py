# PolicyCore - Policy Decision Management System
# Copyright (C) 2025 Luiz Frias <luizf35@gmail.com>
# Form F[x] Labs
#
# This software is dual-licensed under AGPL-3.0 and Commercial License.
# For commercial licensing, contact: luizf35@gmail.com
# See LICENSE file for full terms.

"""Policy CRM backend - application factory and entry point."""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import uvicorn
from beartype import beartype
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from redis.exceptions import RedisError

from . import __version__
from .api.response_patterns import APIResponseHandler
from .api.v1 import router as v1_router
from .core.cache import Cache
from .core.config import Settings, get_settings
from .core.database import Database
from .core.errors import ValidationFailure
from .core.logging_utils import configure_logging, get_logger
from .schemas.common import APIInfo
from .stores.memory import InMemoryStore
from .stores.postgres import PostgresStore

logger = get_logger(__name__)


async def _open_cache(settings: Settings) -> Cache | None:
    if not settings.report_cache_enabled:
        return None
    cache = Cache()
    try:
        await cache.connect()
        await cache.get("policy_crm:ping")
    except (RedisError, OSError) as exc:
        logger.warning("Report cache unavailable, serving uncached: %s", exc)
        await cache.disconnect()
        return None
    return cache


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Open the record store and report cache; close them on shutdown."""
    settings = get_settings()
    configure_logging(level=settings.log_level)
    get_logger("policy_crm", level=logging.getLevelName(settings.log_level))
    logger.info("Starting %s in %s mode", settings.app_name, settings.api_env)

    database: Database | None = None
    if getattr(app.state, "store", None) is None:
        if settings.store_backend == "memory":
            app.state.store = InMemoryStore()
        else:
            database = Database()
            await database.connect()
            app.state.store = PostgresStore(database)
        logger.info("Record store ready (%s)", settings.store_backend)
    app.state.database = database

    if getattr(app.state, "cache", None) is None:
        app.state.cache = await _open_cache(settings)

    yield

    logger.info("Shutting down %s", settings.app_name)
    if app.state.cache is not None:
        await app.state.cache.disconnect()
    if database is not None:
        await database.disconnect()


async def _validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    violations = [
        f"{'.'.join(str(part) for part in error['loc'])}: {error['msg']}"
        for error in exc.errors()
    ]
    body = APIResponseHandler.to_error_response(ValidationFailure(violations))
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content=body.model_dump(mode="json"),
    )


@beartype
def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title=settings.app_name,
        description="Customer, policy and claim management with dashboard reporting",
        version=__version__,
        docs_url="/docs" if not settings.is_production else None,
        redoc_url="/redoc" if not settings.is_production else None,
        openapi_url="/openapi.json" if not settings.is_production else None,
        lifespan=lifespan,
    )
    app.state.store = None
    app.state.database = None
    app.state.cache = None

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.api_cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_exception_handler(RequestValidationError, _validation_exception_handler)  # type: ignore[arg-type]

    app.include_router(v1_router)

    @app.get("/")
    async def root() -> APIInfo:
        """API information."""
        return APIInfo(
            name=settings.app_name,
            version=__version__,
            status="operational",
            environment=settings.api_env,
        )

    return app


@beartype
def run() -> None:
    """Run the API server."""
    settings = get_settings()

    uvicorn.run(
        "policy_crm.main:create_app",
        factory=True,
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.is_development,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    run()
