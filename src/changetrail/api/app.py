"""FastAPI application factory."""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI

from changetrail import __version__
from changetrail.api.routes import audit_router, health_router
from changetrail.audit.service import AuditLogService
from changetrail.audit.store import SqlAlchemyAuditStore
from changetrail.config import Settings, get_settings
from changetrail.core.database import (
    create_engine_from_settings,
    create_schema,
    create_session_factory,
)
from changetrail.core.errors.handlers import register_exception_handlers
from changetrail.core.logging import RequestLoggingMiddleware, configure_logging


logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler."""
    settings: Settings = app.state.settings
    logger.info(
        "application_startup",
        app_name=settings.app_name,
        environment=settings.environment,
    )

    yield

    logger.info("application_shutdown")
    engine = getattr(app.state, "engine", None)
    if engine is not None:
        engine.dispose()
        logger.info("database_engine_disposed")


def _default_service(app: FastAPI, settings: Settings) -> AuditLogService:
    engine = create_engine_from_settings(settings)
    create_schema(engine)
    app.state.engine = engine
    return AuditLogService(SqlAlchemyAuditStore(create_session_factory(engine)))


def create_app(
    service: AuditLogService | None = None,
    settings: Settings | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        service: Audit service to query; defaults to one backed by the
            configured database
        settings: Settings override, mainly for tests

    Returns:
        Configured FastAPI application instance.
    """
    settings = settings or get_settings()
    configure_logging(settings)

    app = FastAPI(
        title=settings.app_name,
        description="Audit trail query API",
        version=__version__,
        debug=settings.debug,
        lifespan=lifespan,
        # Disable docs in production
        docs_url="/docs" if not settings.is_production else None,
        redoc_url="/redoc" if not settings.is_production else None,
        openapi_url="/openapi.json" if not settings.is_production else None,
    )

    app.state.settings = settings
    app.state.audit_service = service or _default_service(app, settings)

    app.add_middleware(RequestLoggingMiddleware)

    # Register exception handlers for RFC 7807 error responses
    register_exception_handlers(app)

    app.include_router(health_router)
    app.include_router(audit_router)

    return app
