"""FastAPI application entry point."""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from prometheus_fastapi_instrumentator import Instrumentator
from starlette.exceptions import HTTPException as StarletteHTTPException

from clinicflow.api.v1.router import api_router
from clinicflow.config import Settings, settings
from clinicflow.core.exceptions import AppException
from clinicflow.database import check_database_connection, engine
from clinicflow.middleware.error_handler import (
    app_exception_handler,
    general_exception_handler,
    http_exception_handler,
    validation_exception_handler,
)
from clinicflow.middleware.logging import LoggingMiddleware, configure_logging

configure_logging()
logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Ping the database on startup and release the pool on shutdown."""
    logger.info(
        "workflow_api_starting",
        environment=settings.environment,
        clinic_timezone=settings.clinic_timezone,
        audit_failure_policy=settings.audit_failure_policy,
        smtp_configured=settings.smtp_configured,
    )

    database_ready = await check_database_connection()
    app.state.database_ready = database_ready
    if not database_ready:
        # Serve anyway; /health/detailed reports the outage
        logger.error("database_unreachable_at_startup")

    yield

    await engine.dispose()
    logger.info("workflow_api_stopped")


def register_exception_handlers(app: FastAPI) -> None:
    """Attach the JSON error handlers, most specific first."""
    handlers = (
        (AppException, app_exception_handler),
        (StarletteHTTPException, http_exception_handler),
        (RequestValidationError, validation_exception_handler),
        (Exception, general_exception_handler),
    )
    for exc_class, handler in handlers:
        app.add_exception_handler(exc_class, handler)  # type: ignore[arg-type]


def create_app(config: Settings = settings) -> FastAPI:
    """
    Build the workflow API.

    Interactive docs are only served outside production.

    Args:
        config: Application settings

    Returns:
        Configured FastAPI application
    """
    docs_enabled = not config.is_production
    application = FastAPI(
        title=config.app_name,
        version=config.app_version,
        description="Clinic appointment and consultation workflow API",
        docs_url="/docs" if docs_enabled else None,
        redoc_url="/redoc" if docs_enabled else None,
        openapi_url="/openapi.json" if docs_enabled else None,
        lifespan=lifespan,
    )

    application.add_middleware(
        CORSMiddleware,
        allow_origins=config.cors_origins,
        allow_credentials=config.cors_allow_credentials,
        allow_methods=["GET", "POST"],
        allow_headers=["Authorization", "Content-Type", "X-Request-ID"],
    )
    application.add_middleware(LoggingMiddleware)
    register_exception_handlers(application)
    application.include_router(api_router, prefix=config.api_v1_prefix)

    Instrumentator(
        should_group_status_codes=True,
        should_instrument_requests_inprogress=True,
        excluded_handlers=["/docs", "/redoc", "/openapi.json", "/metrics", f"{config.api_v1_prefix}/ping"],
        inprogress_labels=True,
    ).instrument(application).expose(application, endpoint="/metrics", include_in_schema=False)

    @application.get("/", tags=["Root"])
    async def root() -> dict[str, str]:
        """Service banner with the clinic's working hours."""
        return {
            "service": config.app_name,
            "version": config.app_version,
            "clinic_timezone": config.clinic_timezone,
            "opening_hours": f"{config.clinic_opening_time}-{config.clinic_closing_time}",
        }

    return application


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "clinicflow.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.reload,
        log_level=settings.log_level.lower(),
    )
