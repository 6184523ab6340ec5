"""Async engine, session factory and connectivity checks."""

import time
from collections.abc import AsyncGenerator
from typing import Any

import structlog
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from clinicflow.config import settings

logger = structlog.get_logger(__name__)


def to_async_url(url: str) -> str:
    """Convert a plain PostgreSQL URL to the asyncpg driver URL."""
    if url.startswith("postgresql+asyncpg://"):
        return url
    return url.replace("postgresql://", "postgresql+asyncpg://", 1)


def build_engine(url: str, **options: Any) -> AsyncEngine:
    """
    Create an asyncpg engine tagged with the application name.

    Pool settings default to the service's sizing; callers such as tests and
    migrations pass ``poolclass=NullPool`` instead.
    """
    if "poolclass" not in options:
        options.setdefault("pool_size", 10)
        options.setdefault("max_overflow", 20)
        options.setdefault("pool_recycle", 1800)
        options.setdefault("pool_pre_ping", True)
    return create_async_engine(
        to_async_url(url),
        echo=settings.debug,
        connect_args={"server_settings": {"application_name": settings.app_name}},
        **options,
    )


engine: AsyncEngine = build_engine(settings.database_url)

AsyncSessionLocal = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """
    Yield a request-scoped session.

    Services commit through the unit of work; anything left uncommitted when
    the request fails is rolled back here.
    """
    async with AsyncSessionLocal() as session:
        try:
            yield session
        except Exception:
            await session.rollback()
            raise


async def ping_database() -> float | None:
    """Round-trip ``SELECT 1`` and return the latency in milliseconds, or None if unreachable."""
    started = time.perf_counter()
    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
    except (SQLAlchemyError, OSError) as e:
        logger.warning("database_ping_failed", error=str(e))
        return None
    return round((time.perf_counter() - started) * 1000, 2)


async def check_database_connection() -> bool:
    """Check if database connection is healthy."""
    return await ping_database() is not None
