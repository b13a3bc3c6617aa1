"""Async SQLAlchemy engine and session lifecycle."""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Any

from sqlalchemy import text
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from src.config.settings import settings

logger = logging.getLogger(__name__)

_engine: AsyncEngine | None = None
_async_session_factory: async_sessionmaker[AsyncSession] | None = None


class DatabaseNotInitializedError(RuntimeError):
    def __init__(self) -> None:
        super().__init__("Database not initialized. Call init_db() first.")


def get_engine() -> AsyncEngine:
    if _engine is None:
        raise DatabaseNotInitializedError
    return _engine


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    if _async_session_factory is None:
        raise DatabaseNotInitializedError
    return _async_session_factory


def engine_options(url: str) -> dict[str, Any]:
    """Keyword arguments for ``create_async_engine`` suited to the backend.

    SQLite drivers use a static or null pool and reject the sizing options.
    """
    options: dict[str, Any] = {"echo": settings.postgres_echo}
    if make_url(url).get_backend_name() == "sqlite":
        return options
    options.update(
        pool_size=settings.postgres_pool_size,
        max_overflow=settings.postgres_max_overflow,
        pool_timeout=settings.postgres_pool_timeout,
        pool_recycle=settings.postgres_pool_recycle,
        pool_pre_ping=True,
    )
    return options


@asynccontextmanager
async def get_session() -> AsyncGenerator[AsyncSession]:
    """Yield a session that commits on normal exit and rolls back on error.

    Attributes stay loaded after commit, so DTOs can be built from accounts
    once the unit of work is done.
    """
    async with get_session_factory()() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


async def init_db() -> None:
    global _engine, _async_session_factory

    url = settings.postgres_url
    logger.info("Connecting to database at %s", make_url(url).render_as_string(hide_password=True))
    try:
        _engine = create_async_engine(url, **engine_options(url))
        _async_session_factory = async_sessionmaker(_engine, class_=AsyncSession, expire_on_commit=False)
        async with _engine.begin() as conn:
            await conn.execute(text("SELECT 1"))
    except Exception:
        logger.exception("Failed to initialize database")
        raise
    logger.info("Database connection successful")


async def create_tables() -> None:
    """Create any missing tables for the registered models."""
    # Model modules register their tables on Base.metadata when imported
    import src.features.account.models  # noqa: F401
    import src.features.auth.models  # noqa: F401
    from src.database.base import Base

    async with get_engine().begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database tables ensured")


async def close_db() -> None:
    global _engine, _async_session_factory

    if _engine is None:
        return
    logger.info("Closing database connection")
    await _engine.dispose()
    _engine = None
    _async_session_factory = None
