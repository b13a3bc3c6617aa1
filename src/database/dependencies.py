"""Database dependencies."""

from collections.abc import AsyncGenerator

from sqlalchemy.ext.asyncio import AsyncSession

from src.database.client import get_session


async def get_db_session() -> AsyncGenerator[AsyncSession]:
    """Get a request-scoped database session.

    Workflows commit their own unit of work; anything left pending when the
    request finishes is committed here, and an exception rolls it back.
    """
    async with get_session() as session:
        yield session
