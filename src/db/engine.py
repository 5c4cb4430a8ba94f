"""Marketplace Settlement Engine - async MySQL engine and sessions.

The API process shares one engine. Celery tasks run each job in a fresh
event loop, so they build a short-lived engine of their own through
``create_session_factory``.
"""

from collections.abc import AsyncGenerator

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlmodel import SQLModel

from src.core.config import get_settings


def create_session_factory(pool_size: int = 10) -> tuple[AsyncEngine, sessionmaker]:
    """Engine plus a session factory that keeps objects usable after commit."""
    settings = get_settings()
    new_engine = create_async_engine(
        str(settings.database_url),
        echo=settings.debug,
        pool_pre_ping=True,
        pool_size=pool_size,
        max_overflow=pool_size * 2,
    )
    return new_engine, sessionmaker(new_engine, class_=AsyncSession, expire_on_commit=False)


engine, async_session_factory = create_session_factory()


async def init_db() -> None:
    """Create missing tables (development; production schema is Alembic's)."""
    import src.models  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)


async def close_db() -> None:
    await engine.dispose()


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """FastAPI dependency for read-side sessions.

    Nothing is committed here; settlement writes go through UnitOfWork.
    """
    async with async_session_factory() as session:
        yield session
