"""
Database Connection Module
Handles PostgreSQL connection using SQLAlchemy async engine.

The engine is created on first use so that development mode, which keeps
orders in memory, never needs a database driver or server.
"""

import logging
from functools import lru_cache
from typing import AsyncIterator

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase

from qrmenu.core.config import get_settings

logger = logging.getLogger(__name__)


# Base class for all our models
class Base(DeclarativeBase):
    pass


@lru_cache()
def get_engine() -> AsyncEngine:
    """Create the async engine from DATABASE_URL."""
    settings = get_settings()

    if not settings.database_url:
        raise ValueError(
            "DATABASE_URL is required for the database-backed services. "
            "Set it in your .env file or environment variables."
        )

    return create_async_engine(
        settings.database_url,
        echo=settings.debug,  # Logs all SQL queries in debug mode
        pool_size=5,  # Connection pool size
        max_overflow=10  # Extra connections when pool is full
    )


@lru_cache()
def get_session_maker() -> async_sessionmaker[AsyncSession]:
    """Session factory - creates new database sessions."""
    return async_sessionmaker(
        bind=get_engine(),
        class_=AsyncSession,
        expire_on_commit=False  # Objects remain accessible after commit
    )


async def get_db() -> AsyncIterator[AsyncSession]:
    """
    Dependency injection for FastAPI routes.
    Yields a database session and ensures cleanup.
    """
    async with get_session_maker()() as session:
        try:
            yield session
        finally:
            await session.close()


async def init_db() -> None:
    """
    Create all tables in database.
    Called once at application startup.
    """
    # Register the tables on Base.metadata
    import qrmenu.models  # noqa: F401

    async with get_engine().begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database tables created successfully")


async def dispose_engine() -> None:
    """Close pooled connections if the engine was ever created."""
    if get_engine.cache_info().currsize:
        await get_engine().dispose()
