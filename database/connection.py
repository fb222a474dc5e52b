"""
Discovery Database Connection
Async PostgreSQL connection with session helpers
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import NullPool
from sqlalchemy import text

from core.config import DatabaseConfig, get_config

logger = logging.getLogger(__name__)


def create_engine(database: Optional[DatabaseConfig] = None) -> AsyncEngine:
    """Create an async engine from database configuration."""
    database = database or get_config().database
    return create_async_engine(
        database.url,
        echo=database.echo,
        poolclass=NullPool,  # Use NullPool for serverless environments
    )


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker:
    """Session factory bound to an engine."""
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


# Create async engine
engine = create_engine()

# Create async session factory
AsyncSessionLocal = create_session_factory(engine)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """
    Dependency that provides a database session.
    Commits when the caller finishes cleanly, rolls back on error.
    """
    async with AsyncSessionLocal() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


@asynccontextmanager
async def get_db_context() -> AsyncGenerator[AsyncSession, None]:
    """
    Context manager for database sessions.
    Usage:
        async with get_db_context() as db:
            service = DocumentMappingService(db)
            ...
    """
    async with AsyncSessionLocal() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


async def init_db(target: Optional[AsyncEngine] = None) -> None:
    """
    Initialize database - create extensions and tables.
    Call this on application startup (migrations are preferred in production).
    """
    from database.models import Base

    target = target or engine
    async with target.begin() as conn:
        if conn.dialect.name == "postgresql":
            await conn.execute(text("CREATE EXTENSION IF NOT EXISTS vector"))
        await conn.run_sync(Base.metadata.create_all)

    logger.info("Database initialized")


async def health_check() -> dict:
    """Check database connectivity."""
    try:
        async with AsyncSessionLocal() as session:
            result = await session.execute(text("SELECT 1"))
            result.scalar()
            return {"status": "healthy", "database": "connected"}
    except Exception as e:
        logger.warning("Database health check failed: %s", e)
        return {"status": "unhealthy", "database": str(e)}
