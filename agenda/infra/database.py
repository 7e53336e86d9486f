"""
Database Connection and Session Management

Provides async SQLAlchemy 2.0 engine, session factory, and dependencies
for database operations.
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

from sqlalchemy import text
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import NullPool

from agenda.config import settings
from agenda.models.database import Base


# Create async engine
engine = create_async_engine(
    settings.database_url,
    echo=settings.debug,
    poolclass=NullPool,
)

# Create session factory
async_session_factory = async_sessionmaker(
    bind=engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autoflush=False,
)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """
    FastAPI dependency that provides a database session.

    Commits on success and rolls back on exception. Booking operations
    commit on their own before notifying, so the final commit here is
    usually a no-op.

    Usage:
        @router.get("/example")
        async def example(db: AsyncSession = Depends(get_db)):
            result = await db.execute(select(Business))
            return result.scalars().all()

    Yields:
        AsyncSession: Database session
    """
    session = async_session_factory()
    try:
        yield session
        await session.commit()
    except Exception:
        await session.rollback()
        raise
    finally:
        await session.close()


@asynccontextmanager
async def get_db_context() -> AsyncGenerator[AsyncSession, None]:
    """
    Context manager for database sessions outside FastAPI.

    Usage:
        async with get_db_context() as db:
            result = await db.execute(select(Appointment))

    Yields:
        AsyncSession: Database session
    """
    session = async_session_factory()
    try:
        yield session
        await session.commit()
    except Exception:
        await session.rollback()
        raise
    finally:
        await session.close()


async def init_db() -> None:
    """
    Create all database tables.

    WARNING: This is for development only. In production, manage the
    schema with migrations.
    """
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def close_db() -> None:
    """Dispose the engine's connections on shutdown."""
    await engine.dispose()


async def check_db_health() -> bool:
    """
    Check database connectivity for health checks.

    Returns:
        bool: True if database is accessible, False otherwise
    """
    try:
        async with get_db_context() as db:
            await db.execute(text("SELECT 1"))
        return True
    except Exception:
        return False
