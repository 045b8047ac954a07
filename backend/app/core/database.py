"""
Database connection management with SQLAlchemy async.
Provides session dependency injection and connection pooling.
"""
import re
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Annotated

from fastapi import Depends
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase
from sqlalchemy.pool import StaticPool

from app.core.config import settings
from app.core.errors import PersistenceError
from app.core.logging import get_logger

logger = get_logger(__name__)

# Flag to track if database is available
_db_available: bool = False


class Base(DeclarativeBase):
    """SQLAlchemy declarative base for all models."""
    pass


def normalize_database_url(url: str) -> str:
    """Convert postgresql:// to postgresql+asyncpg://."""
    if url.startswith("postgresql://"):
        return url.replace("postgresql://", "postgresql+asyncpg://", 1)
    return url


def create_engine() -> AsyncEngine:
    """Create async database engine with proper configuration."""
    database_url = normalize_database_url(settings.database_url)

    sanitized = re.sub(r":([^:@/]+)@", ":***@", database_url)
    logger.info("Configuring database engine", url=sanitized)

    if database_url.startswith("sqlite"):
        # Single shared connection so in-memory databases survive across sessions
        return create_async_engine(
            database_url,
            echo=settings.database_echo,
            poolclass=StaticPool,
            connect_args={"check_same_thread": False},
        )

    return create_async_engine(
        database_url,
        pool_size=settings.database_pool_size,
        max_overflow=settings.database_max_overflow,
        echo=settings.database_echo,
        pool_pre_ping=True,  # Verify connections before use
    )


# Global engine and session factory
engine = create_engine()
async_session_factory = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autoflush=False,
)


async def get_db_session() -> AsyncGenerator[AsyncSession, None]:
    """
    Dependency that provides a database session with automatic cleanup.

    Commits when the request handler returns, rolls back on any error.
    Database failures surface as PersistenceError.
    """
    if not _db_available:
        raise PersistenceError("Database unavailable")

    async with async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except SQLAlchemyError as e:
            await session.rollback()
            raise PersistenceError(f"Database operation failed: {e}") from e
        except Exception:
            await session.rollback()
            raise


# Type alias for dependency injection
DbSession = Annotated[AsyncSession, Depends(get_db_session)]


@asynccontextmanager
async def get_db_context() -> AsyncGenerator[AsyncSession, None]:
    """Context manager for database sessions outside of request context."""
    async with async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


async def init_db() -> None:
    """
    Create any missing tables.

    Alembic migrations are authoritative in deployments; this keeps local
    runs and tests working without a migration step.
    """
    global _db_available
    # Import models so every table is registered on Base.metadata
    import app.models  # noqa: F401

    try:
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        _db_available = True
        logger.info("Database initialized")
    except (SQLAlchemyError, OSError) as e:
        _db_available = False
        logger.error("Database connection failed", error=str(e))


def is_db_available() -> bool:
    """Check if database is available."""
    return _db_available


async def close_db() -> None:
    """Close database connections."""
    await engine.dispose()
    logger.info("Database connections closed")
