"""Database connection and session management.

Transaction Guarantees:
- Each request gets its own session
- Lifecycle operations commit their own unit of work before notifying
- On any exception, the open transaction is rolled back
- Sessions are properly closed after each request
"""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
import logging
import ssl

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from ..repositories.sql import SqlRepositories
from .config import get_settings

logger = logging.getLogger(__name__)
settings = get_settings()

engine_kwargs: dict = {"echo": settings.database_echo}
connect_args: dict = {}

if not settings.is_sqlite:
    engine_kwargs.update(
        pool_size=settings.database_pool_size,
        max_overflow=settings.database_max_overflow,
        pool_pre_ping=True,  # Check connection health before use
        pool_recycle=300,
        pool_timeout=30,  # Bounded wait for a connection
    )
    if settings.environment == "production":
        ssl_context = ssl.create_default_context()
        connect_args["ssl"] = ssl_context
        # pgbouncer does not support prepared statements
        connect_args["statement_cache_size"] = 0
        logger.info("Using SSL for database connection")

logger.info(f"Database URL (masked): {settings.database_url_async[:30]}...")

engine = create_async_engine(
    settings.database_url_async,
    connect_args=connect_args,
    **engine_kwargs,
)

# Session factory - creates new sessions for each request
async_session_factory = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,  # Don't expire objects after commit
    autoflush=False,         # Manual flush for better control
)


async def get_session() -> AsyncGenerator[AsyncSession, None]:
    """
    Dependency that provides a transactional database session.

    Transaction Behavior:
    - Session starts in a transaction automatically
    - On successful completion: COMMIT (a no-op if the service already committed)
    - On any exception: ROLLBACK
    - Session is always closed properly
    """
    async with async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except SQLAlchemyError as e:
            await session.rollback()
            logger.error(f"Database error, transaction rolled back: {e}")
            raise
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()


@asynccontextmanager
async def get_session_context() -> AsyncGenerator[AsyncSession, None]:
    """Context manager for database sessions (for use outside FastAPI)."""
    async with async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()


async def init_db() -> None:
    """Initialize database (create tables if needed)."""
    from ..models import Base

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def close_db() -> None:
    """Close database connections."""
    await engine.dispose()


@asynccontextmanager
async def repositories_context() -> AsyncGenerator[SqlRepositories, None]:
    """A unit of work outside a request, used by the notification workers."""
    async with get_session_context() as session:
        yield SqlRepositories(session)
