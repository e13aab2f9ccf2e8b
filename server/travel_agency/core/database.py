"""Database configuration and async session management."""

from typing import Any, AsyncGenerator

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import declarative_base
from sqlalchemy.pool import StaticPool

from .config import settings


def build_engine(database_url: str, isolation_level: str | None = None, echo: bool = False) -> AsyncEngine:
    """
    Create an async engine for the booking database.

    PostgreSQL runs at the configured isolation level so that concurrent
    inventory updates fail with a serialization error instead of interleaving.
    In-memory SQLite shares a single connection across sessions.

    Args:
        database_url: SQLAlchemy async database URL
        isolation_level: Transaction isolation level, ignored for SQLite
        echo: Log emitted SQL

    Returns:
        AsyncEngine: Configured engine
    """
    kwargs: dict[str, Any] = {"echo": echo, "pool_pre_ping": True}
    if database_url.startswith("sqlite"):
        kwargs["connect_args"] = {"check_same_thread": False}
        if ":memory:" in database_url:
            kwargs["poolclass"] = StaticPool
    elif isolation_level:
        kwargs["isolation_level"] = isolation_level
    return create_async_engine(database_url, **kwargs)


def build_session_factory(bind: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Create a session factory bound to an engine."""
    return async_sessionmaker(
        bind,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


# Create async engine
engine = build_engine(
    settings.database_url,
    isolation_level=settings.database_isolation_level,
    echo=settings.debug,
)

# Create async session factory
async_session_factory = build_session_factory(engine)

# Create declarative base for models
Base = declarative_base()


async def get_async_session() -> AsyncGenerator[AsyncSession, None]:
    """
    Dependency function that yields database sessions.

    Yields:
        AsyncSession: Database session
    """
    async with async_session_factory() as session:
        try:
            yield session
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()


# Alias for FastAPI dependency injection
get_db = get_async_session


async def init_db() -> None:
    """Initialize the database by creating all tables."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def close_db() -> None:
    """Close database connections."""
    await engine.dispose()
