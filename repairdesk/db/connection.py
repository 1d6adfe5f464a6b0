"""Database connection and session management for RepairDesk.

Provides async SQLAlchemy session management with connection pooling.
"""

from __future__ import annotations

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from sqlalchemy import event
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from repairdesk.config import get_config
from repairdesk.db.models import Base

# Global engine instance
_engine: AsyncEngine | None = None
_session_factory: async_sessionmaker[AsyncSession] | None = None


def build_engine(url: str, echo: bool = False, **pool_kwargs) -> AsyncEngine:
    """Create an async engine for ``url``.

    SQLite connections get ``PRAGMA foreign_keys=ON`` so that foreign keys are
    enforced the same way PostgreSQL enforces them. The driver's implicit
    transaction handling is switched off and SQLAlchemy emits BEGIN itself,
    which keeps SAVEPOINTs (``session.begin_nested()``) inside the outer
    transaction.
    """
    engine_kwargs = {"echo": echo}

    # SQLite doesn't support connection pooling parameters
    if "sqlite" not in url.lower():
        engine_kwargs.update(pool_kwargs)

    engine = create_async_engine(url, **engine_kwargs)

    if "sqlite" in url.lower():

        @event.listens_for(engine.sync_engine, "connect")
        def _configure_sqlite(dbapi_connection, connection_record):
            dbapi_connection.isolation_level = None
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

        @event.listens_for(engine.sync_engine, "begin")
        def _begin_sqlite(conn):
            conn.exec_driver_sql("BEGIN")

    return engine


def build_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,  # Don't expire objects after commit
    )


def get_engine() -> AsyncEngine:
    """Get or create singleton async engine.

    Returns:
        AsyncEngine: SQLAlchemy async engine

    Raises:
        KeyError: If database URL is not configured
    """
    global _engine

    if _engine is None:
        db_config = get_config().db
        _engine = build_engine(
            db_config.url,
            echo=db_config.echo,
            pool_size=db_config.pool_size,
            max_overflow=db_config.pool_max_overflow,
            pool_timeout=db_config.pool_timeout,
            pool_pre_ping=True,  # Verify connections before using
            pool_recycle=3600,  # Recycle connections after 1 hour
        )

    return _engine


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    """Get or create session factory.

    Returns:
        async_sessionmaker: Session factory for creating AsyncSession instances
    """
    global _session_factory

    if _session_factory is None:
        _session_factory = build_session_factory(get_engine())

    return _session_factory


@asynccontextmanager
async def get_session() -> AsyncGenerator[AsyncSession, None]:
    """Get async database session (context manager).

    Usage:
        async with get_session() as session:
            storage = TenantStorage(session, org_id)
            await storage.delete_customer(customer_id)

    The session commits when the block exits normally and rolls back when it
    raises.

    Yields:
        AsyncSession: SQLAlchemy async session
    """
    session_factory = get_session_factory()
    session = session_factory()

    try:
        yield session
        await session.commit()
    except Exception:
        await session.rollback()
        raise
    finally:
        await session.close()


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """FastAPI dependency yielding one unit-of-work session per request."""
    async with get_session() as session:
        yield session


async def init_db(drop: bool = False) -> None:
    """Initialize database (create all tables).

    Note: For production, use migrations instead.
    This is a convenience function for development/testing.
    """
    engine = get_engine()

    async with engine.begin() as conn:
        if drop:
            await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)


async def close_db() -> None:
    """Close database engine and dispose connections.

    Call this on application shutdown.
    """
    global _engine, _session_factory

    if _engine is not None:
        await _engine.dispose()
        _engine = None
        _session_factory = None
