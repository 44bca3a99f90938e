"""
Database Persistence Layer - Core Engine.

============================================================
RELATIONAL STORE ENGINE
============================================================

Async SQLAlchemy engine and session management for the
relational cache that backs batch lookups, the scan ledger,
alerts and the audit trail.

Requirements:
- SQLAlchemy 2.x ORM with an async driver
  (asyncpg in production, aiosqlite for local runs/tests)
- Explicit transaction management
- Structured logging
- Hard failures on persistence errors

============================================================
"""

import os
import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError, OperationalError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import declarative_base
from sqlalchemy.pool import StaticPool

from dotenv import load_dotenv

# Load environment variables
load_dotenv()

logger = logging.getLogger(__name__)

# =============================================================
# DECLARATIVE BASE
# =============================================================

Base = declarative_base()

# =============================================================
# DATABASE ENGINE
# =============================================================

DEFAULT_DATABASE_URL = "sqlite+aiosqlite:///pharmashield.db"

_engine: Optional[AsyncEngine] = None
_SessionFactory: Optional[async_sessionmaker] = None


def to_async_url(url: str) -> str:
    """Promote a sync postgres URL to the asyncpg driver."""
    if url.startswith("postgresql://"):
        return url.replace("postgresql://", "postgresql+asyncpg://", 1)
    return url


def get_database_url() -> str:
    """Get database URL from environment."""
    url = os.getenv("DATABASE_URL")

    if not url:
        url = DEFAULT_DATABASE_URL
        logger.warning(f"DATABASE_URL not set, using default: {url}")

    return url


def create_database_engine(
    database_url: Optional[str] = None,
    pool_size: int = 10,
    max_overflow: int = 20,
    pool_timeout: int = 30,
    pool_recycle: int = 1800,
    echo: bool = False,
) -> AsyncEngine:
    """
    Create an async SQLAlchemy engine.

    Args:
        database_url: Explicit URL, defaults to DATABASE_URL from env
        pool_size: Number of connections to keep in pool
        max_overflow: Max connections beyond pool_size
        pool_timeout: Seconds to wait for available connection
        pool_recycle: Recycle connections after N seconds
        echo: Log SQL statements

    Returns:
        AsyncEngine
    """
    url = to_async_url(database_url or get_database_url())

    logger.info(f"Creating database engine for: {url.split('@')[-1]}")

    if url.startswith("sqlite"):
        kwargs = {"connect_args": {"check_same_thread": False}}
        if ":memory:" in url or url.endswith("://"):
            # One shared connection, otherwise every session sees an empty db
            kwargs["poolclass"] = StaticPool
        return create_async_engine(url, echo=echo, **kwargs)

    return create_async_engine(
        url,
        pool_size=pool_size,
        max_overflow=max_overflow,
        pool_timeout=pool_timeout,
        pool_recycle=pool_recycle,
        pool_pre_ping=True,
        echo=echo,
    )


def get_engine() -> AsyncEngine:
    """Get the process-wide engine, creating if necessary."""
    global _engine
    if _engine is None:
        _engine = create_database_engine()
    return _engine


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker:
    """Build a session factory bound to `engine`."""
    return async_sessionmaker(
        bind=engine,
        class_=AsyncSession,
        autoflush=False,
        expire_on_commit=False,
    )


def get_session_factory() -> async_sessionmaker:
    """Get the process-wide session factory, creating if necessary."""
    global _SessionFactory

    if _SessionFactory is None:
        _SessionFactory = create_session_factory(get_engine())

    return _SessionFactory


# =============================================================
# SESSION MANAGEMENT
# =============================================================


async def _rollback_quietly(session: AsyncSession) -> None:
    try:
        await session.rollback()
    except (SQLAlchemyError, OSError) as e:
        logger.warning(f"Rollback failed on a broken connection: {e}")


@asynccontextmanager
async def transaction_scope(
    session_factory: Optional[async_sessionmaker] = None,
) -> AsyncGenerator[AsyncSession, None]:
    """
    Context manager for explicit transaction boundaries.

    Commits only if no exception occurs.
    Rolls back on ANY exception. SQLAlchemy and driver OSError
    failures surface as DatabasePersistenceError.

    Usage:
        async with transaction_scope() as session:
            session.add(record)
            # Commits automatically at end
    """
    factory = session_factory or get_session_factory()
    try:
        session = factory()
    except (SQLAlchemyError, OSError) as e:
        logger.error(f"Cannot open database session: {e}")
        raise DatabasePersistenceError(f"Cannot open session: {e}") from e

    try:
        yield session
        await session.commit()
        logger.debug("Database transaction committed successfully")
    except (SQLAlchemyError, OSError) as e:
        logger.error(f"Database transaction failed, rolling back: {e}")
        await _rollback_quietly(session)
        raise DatabasePersistenceError(f"Transaction failed: {e}") from e
    except Exception as e:
        logger.error(f"Transaction failed with unexpected error: {e}")
        await session.rollback()
        raise
    finally:
        await session.close()


# =============================================================
# DATABASE INITIALIZATION
# =============================================================


async def verify_database_connection(engine: Optional[AsyncEngine] = None) -> bool:
    """
    Verify database connection is working.

    Raises:
        DatabaseConnectionError if connection fails
    """
    engine = engine or get_engine()

    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
            logger.info("Database connection verified successfully")
            return True
    except (OperationalError, OSError) as e:
        logger.error(f"Database connection failed: {e}")
        raise DatabaseConnectionError(f"Cannot connect to database: {e}") from e


async def create_all_tables(engine: Optional[AsyncEngine] = None) -> None:
    """
    Create all tables defined in ORM models.

    Raises:
        DatabaseInitializationError if table creation fails
    """
    engine = engine or get_engine()

    # Register models with Base
    from . import models  # noqa: F401

    try:
        logger.info("Creating database tables...")
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("Database tables created successfully")
    except SQLAlchemyError as e:
        logger.error(f"Failed to create database tables: {e}")
        raise DatabaseInitializationError(f"Table creation failed: {e}") from e


async def initialize_database(engine: Optional[AsyncEngine] = None) -> None:
    """
    Full database initialization sequence.

    1. Verify connection
    2. Create tables if not exist
    """
    logger.info("=" * 60)
    logger.info("INITIALIZING RELATIONAL STORE")
    logger.info("=" * 60)

    try:
        await verify_database_connection(engine)
        await create_all_tables(engine)
        logger.info("DATABASE INITIALIZATION COMPLETE")
    except Exception as e:
        logger.critical(f"DATABASE INITIALIZATION FAILED: {e}")
        raise


# =============================================================
# CUSTOM EXCEPTIONS
# =============================================================


class DatabasePersistenceError(Exception):
    """Raised when database persistence fails."""
    pass


class DatabaseConnectionError(DatabasePersistenceError):
    """Raised when database connection fails."""
    pass


class DatabaseInitializationError(DatabasePersistenceError):
    """Raised when database initialization fails."""
    pass


__all__ = [
    "Base",
    "DEFAULT_DATABASE_URL",
    "get_database_url",
    "to_async_url",
    "create_database_engine",
    "get_engine",
    "create_session_factory",
    "get_session_factory",
    "transaction_scope",
    "verify_database_connection",
    "create_all_tables",
    "initialize_database",
    "DatabasePersistenceError",
    "DatabaseConnectionError",
    "DatabaseInitializationError",
]
