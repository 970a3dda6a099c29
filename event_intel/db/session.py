"""Async SQLAlchemy 2.0 engine + session factory."""

from __future__ import annotations

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from event_intel.core.logging import get_logger

from .models import Base

logger = get_logger(__name__)


def make_engine(database_url: str, echo: bool = False) -> AsyncEngine:
    """Create an async engine with dialect-specific configuration.

    - PostgreSQL (asyncpg): connection pooling with pre-ping
    - SQLite (aiosqlite): check_same_thread=False, no pool sizing
    """
    connect_args: dict = {}
    kwargs: dict = {
        "echo": echo,
        "pool_pre_ping": True,
    }

    if database_url.startswith("sqlite"):
        connect_args["check_same_thread"] = False
    elif database_url.startswith("postgresql"):
        kwargs["pool_size"] = 10
        kwargs["max_overflow"] = 20

    kwargs["connect_args"] = connect_args
    return create_async_engine(database_url, **kwargs)


def make_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


async def create_tables(engine: AsyncEngine) -> None:
    """Create all tables (dev and test only, no migrations)."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Tables created")


async def verify_database_connection(engine: AsyncEngine) -> bool:
    """Return True if a trivial query succeeds."""
    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
        return True
    except Exception as exc:
        logger.error("Database connection check failed", data={"error": str(exc)})
        return False
