"""
Database Connection Management
Async SQLAlchemy engine and session factory for live mode.
Source: https://docs.sqlalchemy.org/en/20/orm/extensions/asyncio.html
"""

from typing import Any, Optional

from sqlalchemy import text
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import NullPool, StaticPool

from src.core.config import GymSettings, get_gym_settings
from src.models.base import Base
from src.utils.logging import get_logger

logger = get_logger(__name__)


# Global engine instance
_engine: AsyncEngine | None = None
_async_session_maker: async_sessionmaker[AsyncSession] | None = None


def build_engine(database_url: str, echo: bool = False, testing: bool = False) -> AsyncEngine:
    """
    Create an async engine with pooling suited to the backend.

    In-memory SQLite keeps a single shared connection so every session sees
    the same database.
    """
    kwargs: dict[str, Any] = {"echo": echo}
    if database_url.startswith("sqlite"):
        if ":memory:" in database_url:
            kwargs["poolclass"] = StaticPool
    elif testing:
        kwargs["poolclass"] = NullPool
    else:
        kwargs["pool_pre_ping"] = True  # Verify connections before using
    return create_async_engine(database_url, **kwargs)


def get_engine(settings: Optional[GymSettings] = None) -> AsyncEngine:
    """
    Get or create the global async engine.

    Returns:
        AsyncEngine instance
    """
    global _engine

    if _engine is None:
        settings = settings or get_gym_settings()
        logger.info(f"Creating database engine: {settings.DATABASE_URL.split('@')[-1]}")
        _engine = build_engine(
            settings.DATABASE_URL,
            echo=settings.DB_ECHO,
            testing=settings.ENVIRONMENT == "testing",
        )
        logger.info("Database engine created successfully")

    return _engine


def make_session_maker(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,  # Don't expire objects after commit
        autoflush=False,
    )


def get_session_maker() -> async_sessionmaker[AsyncSession]:
    """
    Get or create the global session maker.

    Returns:
        Async session maker
    """
    global _async_session_maker

    if _async_session_maker is None:
        _async_session_maker = make_session_maker(get_engine())
        logger.info("Session maker created successfully")

    return _async_session_maker


async def init_models(engine: Optional[AsyncEngine] = None) -> None:
    """Create any missing tables."""
    # Import models so they register with the metadata
    from src.models import check_in, member, waiver  # noqa: F401

    engine = engine or get_engine()
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database tables ready")


async def close_db_connection() -> None:
    """Close database connection pool."""
    global _engine, _async_session_maker

    if _engine is not None:
        logger.info("Closing database connection pool...")
        await _engine.dispose()
        _engine = None
        _async_session_maker = None
        logger.info("Database connection pool closed")


async def check_db_connection() -> bool:
    """
    Check if database connection is healthy.

    Returns:
        True if connection is healthy, False otherwise
    """
    try:
        engine = get_engine()
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
        return True
    except Exception as e:
        logger.error(f"Database connection check failed: {e}")
        return False
