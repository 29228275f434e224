"""
Async SQLAlchemy engine and session factory backing the persistence gateway.
"""
import logging
from typing import AsyncIterator, Optional

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase
from sqlalchemy.pool import StaticPool

from isitdown.config import get_settings

logger = logging.getLogger("isitdown.database")


class Base(DeclarativeBase):
    pass


class DatabaseNotConfiguredError(RuntimeError):
    pass


_engine: Optional[AsyncEngine] = None
_session_factory: Optional[async_sessionmaker[AsyncSession]] = None
_initialized = False


def init_engine(database_url: Optional[str] = None) -> Optional[AsyncEngine]:
    """(Re)create the engine and session factory.

    Returns ``None`` when no database is configured, which puts the app in
    fallback mode.
    """
    global _engine, _session_factory, _initialized

    _initialized = True
    url = database_url if database_url is not None else get_settings().database_url
    if not url:
        logger.warning("No database configured, running in fallback mode")
        _engine = None
        _session_factory = None
        return None

    kwargs = {"echo": False}
    if ":memory:" in url:
        # One shared connection, otherwise every connection sees its own empty db
        kwargs["poolclass"] = StaticPool

    _engine = create_async_engine(url, **kwargs)
    _session_factory = async_sessionmaker(
        _engine, class_=AsyncSession, expire_on_commit=False
    )
    return _engine


def get_engine() -> Optional[AsyncEngine]:
    if not _initialized:
        init_engine()
    return _engine


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    if not _initialized:
        init_engine()
    if _session_factory is None:
        raise DatabaseNotConfiguredError("Database is not configured")
    return _session_factory


async def dispose_engine() -> None:
    global _engine, _session_factory, _initialized
    if _engine is not None:
        await _engine.dispose()
    _engine = None
    _session_factory = None
    _initialized = False


async def get_db() -> AsyncIterator[AsyncSession]:
    async with get_session_factory()() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
