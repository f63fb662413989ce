"""Async database engine and session management."""

from __future__ import annotations

import logging
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncEngine
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.ext.asyncio import async_sessionmaker
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.orm import DeclarativeBase

from leetstreak.shared.config import Settings, get_settings

logger = logging.getLogger(__name__)


class Base(DeclarativeBase):
    """Declarative base for all models."""
    pass


_engine: Optional[AsyncEngine] = None
_session_factory: Optional[async_sessionmaker[AsyncSession]] = None


def init_database(settings: Settings | None = None, **engine_kwargs) -> async_sessionmaker[AsyncSession]:
    """Create the engine and session factory.

    Args:
        settings: Application settings, defaults to the cached settings
        **engine_kwargs: Extra keyword arguments for ``create_async_engine``

    Returns:
        async_sessionmaker: Factory producing new sessions
    """
    global _engine, _session_factory

    if settings is None:
        settings = get_settings()

    _engine = create_async_engine(
        settings.database_url,
        echo=settings.database_echo,
        **engine_kwargs,
    )
    _session_factory = async_sessionmaker(_engine, expire_on_commit=False)
    logger.info(f"Database engine initialized for {_engine.url.render_as_string(hide_password=True)}")
    return _session_factory


def get_engine() -> AsyncEngine:
    if _engine is None:
        raise RuntimeError("Database not initialized; call init_database() first")
    return _engine


async def create_tables() -> None:
    """Create all tables that do not exist yet."""
    # Registers the models on Base.metadata
    from leetstreak.web import models  # noqa: F401

    async with get_engine().begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def close_database() -> None:
    global _engine, _session_factory

    if _engine is not None:
        await _engine.dispose()
        logger.info("Database engine disposed")
    _engine = None
    _session_factory = None
