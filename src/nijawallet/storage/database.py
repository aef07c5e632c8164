"""Database engine and session management for the sql backend."""

import os
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from nijawallet.config import Settings
from nijawallet.storage.models import Base


def normalize_url(database_url: str) -> str:
    """Convert sqlite:/// to sqlite+aiosqlite:/// if needed."""
    if database_url.startswith("sqlite:///") and "aiosqlite" not in database_url:
        return database_url.replace("sqlite:///", "sqlite+aiosqlite:///")
    return database_url


def sqlite_directory(database_url: str) -> Optional[str]:
    """Parent directory of an on-disk sqlite database, None for anything else."""
    url = make_url(database_url)
    if not url.drivername.startswith("sqlite"):
        return None
    database = url.database or ""
    if not database or database == ":memory:" or database.startswith("file:"):
        return None
    return os.path.dirname(os.path.abspath(database))


def create_engine(settings: Settings) -> AsyncEngine:
    """Create an engine for ``settings.database_url``.

    Statement logging stays off unless ``sql_echo`` is set: bound parameters
    include full session ids.
    """
    return create_async_engine(
        normalize_url(settings.database_url),
        echo=settings.sql_echo,
        future=True,
    )


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        bind=engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


@asynccontextmanager
async def get_db(
    session_factory: async_sessionmaker[AsyncSession],
) -> AsyncGenerator[AsyncSession, None]:
    """Get a database session context manager."""
    async with session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


async def init_db(engine: AsyncEngine) -> None:
    """Initialize the database by creating all tables."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
