"""
TrustNet Backend — Database Engine & Session Factory
======================================================

What:  Builders for the async SQLAlchemy engine and session factory, and the
       declarative Base shared by all models.
How:   `create_engine()` is called once from the lifespan handler; the engine
       is stored on `app.state` and handed to SubscriptionStore. Nothing here
       opens a connection at import time.

Connection Pooling Strategy:
    PostgreSQL (asyncpg): pooled, pre-pinged, recycled hourly.
    SQLite (aiosqlite):   SQLAlchemy's default pool for file databases; pool
                          sizing arguments are not accepted by that dialect.
"""

from typing import Optional

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from trustnet.config import settings


class Base(DeclarativeBase):
    """
    Base class for all SQLAlchemy ORM models.

    Shares one metadata object, which Alembic reads for autogenerate and the
    test suite uses for `create_all`.
    """
    pass


def create_engine(database_url: Optional[str] = None) -> AsyncEngine:
    """
    Build the async engine for the configured database.

    Args:
        database_url: Override for settings.database_url (tests, scripts).
    """
    url = database_url or settings.database_url
    echo = settings.log_level == "DEBUG"

    if url.startswith("sqlite"):
        return create_async_engine(url, echo=echo)

    return create_async_engine(
        url,
        pool_size=settings.db_pool_size,
        max_overflow=settings.db_max_overflow,
        pool_pre_ping=settings.db_pool_pre_ping,
        pool_recycle=3600,
        echo=echo,
    )


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """
    Session factory bound to `engine`.

    expire_on_commit=False: rows read inside a short transaction stay usable
    after it commits.
    """
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


async def dispose_engine(engine: AsyncEngine) -> None:
    """Closes all pooled connections; called on application shutdown."""
    await engine.dispose()
