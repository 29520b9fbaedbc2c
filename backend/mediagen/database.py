from __future__ import annotations
"""SQLAlchemy 2.0 async database engine and session management.

Targets MySQL 8.0+ in production. JSON payload columns use the portable
``sqlalchemy.JSON`` type so the same models run on SQLite in tests.
"""

import logging
from typing import Any

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from mediagen.config import get_settings

logger = logging.getLogger(__name__)
settings = get_settings()


def _engine_kwargs(url: str) -> dict[str, Any]:
    """Pool health settings only make sense for the MySQL pool."""
    if url.startswith("mysql"):
        return {
            "pool_recycle": 3600,
            "pool_pre_ping": True,
            "pool_size": 10,
            "max_overflow": 20,
            "connect_args": {"connect_timeout": 30},
        }
    return {}


def build_engine(url: str, echo: bool = False) -> AsyncEngine:
    """Create an async engine for ``url`` with dialect-appropriate pool settings."""
    return create_async_engine(url, echo=echo, **_engine_kwargs(url))


def build_session_factory(bind: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(bind, class_=AsyncSession, expire_on_commit=False)


engine = build_engine(settings.DATABASE_URL, echo=settings.DEBUG)

async_session_factory = build_session_factory(engine)


class Base(DeclarativeBase):
    """Base class for all ORM models.

    Forces utf8mb4 charset to prevent Emoji crashes in MySQL.
    """

    __table_args__ = {
        "mysql_charset": "utf8mb4",
        "mysql_collate": "utf8mb4_unicode_ci",
    }


async def init_db(bind: AsyncEngine | None = None) -> None:
    """Create all tables defined by Base metadata (best-effort).

    Production schemas are managed by Alembic; this is used for local
    development databases and tests.
    """
    import mediagen.models  # noqa: F401  registers models with Base.metadata

    target = bind or engine
    try:
        async with target.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
    except Exception as e:
        logger.warning("Could not run create_all (tables may already exist): %s", e)


async def close_db() -> None:
    """Dispose of the engine connection pool.

    Called at application shutdown.
    """
    await engine.dispose()
