"""
Async engine and session handling for the messages table.

The configured URL may use the plain scheme that deployment tooling hands
out (DB_DSN=mysql://..., postgres://...); it is rewritten to the matching
async driver before the engine is built:

  postgresql:// | postgres://   → postgresql+asyncpg://
  mysql:// | mysql+pymysql://   → mysql+aiomysql://
  sqlite://                     → sqlite+aiosqlite://

Usage:
    await init_db()                    # once at startup, retried
    async with get_session() as db:    # one transaction per store call
        await db.execute(...)
    await close_db()                   # at shutdown
"""
from __future__ import annotations

import structlog
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from sqlalchemy.ext.asyncio import (
    create_async_engine, AsyncEngine, AsyncSession, async_sessionmaker,
)
from tenacity import RetryCallState, retry, stop_after_attempt, wait_exponential

from config.settings import get_settings
from database.models import Base

logger = structlog.get_logger()

_ASYNC_SCHEMES = {
    "postgresql": "postgresql+asyncpg",
    "postgres": "postgresql+asyncpg",
    "mysql": "mysql+aiomysql",
    "mysql+pymysql": "mysql+aiomysql",
    "sqlite": "sqlite+aiosqlite",
}

_engine: AsyncEngine | None = None
_session_factory: async_sessionmaker[AsyncSession] | None = None


def _to_async_url(db_url: str) -> str:
    """Swap a sync scheme for its async driver; async or unknown URLs pass through."""
    scheme, sep, rest = db_url.partition("://")
    if not sep or scheme not in _ASYNC_SCHEMES:
        return db_url
    return f"{_ASYNC_SCHEMES[scheme]}://{rest}"


def _engine_kwargs(db_url: str, echo: bool) -> dict:
    if db_url.startswith("sqlite"):
        return {"echo": echo, "connect_args": {"check_same_thread": False}}

    return {
        "echo": echo,
        "pool_size": 5,
        "max_overflow": 5,
        "pool_timeout": 30,
        "pool_recycle": 1800,
        "pool_pre_ping": True,
    }


def _redacted(engine: AsyncEngine) -> str:
    return engine.url.render_as_string(hide_password=True)


def get_engine(db_url: str = None) -> AsyncEngine:
    """Return the process-wide engine, building it from `db_url` or settings on first use."""
    global _engine
    if _engine is None:
        settings = get_settings()
        url = _to_async_url(db_url or settings.database.url)
        if not url:
            raise RuntimeError("database url is not configured (set DB_DSN or database.url)")
        _engine = create_async_engine(url, **_engine_kwargs(url, settings.debug))
        logger.info("database_engine_created",
                    dialect=_engine.dialect.name,
                    url=_redacted(_engine))
    return _engine


def _get_session_factory() -> async_sessionmaker[AsyncSession]:
    global _session_factory
    if _session_factory is None:
        _session_factory = async_sessionmaker(get_engine(), expire_on_commit=False)
    return _session_factory


@asynccontextmanager
async def get_session() -> AsyncGenerator[AsyncSession, None]:
    """Commit on clean exit, roll back and re-raise otherwise."""
    async with _get_session_factory()() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


def _log_init_retry(retry_state: RetryCallState) -> None:
    logger.warning("database_init_retry",
                   attempt=retry_state.attempt_number,
                   error=str(retry_state.outcome.exception()))


@retry(
    stop=stop_after_attempt(5),
    wait=wait_exponential(multiplier=1, max=10),
    before_sleep=_log_init_retry,
    reraise=True,
)
async def init_db() -> None:
    """Create the messages table if missing. Retried while the database container comes up."""
    engine = get_engine()
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("database_initialized",
                dialect=engine.dialect.name,
                tables=sorted(Base.metadata.tables))


async def close_db() -> None:
    """Dispose the engine; the next get_engine() call builds a fresh one."""
    global _engine, _session_factory
    if _engine is not None:
        await _engine.dispose()
        _engine = None
        _session_factory = None
        logger.info("database_closed")
