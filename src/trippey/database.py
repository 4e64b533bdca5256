"""Async SQLAlchemy engine and session management.

Postgres (asyncpg) in deployment. A ``sqlite+aiosqlite`` URL is accepted for
the test suite and local runs; it gets a single shared connection so an
in-memory database outlives the session that created its tables.
"""

from collections.abc import AsyncGenerator, AsyncIterator
from contextlib import asynccontextmanager

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool

_engine: AsyncEngine | None = None
_session_factory: async_sessionmaker[AsyncSession] | None = None


def _build_engine(url: str, pool_size: int) -> AsyncEngine:
    if url.startswith("sqlite"):
        return create_async_engine(url, poolclass=StaticPool, connect_args={"check_same_thread": False})
    return create_async_engine(
        url,
        pool_size=pool_size,
        max_overflow=pool_size // 2,
        pool_pre_ping=True,
        # Statement cache off: safe behind pgbouncer in transaction mode
        connect_args={"statement_cache_size": 0},
    )


async def init_db(url: str, pool_size: int = 10) -> None:
    global _engine, _session_factory  # noqa: PLW0603
    _engine = _build_engine(url, pool_size)
    _session_factory = async_sessionmaker(_engine, class_=AsyncSession, expire_on_commit=False)


async def close_db() -> None:
    global _engine, _session_factory  # noqa: PLW0603
    if _engine is not None:
        await _engine.dispose()
    _engine = None
    _session_factory = None


def get_engine() -> AsyncEngine:
    if _engine is None:
        msg = "Database not initialized. Call init_db() first."
        raise RuntimeError(msg)
    return _engine


@asynccontextmanager
async def session_scope() -> AsyncIterator[AsyncSession]:
    """Session closed when the caller's block exits (worker jobs, startup seeding)."""
    if _session_factory is None:
        msg = "Database not initialized. Call init_db() first."
        raise RuntimeError(msg)
    async with _session_factory() as session:
        yield session


async def get_session() -> AsyncGenerator[AsyncSession, None]:
    """Yield an async database session (FastAPI dependency)."""
    async with session_scope() as session:
        yield session
