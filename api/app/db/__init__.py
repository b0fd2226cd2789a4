from __future__ import annotations

from typing import AsyncGenerator

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool

from api.app.obs import add_query_logger

from ..models_tenant import Base

# Populated by ``init_engine`` at application startup, or by tests through
# ``create_test_session``. Application code resolves sessions through
# ``get_session`` so either source works.
SessionLocal: async_sessionmaker[AsyncSession] | None = None
engine: AsyncEngine | None = None


def init_engine(url: str) -> tuple[async_sessionmaker[AsyncSession], AsyncEngine]:
    """Create the shared engine and session factory for ``url``."""

    global SessionLocal, engine
    kwargs = {}
    if url.startswith("sqlite"):
        kwargs["connect_args"] = {"check_same_thread": False}
    engine = create_async_engine(url, **kwargs)
    add_query_logger(engine, "app")
    SessionLocal = async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)
    return SessionLocal, engine


def create_test_session() -> tuple[async_sessionmaker[AsyncSession], AsyncEngine]:
    """Return a session factory and engine for tests.

    The database uses an in-memory SQLite engine with a static pool so that
    multiple sessions share the same data. Call :func:`create_all` before use.
    """

    test_engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    add_query_logger(test_engine, "test")
    factory = async_sessionmaker(test_engine, expire_on_commit=False, class_=AsyncSession)
    return factory, test_engine


async def create_all(target: AsyncEngine) -> None:
    """Create every table on ``target``; used by tests and local dev."""

    async with target.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def get_session() -> AsyncGenerator[AsyncSession, None]:
    """Yield an ``AsyncSession`` from the configured factory."""

    if SessionLocal is None:
        raise RuntimeError("database not initialised; call init_engine() first")
    async with SessionLocal() as session:
        yield session


__all__ = [
    "SessionLocal",
    "engine",
    "init_engine",
    "create_test_session",
    "create_all",
    "get_session",
]
