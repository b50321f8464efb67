"""Async engine, session factory and a transactional session helper.

The engine is built on first use from :func:`get_async_url` and shared by
the whole process; ``dispose_engine()`` releases its pool on shutdown.

Stores open one short transaction per call::

    async with session_scope(factory) as db:
        await repo.put(db, key, value)
"""

import os
from contextlib import asynccontextmanager
from typing import AsyncIterator

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from questionnaire_db.config import get_async_url

# Pool sizing, overridable via PG_POOL_SIZE / PG_MAX_OVERFLOW.
POOL_SIZE = int(os.getenv("PG_POOL_SIZE", "5"))
MAX_OVERFLOW = int(os.getenv("PG_MAX_OVERFLOW", "10"))
# PG_ECHO=1 logs every statement.
ECHO_SQL = os.getenv("PG_ECHO", "").lower() in ("1", "true", "yes")

_engine: AsyncEngine | None = None
_session_factory: async_sessionmaker[AsyncSession] | None = None


def get_engine() -> AsyncEngine:
    """The process-wide async engine (created on first call)."""
    global _engine
    if _engine is None:
        _engine = create_async_engine(
            get_async_url(),
            echo=ECHO_SQL,
            pool_size=POOL_SIZE,
            max_overflow=MAX_OVERFLOW,
            pool_pre_ping=True,
        )
    return _engine


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    """Session factory bound to :func:`get_engine`."""
    global _session_factory
    if _session_factory is None:
        _session_factory = async_sessionmaker(get_engine(), expire_on_commit=False)
    return _session_factory


@asynccontextmanager
async def session_scope(
    factory: async_sessionmaker[AsyncSession] | None = None,
) -> AsyncIterator[AsyncSession]:
    """A session inside ``begin()``: committed on exit, rolled back on error."""
    factory = factory or get_session_factory()
    async with factory() as db, db.begin():
        yield db


async def dispose_engine() -> None:
    """Close pooled connections and forget the singletons."""
    global _engine, _session_factory
    if _engine is None:
        return
    await _engine.dispose()
    _engine = None
    _session_factory = None
