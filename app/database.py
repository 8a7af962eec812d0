"""Async engine and sessions for the SQL storage backend.

Imported lazily: nothing here runs unless ``STORAGE_BACKEND=sql``.
"""

from __future__ import annotations

import logging
import re
from contextlib import asynccontextmanager
from functools import lru_cache
from typing import Any, AsyncIterator, Optional

from sqlalchemy import text
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import NullPool

from app.config.settings import settings
from app.models import Base

logger = logging.getLogger(__name__)

_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


def _schema_or_none(raw: Optional[str]) -> Optional[str]:
    """Return the configured schema, or None when unset or not a plain identifier."""

    schema = (raw or "").strip()
    if not schema:
        return None
    if not _IDENTIFIER.fullmatch(schema):
        logger.warning("Ignoring invalid DB_SCHEMA %r; using the default search_path.", raw)
        return None
    return schema


# Placement goes through search_path, so the users.id foreign key stays unqualified.
SCHEMA = _schema_or_none(settings.database.schema_name)


@lru_cache
def get_engine() -> AsyncEngine:
    options: dict[str, Any] = {"echo": settings.debug, "pool_pre_ping": True}
    if settings.database.serverless:
        # Serverless databases pause between requests; do not hold connections.
        options["poolclass"] = NullPool
    return create_async_engine(settings.database.url, **options)


@lru_cache
def get_session_factory() -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(get_engine(), expire_on_commit=False, class_=AsyncSession)


async def _use_schema(target: Any) -> None:
    if SCHEMA:
        await target.execute(text(f'SET search_path TO "{SCHEMA}", public'))


@asynccontextmanager
async def session_scope() -> AsyncIterator[AsyncSession]:
    """Yield a short-lived session bound to the configured schema."""

    async with get_session_factory()() as session:
        await _use_schema(session)
        yield session


async def init_models() -> None:
    """Create the schema and the analyses/users tables when missing."""

    async with get_engine().begin() as conn:
        if SCHEMA:
            await conn.execute(text(f'CREATE SCHEMA IF NOT EXISTS "{SCHEMA}"'))
        await _use_schema(conn)
        await conn.run_sync(Base.metadata.create_all)

    logger.info("Database tables ready in schema '%s'.", SCHEMA or "public")


async def dispose_engine() -> None:
    if get_engine.cache_info().currsize:
        await get_engine().dispose()
