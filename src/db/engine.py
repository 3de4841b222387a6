"""Async SQLAlchemy engine + session factory.

SQLite (aiosqlite) for dev and tests, PostgreSQL (asyncpg) in production.
"""
from __future__ import annotations

import json

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from config.settings import settings

# postgresql:// -> postgresql+asyncpg:// so hosted URLs work unchanged
_db_url = settings.DATABASE_URL
if _db_url.startswith("postgresql://"):
    _db_url = _db_url.replace("postgresql://", "postgresql+asyncpg://", 1)

_is_sqlite = _db_url.startswith("sqlite")


def json_serializer(value) -> str:
    """JSON columns store non-ASCII text as-is so tag search can match it."""
    return json.dumps(value, ensure_ascii=False)


_engine_kwargs: dict = {
    "echo": False,
    "json_serializer": json_serializer,
}

if not _is_sqlite:
    _engine_kwargs.update({
        "pool_size": 10,
        "max_overflow": 20,
        "pool_timeout": 30,
        "pool_recycle": 1800,
        "pool_pre_ping": True,
    })

engine = create_async_engine(_db_url, **_engine_kwargs)

async_session = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


async def get_session() -> AsyncSession:
    """FastAPI dependency — one session per request."""
    async with async_session() as session:
        yield session
