"""Async engine, sessions and upsert helper for the single backing store.

PostgreSQL (asyncpg) is the production store; SQLite (aiosqlite) is accepted
for tests and local runs. Both support ``INSERT ... ON CONFLICT DO UPDATE``,
which every get-or-create in the services relies on.

Session Lifecycle
=================
::
    request ──► get_db() ──► AsyncSession (expire_on_commit=False)
                                  │
                 services commit ─┤ one statement per write
                                  ▼
                         closed when the request ends

    startup ──► init_db()  create_all
    shutdown ─► close_db() engine.dispose

Usage
=====
::
    stmt = dialect_insert(db, Analytics).values(url_id=1, total_clicks=1)
    stmt = stmt.on_conflict_do_update(index_elements=[Analytics.url_id], set_={...})
    await db.execute(stmt)
"""

from collections.abc import AsyncGenerator
from typing import Any

from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase

from app.config import get_settings

__all__ = ["Base", "engine", "get_db", "init_db", "close_db", "dialect_insert"]

settings = get_settings()


def _engine_options(database_url: str) -> dict[str, Any]:
    options: dict[str, Any] = {"echo": settings.DATABASE_ECHO}
    if make_url(database_url).get_backend_name() == "postgresql":
        options.update(pool_size=20, max_overflow=10, pool_pre_ping=True)
    return options


engine = create_async_engine(settings.DATABASE_URL, **_engine_options(settings.DATABASE_URL))

async_session = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


class Base(DeclarativeBase):
    pass


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    async with async_session() as session:
        yield session


async def init_db() -> None:
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def close_db() -> None:
    await engine.dispose()


def dialect_insert(db: AsyncSession, model: Any):
    """Return an INSERT construct that supports ``on_conflict_do_update``."""
    dialect_name = db.get_bind().dialect.name
    if dialect_name == "postgresql":
        return postgresql.insert(model)
    if dialect_name == "sqlite":
        return sqlite.insert(model)
    raise NotImplementedError(f"Upsert is not supported for dialect '{dialect_name}'")
