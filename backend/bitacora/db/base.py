"""Declarative base plus the process-wide engine and session factory."""

from typing import Any

from sqlalchemy import event
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from bitacora.core.config import get_settings


class Base(DeclarativeBase):
    pass


_engine: AsyncEngine | None = None
_session_factory: async_sessionmaker[AsyncSession] | None = None


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record) -> None:
    # SQLite ignores REFERENCES/ON DELETE CASCADE unless asked per connection
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


async def init_db(url: str | None = None, **engine_kwargs: Any) -> AsyncEngine:
    """Create the engine, the session factory and the schema.

    ``engine_kwargs`` go straight to ``create_async_engine`` and override the
    defaults; the SQLite test engine passes ``poolclass=StaticPool`` here so
    every session shares one in-memory database. A second call is a no-op
    until ``close_db`` runs.
    """
    global _engine, _session_factory

    if _engine is not None:
        return _engine

    settings = get_settings()
    db_url = url or settings.database_url

    options: dict[str, Any] = {"echo": settings.debug, "pool_pre_ping": True}
    options.update(engine_kwargs)
    engine = create_async_engine(db_url, **options)
    if engine.dialect.name == "sqlite":
        event.listen(engine.sync_engine, "connect", _enable_sqlite_foreign_keys)

    # Registers every table on Base.metadata
    import bitacora.db.models  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    _engine = engine
    _session_factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    return engine


async def close_db() -> None:
    """Dispose of the engine and forget the session factory."""
    global _engine, _session_factory

    if _engine is not None:
        await _engine.dispose()
        _engine = None
        _session_factory = None


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    """Return the configured session factory.

    Raises RuntimeError if init_db() has not been called.
    """
    if _session_factory is None:
        raise RuntimeError("Database not initialized. Call init_db() first.")
    return _session_factory
