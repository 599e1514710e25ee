"""Async SQLAlchemy storage client."""

from __future__ import annotations

import logging

from sqlalchemy import event
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from publishing_intel.db.models import Base

logger = logging.getLogger(__name__)


def _normalise_url(url: str) -> str:
    """Ensure Postgres URLs use the async psycopg driver and have SSL for cloud DBs."""
    if url.startswith("sqlite"):
        if "+aiosqlite" not in url:
            url = "sqlite+aiosqlite" + url[len("sqlite"):]
        return url
    # Normalise scheme for async psycopg
    if url.startswith("postgres://"):
        url = "postgresql+psycopg://" + url[len("postgres://"):]
    elif url.startswith("postgresql://") and "+psycopg" not in url:
        url = "postgresql+psycopg://" + url[len("postgresql://"):]
    # Append sslmode=require for cloud databases (non-localhost)
    host = url.split("@")[-1].split("/")[0].split(":")[0] if "@" in url else ""
    if host and host != "localhost" and host != "127.0.0.1" and "sslmode" not in url:
        sep = "&" if "?" in url else "?"
        url += sep + "sslmode=require"
    return url


def _is_memory_sqlite(url: str) -> bool:
    parsed = make_url(url)
    return parsed.get_backend_name() == "sqlite" and parsed.database in (None, "", ":memory:")


def _install_sqlite_hooks(engine: AsyncEngine) -> None:
    """Let SQLAlchemy own BEGIN so SAVEPOINTs work, and enforce foreign keys."""

    @event.listens_for(engine.sync_engine, "connect")
    def _on_connect(dbapi_connection, connection_record):  # noqa: ARG001
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(engine.sync_engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN")


class Database:
    """Owns the engine and session factory for one application instance.

    Constructed by the composition root (API lifespan, CLI scripts, tests)
    and passed explicitly to whatever needs storage.
    """

    def __init__(self, url: str, echo: bool = False) -> None:
        self.url = _normalise_url(url)
        kwargs: dict = {"echo": echo}
        if _is_memory_sqlite(self.url):
            # One shared connection, otherwise every checkout is a fresh empty DB
            kwargs["poolclass"] = StaticPool
            kwargs["connect_args"] = {"check_same_thread": False}
        self.engine: AsyncEngine = create_async_engine(self.url, **kwargs)
        if self.engine.dialect.name == "sqlite":
            _install_sqlite_hooks(self.engine)
        self._sessionmaker = async_sessionmaker(self.engine, class_=AsyncSession, expire_on_commit=False)

    @property
    def dialect(self) -> str:
        return self.engine.dialect.name

    def session(self) -> AsyncSession:
        """Return a new session (use as ``async with database.session() as s``)."""
        return self._sessionmaker()

    async def create_tables(self) -> None:
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("Database tables ensured (%s)", self.dialect)

    async def dispose(self) -> None:
        await self.engine.dispose()
