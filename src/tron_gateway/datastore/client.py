"""Datastore client: async SQLAlchemy engine and sessions.

SQLite (aiosqlite) is the default and what the tests run on; PostgreSQL
(asyncpg) is the production backend. Schema changes in production go
through the Alembic scripts under ``alembic/``; :meth:`Datastore.open`
can create missing tables for development and tests.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool

from tron_gateway.config.settings import DatabaseEngine
from tron_gateway.errors.gateway_errors import ConfigurationError

if TYPE_CHECKING:
    from sqlalchemy.orm import DeclarativeBase

    from tron_gateway.config.settings import DatabaseConfig

logger = logging.getLogger(__name__)

_DRIVERS = {
    DatabaseEngine.SQLITE: "sqlite+aiosqlite",
    DatabaseEngine.POSTGRESQL: "postgresql+asyncpg",
}
_ERR_NOT_OPEN = "Datastore is not open. Call open() first."


def engine_options(config: DatabaseConfig) -> dict[str, Any]:
    """Keyword arguments for ``create_async_engine``.

    Raises:
        ConfigurationError: If the DSN does not use the async driver for
            the configured backend.
    """
    driver = _DRIVERS[config.engine]
    if not config.dsn.startswith(f"{driver}:"):
        msg = f"{config.engine.value} needs a {driver}:// DSN, got {config.dsn.split(':', 1)[0]!r}"
        raise ConfigurationError(msg)

    options: dict[str, Any] = {"echo": config.debug_sql}
    if config.engine is DatabaseEngine.SQLITE:
        # An in-memory database exists per connection; keep exactly one.
        if ":memory:" in config.dsn:
            options["poolclass"] = StaticPool
            options["connect_args"] = {"check_same_thread": False}
    else:
        options["pool_size"] = config.max_idle_connections
        options["max_overflow"] = max(config.max_open_connections - config.max_idle_connections, 0)
        options["pool_pre_ping"] = True
    return options


class Datastore:
    """Owns the async engine and hands out sessions.

    Usage::

        ds = Datastore(config.db)
        await ds.open(base=Base)
        async with ds.session() as session:
            ...
        await ds.close()
    """

    def __init__(self, config: DatabaseConfig) -> None:
        self._config = config
        self._engine: AsyncEngine | None = None
        self._session_factory: async_sessionmaker[AsyncSession] | None = None

    @property
    def engine(self) -> AsyncEngine:
        if self._engine is None:
            raise RuntimeError(_ERR_NOT_OPEN)
        return self._engine

    @property
    def is_open(self) -> bool:
        return self._engine is not None

    async def open(self, *, base: type[DeclarativeBase] | None = None) -> None:
        """Create the engine; with *base*, also create any missing tables."""
        if self._engine is not None:
            return
        self._engine = create_async_engine(self._config.dsn, **engine_options(self._config))
        self._session_factory = async_sessionmaker(self._engine, expire_on_commit=False)
        if base is not None:
            await self.create_schema(base)
        logger.info("Datastore opened (%s)", self._config.engine.value)

    async def create_schema(self, base: type[DeclarativeBase]) -> None:
        async with self.engine.begin() as conn:
            await conn.run_sync(base.metadata.create_all)

    async def drop_schema(self, base: type[DeclarativeBase]) -> None:
        """Drop every table of *base*. Development and tests only."""
        async with self.engine.begin() as conn:
            await conn.run_sync(base.metadata.drop_all)

    async def close(self) -> None:
        if self._engine is not None:
            await self._engine.dispose()
            self._engine = None
            self._session_factory = None

    def session(self) -> AsyncSession:
        """A new session; use it as an async context manager.

        Raises:
            RuntimeError: If the datastore is not open.
        """
        if self._session_factory is None:
            raise RuntimeError(_ERR_NOT_OPEN)
        return self._session_factory()

    async def ping(self) -> bool:
        """Run ``SELECT 1``; False if the database is unreachable."""
        if self._engine is None:
            return False
        try:
            async with self._engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
        except SQLAlchemyError:
            logger.exception("Datastore ping failed")
            return False
        return True
