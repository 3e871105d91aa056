"""Async SQLAlchemy engine with a bounded connection pool and pool gauges.

The pool is one process-wide resource: ``max_idle_connections`` connections
are kept, up to ``max_open_connections`` in total, each recycled after
``connection_max_lifetime_seconds``. Pool statistics are logged periodically
at debug level.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import ssl
from dataclasses import asdict, dataclass
from typing import TYPE_CHECKING, Any

from sqlalchemy.ext.asyncio import AsyncConnection, AsyncEngine, create_async_engine
from sqlalchemy.pool import QueuePool, StaticPool

from anime_api.core.logger import LogFormat
from anime_api.infrastructure.db.schema import metadata

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from anime_api.core.models.config_models import DatabaseConfig


@dataclass(frozen=True, slots=True)
class PoolStats:
    """Snapshot of the connection pool."""

    size: int
    checked_in: int
    checked_out: int
    overflow: int
    max_open: int

    def to_dict(self) -> dict[str, int]:
        return asdict(self)


def create_engine_for(config: DatabaseConfig) -> AsyncEngine:
    """Build the async engine described by ``config``.

    SQLite URLs (tests, local tooling) use a single shared connection so an
    in-memory database survives across sessions.
    """
    url = config.sqlalchemy_url()
    if url.startswith("sqlite"):
        return create_async_engine(url, poolclass=StaticPool, connect_args={"check_same_thread": False}, echo=config.echo)

    pool_size = max(config.max_idle_connections, 1)
    connect_args: dict[str, Any] = {}
    if config.ssl:
        connect_args["ssl"] = ssl.create_default_context()
    return create_async_engine(
        url,
        pool_size=pool_size,
        max_overflow=max(config.max_open_connections - pool_size, 0),
        pool_recycle=config.connection_max_lifetime_seconds,
        pool_pre_ping=True,
        echo=config.echo,
        connect_args=connect_args,
    )


class Database:
    """Owner of the engine and its gauge task."""

    def __init__(self, engine: AsyncEngine, config: DatabaseConfig | None = None, logger: logging.Logger | None = None) -> None:
        self.engine = engine
        self.config = config
        self.logger = logger or logging.getLogger(__name__)
        self._gauge_task: asyncio.Task[None] | None = None

    @classmethod
    def from_config(cls, config: DatabaseConfig, logger: logging.Logger | None = None) -> Database:
        return cls(create_engine_for(config), config, logger)

    @contextlib.asynccontextmanager
    async def connect(self) -> AsyncIterator[AsyncConnection]:
        """Check out a connection for read queries."""
        async with self.engine.connect() as conn:
            yield conn

    @contextlib.asynccontextmanager
    async def begin(self) -> AsyncIterator[AsyncConnection]:
        """Check out a connection inside a transaction that commits on success."""
        async with self.engine.begin() as conn:
            yield conn

    async def create_schema(self) -> None:
        """Create all catalog tables that do not exist yet."""
        async with self.engine.begin() as conn:
            await conn.run_sync(metadata.create_all)

    def pool_stats(self) -> PoolStats:
        """Current pool usage (zeros for pools that do not track it)."""
        pool = self.engine.pool
        max_open = self.config.max_open_connections if self.config else 0
        if isinstance(pool, QueuePool):
            return PoolStats(
                size=pool.size(),
                checked_in=pool.checkedin(),
                checked_out=pool.checkedout(),
                overflow=pool.overflow(),
                max_open=max_open,
            )
        return PoolStats(size=1, checked_in=0, checked_out=0, overflow=0, max_open=max_open)

    def start_gauges(self, interval: float | None = None) -> asyncio.Task[None]:
        """Start logging pool statistics every ``interval`` seconds."""
        if self._gauge_task is None or self._gauge_task.done():
            period = interval or (self.config.pool_gauge_interval_seconds if self.config else 30.0)
            self._gauge_task = asyncio.create_task(self._export_gauges(period), name="db-pool-gauges")
        return self._gauge_task

    async def _export_gauges(self, interval: float) -> None:
        while True:
            await asyncio.sleep(interval)
            stats = self.pool_stats()
            self.logger.debug(
                "DB pool: %s open, %s idle, %s overflow",
                LogFormat.number(stats.checked_out),
                LogFormat.number(stats.checked_in),
                LogFormat.number(stats.overflow),
            )

    async def close(self) -> None:
        """Stop the gauges and dispose of the pool."""
        if self._gauge_task is not None:
            self._gauge_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._gauge_task
            self._gauge_task = None
        await self.engine.dispose()
        self.logger.info("Closed %s", LogFormat.entity("Database"))
