"""
asyncpg pool wrapper shared by every repository.

Batch jobs open one Database per run, hand it to the repositories, and close
it when the run ends. Sessions are pinned to UTC so TIMESTAMPTZ values come
back in the same zone the ranking period math works in.
"""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from types import TracebackType
from typing import Any

import asyncpg

from trend_tracker.config.settings import get_settings

logger = logging.getLogger(__name__)

_SERVER_SETTINGS = {
    "application_name": "trend-tracker",
    "timezone": "UTC",
}


class Database:
    """
    Connection pool for the trend tables.

    Usage:
        db = Database()
        await db.connect()
        try:
            async with db.transaction() as conn:
                await conn.execute("DELETE FROM trend_ranking_entries WHERE period_id = $1", 7)
        finally:
            await db.close()

    Or as an async context manager: ``async with Database() as db: ...``
    """

    def __init__(
        self,
        database_url: str | None = None,
        min_size: int | None = None,
        max_size: int | None = None,
        command_timeout: float | None = None,
    ):
        settings = get_settings()

        self._database_url = database_url or str(settings.database_url)
        self._min_size = min_size or settings.db_pool_min_size
        self._max_size = max_size or settings.db_pool_max_size
        self._command_timeout = command_timeout or settings.db_command_timeout

        self._pool: asyncpg.Pool | None = None

    async def connect(self) -> None:
        """Open the pool. Failures are logged and re-raised."""
        try:
            self._pool = await asyncpg.create_pool(
                self._database_url,
                min_size=self._min_size,
                max_size=self._max_size,
                command_timeout=self._command_timeout,
                server_settings=_SERVER_SETTINGS,
            )
        except Exception as e:
            logger.error(f"Could not open database pool: {e}")
            raise

        logger.info(f"Database pool open ({self._min_size}-{self._max_size} connections)")

    async def close(self) -> None:
        if self._pool is not None:
            await self._pool.close()
            self._pool = None
            logger.info("Database pool closed")

    async def __aenter__(self) -> "Database":
        await self.connect()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        await self.close()

    @property
    def pool(self) -> asyncpg.Pool:
        if self._pool is None:
            raise RuntimeError("Database not connected. Call connect() first.")
        return self._pool

    @asynccontextmanager
    async def acquire(self) -> AsyncIterator[asyncpg.Connection]:
        async with self.pool.acquire() as conn:
            yield conn

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[asyncpg.Connection]:
        """
        Yield a connection inside a transaction.

        Used where a multi-statement write must be seen whole or not at all:
        replacing a period's ranking entries, or one keyword's product
        matches.
        """
        async with self.pool.acquire() as conn:
            async with conn.transaction():
                yield conn

    async def execute(self, query: str, *args: Any) -> str:
        """Run a statement and return its status string (e.g. "DELETE 4")."""
        async with self.acquire() as conn:
            return await conn.execute(query, *args)

    async def fetch(self, query: str, *args: Any) -> list[asyncpg.Record]:
        async with self.acquire() as conn:
            return await conn.fetch(query, *args)

    async def fetchrow(self, query: str, *args: Any) -> asyncpg.Record | None:
        async with self.acquire() as conn:
            return await conn.fetchrow(query, *args)

    async def fetchval(self, query: str, *args: Any) -> Any:
        async with self.acquire() as conn:
            return await conn.fetchval(query, *args)

    async def health_check(self) -> bool:
        """True if a trivial query round-trips."""
        try:
            return await self.fetchval("SELECT 1") == 1
        except Exception as e:
            logger.warning(f"Database health check failed: {e}")
            return False
