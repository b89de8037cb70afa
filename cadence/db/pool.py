"""Shared asyncpg pool for the tracking and catalog stores.

Every connection is opened with the session time zone pinned to UTC and
a JSON codec for jsonb columns, so timestamps come back aware and step
policies/messages come back as Python objects.
"""

import json
import os
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import asyncpg

from cadence.db.errors import ConnectionError
from cadence.observability.logging import get_logger

logger = get_logger(__name__)

APPLICATION_NAME = "cadence"


def dsn_from_env() -> str:
    """Resolve the database DSN.

    CADENCE_DATABASE_URL, then DATABASE_URL, then discrete POSTGRES_*
    variables with local development defaults.
    """
    dsn = os.environ.get("CADENCE_DATABASE_URL") or os.environ.get("DATABASE_URL")
    if dsn:
        return dsn

    user = os.environ.get("POSTGRES_USER", "cadence")
    password = os.environ.get("POSTGRES_PASSWORD", "cadence")
    host = os.environ.get("POSTGRES_HOST", "localhost")
    port = os.environ.get("POSTGRES_PORT", "5432")
    database = os.environ.get("POSTGRES_DB", "cadence")
    return f"postgresql://{user}:{password}@{host}:{port}/{database}"


async def _init_connection(conn: asyncpg.Connection) -> None:
    await conn.set_type_codec(
        "jsonb",
        encoder=json.dumps,
        decoder=json.loads,
        schema="pg_catalog",
    )


class PostgresPool:
    """Lazily connected asyncpg pool.

    Usage:
        pool = PostgresPool()
        async with pool.acquire() as conn:
            await conn.fetchval("SELECT 1")
        await pool.close()
    """

    def __init__(
        self,
        dsn: str | None = None,
        min_size: int = 5,
        max_size: int = 20,
        max_inactive_connection_lifetime: float = 300.0,
        command_timeout: float = 60.0,
    ) -> None:
        self._dsn = dsn or dsn_from_env()
        self._min_size = min_size
        self._max_size = max_size
        self._max_inactive_connection_lifetime = max_inactive_connection_lifetime
        self._command_timeout = command_timeout
        self._pool: asyncpg.Pool | None = None

    @property
    def is_connected(self) -> bool:
        return self._pool is not None

    async def connect(self) -> None:
        """Open the pool. A second call is a no-op.

        Raises:
            ConnectionError: If the server cannot be reached
        """
        if self._pool is not None:
            return

        try:
            self._pool = await asyncpg.create_pool(
                dsn=self._dsn,
                min_size=self._min_size,
                max_size=self._max_size,
                max_inactive_connection_lifetime=self._max_inactive_connection_lifetime,
                command_timeout=self._command_timeout,
                init=_init_connection,
                server_settings={"application_name": APPLICATION_NAME, "timezone": "UTC"},
            )
        except (OSError, asyncpg.PostgresError) as e:
            logger.error("postgres_pool_connection_failed", error=str(e))
            raise ConnectionError(f"Failed to connect to PostgreSQL: {e}", cause=e) from e

        logger.info(
            "postgres_pool_connected",
            min_size=self._min_size,
            max_size=self._max_size,
        )

    async def close(self) -> None:
        if self._pool is None:
            return
        await self._pool.close()
        self._pool = None
        logger.info("postgres_pool_closed")

    @asynccontextmanager
    async def acquire(self) -> AsyncIterator[asyncpg.Connection]:
        """Borrow a connection, connecting the pool on first use.

        Raises:
            ConnectionError: On any PostgreSQL error raised inside the block
        """
        if self._pool is None:
            await self.connect()

        try:
            async with self._pool.acquire() as connection:
                yield connection
        except asyncpg.PostgresError as e:
            logger.error("postgres_connection_error", error=str(e))
            raise ConnectionError(f"PostgreSQL error: {e}", cause=e) from e

    async def health_check(self) -> bool:
        """True when the pool is open and the server answers SELECT 1."""
        if self._pool is None:
            return False

        try:
            async with self._pool.acquire() as conn:
                await conn.fetchval("SELECT 1")
        except (OSError, asyncpg.PostgresError) as e:
            logger.warning("postgres_health_check_failed", error=str(e))
            return False
        return True
