"""Alembic environment for the Cadence schema.

Revisions use the op API only and run over the asyncpg driver, the same
driver the stores use at runtime.
"""

import asyncio
import os
from logging.config import fileConfig

from alembic import context
from sqlalchemy import pool
from sqlalchemy.engine import Connection
from sqlalchemy.ext.asyncio import async_engine_from_config

from cadence.db.pool import dsn_from_env

config = context.config

if config.config_file_name is not None:
    fileConfig(config.config_file_name)

VERSION_TABLE = "cadence_alembic_version"


def migration_url() -> str:
    """Resolve the URL to migrate.

    An explicit CADENCE_DATABASE_URL / DATABASE_URL beats alembic.ini;
    without either, the runtime POSTGRES_* resolution is used.
    """
    explicit = os.environ.get("CADENCE_DATABASE_URL") or os.environ.get("DATABASE_URL")
    url = explicit or config.get_main_option("sqlalchemy.url") or dsn_from_env()
    for prefix in ("postgresql://", "postgres://"):
        if url.startswith(prefix):
            return "postgresql+asyncpg://" + url[len(prefix):]
    return url


def _configure(**kwargs: object) -> None:
    context.configure(target_metadata=None, version_table=VERSION_TABLE, **kwargs)


def run_migrations_offline() -> None:
    """Print the migration SQL instead of executing it."""
    _configure(
        url=migration_url(),
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
    )
    with context.begin_transaction():
        context.run_migrations()


def _run_sync(connection: Connection) -> None:
    _configure(connection=connection)
    with context.begin_transaction():
        context.run_migrations()


async def run_migrations_online() -> None:
    section = config.get_section(config.config_ini_section, {})
    section["sqlalchemy.url"] = migration_url()

    engine = async_engine_from_config(section, prefix="sqlalchemy.", poolclass=pool.NullPool)
    try:
        async with engine.connect() as connection:
            await connection.run_sync(_run_sync)
    finally:
        await engine.dispose()


if context.is_offline_mode():
    run_migrations_offline()
else:
    asyncio.run(run_migrations_online())
