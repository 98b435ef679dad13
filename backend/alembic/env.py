"""
Alembic Migration Environment
===============================

What:  Runs the `menu` table migrations against the configured store.
How:   The URL comes from ``Settings.sqlalchemy_url`` (DATABASE_URL or the
       DB_* parts), never from alembic.ini. Online runs use a throwaway async
       engine without pooling; offline runs render SQL for that URL.
Who:   The ``alembic`` CLI (upgrade, downgrade, revision --autogenerate).
"""

import asyncio
from logging.config import fileConfig

from sqlalchemy import pool
from sqlalchemy.engine import Connection
from sqlalchemy.ext.asyncio import create_async_engine
from alembic import context

from menu_service.config import settings
from menu_service.database import Base

# Registers the `menu` table on Base.metadata for --autogenerate
from menu_service.models.menu_item import MenuItem  # noqa: F401

config = context.config

if config.config_file_name is not None:
    fileConfig(config.config_file_name)

target_metadata = Base.metadata
database_url = settings.sqlalchemy_url


def run_migrations_offline() -> None:
    """``alembic upgrade --sql``: print the DDL instead of executing it."""
    context.configure(
        url=database_url,
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
    )
    with context.begin_transaction():
        context.run_migrations()


def _apply(connection: Connection) -> None:
    context.configure(
        connection=connection,
        target_metadata=target_metadata,
        compare_type=True,
    )
    with context.begin_transaction():
        context.run_migrations()


async def run_migrations_online() -> None:
    engine = create_async_engine(database_url, poolclass=pool.NullPool)
    try:
        async with engine.connect() as connection:
            # Migration scripts are synchronous
            await connection.run_sync(_apply)
    finally:
        await engine.dispose()


if context.is_offline_mode():
    run_migrations_offline()
else:
    asyncio.run(run_migrations_online())
