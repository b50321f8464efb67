"""Alembic environment for questionnaire_db.

Migrations run on the same asyncpg driver as the application: the online
runner opens an ``AsyncEngine`` and hands a sync-facing connection to
Alembic through ``run_sync``.  Offline mode only needs the URL to pick the
PostgreSQL dialect.
"""

import asyncio
from logging.config import fileConfig

from alembic import context
from sqlalchemy import pool
from sqlalchemy.engine import Connection
from sqlalchemy.ext.asyncio import async_engine_from_config

from questionnaire_db.config import get_async_url
from questionnaire_db.models import Base

config = context.config
config.set_main_option("sqlalchemy.url", get_async_url())

if config.config_file_name is not None:
    fileConfig(config.config_file_name)

# kv_store and questionnaire_profiles, registered by importing the models package
target_metadata = Base.metadata


def run_migrations_offline() -> None:
    """Emit the migration SQL to stdout instead of executing it."""
    context.configure(
        url=config.get_main_option("sqlalchemy.url"),
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
    """Connect with asyncpg and apply pending revisions."""
    engine = async_engine_from_config(
        config.get_section(config.config_ini_section, {}),
        prefix="sqlalchemy.",
        poolclass=pool.NullPool,
    )
    async with engine.connect() as connection:
        await connection.run_sync(_apply)
    await engine.dispose()


if context.is_offline_mode():
    run_migrations_offline()
else:
    asyncio.run(run_migrations_online())
