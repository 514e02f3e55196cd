"""
Alembic Migration Environment
===============================

What:  Runs Alembic against the async SQLAlchemy engine of the app.
How:   The URL comes from app.config settings (not alembic.ini) so migrations
       and the server always target the same database.
Who:   `alembic upgrade head` during deployment; `alembic revision
       --autogenerate` during development.

Revision 001 is PostgreSQL DDL (gen_random_uuid, JSONB, partial indexes).
The SQLite databases used in tests are built with metadata.create_all; later
revisions autogenerated against SQLite are rendered in batch mode.
"""

import asyncio
from logging.config import fileConfig

from sqlalchemy import pool
from sqlalchemy.ext.asyncio import async_engine_from_config
from alembic import context

from app.config import settings
from app.database import migration_options

# Autogenerate only sees models registered on Base.metadata
from app.models import claim, competition, identity, recommendation  # noqa: F401

config = context.config

if config.config_file_name is not None:
    fileConfig(config.config_file_name)

config.set_main_option("sqlalchemy.url", settings.database_url)
options = migration_options(settings.database_url)


def run_migrations_offline() -> None:
    """Emit SQL to stdout without connecting (review before applying)."""
    url = config.get_main_option("sqlalchemy.url")
    context.configure(
        url=url,
        **options,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
    )

    with context.begin_transaction():
        context.run_migrations()


def do_run_migrations(connection):
    context.configure(connection=connection, **options)

    with context.begin_transaction():
        context.run_migrations()


async def run_async_migrations() -> None:
    connectable = async_engine_from_config(
        config.get_section(config.config_ini_section, {}),
        prefix="sqlalchemy.",
        poolclass=pool.NullPool,
    )

    async with connectable.connect() as connection:
        await connection.run_sync(do_run_migrations)

    await connectable.dispose()


def run_migrations_online() -> None:
    asyncio.run(run_async_migrations())


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
