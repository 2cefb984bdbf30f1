"""
Alembic environment for the VoxWarp metering tables.

Migrations run on the async engine built from DATABASE_URL. Autogenerate
only compares tables VoxWarp owns, so anything else living in the same
database is never dropped.
"""

import asyncio
import os
import sys
from logging.config import fileConfig

from sqlalchemy import pool
from sqlalchemy.ext.asyncio import create_async_engine
from alembic import context

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from sqlmodel import SQLModel

from voxwarp.config.settings import settings
from voxwarp.infrastructure.db.database import normalize_database_url
from voxwarp.infrastructure.db.models import (  # noqa: F401
    ProcessedWebhookEvent,
    SubscriptionModel,
    UsageHistoryModel,
    UserUsageModel,
)

config = context.config

if config.config_file_name is not None:
    fileConfig(config.config_file_name)

target_metadata = SQLModel.metadata


def include_object(object, name, type_, reflected, compare_to):
    """Skip reflected tables that have no VoxWarp model."""
    if type_ == "table" and reflected and compare_to is None:
        return False
    return True


def database_url() -> str:
    if not settings.database_url:
        raise ValueError("DATABASE_URL is required to run migrations")
    return normalize_database_url(settings.database_url)


def configure(**kwargs) -> None:
    context.configure(
        target_metadata=target_metadata,
        include_object=include_object,
        compare_type=True,
        **kwargs,
    )


def run_migrations_offline() -> None:
    """Emit SQL without connecting."""
    configure(
        url=database_url(),
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
    )
    with context.begin_transaction():
        context.run_migrations()


def apply_migrations(connection) -> None:
    configure(connection=connection, compare_server_default=True)
    with context.begin_transaction():
        context.run_migrations()


async def run_migrations_online() -> None:
    engine = create_async_engine(database_url(), poolclass=pool.NullPool)
    async with engine.connect() as connection:
        await connection.run_sync(apply_migrations)
    await engine.dispose()


if context.is_offline_mode():
    run_migrations_offline()
else:
    asyncio.run(run_migrations_online())
