"""
Alembic Migration Environment
===============================

What:  Runs storefront migrations with the same async driver the app uses.
How:   DATABASE_URL is read from storefront.config. No ini file is involved.
       Importing storefront.models registers every table on Base.metadata,
       which lets --autogenerate diff the full schema, column types included.
"""

import asyncio

from alembic import context
from sqlalchemy import pool
from sqlalchemy.engine import Connection
from sqlalchemy.ext.asyncio import create_async_engine

import storefront.models  # noqa: F401
from storefront.config import settings
from storefront.database import Base

MIGRATION_OPTIONS = {
    "target_metadata": Base.metadata,
    "compare_type": True,
}


def _apply(connection: Connection) -> None:
    context.configure(connection=connection, **MIGRATION_OPTIONS)
    with context.begin_transaction():
        context.run_migrations()


async def _apply_online() -> None:
    engine = create_async_engine(settings.database_url, poolclass=pool.NullPool)
    try:
        async with engine.connect() as connection:
            await connection.run_sync(_apply)
    finally:
        await engine.dispose()


def _apply_offline() -> None:
    """Print the SQL for pending revisions instead of executing it."""
    context.configure(
        url=settings.database_url,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
        **MIGRATION_OPTIONS,
    )
    with context.begin_transaction():
        context.run_migrations()


if context.is_offline_mode():
    _apply_offline()
else:
    asyncio.run(_apply_online())
