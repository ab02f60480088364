"""Alembic environment.

Migrations are hand-written raw SQL (alembic/versions/00N_*.py). The ORM
reference models are registered on Base.metadata only so that
`alembic check` can report drift between them and the migrated schema.
"""

import asyncio
from logging.config import fileConfig

from alembic import context
from sqlalchemy.engine import Connection
from sqlalchemy.ext.asyncio import create_async_engine

from config.settings import settings
from src.fm_bet.infrastructure import db_models as _bet_models  # noqa: F401
from src.fm_coin.infrastructure import db_models as _coin_models  # noqa: F401
from src.fm_common.database import Base
from src.fm_period.infrastructure import db_models as _period_models  # noqa: F401
from src.fm_target.infrastructure import db_models as _target_models  # noqa: F401

config = context.config
if config.config_file_name is not None:
    fileConfig(config.config_file_name)

target_metadata = Base.metadata


def run_migrations_offline() -> None:
    """Emit SQL to stdout without a database connection."""
    context.configure(
        url=settings.DATABASE_URL,
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
    )
    with context.begin_transaction():
        context.run_migrations()


def do_run_migrations(connection: Connection) -> None:
    context.configure(
        connection=connection,
        target_metadata=target_metadata,
        compare_type=True,
    )
    with context.begin_transaction():
        context.run_migrations()


async def run_async_migrations() -> None:
    connectable = create_async_engine(settings.DATABASE_URL)
    async with connectable.connect() as connection:
        await connection.run_sync(do_run_migrations)
    await connectable.dispose()


if context.is_offline_mode():
    run_migrations_offline()
else:
    asyncio.run(run_async_migrations())
