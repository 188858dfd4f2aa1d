"""Alembic environment.

Without a tenant the run targets the shared schema. With one
(``-x tenant=<slug>`` or the ``tenant`` config attribute) the tenant schema is
created if needed, unqualified tables are routed into it, and its version is
tracked in its own ``alembic_version`` table.
"""

import asyncio

from alembic import context
from sqlalchemy import text
from sqlalchemy.engine import Connection
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.pool import NullPool

from oncall.config import settings
from oncall.core.migrations import target_schema
from oncall.models import Base

config = context.config
target_metadata = Base.metadata

schema = target_schema(config, context.get_x_argument(as_dictionary=True))
config.attributes["schema"] = schema


def run_migrations_offline() -> None:
    """Emit SQL without a database connection."""
    context.configure(
        url=settings.database_url,
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
        version_table_schema=schema,
    )

    with context.begin_transaction():
        context.run_migrations()


def do_run_migrations(connection: Connection) -> None:
    if schema is not None:
        connection.execute(text(f'CREATE SCHEMA IF NOT EXISTS "{schema}"'))
        connection.commit()
        connection = connection.execution_options(
            schema_translate_map={None: schema}
        )

    context.configure(
        connection=connection,
        target_metadata=target_metadata,
        version_table_schema=schema,
    )

    with context.begin_transaction():
        context.run_migrations()


async def run_migrations_online() -> None:
    engine = create_async_engine(settings.database_url, poolclass=NullPool)

    async with engine.connect() as connection:
        await connection.run_sync(do_run_migrations)
        await connection.commit()

    await engine.dispose()


if context.is_offline_mode():
    run_migrations_offline()
else:
    asyncio.run(run_migrations_online())
