from __future__ import annotations

import logging

import sqlalchemy
from sqlalchemy import pool
from alembic import context

from gradebook.storage.table import metadata

config = context.config
logger = logging.getLogger("alembic.env")

target_metadata = metadata


def run_migrations_offline() -> None:
    """Emit SQL to stdout instead of running it against a database."""
    url = config.get_main_option("sqlalchemy.url")
    context.configure(
        url=url,
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
        render_as_batch=url is not None and url.startswith("sqlite"),
    )

    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    url = config.get_main_option("sqlalchemy.url")
    assert url is not None
    connectable = sqlalchemy.create_engine(url, poolclass=pool.NullPool)

    with connectable.connect() as connection:
        context.configure(
            connection=connection,
            target_metadata=target_metadata,
            compare_type=True,
            render_as_batch=connection.dialect.name == "sqlite",
        )
        logger.info("running migrations", extra={"dialect": connection.dialect.name})

        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
