# alembic/env.py
from __future__ import annotations

import os
from logging.config import fileConfig

from alembic import context
from sqlalchemy import engine_from_config, pool


config = context.config

if config.config_file_name is not None:
    fileConfig(config.config_file_name)


def _database_url() -> str | None:
    url = (os.getenv("DATABASE_URL") or "").strip()
    if url:
        return url
    return config.get_main_option("sqlalchemy.url") or None


url = _database_url()
if url:
    config.set_main_option("sqlalchemy.url", url)

# migrations are hand-written SQL; there is no ORM metadata to autogenerate from
target_metadata = None


def run_migrations_offline() -> None:
    if not url:
        raise RuntimeError("DATABASE_URL is not set; cannot render tutormatch migrations.")
    context.configure(
        url=url,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
    )

    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    if not url:
        raise RuntimeError("DATABASE_URL is not set; cannot migrate the tutormatch database.")

    connectable = engine_from_config(
        config.get_section(config.config_ini_section) or {},
        prefix="sqlalchemy.",
        poolclass=pool.NullPool,
    )

    with connectable.connect() as connection:
        context.configure(connection=connection, target_metadata=target_metadata)

        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
