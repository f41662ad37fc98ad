# -*- coding: utf-8 -*-
"""Location: ./wpgateway/alembic/env.py
Copyright 2025
SPDX-License-Identifier: Apache-2.0

Alembic environment for the gateway schema.
The target URL is taken from ``wpgateway.config.settings`` unless the caller
already set ``sqlalchemy.url`` on the Alembic config.
"""

# Standard
from logging.config import fileConfig

# Third-Party
from alembic import context
from sqlalchemy import engine_from_config, pool

# First-Party
from wpgateway.config import settings
from wpgateway.db import Base

config = context.config

if config.config_file_name is not None:
    fileConfig(config.config_file_name, disable_existing_loggers=False)

if not config.get_main_option("sqlalchemy.url"):
    config.set_main_option("sqlalchemy.url", settings.database_url.replace("%", "%%"))

target_metadata = Base.metadata


def run_migrations_offline() -> None:
    """Emit SQL without a database connection."""
    context.configure(
        url=config.get_main_option("sqlalchemy.url"),
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
        render_as_batch=True,
    )
    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    """Run migrations against a live connection."""
    connectable = engine_from_config(config.get_section(config.config_ini_section, {}), prefix="sqlalchemy.", poolclass=pool.NullPool)
    with connectable.connect() as connection:
        # SQLite needs batch mode for ALTER TABLE
        context.configure(connection=connection, target_metadata=target_metadata, render_as_batch=True)
        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
