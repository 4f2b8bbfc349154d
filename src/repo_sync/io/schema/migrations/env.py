"""Alembic environment configuration anchored in the IO layer.

Loads the canonical repo-sync settings so migrations always run against the
same database the worker uses. Logging goes through the structlog pipeline
defined in repo_sync.utils.logging.
"""

from __future__ import annotations

from logging.config import fileConfig

from alembic import context
from sqlalchemy import engine_from_config, pool

from repo_sync.config import get_settings
from repo_sync.utils.logging import get_logger

config = context.config

if config.config_file_name is not None:
    fileConfig(config.config_file_name)

logger = get_logger("repo_sync.io.schema.migrations.env")

if not config.get_main_option("sqlalchemy.url"):
    config.set_main_option(
        "sqlalchemy.url", get_settings().get_database_connection_string()
    )

target_metadata = None


def run_migrations_offline() -> None:
    """Run migrations in 'offline' mode."""
    url = config.get_main_option("sqlalchemy.url")
    context.configure(
        url=url,
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
    )

    with context.begin_transaction():
        context.run_migrations()

    logger.info("migrations.completed_offline")


def run_migrations_online() -> None:
    """Run migrations in 'online' mode using a SQLAlchemy Engine."""
    connectable = engine_from_config(
        config.get_section(config.config_ini_section, {}),
        prefix="sqlalchemy.",
        poolclass=pool.NullPool,
    )

    with connectable.connect() as connection:
        context.configure(connection=connection, target_metadata=target_metadata)

        with context.begin_transaction():
            context.run_migrations()

    logger.info("migrations.completed_online")


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
