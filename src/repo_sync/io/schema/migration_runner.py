"""Programmatic helpers for invoking Alembic migrations."""

from __future__ import annotations

from pathlib import Path
from typing import Optional

from alembic import command
from alembic.config import Config

from repo_sync.utils.logging import get_logger

LOGGER = get_logger("repo_sync.io.schema.migration_runner")

MIGRATIONS_DIR = Path(__file__).resolve().parent / "migrations"


def _build_config(database_url: Optional[str]) -> Config:
    cfg = Config()
    cfg.set_main_option("script_location", str(MIGRATIONS_DIR))
    if database_url:
        # ConfigParser interpolation treats % specially
        cfg.set_main_option("sqlalchemy.url", database_url.replace("%", "%%"))
    return cfg


def upgrade(database_url: Optional[str] = None, revision: str = "head") -> None:
    """Run ``alembic upgrade`` programmatically."""
    cfg = _build_config(database_url)
    command.upgrade(cfg, revision)
    LOGGER.info("alembic.upgrade", revision=revision)


def downgrade(database_url: Optional[str] = None, revision: str = "-1") -> None:
    """Run ``alembic downgrade`` programmatically."""
    cfg = _build_config(database_url)
    command.downgrade(cfg, revision)
    LOGGER.info("alembic.downgrade", revision=revision)
