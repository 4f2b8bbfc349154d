from typing import Optional

import psycopg2
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine

from repo_sync.config import Settings, get_settings


def create_sync_engine(settings: Optional[Settings] = None) -> Engine:
    """SQLAlchemy engine over psycopg2, sized from DB_POOL_SIZE."""
    settings = settings or get_settings()
    return create_engine(
        settings.get_database_connection_string(),
        module=psycopg2,
        pool_size=settings.DB_POOL_SIZE,
        pool_pre_ping=True,
    )
