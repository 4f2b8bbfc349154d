"""Configuration management for the repo-sync worker.

Usage:
    >>> from repo_sync.config import get_settings
    >>> settings = get_settings()
    >>> print(settings.get_database_connection_string())
"""

from repo_sync.config.settings import Settings, get_settings

__all__ = [
    "Settings",
    "get_settings",
]
