"""Shared utilities for the repo-sync worker."""

from .logging import bind_context, get_logger, sanitize_for_logging

__all__ = ["bind_context", "get_logger", "sanitize_for_logging"]
