"""Wiring of concrete I/O collaborators into the sync handlers."""

from typing import Dict

from sqlalchemy.engine import Engine

from repo_sync.config.settings import Settings
from repo_sync.domain.git_refs.models import GIT_REFS_SYNC_TYPE
from repo_sync.domain.git_refs.service import GitRefsSyncService
from repo_sync.domain.registry import SyncJobHandler
from repo_sync.io.auth import build_token_provider
from repo_sync.io.git import read_refs
from repo_sync.io.loader import GitRefsLoader
from repo_sync.io.repositories import SyncJobRepository, SyncLogRepository
from repo_sync.io.workspace import provision_workspace


def build_git_refs_service(engine: Engine, settings: Settings) -> GitRefsSyncService:
    return GitRefsSyncService(
        engine=engine,
        token_provider=build_token_provider(settings, engine),
        provisioner=provision_workspace,
        ref_reader=read_refs,
        loader=GitRefsLoader(advisory_lock=settings.git_refs_advisory_lock),
        status_publisher_factory=SyncJobRepository,
        reporter=SyncLogRepository(engine),
        clone_root=settings.GIT_CLONE_PATH,
        clone_timeout=settings.git_clone_timeout_seconds,
        statement_timeout_ms=settings.sync_statement_timeout_ms,
        git_binary=settings.git_binary,
    )


def build_default_handlers(engine: Engine, settings: Settings) -> Dict[str, SyncJobHandler]:
    """Built-in handlers bound to ``engine``, keyed by sync type.

    Nothing is registered globally; pass the mapping to ``get_handler``.
    """
    return {GIT_REFS_SYNC_TYPE: build_git_refs_service(engine, settings)}
