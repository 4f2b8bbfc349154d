"""Sync handler registry.

Maps a queue ``sync_type`` label to the handler that processes it. Handlers
are registered by the orchestration layer, which owns their I/O wiring.
"""

import threading
from typing import Dict, Mapping, Optional, Protocol

from repo_sync.domain.git_refs.exceptions import SyncError
from repo_sync.domain.git_refs.models import SyncJob, SyncResult


class SyncJobHandler(Protocol):
    def handle(
        self, job: SyncJob, cancel_event: Optional[threading.Event] = None
    ) -> SyncResult:
        ...


class UnknownSyncTypeError(SyncError):
    """No handler is registered for the job's sync type."""

    stage = "dispatch"


SYNC_HANDLER_REGISTRY: Dict[str, SyncJobHandler] = {}


def register_handler(sync_type: str, handler: SyncJobHandler) -> None:
    SYNC_HANDLER_REGISTRY[sync_type] = handler


def unregister_handler(sync_type: str) -> None:
    SYNC_HANDLER_REGISTRY.pop(sync_type, None)


def get_handler(
    sync_type: str, defaults: Optional[Mapping[str, SyncJobHandler]] = None
) -> SyncJobHandler:
    """Resolve the handler for ``sync_type``.

    ``defaults`` are consulted after the registry, so an explicitly
    registered handler overrides a built-in one.

    Raises:
        UnknownSyncTypeError: if nothing is registered for ``sync_type``
    """
    handlers = {**(defaults or {}), **SYNC_HANDLER_REGISTRY}
    try:
        return handlers[sync_type]
    except KeyError:
        raise UnknownSyncTypeError(
            f"no handler registered for sync type {sync_type!r} "
            f"(known: {sorted(handlers)})"
        ) from None
