"""Collaborator contracts for the git refs sync service.

The domain layer never imports ``repo_sync.io``; orchestration wires the
concrete provisioner, reader, loader and repositories in.
"""

import threading
from typing import Any, ContextManager, List, Optional, Protocol, Sequence

from sqlalchemy.engine import Connection

from .models import JobStatus, Ref, SyncLogEntry


class TokenSource(Protocol):
    def get_token(self) -> Optional[str]:
        ...


class WorkspaceProvisioner(Protocol):
    def __call__(
        self,
        locator: str,
        token: Optional[str] = None,
        clone_root: Optional[str] = None,
        timeout: Optional[float] = None,
        cancel_event: Optional[threading.Event] = None,
        git_binary: str = "git",
    ) -> ContextManager[Any]:
        ...


class RefReader(Protocol):
    def __call__(self, workspace: Any, git_binary: str = "git") -> List[Ref]:
        ...


class ReplaceOutcome(Protocol):
    rows_deleted: int
    rows_inserted: int


class RefReconciler(Protocol):
    def replace_refs(
        self, conn: Connection, repo_id: str, refs: Sequence[Ref]
    ) -> ReplaceOutcome:
        ...


class StatusPublisher(Protocol):
    def set_status(self, job_id: int, status: JobStatus) -> None:
        ...


class ProgressReporter(Protocol):
    def send_batch(self, entries: Sequence[SyncLogEntry]) -> int:
        ...
