"""Error taxonomy for the git refs sync job.

Every fatal error derives from :class:`SyncError` and carries the job and
repository it happened for, so the external scheduler can decide on retries
without parsing messages. :class:`CleanupWarning` is never raised; it is
emitted through :mod:`warnings` when removing a workspace fails.
"""

from typing import Any, Dict, Optional


class SyncError(Exception):
    """Base class for failures that abort a sync job."""

    stage = "sync"

    def __init__(
        self,
        message: str,
        job_id: Optional[int] = None,
        repo_id: Optional[str] = None,
    ):
        self.job_id = job_id
        self.repo_id = repo_id
        super().__init__(message)

    def with_context(self, job_id: int, repo_id: str) -> "SyncError":
        """Attach job/repository context without replacing the error type."""
        if self.job_id is None:
            self.job_id = job_id
        if self.repo_id is None:
            self.repo_id = repo_id
        return self

    def __str__(self) -> str:
        if self.job_id is None:
            return self.args[0]
        return (
            f"{self.stage} failed for job {self.job_id} "
            f"(repo {self.repo_id}): {self.args[0]}"
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to structured dict for logging."""
        cause = self.__cause__
        return {
            "error_type": type(self).__name__,
            "stage": self.stage,
            "job_id": self.job_id,
            "repo_id": self.repo_id,
            "message": self.args[0],
            "original_error_type": type(cause).__name__ if cause else None,
            "original_error_message": str(cause) if cause else None,
        }


class ProvisionError(SyncError):
    """Clone could not be materialized (auth, network, disk, timeout)."""

    stage = "provision"


class ExtractionError(SyncError):
    """Working copy is unreadable or corrupt."""

    stage = "extraction"


class ReconciliationError(SyncError):
    """Replace transaction or status update failed; nothing was committed."""

    stage = "reconciliation"


class ReportError(SyncError):
    """Log sink rejected a batch of sync log entries."""

    stage = "report"


class JobCancelledError(SyncError):
    """Cancellation was requested at a pipeline boundary."""

    stage = "cancelled"


class CleanupWarning(UserWarning):
    """Workspace removal failed; the job outcome is unaffected."""
