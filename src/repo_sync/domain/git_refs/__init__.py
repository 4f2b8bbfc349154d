"""Git refs sync domain: models, error taxonomy and the job handler."""

from .exceptions import (
    CleanupWarning,
    ExtractionError,
    JobCancelledError,
    ProvisionError,
    ReconciliationError,
    ReportError,
    SyncError,
)
from .models import (
    GIT_REFS_SYNC_TYPE,
    JobStatus,
    Ref,
    SyncJob,
    SyncLogEntry,
    SyncLogType,
    SyncResult,
    SyncState,
)
from .service import GitRefsSyncService, JobContext

__all__ = [
    "CleanupWarning",
    "ExtractionError",
    "GIT_REFS_SYNC_TYPE",
    "GitRefsSyncService",
    "JobCancelledError",
    "JobContext",
    "JobStatus",
    "ProvisionError",
    "ReconciliationError",
    "Ref",
    "ReportError",
    "SyncError",
    "SyncJob",
    "SyncLogEntry",
    "SyncLogType",
    "SyncResult",
    "SyncState",
]
