"""
Data models for the git refs sync job.

Every optional Ref attribute is modelled as ``Optional[str]`` where ``None``
means "not applicable". Empty strings are preserved as real values all the
way into the database, so consumers can tell "no remote" from "remote ''".
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

GIT_REFS_SYNC_TYPE = "GIT_REFS"


class JobStatus(str, Enum):
    """Queue status vocabulary (owned by the job queue)."""

    QUEUED = "QUEUED"
    RUNNING = "RUNNING"
    DONE = "DONE"
    FAILED = "FAILED"


class SyncLogType(str, Enum):
    """Severity of a sync log entry."""

    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"


class SyncState(str, Enum):
    """Pipeline states of one git refs sync."""

    START = "START"
    PROVISIONED = "PROVISIONED"
    EXTRACTED = "EXTRACTED"
    RECONCILED = "RECONCILED"
    REPORTED = "REPORTED"
    DONE = "DONE"
    FAILED = "FAILED"


class SyncJob(BaseModel):
    """One dequeued unit of work, borrowed read-only from the queue."""

    model_config = ConfigDict(frozen=True)

    job_id: int = Field(..., description="repo_sync_queue.id")
    repo_id: str = Field(..., description="UUID of the repository")
    repo: str = Field(..., description="Clone URL or local path of the repository")
    sync_type: str = Field(default=GIT_REFS_SYNC_TYPE)
    status: JobStatus = Field(default=JobStatus.RUNNING)


class Ref(BaseModel):
    """A single repository reference as extracted from the working copy."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    full_name: str
    name: str
    hash: Optional[str] = None
    remote: Optional[str] = None
    target: Optional[str] = None
    type: Optional[str] = None
    tag_commit_hash: Optional[str] = None


class SyncLogEntry(BaseModel):
    """Append-only progress record; the sink assigns the timestamp."""

    model_config = ConfigDict(frozen=True)

    job_id: int
    log_type: SyncLogType = SyncLogType.INFO
    message: str


@dataclass
class SyncResult:
    """Result of a successful git refs sync."""

    job_id: int
    repo_id: str
    refs_synced: int
    rows_deleted: int
    duration_ms: float
    final_state: SyncState = SyncState.DONE
