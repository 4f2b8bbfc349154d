"""
Sync job repository: status writes and job lookup on the sync queue.

``set_status`` never commits: it runs on the caller's transaction, which for
the git refs handler is the one holding the ref replace.
"""

from __future__ import annotations

from typing import Optional

import sqlalchemy as sa
from sqlalchemy.engine import Connection

from repo_sync.domain.git_refs.exceptions import ReconciliationError
from repo_sync.domain.git_refs.models import JobStatus, SyncJob
from repo_sync.utils.logging import get_logger

logger = get_logger(__name__)

SCHEMA_NAME = "sync"
TABLE_NAME = "repo_sync_queue"
REPOS_TABLE = "repos"

TERMINAL_STATUSES = (JobStatus.DONE, JobStatus.FAILED)


class SyncJobRepository:
    """
    Repository for sync queue rows.

    Usage:
        with engine.connect() as conn, conn.begin():
            repo = SyncJobRepository(conn)
            job = repo.get_job(42)
            ...
            repo.set_status(job.job_id, JobStatus.DONE)
    """

    def __init__(self, conn: Connection):
        self.conn = conn

    def get_job(self, job_id: int) -> Optional[SyncJob]:
        """Load a queued job together with its repository locator."""
        result = self.conn.execute(
            sa.text(
                f"""
                SELECT q.id, q.repo_id, r.repo, q.sync_type, q.status
                FROM {SCHEMA_NAME}.{TABLE_NAME} q
                JOIN public.{REPOS_TABLE} r ON r.id = q.repo_id
                WHERE q.id = :job_id
                """
            ),
            {"job_id": job_id},
        )
        row = result.fetchone()
        if row is None:
            return None

        return SyncJob(
            job_id=row[0],
            repo_id=str(row[1]),
            repo=row[2],
            sync_type=row[3],
            status=JobStatus(row[4]),
        )

    def set_status(self, job_id: int, status: JobStatus) -> None:
        """Set the job status on the current transaction (no commit).

        Raises:
            ReconciliationError: if the update fails or no such job exists
        """
        status = JobStatus(status)
        done_clause = ", done_at = now()" if status in TERMINAL_STATUSES else ""
        try:
            result = self.conn.execute(
                sa.text(
                    f"""
                    UPDATE {SCHEMA_NAME}.{TABLE_NAME}
                    SET status = :status{done_clause}
                    WHERE id = :job_id
                    """
                ),
                {"status": status.value, "job_id": job_id},
            )
        except Exception as e:
            raise ReconciliationError(
                f"could not set status {status.value} on job {job_id}: {e}"
            ) from e

        if result.rowcount == 0:
            raise ReconciliationError(f"sync job {job_id} not found in queue")

        logger.info("sync_job.status_set", job_id=job_id, status=status.value)
