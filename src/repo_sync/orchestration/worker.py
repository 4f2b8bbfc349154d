"""
Run one queued sync job by id.

This is the seam the surrounding job service (or an operator through the CLI
or Dagster) calls. It loads the job, dispatches it to the registered handler
and, when the handler fails, records the cause on the sync log and marks the
job FAILED on a best-effort basis before re-raising for the scheduler.
"""

import threading
from typing import Optional

from sqlalchemy.engine import Engine

from repo_sync.config.settings import Settings
from repo_sync.domain.git_refs.exceptions import SyncError
from repo_sync.domain.git_refs.models import JobStatus, SyncJob, SyncLogEntry, SyncLogType, SyncResult
from repo_sync.domain.registry import get_handler
from repo_sync.io.repositories import SyncJobRepository, SyncLogRepository
from repo_sync.utils.logging import get_logger

from .handlers import build_default_handlers

logger = get_logger(__name__)


class JobNotFoundError(LookupError):
    """The requested job id is not in the sync queue."""


def load_job(engine: Engine, job_id: int) -> SyncJob:
    with engine.connect() as conn:
        job = SyncJobRepository(conn).get_job(job_id)
    if job is None:
        raise JobNotFoundError(f"sync job {job_id} not found")
    return job


def _record_failure(engine: Engine, job: SyncJob, error: Exception) -> None:
    """Best effort: the original error is what the caller sees."""
    try:
        SyncLogRepository(engine).send_batch(
            [SyncLogEntry(job_id=job.job_id, log_type=SyncLogType.ERROR, message=str(error))]
        )
    except SyncError as e:
        logger.warning("worker.failure_log_lost", job_id=job.job_id, error=str(e))

    try:
        with engine.begin() as conn:
            SyncJobRepository(conn).set_status(job.job_id, JobStatus.FAILED)
    except Exception as e:
        logger.warning("worker.mark_failed_lost", job_id=job.job_id, error=str(e))


def run_sync_job(
    job_id: int,
    engine: Engine,
    settings: Settings,
    cancel_event: Optional[threading.Event] = None,
    mark_failed: bool = True,
) -> SyncResult:
    """Load, dispatch and run one job.

    Raises:
        JobNotFoundError: unknown job id
        SyncError: whatever stopped the handler, with job/repo context
    """
    job = load_job(engine, job_id)
    logger.info("worker.job_dequeued", job_id=job.job_id, sync_type=job.sync_type)

    try:
        handler = get_handler(job.sync_type, build_default_handlers(engine, settings))
        return handler.handle(job, cancel_event=cancel_event)
    except SyncError as e:
        e.with_context(job.job_id, job.repo_id)
        if mark_failed:
            _record_failure(engine, job, e)
        raise
