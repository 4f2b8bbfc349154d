"""
Dagster ops for git refs sync jobs.

The op resolves a queued job by id and runs it through the registered
handler; it adds no behavior of its own beyond engine lifetime and a
JSON-serializable summary for the Dagster UI.
"""

from typing import Optional

import structlog
from dagster import Config, OpExecutionContext, op
from pydantic import Field

from repo_sync.config.settings import get_settings
from repo_sync.io.engine import create_sync_engine

from .worker import run_sync_job

logger = structlog.get_logger(__name__)


class GitRefsSyncOpConfig(Config):
    """Configuration for git_refs_sync_op."""

    job_id: int = Field(..., description="repo_sync_queue.id of the job to run")
    mark_failed: bool = Field(
        default=True,
        description="If True, mark the job FAILED and log the cause when it fails",
    )
    database_url: Optional[str] = Field(
        default=None,
        description="Override DATABASE_URL for this run",
    )


@op
def git_refs_sync_op(context: OpExecutionContext, config: GitRefsSyncOpConfig) -> dict:
    """
    Run one git refs sync job.

    Returns:
        Dictionary with the sync result summary
    """
    settings = get_settings()
    if config.database_url:
        settings = settings.model_copy(update={"DATABASE_URL": config.database_url})

    logger.info("git_refs_sync_op.start", job_id=config.job_id)
    engine = create_sync_engine(settings)
    try:
        result = run_sync_job(
            config.job_id, engine, settings, mark_failed=config.mark_failed
        )
    except Exception as e:
        logger.error("git_refs_sync_op.failed", job_id=config.job_id, error=str(e))
        raise
    finally:
        engine.dispose()

    context.log.info(
        f"job {result.job_id}: {result.refs_synced} refs synced "
        f"({result.rows_deleted} replaced)"
    )
    return {
        "status": result.final_state.value,
        "job_id": result.job_id,
        "repo_id": result.repo_id,
        "refs_synced": result.refs_synced,
        "rows_deleted": result.rows_deleted,
        "duration_ms": result.duration_ms,
    }
