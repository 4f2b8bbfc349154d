"""
Sync log sink: batched, append-only progress records for a job.

Each batch is written in its own short transaction, independent of the ref
replace transaction, so a batch is either fully visible or absent.
"""

from __future__ import annotations

from typing import Sequence

import sqlalchemy as sa
from sqlalchemy.engine import Engine

from repo_sync.domain.git_refs.exceptions import ReportError
from repo_sync.domain.git_refs.models import SyncLogEntry
from repo_sync.utils.logging import get_logger

logger = get_logger(__name__)

SCHEMA_NAME = "sync"
TABLE_NAME = "repo_sync_logs"


class SyncLogRepository:
    """Writes SyncLogEntry batches to ``sync.repo_sync_logs``."""

    def __init__(self, engine: Engine):
        self.engine = engine

    def send_batch(self, entries: Sequence[SyncLogEntry]) -> int:
        """Insert all entries atomically; returns the number written.

        Raises:
            ReportError: if the sink rejects the batch
        """
        if not entries:
            return 0

        params = [
            {
                "log_type": entry.log_type.value,
                "message": entry.message,
                "job_id": entry.job_id,
            }
            for entry in entries
        ]
        try:
            with self.engine.begin() as conn:
                conn.execute(
                    sa.text(
                        f"""
                        INSERT INTO {SCHEMA_NAME}.{TABLE_NAME}
                            (log_type, message, repo_sync_queue_id)
                        VALUES (:log_type, :message, :job_id)
                        """
                    ),
                    params,
                )
        except Exception as e:
            logger.error("sync_log.batch_failed", entries=len(entries), error=str(e))
            raise ReportError(f"could not write {len(entries)} sync log entries: {e}") from e

        return len(entries)
