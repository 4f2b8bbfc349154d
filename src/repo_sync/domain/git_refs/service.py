"""
Git refs sync service: the handler for one ``GIT_REFS`` sync job.

Pipeline (one job, strictly sequential):

    START -> PROVISIONED -> EXTRACTED -> RECONCILED -> REPORTED -> DONE
      \\___________________ any failure __________________/-> FAILED

1. fetch the provider token and bare-clone the repository
2. announce the start on the sync log
3. read every ref, tags resolved to commits
4. in one transaction: delete stored refs, COPY the new set, mark the job DONE
5. announce completion on the sync log (its own connection), then commit

A failure at any step rolls the transaction back and propagates as a
``SyncError`` carrying the job and repository ids. The workspace is removed
exactly once on every path because it is held by a context manager around
steps 2-5. Retries are the scheduler's business, not ours.
"""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass, field
from typing import Any, Callable, List, Optional

import sqlalchemy as sa
from sqlalchemy.engine import Connection, Engine, RootTransaction

from repo_sync.utils.logging import get_logger

from .exceptions import JobCancelledError, ReconciliationError, SyncError
from .models import (
    JobStatus,
    Ref,
    SyncJob,
    SyncLogEntry,
    SyncLogType,
    SyncResult,
    SyncState,
)
from .protocols import (
    ProgressReporter,
    RefReader,
    RefReconciler,
    StatusPublisher,
    TokenSource,
    WorkspaceProvisioner,
)

logger = get_logger(__name__)


@dataclass
class JobContext:
    """Mutable state threaded through the pipeline for a single job."""

    job: SyncJob
    log: Any
    cancel_event: Optional[threading.Event] = None
    state: SyncState = SyncState.START
    refs: List[Ref] = field(default_factory=list)
    rows_deleted: int = 0
    log_entries: List[SyncLogEntry] = field(default_factory=list)

    def advance(self, state: SyncState) -> None:
        self.state = state
        self.log.debug("git_refs.sync.state", state=state.value)

    def check_cancelled(self, boundary: str) -> None:
        if self.cancel_event is not None and self.cancel_event.is_set():
            raise JobCancelledError(f"cancelled before {boundary}")


class GitRefsSyncService:
    """Runs git refs sync jobs end to end.

    Args:
        engine: SQLAlchemy engine for the replace transaction
        token_provider: hosting-provider credential source
        provisioner: context-manager factory yielding a cloned workspace
        ref_reader: extracts the Ref sequence from a workspace
        loader: DELETE + bulk insert on a caller-owned connection
        status_publisher_factory: builds a status publisher bound to a connection
        reporter: progress log sink
        clone_root: parent directory for workspaces
        clone_timeout: default clone bound in seconds
        statement_timeout_ms: default transaction statement timeout (0 = off)
        git_binary: git executable
    """

    def __init__(
        self,
        engine: Engine,
        token_provider: TokenSource,
        provisioner: WorkspaceProvisioner,
        ref_reader: RefReader,
        loader: RefReconciler,
        status_publisher_factory: Callable[[Connection], StatusPublisher],
        reporter: ProgressReporter,
        clone_root: Optional[str] = None,
        clone_timeout: Optional[float] = None,
        statement_timeout_ms: int = 0,
        git_binary: str = "git",
    ):
        self.engine = engine
        self.token_provider = token_provider
        self.provisioner = provisioner
        self.ref_reader = ref_reader
        self.loader = loader
        self.status_publisher_factory = status_publisher_factory
        self.reporter = reporter
        self.clone_root = clone_root
        self.clone_timeout = clone_timeout
        self.statement_timeout_ms = statement_timeout_ms
        self.git_binary = git_binary

    def handle(
        self,
        job: SyncJob,
        cancel_event: Optional[threading.Event] = None,
        clone_timeout: Optional[float] = None,
        statement_timeout_ms: Optional[int] = None,
    ) -> SyncResult:
        """Run one job to DONE, or raise the SyncError that stopped it."""
        ctx = JobContext(
            job=job,
            log=logger.bind(job_id=job.job_id, repo_id=job.repo_id, sync_type=job.sync_type),
            cancel_event=cancel_event,
        )
        start_time = time.perf_counter()
        ctx.log.info("git_refs.sync.started", repo=job.repo)

        try:
            self._run(
                ctx,
                clone_timeout if clone_timeout is not None else self.clone_timeout,
                (
                    statement_timeout_ms
                    if statement_timeout_ms is not None
                    else self.statement_timeout_ms
                ),
            )
        except SyncError as e:
            failed_in = ctx.state
            ctx.state = SyncState.FAILED
            e.with_context(job.job_id, job.repo_id)
            ctx.log.error("git_refs.sync.failed", failed_after=failed_in.value, **e.to_dict())
            raise
        except Exception as e:
            ctx.state = SyncState.FAILED
            ctx.log.error("git_refs.sync.crashed", error=str(e), error_type=type(e).__name__)
            raise

        ctx.advance(SyncState.DONE)
        duration_ms = (time.perf_counter() - start_time) * 1000
        ctx.log.info(
            "git_refs.sync.completed",
            refs=len(ctx.refs),
            rows_deleted=ctx.rows_deleted,
            duration_ms=duration_ms,
        )
        return SyncResult(
            job_id=job.job_id,
            repo_id=job.repo_id,
            refs_synced=len(ctx.refs),
            rows_deleted=ctx.rows_deleted,
            duration_ms=duration_ms,
            final_state=ctx.state,
        )

    def _run(
        self, ctx: JobContext, clone_timeout: Optional[float], statement_timeout_ms: int
    ) -> None:
        job = ctx.job
        ctx.check_cancelled("provisioning")
        token = self.token_provider.get_token()

        with self.provisioner(
            job.repo,
            token=token,
            clone_root=self.clone_root,
            timeout=clone_timeout,
            cancel_event=ctx.cancel_event,
            git_binary=self.git_binary,
        ) as workspace:
            ctx.advance(SyncState.PROVISIONED)
            self._report(ctx, f"starting {job.sync_type} sync for {job.repo}")

            ctx.check_cancelled("extraction")
            ctx.refs = self.ref_reader(workspace, git_binary=self.git_binary)
            ctx.advance(SyncState.EXTRACTED)
            ctx.log.info("git_refs.extracted", refs=len(ctx.refs))

            ctx.check_cancelled("reconciliation")
            self._reconcile(ctx, statement_timeout_ms)

    def _reconcile(self, ctx: JobContext, statement_timeout_ms: int) -> None:
        job = ctx.job
        try:
            conn = self.engine.connect()
        except Exception as e:
            raise ReconciliationError(f"could not open database connection: {e}") from e

        with conn:
            try:
                tx = conn.begin()
            except Exception as e:
                raise ReconciliationError(f"could not begin transaction: {e}") from e
            try:
                if statement_timeout_ms:
                    try:
                        conn.execute(
                            sa.text(f"SET LOCAL statement_timeout = {int(statement_timeout_ms)}")
                        )
                    except Exception as e:
                        raise ReconciliationError(f"could not set statement timeout: {e}") from e
                result = self.loader.replace_refs(conn, job.repo_id, ctx.refs)
                ctx.rows_deleted = result.rows_deleted
                self.status_publisher_factory(conn).set_status(job.job_id, JobStatus.DONE)
                ctx.advance(SyncState.RECONCILED)

                # emitted before commit on the sink's own connection; a lost
                # completion record rolls the refs back
                ctx.check_cancelled("completion report")
                self._report(ctx, f"finished {job.sync_type} sync for {job.repo}")

                try:
                    tx.commit()
                except Exception as e:
                    raise ReconciliationError(f"commit failed: {e}") from e
                ctx.advance(SyncState.REPORTED)
            except BaseException:
                self._rollback(ctx, tx)
                raise

    def _report(self, ctx: JobContext, message: str) -> None:
        entry = SyncLogEntry(job_id=ctx.job.job_id, log_type=SyncLogType.INFO, message=message)
        self.reporter.send_batch([entry])
        ctx.log_entries.append(entry)

    @staticmethod
    def _rollback(ctx: JobContext, tx: RootTransaction) -> None:
        if not tx.is_active:
            return
        try:
            tx.rollback()
        except Exception as e:
            # the error that triggered the rollback is the one reported
            ctx.log.error("sync.rollback_failed", error=str(e))
