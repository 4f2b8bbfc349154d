"""
Unit tests for GitRefsSyncService.

The database is replaced by an in-memory store whose writes are staged on a
fake transaction and applied only on commit, so visibility of the stored ref
set and the job status can be asserted after every failure mode.
"""

import json
import logging
import threading
from contextlib import contextmanager
from typing import Dict, List, Optional

import pytest

from repo_sync.domain.git_refs import (
    ExtractionError,
    GitRefsSyncService,
    JobCancelledError,
    JobStatus,
    ProvisionError,
    ReconciliationError,
    Ref,
    ReportError,
    SyncJob,
    SyncLogType,
    SyncState,
)
from repo_sync.io.loader import ReplaceResult

REPO_ID = "0b6f8a5e-4c1d-4e59-9a55-1e0e5b1f3a11"
REPO_URL = "https://github.com/example/widgets"

BRANCH = Ref(full_name="refs/heads/main", name="main", hash="c" * 40, type="branch")
TAG = Ref(
    full_name="refs/tags/v1.0",
    name="v1.0",
    hash="a" * 40,
    type="tag",
    tag_commit_hash="c" * 40,
)
OLD = Ref(full_name="refs/heads/old", name="old", hash="d" * 40, type="branch")


class Store:
    """Committed state: stored refs per repository and job statuses."""

    def __init__(self):
        self.refs: Dict[str, List[Ref]] = {REPO_ID: [OLD]}
        self.status: Dict[int, JobStatus] = {1: JobStatus.RUNNING}


class FakeTransaction:
    def __init__(self, conn: "FakeConnection", fail_commit=False, fail_rollback=False):
        self.conn = conn
        self.fail_commit = fail_commit
        self.fail_rollback = fail_rollback
        self.is_active = True
        self.committed = False
        self.rolled_back = False

    def commit(self):
        if self.fail_commit:
            raise RuntimeError("connection reset during commit")
        self.conn.store.refs.update(self.conn.staged_refs)
        self.conn.store.status.update(self.conn.staged_status)
        self.committed = True
        self.is_active = False

    def rollback(self):
        self.rolled_back = True
        self.is_active = False
        if self.fail_rollback:
            raise RuntimeError("rollback on dead connection")


class FakeConnection:
    def __init__(self, store: Store, **tx_options):
        self.store = store
        self.tx_options = tx_options
        self.staged_refs: Dict[str, List[Ref]] = {}
        self.staged_status: Dict[int, JobStatus] = {}
        self.executed: List[str] = []
        self.tx: Optional[FakeTransaction] = None
        self.closed = False

    def begin(self):
        self.tx = FakeTransaction(self, **self.tx_options)
        return self.tx

    def execute(self, statement, params=None):
        self.executed.append(str(statement))

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.closed = True
        return False


class FakeEngine:
    def __init__(self, store: Store, **tx_options):
        self.store = store
        self.tx_options = tx_options
        self.connections: List[FakeConnection] = []

    def connect(self):
        conn = FakeConnection(self.store, **self.tx_options)
        self.connections.append(conn)
        return conn

    @property
    def last_tx(self) -> FakeTransaction:
        return self.connections[-1].tx


class FakeLoader:
    def __init__(self, fail_after_delete=False):
        self.fail_after_delete = fail_after_delete
        self.calls = []

    def replace_refs(self, conn, repo_id, refs):
        self.calls.append((conn, repo_id, list(refs)))
        deleted = len(conn.store.refs.get(repo_id, []))
        conn.staged_refs[repo_id] = []
        if self.fail_after_delete:
            raise ReconciliationError("COPY rejected row 2")
        conn.staged_refs[repo_id] = list(refs)
        return ReplaceResult(
            repo_id=repo_id, rows_deleted=deleted, rows_inserted=len(refs), duration_ms=1.0
        )


class FakeStatusPublisher:
    def __init__(self, conn, fail=False):
        self.conn = conn
        self.fail = fail

    def set_status(self, job_id, status):
        if self.fail:
            raise ReconciliationError("status update failed")
        self.conn.staged_status[job_id] = status


class FakeReporter:
    def __init__(self, fail_on: Optional[str] = None):
        self.fail_on = fail_on
        self.batches = []

    def send_batch(self, entries):
        for entry in entries:
            if self.fail_on and entry.message.startswith(self.fail_on):
                raise ReportError("log sink unavailable")
        self.batches.append(list(entries))
        return len(entries)

    @property
    def messages(self):
        return [entry.message for batch in self.batches for entry in batch]


class FakeProvisioner:
    def __init__(self, fail=False):
        self.fail = fail
        self.calls = []
        self.entered = 0
        self.cleaned_up = 0

    @contextmanager
    def __call__(self, locator, token=None, clone_root=None, timeout=None,
                 cancel_event=None, git_binary="git"):
        self.calls.append(
            {"locator": locator, "token": token, "clone_root": clone_root, "timeout": timeout}
        )
        if self.fail:
            raise ProvisionError(f"git clone of {locator} failed (exit 128)")
        self.entered += 1
        try:
            yield f"/tmp/workspace-for-{locator}"
        finally:
            self.cleaned_up += 1


class FakeTokenProvider:
    def __init__(self, token="ghp_test"):
        self.token = token

    def get_token(self):
        return self.token


@pytest.fixture
def store():
    return Store()


@pytest.fixture
def job():
    return SyncJob(job_id=1, repo_id=REPO_ID, repo=REPO_URL)


def build_service(
    store,
    refs=None,
    reader=None,
    engine=None,
    loader=None,
    provisioner=None,
    reporter=None,
    status_fails=False,
    **kwargs,
):
    engine = engine or FakeEngine(store)
    refs = [BRANCH, TAG] if refs is None else refs

    def default_reader(workspace, git_binary="git"):
        return list(refs)

    service = GitRefsSyncService(
        engine=engine,
        token_provider=FakeTokenProvider(),
        provisioner=provisioner or FakeProvisioner(),
        ref_reader=reader or default_reader,
        loader=loader or FakeLoader(),
        status_publisher_factory=lambda conn: FakeStatusPublisher(conn, fail=status_fails),
        reporter=reporter or FakeReporter(),
        **kwargs,
    )
    return service, engine


@pytest.mark.unit
class TestSuccessfulSync:
    def test_refs_replaced_and_job_done(self, store, job):
        service, engine = build_service(store)

        result = service.handle(job)

        assert result.final_state is SyncState.DONE
        assert result.refs_synced == 2
        assert result.rows_deleted == 1
        assert store.refs[REPO_ID] == [BRANCH, TAG]
        assert store.status[1] is JobStatus.DONE
        assert engine.last_tx.committed

    def test_progress_log_brackets_the_sync(self, store, job):
        reporter = FakeReporter()
        service, _ = build_service(store, reporter=reporter)

        service.handle(job)

        assert reporter.messages == [
            f"starting GIT_REFS sync for {REPO_URL}",
            f"finished GIT_REFS sync for {REPO_URL}",
        ]
        assert all(
            entry.log_type is SyncLogType.INFO and entry.job_id == 1
            for batch in reporter.batches
            for entry in batch
        )

    def test_job_events_logged_under_service_module(self, store, job, caplog):
        caplog.set_level(logging.INFO)
        service, _ = build_service(store)

        service.handle(job)

        events = [
            json.loads(record.message)
            for record in caplog.records
            if record.name == "repo_sync.domain.git_refs.service"
        ]
        started = next(e for e in events if e["event"] == "git_refs.sync.started")
        assert started["logger"] == "repo_sync.domain.git_refs.service"
        assert started["job_id"] == 1
        assert started["repo_id"] == REPO_ID

    def test_refs_and_status_share_one_connection(self, store, job):
        loader = FakeLoader()
        service, engine = build_service(store, loader=loader)

        service.handle(job)

        assert len(engine.connections) == 1
        assert loader.calls[0][0] is engine.connections[0]
        assert engine.connections[0].closed

    def test_workspace_cleaned_up_once(self, store, job):
        provisioner = FakeProvisioner()
        service, _ = build_service(store, provisioner=provisioner)

        service.handle(job)

        assert provisioner.entered == 1
        assert provisioner.cleaned_up == 1

    def test_token_and_clone_options_forwarded(self, store, job):
        provisioner = FakeProvisioner()
        service, _ = build_service(
            store, provisioner=provisioner, clone_root="/srv/clones", clone_timeout=60
        )

        service.handle(job, clone_timeout=5)

        assert provisioner.calls == [
            {"locator": REPO_URL, "token": "ghp_test", "clone_root": "/srv/clones", "timeout": 5}
        ]

    def test_empty_repository_clears_stored_refs(self, store, job):
        service, _ = build_service(store, refs=[])

        result = service.handle(job)

        assert result.refs_synced == 0
        assert store.refs[REPO_ID] == []
        assert store.status[1] is JobStatus.DONE

    def test_repeated_runs_store_the_same_set(self, store, job):
        service, _ = build_service(store)

        service.handle(job)
        first = list(store.refs[REPO_ID])
        service.handle(job)

        assert store.refs[REPO_ID] == first

    def test_statement_timeout_set_on_transaction(self, store, job):
        service, engine = build_service(store, statement_timeout_ms=30000)

        service.handle(job)

        assert engine.connections[0].executed == ["SET LOCAL statement_timeout = 30000"]

    def test_no_statement_timeout_by_default(self, store, job):
        service, engine = build_service(store)

        service.handle(job)

        assert engine.connections[0].executed == []


@pytest.mark.unit
class TestFailedSync:
    def test_provision_failure(self, store, job):
        provisioner = FakeProvisioner(fail=True)
        reporter = FakeReporter()
        service, engine = build_service(store, provisioner=provisioner, reporter=reporter)

        with pytest.raises(ProvisionError) as exc_info:
            service.handle(job)

        assert exc_info.value.job_id == 1
        assert exc_info.value.repo_id == REPO_ID
        assert reporter.messages == []
        assert engine.connections == []
        assert store.refs[REPO_ID] == [OLD]

    def test_extraction_failure_leaves_store_untouched(self, store, job):
        provisioner = FakeProvisioner()

        def broken_reader(workspace, git_binary="git"):
            raise ExtractionError("bad object HEAD")

        reporter = FakeReporter()
        service, engine = build_service(
            store, reader=broken_reader, provisioner=provisioner, reporter=reporter
        )

        with pytest.raises(ExtractionError):
            service.handle(job)

        assert reporter.messages == [f"starting GIT_REFS sync for {REPO_URL}"]
        assert engine.connections == []
        assert store.refs[REPO_ID] == [OLD]
        assert store.status[1] is JobStatus.RUNNING
        assert provisioner.cleaned_up == 1

    def test_loader_failure_after_delete_rolls_back(self, store, job):
        provisioner = FakeProvisioner()
        reporter = FakeReporter()
        service, engine = build_service(
            store,
            loader=FakeLoader(fail_after_delete=True),
            provisioner=provisioner,
            reporter=reporter,
        )

        with pytest.raises(ReconciliationError):
            service.handle(job)

        assert engine.last_tx.rolled_back
        assert not engine.last_tx.committed
        assert store.refs[REPO_ID] == [OLD]
        assert store.status[1] is JobStatus.RUNNING
        assert f"finished GIT_REFS sync for {REPO_URL}" not in reporter.messages
        assert provisioner.cleaned_up == 1

    def test_status_failure_rolls_back_refs(self, store, job):
        service, engine = build_service(store, status_fails=True)

        with pytest.raises(ReconciliationError):
            service.handle(job)

        assert engine.last_tx.rolled_back
        assert store.refs[REPO_ID] == [OLD]

    def test_start_log_failure_stops_before_extraction(self, store, job):
        reader_calls = []

        def reader(workspace, git_binary="git"):
            reader_calls.append(workspace)
            return [BRANCH]

        provisioner = FakeProvisioner()
        service, engine = build_service(
            store,
            reader=reader,
            provisioner=provisioner,
            reporter=FakeReporter(fail_on="starting"),
        )

        with pytest.raises(ReportError):
            service.handle(job)

        assert reader_calls == []
        assert engine.connections == []
        assert provisioner.cleaned_up == 1

    def test_completion_log_failure_rolls_back(self, store, job):
        provisioner = FakeProvisioner()
        service, engine = build_service(
            store, provisioner=provisioner, reporter=FakeReporter(fail_on="finished")
        )

        with pytest.raises(ReportError) as exc_info:
            service.handle(job)

        assert exc_info.value.job_id == 1
        assert engine.last_tx.rolled_back
        assert store.refs[REPO_ID] == [OLD]
        assert store.status[1] is JobStatus.RUNNING
        assert provisioner.cleaned_up == 1

    def test_commit_failure_is_reconciliation_error(self, store, job):
        engine = FakeEngine(store, fail_commit=True)
        service, _ = build_service(store, engine=engine)

        with pytest.raises(ReconciliationError, match="commit failed"):
            service.handle(job)

        assert engine.last_tx.rolled_back
        assert store.refs[REPO_ID] == [OLD]

    def test_rollback_failure_keeps_original_error(self, store, job):
        engine = FakeEngine(store, fail_rollback=True)
        service, _ = build_service(
            store, engine=engine, loader=FakeLoader(fail_after_delete=True)
        )

        with pytest.raises(ReconciliationError, match="COPY rejected"):
            service.handle(job)

    def test_begin_failure_is_reconciliation_error(self, store, job):
        class BeginFailsConnection(FakeConnection):
            def begin(self):
                raise OSError("server closed the connection")

        class BeginFailsEngine(FakeEngine):
            def connect(self):
                conn = BeginFailsConnection(self.store)
                self.connections.append(conn)
                return conn

        provisioner = FakeProvisioner()
        engine = BeginFailsEngine(store)
        service, _ = build_service(store, engine=engine, provisioner=provisioner)

        with pytest.raises(ReconciliationError, match="could not begin transaction") as exc_info:
            service.handle(job)

        assert exc_info.value.job_id == 1
        assert exc_info.value.repo_id == REPO_ID
        assert engine.connections[0].closed
        assert provisioner.cleaned_up == 1

    def test_statement_timeout_failure_rolls_back(self, store, job):
        class TimeoutFailsConnection(FakeConnection):
            def execute(self, statement, params=None):
                if "statement_timeout" in str(statement):
                    raise OSError("server closed the connection")
                super().execute(statement, params)

        class TimeoutFailsEngine(FakeEngine):
            def connect(self):
                conn = TimeoutFailsConnection(self.store)
                self.connections.append(conn)
                return conn

        engine = TimeoutFailsEngine(store)
        loader = FakeLoader()
        service, _ = build_service(
            store, engine=engine, loader=loader, statement_timeout_ms=30000
        )

        with pytest.raises(ReconciliationError, match="could not set statement timeout") as exc_info:
            service.handle(job)

        assert exc_info.value.job_id == 1
        assert exc_info.value.repo_id == REPO_ID
        assert loader.calls == []
        assert engine.last_tx.rolled_back
        assert store.refs[REPO_ID] == [OLD]
        assert store.status[1] is JobStatus.RUNNING

    def test_connection_failure_is_reconciliation_error(self, store, job):
        class UnreachableEngine:
            def connect(self):
                raise OSError("could not connect to server")

        provisioner = FakeProvisioner()
        service, _ = build_service(store, engine=UnreachableEngine(), provisioner=provisioner)

        with pytest.raises(ReconciliationError, match="could not open database connection"):
            service.handle(job)

        assert provisioner.cleaned_up == 1


@pytest.mark.unit
class TestCancellation:
    def test_cancel_before_start_skips_everything(self, store, job):
        event = threading.Event()
        event.set()
        provisioner = FakeProvisioner()
        service, _ = build_service(store, provisioner=provisioner)

        with pytest.raises(JobCancelledError) as exc_info:
            service.handle(job, cancel_event=event)

        assert exc_info.value.job_id == 1
        assert provisioner.calls == []

    def test_cancel_during_extraction_stops_before_reconciliation(self, store, job):
        event = threading.Event()
        provisioner = FakeProvisioner()

        def reader(workspace, git_binary="git"):
            event.set()
            return [BRANCH]

        service, engine = build_service(store, reader=reader, provisioner=provisioner)

        with pytest.raises(JobCancelledError, match="reconciliation"):
            service.handle(job, cancel_event=event)

        assert engine.connections == []
        assert store.refs[REPO_ID] == [OLD]
        assert provisioner.cleaned_up == 1
