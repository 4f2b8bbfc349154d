"""Transactional replace of a repository's stored ref set.

The loader never begins, commits or rolls back: it runs DELETE + COPY on the
caller's connection so the job status update can share the same transaction.
COPY is PostgreSQL's bulk-load path; rows are streamed from an in-memory
buffer in text format.
"""

import io
import time
from typing import Sequence

import sqlalchemy as sa
from sqlalchemy.engine import Connection

from repo_sync.domain.git_refs.exceptions import ReconciliationError
from repo_sync.domain.git_refs.models import Ref
from repo_sync.io.loader.models import ReplaceResult
from repo_sync.io.loader.sql_utils import copy_text_value, quote_ident, quote_qualified
from repo_sync.utils.logging import get_logger

logger = get_logger(__name__)

GIT_REFS_COLUMNS = (
    "repo_id",
    "full_name",
    "name",
    "hash",
    "remote",
    "target",
    "type",
    "tag_commit_hash",
)


def encode_copy_rows(repo_id: str, refs: Sequence[Ref]) -> str:
    """Render refs as COPY text-format rows in GIT_REFS_COLUMNS order."""
    lines = []
    for ref in refs:
        values = (
            repo_id,
            ref.full_name,
            ref.name,
            ref.hash,
            ref.remote,
            ref.target,
            ref.type,
            ref.tag_commit_hash,
        )
        lines.append("\t".join(copy_text_value(v) for v in values) + "\n")
    return "".join(lines)


class GitRefsLoader:
    """Delete-then-COPY replacement of ``git_refs`` rows for one repository."""

    def __init__(
        self,
        schema: str = "public",
        table: str = "git_refs",
        advisory_lock: bool = False,
    ):
        self.schema = schema
        self.table = table
        self.advisory_lock = advisory_lock
        self._qualified_table = quote_qualified(schema, table)

    def build_delete_sql(self) -> str:
        return f"DELETE FROM {self._qualified_table} WHERE repo_id = :repo_id"

    def build_copy_sql(self) -> str:
        quoted_cols = ", ".join(quote_ident(col) for col in GIT_REFS_COLUMNS)
        return f"COPY {self._qualified_table} ({quoted_cols}) FROM STDIN"

    def _copy_refs(self, conn: Connection, repo_id: str, refs: Sequence[Ref]) -> int:
        if not refs:
            return 0
        buffer = io.StringIO(encode_copy_rows(repo_id, refs))
        # COPY needs the raw psycopg2 cursor; it runs on the same transaction
        with conn.connection.cursor() as cursor:
            cursor.copy_expert(self.build_copy_sql(), buffer)
        return len(refs)

    def replace_refs(
        self, conn: Connection, repo_id: str, refs: Sequence[Ref]
    ) -> ReplaceResult:
        """Replace every stored ref of ``repo_id`` with ``refs``.

        Must be called inside a transaction owned by the caller.

        Raises:
            ReconciliationError: on any database failure; the caller rolls back
        """
        start_time = time.perf_counter()
        try:
            if self.advisory_lock:
                conn.execute(
                    sa.text("SELECT pg_advisory_xact_lock(hashtext(:repo_id))"),
                    {"repo_id": repo_id},
                )

            result = conn.execute(sa.text(self.build_delete_sql()), {"repo_id": repo_id})
            rows_deleted = max(result.rowcount or 0, 0)
            rows_inserted = self._copy_refs(conn, repo_id, refs)
        except Exception as exc:
            logger.error(
                "git_refs.replace.failed",
                table=self.table,
                schema=self.schema,
                repo_id=repo_id,
                error=str(exc),
            )
            raise ReconciliationError(
                f"replace of {self.schema}.{self.table} failed: {exc}"
            ) from exc

        duration_ms = (time.perf_counter() - start_time) * 1000
        logger.info(
            "git_refs.replace.completed",
            repo_id=repo_id,
            rows_deleted=rows_deleted,
            rows_inserted=rows_inserted,
            duration_ms=duration_ms,
        )
        return ReplaceResult(
            repo_id=repo_id,
            rows_deleted=rows_deleted,
            rows_inserted=rows_inserted,
            duration_ms=duration_ms,
        )
