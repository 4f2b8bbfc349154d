"""Tables for the git refs sync worker.

Creates:
- public.repos: repositories known to the sync service
- public.git_refs: stored ref set, keyed by (repo_id, full_name)
- sync.repo_sync_queue: sync jobs and their status
- sync.repo_sync_logs: append-only progress records per job
- sync.service_auth_credentials: pgcrypto-encrypted provider tokens

All tables use the idempotent IF NOT EXISTS pattern for safe re-execution.

Revision ID: 20261018_000001
Revises: None
Create Date: 2026-10-18
"""

from __future__ import annotations

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql
from sqlalchemy.sql import func

revision = "20261018_000001"
down_revision = None
branch_labels = None
depends_on = None


def _table_exists(conn, table_name: str, schema: str) -> bool:
    result = conn.execute(
        sa.text(
            """
        SELECT EXISTS (
            SELECT FROM information_schema.tables
            WHERE table_schema = :schema AND table_name = :table
        )
        """
        ),
        {"schema": schema, "table": table_name},
    )
    return result.scalar()


def upgrade() -> None:
    """Create sync tables."""
    conn = op.get_bind()

    conn.execute(sa.text("CREATE EXTENSION IF NOT EXISTS pgcrypto"))
    conn.execute(sa.text("CREATE SCHEMA IF NOT EXISTS sync"))

    if not _table_exists(conn, "repos", "public"):
        op.create_table(
            "repos",
            sa.Column(
                "id",
                postgresql.UUID(),
                primary_key=True,
                server_default=sa.text("gen_random_uuid()"),
            ),
            sa.Column("repo", sa.Text(), nullable=False, unique=True),
            sa.Column(
                "created_at",
                sa.TIMESTAMP(timezone=True),
                nullable=False,
                server_default=func.now(),
            ),
            schema="public",
        )

    if not _table_exists(conn, "git_refs", "public"):
        op.create_table(
            "git_refs",
            sa.Column(
                "repo_id",
                postgresql.UUID(),
                sa.ForeignKey("public.repos.id", ondelete="CASCADE"),
                nullable=False,
            ),
            sa.Column("full_name", sa.Text(), nullable=False),
            sa.Column("name", sa.Text(), nullable=False),
            sa.Column("hash", sa.Text(), nullable=True),
            sa.Column("remote", sa.Text(), nullable=True),
            sa.Column("target", sa.Text(), nullable=True),
            sa.Column("type", sa.Text(), nullable=True),
            sa.Column("tag_commit_hash", sa.Text(), nullable=True),
            sa.PrimaryKeyConstraint("repo_id", "full_name", name="git_refs_pkey"),
            schema="public",
        )

    if not _table_exists(conn, "repo_sync_queue", "sync"):
        op.create_table(
            "repo_sync_queue",
            sa.Column("id", sa.BigInteger(), primary_key=True, autoincrement=True),
            sa.Column(
                "repo_id",
                postgresql.UUID(),
                sa.ForeignKey("public.repos.id", ondelete="CASCADE"),
                nullable=False,
            ),
            sa.Column("sync_type", sa.Text(), nullable=False),
            sa.Column(
                "status", sa.Text(), nullable=False, server_default=sa.text("'QUEUED'")
            ),
            sa.Column(
                "created_at",
                sa.TIMESTAMP(timezone=True),
                nullable=False,
                server_default=func.now(),
            ),
            sa.Column("started_at", sa.TIMESTAMP(timezone=True), nullable=True),
            sa.Column("done_at", sa.TIMESTAMP(timezone=True), nullable=True),
            schema="sync",
        )
        op.create_index(
            "idx_repo_sync_queue_status",
            "repo_sync_queue",
            ["status"],
            schema="sync",
        )

    if not _table_exists(conn, "repo_sync_logs", "sync"):
        op.create_table(
            "repo_sync_logs",
            sa.Column("id", sa.BigInteger(), primary_key=True, autoincrement=True),
            sa.Column("log_type", sa.Text(), nullable=False),
            sa.Column("message", sa.Text(), nullable=False),
            sa.Column(
                "repo_sync_queue_id",
                sa.BigInteger(),
                sa.ForeignKey("sync.repo_sync_queue.id", ondelete="CASCADE"),
                nullable=False,
            ),
            sa.Column(
                "created_at",
                sa.TIMESTAMP(timezone=True),
                nullable=False,
                server_default=func.now(),
            ),
            schema="sync",
        )
        op.create_index(
            "idx_repo_sync_logs_queue_id",
            "repo_sync_logs",
            ["repo_sync_queue_id"],
            schema="sync",
        )

    if not _table_exists(conn, "service_auth_credentials", "sync"):
        op.create_table(
            "service_auth_credentials",
            sa.Column(
                "id",
                postgresql.UUID(),
                primary_key=True,
                server_default=sa.text("gen_random_uuid()"),
            ),
            sa.Column("type", sa.Text(), nullable=False),
            sa.Column("credentials", postgresql.BYTEA(), nullable=False),
            sa.Column(
                "created_at",
                sa.TIMESTAMP(timezone=True),
                nullable=False,
                server_default=func.now(),
            ),
            schema="sync",
        )


def downgrade() -> None:
    """Drop sync tables.

    This is a destructive operation. Data loss will occur.
    """
    conn = op.get_bind()

    for table in ["service_auth_credentials", "repo_sync_logs", "repo_sync_queue"]:
        if _table_exists(conn, table, "sync"):
            op.drop_table(table, schema="sync")

    for table in ["git_refs", "repos"]:
        if _table_exists(conn, table, "public"):
            op.drop_table(table, schema="public")
