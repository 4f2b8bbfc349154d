"""Dagster jobs for repository sync operations."""

from dagster import job

from .git_refs_ops import git_refs_sync_op


@job
def git_refs_sync_job():
    """Sync the ref set of one queued repository into git_refs."""
    git_refs_sync_op()
