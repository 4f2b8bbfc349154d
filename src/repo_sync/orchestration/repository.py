"""
Dagster Definitions for the repo-sync worker, discoverable by ``dagster dev``.
"""

from dagster import Definitions

from .jobs import git_refs_sync_job

defs = Definitions(
    jobs=[
        git_refs_sync_job,
    ],
)
