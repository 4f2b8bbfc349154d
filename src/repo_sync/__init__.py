"""
repo-sync: git refs synchronization worker.

Clones a repository into a disposable workspace, reads its branches, tags,
remote-tracking and symbolic refs, and atomically replaces the stored ref set
in PostgreSQL on behalf of a queued sync job.
"""

__version__ = "0.1.0"
