from .sync_job_repository import SyncJobRepository
from .sync_log_repository import SyncLogRepository

__all__ = ["SyncJobRepository", "SyncLogRepository"]
