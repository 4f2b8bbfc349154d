"""repo-sync domain layer.

Domain modules hold the sync job logic and its data contracts. They may depend
on the standard library, pydantic, SQLAlchemy connection types and the shared
logging utilities only; they must never import from ``repo_sync.io`` or
``repo_sync.orchestration``.

Orchestration injects the concrete collaborators (git provisioner and reader,
PostgreSQL loader and repositories) so the dependency direction always flows
inward.
"""
