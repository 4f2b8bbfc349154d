from dataclasses import dataclass


@dataclass
class ReplaceResult:
    """Structured response for GitRefsLoader.replace_refs."""

    repo_id: str
    rows_deleted: int
    rows_inserted: int
    duration_ms: float
