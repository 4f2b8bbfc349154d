"""
PostgreSQL loader for extracted git refs.

Bulk replace (DELETE + COPY) of a repository's ref rows on a caller-owned
transaction, with SQL identifier quoting helpers.
"""

from .git_refs_loader import GIT_REFS_COLUMNS, GitRefsLoader, encode_copy_rows
from .models import ReplaceResult
from .sql_utils import copy_text_value, quote_ident, quote_qualified

__all__ = [
    "GIT_REFS_COLUMNS",
    "GitRefsLoader",
    "ReplaceResult",
    "copy_text_value",
    "encode_copy_rows",
    "quote_ident",
    "quote_qualified",
]
