from .credentials import (
    DatabaseTokenProvider,
    StaticTokenProvider,
    TokenProvider,
    build_token_provider,
)

__all__ = [
    "DatabaseTokenProvider",
    "StaticTokenProvider",
    "TokenProvider",
    "build_token_provider",
]
