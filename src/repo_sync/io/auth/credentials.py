"""
Access tokens for the repository hosting provider.

Contract: return a token, return None when no credential is configured (public
repositories clone anonymously), or fail with ProvisionError. Tokens are not
cached here; every job asks again.
"""

from __future__ import annotations

from typing import Optional, Protocol

import sqlalchemy as sa
from sqlalchemy.engine import Engine

from repo_sync.config.settings import Settings
from repo_sync.domain.git_refs.exceptions import ProvisionError
from repo_sync.utils.logging import get_logger

logger = get_logger(__name__)

SCHEMA_NAME = "sync"
TABLE_NAME = "service_auth_credentials"
GITHUB_PAT = "GITHUB_PAT"


class TokenProvider(Protocol):
    def get_token(self) -> Optional[str]:
        ...


class StaticTokenProvider:
    """Token supplied through configuration (GITHUB_TOKEN)."""

    def __init__(self, token: Optional[str]):
        self._token = token or None

    def get_token(self) -> Optional[str]:
        return self._token


class DatabaseTokenProvider:
    """Newest encrypted credential of a given type, decrypted with pgcrypto."""

    def __init__(self, engine: Engine, secret: str, credential_type: str = GITHUB_PAT):
        self.engine = engine
        self.secret = secret
        self.credential_type = credential_type

    def get_token(self) -> Optional[str]:
        """
        Raises:
            ProvisionError: if the credential store cannot be queried
        """
        try:
            with self.engine.connect() as conn:
                row = conn.execute(
                    sa.text(
                        f"""
                        SELECT pgp_sym_decrypt(credentials, :secret)
                        FROM {SCHEMA_NAME}.{TABLE_NAME}
                        WHERE type = :credential_type
                        ORDER BY created_at DESC
                        LIMIT 1
                        """
                    ),
                    {"secret": self.secret, "credential_type": self.credential_type},
                ).fetchone()
        except Exception as e:
            raise ProvisionError(f"could not fetch {self.credential_type} credential: {e}") from e

        if row is None or not row[0]:
            logger.info("credentials.not_configured", credential_type=self.credential_type)
            return None
        return row[0]


def build_token_provider(settings: Settings, engine: Engine) -> TokenProvider:
    """A static token from settings wins over the credential table."""
    if settings.GITHUB_TOKEN:
        return StaticTokenProvider(settings.GITHUB_TOKEN)
    return DatabaseTokenProvider(engine, settings.ENCRYPTION_SECRET)
