"""Unit tests for structured logging.

Tests cover:
- get_logger returns a structlog logger with the name preserved
- Sanitization of tokens, secrets, authorization headers and DSNs
- Context binding of job and repository ids
"""

import json
import logging

import pytest

from repo_sync.utils.logging import (
    REDACTED_VALUE,
    bind_context,
    get_logger,
    sanitize_for_logging,
)


@pytest.mark.unit
def test_get_logger_returns_bound_logger() -> None:
    logger = get_logger("test_module")

    assert hasattr(logger, "bind")
    assert hasattr(logger, "info")
    assert hasattr(logger, "error")


@pytest.mark.unit
def test_get_logger_name_preserved(caplog: pytest.LogCaptureFixture) -> None:
    caplog.set_level(logging.INFO)

    logger = get_logger("repo_sync_test_logger")
    logger.info("test_event")

    assert len(caplog.records) >= 1
    log_data = json.loads(caplog.records[-1].message)
    assert log_data.get("logger") == "repo_sync_test_logger"
    assert log_data.get("event") == "test_event"


@pytest.mark.unit
@pytest.mark.parametrize(
    "key",
    ["github_token", "ENCRYPTION_SECRET", "Authorization", "db_password", "DATABASE_URL"],
)
def test_sanitize_for_logging_redacts_sensitive_keys(key: str) -> None:
    sanitized = sanitize_for_logging({key: "value", "repo": "github.com/a/b"})

    assert sanitized[key] == REDACTED_VALUE
    assert sanitized["repo"] == "github.com/a/b"


@pytest.mark.unit
def test_sanitize_for_logging_keeps_similar_dsn_keys() -> None:
    sanitized = sanitize_for_logging({"database_name": "sync", "DATABASE_URL_HINT": "x"})

    assert sanitized["database_name"] == "sync"
    assert sanitized["DATABASE_URL_HINT"] == "x"


@pytest.mark.unit
def test_sanitize_for_logging_handles_nested_dicts() -> None:
    data = {"job_id": 7, "auth": {"token": "ghp_abc", "user": "x-access-token"}}

    sanitized = sanitize_for_logging(data)

    assert sanitized["job_id"] == 7
    assert sanitized["auth"]["token"] == REDACTED_VALUE
    assert sanitized["auth"]["user"] == "x-access-token"


@pytest.mark.unit
def test_token_never_reaches_output(caplog: pytest.LogCaptureFixture) -> None:
    caplog.set_level(logging.INFO)

    get_logger("repo_sync_test_logger").info("credentials.loaded", token="ghp_supersecret")

    assert "ghp_supersecret" not in caplog.text


@pytest.mark.unit
def test_context_binding_persists(caplog: pytest.LogCaptureFixture) -> None:
    caplog.set_level(logging.INFO)

    logger = bind_context(job_id=42, repo_id="repo-1", sync_type="GIT_REFS")
    logger.info("first_event", refs=1)
    logger.info("second_event", refs=2)

    assert len(caplog.records) >= 2
    for record in caplog.records[-2:]:
        log_data = json.loads(record.message)
        assert log_data.get("job_id") == 42
        assert log_data.get("repo_id") == "repo-1"
        assert log_data.get("sync_type") == "GIT_REFS"


@pytest.mark.unit
def test_bound_logger_keeps_module_name(caplog: pytest.LogCaptureFixture) -> None:
    caplog.set_level(logging.INFO)

    bind_context("repo_sync.domain.git_refs.service", job_id=42).info("bound_event")

    log_data = json.loads(caplog.records[-1].message)
    assert log_data["logger"] == "repo_sync.domain.git_refs.service"
    assert log_data["job_id"] == 42
