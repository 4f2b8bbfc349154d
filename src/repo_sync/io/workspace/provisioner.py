"""Disposable bare clones for reference inspection.

``provision_workspace`` is a context manager: the temporary directory is
created on entry and removed exactly once on exit, whatever happened in
between. A failed removal is logged and emitted as ``CleanupWarning`` and
never changes the outcome of the job.
"""

from __future__ import annotations

import base64
import os
import shutil
import subprocess
import tempfile
import threading
import warnings
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Iterator, List, Optional

from repo_sync.domain.git_refs.exceptions import (
    CleanupWarning,
    JobCancelledError,
    ProvisionError,
)
from repo_sync.utils.logging import get_logger

logger = get_logger(__name__)

WORKSPACE_PREFIX = "repo-sync-"


@dataclass(frozen=True)
class Workspace:
    """A local bare clone owned by exactly one job."""

    path: Path
    locator: str


def _auth_args(token: Optional[str]) -> List[str]:
    """git config args sending the token as an Authorization header."""
    if not token:
        return []
    basic = base64.b64encode(f"x-access-token:{token}".encode()).decode("ascii")
    return ["-c", f"http.extraHeader=Authorization: Basic {basic}"]


def _scrub(text: str, token: Optional[str]) -> str:
    text = (text or "").strip()
    if token:
        text = text.replace(token, "[REDACTED]")
    return text


def clone_repository(
    locator: str,
    destination: Path,
    token: Optional[str] = None,
    timeout: Optional[float] = None,
    git_binary: str = "git",
) -> None:
    """Bare-clone ``locator`` into ``destination``.

    Raises:
        ProvisionError: non-zero exit (auth/network), missing git, or timeout
    """
    command = [
        git_binary,
        *_auth_args(token),
        "clone",
        "--bare",
        "--quiet",
        locator,
        str(destination),
    ]
    env = dict(os.environ, GIT_TERMINAL_PROMPT="0")

    try:
        subprocess.run(
            command,
            capture_output=True,
            text=True,
            timeout=timeout,
            check=True,
            env=env,
        )
    except subprocess.CalledProcessError as e:
        raise ProvisionError(
            f"git clone of {locator} failed (exit {e.returncode}): "
            f"{_scrub(e.stderr, token)}"
        ) from None
    except subprocess.TimeoutExpired:
        raise ProvisionError(
            f"git clone of {locator} timed out after {timeout} seconds"
        ) from None
    except OSError as e:
        raise ProvisionError(f"could not run {git_binary}: {e}") from e


def _remove_workspace(path: Path) -> None:
    try:
        shutil.rmtree(path)
        logger.debug("workspace.removed", path=str(path))
    except FileNotFoundError:
        logger.debug("workspace.already_removed", path=str(path))
    except Exception as e:
        logger.warning("workspace.cleanup_failed", path=str(path), error=str(e))
        warnings.warn(
            f"could not remove workspace {path}: {e}", CleanupWarning, stacklevel=3
        )


@contextmanager
def provision_workspace(
    locator: str,
    token: Optional[str] = None,
    clone_root: Optional[str] = None,
    timeout: Optional[float] = None,
    cancel_event: Optional[threading.Event] = None,
    git_binary: str = "git",
) -> Iterator[Workspace]:
    """Yield a freshly cloned :class:`Workspace`, removing it on exit.

    Args:
        locator: Clone URL or local path of the repository
        token: Optional hosting-provider access token
        clone_root: Parent directory for the temp dir (system temp if None)
        timeout: Seconds allowed for the clone (None = unbounded)
        cancel_event: Checked once the clone returns
        git_binary: git executable

    Raises:
        ProvisionError: if the directory cannot be created or the clone fails
        JobCancelledError: if cancellation was requested during the clone
    """
    try:
        if clone_root:
            Path(clone_root).mkdir(parents=True, exist_ok=True)
        path = Path(tempfile.mkdtemp(prefix=WORKSPACE_PREFIX, dir=clone_root))
    except OSError as e:
        raise ProvisionError(f"could not create workspace directory: {e}") from e

    try:
        logger.info("workspace.cloning", locator=locator, path=str(path))
        clone_repository(
            locator, path, token=token, timeout=timeout, git_binary=git_binary
        )
        if cancel_event is not None and cancel_event.is_set():
            raise JobCancelledError("cancelled after clone")
        yield Workspace(path=path, locator=locator)
    finally:
        _remove_workspace(path)
