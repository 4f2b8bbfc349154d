"""Read the complete reference set of a provisioned workspace.

Refs are returned in discovery order: ``HEAD`` (when it resolves) first, then
``git for-each-ref`` order. Tags carry ``tag_commit_hash``:

- lightweight tag on a commit: the tag's own hash
- annotated tag: the commit reached by peeling the tag object(s)
- anything that does not peel to a commit: the tag's raw hash, as the
  best available value rather than a guaranteed commit
"""

from __future__ import annotations

import subprocess
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Tuple

from repo_sync.domain.git_refs.exceptions import ExtractionError
from repo_sync.domain.git_refs.models import Ref
from repo_sync.io.workspace import Workspace
from repo_sync.utils.logging import get_logger

logger = get_logger(__name__)

FIELD_SEP = "\x00"
# %00 makes for-each-ref emit FIELD_SEP
FOR_EACH_REF_FORMAT = "%00".join(
    [
        "%(refname)",
        "%(objectname)",
        "%(objecttype)",
        "%(*objectname)",
        "%(*objecttype)",
        "%(symref)",
    ]
)

# (prefix, ref type); longest match first
REF_KINDS: Sequence[Tuple[str, str]] = (
    ("refs/heads/", "branch"),
    ("refs/remotes/", "remote"),
    ("refs/tags/", "tag"),
    ("refs/notes/", "note"),
)


def _git_dir(workspace: Workspace) -> Path:
    dot_git = workspace.path / ".git"
    return dot_git if dot_git.is_dir() else workspace.path


def _run_git(
    workspace: Workspace,
    args: List[str],
    git_binary: str = "git",
    stdin: Optional[str] = None,
    ok_codes: Tuple[int, ...] = (0,),
) -> subprocess.CompletedProcess:
    command = [git_binary, f"--git-dir={_git_dir(workspace)}", *args]
    try:
        result = subprocess.run(
            command, input=stdin, capture_output=True, text=True, check=False
        )
    except OSError as e:
        raise ExtractionError(f"could not run {git_binary}: {e}") from e

    if result.returncode not in ok_codes:
        raise ExtractionError(
            f"git {args[0]} failed in {workspace.path} "
            f"(exit {result.returncode}): {result.stderr.strip()}"
        )
    return result


def classify_ref(full_name: str) -> Tuple[str, Optional[str], Optional[str]]:
    """Return ``(short name, type, remote)`` for a full ref name."""
    for prefix, ref_type in REF_KINDS:
        if full_name.startswith(prefix):
            short = full_name[len(prefix):]
            if ref_type == "note":
                return f"notes/{short}", ref_type, None
            if ref_type == "remote":
                return short, ref_type, short.split("/", 1)[0]
            return short, ref_type, None
    if full_name.startswith("refs/"):
        return full_name[len("refs/"):], None, None
    return full_name, None, None


def _read_head(workspace: Workspace, git_binary: str) -> Optional[Ref]:
    """Return HEAD as a Ref, or None when it does not resolve (empty repo)."""
    resolved = _run_git(
        workspace, ["rev-parse", "-q", "--verify", "HEAD"], git_binary, ok_codes=(0, 1)
    )
    if resolved.returncode != 0:
        return None

    symbolic = _run_git(
        workspace, ["symbolic-ref", "-q", "HEAD"], git_binary, ok_codes=(0, 1)
    )
    if symbolic.returncode == 0:
        return Ref(full_name="HEAD", name="HEAD", target=symbolic.stdout.strip())
    # detached HEAD
    return Ref(full_name="HEAD", name="HEAD", hash=resolved.stdout.strip())


def _peel_to_commits(
    workspace: Workspace, full_names: List[str], git_binary: str
) -> Dict[str, Optional[str]]:
    """Resolve ``<ref>^{commit}`` for each name in one cat-file call."""
    if not full_names:
        return {}
    stdin = "".join(f"{name}^{{commit}}\n" for name in full_names)
    result = _run_git(
        workspace,
        ["cat-file", "--batch-check=%(objectname) %(objecttype)"],
        git_binary,
        stdin=stdin,
    )
    peeled: Dict[str, Optional[str]] = {}
    for name, line in zip(full_names, result.stdout.splitlines()):
        value, _, kind = line.rpartition(" ")
        peeled[name] = value if kind == "commit" else None
    return peeled


def read_refs(workspace: Workspace, git_binary: str = "git") -> List[Ref]:
    """Extract every reference of ``workspace`` with tags resolved.

    Raises:
        ExtractionError: workspace missing, not a repository, or corrupt
    """
    if not workspace.path.is_dir():
        raise ExtractionError(f"workspace {workspace.path} does not exist")

    refs: List[Ref] = []
    head = _read_head(workspace, git_binary)
    if head is not None:
        refs.append(head)

    listing = _run_git(
        workspace, ["for-each-ref", f"--format={FOR_EACH_REF_FORMAT}"], git_binary
    )

    rows = []
    unresolved: List[str] = []
    for line in listing.stdout.splitlines():
        if not line:
            continue
        fields = line.split(FIELD_SEP)
        if len(fields) != 6:
            raise ExtractionError(f"unexpected for-each-ref output: {line!r}")
        full_name, object_name, object_type, peeled_name, peeled_type, symref = fields
        rows.append(fields)
        if (
            full_name.startswith("refs/tags/")
            and not symref
            and object_type == "tag"
            and peeled_type != "commit"
        ):
            unresolved.append(full_name)

    # nested tags, or tags on trees/blobs
    peeled = _peel_to_commits(workspace, unresolved, git_binary)

    for full_name, object_name, object_type, peeled_name, peeled_type, symref in rows:
        name, ref_type, remote = classify_ref(full_name)
        ref_hash: Optional[str] = None if symref else object_name
        tag_commit_hash: Optional[str] = None

        if ref_type == "tag" and ref_hash is not None:
            if object_type == "tag" and peeled_type == "commit":
                tag_commit_hash = peeled_name
            else:
                tag_commit_hash = peeled.get(full_name) or ref_hash

        refs.append(
            Ref(
                full_name=full_name,
                name=name,
                hash=ref_hash,
                remote=remote,
                target=symref or None,
                type=ref_type,
                tag_commit_hash=tag_commit_hash,
            )
        )

    logger.debug("git_refs.read", path=str(workspace.path), refs=len(refs))
    return refs
