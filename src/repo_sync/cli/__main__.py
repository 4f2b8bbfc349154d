"""
Operator CLI for the repo-sync worker.

Usage:
    python -m repo_sync.cli <command> [options]

Available commands:
    sync-refs    - Run one queued git refs sync job by id
    migrate      - Apply or roll back the sync schema migrations

Examples:
    python -m repo_sync.cli sync-refs --job-id 42
    python -m repo_sync.cli sync-refs --job-id 42 --no-mark-failed
    python -m repo_sync.cli migrate upgrade
    python -m repo_sync.cli migrate downgrade --revision base
"""

import argparse
import sys
from typing import List, Optional

from repo_sync.config import get_settings
from repo_sync.domain.git_refs.exceptions import SyncError
from repo_sync.utils.logging import get_logger

logger = get_logger(__name__)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="repo_sync.cli",
        description="repo-sync worker CLI",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    subparsers = parser.add_subparsers(
        title="commands",
        dest="command",
        required=True,
        help="Command to execute",
    )

    sync_parser = subparsers.add_parser(
        "sync-refs",
        help="Run one git refs sync job",
        description="Clone a queued repository and replace its stored refs",
    )
    sync_parser.add_argument("--job-id", type=int, required=True, help="Queue job id")
    sync_parser.add_argument(
        "--no-mark-failed",
        dest="mark_failed",
        action="store_false",
        help="Leave the job status untouched when the sync fails",
    )

    migrate_parser = subparsers.add_parser(
        "migrate",
        help="Schema migrations",
        description="Apply or roll back Alembic migrations",
    )
    migrate_parser.add_argument("direction", choices=["upgrade", "downgrade"])
    migrate_parser.add_argument(
        "--revision",
        default=None,
        help="Target revision (default: head for upgrade, -1 for downgrade)",
    )
    return parser


def _sync_refs(args: argparse.Namespace) -> int:
    from repo_sync.io.engine import create_sync_engine
    from repo_sync.orchestration.worker import JobNotFoundError, run_sync_job

    settings = get_settings()
    engine = create_sync_engine(settings)
    try:
        result = run_sync_job(args.job_id, engine, settings, mark_failed=args.mark_failed)
    except JobNotFoundError as e:
        print(f"❌ {e}", file=sys.stderr)
        return 2
    except SyncError as e:
        print(f"❌ {e}", file=sys.stderr)
        return 1
    finally:
        engine.dispose()

    print(
        f"✅ job {result.job_id}: {result.refs_synced} refs synced "
        f"in {result.duration_ms:.0f} ms"
    )
    return 0


def _migrate(args: argparse.Namespace) -> int:
    from repo_sync.io.schema import migration_runner

    database_url = get_settings().get_database_connection_string()
    if args.direction == "upgrade":
        migration_runner.upgrade(database_url, args.revision or "head")
    else:
        migration_runner.downgrade(database_url, args.revision or "-1")
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    """
    Main CLI entry point with subcommand routing.

    Returns:
        Exit code (0 success, 1 sync failure, 2 unknown job)
    """
    args = _build_parser().parse_args(argv)

    if args.command == "sync-refs":
        return _sync_refs(args)
    elif args.command == "migrate":
        return _migrate(args)
    return 1


if __name__ == "__main__":
    sys.exit(main())
