# semaphore_engine/run_semaphore.py
"""Run a command under a cross-process counting semaphore."""

import argparse
import logging
import sys
from typing import List, Optional

from semaphore_engine.core.errors import SemaphoreConfigError, SemaphoreEnvironmentError
from semaphore_engine.core.models import ENVIRONMENT_FAILURE_STATUS, ScopeLayout
from semaphore_engine.executor.waiter import run_under_semaphore
from semaphore_engine.infrastructure.config import SemaphoreSettings, load_settings
from semaphore_engine.infrastructure.scope import inspect_scope, resolve_scope_dir

logger = logging.getLogger(__name__)

USAGE_ERROR_STATUS = 2


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="semrun",
        description=(
            "Run COMMAND once fewer than N other commands of the same scope "
            "are running on this machine."
        ),
    )
    p.add_argument("-i", "--id", dest="scope_id", default=None,
                   help="Scope identifier or directory (default: derived from COMMAND)")
    p.add_argument("-j", "--jobs", dest="max_concurrency", type=int, default=None,
                   help="Maximum concurrent commands in the scope (env SEM_MAX_CONCURRENCY, default 1)")
    p.add_argument("-d", "--dir", dest="base_dir", default=None,
                   help="Base directory for scopes (env SEM_BASE_DIR)")
    p.add_argument("-p", "--poll", dest="poll_interval", type=float, default=None,
                   help="Seconds between slot scans while waiting (env SEM_POLL_INTERVAL, default 5)")
    p.add_argument("-v", "--verbose", action="count", default=None,
                   help="Log progress to stderr (-vv for debug)")
    p.add_argument("--status", action="store_true",
                   help="Print which slots of the scope are held and exit (every existing slot file is probed)")
    p.add_argument("command", nargs=argparse.REMAINDER,
                   help="Command and arguments, optionally after --")
    return p


def setup_logging(verbose: int) -> None:
    if verbose >= 2:
        level = logging.DEBUG
    elif verbose == 1:
        level = logging.INFO
    else:
        level = logging.WARNING

    logging.basicConfig(
        level=level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        stream=sys.stderr,
    )


def print_status(layout: ScopeLayout) -> None:
    status = inspect_scope(layout)
    print(f"scope:   {status.scope_dir}")
    print(f"slots:   {len(status.held_slots)}/{status.max_concurrency} held {status.held_slots}")
    print(f"gate:    {'held' if status.gate_held else 'free'}")
    print(f"markers: {len(status.markers)}")


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    command = list(args.command)
    if command and command[0] == "--":
        command = command[1:]

    try:
        settings: SemaphoreSettings = load_settings(
            scope_id=args.scope_id,
            max_concurrency=args.max_concurrency,
            base_dir=args.base_dir,
            poll_interval=args.poll_interval,
            verbose=args.verbose,
        )
    except SemaphoreConfigError as e:
        parser.print_usage(sys.stderr)
        print(f"semrun: error: {e}", file=sys.stderr)
        return USAGE_ERROR_STATUS

    setup_logging(settings.verbose)

    if not command and not args.status:
        parser.print_usage(sys.stderr)
        print("semrun: error: a command is required", file=sys.stderr)
        return USAGE_ERROR_STATUS

    try:
        scope_dir = resolve_scope_dir(settings.scope_id, settings.base_dir, command)
        layout = ScopeLayout(scope_dir, settings.max_concurrency)

        if args.status:
            print_status(layout)
            return 0

        logger.info(f"Scope: {scope_dir}")
        logger.info(f"Max concurrency: {settings.max_concurrency}")
        logger.info(f"Poll interval: {settings.poll_interval}s")

        return run_under_semaphore(
            scope_dir,
            settings.max_concurrency,
            settings.poll_interval,
            command,
        )
    except SemaphoreConfigError as e:
        print(f"semrun: error: {e}", file=sys.stderr)
        return USAGE_ERROR_STATUS
    except SemaphoreEnvironmentError as e:
        logger.error(f"❌ {e}")
        return ENVIRONMENT_FAILURE_STATUS


if __name__ == "__main__":
    sys.exit(main())
