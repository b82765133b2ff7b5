"""Command-line entry point: dry-run sync of a lockfile into the current environment."""

from __future__ import annotations

import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Optional, Sequence

from .args import parse_args
from .common.logging_utils import configure_logging
from .constants import ExitCodes
from .errors import LockSyncError
from .install import DryRunInstaller
from .locking import LockfileLocker
from .runtime import Runtime
from .settings import load_settings
from .sync.options import ExtrasSpecification, InstallOptions, Modifications, SelectionCriteria
from .sync.pipeline import sync

logger = logging.getLogger(__name__)


def _setup_logging(args) -> None:
    """Configure logging based on CLI arguments."""
    configure_logging(getattr(args, "LOG_LEVEL", None))


def run(args) -> int:
    """Run a sync for parsed ``args`` and return the process exit code."""
    lockfile: Optional[Path] = Path(args.LOCKFILE) if args.LOCKFILE else None
    try:
        settings = load_settings(
            args.PROJECT,
            args.CONFIG,
            {
                "no_build_isolation": args.NO_BUILD_ISOLATION,
                "no_build_isolation_package": args.NO_BUILD_ISOLATION_PACKAGE,
                "find_links": args.FIND_LINKS,
                "reinstall": args.REINSTALL,
                "index_url": args.INDEX_URL,
                "link_mode": args.LINK_MODE,
                "compile_bytecode": args.COMPILE_BYTECODE,
            },
        )
        outcome = asyncio.run(
            sync(
                project_dir=args.PROJECT,
                runtime=Runtime.current(Path(args.SITE) if args.SITE else None),
                locker=LockfileLocker(lockfile),
                installer=DryRunInstaller(),
                criteria=SelectionCriteria(
                    extras=ExtrasSpecification.from_args(args.EXTRAS, args.ALL_EXTRAS),
                    dev=args.DEV,
                ),
                install_options=InstallOptions.from_args(
                    no_install_project=args.NO_INSTALL_PROJECT,
                    no_install_workspace=args.NO_INSTALL_WORKSPACE,
                    no_install_package=args.NO_INSTALL_PACKAGE,
                    only_package=args.ONLY_PACKAGE,
                ),
                settings=settings,
                modifications=Modifications.SUFFICIENT if args.INEXACT else Modifications.EXACT,
                locked=args.LOCKED,
                frozen=args.FROZEN,
                package=args.PACKAGE,
                lockfile=lockfile,
            )
        )
    except LockSyncError as e:
        sys.stderr.write(f"error: {e}\n")
        return ExitCodes.ERROR.value

    if outcome.report is not None and args.OUTPUT_FORMAT == "json":
        sys.stdout.write(json.dumps(outcome.report.to_dict(), indent=2) + "\n")
    return outcome.status.value


def main(argv: Optional[Sequence[str]] = None) -> None:
    """Main entry point."""
    args = parse_args(argv)
    _setup_logging(args)
    logger.debug("Arguments parsed.")
    sys.exit(run(args))


if __name__ == "__main__":
    main()
