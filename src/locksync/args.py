"""Argument parsing for the locksync command."""

import argparse

from . import __version__
from .constants import Constants


def parse_args(argv=None):
    """Parses the arguments passed to the program."""
    parser = argparse.ArgumentParser(
        prog="locksync",
        description=(
            "locksync - reconcile a lockfile with the current Python environment "
            "(dry run: prints what a sync would change)"
        ),
        add_help=True,
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")

    parser.add_argument("--project",
                        dest="PROJECT",
                        help="Project or workspace directory (default: current directory)",
                        action="store", type=str, default=".")
    parser.add_argument("--lockfile",
                        dest="LOCKFILE",
                        help="Path to the lockfile (default: <workspace>/uv.lock)",
                        action="store", type=str)
    parser.add_argument("--site",
                        dest="SITE",
                        help="Site-packages directory to compare against (default: current interpreter)",
                        action="store", type=str)

    lock_group = parser.add_mutually_exclusive_group()
    lock_group.add_argument("--locked",
                            dest="LOCKED",
                            help="Assert that the lockfile is up to date.",
                            action="store_true")
    lock_group.add_argument("--frozen",
                            dest="FROZEN",
                            help="Use the lockfile as-is without checking it.",
                            action="store_true")

    parser.add_argument("--package",
                        dest="PACKAGE",
                        help="Sync a specific workspace member.",
                        action="store", type=str)

    extras_group = parser.add_mutually_exclusive_group()
    extras_group.add_argument("--extra",
                              dest="EXTRAS",
                              help="Include an optional dependency group (repeatable).",
                              action="append", type=str, default=[])
    extras_group.add_argument("--all-extras",
                              dest="ALL_EXTRAS",
                              help="Include every optional dependency group.",
                              action="store_true")

    dev_group = parser.add_mutually_exclusive_group()
    dev_group.add_argument("--dev",
                           dest="DEV",
                           help="Include development dependencies (default).",
                           action="store_true", default=True)
    dev_group.add_argument("--no-dev",
                           dest="DEV",
                           help="Omit development dependencies.",
                           action="store_false")

    parser.add_argument("--no-install-project",
                        dest="NO_INSTALL_PROJECT",
                        help="Do not install the current project itself.",
                        action="store_true")
    parser.add_argument("--no-install-workspace",
                        dest="NO_INSTALL_WORKSPACE",
                        help="Do not install any workspace member.",
                        action="store_true")
    parser.add_argument("--no-install-package",
                        dest="NO_INSTALL_PACKAGE",
                        help="Do not install the given package (repeatable).",
                        action="append", type=str, default=[])
    parser.add_argument("--only-package",
                        dest="ONLY_PACKAGE",
                        help="Only install the given package and its dependencies.",
                        action="store", type=str)

    parser.add_argument("--no-build-isolation",
                        dest="NO_BUILD_ISOLATION",
                        help="Build source distributions against the target environment.",
                        action="store_true", default=None)
    parser.add_argument("--no-build-isolation-package",
                        dest="NO_BUILD_ISOLATION_PACKAGE",
                        help="Disable build isolation for a specific package (repeatable).",
                        action="append", type=str)
    parser.add_argument("--reinstall",
                        dest="REINSTALL",
                        help="Reinstall every package, even if already up to date.",
                        action="store_true", default=None)
    parser.add_argument("--find-links", "-f",
                        dest="FIND_LINKS",
                        help="Extra location (directory or URL) to search for distributions.",
                        action="append", type=str)
    parser.add_argument("--index-url",
                        dest="INDEX_URL",
                        help="Base URL of the package index.",
                        action="store", type=str)
    parser.add_argument("--link-mode",
                        dest="LINK_MODE",
                        help="How to place installed files into the site directory.",
                        action="store", type=str.lower,
                        choices=list(Constants.LINK_MODES))
    parser.add_argument("--compile-bytecode",
                        dest="COMPILE_BYTECODE",
                        help="Compile installed Python files to bytecode.",
                        action="store_true", default=None)
    parser.add_argument("--inexact",
                        dest="INEXACT",
                        help="Do not remove packages that are not in the lockfile.",
                        action="store_true")

    parser.add_argument("--config",
                        dest="CONFIG",
                        help="Path to a YAML config file.",
                        action="store", type=str)
    parser.add_argument("--format",
                        dest="OUTPUT_FORMAT",
                        help="Output format (text or json).",
                        action="store", type=str.lower,
                        choices=["text", "json"], default="text")
    parser.add_argument("--loglevel",
                        dest="LOG_LEVEL",
                        help="Set the logging level",
                        action="store",
                        type=str,
                        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
                        default="INFO")

    return parser.parse_args(argv)
