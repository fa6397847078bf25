"""Argument parsing functionality for gemsolve."""

import argparse

from constants import Constants


def parse_args(argv=None):
    """Parses the arguments passed to the program."""
    parser = argparse.ArgumentParser(
        prog="gemsolve",
        description="gemsolve - resolve a gem manifest into exact versions",
        add_help=True,
    )

    parser.add_argument("-m", "--manifest",
                        dest="MANIFEST",
                        help="Manifest file (YAML or JSON) listing gems and requirements",
                        action="store", type=str,
                        required=True)
    parser.add_argument("--platform",
                        dest="PLATFORMS",
                        help="Target platform, e.g. x86_64-linux (repeatable; default: current platform)",
                        action="append", type=str,
                        default=[])
    parser.add_argument("--pre",
                        dest="PRERELEASE",
                        help="Allow prerelease versions",
                        action="store_true")
    parser.add_argument("--local",
                        dest="LOCAL",
                        help="Never use the network; resolve from the local cache only",
                        action="store_true")
    parser.add_argument("--ruby",
                        dest="RUBY_VERSION",
                        help="Ruby version used to filter gems by required_ruby_version",
                        action="store", type=str)

    lock_group = parser.add_argument_group("previous resolution")
    lock_group.add_argument("--lock",
                            dest="LOCK",
                            help="Previous resolution (JSON output of an earlier run)",
                            action="store", type=str)
    lock_group.add_argument("--update",
                            dest="UPDATE",
                            help="Unlock the named gems (all gems when no name is given)",
                            nargs="*", type=str,
                            default=None)
    level_group = lock_group.add_mutually_exclusive_group()
    level_group.add_argument("--patch",
                             dest="LEVEL",
                             help="Only allow patch-level updates",
                             action="store_const", const="patch")
    level_group.add_argument("--minor",
                             dest="LEVEL",
                             help="Only allow minor-level updates",
                             action="store_const", const="minor")
    lock_group.add_argument("--conservative",
                            dest="CONSERVATIVE",
                            help="Prefer versions closest to the locked ones",
                            action="store_true")

    source_group = parser.add_mutually_exclusive_group()
    source_group.add_argument("--index",
                              dest="INDEX",
                              help="Static index snapshot (YAML or JSON) used instead of a gem server",
                              action="store", type=str)
    source_group.add_argument("--source",
                              dest="SOURCE_URL",
                              help=f"Gem server URL (default: {Constants.REGISTRY_URL_RUBYGEMS})",
                              action="store", type=str)
    parser.add_argument("--cache-dir",
                        dest="CACHE_DIR",
                        help="Directory for cached index documents",
                        action="store", type=str)
    parser.add_argument("--no-cache",
                        dest="NO_CACHE",
                        help="Do not read or write the on-disk index cache",
                        action="store_true")
    parser.add_argument("-j", "--jobs",
                        dest="JOBS",
                        help="Number of parallel metadata fetches",
                        action="store", type=int)
    parser.add_argument("--timeout",
                        dest="TIMEOUT",
                        help="Seconds to wait for one gem's metadata",
                        action="store", type=float)

    parser.add_argument("-o", "--output",
                        dest="OUTPUT",
                        help="Write the resolution JSON to this file instead of stdout",
                        action="store", type=str)
    parser.add_argument("--loglevel",
                        dest="LOG_LEVEL",
                        help="Set the logging level",
                        action="store",
                        type=str.upper,
                        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL'],
                        default=None)
    parser.add_argument("-c", "--config",
                        dest="CONFIG",
                        help="Path to a YAML configuration file",
                        action="store",
                        type=str)

    return parser.parse_args(argv)
