"""CLI overrides for runtime tunables.

Applied after the YAML config file and environment variables so the command
line always wins.
"""

from __future__ import annotations

import logging

from constants import Constants

logger = logging.getLogger(__name__)


def apply_cli_overrides(args) -> None:
    """Copy tunables given on the command line onto Constants."""
    if getattr(args, "SOURCE_URL", None):
        Constants.REGISTRY_URL_RUBYGEMS = args.SOURCE_URL
    if getattr(args, "CACHE_DIR", None):
        Constants.CACHE_DIR = args.CACHE_DIR
    if getattr(args, "LOCAL", False):
        Constants.LOCAL_ONLY = True
    jobs = getattr(args, "JOBS", None)
    if jobs is not None:
        if jobs < 1:
            logger.warning("Ignoring --jobs %s: must be at least 1", jobs)
        else:
            Constants.FETCH_MAX_WORKERS = jobs
    timeout = getattr(args, "TIMEOUT", None)
    if timeout is not None:
        if timeout <= 0:
            logger.warning("Ignoring --timeout %s: must be positive", timeout)
        else:
            Constants.FETCH_TIMEOUT_SEC = timeout
