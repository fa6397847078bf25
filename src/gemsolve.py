"""gemsolve - resolve a gem manifest into exact versions.

    Returns:
        int: Exit code
"""
import json
import logging
import sys
import threading

import yaml

from args import parse_args
from cli_config import apply_cli_overrides
from common.logging_utils import configure_logging, extra_context, is_debug_enabled
from constants import Constants, ExitCodes, UpdateLevel, load_config
from registry import LocalIndexCache, RubyGemsClient, StaticIndex
from resolver import (
    UPDATE_ALL,
    ManifestError,
    PackageFetchError,
    ResolutionCancelled,
    ResolutionRequest,
    SolveFailure,
    resolve,
)
from versioning.models import ManifestEntry
from versioning.version import InvalidVersion, Version

logger = logging.getLogger(__name__)


def _read_structured(path):
    with open(path, "r", encoding="utf-8") as fh:
        if path.endswith(".json"):
            return json.load(fh)
        return yaml.safe_load(fh)


def load_manifest(path):
    """Load manifest records from a YAML or JSON file.

    Accepts either a list of records or a mapping with a ``gems`` list and
    optional ``platforms`` and ``ruby`` keys.

    Returns:
        tuple: (list of ManifestEntry, list of platforms, ruby version or None)
    """
    data = _read_structured(path)
    platforms = []
    ruby = None
    if isinstance(data, dict):
        platforms = [str(p) for p in data.get("platforms") or []]
        ruby = data.get("ruby")
        data = data.get("gems") or []
    if not isinstance(data, list):
        raise ValueError(f"Manifest {path} must be a list of gem records")
    entries = [ManifestEntry.from_dict(record) for record in data]
    return entries, platforms, str(ruby) if ruby else None


def load_lock(path):
    """Read locked versions from an earlier run's JSON output.

    Returns:
        dict: gem name to Version
    """
    data = _read_structured(path)
    if isinstance(data, dict):
        data = data.get("gems") or []
    locked = {}
    for record in data or []:
        if not isinstance(record, dict) or "name" not in record or "version" not in record:
            logger.warning("Skipping malformed lock record: %r", record)
            continue
        try:
            locked.setdefault(str(record["name"]), Version(str(record["version"])))
        except InvalidVersion as e:
            logger.warning("Skipping lock record for %s: %s", record["name"], e)
    return locked


def export_json(gems, path=None):
    """Write resolved gems as JSON to ``path``, or stdout when None."""
    payload = json.dumps([g.to_dict() for g in gems], ensure_ascii=False, indent=2)
    if path is None:
        sys.stdout.write(payload + "\n")
        return
    with open(path, "w", encoding="utf-8") as fh:
        fh.write(payload + "\n")
    logging.info("Resolution has been written to: %s", path)


def build_source(args):
    """Metadata source and cache for this run.

    A static ``--index`` snapshot is used as is, even in local mode; otherwise
    the source is None in local mode.
    """
    if args.INDEX:
        return StaticIndex.from_file(args.INDEX), None
    cache = None if args.NO_CACHE else LocalIndexCache(Constants.CACHE_DIR)
    if Constants.LOCAL_ONLY:
        return None, cache
    return RubyGemsClient(Constants.REGISTRY_URL_RUBYGEMS, timeout=Constants.REQUEST_TIMEOUT), cache


def build_request(args, entries, platforms, ruby):
    locked = load_lock(args.LOCK) if args.LOCK else {}
    update = args.UPDATE
    if update is not None and not update:
        update = UPDATE_ALL
    return ResolutionRequest(
        manifest=entries,
        platforms=args.PLATFORMS or platforms,
        prerelease=args.PRERELEASE,
        # --index snapshots are offline.
        local_only=Constants.LOCAL_ONLY and not args.INDEX,
        locked=locked,
        update=update,
        update_level=UpdateLevel(args.LEVEL or UpdateLevel.MAJOR.value),
        conservative=args.CONSERVATIVE,
        ruby_version=args.RUBY_VERSION or ruby,
    )


def main(argv=None):
    """Main function of the program."""
    args = parse_args(argv)
    configure_logging(args.LOG_LEVEL)
    load_config(args.CONFIG)
    apply_cli_overrides(args)

    if is_debug_enabled(logger):
        logger.debug(
            "CLI start",
            extra=extra_context(event="function_entry", component="cli", action="main")
        )

    try:
        entries, platforms, ruby = load_manifest(args.MANIFEST)
        request = build_request(args, entries, platforms, ruby)
        source, cache = build_source(args)
    except FileNotFoundError as e:
        logging.error("File not found: %s, aborting", e)
        return ExitCodes.FILE_ERROR.value
    except (OSError, yaml.YAMLError, json.JSONDecodeError) as e:
        logging.error("Could not read input: %s", e)
        return ExitCodes.FILE_ERROR.value
    except ValueError as e:
        logging.error("Invalid input: %s", e)
        return ExitCodes.INVALID_INPUT.value

    cancel_event = threading.Event()
    try:
        result = resolve(
            request,
            source,
            cache=cache,
            cancel_event=cancel_event,
            max_workers=Constants.FETCH_MAX_WORKERS,
            fetch_timeout=Constants.FETCH_TIMEOUT_SEC,
        )
    except ManifestError as e:
        logging.error("%s", e)
        return ExitCodes.INVALID_INPUT.value
    except SolveFailure as e:
        sys.stderr.write(e.message + "\n")
        return ExitCodes.RESOLUTION_FAILED.value
    except PackageFetchError as e:
        logging.error("%s", e)
        return ExitCodes.CONNECTION_ERROR.value
    except (ResolutionCancelled, KeyboardInterrupt):
        cancel_event.set()
        logging.error("Resolution interrupted")
        return ExitCodes.INTERRUPTED.value

    try:
        export_json(result.gems, args.OUTPUT)
    except OSError as e:
        logging.error("Resolution couldn't be written to disk: %s", e)
        return ExitCodes.FILE_ERROR.value
    return ExitCodes.SUCCESS.value


if __name__ == "__main__":
    sys.exit(main())
