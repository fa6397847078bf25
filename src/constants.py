"""Constants used in the project."""

import logging
import os
from enum import Enum
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)


class ExitCodes(Enum):
    """Exit codes for the program.

    Args:
        Enum (int): Exit codes for the program.
    """

    SUCCESS = 0
    FILE_ERROR = 1
    CONNECTION_ERROR = 2
    RESOLUTION_FAILED = 3
    INVALID_INPUT = 4
    INTERRUPTED = 130


class UpdateLevel(Enum):
    """How far an updated gem may move from its locked version.

    Args:
        Enum (string): Update levels accepted on the command line.
    """

    MAJOR = "major"
    MINOR = "minor"
    PATCH = "patch"


class Constants:  # pylint: disable=too-few-public-methods
    """General constants used in the project.
    Data holder for configuration constants; not intended to provide behavior.
    """

    REGISTRY_URL_RUBYGEMS = "https://rubygems.org"
    ROOT_NAME = "Gemfile"
    RUBY_PLATFORM = "ruby"
    DEFAULT_GROUP = "default"
    LOG_FORMAT = "[%(levelname)s] %(message)s"
    REQUEST_TIMEOUT = 10  # Timeout in seconds for all HTTP requests
    HTTP_RETRY_MAX = 3
    HTTP_RETRY_BASE_DELAY_SEC = 0.3
    HTTP_CACHE_TTL_SEC = 300
    FETCH_MAX_WORKERS = 8
    FETCH_TIMEOUT_SEC = 30
    LOCAL_ONLY = False
    CACHE_DIR = os.path.join(os.path.expanduser("~"), ".cache", "gemsolve")
    CONFIG_FILE = os.path.join(os.path.expanduser("~"), ".config", "gemsolve", "config.yml")


# Keys accepted in the YAML config file, mapped to Constants attributes.
_YAML_KEYS = {
    "registry_url": ("REGISTRY_URL_RUBYGEMS", str),
    "request_timeout": ("REQUEST_TIMEOUT", int),
    "retries": ("HTTP_RETRY_MAX", int),
    "retry_base_delay": ("HTTP_RETRY_BASE_DELAY_SEC", float),
    "http_cache_ttl": ("HTTP_CACHE_TTL_SEC", int),
    "jobs": ("FETCH_MAX_WORKERS", int),
    "fetch_timeout": ("FETCH_TIMEOUT_SEC", int),
    "local": ("LOCAL_ONLY", bool),
    "cache_dir": ("CACHE_DIR", str),
}

# Environment variables honored for Bundler compatibility.
_ENV_KEYS = {
    "RUBYGEMS_HOST": ("REGISTRY_URL_RUBYGEMS", str),
    "BUNDLE_TIMEOUT": ("REQUEST_TIMEOUT", int),
    "BUNDLE_RETRY": ("HTTP_RETRY_MAX", int),
    "BUNDLE_JOBS": ("FETCH_MAX_WORKERS", int),
    "BUNDLE_LOCAL": ("LOCAL_ONLY", bool),
    "GEMSOLVE_CACHE_DIR": ("CACHE_DIR", str),
}

_TRUE_VALUES = {"1", "true", "yes", "on"}


def _coerce(value: Any, kind: type) -> Any:
    """Convert a config or environment value to the attribute's type."""
    if kind is bool:
        if isinstance(value, bool):
            return value
        return str(value).strip().lower() in _TRUE_VALUES
    converted = kind(value)
    if kind is int and converted < 0:
        raise ValueError(f"expected a non-negative integer, got {value!r}")
    return converted


def _load_yaml_config(path: Optional[str] = None) -> Dict[str, Any]:
    """Read the YAML config file, returning an empty mapping when absent."""
    config_path = path or os.environ.get("GEMSOLVE_CONFIG") or Constants.CONFIG_FILE
    if not config_path or not os.path.isfile(config_path):
        return {}

    import yaml

    with open(config_path, "r", encoding="utf-8") as fh:
        data = yaml.safe_load(fh) or {}
    if not isinstance(data, dict):
        logger.warning("Ignoring config file %s: top level is not a mapping", config_path)
        return {}
    return data


def load_config(path: Optional[str] = None) -> None:
    """Apply YAML config, then environment variables, onto Constants.

    Invalid values are logged and skipped so a bad setting never prevents
    a resolution from running with defaults.
    """
    for key, value in _load_yaml_config(path).items():
        target = _YAML_KEYS.get(key)
        if target is None:
            logger.warning("Unknown config key %r", key)
            continue
        attr, kind = target
        try:
            setattr(Constants, attr, _coerce(value, kind))
        except (TypeError, ValueError) as exc:
            logger.warning("Invalid value for config key %r: %s", key, exc)

    for env_name, (attr, kind) in _ENV_KEYS.items():
        raw = os.environ.get(env_name)
        if raw is None or not raw.strip():
            continue
        try:
            setattr(Constants, attr, _coerce(raw, kind))
        except (TypeError, ValueError) as exc:
            logger.warning("Invalid value for %s: %s", env_name, exc)
