"""Centralized logging helpers.

Provides a single place to configure the root logger plus small utilities
for structured DEBUG traces (``extra_context``), URL redaction and timing.
"""
from __future__ import annotations

import logging
import os
import time
import urllib.parse
from typing import Any, Dict, Optional

from constants import Constants

_SENSITIVE_QUERY_KEYS = {"token", "access_token", "api_key", "key", "password"}


def configure_logging(level: Optional[str] = None) -> None:
    """Configure the root logger once.

    The level comes from the argument, then ``GEMSOLVE_LOG_LEVEL``, then WARNING.
    """
    level_name = (level or os.environ.get("GEMSOLVE_LOG_LEVEL") or "WARNING").upper()
    level_value = getattr(logging, level_name, logging.WARNING)
    root = logging.getLogger()
    if not root.handlers:
        logging.basicConfig(level=level_value, format=Constants.LOG_FORMAT)
    root.setLevel(level_value)


def is_debug_enabled(logger: logging.Logger) -> bool:
    """Return True when DEBUG records from ``logger`` would be emitted."""
    return logger.isEnabledFor(logging.DEBUG)


def extra_context(**fields: Any) -> Dict[str, Any]:
    """Build the ``extra`` mapping for a structured log record.

    None values are dropped so formatters only see populated fields.
    """
    return {k: v for k, v in fields.items() if v is not None}


def redact(value: str) -> str:
    """Mask all but the first few characters of a secret."""
    if not value:
        return value
    if len(value) <= 4:
        return "****"
    return value[:4] + "****"


def safe_url(url: str) -> str:
    """Return ``url`` with credentials and sensitive query values masked."""
    try:
        parts = urllib.parse.urlsplit(url)
    except ValueError:
        return url
    netloc = parts.netloc
    if "@" in netloc:
        netloc = "****@" + netloc.split("@", 1)[1]
    query = parts.query
    if query:
        pairs = urllib.parse.parse_qsl(query, keep_blank_values=True)
        query = urllib.parse.urlencode(
            [(k, redact(v) if k.lower() in _SENSITIVE_QUERY_KEYS else v) for k, v in pairs]
        )
    return urllib.parse.urlunsplit((parts.scheme, netloc, parts.path, query, parts.fragment))


class Timer:
    """Context manager measuring wall-clock duration."""

    def __init__(self) -> None:
        self._start = 0.0
        self._end: Optional[float] = None

    def __enter__(self) -> "Timer":
        self._start = time.monotonic()
        self._end = None
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self._end = time.monotonic()

    def duration_ms(self) -> int:
        """Elapsed milliseconds so far (or total, once the block exited)."""
        end = self._end if self._end is not None else time.monotonic()
        return int((end - self._start) * 1000)
