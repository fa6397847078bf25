"""Shared HTTP helpers used by registry clients.

Encapsulates request/timeout/retry handling so callers get a plain
``(status, headers, body)`` tuple and never see a requests exception.
A status of 0 means the request could not be completed at all.
"""
from __future__ import annotations

import logging
import time
from typing import Any, Dict, Optional, Tuple

import requests

from constants import Constants
from common.logging_utils import extra_context, is_debug_enabled, safe_url, Timer
from versioning.cache import TTLCache

logger = logging.getLogger(__name__)

USER_AGENT = "gemsolve/0.1"

# Response cache shared by all callers for the life of the process.
_http_cache = TTLCache(default_ttl=Constants.HTTP_CACHE_TTL_SEC)


def _get_cache_key(method: str, url: str, headers: Optional[Dict[str, str]] = None) -> str:
    """Generate cache key from request parameters."""
    headers_str = str(sorted(headers.items())) if headers else ""
    return f"{method}:{url}:{headers_str}"


def clear_cache() -> None:
    """Forget every cached response."""
    _http_cache.clear()


def robust_get(
    url: str,
    *,
    headers: Optional[Dict[str, str]] = None,
    timeout: Optional[float] = None,
    **kwargs: Any
) -> Tuple[int, Dict[str, str], str]:
    """Perform GET request with timeout, retries, and caching with DEBUG traces.

    Retries connection errors, timeouts and 5xx responses with exponential
    backoff. Responses below 500 are cached for ``HTTP_CACHE_TTL_SEC``.
    """
    cache_key = _get_cache_key("GET", url, headers)
    safe_target = safe_url(url)

    cached = _http_cache.get(cache_key)
    if cached is not None:
        if is_debug_enabled(logger):
            logger.debug(
                "HTTP cache hit",
                extra=extra_context(
                    event="cache_hit",
                    component="http_client",
                    action="GET",
                    target=safe_target
                )
            )
        return cached

    request_headers = {"User-Agent": USER_AGENT}
    if headers:
        request_headers.update(headers)
    effective_timeout = timeout if timeout is not None else Constants.REQUEST_TIMEOUT

    last_exception: Optional[str] = None
    attempts = max(1, Constants.HTTP_RETRY_MAX)
    for attempt in range(attempts):
        if attempt:
            time.sleep(Constants.HTTP_RETRY_BASE_DELAY_SEC * (2 ** (attempt - 1)))
        with Timer() as t:
            try:
                if is_debug_enabled(logger):
                    logger.debug(
                        "HTTP request",
                        extra=extra_context(
                            event="http_request",
                            component="http_client",
                            action="GET",
                            target=safe_target,
                            attempt=attempt + 1
                        )
                    )
                response = requests.get(
                    url,
                    timeout=effective_timeout,
                    headers=request_headers,
                    **kwargs
                )
            except requests.Timeout:
                last_exception = f"timed out after {effective_timeout} seconds"
                if is_debug_enabled(logger):
                    logger.debug(
                        "HTTP timeout",
                        extra=extra_context(
                            event="http_exception",
                            component="http_client",
                            action="GET",
                            outcome="timeout",
                            attempt=attempt + 1,
                            target=safe_target
                        )
                    )
                continue
            except requests.RequestException as exc:
                last_exception = str(exc)
                if is_debug_enabled(logger):
                    logger.debug(
                        "HTTP request exception",
                        extra=extra_context(
                            event="http_exception",
                            component="http_client",
                            action="GET",
                            outcome="request_exception",
                            attempt=attempt + 1,
                            target=safe_target
                        )
                    )
                continue

        result = (response.status_code, dict(response.headers), response.text)
        if is_debug_enabled(logger):
            logger.debug(
                "HTTP response",
                extra=extra_context(
                    event="http_response",
                    component="http_client",
                    action="GET",
                    status_code=response.status_code,
                    duration_ms=t.duration_ms(),
                    target=safe_target
                )
            )
        if response.status_code >= 500:
            last_exception = f"HTTP {response.status_code}"
            continue
        _http_cache.set(cache_key, result, Constants.HTTP_CACHE_TTL_SEC)
        return result

    return 0, {}, f"Request failed after {attempts} attempts: {last_exception}"

