"""Lazy, cached access to gem metadata for one resolution run.

Fetches run on a bounded thread pool so metadata for several packages can be
in flight while the solver works; the solver itself only ever calls
``candidates()`` from its own thread and blocks, with a timeout, on the one
package it needs.
"""
from __future__ import annotations

import logging
import threading
import time
from concurrent.futures import CancelledError, Future, ThreadPoolExecutor, wait
from concurrent.futures import TimeoutError as FutureTimeout
from typing import Dict, Iterable, Iterator, List, Optional

from common.logging_utils import Timer, extra_context, is_debug_enabled
from constants import Constants
from registry.base import MetadataSource
from registry.errors import MetadataFetchError, PackageNotFound
from registry.local_cache import LocalIndexCache
from versioning.models import PackageCandidate
from versioning.version import Version

from .errors import ResolutionCancelled

logger = logging.getLogger(__name__)

# How often a caller waiting on a queued fetch checks for cancellation.
_QUEUE_POLL_SEC = 0.05


class MetadataProvider:
    """Serves candidates per gem name, newest first, fetching on demand."""

    def __init__(
        self,
        source: Optional[MetadataSource],
        cache: Optional[LocalIndexCache] = None,
        local_only: bool = False,
        max_workers: Optional[int] = None,
        fetch_timeout: Optional[float] = None,
        include_prerelease: bool = False,
        prerelease_packages: Iterable[str] = (),
        ruby_version: Optional[Version] = None,
        cancel_event: Optional[threading.Event] = None,
    ):
        self.source = source
        self.cache = cache
        self.local_only = local_only
        self.fetch_timeout = fetch_timeout if fetch_timeout is not None else Constants.FETCH_TIMEOUT_SEC
        self.include_prerelease = include_prerelease
        self.prerelease_packages = set(prerelease_packages)
        self.ruby_version = ruby_version
        self._cancel_event = cancel_event or threading.Event()
        self._executor = ThreadPoolExecutor(
            max_workers=max(1, max_workers or Constants.FETCH_MAX_WORKERS),
            thread_name_prefix="gemsolve-fetch",
        )
        self._futures: Dict[str, Future] = {}
        self._started: Dict[str, float] = {}
        self._candidates: Dict[str, List[PackageCandidate]] = {}
        self._errors: Dict[str, MetadataFetchError] = {}

    def __enter__(self) -> "MetadataProvider":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    @property
    def cancelled(self) -> bool:
        return self._cancel_event.is_set()

    def allows_prerelease(self, name: str) -> bool:
        return self.include_prerelease or name in self.prerelease_packages

    def prefetch(self, names: Iterable[str]) -> None:
        """Start fetching metadata for ``names`` in the background."""
        for name in names:
            self._submit(name)

    def _submit(self, name: str) -> Optional[Future]:
        if name in self._candidates or self.cancelled:
            return None
        future = self._futures.get(name)
        if future is None:
            try:
                future = self._executor.submit(self._fetch, name)
            except RuntimeError:
                # Pool already shut down.
                return None
            self._futures[name] = future
        return future

    def _fetch(self, name: str) -> List[PackageCandidate]:
        self._started[name] = time.monotonic()
        if self.cancelled:
            raise ResolutionCancelled()
        with Timer() as timer:
            if self.cache is not None:
                cached = self.cache.read(name)
                if cached is not None:
                    logger.debug("Using cached metadata for %s", name)
                    return cached
            if self.local_only or self.source is None:
                raise PackageNotFound(name, reason="not available in local mode")
            candidates = self.source.fetch(name)
            if self.cache is not None and not self.cancelled:
                self.cache.write(name, candidates)
        if is_debug_enabled(logger):
            logger.debug(
                "Fetched gem metadata",
                extra=extra_context(
                    event="fetch",
                    component="provider",
                    package=name,
                    source=self.source.name,
                    candidates=len(candidates),
                    duration_ms=timer.duration_ms(),
                ),
            )
        return candidates

    def candidates(self, name: str) -> List[PackageCandidate]:
        """All usable candidates for ``name``, newest version first.

        Failures never raise here: the package ends up with no candidates and
        the cause is available from ``error_for``. A fetch that runs longer
        than ``fetch_timeout`` once a worker has started it is recorded as
        timed out.
        """
        if name in self._candidates:
            return self._candidates[name]
        if self.cancelled:
            raise ResolutionCancelled()

        future = self._submit(name)
        if future is None:
            raise ResolutionCancelled()
        raw: List[PackageCandidate] = []
        try:
            raw = future.result(timeout=self._time_left(name, future))
        except FutureTimeout:
            future.cancel()
            self._record_error(MetadataFetchError(name, f"timed out after {self.fetch_timeout}s"))
        except ResolutionCancelled:
            raise
        except CancelledError as exc:
            raise ResolutionCancelled() from exc
        except MetadataFetchError as exc:
            self._record_error(exc)
        except (OSError, ValueError) as exc:
            self._record_error(MetadataFetchError(name, str(exc)))

        if self.cancelled:
            raise ResolutionCancelled()
        self._candidates[name] = self._usable(name, raw)
        return self._candidates[name]

    def _time_left(self, name: str, future: Future) -> float:
        """Seconds the fetch of ``name`` may still run.

        The timeout counts from when a worker picks the fetch up, so time
        spent queued behind other prefetches is not charged to it.
        """
        while name not in self._started and not future.done():
            if self.cancelled:
                raise ResolutionCancelled()
            wait([future], timeout=_QUEUE_POLL_SEC)
        started = self._started.get(name, time.monotonic())
        return max(0.0, self.fetch_timeout - (time.monotonic() - started))

    def _record_error(self, error: MetadataFetchError) -> None:
        if isinstance(error, PackageNotFound):
            logger.debug("%s", error)
        else:
            logger.warning("%s", error)
        self._errors[error.name] = error

    def _usable(self, name: str, raw: List[PackageCandidate]) -> List[PackageCandidate]:
        allow_pre = self.allows_prerelease(name)
        usable = []
        for candidate in raw:
            if candidate.is_prerelease and not allow_pre:
                continue
            if (
                self.ruby_version is not None
                and candidate.required_ruby_version is not None
                and not candidate.required_ruby_version.matches(self.ruby_version, allow_prerelease=True)
            ):
                continue
            usable.append(candidate)
        # Stable sorts: platform order survives the version sort.
        usable.sort(key=lambda c: (not c.is_platform_independent, c.platform))
        usable.sort(key=lambda c: c.version, reverse=True)
        return usable

    def versions_below(self, name: str, version: Version) -> Iterator[PackageCandidate]:
        """Lazily yield candidates older than ``version``, newest first."""
        for candidate in self.candidates(name):
            if candidate.version < version:
                yield candidate

    def error_for(self, name: str) -> Optional[MetadataFetchError]:
        return self._errors.get(name)

    def cancel(self) -> None:
        """Stop scheduling work and drop results of fetches still running."""
        self._cancel_event.set()
        self._executor.shutdown(wait=False, cancel_futures=True)

    def close(self) -> None:
        self._executor.shutdown(wait=False, cancel_futures=True)
