"""On-disk cache of compact index documents.

Layout: ``<root>/info/<gem name>``, one file per gem, in the compact index
text format. Entries are written once per resolution run and then only read.
"""
from __future__ import annotations

import logging
import os
import tempfile
import threading
from typing import List, Optional

from versioning.models import PackageCandidate

from .base import MetadataSource
from .compact_index import dump_info, parse_info
from .errors import MetadataFetchError, PackageNotFound

logger = logging.getLogger(__name__)


class LocalIndexCache(MetadataSource):
    """Reads and writes cached gem metadata under a root directory."""

    def __init__(self, root: str):
        self.root = os.path.abspath(os.path.expanduser(root))
        self._write_lock = threading.Lock()

    @property
    def name(self) -> str:
        return f"local cache {self.root}"

    def _path(self, gem_name: str) -> str:
        if not gem_name or "/" in gem_name or "\\" in gem_name or gem_name.startswith("."):
            raise MetadataFetchError(gem_name, "invalid gem name for cache lookup")
        return os.path.join(self.root, "info", gem_name)

    def contains(self, gem_name: str) -> bool:
        try:
            return os.path.isfile(self._path(gem_name))
        except MetadataFetchError:
            return False

    def names(self) -> List[str]:
        info_dir = os.path.join(self.root, "info")
        if not os.path.isdir(info_dir):
            return []
        return sorted(n for n in os.listdir(info_dir) if not n.startswith("."))

    def read(self, gem_name: str) -> Optional[List[PackageCandidate]]:
        """Return cached candidates, or None on a miss."""
        path = self._path(gem_name)
        try:
            with open(path, "r", encoding="utf-8") as fh:
                text = fh.read()
        except FileNotFoundError:
            return None
        except OSError as exc:
            raise MetadataFetchError(gem_name, f"unreadable cache entry: {exc}") from exc
        return parse_info(gem_name, text)

    def fetch(self, gem_name: str) -> List[PackageCandidate]:
        candidates = self.read(gem_name)
        if candidates is None:
            raise PackageNotFound(gem_name, reason=f"not in {self.name}")
        return candidates

    def write(self, gem_name: str, candidates: List[PackageCandidate]) -> None:
        """Store candidates atomically; failures are logged, never raised."""
        path = self._path(gem_name)
        with self._write_lock:
            try:
                os.makedirs(os.path.dirname(path), exist_ok=True)
                fd, tmp_path = tempfile.mkstemp(dir=os.path.dirname(path), prefix=".tmp-")
                with os.fdopen(fd, "w", encoding="utf-8") as fh:
                    fh.write(dump_info(candidates))
                os.replace(tmp_path, path)
            except OSError as exc:
                logger.warning("Could not write cache entry for %s: %s", gem_name, exc)
