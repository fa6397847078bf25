"""RubyGems compact index client: fetch and parse ``/info/<name>``."""
from __future__ import annotations

import logging
import urllib.parse
from typing import List, Optional

from common.http_client import robust_get
from common.logging_utils import extra_context, is_debug_enabled, safe_url
from constants import Constants
from versioning.models import PackageCandidate

from ..base import MetadataSource
from ..compact_index import parse_info
from ..errors import MetadataFetchError, PackageNotFound

logger = logging.getLogger(__name__)


class RubyGemsClient(MetadataSource):
    """Metadata source backed by a RubyGems-compatible compact index."""

    def __init__(self, base_url: Optional[str] = None, timeout: Optional[float] = None):
        """Initialize the client.

        Args:
            base_url: Gem server root, defaults to ``Constants.REGISTRY_URL_RUBYGEMS``.
            timeout: Per-request timeout in seconds.
        """
        self.base_url = (base_url or Constants.REGISTRY_URL_RUBYGEMS).rstrip("/")
        self.timeout = timeout

    @property
    def name(self) -> str:
        return safe_url(self.base_url)

    def info_url(self, gem_name: str) -> str:
        return f"{self.base_url}/info/{urllib.parse.quote(gem_name, safe='')}"

    def fetch_info_text(self, gem_name: str) -> str:
        """Return the raw info document for ``gem_name``.

        Raises:
            PackageNotFound: the server answered 404 or 410.
            MetadataFetchError: network failure or any other status.
        """
        url = self.info_url(gem_name)
        status_code, _, text = robust_get(url, timeout=self.timeout)
        if is_debug_enabled(logger):
            logger.debug(
                "Fetched compact index info",
                extra=extra_context(
                    event="fetch",
                    component="rubygems_client",
                    action="info",
                    status_code=status_code,
                    target=safe_url(url),
                    package=gem_name,
                )
            )
        if status_code in (404, 410):
            raise PackageNotFound(gem_name, url=url)
        if status_code == 0:
            raise MetadataFetchError(gem_name, text, url=url)
        if status_code != 200:
            raise MetadataFetchError(gem_name, f"HTTP {status_code}", url=url)
        return text

    def fetch(self, gem_name: str) -> List[PackageCandidate]:
        text = self.fetch_info_text(gem_name)
        candidates = parse_info(gem_name, text)
        if not candidates and text.strip() not in ("", "---"):
            raise MetadataFetchError(gem_name, "response contained no parsable versions",
                                     url=self.info_url(gem_name))
        return candidates
