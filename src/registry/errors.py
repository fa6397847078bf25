"""Errors raised by metadata sources."""

from typing import Optional


class MetadataFetchError(Exception):
    """Metadata for a gem could not be obtained (network, HTTP or parse failure)."""

    def __init__(self, name: str, reason: str, url: Optional[str] = None):
        self.name = name
        self.reason = reason
        self.url = url
        super().__init__(f"Could not fetch metadata for {name}: {reason}")


class PackageNotFound(MetadataFetchError):
    """The source has no record of the gem."""

    def __init__(self, name: str, url: Optional[str] = None, reason: str = "not found"):
        super().__init__(name, reason, url)
