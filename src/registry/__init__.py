"""Gem metadata sources: remote compact index, local cache and static snapshots."""

from .base import MetadataSource
from .errors import MetadataFetchError, PackageNotFound
from .local_cache import LocalIndexCache
from .rubygems import RubyGemsClient
from .static import StaticIndex

__all__ = [
    "LocalIndexCache",
    "MetadataFetchError",
    "MetadataSource",
    "PackageNotFound",
    "RubyGemsClient",
    "StaticIndex",
]
