"""Base interface for gem metadata sources."""

from abc import ABC, abstractmethod
from typing import List

from versioning.models import PackageCandidate


class MetadataSource(ABC):
    """Something that can list every known variant of a gem.

    Implementations raise ``PackageNotFound`` for unknown gems and
    ``MetadataFetchError`` for any other failure. They must be safe to call
    from several worker threads at once.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Short label used in logs and error messages."""

    @abstractmethod
    def fetch(self, gem_name: str) -> List[PackageCandidate]:
        """Return all variants of ``gem_name`` in source order."""
