"""Dependency resolution for gem manifests."""

from .errors import ManifestError, PackageFetchError, ResolutionCancelled, ResolutionError
from .failure import SolveFailure
from .policy import (
    UPDATE_ALL,
    ConservativeVersionSelector,
    LatestVersionSelector,
    UpdatePolicy,
    apply_overrides,
)
from .provider import MetadataProvider
from .resolve import ResolutionRequest, ResolutionResult, resolve
from .solver import SolverResult, VersionSolver

__all__ = [
    "ConservativeVersionSelector",
    "LatestVersionSelector",
    "ManifestError",
    "MetadataProvider",
    "PackageFetchError",
    "ResolutionCancelled",
    "ResolutionError",
    "ResolutionRequest",
    "ResolutionResult",
    "SolveFailure",
    "SolverResult",
    "UPDATE_ALL",
    "UpdatePolicy",
    "VersionSolver",
    "apply_overrides",
    "resolve",
]
