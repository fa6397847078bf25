"""Entry point: manifest in, resolved gems out."""
from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Mapping, Optional, Union

from common.logging_utils import Timer, extra_context
from constants import Constants, UpdateLevel
from registry.base import MetadataSource
from registry.local_cache import LocalIndexCache
from versioning.models import Dependency, ManifestEntry, ResolvedGem
from versioning.requirement import InvalidRequirement, VersionRequirement
from versioning.version import InvalidVersion, Version

from .errors import ManifestError, ResolutionCancelled
from .output import build_resolved_gems
from .platforms import detect_current_platform
from .policy import UpdatePolicy, apply_overrides
from .provider import MetadataProvider
from .solver import VersionSolver

logger = logging.getLogger(__name__)


@dataclass
class ResolutionRequest:
    """Everything one resolution run needs besides the metadata source."""

    manifest: List[ManifestEntry]
    platforms: List[str] = field(default_factory=list)
    prerelease: bool = False
    local_only: bool = False
    overrides: Dict[str, Union[str, VersionRequirement]] = field(default_factory=dict)
    locked: Dict[str, Version] = field(default_factory=dict)
    update: Union[None, str, List[str]] = None
    update_level: UpdateLevel = UpdateLevel.MAJOR
    conservative: bool = False
    ruby_version: Optional[str] = None
    root_name: str = Constants.ROOT_NAME


@dataclass
class ResolutionResult:
    gems: List[ResolvedGem]
    attempted_solutions: int
    duration: float


def _root_dependencies(manifest: Iterable[ManifestEntry]) -> List[Dependency]:
    dependencies = []
    for entry in manifest:
        if not entry.name or not entry.name.strip():
            raise ManifestError(str(entry.name), entry.version_requirement, "gem name is empty")
        try:
            requirement = VersionRequirement.parse(entry.version_requirement)
        except InvalidRequirement as exc:
            raise ManifestError(entry.name, entry.version_requirement, str(exc)) from exc
        dependencies.append(Dependency(entry.name, requirement))
    return dependencies


def _requirement(name: str, value: Union[str, VersionRequirement]) -> VersionRequirement:
    if isinstance(value, VersionRequirement):
        return value
    try:
        return VersionRequirement.parse(value)
    except InvalidRequirement as exc:
        raise ManifestError(name, str(value), str(exc)) from exc


def _merge_overrides(
    policy_overrides: Mapping[str, VersionRequirement],
    explicit: Mapping[str, Union[str, VersionRequirement]],
) -> Dict[str, VersionRequirement]:
    merged = dict(policy_overrides)
    for name, value in explicit.items():
        requirement = _requirement(name, value)
        existing = merged.get(name)
        merged[name] = requirement if existing is None else VersionRequirement(
            existing.constraints + requirement.constraints
        )
    return merged


def resolve(
    request: ResolutionRequest,
    source: Optional[MetadataSource],
    cache: Optional[LocalIndexCache] = None,
    cancel_event: Optional[threading.Event] = None,
    max_workers: Optional[int] = None,
    fetch_timeout: Optional[float] = None,
) -> ResolutionResult:
    """Resolve ``request`` against ``source`` (and ``cache``, when given).

    Raises:
        ManifestError: a requirement, override or Ruby version is malformed.
        SolveFailure: no solution exists.
        PackageFetchError: metadata for a direct requirement is unavailable.
        ResolutionCancelled: ``cancel_event`` was set.
    """
    root_dependencies = _root_dependencies(request.manifest)
    ruby_version = None
    if request.ruby_version:
        try:
            ruby_version = Version(request.ruby_version)
        except InvalidVersion as exc:
            raise ManifestError("ruby", request.ruby_version, str(exc)) from exc

    platforms = list(dict.fromkeys(request.platforms)) or [detect_current_platform()]

    if request.locked:
        policy = UpdatePolicy.from_lock(
            request.locked, request.update, request.update_level, request.conservative
        )
    else:
        policy = UpdatePolicy(conservative=request.conservative)
    overrides = _merge_overrides(policy.overrides, request.overrides)
    root_dependencies, pins = apply_overrides(root_dependencies, overrides)

    cancel_event = cancel_event or threading.Event()
    provider = MetadataProvider(
        source,
        cache=cache,
        local_only=request.local_only,
        max_workers=max_workers,
        fetch_timeout=fetch_timeout,
        include_prerelease=request.prerelease,
        prerelease_packages=[d.name for d in root_dependencies if d.requirement.is_prerelease],
        ruby_version=ruby_version,
        cancel_event=cancel_event,
    )
    logger.info(
        "Resolving %d gems for %s",
        len(root_dependencies),
        ", ".join(platforms),
        extra=extra_context(event="resolve", component="resolver", platforms=platforms,
                            local_only=request.local_only, conservative=request.conservative),
    )

    with Timer() as timer:
        try:
            provider.prefetch(d.name for d in root_dependencies)
            solver = VersionSolver(
                root_dependencies,
                provider,
                selector=policy.selector(),
                pins=pins,
                platforms=platforms,
                cancel_event=cancel_event,
                root_name=request.root_name,
            )
            solved = solver.solve()
        except ResolutionCancelled:
            provider.cancel()
            raise
        finally:
            provider.close()

    gems = build_resolved_gems(solved, request.manifest)
    logger.info("Resolved %d gems in %d ms", len(gems), timer.duration_ms())
    return ResolutionResult(
        gems=gems,
        attempted_solutions=solved.attempted_solutions,
        duration=timer.duration_ms() / 1000.0,
    )
