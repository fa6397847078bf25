"""Flatten a solver result into lockfile-ready records."""
from __future__ import annotations

from collections import deque
from typing import Dict, List, Sequence, Set

from constants import Constants
from versioning.models import ManifestEntry, PackageCandidate, ResolvedDependency, ResolvedGem

from .solver import SolverResult


def _group_membership(result: SolverResult, manifest: Sequence[ManifestEntry]) -> Dict[str, Set[str]]:
    """Walk from every manifest entry through the chosen variants' dependencies."""
    groups: Dict[str, Set[str]] = {}
    for entry in manifest:
        if entry.name not in result.decisions:
            continue
        entry_groups = set(entry.groups or (Constants.DEFAULT_GROUP,))
        queue = deque([entry.name])
        visited = set()
        while queue:
            name = queue.popleft()
            if name in visited:
                continue
            visited.add(name)
            groups.setdefault(name, set()).update(entry_groups)
            for variant in result.variants.get(name, ()):
                for dependency in variant.dependencies:
                    if dependency.name in result.decisions and dependency.name not in visited:
                        queue.append(dependency.name)
    return groups


def _resolved_gem(variant: PackageCandidate, result: SolverResult, groups: Set[str],
                  source) -> ResolvedGem:
    dependencies = sorted(
        (
            ResolvedDependency(d.name, str(d.requirement))
            for d in variant.dependencies
            if d.name in result.decisions
        ),
        key=lambda d: d.name,
    )
    return ResolvedGem(
        name=variant.name,
        version=str(variant.version),
        platform=None if variant.is_platform_independent else variant.platform,
        dependencies=tuple(dependencies),
        groups=tuple(sorted(groups or {Constants.DEFAULT_GROUP})),
        source=source,
        required_ruby_version=str(variant.required_ruby_version) if variant.required_ruby_version else None,
    )


def build_resolved_gems(result: SolverResult, manifest: Sequence[ManifestEntry]) -> List[ResolvedGem]:
    """One record per distinct selected variant, sorted by (name, platform).

    Dependencies are pruned to gems that were actually resolved. Groups flow
    from each manifest entry to everything it transitively requires; an
    explicit source stays with the gem that declared it.
    """
    groups = _group_membership(result, manifest)
    sources = {}
    for entry in manifest:
        if entry.explicit_source and entry.name not in sources:
            sources[entry.name] = entry.explicit_source

    gems = [
        _resolved_gem(variant, result, groups.get(name, set()), sources.get(name))
        for name in result.decisions
        for variant in result.variants.get(name, ())
    ]
    return sorted(gems, key=lambda g: (g.name, g.platform or ""))
