"""Platform detection and gem platform compatibility."""
from __future__ import annotations

import functools
import platform
import sys
from typing import Dict, Iterable, List, Optional, Sequence

from constants import Constants
from versioning.models import Dependency, PackageCandidate
from versioning.requirement import VersionRequirement

_ARCH_ALIASES = {
    "amd64": "x86_64",
    "x86_64": "x86_64",
    "aarch64": "aarch64",
    "arm64": "arm64",
    "i386": "x86",
    "i686": "x86",
    "x86": "x86",
}


@functools.lru_cache(maxsize=1)
def detect_current_platform() -> str:
    """Current platform in RubyGems notation, e.g. ``x86_64-linux``."""
    machine = platform.machine().lower()
    arch = _ARCH_ALIASES.get(machine, machine or "unknown")
    if sys.platform.startswith("darwin"):
        os_name = "darwin"
        if arch == "aarch64":
            arch = "arm64"
    elif sys.platform.startswith("win"):
        os_name = "mingw32"
    elif sys.platform.startswith("linux"):
        os_name = "linux"
    else:
        os_name = sys.platform
    return f"{arch}-{os_name}"


def platform_matches(gem_platform: Optional[str], target: str) -> bool:
    """Whether a gem built for ``gem_platform`` installs on ``target``.

    ``ruby`` (or no platform) is always compatible. Otherwise the arch and
    OS components must agree, so ``arm64-darwin-23`` runs on ``arm64-darwin``.
    """
    if not gem_platform or gem_platform == Constants.RUBY_PLATFORM:
        return True
    if gem_platform == target:
        return True
    gem_parts = gem_platform.split("-")
    target_parts = target.split("-")
    return (
        len(gem_parts) >= 2
        and len(target_parts) >= 2
        and gem_parts[0] == target_parts[0]
        and gem_parts[1] == target_parts[1]
    )


def _match_rank(candidate: PackageCandidate, target: str) -> int:
    if candidate.platform == target:
        return 0
    if candidate.is_platform_independent:
        return 2
    return 1


def select_variant(candidates: Iterable[PackageCandidate], target: str) -> Optional[PackageCandidate]:
    """Pick the variant to install on ``target`` among one version's variants.

    An exact platform match beats an arch/OS match, which beats ``ruby``.
    Ties go to the lexically smallest platform name.
    """
    compatible = [c for c in candidates if platform_matches(c.platform, target)]
    if not compatible:
        return None
    return min(compatible, key=lambda c: (_match_rank(c, target), c.platform))


def variants_for(candidates: Sequence[PackageCandidate], platforms: Sequence[str]) -> Optional[List[PackageCandidate]]:
    """Variants of one version to install, one per requested platform.

    Returns None when some platform has no compatible variant, which makes
    the version unusable for this resolution.
    """
    chosen: List[PackageCandidate] = []
    for target in platforms:
        variant = select_variant(candidates, target)
        if variant is None:
            return None
        if variant not in chosen:
            chosen.append(variant)
    return chosen


def merge_dependencies(variants: Iterable[PackageCandidate]) -> Optional[List[Dependency]]:
    """Union of the variants' dependencies, intersecting requirements per name.

    Returns None when two variants require disjoint versions of one gem.
    """
    merged: Dict[str, VersionRequirement] = {}
    for variant in variants:
        for dependency in variant.dependencies:
            existing = merged.get(dependency.name)
            if existing is None or existing == dependency.requirement:
                merged[dependency.name] = dependency.requirement
                continue
            combined = existing.intersect(dependency.requirement)
            if combined is None:
                return None
            merged[dependency.name] = combined
    return [Dependency(name, requirement) for name, requirement in merged.items()]
