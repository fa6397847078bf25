"""Reader and writer for the RubyGems compact index ``info/<name>`` format.

Each line describes one (version, platform) variant::

    1.13.10-x86_64-linux racc:~> 1.4|checksum:abc,ruby:>= 2.7&< 3.4.dev

Dependencies are ``name:req&req`` pairs separated by commas; the part after
``|`` holds ``key:value`` metadata of which only ``ruby`` is used here.
Multiple constraints inside one requirement are joined with ``&``.
"""
from __future__ import annotations

import logging
from typing import Iterable, List, Optional, Tuple

from constants import Constants
from versioning.models import Dependency, PackageCandidate
from versioning.requirement import InvalidRequirement, VersionRequirement
from versioning.version import InvalidVersion, Version

logger = logging.getLogger(__name__)


def _split_version_platform(token: str) -> Tuple[str, str]:
    """Split ``1.2.3-x86_64-linux`` into version and platform.

    Prerelease versions never contain ``-`` in the compact index, so the
    first hyphen separates the platform.
    """
    if "-" in token:
        version, platform = token.split("-", 1)
        return version, platform or Constants.RUBY_PLATFORM
    return token, Constants.RUBY_PLATFORM


def _parse_requirement(text: str) -> VersionRequirement:
    return VersionRequirement.parse(text.replace("&", ","))


def parse_line(name: str, line: str) -> PackageCandidate:
    """Parse a single info line; raises ValueError on malformed input."""
    head, _, meta = line.partition("|")
    head = head.strip()
    if not head:
        raise ValueError("empty version field")
    version_token, _, deps_field = head.partition(" ")
    version_text, platform = _split_version_platform(version_token)
    try:
        version = Version(version_text)
    except InvalidVersion as exc:
        raise ValueError(str(exc)) from exc

    dependencies: List[Dependency] = []
    for item in filter(None, (d.strip() for d in deps_field.split(","))):
        dep_name, sep, req_text = item.partition(":")
        if not sep or not dep_name:
            raise ValueError(f"malformed dependency {item!r}")
        if dep_name == name:
            logger.debug("Dropping self-dependency of %s %s", name, version)
            continue
        try:
            dependencies.append(Dependency(dep_name, _parse_requirement(req_text)))
        except InvalidRequirement as exc:
            raise ValueError(str(exc)) from exc

    required_ruby: Optional[VersionRequirement] = None
    for item in meta.split(","):
        key, sep, value = item.partition(":")
        if sep and key.strip() == "ruby":
            try:
                required_ruby = _parse_requirement(value)
            except InvalidRequirement:
                logger.debug("Ignoring unparsable ruby requirement %r for %s", value, name)
            break

    return PackageCandidate(
        name=name,
        version=version,
        platform=platform,
        dependencies=tuple(dependencies),
        required_ruby_version=required_ruby,
    )


def parse_info(name: str, text: str) -> List[PackageCandidate]:
    """Parse a whole info document; malformed lines are skipped with a warning."""
    candidates: List[PackageCandidate] = []
    for lineno, raw in enumerate(text.splitlines(), start=1):
        line = raw.strip()
        if not line or line == "---":
            continue
        try:
            candidates.append(parse_line(name, line))
        except ValueError as exc:
            logger.warning("Skipping malformed index line %d for %s: %s", lineno, name, exc)
    return candidates


def _format_requirement(requirement: VersionRequirement) -> str:
    return "&".join(f"{op} {version}" for op, version in requirement.constraints) or ">= 0"


def format_line(candidate: PackageCandidate) -> str:
    """Render one candidate as an info line."""
    head = str(candidate.version)
    if not candidate.is_platform_independent:
        head = f"{head}-{candidate.platform}"
    deps = ",".join(
        f"{dep.name}:{_format_requirement(dep.requirement)}" for dep in candidate.dependencies
    )
    line = f"{head} {deps}" if deps else f"{head} "
    if candidate.required_ruby_version is not None:
        line += f"|ruby:{_format_requirement(candidate.required_ruby_version)}"
    return line


def dump_info(candidates: Iterable[PackageCandidate]) -> str:
    """Render candidates as an info document."""
    lines = ["---"] + [format_line(c) for c in candidates]
    return "\n".join(lines) + "\n"
