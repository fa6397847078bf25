"""Data models shared by the registry layer and the resolver."""

from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Tuple

from constants import Constants

from .requirement import VersionRequirement
from .version import Version


@dataclass(frozen=True)
class Dependency:
    """An edge from a candidate to a required gem."""
    name: str
    requirement: VersionRequirement

    def __str__(self) -> str:
        return f"{self.name} ({self.requirement})"


@dataclass(frozen=True)
class PackageCandidate:
    """One installable (version, platform) variant of a gem."""
    name: str
    version: Version
    platform: str = Constants.RUBY_PLATFORM
    dependencies: Tuple[Dependency, ...] = ()
    required_ruby_version: Optional[VersionRequirement] = None

    @property
    def is_prerelease(self) -> bool:
        return self.version.is_prerelease

    @property
    def is_platform_independent(self) -> bool:
        return self.platform == Constants.RUBY_PLATFORM

    @property
    def full_name(self) -> str:
        if self.is_platform_independent:
            return f"{self.name}-{self.version}"
        return f"{self.name}-{self.version}-{self.platform}"


@dataclass(frozen=True)
class ManifestEntry:
    """A gem declared in the manifest."""
    name: str
    version_requirement: str = ""
    groups: Tuple[str, ...] = (Constants.DEFAULT_GROUP,)
    explicit_source: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ManifestEntry":
        """Build an entry from a manifest record mapping."""
        if not isinstance(data, dict) or not data.get("name"):
            raise ValueError(f"Manifest record needs a name: {data!r}")
        requirement = data.get("version_requirement", data.get("version", ""))
        if isinstance(requirement, (list, tuple)):
            requirement = ", ".join(str(r) for r in requirement)
        groups = data.get("groups") or [Constants.DEFAULT_GROUP]
        if isinstance(groups, str):
            groups = [groups]
        return cls(
            name=str(data["name"]),
            version_requirement=str(requirement or ""),
            groups=tuple(str(g) for g in groups),
            explicit_source=data.get("explicit_source", data.get("source")),
        )


@dataclass(frozen=True)
class ResolvedDependency:
    """A dependency of a resolved gem, as recorded in the lockfile."""
    name: str
    requirement: str


@dataclass(frozen=True)
class ResolvedGem:
    """A gem at the exact version and platform chosen by the resolver."""
    name: str
    version: str
    platform: Optional[str] = None  # None means platform-independent
    dependencies: Tuple[ResolvedDependency, ...] = ()
    groups: Tuple[str, ...] = field(default=(), compare=False)
    source: Optional[str] = field(default=None, compare=False)
    required_ruby_version: Optional[str] = field(default=None, compare=False)

    def to_dict(self) -> Dict[str, Any]:
        """Serialize for JSON output."""
        data: Dict[str, Any] = {
            "name": self.name,
            "version": self.version,
            "platform": self.platform,
            "dependencies": [
                {"name": d.name, "requirement": d.requirement} for d in self.dependencies
            ],
            "groups": list(self.groups),
        }
        if self.source:
            data["source"] = self.source
        if self.required_ruby_version:
            data["required_ruby_version"] = self.required_ruby_version
        return data
