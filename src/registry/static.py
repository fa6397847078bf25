"""In-memory metadata source built from a mapping or a snapshot file.

Snapshot format (YAML or JSON)::

    rails:
      - version: 7.1.3
        dependencies: {activesupport: "= 7.1.3"}
    nokogiri:
      - version: 1.16.0
        platform: x86_64-linux
        dependencies: {racc: "~> 1.4"}
        required_ruby_version: ">= 3.0"
"""
from __future__ import annotations

import json
import os
from typing import Any, Dict, Iterable, List, Mapping

import yaml

from constants import Constants
from versioning.models import Dependency, PackageCandidate
from versioning.requirement import VersionRequirement
from versioning.version import Version

from .base import MetadataSource
from .errors import PackageNotFound


def _dependencies(name: str, raw: Any) -> List[Dependency]:
    if not raw:
        return []
    if isinstance(raw, Mapping):
        items: Iterable = raw.items()
    else:
        items = ((d["name"], d.get("requirement", "")) for d in raw)
    return [
        Dependency(str(dep_name), VersionRequirement.parse(str(req or "")))
        for dep_name, req in items
        if dep_name != name
    ]


def candidate_from_dict(name: str, data: Mapping[str, Any]) -> PackageCandidate:
    """Build a candidate from one snapshot record."""
    ruby = data.get("required_ruby_version")
    return PackageCandidate(
        name=name,
        version=Version(str(data["version"])),
        platform=str(data.get("platform") or Constants.RUBY_PLATFORM),
        dependencies=tuple(_dependencies(name, data.get("dependencies"))),
        required_ruby_version=VersionRequirement.parse(str(ruby)) if ruby else None,
    )


class StaticIndex(MetadataSource):
    """A fixed set of gems; also records every lookup for inspection."""

    def __init__(self, gems: Mapping[str, List[PackageCandidate]], label: str = "static index"):
        self._gems: Dict[str, List[PackageCandidate]] = {k: list(v) for k, v in gems.items()}
        self._label = label
        self.requests: List[str] = []

    @classmethod
    def from_dict(cls, data: Mapping[str, Any], label: str = "static index") -> "StaticIndex":
        gems = {
            str(name): [candidate_from_dict(str(name), record) for record in (records or [])]
            for name, records in data.items()
        }
        return cls(gems, label=label)

    @classmethod
    def from_file(cls, path: str) -> "StaticIndex":
        """Load a YAML or JSON snapshot."""
        with open(path, "r", encoding="utf-8") as fh:
            if path.endswith(".json"):
                data = json.load(fh)
            else:
                data = yaml.safe_load(fh)
        if not isinstance(data, dict):
            raise ValueError(f"Index snapshot {path} must be a mapping of gem names")
        return cls.from_dict(data, label=os.path.basename(path))

    @property
    def name(self) -> str:
        return self._label

    def fetch(self, gem_name: str) -> List[PackageCandidate]:
        self.requests.append(gem_name)
        if gem_name not in self._gems:
            raise PackageNotFound(gem_name, reason=f"not in {self._label}")
        return list(self._gems[gem_name])
