"""Update policy: pins and preferences derived from a previous resolution.

The solver has no notion of update modes. Everything here is expressed as
extra requirements (``overrides``) merged in before solving and a version
selector consulted when the solver makes a decision.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Tuple, Union

from constants import UpdateLevel
from versioning.models import Dependency
from versioning.requirement import VersionRequirement
from versioning.version import Version

logger = logging.getLogger(__name__)

# Passed as ``update`` to unlock every gem.
UPDATE_ALL = "*"


class LatestVersionSelector:
    """Prefer the previously locked version when it is still allowed, else the newest."""

    def __init__(self, preferences: Optional[Mapping[str, Version]] = None):
        self.preferences: Dict[str, Version] = dict(preferences or {})

    def select(self, package: str, versions: Sequence[Version]) -> Optional[Version]:
        """Pick from ``versions``, which are ordered newest first."""
        if not versions:
            return None
        locked = self.preferences.get(package)
        if locked is not None and locked in versions:
            return locked
        return versions[0]


class ConservativeVersionSelector(LatestVersionSelector):
    """Prefer the version closest to the locked one.

    Closeness compares the per-segment distance from the locked version;
    at equal distance an upgrade beats a downgrade, then newer beats older.
    Gems being updated move to the nearest upgrade (a patch release before
    a minor one before a major one) and keep their locked version only
    when nothing newer is allowed.
    """

    def __init__(
        self,
        preferences: Optional[Mapping[str, Version]] = None,
        updating: Optional[Mapping[str, Version]] = None,
    ):
        super().__init__(preferences)
        self.updating: Dict[str, Version] = dict(updating or {})

    def select(self, package: str, versions: Sequence[Version]) -> Optional[Version]:
        if not versions:
            return None
        origin = self.updating.get(package)
        if origin is not None:
            upgrades = [(i, v) for i, v in enumerate(versions) if v > origin]
            if upgrades:
                return min(upgrades, key=lambda item: (item[1].distance(origin), item[0]))[1]
            locked = origin
        else:
            locked = self.preferences.get(package)
        if locked is None:
            return versions[0]
        ranked = sorted(
            enumerate(versions),
            key=lambda item: (item[1].distance(locked), item[1] < locked, item[0]),
        )
        return ranked[0][1]


def level_requirement(version: Version, level: Union[UpdateLevel, str]) -> Optional[VersionRequirement]:
    """Requirement keeping ``version`` within its patch or minor series.

    ``patch`` on 1.2.3 gives ``>= 1.2.3, < 1.3``; ``minor`` gives ``>= 1.2.3, < 2``;
    ``major`` places no bound.
    """
    level = UpdateLevel(level)
    if level is UpdateLevel.MAJOR:
        return None
    numeric = [s for s in version.release().segments if isinstance(s, int)]
    numeric += [0] * (3 - len(numeric))
    if level is UpdateLevel.PATCH:
        upper = Version(f"{numeric[0]}.{numeric[1] + 1}")
    else:
        upper = Version(str(numeric[0] + 1))
    return VersionRequirement([(">=", version), ("<", upper)])


@dataclass
class UpdatePolicy:
    """Overrides and locked-version preferences for one resolution run."""

    overrides: Dict[str, VersionRequirement] = field(default_factory=dict)
    preferences: Dict[str, Version] = field(default_factory=dict)
    updating: Dict[str, Version] = field(default_factory=dict)
    conservative: bool = False

    @classmethod
    def from_lock(
        cls,
        locked: Mapping[str, Version],
        update: Union[None, str, Iterable[str]] = None,
        level: Union[UpdateLevel, str] = UpdateLevel.MAJOR,
        conservative: bool = False,
    ) -> "UpdatePolicy":
        """Derive the policy from previously locked versions.

        Args:
            locked: gem name to the version recorded by the last resolution.
            update: None keeps locked versions as soft preferences, a list
                unlocks only those gems and pins every other one exactly,
                ``UPDATE_ALL`` unlocks everything.
            level: how far unlocked gems may move.
            conservative: rank candidates by closeness to the locked version
                instead of taking the newest. Unlocked gems move to the
                nearest upgrade rather than the newest one.
        """
        policy = cls(conservative=conservative)
        if update is None:
            policy.preferences = dict(locked)
            return policy

        unlock_all = update == UPDATE_ALL
        unlocked = set() if unlock_all else set(update)
        unknown = sorted(unlocked - set(locked))
        if unknown:
            logger.warning("Gems requested for update are not locked: %s", ", ".join(unknown))

        for name, version in locked.items():
            if unlock_all or name in unlocked:
                if conservative:
                    policy.updating[name] = version
                bound = level_requirement(version, level)
                if bound is not None:
                    policy.overrides[name] = bound
            else:
                policy.overrides[name] = VersionRequirement.exact(version)
                policy.preferences[name] = version
        return policy

    def selector(self) -> LatestVersionSelector:
        if self.conservative:
            return ConservativeVersionSelector(self.preferences, self.updating)
        return LatestVersionSelector(self.preferences)


def apply_overrides(
    root_dependencies: Sequence[Dependency],
    overrides: Mapping[str, VersionRequirement],
) -> Tuple[List[Dependency], Dict[str, VersionRequirement]]:
    """Merge overrides into root requirements by intersection.

    Returns the rewritten root dependencies and the overrides left over for
    gems that are not direct requirements. An override that would leave a
    root requirement unsatisfiable is dropped with a warning, since the
    manifest wins over the previous resolution.
    """
    merged: List[Dependency] = []
    for dependency in root_dependencies:
        override = overrides.get(dependency.name)
        if override is None:
            merged.append(dependency)
            continue
        combined = dependency.requirement.intersect(override)
        if combined is None:
            logger.warning(
                "Ignoring locked requirement %s (%s): it conflicts with the manifest requirement %s",
                dependency.name, override, dependency.requirement,
            )
            merged.append(dependency)
        else:
            merged.append(Dependency(dependency.name, combined))

    root_names = {d.name for d in root_dependencies}
    pins = {name: req for name, req in overrides.items() if name not in root_names}
    return merged, pins
