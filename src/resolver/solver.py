"""PubGrub version solving.

The algorithm alternates unit propagation, conflict resolution and decision
making over a single ``PartialSolution``. See
https://github.com/dart-lang/pub/blob/master/doc/solver.md for background.
"""
from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional, Sequence, Tuple, Union

from common.logging_utils import Timer, extra_context, is_debug_enabled
from constants import Constants
from registry.errors import PackageNotFound
from versioning.models import Dependency, PackageCandidate
from versioning.requirement import VersionRequirement
from versioning.version import Version
from versioning.version_set import VersionSet

from .errors import PackageFetchError, ResolutionCancelled
from .failure import SolveFailure
from .incompatibility import (
    ConflictCause,
    DependencyCause,
    Incompatibility,
    NoVersionsCause,
    PackageNotFoundCause,
    PinnedCause,
    RootCause,
)
from .partial_solution import PartialSolution
from .platforms import merge_dependencies, variants_for
from .policy import LatestVersionSelector
from .provider import MetadataProvider
from .term import SetRelation, Term

logger = logging.getLogger(__name__)

ROOT_VERSION = Version("0")

_CONFLICT = object()


@dataclass
class SolverResult:
    """Chosen versions (root excluded) and the variants backing each."""

    decisions: Dict[str, Version]
    variants: Dict[str, Tuple[PackageCandidate, ...]] = field(default_factory=dict)
    attempted_solutions: int = 1


class VersionSolver:
    """Finds one version per required gem satisfying every dependency."""

    def __init__(
        self,
        root_dependencies: Sequence[Dependency],
        provider: MetadataProvider,
        selector: Optional[LatestVersionSelector] = None,
        pins: Optional[Mapping[str, VersionRequirement]] = None,
        platforms: Sequence[str] = (Constants.RUBY_PLATFORM,),
        cancel_event: Optional[threading.Event] = None,
        root_name: str = Constants.ROOT_NAME,
    ):
        self._root = root_name
        self._root_dependencies = list(root_dependencies)
        self._root_names = {d.name for d in self._root_dependencies}
        self._provider = provider
        self._selector = selector or LatestVersionSelector()
        self._pins = dict(pins or {})
        self._platforms = list(platforms) or [Constants.RUBY_PLATFORM]
        self._cancel_event = cancel_event or threading.Event()

        self._solution = PartialSolution()
        self._incompatibilities: Dict[str, List[Incompatibility]] = {}
        self._discovery: Dict[str, int] = {}
        self._versions: Dict[str, List[Version]] = {}
        self._variants: Dict[str, Dict[Version, Tuple[PackageCandidate, ...]]] = {}
        self._dependencies: Dict[str, Dict[Version, List[Dependency]]] = {}
        self._dependency_facts: Dict[Tuple[str, Version], List[Incompatibility]] = {}
        for name in [self._root] + [d.name for d in self._root_dependencies]:
            self._discovery.setdefault(name, len(self._discovery))

    def solve(self) -> SolverResult:
        """Run to completion.

        Raises:
            SolveFailure: no solution exists; carries the explanation.
            PackageFetchError: metadata for a direct requirement is unavailable.
            ResolutionCancelled: the cancel event was set.
        """
        with Timer() as timer:
            self._check_root_conflicts()
            self._add_incompatibility(
                Incompatibility([Term(self._root, VersionSet.any(), False)], RootCause(), self._root)
            )
            for name in sorted(self._pins):
                requirement = self._pins[name]
                if requirement.is_any:
                    continue
                excluded = requirement.to_version_set().complement().with_text(f"not {requirement}")
                self._add_incompatibility(
                    Incompatibility([Term(name, excluded)], PinnedCause(requirement), self._root)
                )

            next_package: Optional[str] = self._root
            while next_package is not None:
                self._check_cancelled()
                self._propagate(next_package)
                next_package = self._choose_package_version()

        decisions = {
            name: version
            for name, version in sorted(self._solution.decisions.items())
            if name != self._root
        }
        logger.info(
            "Version solving took %.3f seconds, tried %d solutions",
            timer.duration_ms() / 1000.0,
            self._solution.attempted_solutions,
        )
        return SolverResult(
            decisions=decisions,
            variants={name: self._variants[name][version] for name, version in decisions.items()},
            attempted_solutions=self._solution.attempted_solutions,
        )

    def _check_cancelled(self) -> None:
        if self._cancel_event.is_set():
            raise ResolutionCancelled()

    def _check_root_conflicts(self) -> None:
        """Fail before searching when two manifest requirements can never agree."""
        seen: Dict[str, Dependency] = {}
        for dependency in self._root_dependencies:
            previous = seen.get(dependency.name)
            if previous is None:
                seen[dependency.name] = dependency
                continue
            combined = previous.requirement.intersect(dependency.requirement)
            if combined is not None:
                seen[dependency.name] = Dependency(dependency.name, combined)
                continue
            first = self._dependency_incompatibility(self._root, None, previous)
            second = self._dependency_incompatibility(self._root, None, dependency)
            raise SolveFailure(
                Incompatibility(
                    [Term(self._root, VersionSet.any())], ConflictCause(first, second), self._root
                )
            )

    def _propagate(self, package: str) -> None:
        changed = [package]
        while changed:
            current = changed.pop(0)
            # Newest facts first: they tend to be the most specific.
            for incompatibility in reversed(list(self._incompatibilities.get(current, []))):
                result = self._propagate_incompatibility(incompatibility)
                if result is _CONFLICT:
                    root_cause = self._resolve_conflict(incompatibility)
                    derived = self._propagate_incompatibility(root_cause)
                    changed = [derived] if isinstance(derived, str) else []
                    break
                if result is not None and result not in changed:
                    changed.append(result)

    def _propagate_incompatibility(self, incompatibility: Incompatibility) -> Union[None, str, object]:
        """Derive the one remaining term of an almost-satisfied incompatibility.

        Returns the derived package name, ``_CONFLICT`` when every term is
        already satisfied, or None when nothing can be derived.
        """
        unsatisfied: Optional[Term] = None
        for term in incompatibility.terms:
            relation = self._solution.relation(term)
            if relation == SetRelation.DISJOINT:
                return None
            if relation == SetRelation.OVERLAPPING:
                if unsatisfied is not None:
                    return None
                unsatisfied = term

        if unsatisfied is None:
            return _CONFLICT

        logger.debug("derived: %s", unsatisfied.inverse)
        self._solution.derive(unsatisfied, not unsatisfied.positive, incompatibility)
        return unsatisfied.package

    def _resolve_conflict(self, incompatibility: Incompatibility) -> Incompatibility:
        """Learn from a conflict and backjump; raise SolveFailure when the root fails."""
        logger.debug("conflict: %s", incompatibility)

        new_incompatibility = False
        while not incompatibility.is_failure():
            most_recent_term: Optional[Term] = None
            most_recent_satisfier = None
            difference: Optional[Term] = None
            previous_satisfier_level = 1

            for term in incompatibility.terms:
                satisfier = self._solution.satisfier(term)
                if most_recent_satisfier is None:
                    most_recent_term = term
                    most_recent_satisfier = satisfier
                elif most_recent_satisfier.index < satisfier.index:
                    previous_satisfier_level = max(previous_satisfier_level, most_recent_satisfier.decision_level)
                    most_recent_term = term
                    most_recent_satisfier = satisfier
                    difference = None
                else:
                    previous_satisfier_level = max(previous_satisfier_level, satisfier.decision_level)

                if most_recent_term is term:
                    # The satisfier may cover more than the term; whatever is left
                    # over has to be explained by an earlier assignment.
                    difference = most_recent_satisfier.difference(most_recent_term)
                    if difference is not None:
                        previous_satisfier_level = max(
                            previous_satisfier_level,
                            self._solution.satisfier(difference.inverse).decision_level,
                        )

            if previous_satisfier_level < most_recent_satisfier.decision_level or most_recent_satisfier.cause is None:
                self._solution.backtrack(previous_satisfier_level)
                if new_incompatibility:
                    self._add_incompatibility(incompatibility)
                return incompatibility

            new_terms = [t for t in incompatibility.terms if t is not most_recent_term]
            new_terms.extend(
                t for t in most_recent_satisfier.cause.terms if t.package != most_recent_satisfier.package
            )
            if difference is not None:
                new_terms.append(difference.inverse)

            incompatibility = Incompatibility(
                new_terms, ConflictCause(incompatibility, most_recent_satisfier.cause), self._root
            )
            new_incompatibility = True
            logger.debug("! %s is satisfied by %s", most_recent_term, most_recent_satisfier)
            logger.debug("! which is caused by %s", most_recent_satisfier.cause)
            logger.debug("! thus: %s", incompatibility)

        raise SolveFailure(incompatibility)

    def _choose_package_version(self) -> Optional[str]:
        """Decide the next package; returns its name, or None when done."""
        unsatisfied = self._solution.unsatisfied()
        if not unsatisfied:
            return None

        package = min(
            unsatisfied,
            key=lambda name: (len(self._allowed_versions(name)), self._discovery.get(name, 0), name),
        )
        term = self._solution.positive_term(package)
        allowed = self._allowed_versions(package)
        version = self._selector.select(package, allowed)

        if version is None:
            error = self._provider.error_for(package)
            if error is not None and not self._versions_of(package):
                self._add_incompatibility(
                    Incompatibility([Term(package, VersionSet.any())], PackageNotFoundCause(error), self._root)
                )
            else:
                self._add_incompatibility(
                    Incompatibility([Term(package, term.constraint)], NoVersionsCause(), self._root)
                )
            return package

        conflict = False
        for incompatibility in self._dependency_incompatibilities(package, version):
            conflict = conflict or all(
                t.package == package or self._solution.satisfies(t) for t in incompatibility.terms
            )

        if not conflict:
            self._solution.decide(package, version)
            if is_debug_enabled(logger):
                logger.debug(
                    "selecting %s (%s)",
                    package,
                    version,
                    extra=extra_context(event="decision", component="solver", package=package,
                                        version=str(version), level=self._solution.decision_level),
                )
        return package

    def _allowed_versions(self, package: str) -> List[Version]:
        term = self._solution.positive_term(package)
        return [v for v in self._versions_of(package) if term is None or term.constraint.allows(v)]

    def _versions_of(self, package: str) -> List[Version]:
        """Usable versions newest first, each with a variant for every platform."""
        if package in self._versions:
            return self._versions[package]

        if package == self._root:
            self._versions[package] = [ROOT_VERSION]
            self._variants[package] = {ROOT_VERSION: ()}
            self._dependencies[package] = {ROOT_VERSION: self._root_dependencies}
            return self._versions[package]

        candidates = self._provider.candidates(package)
        error = self._provider.error_for(package)
        if error is not None and package in self._root_names and not isinstance(error, PackageNotFound):
            raise PackageFetchError(package, error)

        by_version: Dict[Version, List[PackageCandidate]] = {}
        for candidate in candidates:
            by_version.setdefault(candidate.version, []).append(candidate)

        versions: List[Version] = []
        variants: Dict[Version, Tuple[PackageCandidate, ...]] = {}
        dependencies: Dict[Version, List[Dependency]] = {}
        for version, group in by_version.items():
            chosen = variants_for(group, self._platforms)
            if chosen is None:
                logger.debug("Skipping %s (%s): no variant for every platform", package, version)
                continue
            merged = merge_dependencies(chosen)
            if merged is None:
                logger.warning("Skipping %s (%s): platform variants require disjoint dependencies",
                               package, version)
                continue
            versions.append(version)
            variants[version] = tuple(chosen)
            dependencies[version] = merged

        self._versions[package] = versions
        self._variants[package] = variants
        self._dependencies[package] = dependencies
        return versions

    def _dependency_incompatibilities(self, package: str, version: Version) -> List[Incompatibility]:
        key = (package, version)
        facts = self._dependency_facts.get(key)
        if facts is not None:
            return facts

        depender_version = None if package == self._root else version
        facts = [
            self._dependency_incompatibility(package, depender_version, dependency)
            for dependency in self._dependencies[package][version]
        ]
        self._dependency_facts[key] = facts
        for incompatibility in facts:
            self._add_incompatibility(incompatibility)
        self._provider.prefetch(d.name for d in self._dependencies[package][version])
        return facts

    def _dependency_incompatibility(self, package: str, version: Optional[Version],
                                    dependency: Dependency) -> Incompatibility:
        depender = VersionSet.any() if version is None else VersionSet.exact(version)
        return Incompatibility(
            [
                Term(package, depender),
                Term(dependency.name, dependency.requirement.to_version_set(), False),
            ],
            DependencyCause(),
            self._root,
        )

    def _add_incompatibility(self, incompatibility: Incompatibility) -> None:
        logger.debug("fact: %s", incompatibility)
        for term in incompatibility.terms:
            self._discovery.setdefault(term.package, len(self._discovery))
            self._incompatibilities.setdefault(term.package, []).append(incompatibility)
