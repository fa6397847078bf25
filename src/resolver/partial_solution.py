"""The solver's current tentative assignment of package versions."""

from __future__ import annotations

from typing import Dict, List, Optional

from versioning.version import Version
from versioning.version_set import VersionSet

from .incompatibility import Incompatibility
from .term import SetRelation, Term


class Assignment(Term):
    """A term placed in the partial solution by a decision or a derivation."""

    __slots__ = ("decision_level", "index", "cause")

    def __init__(self, package: str, constraint: VersionSet, positive: bool,
                 decision_level: int, index: int, cause: Optional[Incompatibility] = None):
        super().__init__(package, constraint, positive)
        self.decision_level = decision_level
        self.index = index
        self.cause = cause

    @property
    def is_decision(self) -> bool:
        return self.cause is None

    @classmethod
    def decision(cls, package: str, version: Version, decision_level: int, index: int) -> "Assignment":
        return cls(package, VersionSet.exact(version), True, decision_level, index)

    @classmethod
    def derivation(cls, term: Term, positive: bool, cause: Incompatibility,
                   decision_level: int, index: int) -> "Assignment":
        return cls(term.package, term.constraint, positive, decision_level, index, cause)


class PartialSolution:
    """An append-only log of assignments that backtracks by truncation.

    Per package the log is summarized as either one positive term (the
    package must be selected within it) or one negative term (the versions
    it must avoid).
    """

    def __init__(self):
        self._assignments: List[Assignment] = []
        self._decisions: Dict[str, Version] = {}
        self._positive: Dict[str, Term] = {}
        self._negative: Dict[str, Term] = {}
        self._attempted_solutions = 1
        self._backtracking = False

    @property
    def decisions(self) -> Dict[str, Version]:
        return dict(self._decisions)

    @property
    def decision_level(self) -> int:
        return len(self._decisions)

    @property
    def attempted_solutions(self) -> int:
        return self._attempted_solutions

    @property
    def assignments(self) -> List[Assignment]:
        return list(self._assignments)

    def positive_term(self, package: str) -> Optional[Term]:
        return self._positive.get(package)

    def unsatisfied(self) -> List[str]:
        """Packages with a positive term but no decision, in assignment order."""
        return [name for name in self._positive if name not in self._decisions]

    def decide(self, package: str, version: Version) -> None:
        if self._backtracking:
            self._attempted_solutions += 1
        self._backtracking = False
        self._decisions[package] = version
        self._assign(Assignment.decision(package, version, self.decision_level, len(self._assignments)))

    def derive(self, term: Term, positive: bool, cause: Incompatibility) -> None:
        self._assign(Assignment.derivation(term, positive, cause, self.decision_level, len(self._assignments)))

    def _assign(self, assignment: Assignment) -> None:
        self._assignments.append(assignment)
        self._register(assignment)

    def backtrack(self, decision_level: int) -> None:
        """Drop every assignment made above ``decision_level``."""
        self._backtracking = True

        removed_packages = set()
        while self._assignments and self._assignments[-1].decision_level > decision_level:
            removed = self._assignments.pop()
            removed_packages.add(removed.package)
            if removed.is_decision:
                del self._decisions[removed.package]

        for package in removed_packages:
            self._positive.pop(package, None)
            self._negative.pop(package, None)

        for assignment in self._assignments:
            if assignment.package in removed_packages:
                self._register(assignment)

    def _register(self, assignment: Assignment) -> None:
        name = assignment.package
        old_positive = self._positive.get(name)
        if old_positive is not None:
            self._positive[name] = _must_intersect(old_positive, assignment)
            return

        old_negative = self._negative.get(name)
        term = assignment if old_negative is None else _must_intersect(assignment, old_negative)
        if term.positive:
            self._negative.pop(name, None)
            self._positive[name] = term
        else:
            self._negative[name] = term

    def satisfier(self, term: Term) -> Assignment:
        """The earliest assignment after which ``term`` is satisfied."""
        assigned: Optional[Term] = None
        for assignment in self._assignments:
            if assignment.package != term.package:
                continue
            assigned = assignment if assigned is None else _must_intersect(assigned, assignment)
            if assigned.satisfies(term):
                return assignment
        raise RuntimeError(f"[BUG] {term} is not satisfied by the partial solution")

    def satisfies(self, term: Term) -> bool:
        return self.relation(term) == SetRelation.SUBSET

    def relation(self, term: Term) -> SetRelation:
        positive = self._positive.get(term.package)
        if positive is not None:
            return positive.relation(term)
        negative = self._negative.get(term.package)
        if negative is None:
            return SetRelation.OVERLAPPING
        return negative.relation(term)


def _must_intersect(left: Term, right: Term) -> Term:
    merged = left.intersect(right)
    if merged is None:
        raise RuntimeError(f"[BUG] {left} and {right} were both assigned")
    return merged
