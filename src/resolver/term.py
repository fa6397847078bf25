"""Terms: statements about the versions a package may take."""

from __future__ import annotations

from enum import Enum
from typing import Optional

from versioning.version_set import VersionSet


class SetRelation(Enum):
    """How the versions allowed by one term relate to another's."""

    SUBSET = "subset"
    DISJOINT = "disjoint"
    OVERLAPPING = "overlapping"


class Term:
    """A positive or negative statement about a package's version.

    A positive term ``foo >= 1.0`` holds when foo is selected at a version in
    the set. A negative term ``not foo >= 1.0`` holds when foo is either not
    selected at all or selected outside the set.
    """

    __slots__ = ("package", "constraint", "positive")

    def __init__(self, package: str, constraint: VersionSet, positive: bool = True):
        self.package = package
        self.constraint = constraint
        self.positive = positive

    @property
    def inverse(self) -> "Term":
        return Term(self.package, self.constraint, not self.positive)

    def satisfies(self, other: "Term") -> bool:
        """Whether this term being true guarantees ``other`` is true."""
        return self.package == other.package and self.relation(other) == SetRelation.SUBSET

    def relation(self, other: "Term") -> SetRelation:
        """Relation of the versions this term allows to those ``other`` allows."""
        if self.package != other.package:
            raise ValueError(f"{other} should refer to {self.package}")

        other_constraint = other.constraint
        if other.positive:
            if self.positive:
                if other_constraint.allows_all(self.constraint):
                    return SetRelation.SUBSET
                if not self.constraint.allows_any(other_constraint):
                    return SetRelation.DISJOINT
                return SetRelation.OVERLAPPING
            # "not foo" always admits foo being absent, so it can't be a subset.
            if self.constraint.allows_all(other_constraint):
                return SetRelation.DISJOINT
            return SetRelation.OVERLAPPING

        if self.positive:
            if not other_constraint.allows_any(self.constraint):
                return SetRelation.SUBSET
            if other_constraint.allows_all(self.constraint):
                return SetRelation.DISJOINT
            return SetRelation.OVERLAPPING
        if self.constraint.allows_all(other_constraint):
            return SetRelation.SUBSET
        return SetRelation.OVERLAPPING

    def intersect(self, other: "Term") -> Optional["Term"]:
        """Term allowing only what both allow; None when that is nothing."""
        if self.package != other.package:
            raise ValueError(f"{other} should refer to {self.package}")

        if self.positive != other.positive:
            positive = self if self.positive else other
            negative = other if self.positive else self
            return self._non_empty(positive.constraint.difference(negative.constraint), True)
        if self.positive:
            return self._non_empty(self.constraint.intersect(other.constraint), True)
        return self._non_empty(self.constraint.union(other.constraint), False)

    def difference(self, other: "Term") -> Optional["Term"]:
        return self.intersect(other.inverse)

    def _non_empty(self, constraint: VersionSet, positive: bool) -> Optional["Term"]:
        if constraint.is_empty:
            return None
        return Term(self.package, constraint, positive)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Term):
            return NotImplemented
        return (
            self.package == other.package
            and self.positive == other.positive
            and self.constraint == other.constraint
        )

    def __hash__(self) -> int:
        return hash((self.package, self.positive, self.constraint))

    def __str__(self) -> str:
        prefix = "" if self.positive else "not "
        if self.constraint.is_any:
            return f"{prefix}{self.package}"
        return f"{prefix}{self.package} ({self.constraint})"

    def __repr__(self) -> str:
        return f"<Term {self}>"
