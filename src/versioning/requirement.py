"""Gem version requirements (``~> 1.2, >= 1.2.3``)."""

from __future__ import annotations

import re
from typing import Iterable, List, Optional, Tuple

from .version import InvalidVersion, Version
from .version_set import VersionSet

OPERATORS = ("=", "!=", ">", "<", ">=", "<=", "~>")

_CONSTRAINT_PATTERN = re.compile(r"^\s*(=|!=|>=|<=|>|<|~>)?\s*(\S+)\s*$")


class InvalidRequirement(ValueError):
    """Raised when a requirement string cannot be parsed."""


class VersionRequirement:
    """A conjunction of (operator, version) constraints.

    An empty requirement list means ``>= 0`` and matches every version.
    """

    __slots__ = ("_constraints", "_version_set")

    def __init__(self, constraints: Iterable[Tuple[str, Version]] = ()):
        self._constraints: Tuple[Tuple[str, Version], ...] = tuple(constraints)
        for op, _ in self._constraints:
            if op not in OPERATORS:
                raise InvalidRequirement(f"Unknown operator {op!r}")
        self._version_set: Optional[VersionSet] = None

    @classmethod
    def parse(cls, text: Optional[str]) -> "VersionRequirement":
        """Parse ``"~> 1.2, != 1.2.5"``; a bare version means ``=``."""
        if text is None or not text.strip():
            return cls()
        constraints: List[Tuple[str, Version]] = []
        for part in text.split(","):
            match = _CONSTRAINT_PATTERN.match(part)
            if not match:
                raise InvalidRequirement(f"Illformed requirement {text!r}")
            op = match.group(1) or "="
            try:
                version = Version(match.group(2))
            except InvalidVersion as exc:
                raise InvalidRequirement(f"Illformed requirement {text!r}: {exc}") from exc
            constraints.append((op, version))
        return cls(constraints)

    @classmethod
    def exact(cls, version: Version) -> "VersionRequirement":
        return cls([("=", version)])

    @property
    def constraints(self) -> Tuple[Tuple[str, Version], ...]:
        return self._constraints

    @property
    def is_prerelease(self) -> bool:
        """Whether an operand names a prerelease, which opts in to prerelease matches."""
        return any(version.is_prerelease for _, version in self._constraints)

    @property
    def is_any(self) -> bool:
        return self.to_version_set().is_any

    def matches(self, version: Version, allow_prerelease: bool = False) -> bool:
        """Check ``version`` against every constraint.

        Prerelease versions only match when the caller allows them or the
        requirement itself names a prerelease.
        """
        if version.is_prerelease and not (allow_prerelease or self.is_prerelease):
            return False
        return all(_check(op, version, operand) for op, operand in self._constraints)

    def to_version_set(self) -> VersionSet:
        if self._version_set is None:
            result = VersionSet.any()
            for op, operand in self._constraints:
                result = result.intersect(_operator_set(op, operand))
            self._version_set = result.with_text(str(self))
        return self._version_set

    def intersect(self, other: "VersionRequirement") -> Optional["VersionRequirement"]:
        """Combine two requirements; None when no version could satisfy both."""
        combined = VersionRequirement(self._constraints + other._constraints)
        if combined.to_version_set().is_empty:
            return None
        return combined

    def allows_any(self, versions: Iterable[Version], allow_prerelease: bool = False) -> bool:
        return any(self.matches(v, allow_prerelease) for v in versions)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, VersionRequirement):
            return NotImplemented
        return self._constraints == other._constraints

    def __hash__(self) -> int:
        return hash(self._constraints)

    def __str__(self) -> str:
        if not self._constraints:
            return ">= 0"
        return ", ".join(f"{op} {version}" for op, version in self._constraints)

    def __repr__(self) -> str:
        return f"VersionRequirement({str(self)!r})"


def _check(op: str, version: Version, operand: Version) -> bool:
    if op == "=":
        return version == operand
    if op == "!=":
        return version != operand
    if op == ">":
        return version > operand
    if op == "<":
        return version < operand
    if op == ">=":
        return version >= operand
    if op == "<=":
        return version <= operand
    # ~>
    return operand <= version < operand.bump()


def _operator_set(op: str, operand: Version) -> VersionSet:
    if op == "=":
        return VersionSet.exact(operand)
    if op == "!=":
        return VersionSet.exact(operand).complement()
    if op == ">":
        return VersionSet.at_least(operand, inclusive=False)
    if op == "<":
        return VersionSet.below(operand)
    if op == ">=":
        return VersionSet.at_least(operand)
    if op == "<=":
        return VersionSet.below(operand, inclusive=True)
    return VersionSet.between(operand, operand.bump())
