"""Set algebra over gem versions.

A ``VersionSet`` is a normalized union of disjoint, non-adjacent intervals.
The solver's terms are built on it, so every operation returns a new,
normalized instance and never mutates its inputs.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, List, Optional, Tuple

from .version import Version


@dataclass(frozen=True)
class Interval:
    """A contiguous range of versions; a None bound is unbounded."""

    lower: Optional[Version] = None
    lower_inclusive: bool = False
    upper: Optional[Version] = None
    upper_inclusive: bool = False

    def allows(self, version: Version) -> bool:
        if self.lower is not None:
            if version < self.lower or (version == self.lower and not self.lower_inclusive):
                return False
        if self.upper is not None:
            if version > self.upper or (version == self.upper and not self.upper_inclusive):
                return False
        return True

    @property
    def is_single(self) -> bool:
        return self.lower is not None and self.lower == self.upper

    def __str__(self) -> str:
        if self.is_single:
            return f"= {self.lower}"
        parts = []
        if self.lower is not None:
            parts.append(f"{'>=' if self.lower_inclusive else '>'} {self.lower}")
        if self.upper is not None:
            parts.append(f"{'<=' if self.upper_inclusive else '<'} {self.upper}")
        return ", ".join(parts) if parts else ">= 0"


def _lower_key(interval: Interval) -> Tuple[int, Optional[Version], int]:
    # Unbounded sorts first; at equal versions an inclusive bound starts earlier.
    if interval.lower is None:
        return (0, None, 0)
    return (1, interval.lower, 0 if interval.lower_inclusive else 1)


def _lower_lt(a: Interval, b: Interval) -> bool:
    """True when ``a`` starts strictly before ``b``."""
    if a.lower is None:
        return b.lower is not None
    if b.lower is None:
        return False
    if a.lower != b.lower:
        return a.lower < b.lower
    return a.lower_inclusive and not b.lower_inclusive


def _upper_lt(a: Interval, b: Interval) -> bool:
    """True when ``a`` ends strictly before ``b``."""
    if a.upper is None:
        return False
    if b.upper is None:
        return True
    if a.upper != b.upper:
        return a.upper < b.upper
    return not a.upper_inclusive and b.upper_inclusive


def _non_empty(lower: Optional[Version], lower_inc: bool,
               upper: Optional[Version], upper_inc: bool) -> Optional[Interval]:
    if lower is not None and upper is not None:
        if upper < lower:
            return None
        if upper == lower and not (lower_inc and upper_inc):
            return None
    return Interval(lower, lower_inc if lower is not None else False,
                    upper, upper_inc if upper is not None else False)


def _touches(left: Interval, right: Interval) -> bool:
    """Whether ``right`` (starting no earlier than ``left``) overlaps or abuts ``left``."""
    if left.upper is None or right.lower is None:
        return True
    if right.lower < left.upper:
        return True
    if right.lower == left.upper:
        return left.upper_inclusive or right.lower_inclusive
    return False


def _intersect_intervals(a: Interval, b: Interval) -> Optional[Interval]:
    lower_src = b if _lower_lt(a, b) else a
    upper_src = a if _upper_lt(a, b) else b
    return _non_empty(lower_src.lower, lower_src.lower_inclusive,
                      upper_src.upper, upper_src.upper_inclusive)


class VersionSet:
    """An immutable union of version intervals."""

    __slots__ = ("_intervals", "_text")

    def __init__(self, intervals: Iterable[Interval] = (), text: Optional[str] = None):
        self._intervals: Tuple[Interval, ...] = _normalize(intervals)
        self._text = text

    @classmethod
    def any(cls) -> "VersionSet":
        return cls([Interval()])

    @classmethod
    def empty(cls) -> "VersionSet":
        return cls([])

    @classmethod
    def exact(cls, version: Version) -> "VersionSet":
        return cls([Interval(version, True, version, True)])

    @classmethod
    def at_least(cls, version: Version, inclusive: bool = True) -> "VersionSet":
        return cls([Interval(version, inclusive, None, False)])

    @classmethod
    def below(cls, version: Version, inclusive: bool = False) -> "VersionSet":
        return cls([Interval(None, False, version, inclusive)])

    @classmethod
    def between(cls, lower: Version, upper: Version) -> "VersionSet":
        """``>= lower, < upper``."""
        return cls([i for i in [_non_empty(lower, True, upper, False)] if i is not None])

    @property
    def intervals(self) -> Tuple[Interval, ...]:
        return self._intervals

    @property
    def is_empty(self) -> bool:
        return not self._intervals

    @property
    def is_any(self) -> bool:
        return len(self._intervals) == 1 and self._intervals[0] == Interval()

    def with_text(self, text: str) -> "VersionSet":
        """Same set, rendered as ``text`` in messages."""
        result = VersionSet.__new__(VersionSet)
        result._intervals = self._intervals
        result._text = text
        return result

    def allows(self, version: Version) -> bool:
        return any(interval.allows(version) for interval in self._intervals)

    def allows_all(self, other: "VersionSet") -> bool:
        return other.difference(self).is_empty

    def allows_any(self, other: "VersionSet") -> bool:
        return not self.intersect(other).is_empty

    def intersect(self, other: "VersionSet") -> "VersionSet":
        result: List[Interval] = []
        i = j = 0
        ours, theirs = self._intervals, other._intervals
        while i < len(ours) and j < len(theirs):
            overlap = _intersect_intervals(ours[i], theirs[j])
            if overlap is not None:
                result.append(overlap)
            if _upper_lt(ours[i], theirs[j]):
                i += 1
            else:
                j += 1
        return VersionSet(result)

    def union(self, other: "VersionSet") -> "VersionSet":
        return VersionSet(self._intervals + other._intervals)

    def complement(self) -> "VersionSet":
        gaps: List[Interval] = []
        lower: Optional[Version] = None
        lower_inc = False
        unbounded_start = True
        for interval in self._intervals:
            if interval.lower is not None:
                gap = _non_empty(None if unbounded_start else lower, lower_inc,
                                 interval.lower, not interval.lower_inclusive)
                if gap is not None:
                    gaps.append(gap)
            if interval.upper is None:
                return VersionSet(gaps)
            lower = interval.upper
            lower_inc = not interval.upper_inclusive
            unbounded_start = False
        gaps.append(Interval(None if unbounded_start else lower, lower_inc, None, False))
        return VersionSet(gaps)

    def difference(self, other: "VersionSet") -> "VersionSet":
        return self.intersect(other.complement())

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, VersionSet):
            return NotImplemented
        return self._intervals == other._intervals

    def __hash__(self) -> int:
        return hash(self._intervals)

    def __str__(self) -> str:
        if self._text is not None:
            return self._text
        if self.is_empty:
            return "<empty>"
        return " or ".join(str(interval) for interval in self._intervals)

    def __repr__(self) -> str:
        return f"VersionSet({str(self)!r})"


def _normalize(intervals: Iterable[Interval]) -> Tuple[Interval, ...]:
    ordered = sorted(intervals, key=_lower_key)
    merged: List[Interval] = []
    for interval in ordered:
        if merged and _touches(merged[-1], interval):
            last = merged[-1]
            upper_src = interval if _upper_lt(last, interval) else last
            merged[-1] = Interval(last.lower, last.lower_inclusive,
                                  upper_src.upper, upper_src.upper_inclusive)
        else:
            merged.append(interval)
    return tuple(merged)
