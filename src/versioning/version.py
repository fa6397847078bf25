"""Gem version numbers.

Follows RubyGems ordering: a version is a list of numeric and alphabetic
segments; any alphabetic segment marks a prerelease, and an alphabetic
segment sorts below a numeric one at the same position, so ``1.0.a`` is
older than ``1.0``. Trailing zeros are insignificant (``1.0 == 1.0.0``).
"""

from __future__ import annotations

import functools
import re
from typing import Tuple, Union

Segment = Union[int, str]

_VERSION_PATTERN = re.compile(r"^[0-9]+(\.[0-9a-zA-Z]+)*(-[0-9A-Za-z-]+(\.[0-9A-Za-z-]+)*)?$")
_SEGMENT_PATTERN = re.compile(r"[0-9]+|[a-zA-Z]+")


class InvalidVersion(ValueError):
    """Raised for strings that are not gem versions."""


@functools.total_ordering
class Version:
    """An immutable, totally ordered gem version."""

    __slots__ = ("_text", "_segments", "_canonical", "_hash")

    def __init__(self, text: str):
        if not isinstance(text, str):
            raise InvalidVersion(f"Malformed version number string {text!r}")
        stripped = text.strip()
        if not stripped:
            stripped = "0"
        if not _VERSION_PATTERN.match(stripped):
            raise InvalidVersion(f"Malformed version number string {text!r}")
        self._text = stripped
        normalized = stripped.replace("-", ".pre.")
        self._segments: Tuple[Segment, ...] = tuple(
            int(s) if s.isdigit() else s for s in _SEGMENT_PATTERN.findall(normalized)
        )
        self._canonical = _canonical_segments(self._segments)
        self._hash = hash(self._canonical)

    @classmethod
    def parse(cls, text: Union[str, "Version"]) -> "Version":
        """Return ``text`` as a Version, accepting an existing instance."""
        if isinstance(text, Version):
            return text
        return cls(text)

    @property
    def segments(self) -> Tuple[Segment, ...]:
        return self._segments

    @property
    def is_prerelease(self) -> bool:
        return any(isinstance(s, str) for s in self._segments)

    def release(self) -> "Version":
        """The version with every segment from the first letter onward removed."""
        if not self.is_prerelease:
            return self
        numeric = []
        for segment in self._segments:
            if isinstance(segment, str):
                break
            numeric.append(str(segment))
        return Version(".".join(numeric) or "0")

    def bump(self) -> "Version":
        """Upper bound used by the pessimistic operator.

        ``1.2.3`` bumps to ``1.3``, ``1.2`` to ``2``, ``1`` to ``2``.
        """
        numeric = []
        for segment in self._segments:
            if isinstance(segment, str):
                break
            numeric.append(segment)
        if len(numeric) > 1:
            numeric.pop()
        if not numeric:
            numeric = [0]
        numeric[-1] += 1
        return Version(".".join(str(s) for s in numeric))

    def distance(self, other: "Version") -> Tuple[int, ...]:
        """Per-segment absolute numeric difference, used to rank closeness."""
        left = [s for s in self._segments if isinstance(s, int)]
        right = [s for s in other._segments if isinstance(s, int)]
        width = max(len(left), len(right))
        left += [0] * (width - len(left))
        right += [0] * (width - len(right))
        return tuple(abs(a - b) for a, b in zip(left, right))

    def _compare(self, other: "Version") -> int:
        lhs, rhs = self._canonical, other._canonical
        width = max(len(lhs), len(rhs))
        for i in range(width):
            a = lhs[i] if i < len(lhs) else 0
            b = rhs[i] if i < len(rhs) else 0
            if a == b:
                continue
            if isinstance(a, str) and isinstance(b, int):
                return -1
            if isinstance(a, int) and isinstance(b, str):
                return 1
            return -1 if a < b else 1  # type: ignore[operator]
        return 0

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Version):
            return NotImplemented
        return self._canonical == other._canonical

    def __lt__(self, other: "Version") -> bool:
        if not isinstance(other, Version):
            return NotImplemented
        return self._compare(other) < 0

    def __hash__(self) -> int:
        return self._hash

    def __str__(self) -> str:
        return self._text

    def __repr__(self) -> str:
        return f"Version({self._text!r})"


def _canonical_segments(segments: Tuple[Segment, ...]) -> Tuple[Segment, ...]:
    """Drop trailing zeros from the release part and from the prerelease part."""
    release: list = []
    prerelease: list = []
    seen_letter = False
    for segment in segments:
        if isinstance(segment, str):
            seen_letter = True
        (prerelease if seen_letter else release).append(segment)
    while release and release[-1] == 0:
        release.pop()
    while prerelease and prerelease[-1] == 0:
        prerelease.pop()
    return tuple(release + prerelease)
