"""Explaining why version solving failed."""

from __future__ import annotations

from typing import Dict, List, Optional, Tuple

from .errors import ResolutionError
from .incompatibility import ConflictCause, Incompatibility


class SolveFailure(ResolutionError):
    """No set of versions satisfies the manifest.

    ``explanation`` holds the derivation as numbered lines, e.g.::

        Because rails (= 7.0.0) depends on rack (~> 2.2)
          and the Gemfile depends on rack (>= 3.0), rails (= 7.0.0) is forbidden.
    """

    def __init__(self, incompatibility: Incompatibility):
        self.incompatibility = incompatibility
        self.explanation: List[str] = _Writer(incompatibility).write()
        super().__init__("\n".join(self.explanation))

    @property
    def message(self) -> str:
        return "\n".join(self.explanation)


class _Writer:
    def __init__(self, root: Incompatibility):
        self._root = root
        self._derivations: Dict[int, int] = {}
        self._lines: List[Tuple[str, Optional[int]]] = []
        self._line_numbers: Dict[int, int] = {}
        self._count_derivations(root)

    def write(self) -> List[str]:
        if isinstance(self._root.cause, ConflictCause):
            self._visit(self._root)
        else:
            self._write(self._root, f"Because {self._root}, version solving failed.")

        padding = 0
        if self._line_numbers:
            padding = len(f"({max(self._line_numbers.values())}) ")

        output: List[str] = []
        last_was_empty = False
        for message, number in self._lines:
            if not message:
                if not last_was_empty:
                    output.append("")
                last_was_empty = True
                continue
            last_was_empty = False
            if number is not None:
                message = f"({number})".ljust(padding) + message
            else:
                message = " " * padding + message
            output.append(message)
        return output

    def _count_derivations(self, incompatibility: Incompatibility) -> None:
        key = id(incompatibility)
        if key in self._derivations:
            self._derivations[key] += 1
            return
        self._derivations[key] = 1
        cause = incompatibility.cause
        if isinstance(cause, ConflictCause):
            self._count_derivations(cause.conflict)
            self._count_derivations(cause.other)

    def _write(self, incompatibility: Incompatibility, message: str, numbered: bool = False) -> None:
        if numbered:
            number = len(self._line_numbers) + 1
            self._line_numbers[id(incompatibility)] = number
            self._lines.append((message, number))
        else:
            self._lines.append((message, None))

    def _line_of(self, incompatibility: Incompatibility) -> Optional[int]:
        return self._line_numbers.get(id(incompatibility))

    def _visit(self, incompatibility: Incompatibility, conclusion: bool = False) -> None:
        numbered = conclusion or self._derivations[id(incompatibility)] > 1
        conjunction = "So," if conclusion or incompatibility is self._root else "And"
        text = str(incompatibility)

        cause = incompatibility.cause
        assert isinstance(cause, ConflictCause)
        conflict, other = cause.conflict, cause.other

        if not conflict.external and not other.external:
            conflict_line = self._line_of(conflict)
            other_line = self._line_of(other)
            if conflict_line is not None and other_line is not None:
                self._write(
                    incompatibility,
                    f"Because {conflict.and_to_string(other, conflict_line, other_line)}, {text}.",
                    numbered=numbered,
                )
            elif conflict_line is not None or other_line is not None:
                if conflict_line is not None:
                    with_line, without_line, line = conflict, other, conflict_line
                else:
                    with_line, without_line, line = other, conflict, other_line
                self._visit(without_line)
                self._write(
                    incompatibility,
                    f"{conjunction} because {with_line} ({line}), {text}.",
                    numbered=numbered,
                )
            else:
                single_line_conflict = self._is_single_line(conflict.cause)
                single_line_other = self._is_single_line(other.cause)
                if single_line_other or single_line_conflict:
                    first = conflict if single_line_other else other
                    second = other if single_line_other else conflict
                    self._visit(first)
                    self._visit(second)
                    self._write(incompatibility, f"Thus, {text}.", numbered=numbered)
                else:
                    self._visit(conflict, conclusion=True)
                    self._lines.append(("", None))
                    self._visit(other)
                    self._write(
                        incompatibility,
                        f"{conjunction} because {conflict} ({self._line_of(conflict)}), {text}.",
                        numbered=numbered,
                    )
        elif not conflict.external or not other.external:
            derived = conflict if not conflict.external else other
            ext = other if not conflict.external else conflict
            derived_line = self._line_of(derived)
            if derived_line is not None:
                self._write(
                    incompatibility,
                    f"Because {ext.and_to_string(derived, None, derived_line)}, {text}.",
                    numbered=numbered,
                )
            elif self._is_collapsible(derived):
                derived_cause = derived.cause
                assert isinstance(derived_cause, ConflictCause)
                if not derived_cause.conflict.external:
                    collapsed_derived, collapsed_ext = derived_cause.conflict, derived_cause.other
                else:
                    collapsed_derived, collapsed_ext = derived_cause.other, derived_cause.conflict
                self._visit(collapsed_derived)
                self._write(
                    incompatibility,
                    f"{conjunction} because {collapsed_ext.and_to_string(ext)}, {text}.",
                    numbered=numbered,
                )
            else:
                self._visit(derived)
                self._write(incompatibility, f"{conjunction} because {ext}, {text}.", numbered=numbered)
        else:
            self._write(
                incompatibility,
                f"Because {conflict.and_to_string(other)}, {text}.",
                numbered=numbered,
            )

    def _is_collapsible(self, incompatibility: Incompatibility) -> bool:
        if self._derivations[id(incompatibility)] > 1:
            return False
        cause = incompatibility.cause
        assert isinstance(cause, ConflictCause)
        if not cause.conflict.external and not cause.other.external:
            return False
        if cause.conflict.external and cause.other.external:
            return False
        complex_side = cause.conflict if not cause.conflict.external else cause.other
        return id(complex_side) not in self._line_numbers

    @staticmethod
    def _is_single_line(cause) -> bool:
        return cause.conflict.external and cause.other.external
