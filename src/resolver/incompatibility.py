"""Incompatibilities: sets of terms that cannot all be true at once."""

from __future__ import annotations

from typing import Callable, Dict, Iterable, List, Optional

from constants import Constants
from registry.errors import MetadataFetchError, PackageNotFound

from .term import Term


class IncompatibilityCause:
    """Why an incompatibility holds."""


class RootCause(IncompatibilityCause):
    """The root package must be selected."""


class DependencyCause(IncompatibilityCause):
    """A package version depends on another package."""


class NoVersionsCause(IncompatibilityCause):
    """No candidate versions match a constraint."""


class PinnedCause(IncompatibilityCause):
    """An update policy pins a package that is not a direct requirement."""

    def __init__(self, requirement):
        self.requirement = requirement


class PackageNotFoundCause(IncompatibilityCause):
    """Metadata for the package could not be obtained."""

    def __init__(self, error: Exception):
        self.error = error

    @property
    def description(self) -> str:
        """How the failure reads in an explanation, e.g. "doesn't exist"."""
        if isinstance(self.error, MetadataFetchError) and not isinstance(self.error, PackageNotFound):
            return f"could not be fetched ({self.error.reason})"
        return "doesn't exist"


class ConflictCause(IncompatibilityCause):
    """Derived by resolving two incompatibilities against each other."""

    def __init__(self, conflict: "Incompatibility", other: "Incompatibility"):
        self.conflict = conflict
        self.other = other


class Incompatibility:
    """Terms that are never all satisfied by a valid solution.

    Incompatibilities are compared by identity; the failure writer relies on
    that to number shared derivations.
    """

    def __init__(self, terms: Iterable[Term], cause: IncompatibilityCause,
                 root: str = Constants.ROOT_NAME):
        terms = list(terms)
        self.root = root
        self.cause = cause

        # A derived fact holds whenever the root is selected, which it always is.
        if (
            len(terms) != 1
            and isinstance(cause, ConflictCause)
            and any(t.positive and t.package == root for t in terms)
        ):
            terms = [t for t in terms if not (t.positive and t.package == root)]

        if len(terms) == 1 or (len(terms) == 2 and terms[0].package != terms[1].package):
            self.terms: List[Term] = terms
            return

        by_name: Dict[str, Term] = {}
        for term in terms:
            existing = by_name.get(term.package)
            if existing is None:
                by_name[term.package] = term
                continue
            merged = existing.intersect(term)
            if merged is None:
                raise ValueError(f"Mutually exclusive terms {existing} and {term} in one incompatibility")
            by_name[term.package] = merged
        self.terms = list(by_name.values())

    @property
    def external(self) -> bool:
        return not isinstance(self.cause, ConflictCause)

    def is_failure(self) -> bool:
        """Whether this proves the root can't be selected."""
        return not self.terms or (len(self.terms) == 1 and self.terms[0].package == self.root)

    def __str__(self) -> str:
        cause = self.cause
        if isinstance(cause, DependencyCause):
            depender, dependee = self.terms
            return f"{self._terse(depender, allow_every=True)} depends on {self._terse(dependee)}"
        if isinstance(cause, PinnedCause):
            return f"{self.terms[0].package} is locked to {cause.requirement}"
        if isinstance(cause, NoVersionsCause):
            term = self.terms[0]
            return f"no versions of {term.package} match {term.constraint}"
        if isinstance(cause, PackageNotFoundCause):
            return f"{self.terms[0].package} {cause.description}"
        if isinstance(cause, RootCause):
            return f"{self.terms[0].package} is selected"
        if self.is_failure():
            return "version solving failed"

        if len(self.terms) == 1:
            term = self.terms[0]
            return f"{self._terse(term, allow_every=True)} is {'forbidden' if term.positive else 'required'}"

        if len(self.terms) == 2:
            first, second = self.terms
            if first.positive == second.positive:
                if not first.positive:
                    return f"either {self._terse(first)} or {self._terse(second)}"
                return f"{self._terse(first, allow_every=True)} is incompatible with {self._terse(second, allow_every=True)}"

        positive = [self._terse(t) for t in self.terms if t.positive]
        negative = [self._terse(t) for t in self.terms if not t.positive]
        if positive and negative:
            if len(positive) == 1:
                positive_term = next(t for t in self.terms if t.positive)
                return f"{self._terse(positive_term, allow_every=True)} requires {' or '.join(negative)}"
            return f"if {' and '.join(positive)} then {' or '.join(negative)}"
        if positive:
            return f"one of {' or '.join(positive)} must be false"
        return f"one of {' or '.join(negative)} must be true"

    def __repr__(self) -> str:
        return f"<Incompatibility {self}>"

    def and_to_string(self, other: "Incompatibility",
                      this_line: Optional[int] = None, other_line: Optional[int] = None) -> str:
        """Render "this and other" as one clause, collapsing shared terms."""
        for attempt in (self._try_requires_both, self._try_requires_through, self._try_requires_forbidden):
            combined = attempt(other, this_line, other_line)
            if combined is not None:
                return combined

        parts = [str(self)]
        if this_line is not None:
            parts.append(f" ({this_line})")
        parts.append(f" and {other}")
        if other_line is not None:
            parts.append(f" ({other_line})")
        return "".join(parts)

    def _try_requires_both(self, other: "Incompatibility",
                           this_line: Optional[int], other_line: Optional[int]) -> Optional[str]:
        if len(self.terms) == 1 or len(other.terms) == 1:
            return None

        this_positive = self._single_term_where(lambda t: t.positive)
        other_positive = other._single_term_where(lambda t: t.positive)
        if this_positive is None or other_positive is None:
            return None
        if this_positive.package != other_positive.package or this_positive.constraint != other_positive.constraint:
            return None

        this_negatives = " or ".join(self._terse(t) for t in self.terms if not t.positive)
        other_negatives = " or ".join(self._terse(t) for t in other.terms if not t.positive)

        both_dependencies = isinstance(self.cause, DependencyCause) and isinstance(other.cause, DependencyCause)
        parts = [self._terse(this_positive, allow_every=True), " depends on" if both_dependencies else " requires"]
        parts.append(f" both {this_negatives}")
        if this_line is not None:
            parts.append(f" ({this_line})")
        parts.append(f" and {other_negatives}")
        if other_line is not None:
            parts.append(f" ({other_line})")
        return "".join(parts)

    def _try_requires_through(self, other: "Incompatibility",
                              this_line: Optional[int], other_line: Optional[int]) -> Optional[str]:
        if len(self.terms) == 1 or len(other.terms) == 1:
            return None

        this_negative = self._single_term_where(lambda t: not t.positive)
        other_negative = other._single_term_where(lambda t: not t.positive)
        if this_negative is None and other_negative is None:
            return None

        this_positive = self._single_term_where(lambda t: t.positive)
        other_positive = other._single_term_where(lambda t: t.positive)

        if (
            this_negative is not None
            and other_positive is not None
            and this_negative.package == other_positive.package
            and this_negative.inverse.satisfies(other_positive)
        ):
            prior, prior_negative, prior_line = self, this_negative, this_line
            latter, latter_line = other, other_line
        elif (
            other_negative is not None
            and this_positive is not None
            and other_negative.package == this_positive.package
            and other_negative.inverse.satisfies(this_positive)
        ):
            prior, prior_negative, prior_line = other, other_negative, other_line
            latter, latter_line = self, this_line
        else:
            return None

        prior_positives = [t for t in prior.terms if t.positive]
        parts = []
        if len(prior_positives) > 1:
            parts.append(f"if {' or '.join(self._terse(t) for t in prior_positives)} then ")
        else:
            verb = "depends on" if isinstance(prior.cause, DependencyCause) else "requires"
            parts.append(f"{self._terse(prior_positives[0], allow_every=True)} {verb} ")

        parts.append(self._terse(prior_negative))
        if prior_line is not None:
            parts.append(f" ({prior_line})")
        parts.append(" which ")
        parts.append("depends on " if isinstance(latter.cause, DependencyCause) else "requires ")
        parts.append(" or ".join(self._terse(t) for t in latter.terms if not t.positive))
        if latter_line is not None:
            parts.append(f" ({latter_line})")
        return "".join(parts)

    def _try_requires_forbidden(self, other: "Incompatibility",
                                this_line: Optional[int], other_line: Optional[int]) -> Optional[str]:
        if len(self.terms) != 1 and len(other.terms) != 1:
            return None

        if len(self.terms) == 1:
            prior, latter = other, self
            prior_line, latter_line = other_line, this_line
        else:
            prior, latter = self, other
            prior_line, latter_line = this_line, other_line

        negative = prior._single_term_where(lambda t: not t.positive)
        if negative is None or not negative.inverse.satisfies(latter.terms[0]):
            return None

        positives = [t for t in prior.terms if t.positive]
        parts = []
        if len(positives) > 1:
            parts.append(f"if {' or '.join(self._terse(t) for t in positives)} then ")
        elif positives:
            verb = " depends on " if isinstance(prior.cause, DependencyCause) else " requires "
            parts.append(self._terse(positives[0], allow_every=True) + verb)
        else:
            return None

        shown = negative if isinstance(latter.cause, PinnedCause) else latter.terms[0]
        parts.append(self._terse(shown) + " ")
        if prior_line is not None:
            parts.append(f"({prior_line}) ")

        if isinstance(latter.cause, NoVersionsCause):
            parts.append("which doesn't match any versions")
        elif isinstance(latter.cause, PackageNotFoundCause):
            parts.append(f"which {latter.cause.description}")
        elif isinstance(latter.cause, PinnedCause):
            parts.append(f"but {negative.package} is locked to {latter.cause.requirement}")
        else:
            parts.append("which is forbidden")
        if latter_line is not None:
            parts.append(f" ({latter_line})")
        return "".join(parts)

    def _single_term_where(self, predicate: Callable[[Term], bool]) -> Optional[Term]:
        found = None
        for term in self.terms:
            if not predicate(term):
                continue
            if found is not None:
                return None
            found = term
        return found

    def _terse(self, term: Term, allow_every: bool = False) -> str:
        if term.package == self.root:
            return term.package
        if term.constraint.is_any:
            return f"every version of {term.package}" if allow_every else term.package
        return f"{term.package} ({term.constraint})"
