"""Tests for incompatibilities and their rendering."""

import pytest

from registry.errors import MetadataFetchError, PackageNotFound
from resolver.incompatibility import (
    ConflictCause,
    DependencyCause,
    Incompatibility,
    NoVersionsCause,
    PackageNotFoundCause,
    PinnedCause,
    RootCause,
)
from resolver.term import Term
from versioning.requirement import VersionRequirement
from versioning.version import Version
from versioning.version_set import VersionSet


def vs(text):
    return VersionRequirement.parse(text).to_version_set()


def depends(package, constraint, dependency, requirement):
    return Incompatibility(
        [Term(package, vs(constraint)), Term(dependency, vs(requirement), False)],
        DependencyCause(),
    )


class TestIncompatibilityConstruction:
    """Term coalescing and root handling."""

    def test_terms_for_same_package_are_merged(self):
        incompatibility = Incompatibility(
            [Term("a", vs(">= 1")), Term("a", vs("< 2")), Term("b", vs(">= 1"))],
            NoVersionsCause(),
        )
        assert len(incompatibility.terms) == 2
        merged = incompatibility.terms[0]
        assert merged.package == "a"
        assert merged.constraint == VersionSet.between(Version("1"), Version("2"))

    def test_mutually_exclusive_terms_raise(self):
        with pytest.raises(ValueError):
            Incompatibility(
                [Term("a", vs("< 1")), Term("a", vs(">= 2")), Term("b", VersionSet.any())],
                NoVersionsCause(),
            )

    def test_derived_incompatibility_drops_positive_root(self):
        parent = Incompatibility([Term("x", VersionSet.any())], NoVersionsCause())
        derived = Incompatibility(
            [Term("Gemfile", VersionSet.any()), Term("a", vs(">= 1"))],
            ConflictCause(parent, parent),
        )
        assert [t.package for t in derived.terms] == ["a"]
        assert not derived.external

    def test_is_failure(self):
        parent = Incompatibility([Term("x", VersionSet.any())], NoVersionsCause())
        assert Incompatibility([], ConflictCause(parent, parent)).is_failure()
        assert Incompatibility([Term("Gemfile", VersionSet.any())], ConflictCause(parent, parent)).is_failure()
        assert not parent.is_failure()


class TestIncompatibilityRendering:
    """Sentences used in failure explanations."""

    def test_dependency(self):
        assert str(depends("rails", "= 7.0", "rack", "~> 2.2")) == "rails (= 7.0) depends on rack (~> 2.2)"

    def test_dependency_from_every_version(self):
        incompatibility = Incompatibility(
            [Term("rails", VersionSet.any()), Term("rack", vs(">= 1"), False)], DependencyCause()
        )
        assert str(incompatibility) == "every version of rails depends on rack (>= 1)"

    def test_root_dependency_uses_bare_root_name(self):
        incompatibility = Incompatibility(
            [Term("Gemfile", VersionSet.any()), Term("rack", vs("~> 2.2"), False)], DependencyCause()
        )
        assert str(incompatibility) == "Gemfile depends on rack (~> 2.2)"

    def test_no_versions(self):
        incompatibility = Incompatibility([Term("rack", vs(">= 9"))], NoVersionsCause())
        assert str(incompatibility) == "no versions of rack match >= 9"

    def test_not_found(self):
        incompatibility = Incompatibility([Term("nope", VersionSet.any())], PackageNotFoundCause(LookupError()))
        assert str(incompatibility) == "nope doesn't exist"

    def test_not_found_from_registry(self):
        incompatibility = Incompatibility([Term("nope", VersionSet.any())], PackageNotFoundCause(PackageNotFound("nope")))
        assert str(incompatibility) == "nope doesn't exist"

    def test_fetch_failure_keeps_reason(self):
        error = MetadataFetchError("broken", "HTTP 500")
        incompatibility = Incompatibility([Term("broken", VersionSet.any())], PackageNotFoundCause(error))
        assert str(incompatibility) == "broken could not be fetched (HTTP 500)"

    def test_root(self):
        incompatibility = Incompatibility([Term("Gemfile", VersionSet.any(), False)], RootCause())
        assert str(incompatibility) == "Gemfile is selected"

    def test_pinned(self):
        incompatibility = Incompatibility(
            [Term("rack", vs("= 2.2.3").complement())], PinnedCause(VersionRequirement.parse("= 2.2.3"))
        )
        assert str(incompatibility) == "rack is locked to = 2.2.3"

    def test_two_positives_are_incompatible(self):
        parent = Incompatibility([Term("x", VersionSet.any())], NoVersionsCause())
        incompatibility = Incompatibility(
            [Term("a", vs("= 1")), Term("b", vs("= 2"))], ConflictCause(parent, parent)
        )
        assert str(incompatibility) == "a (= 1) is incompatible with b (= 2)"


class TestAndToString:
    """Combining two incompatibilities into one clause."""

    def test_requires_both(self):
        left = depends("app", "= 1", "rack", ">= 2")
        right = depends("app", "= 1", "json", ">= 1")
        assert left.and_to_string(right) == "app (= 1) depends on both rack (>= 2) and json (>= 1)"

    def test_requires_through(self):
        left = depends("app", "= 1", "rack", ">= 2")
        right = depends("rack", ">= 2", "json", "< 1")
        assert left.and_to_string(right, 1, None) == "app (= 1) depends on rack (>= 2) (1) which depends on json (< 1)"

    def test_requires_missing_package(self):
        left = Incompatibility(
            [Term("app", vs("= 1")), Term("nope", VersionSet.any(), False)], DependencyCause()
        )
        missing = Incompatibility([Term("nope", VersionSet.any())], PackageNotFoundCause(LookupError()))
        assert left.and_to_string(missing) == "app (= 1) depends on nope which doesn't exist"

    def test_requires_unfetchable_package(self):
        left = Incompatibility(
            [Term("app", vs("= 1")), Term("broken", VersionSet.any(), False)], DependencyCause()
        )
        error = MetadataFetchError("broken", "timed out after 5s")
        failed = Incompatibility([Term("broken", VersionSet.any())], PackageNotFoundCause(error))
        assert left.and_to_string(failed) == "app (= 1) depends on broken which could not be fetched (timed out after 5s)"

    def test_requires_unavailable_versions(self):
        left = depends("app", "= 1", "rack", ">= 9")
        missing = Incompatibility([Term("rack", vs(">= 9"))], NoVersionsCause())
        assert left.and_to_string(missing) == "app (= 1) depends on rack (>= 9) which doesn't match any versions"
