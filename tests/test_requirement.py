"""Tests for gem requirement parsing and matching."""

import pytest

from versioning.requirement import InvalidRequirement, VersionRequirement
from versioning.version import Version


def matches(requirement, version, **kwargs):
    return VersionRequirement.parse(requirement).matches(Version(version), **kwargs)


class TestPessimisticOperator:
    """``~>`` allows the last given segment to grow."""

    @pytest.mark.parametrize("version", ["2.3.0", "2.9.9", "2.3"])
    def test_two_segment_matches(self, version):
        assert matches("~> 2.3", version)

    @pytest.mark.parametrize("version", ["3.0.0", "2.2.9"])
    def test_two_segment_rejects(self, version):
        assert not matches("~> 2.3", version)

    def test_three_segment(self):
        assert matches("~> 2.3.1", "2.3.9")
        assert not matches("~> 2.3.1", "2.4.0")
        assert not matches("~> 2.3.1", "2.3.0")

    def test_single_segment(self):
        assert matches("~> 2", "2.9")
        assert not matches("~> 2", "3.0")


class TestRequirementMatching:
    """Compound requirements and defaults."""

    def test_range(self):
        assert matches(">= 1.0, < 2.0", "1.5.0")
        assert not matches(">= 1.0, < 2.0", "2.0.0")

    def test_empty_requirement_matches_anything(self):
        requirement = VersionRequirement.parse("")
        assert requirement.matches(Version("0.0.1"))
        assert requirement.is_any
        assert str(requirement) == ">= 0"

    def test_bare_version_means_equal(self):
        assert matches("1.2", "1.2.0")
        assert not matches("1.2", "1.2.1")

    def test_not_equal(self):
        assert matches("!= 1.5", "1.4")
        assert not matches("!= 1.5", "1.5")

    def test_prerelease_excluded_by_default(self):
        assert not matches(">= 1.0", "2.0.beta")
        assert matches(">= 1.0", "2.0.beta", allow_prerelease=True)

    def test_prerelease_operand_opts_in(self):
        requirement = VersionRequirement.parse(">= 2.0.beta")
        assert requirement.is_prerelease
        assert requirement.matches(Version("2.0.rc"))


class TestRequirementAlgebra:
    """intersect, allows_any and version set conversion."""

    def test_disjoint_intersection_is_none(self):
        assert VersionRequirement.parse("~> 1.0").intersect(VersionRequirement.parse(">= 2")) is None

    def test_intersection_combines_constraints(self):
        combined = VersionRequirement.parse(">= 1").intersect(VersionRequirement.parse("< 2"))
        assert combined is not None
        assert combined.matches(Version("1.5"))
        assert not combined.matches(Version("2.0"))

    def test_allows_any(self):
        versions = [Version("1.0"), Version("3.0")]
        assert VersionRequirement.parse("~> 3.0").allows_any(versions)
        assert not VersionRequirement.parse("~> 2.0").allows_any(versions)

    def test_version_set_agrees_with_matches(self):
        requirement = VersionRequirement.parse("~> 1.4, != 1.5.2")
        version_set = requirement.to_version_set()
        for text in ["1.4", "1.5.1", "1.5.2", "1.9", "2.0", "1.3"]:
            assert version_set.allows(Version(text)) == requirement.matches(Version(text))

    def test_version_set_renders_requirement_text(self):
        assert str(VersionRequirement.parse("~> 2.2").to_version_set()) == "~> 2.2"


class TestInvalidRequirement:
    """Malformed requirements fail fast."""

    @pytest.mark.parametrize("text", ["~> ", ">= abc", "=> 1.0", ">= 1.0,"])
    def test_rejects(self, text):
        with pytest.raises(InvalidRequirement):
            VersionRequirement.parse(text)
