"""Tests for platform matching and variant selection."""

from unittest.mock import patch

import pytest

from resolver import platforms
from resolver.platforms import (
    merge_dependencies,
    platform_matches,
    select_variant,
    variants_for,
)
from versioning.models import Dependency, PackageCandidate
from versioning.requirement import VersionRequirement
from versioning.version import Version


def variant(platform="ruby", **deps):
    return PackageCandidate(
        name="nokogiri",
        version=Version("1.16.0"),
        platform=platform,
        dependencies=tuple(Dependency(n, VersionRequirement.parse(r)) for n, r in deps.items()),
    )


class TestPlatformMatching:
    """Compatibility between gem platforms and targets."""

    @pytest.mark.parametrize("gem_platform,target,expected", [
        ("ruby", "x86_64-linux", True),
        (None, "java", True),
        ("x86_64-linux", "x86_64-linux", True),
        ("arm64-darwin-23", "arm64-darwin", True),
        ("x86_64-linux", "arm64-darwin", False),
        ("java", "x86_64-linux", False),
    ])
    def test_platform_matches(self, gem_platform, target, expected):
        assert platform_matches(gem_platform, target) is expected

    def test_detect_current_platform(self):
        platforms.detect_current_platform.cache_clear()
        try:
            with patch("resolver.platforms.platform.machine", return_value="AMD64"), \
                    patch("resolver.platforms.sys.platform", "linux"):
                assert platforms.detect_current_platform() == "x86_64-linux"
        finally:
            platforms.detect_current_platform.cache_clear()


class TestVariantSelection:
    """Exact beats arch/OS prefix beats ruby."""

    def test_exact_match_wins(self):
        chosen = select_variant([variant(), variant("x86_64-linux"), variant("x86_64-linux-gnu")], "x86_64-linux")
        assert chosen.platform == "x86_64-linux"

    def test_prefix_match_beats_ruby(self):
        chosen = select_variant([variant(), variant("arm64-darwin-23")], "arm64-darwin")
        assert chosen.platform == "arm64-darwin-23"

    def test_ruby_fallback(self):
        assert select_variant([variant(), variant("x86_64-linux")], "java").platform == "ruby"

    def test_no_compatible_variant(self):
        assert select_variant([variant("x86_64-linux")], "java") is None

    def test_variants_for_deduplicates(self):
        chosen = variants_for([variant()], ["x86_64-linux", "java"])
        assert chosen == [variant()]

    def test_variants_for_requires_every_platform(self):
        assert variants_for([variant("x86_64-linux")], ["x86_64-linux", "java"]) is None


class TestMergeDependencies:
    """Dependency union across platform variants."""

    def test_union_and_intersection(self):
        merged = merge_dependencies([
            variant(racc="~> 1.4"),
            variant("x86_64-linux", racc=">= 1.5", mini_portile2="~> 2.8"),
        ])
        by_name = {d.name: str(d.requirement) for d in merged}
        assert by_name == {"racc": "~> 1.4, >= 1.5", "mini_portile2": "~> 2.8"}

    def test_disjoint_requirements(self):
        assert merge_dependencies([variant(racc="< 1"), variant("java", racc=">= 2")]) is None
