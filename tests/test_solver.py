"""End-to-end resolution scenarios against an in-memory index."""

import threading

import pytest

from constants import UpdateLevel
from registry.errors import MetadataFetchError
from registry.static import StaticIndex
from resolver import (
    ManifestError,
    PackageFetchError,
    ResolutionCancelled,
    ResolutionRequest,
    SolveFailure,
    resolve,
)
from versioning.models import ManifestEntry
from versioning.version import Version


AB_INDEX = {
    "a": [
        {"version": "1.0", "dependencies": {"b": ">= 1.0"}},
        {"version": "2.0", "dependencies": {"b": ">= 2.0"}},
    ],
    "b": [{"version": "1.0"}, {"version": "2.0"}],
}


class FailingIndex(StaticIndex):
    """Static index whose lookups for some names fail like a broken registry."""

    def __init__(self, gems, broken):
        super().__init__(StaticIndex.from_dict(gems)._gems)
        self.broken = set(broken)

    def fetch(self, gem_name):
        if gem_name in self.broken:
            raise MetadataFetchError(gem_name, "HTTP 500")
        return super().fetch(gem_name)


def run(manifest, index, platforms=("x86_64-linux",), source=None, **kwargs):
    request = ResolutionRequest(
        manifest=[ManifestEntry(name, requirement) for name, requirement in manifest],
        platforms=list(platforms),
        **kwargs,
    )
    source = source or StaticIndex.from_dict(index)
    return resolve(request, source, max_workers=2, fetch_timeout=5)


def versions(result):
    return {gem.name: gem.version for gem in result.gems}


class TestBasicResolution:
    """Newest-first selection and simple backtracking."""

    def test_selects_newest_consistent_versions(self):
        result = run([("a", ">= 1.0")], AB_INDEX)
        assert versions(result) == {"a": "2.0", "b": "2.0"}

    def test_dependencies_are_recorded(self):
        result = run([("a", ">= 1.0")], AB_INDEX)
        gem_a = next(g for g in result.gems if g.name == "a")
        assert [(d.name, d.requirement) for d in gem_a.dependencies] == [("b", ">= 2.0")]
        assert gem_a.platform is None

    def test_falls_back_to_older_version(self):
        index = {
            "a": [
                {"version": "1.0", "dependencies": {"b": "< 2"}},
                {"version": "2.0", "dependencies": {"b": ">= 2"}},
            ],
            "b": [{"version": "1.0"}, {"version": "2.0"}],
        }
        result = run([("a", ""), ("b", "< 2")], index)
        assert versions(result) == {"a": "1.0", "b": "1.0"}

    def test_backjumps_past_partial_satisfier(self):
        index = {
            "foo": [
                {"version": "1.0.0"},
                {"version": "1.1.0", "dependencies": {"left": "~> 1.0", "right": "~> 1.0"}},
            ],
            "left": [{"version": "1.0.0", "dependencies": {"shared": ">= 1.0"}}],
            "right": [{"version": "1.0.0", "dependencies": {"shared": "< 2.0"}}],
            "shared": [
                {"version": "1.0.0", "dependencies": {"target": "~> 1.0"}},
                {"version": "2.0.0"},
            ],
            "target": [{"version": "1.0.0"}, {"version": "2.0.0"}],
        }
        result = run([("foo", "~> 1.0"), ("target", "~> 2.0")], index)
        assert versions(result) == {"foo": "1.0.0", "target": "2.0.0"}

    def test_dependency_on_self_is_ignored(self):
        index = {"a": [{"version": "1.0", "dependencies": {"a": ">= 0"}}]}
        assert versions(run([("a", "")], index)) == {"a": "1.0"}

    def test_empty_manifest(self):
        assert run([], {}).gems == []

    def test_is_deterministic(self):
        first = run([("a", ">= 1.0")], AB_INDEX)
        second = run([("a", ">= 1.0")], AB_INDEX)
        assert first.gems == second.gems
        assert [g.to_dict() for g in first.gems] == [g.to_dict() for g in second.gems]


class TestFailures:
    """Unsatisfiable manifests fail with an explanation."""

    def test_conflicting_root_requirements(self):
        index = {"foo": [{"version": "1.0.0"}, {"version": "2.0.0"}]}
        with pytest.raises(SolveFailure) as excinfo:
            run([("foo", "= 1.0.0"), ("foo", "= 2.0.0")], index)
        assert str(excinfo.value) == (
            "Because Gemfile depends on both foo (= 1.0.0) and foo (= 2.0.0), version solving failed."
        )

    def test_transitive_conflict_mentions_both_requirements(self):
        index = {
            "foo": [{"version": "1.0", "dependencies": {"rack": "~> 2.2"}}],
            "rack": [{"version": "2.2.0"}, {"version": "3.0.0"}],
        }
        with pytest.raises(SolveFailure) as excinfo:
            run([("foo", "= 1.0"), ("rack", ">= 3.0")], index)
        message = excinfo.value.message
        assert "rack (~> 2.2)" in message
        assert "rack (>= 3.0)" in message
        assert excinfo.value.explanation[-1].endswith("version solving failed.")

    def test_unknown_root_gem(self):
        with pytest.raises(SolveFailure) as excinfo:
            run([("nope", "")], {})
        assert "nope which doesn't exist" in str(excinfo.value)

    def test_no_matching_versions(self):
        with pytest.raises(SolveFailure) as excinfo:
            run([("a", ">= 5")], AB_INDEX)
        assert "doesn't match any versions" in str(excinfo.value)

    def test_root_fetch_error_is_fatal(self):
        source = FailingIndex(AB_INDEX, broken=["a"])
        with pytest.raises(PackageFetchError) as excinfo:
            run([("a", "")], AB_INDEX, source=source)
        assert excinfo.value.name == "a"

    def test_transitive_fetch_error_is_an_obstacle(self):
        index = {
            "a": [
                {"version": "1.0"},
                {"version": "2.0", "dependencies": {"broken": ">= 0"}},
            ],
            "broken": [{"version": "1.0"}],
        }
        source = FailingIndex(index, broken=["broken"])
        assert versions(run([("a", "")], index, source=source)) == {"a": "1.0"}

    def test_transitive_fetch_error_is_explained(self):
        index = {"a": [{"version": "1.0", "dependencies": {"broken": ">= 0"}}], "broken": [{"version": "1.0"}]}
        source = FailingIndex(index, broken=["broken"])
        with pytest.raises(SolveFailure) as excinfo:
            run([("a", "")], index, source=source)
        message = str(excinfo.value)
        assert "could not be fetched (HTTP 500)" in message
        assert "doesn't exist" not in message

    def test_invalid_requirement(self):
        with pytest.raises(ManifestError):
            run([("a", ">= abc")], AB_INDEX)

    def test_invalid_ruby_version(self):
        with pytest.raises(ManifestError):
            run([("a", "")], AB_INDEX, ruby_version="three")

    def test_cancelled_before_start(self):
        event = threading.Event()
        event.set()
        request = ResolutionRequest(manifest=[ManifestEntry("a")], platforms=["x86_64-linux"])
        with pytest.raises(ResolutionCancelled):
            resolve(request, StaticIndex.from_dict(AB_INDEX), cancel_event=event)


class TestPrereleases:
    """Prereleases are opt-in."""

    INDEX = {"a": [{"version": "1.0"}, {"version": "2.0.beta"}]}

    def test_excluded_by_default(self):
        assert versions(run([("a", "")], self.INDEX)) == {"a": "1.0"}

    def test_enabled_globally(self):
        assert versions(run([("a", "")], self.INDEX, prerelease=True)) == {"a": "2.0.beta"}

    def test_enabled_by_prerelease_requirement(self):
        assert versions(run([("a", ">= 2.0.beta")], self.INDEX)) == {"a": "2.0.beta"}

    def test_only_prereleases_fails(self):
        with pytest.raises(SolveFailure) as excinfo:
            run([("a", "")], {"a": [{"version": "2.0.beta"}]})
        assert "doesn't match any versions" in str(excinfo.value)


class TestUpdatePolicy:
    """Locked versions, selective updates and update levels."""

    INDEX = {
        "a": [{"version": v, "dependencies": {"b": ">= 1.0"}} for v in ["1.0.0", "1.0.1", "1.1.0", "2.0.0"]],
        "b": [{"version": "1.0"}, {"version": "2.0"}],
    }
    LOCKED = {"a": Version("1.0.0"), "b": Version("1.0")}

    def test_locked_versions_are_kept(self):
        result = run([("a", "")], self.INDEX, locked=self.LOCKED)
        assert versions(result) == {"a": "1.0.0", "b": "1.0"}

    def test_conservative_keeps_lock_when_new_versions_appear(self):
        result = run([("a", "")], self.INDEX, locked=self.LOCKED, conservative=True)
        assert versions(result) == {"a": "1.0.0", "b": "1.0"}

    def test_update_single_gem_keeps_others_pinned(self):
        result = run([("a", "")], self.INDEX, locked=self.LOCKED, update=["a"])
        assert versions(result) == {"a": "2.0.0", "b": "1.0"}

    def test_update_all(self):
        result = run([("a", "")], self.INDEX, locked=self.LOCKED, update="*")
        assert versions(result) == {"a": "2.0.0", "b": "2.0"}

    def test_conservative_update_takes_nearest_release(self):
        result = run([("a", "")], self.INDEX, locked=self.LOCKED, update=["a"], conservative=True)
        assert versions(result) == {"a": "1.0.1", "b": "1.0"}

    def test_conservative_update_all(self):
        result = run([("a", "")], self.INDEX, locked=self.LOCKED, update="*", conservative=True)
        assert versions(result) == {"a": "1.0.1", "b": "2.0"}

    @pytest.mark.parametrize("level,expected", [
        (UpdateLevel.PATCH, "1.0.1"),
        (UpdateLevel.MINOR, "1.1.0"),
        (UpdateLevel.MAJOR, "2.0.0"),
    ])
    def test_update_levels(self, level, expected):
        result = run([("a", "")], self.INDEX, locked=self.LOCKED, update=["a"], update_level=level)
        assert versions(result)["a"] == expected

    def test_conservative_picks_closest_allowed_version(self):
        result = run([("a", ">= 1.0.1")], self.INDEX, locked=self.LOCKED, conservative=True)
        assert versions(result)["a"] == "1.0.1"

    def test_non_root_pin_constrains_transitive_gem(self):
        result = run([("a", "")], self.INDEX, overrides={"b": "= 1.0"})
        assert versions(result) == {"a": "2.0.0", "b": "1.0"}

    def test_non_root_pin_explains_conflict(self):
        index = {"a": [{"version": "1.0", "dependencies": {"b": ">= 2.0"}}], "b": [{"version": "1.0"}, {"version": "2.0"}]}
        with pytest.raises(SolveFailure) as excinfo:
            run([("a", "")], index, overrides={"b": "= 1.0"})
        assert "b is locked to = 1.0" in str(excinfo.value)

    def test_root_override_is_intersected(self):
        result = run([("a", "")], self.INDEX, overrides={"a": "< 1.1"})
        assert versions(result)["a"] == "1.0.1"


class TestPlatforms:
    """Platform-specific variants."""

    INDEX = {
        "nokogiri": [
            {"version": "1.16.0", "dependencies": {"racc": "~> 1.4"}},
            {"version": "1.16.0", "platform": "x86_64-linux", "dependencies": {"racc": "~> 1.4"}},
            {"version": "1.16.0", "platform": "arm64-darwin", "dependencies": {"racc": "~> 1.4"}},
        ],
        "racc": [{"version": "1.7.3"}],
        "mini_racer": [
            {"version": "0.6.0"},
            {"version": "0.8.0", "platform": "x86_64-linux"},
        ],
    }

    def test_native_variant_per_platform(self):
        result = run([("nokogiri", "")], self.INDEX, platforms=["x86_64-linux", "arm64-darwin"])
        assert [(g.name, g.platform) for g in result.gems] == [
            ("nokogiri", "arm64-darwin"),
            ("nokogiri", "x86_64-linux"),
            ("racc", None),
        ]

    def test_ruby_variant_fills_unmatched_platform(self):
        result = run([("nokogiri", "")], self.INDEX, platforms=["x86_64-linux", "java"])
        assert [(g.name, g.platform) for g in result.gems] == [
            ("nokogiri", None),
            ("nokogiri", "x86_64-linux"),
            ("racc", None),
        ]

    def test_version_needs_every_platform(self):
        single = run([("mini_racer", "")], self.INDEX, platforms=["x86_64-linux"])
        assert versions(single) == {"mini_racer": "0.8.0"}
        both = run([("mini_racer", "")], self.INDEX, platforms=["x86_64-linux", "arm64-darwin"])
        assert versions(both) == {"mini_racer": "0.6.0"}

    def test_ruby_version_filter(self):
        index = {
            "a": [
                {"version": "1.0", "required_ruby_version": ">= 2.7"},
                {"version": "2.0", "required_ruby_version": ">= 3.2"},
            ]
        }
        result = run([("a", "")], index, ruby_version="3.0")
        assert versions(result) == {"a": "1.0"}
        assert result.gems[0].required_ruby_version == ">= 2.7"
